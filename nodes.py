"""Production network nodes: Supply, Machine and Merger.

Each variant is a plain dataclass holding socket handles. Behaviour is attached through
the single-dispatch functions `assign_materials`, `balance` and `operating_information`,
so the network driver never branches on node type. A new variant (a Splitter, say) only
needs to register its own implementations.
"""

import logging
import math
from dataclasses import dataclass
from functools import singledispatch
from typing import Optional

from catalog import Catalog, PartKind
from errors import ConflictingMaterials, InvalidRecipe, MaterialNotSet, RecipeNotSet
from flow_maps import (
    UNBOUNDED,
    clamp_ratio,
    find_bottleneck,
    flow_ratios,
    flows_close,
    limit_ratio,
    sum_flows,
)
from sockets import Direction, SocketArena

_LOGGER = logging.getLogger("satisflow")

_S = PartKind.SOLID
_F = PartKind.FLUID

# (input socket kinds, output socket kinds) for every machine building
MACHINE_LAYOUTS: dict[str, tuple[tuple[PartKind, ...], tuple[PartKind, ...]]] = {
    "Smelter": ((_S,), (_S,)),
    "Constructor": ((_S,), (_S,)),
    "Assembler": ((_S, _S), (_S,)),
    "Foundry": ((_S, _S), (_S,)),
    "Manufacturer": ((_S, _S, _S, _S), (_S,)),
    "Refinery": ((_S, _F), (_S, _F)),
    "Packager": ((_S, _F), (_S, _F)),
    "Blender": ((_S, _S, _F, _F), (_S, _F)),
    "Particle Accelerator": ((_S, _S, _F), (_S,)),
}

DEFAULT_MERGER_INPUTS = 3


@dataclass(eq=False)
class Supply:
    """a raw material source with an externally fixed material and flow"""

    id: int
    inputs: list[int]
    outputs: list[int]
    material: Optional[str] = None
    flow: float = 0.0
    name: str = "Supply"

    def set_output(self, material: Optional[str], flow: float) -> None:
        """Set what the supply offers.

        Raises:
            ValueError: if flow is negative or NaN
        """
        if math.isnan(flow) or flow < 0:
            raise ValueError(f"Invalid supply flow {flow}. Must be a nonnegative number.")
        self.material = material
        self.flow = flow


@dataclass(eq=False)
class Machine:
    """a building running one recipe at some efficiency"""

    id: int
    inputs: list[int]
    outputs: list[int]
    building: str
    recipe: Optional[str] = None
    efficiency: float = 0.0

    @property
    def name(self) -> str:
        return self.building


@dataclass(eq=False)
class Merger:
    """N inputs of one kind combined onto a single output"""

    id: int
    inputs: list[int]
    outputs: list[int]
    kind: PartKind = PartKind.SOLID
    name: str = "Merger"

    @property
    def output(self) -> int:
        return self.outputs[0]


Node = Supply | Machine | Merger

FLOW_NODE_TYPES = (Supply, Machine, Merger)


# ========== Construction ==========


def create_supply(
    node_id: int,
    sockets: SocketArena,
    material: Optional[str] = None,
    flow: float = 0.0,
    kind: PartKind = PartKind.SOLID,
) -> Supply:
    """Create a supply node with a single output socket.

    Precondition:
        node_id is unused in the owning network

    Postcondition:
        returns a Supply owning one output socket of the given kind

    Args:
        node_id: handle for the new node
        sockets: arena that will own the socket
        material: part id offered, may be set later
        flow: units per minute offered
        kind: socket kind able to carry material

    Returns:
        Supply

    Raises:
        ValueError: if flow is negative
    """
    supply = Supply(node_id, [], [sockets.create(node_id, Direction.OUTPUT, kind)])
    supply.set_output(material, flow)
    return supply


def create_machine(node_id: int, sockets: SocketArena, building: str) -> Machine:
    """Create a machine node with the socket layout of building.

    Precondition:
        node_id is unused in the owning network

    Postcondition:
        returns a Machine without a recipe
        input and output sockets follow MACHINE_LAYOUTS[building] in order

    Args:
        node_id: handle for the new node
        sockets: arena that will own the sockets
        building: key of MACHINE_LAYOUTS

    Returns:
        Machine

    Raises:
        ValueError: if building is unknown
    """
    if building not in MACHINE_LAYOUTS:
        raise ValueError(
            f"Unknown building '{building}'. Must be one of {', '.join(MACHINE_LAYOUTS)}."
        )
    input_kinds, output_kinds = MACHINE_LAYOUTS[building]
    inputs = [sockets.create(node_id, Direction.INPUT, kind) for kind in input_kinds]
    outputs = [sockets.create(node_id, Direction.OUTPUT, kind) for kind in output_kinds]
    return Machine(node_id, inputs, outputs, building)


def create_merger(
    node_id: int,
    sockets: SocketArena,
    kind: PartKind = PartKind.SOLID,
    input_count: int = DEFAULT_MERGER_INPUTS,
) -> Merger:
    """Create a merger with input_count inputs and one output, all of one kind.

    Raises:
        ValueError: if input_count < 1
    """
    if input_count < 1:
        raise ValueError(f"Invalid merger input count {input_count}. Must be at least 1.")
    inputs = [sockets.create(node_id, Direction.INPUT, kind) for _ in range(input_count)]
    output = sockets.create(node_id, Direction.OUTPUT, kind)
    return Merger(node_id, inputs, [output], kind)


def set_recipe(machine: Machine, recipe_id: str, sockets: SocketArena, catalog: Catalog) -> None:
    """Configure a machine with a new recipe.

    Precondition:
        recipe_id is a catalog recipe id

    Postcondition:
        machine.recipe == recipe_id
        machine.efficiency == 0
        every output socket carries no material and no flow until assignment runs again

    Raises:
        CatalogLookupFailed: if recipe_id does not exist
    """
    catalog.get_recipe_info(recipe_id)
    machine.recipe = recipe_id
    machine.efficiency = 0.0
    for handle in machine.outputs:
        sockets.propagate_flow(handle, None, 0.0)


def _require_recipe(machine: Machine) -> str:
    if machine.recipe is None:
        raise RecipeNotSet(f"Recipe has not been set for {machine.building} [{machine.id}].")
    return machine.recipe


def _distinct_input_materials(merger: Merger, sockets: SocketArena) -> list[str]:
    """Collect distinct assigned input materials in socket order.

    Raises:
        ConflictingMaterials: if more than one material is present
    """
    materials = []
    for handle in merger.inputs:
        material = sockets.get(handle).material
        if material is not None and material not in materials:
            materials.append(material)
    if len(materials) > 1:
        raise ConflictingMaterials(
            f"Merger [{merger.id}] has multiple types of input - {', '.join(materials)}"
        )
    return materials


# ========== Material assignment ==========


@singledispatch
def assign_materials(node, sockets: SocketArena, catalog: Catalog) -> None:
    """Assign materials to a node's output sockets ahead of balancing."""
    raise TypeError(f"{type(node).__name__} is not a production network node")


@assign_materials.register
def _assign_supply(node: Supply, sockets: SocketArena, catalog: Catalog) -> None:
    # Material and flow are fixed from outside
    return None


@assign_materials.register
def _assign_machine(node: Machine, sockets: SocketArena, catalog: Catalog) -> None:
    """Place each recipe product on the output socket of matching kind.

    Precondition:
        node.recipe is set

    Postcondition:
        every product material sits on exactly one output socket of its kind
        output sockets without a product carry no material
        sockets whose material is unchanged keep their flow

    Raises:
        RecipeNotSet: if node has no recipe
        InvalidRecipe: if the products do not fit the building's output sockets
    """
    recipe = _require_recipe(node)
    products = catalog.product_flow_map(recipe)
    if len(products) > 2:
        raise InvalidRecipe(
            f"Recipe '{recipe}' has {len(products)} products, a machine supports at most 2."
        )
    kinds = [catalog.part_kind(material) for material in products]
    if len(set(kinds)) != len(kinds):
        raise InvalidRecipe(
            f"Recipe '{recipe}' produces two {kinds[0].value} parts, expected one solid and one fluid."
        )

    assignment: dict[int, str] = {}
    for material, kind in zip(products, kinds):
        handle = next(
            (h for h in node.outputs if sockets.get(h).accepted_kind is kind),
            None,
        )
        if handle is None:
            raise InvalidRecipe(
                f"{node.building} [{node.id}] has no {kind.value} output for '{material}' "
                f"of recipe '{recipe}'."
            )
        assignment[handle] = material

    for handle in node.outputs:
        material = assignment.get(handle)
        if sockets.get(handle).material != material:
            sockets.propagate_flow(handle, material, 0.0)
    _LOGGER.debug("%s [%d] outputs assigned: %s", node.building, node.id, list(products))


@assign_materials.register
def _assign_merger(node: Merger, sockets: SocketArena, catalog: Catalog) -> None:
    """Carry the single input material, if any, to the output with zero flow.

    Raises:
        ConflictingMaterials: if inputs carry more than one material
    """
    materials = _distinct_input_materials(node, sockets)
    sockets.propagate_flow(node.output, materials[0] if materials else None, 0.0)


# ========== Balancing ==========


@singledispatch
def balance(node, sockets: SocketArena, catalog: Catalog) -> None:
    """Recompute a node's socket flows and limits from its neighbours' current state."""
    raise TypeError(f"{type(node).__name__} is not a production network node")


@balance.register
def _balance_supply(node: Supply, sockets: SocketArena, catalog: Catalog) -> None:
    """Publish the fixed material and flow on the output socket.

    Raises:
        MaterialNotSet: if the supply has no material
    """
    if node.material is None:
        raise MaterialNotSet(f"Material has not been set for Supply [{node.id}].")
    sockets.propagate_flow(node.outputs[0], node.material, node.flow)


def _permitted_output_ratio(
    node: Machine, sockets: SocketArena, theoretical_outputs: dict[str, float]
) -> float:
    """Fraction of full-rate production the downstream side allows, at most 1."""
    ratio = 1.0
    for handle in node.outputs:
        socket = sockets.get(handle)
        full_rate = theoretical_outputs.get(socket.material)
        if full_rate is None:
            continue
        ratio = min(ratio, limit_ratio(socket.max_permitted, full_rate))
    return ratio


@balance.register
def _balance_machine(node: Machine, sockets: SocketArena, catalog: Catalog) -> None:
    """Run one balancing step of a machine.

    Efficiency is the lower of what the downstream side permits and what the scarcest
    ingredient allows. Non-bottleneck ingredients are throttled to that efficiency,
    which lets converging supply lines settle over repeated passes.

    Precondition:
        node.recipe is set
        output materials were assigned

    Postcondition:
        0 <= node.efficiency <= 1
        node.efficiency <= actual/theoretical ratio of every ingredient
        every assigned output carries efficiency * its full-rate flow
        every input with a material has a permitted limit

    Raises:
        RecipeNotSet: if node has no recipe
        InvalidRecipe: if an ingredient has no positive theoretical demand
    """
    recipe = _require_recipe(node)
    theoretical_inputs = catalog.ingredient_flow_map(recipe)
    theoretical_outputs = catalog.product_flow_map(recipe)

    permitted_output_ratio = _permitted_output_ratio(node, sockets, theoretical_outputs)

    inflow = sum_flows((sockets.get(h).material, sockets.get(h).flow) for h in node.inputs)
    try:
        ratios = flow_ratios(inflow, theoretical_inputs)
    except ValueError as exc:
        raise InvalidRecipe(f"Recipe '{recipe}' has invalid ingredient data: {exc}") from exc
    bottleneck, bottleneck_ratio = find_bottleneck(ratios)

    efficiency = clamp_ratio(min(permitted_output_ratio, bottleneck_ratio))
    # A bottleneck tighter than the downstream limit is left uncapped so its inflow can grow
    bottleneck_binds = (
        bottleneck is not None
        and bottleneck_ratio < permitted_output_ratio
        and not flows_close(bottleneck_ratio, permitted_output_ratio)
    )

    for handle in node.inputs:
        material = sockets.get(handle).material
        if material is None:
            continue
        required = theoretical_inputs.get(material)
        if required is None:
            _LOGGER.warning(
                "%s [%d] receives '%s' which recipe '%s' does not use",
                node.building,
                node.id,
                material,
                recipe,
            )
            sockets.set_permitted_limit(handle, 0.0)
        elif bottleneck_binds and material == bottleneck:
            sockets.set_permitted_limit(handle, required)
        else:
            sockets.set_permitted_limit(handle, efficiency * required)

    node.efficiency = efficiency
    for handle in node.outputs:
        material = sockets.get(handle).material
        if material in theoretical_outputs:
            sockets.propagate_flow(handle, material, efficiency * theoretical_outputs[material])

    _LOGGER.debug(
        "%s [%d] efficiency %.4f (bottleneck %s at %.4f, downstream %.4f)",
        node.building,
        node.id,
        efficiency,
        bottleneck,
        bottleneck_ratio,
        permitted_output_ratio,
    )


def _merger_input_share(limit: float, flow: float, total: float) -> float:
    """Permitted limit for one merger input given the output limit.

    Below saturation every input may grow by the whole remaining slack; at or above
    it the limit is split in proportion to current flows.
    """
    if math.isinf(limit):
        return UNBOUNDED
    if total < limit:
        return flow + (limit - total)
    if total <= 0:
        return limit
    return limit * flow / total


@balance.register
def _balance_merger(node: Merger, sockets: SocketArena, catalog: Catalog) -> None:
    """Sum the inputs onto the output and pass the output limit back upstream.

    Postcondition:
        output flow == sum of assigned input flows
        output material == the single input material, or None without inputs

    Raises:
        ConflictingMaterials: if inputs carry more than one material
    """
    materials = _distinct_input_materials(node, sockets)
    if not materials:
        sockets.propagate_flow(node.output, None, 0.0)
        return

    active = [h for h in node.inputs if sockets.get(h).material is not None]
    total = sum(sockets.get(h).flow for h in active)
    sockets.propagate_flow(node.output, materials[0], total)

    limit = sockets.get(node.output).max_permitted
    for handle in active:
        share = _merger_input_share(limit, sockets.get(handle).flow, total)
        sockets.set_permitted_limit(handle, share)


# ========== Reporting ==========


def _socket_information(sockets: SocketArena, handle: int) -> dict:
    socket = sockets.get(handle)
    return {
        "socket": handle,
        "kind": socket.accepted_kind.value,
        "material": socket.material,
        "flow": socket.flow,
        "max_permitted": None if math.isinf(socket.max_permitted) else socket.max_permitted,
        "connected_to": sockets.partner(handle),
    }


def _base_information(node: Node, sockets: SocketArena) -> dict:
    return {
        "id": node.id,
        "name": node.name,
        "inputs": [_socket_information(sockets, h) for h in node.inputs],
        "outputs": [_socket_information(sockets, h) for h in node.outputs],
    }


@singledispatch
def operating_information(node, sockets: SocketArena) -> dict:
    """Describe a node's current operating state for display."""
    raise TypeError(f"{type(node).__name__} is not a production network node")


@operating_information.register
def _supply_information(node: Supply, sockets: SocketArena) -> dict:
    info = _base_information(node, sockets)
    info.update(material=node.material, flow=node.flow)
    return info


@operating_information.register
def _machine_information(node: Machine, sockets: SocketArena) -> dict:
    info = _base_information(node, sockets)
    info.update(recipe=node.recipe, efficiency=node.efficiency)
    return info


@operating_information.register
def _merger_information(node: Merger, sockets: SocketArena) -> dict:
    return _base_information(node, sockets)
