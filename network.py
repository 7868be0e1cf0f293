"""Network driver: owns the node and socket arenas and runs the balancing passes."""

import logging
from typing import Iterable, Optional

from tarjan import tarjan

from catalog import Catalog, PartKind
from nodes import (
    DEFAULT_MERGER_INPUTS,
    FLOW_NODE_TYPES,
    Machine,
    Merger,
    Node,
    Supply,
    assign_materials,
    balance,
    create_machine,
    create_merger,
    create_supply,
    operating_information,
    set_recipe,
)
from sockets import SocketArena

_LOGGER = logging.getLogger("satisflow")


class Network:
    """A production network: nodes, their sockets, and the catalog they read.

    Usage is two-phase: `initialize()` assigns materials once, then `solve(n)` runs
    n balancing passes. Passes read whatever neighbours published last, so more
    passes settle deeper and looped (manifold) topologies further. No fixed point is
    guaranteed.
    """

    def __init__(self, catalog: Catalog):
        """Create an empty network.

        Precondition:
            catalog is a loaded Catalog

        Postcondition:
            network has no nodes, no sockets and no participants
        """
        self.catalog = catalog
        self.sockets = SocketArena()
        self.nodes: list[Node] = []
        self._participants: list[Node] = []

    # ========== Building ==========

    def add_supply(self, material: Optional[str] = None, flow: float = 0.0) -> Supply:
        """Add a supply node.

        Precondition:
            material is None or a catalog part id

        Postcondition:
            returns a Supply whose output socket kind matches material
            (solid when material is None)

        Raises:
            CatalogLookupFailed: if material is not in the catalog
            ValueError: if flow is negative
        """
        kind = PartKind.SOLID if material is None else self.catalog.part_kind(material)
        supply = create_supply(len(self.nodes), self.sockets, material, flow, kind)
        self.nodes.append(supply)
        return supply

    def add_machine(self, building: str, recipe: Optional[str] = None) -> Machine:
        """Add a machine node, optionally configured with a recipe.

        Raises:
            ValueError: if building is unknown
            CatalogLookupFailed: if recipe is not in the catalog
        """
        machine = create_machine(len(self.nodes), self.sockets, building)
        self.nodes.append(machine)
        if recipe is not None:
            set_recipe(machine, recipe, self.sockets, self.catalog)
        return machine

    def add_merger(
        self, kind: PartKind = PartKind.SOLID, input_count: int = DEFAULT_MERGER_INPUTS
    ) -> Merger:
        """Add a merger node.

        Raises:
            ValueError: if input_count < 1
        """
        merger = create_merger(len(self.nodes), self.sockets, kind, input_count)
        self.nodes.append(merger)
        return merger

    def connect(self, a: int, b: int) -> None:
        """Connect two sockets by handle, see SocketArena.connect."""
        self.sockets.connect(a, b)

    def disconnect(self, handle: int) -> None:
        """Disconnect a socket by handle, see SocketArena.disconnect."""
        self.sockets.disconnect(handle)

    def link(self, upstream: Node, downstream: Node, output_index: int = 0, input_index: int = 0) -> None:
        """Connect upstream.outputs[output_index] to downstream.inputs[input_index].

        Raises:
            IndexError: if either index is out of range
            TypeMismatch: if the two sockets accept different kinds
        """
        self.sockets.connect(upstream.outputs[output_index], downstream.inputs[input_index])

    def set_recipe(self, machine: Machine, recipe: str) -> None:
        """Change a machine's recipe and reassign its outputs if already initialized.

        Raises:
            CatalogLookupFailed: if recipe is not in the catalog
            InvalidRecipe: if the products do not fit the machine
        """
        set_recipe(machine, recipe, self.sockets, self.catalog)
        if machine in self._participants:
            assign_materials(machine, self.sockets, self.catalog)

    # ========== Solving ==========

    @property
    def participants(self) -> list[Node]:
        return list(self._participants)

    def initialize(self, nodes: Optional[Iterable[object]] = None) -> None:
        """Select flow participants and assign their materials once.

        Precondition:
            nodes is None (all nodes of this network) or an iterable of candidates

        Postcondition:
            participants are the candidates that are nodes of this network,
            in first-seen order without duplicates
            assign_materials ran once on every participant

        Args:
            nodes: candidate nodes, anything else is skipped

        Raises:
            RecipeNotSet: if a participating machine has no recipe
            InvalidRecipe: if a recipe does not fit its machine
            ConflictingMaterials: if a merger already sees two materials
        """
        candidates = self.nodes if nodes is None else nodes
        participants: list[Node] = []
        for candidate in candidates:
            if not isinstance(candidate, FLOW_NODE_TYPES) or not self._owns(candidate):
                _LOGGER.debug("Skipping non-participant %r", candidate)
                continue
            if candidate not in participants:
                participants.append(candidate)
        self._participants = participants

        for node in self._participants:
            assign_materials(node, self.sockets, self.catalog)

        cycles = self.cyclic_components()
        if cycles:
            _LOGGER.warning(
                "Network has %d cyclic component(s) %s, balancing may need extra iterations",
                len(cycles),
                cycles,
            )
        _LOGGER.info("Initialized network with %d participating nodes", len(self._participants))

    def solve(self, iterations: int) -> None:
        """Balance every participant, in fixed order, iterations times.

        Precondition:
            initialize() has run
            iterations >= 0

        Postcondition:
            balance ran exactly iterations times on every participant
            the first failing node aborts the solve with its exception

        Args:
            iterations: number of full passes

        Raises:
            ValueError: if iterations is negative
            RecipeNotSet, MaterialNotSet, ConflictingMaterials, InvalidRecipe:
                from the first failing node
        """
        if iterations < 0:
            raise ValueError(f"Invalid iteration count {iterations}. Must be nonnegative.")
        _LOGGER.info(
            "Balancing %d nodes for %d iterations", len(self._participants), iterations
        )
        for iteration in range(iterations):
            for node in self._participants:
                balance(node, self.sockets, self.catalog)
            _LOGGER.debug("Finished balancing pass %d", iteration + 1)

    # ========== Inspection ==========

    def node_of(self, handle: int) -> Node:
        """Get the node owning a socket."""
        return self.nodes[self.sockets.get(handle).node]

    def cyclic_components(self) -> list[list[int]]:
        """Find groups of node ids that feed back into themselves.

        Postcondition:
            returns strongly connected components with more than one node,
            plus single nodes connected to themselves, each sorted by id
        """
        edges: dict[int, set[int]] = {node.id: set() for node in self.nodes}
        for output, input_ in self.sockets.connections():
            edges[self.sockets.get(output).node].add(self.sockets.get(input_).node)
        components = tarjan({node: sorted(targets) for node, targets in edges.items()})
        return sorted(
            sorted(component)
            for component in components
            if len(component) > 1 or component[0] in edges[component[0]]
        )

    def snapshot(self) -> list[dict]:
        """Get the operating information of every node, in node order."""
        return [operating_information(node, self.sockets) for node in self.nodes]

    def _owns(self, node: Node) -> bool:
        return node.id < len(self.nodes) and self.nodes[node.id] is node
