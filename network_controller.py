"""Controller for supply-chain balancing - no GUI dependencies"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from catalog import Catalog, PartKind
from errors import CatalogLookupFailed
from network import Network
from nodes import MACHINE_LAYOUTS, Machine
from parsing_utils import parse_flow_rate, parse_material_rates

_LOGGER = logging.getLogger("satisflow")

DEFAULT_ITERATIONS = 10


@dataclass
class ChainConfig:
    """Configuration for a set of supplies feeding one machine"""
    supplies: List[Tuple[str, float]]  # (part name or id, flow)
    recipe: str  # recipe name or id
    building: Optional[str] = None  # None picks the recipe's first building
    demand: Optional[float] = None  # downstream limit on the main product
    iterations: int = DEFAULT_ITERATIONS


@dataclass
class ValidationResult:
    """Result of configuration validation"""
    is_valid: bool
    warnings: List[str]
    errors: List[str]


@dataclass
class ChainResult:
    """A balanced network and the machine at its end"""
    network: Network
    machine: Machine
    snapshot: List[dict] = field(default_factory=list)


class NetworkController:
    """Stateful controller for building and balancing supply chains"""

    def __init__(self, catalog: Catalog):
        """Initialize controller with a catalog.

        Precondition:
            catalog is a loaded Catalog

        Postcondition:
            self.catalog references the provided catalog
            text state holds defaults: no supplies, no recipe, no building, no demand
            iterations is DEFAULT_ITERATIONS
            no result has been computed

        Args:
            catalog: recipe and part lookups
        """
        self.catalog = catalog

        # Configuration text state
        self._supplies_text = "# Material:Rate, one per line"
        self._recipe_text = ""
        self._building_text = ""
        self._demand_text = ""
        self._iterations = DEFAULT_ITERATIONS

        # Last balanced chain (result)
        self._current_result: Optional[ChainResult] = None

    # ========== State Getters ==========

    def get_supplies_text(self) -> str:
        return self._supplies_text

    def get_recipe_text(self) -> str:
        return self._recipe_text

    def get_building_text(self) -> str:
        return self._building_text

    def get_demand_text(self) -> str:
        return self._demand_text

    def get_iterations(self) -> int:
        return self._iterations

    def get_current_result(self) -> Optional[ChainResult]:
        return self._current_result

    # ========== State Setters ==========

    def set_supplies_text(self, text: str):
        self._supplies_text = text

    def set_recipe_text(self, text: str):
        self._recipe_text = text

    def set_building_text(self, text: str):
        self._building_text = text

    def set_demand_text(self, text: str):
        self._demand_text = text

    def set_iterations(self, value: int):
        """Set the number of balancing passes.

        Raises:
            ValueError: if value is negative
        """
        if value < 0:
            raise ValueError(f"Invalid iteration count {value}. Must be nonnegative.")
        self._iterations = value

    # ========== Actions ==========

    def config_from_state(self) -> ChainConfig:
        """Build a ChainConfig from the current text state.

        Precondition:
            text state is initialized

        Postcondition:
            returns ChainConfig with parsed supplies and demand
            empty building or demand text becomes None

        Returns:
            ChainConfig

        Raises:
            ValueError: if supplies or demand text cannot be parsed
        """
        demand_text = self._demand_text.strip()
        building_text = self._building_text.strip()
        return ChainConfig(
            supplies=parse_material_rates(self._supplies_text),
            recipe=self._recipe_text.strip(),
            building=building_text or None,
            demand=parse_flow_rate(demand_text, "demand") if demand_text else None,
            iterations=self._iterations,
        )

    def solve_from_state(self) -> ChainResult:
        """Build and balance the chain described by the current state.

        Postcondition:
            self._current_result holds the new result
            info messages are logged

        Returns:
            ChainResult

        Raises:
            ValueError: if configuration is invalid or balancing fails
        """
        _LOGGER.info("Balancing supply chain...")
        result = self.solve_chain(self.config_from_state())
        self._current_result = result
        _LOGGER.info("Supply chain balanced, %s at %.1f%%",
                     result.machine.building, result.machine.efficiency * 100)
        return result

    def validate_config(self, config: ChainConfig) -> ValidationResult:
        """Validate a chain configuration against the catalog.

        Precondition:
            config is a ChainConfig object

        Postcondition:
            returns ValidationResult with is_valid, warnings, errors
            unknown parts, recipes or buildings are errors
            negative demand or iterations are errors
            more supplied materials of one kind than the building has inputs is an error
            supplies the recipe does not use, and ingredients without a supply, are warnings

        Args:
            config: chain configuration to validate

        Returns:
            ValidationResult with any warnings or errors
        """
        warnings = []
        errors = []

        if not config.supplies:
            errors.append("No supplies specified")
        if not config.recipe:
            errors.append("No recipe specified")
        if config.iterations < 0:
            errors.append(f"Iterations must be nonnegative, got {config.iterations}")
        if config.demand is not None and config.demand < 0:
            errors.append(f"Demand must be nonnegative, got {config.demand}")

        materials = []
        for name, _ in config.supplies:
            try:
                material = self.catalog.find_part_id(name)
            except CatalogLookupFailed as exc:
                errors.append(str(exc))
                continue
            if material not in materials:
                materials.append(material)

        recipe = None
        if config.recipe:
            try:
                recipe = self.catalog.find_recipe_id(config.recipe)
            except CatalogLookupFailed as exc:
                errors.append(str(exc))

        if recipe is not None:
            building = self._pick_building(config, recipe)
            if building is None:
                errors.append(f"Recipe '{config.recipe}' names no building, specify one")
            elif building not in MACHINE_LAYOUTS:
                errors.append(f"Unknown building '{building}'")
            else:
                errors.extend(self._check_input_capacity(building, materials))

            ingredients = self.catalog.ingredient_flow_map(recipe)
            for material in materials:
                if material not in ingredients:
                    warnings.append(
                        f"{self._display(material)} is not used by recipe '{config.recipe}'"
                    )
            for material in ingredients:
                if material not in materials:
                    warnings.append(f"No supply of {self._display(material)}")

        if config.iterations == 0:
            warnings.append("Zero iterations, nothing will be balanced")

        return ValidationResult(
            is_valid=len(errors) == 0,
            warnings=warnings,
            errors=errors
        )

    def solve_chain(self, config: ChainConfig) -> ChainResult:
        """Validate, build and balance a chain.

        Precondition:
            config is a ChainConfig object

        Postcondition:
            configuration is validated before building
            warnings are logged
            returns ChainResult with the balanced network and its snapshot

        Args:
            config: chain configuration

        Returns:
            ChainResult

        Raises:
            ValueError: if configuration is invalid or balancing fails
        """
        validation = self.validate_config(config)
        if not validation.is_valid:
            raise ValueError("; ".join(validation.errors))
        for warning in validation.warnings:
            _LOGGER.warning(warning)

        network, machine = self.build_chain(config)
        network.solve(config.iterations)
        return ChainResult(network, machine, network.snapshot())

    def build_chain(self, config: ChainConfig) -> Tuple[Network, Machine]:
        """Wire supplies into one machine, merging supplies that share a material.

        Precondition:
            config passed validate_config

        Postcondition:
            returns an initialized, unbalanced network and its machine
            each supplied material feeds one machine input of its kind,
            through a merger when more than one supply offers it
            the demand, if any, limits the machine's main product output

        Args:
            config: validated chain configuration

        Returns:
            tuple of (network, machine)
        """
        recipe = self.catalog.find_recipe_id(config.recipe)
        network = Network(self.catalog)
        machine = network.add_machine(self._pick_building(config, recipe), recipe)

        grouped: Dict[str, List[float]] = {}
        for name, rate in config.supplies:
            grouped.setdefault(self.catalog.find_part_id(name), []).append(rate)

        free_inputs = list(machine.inputs)
        for material, rates in grouped.items():
            kind = self.catalog.part_kind(material)
            target = next(h for h in free_inputs if network.sockets.get(h).accepted_kind is kind)
            free_inputs.remove(target)

            supplies = [network.add_supply(material, rate) for rate in rates]
            if len(supplies) == 1:
                network.connect(supplies[0].outputs[0], target)
                continue
            merger = network.add_merger(kind, input_count=len(supplies))
            for index, supply in enumerate(supplies):
                network.link(supply, merger, input_index=index)
            network.connect(merger.output, target)

        network.initialize()

        if config.demand is not None:
            main_product = next(iter(self.catalog.product_flow_map(recipe)))
            for handle in machine.outputs:
                if network.sockets.get(handle).material == main_product:
                    network.sockets.set_permitted_limit(handle, config.demand)

        return network, machine

    def format_snapshot(self, snapshot: List[dict]) -> str:
        """Format a network snapshot for display.

        Precondition:
            snapshot comes from Network.snapshot()

        Postcondition:
            returns one header line per node followed by its connected or
            material-carrying sockets, indented

        Args:
            snapshot: list of node operating information

        Returns:
            formatted multi-line string
        """
        lines = []
        for info in snapshot:
            header = f"[{info['id']}] {info['name']}"
            if "recipe" in info:
                recipe = info["recipe"]
                recipe_name = self.catalog.get_recipe_info(recipe).name if recipe else "no recipe"
                header += f" ({recipe_name}) at {info['efficiency'] * 100:.1f}%"
            lines.append(header)
            for label, sockets in (("in ", info["inputs"]), ("out", info["outputs"])):
                for socket in sockets:
                    if socket["material"] is None:
                        continue
                    line = f"    {label} {self._display(socket['material'])}: {socket['flow']:g}/min"
                    if socket["max_permitted"] is not None:
                        line += f" (limit {socket['max_permitted']:g}/min)"
                    lines.append(line)
        return "\n".join(lines)

    # ========== Helpers ==========

    def _pick_building(self, config: ChainConfig, recipe: str) -> Optional[str]:
        if config.building:
            return config.building
        produced_in = self.catalog.get_recipe_info(recipe).produced_in
        return produced_in[0] if produced_in else None

    def _check_input_capacity(self, building: str, materials: List[str]) -> List[str]:
        input_kinds = MACHINE_LAYOUTS[building][0]
        errors = []
        for kind in PartKind:
            wanted = sum(1 for material in materials if self.catalog.part_kind(material) is kind)
            available = sum(1 for input_kind in input_kinds if input_kind is kind)
            if wanted > available:
                errors.append(
                    f"{building} has {available} {kind.value} input(s) "
                    f"but {wanted} {kind.value} materials are supplied"
                )
        return errors

    def _display(self, material: str) -> str:
        return self.catalog.get_part_info(material).name
