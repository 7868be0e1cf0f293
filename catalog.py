"""Read-only recipe and part catalog backing the balancing engine."""

import json
import logging
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

from frozendict import frozendict

from errors import CatalogLookupFailed
from flow_maps import aggregate_flow_map

_LOGGER = logging.getLogger("satisflow")

# All quantities are "per minute" once they leave this module

DEFAULT_CATALOG_PATH = Path(__file__).with_name("catalog.json")

# Beside the module for source checkouts and editable installs, under the
# installation prefix for regular installs (see data-files in pyproject.toml)
CATALOG_SEARCH_PATHS = (
    DEFAULT_CATALOG_PATH,
    Path(sys.prefix) / "share" / "satisflow" / "catalog.json",
)


class PartKind(Enum):
    """how a material travels: on conveyors or through pipes"""

    SOLID = "solid"
    FLUID = "fluid"


@dataclass(frozen=True)
class ItemAmount:
    """a quantity of one part consumed or produced by a single batch"""

    item: str
    amount: float


@dataclass(frozen=True)
class PartInfo:
    """a catalog part"""

    name: str
    liquid: bool


@dataclass(frozen=True)
class RecipeInfo:
    """a catalog recipe, quantities are per batch of `time` seconds"""

    name: str
    time: float
    ingredients: tuple[ItemAmount, ...]
    products: tuple[ItemAmount, ...]
    produced_in: tuple[str, ...] = ()


def _parse_amounts(raw_amounts: list[dict]) -> tuple[ItemAmount, ...]:
    """Convert raw {"item", "amount"} dicts into ItemAmount records.

    Precondition:
        raw_amounts is a list of dicts with "item" and "amount" keys

    Postcondition:
        returns tuple of ItemAmount in the same order

    Args:
        raw_amounts: ingredient or product list from catalog JSON

    Returns:
        tuple of ItemAmount
    """
    return tuple(ItemAmount(entry["item"], float(entry["amount"])) for entry in raw_amounts)


def _parse_recipe(raw_recipe: dict) -> RecipeInfo:
    """Convert a raw recipe dict into a RecipeInfo.

    Precondition:
        raw_recipe has "name", "time", "ingredients" and "products" keys
        "producedIn" is optional

    Postcondition:
        returns an immutable RecipeInfo

    Args:
        raw_recipe: recipe entry from catalog JSON

    Returns:
        RecipeInfo
    """
    return RecipeInfo(
        name=raw_recipe["name"],
        time=float(raw_recipe["time"]),
        ingredients=_parse_amounts(raw_recipe["ingredients"]),
        products=_parse_amounts(raw_recipe["products"]),
        produced_in=tuple(raw_recipe.get("producedIn", ())),
    )


class Catalog:
    """Immutable lookup service for parts and recipes.

    Flow maps are derived once at construction, so every query is a dict lookup.
    """

    def __init__(self, parts: dict[str, PartInfo], recipes: dict[str, RecipeInfo]):
        """Build a catalog from part and recipe records.

        Precondition:
            parts maps part ids to PartInfo
            recipes maps recipe ids to RecipeInfo

        Postcondition:
            every recipe references only known parts
            ingredient and product flow maps are precomputed for every recipe

        Args:
            parts: part id -> PartInfo
            recipes: recipe id -> RecipeInfo

        Raises:
            CatalogLookupFailed: if a recipe references an unknown part
            ValueError: if a recipe has a non-positive duration
        """
        self._parts = frozendict(parts)
        self._recipes = frozendict(recipes)
        ingredient_flows = {}
        product_flows = {}
        for recipe_id, recipe in self._recipes.items():
            for entry in recipe.ingredients + recipe.products:
                if entry.item not in self._parts:
                    raise CatalogLookupFailed(
                        f"Recipe '{recipe_id}' references unknown part '{entry.item}'."
                    )
            ingredient_flows[recipe_id] = aggregate_flow_map(
                ((entry.item, entry.amount) for entry in recipe.ingredients), recipe.time
            )
            product_flows[recipe_id] = aggregate_flow_map(
                ((entry.item, entry.amount) for entry in recipe.products), recipe.time
            )
        self._ingredient_flows = frozendict(ingredient_flows)
        self._product_flows = frozendict(product_flows)

    @classmethod
    def from_dict(cls, data: dict) -> "Catalog":
        """Build a catalog from the JSON layout {"items": {...}, "recipes": {...}}.

        Precondition:
            data["items"] maps part ids to {"name", "liquid"} dicts
            data["recipes"] maps recipe ids to raw recipe dicts

        Postcondition:
            returns a Catalog holding every item and recipe

        Args:
            data: decoded catalog JSON

        Returns:
            Catalog
        """
        parts = {
            part_id: PartInfo(raw["name"], bool(raw.get("liquid", False)))
            for part_id, raw in data["items"].items()
        }
        recipes = {recipe_id: _parse_recipe(raw) for recipe_id, raw in data["recipes"].items()}
        return cls(parts, recipes)

    def get_part_info(self, part_id: str) -> PartInfo:
        """Look up a part.

        Raises:
            CatalogLookupFailed: if part_id does not exist
        """
        if part_id not in self._parts:
            raise CatalogLookupFailed(f"Part id '{part_id}' does not exist in catalog.")
        return self._parts[part_id]

    def get_recipe_info(self, recipe_id: str) -> RecipeInfo:
        """Look up a recipe.

        Raises:
            CatalogLookupFailed: if recipe_id does not exist
        """
        if recipe_id not in self._recipes:
            raise CatalogLookupFailed(f"Recipe id '{recipe_id}' does not exist in catalog.")
        return self._recipes[recipe_id]

    def is_solid(self, part_id: str) -> bool:
        """Check whether a part travels on conveyors."""
        return not self.get_part_info(part_id).liquid

    def is_fluid(self, part_id: str) -> bool:
        """Check whether a part travels through pipes."""
        return not self.is_solid(part_id)

    def part_kind(self, part_id: str) -> PartKind:
        """Get the socket kind able to carry a part."""
        return PartKind.SOLID if self.is_solid(part_id) else PartKind.FLUID

    def ingredient_flow_map(self, recipe_id: str) -> frozendict:
        """Get per-minute ingredient demand of one machine running recipe_id at full rate.

        Precondition:
            recipe_id is a string

        Postcondition:
            returns frozendict material -> units per minute, in ingredient order

        Raises:
            CatalogLookupFailed: if recipe_id does not exist
        """
        self.get_recipe_info(recipe_id)
        return self._ingredient_flows[recipe_id]

    def product_flow_map(self, recipe_id: str) -> frozendict:
        """Get per-minute product output of one machine running recipe_id at full rate.

        Precondition:
            recipe_id is a string

        Postcondition:
            returns frozendict material -> units per minute, in product order

        Raises:
            CatalogLookupFailed: if recipe_id does not exist
        """
        self.get_recipe_info(recipe_id)
        return self._product_flows[recipe_id]

    def get_recipes_for(self, part_id: str) -> dict[str, RecipeInfo]:
        """Get every recipe that produces part_id, keyed by recipe id."""
        return {
            recipe_id: recipe
            for recipe_id, recipe in self._recipes.items()
            if part_id in self._product_flows[recipe_id]
        }

    def find_part_id(self, name_or_id: str) -> str:
        """Resolve a part id from either its id or its display name.

        Precondition:
            name_or_id is a string

        Postcondition:
            returns name_or_id unchanged when it is a part id
            otherwise returns the id of the first part whose display name matches
            (case-insensitive)

        Args:
            name_or_id: part id or display name such as "Iron Ore"

        Returns:
            part id

        Raises:
            CatalogLookupFailed: if nothing matches
        """
        if name_or_id in self._parts:
            return name_or_id
        wanted = name_or_id.strip().lower()
        for part_id, part in self._parts.items():
            if part.name.lower() == wanted:
                return part_id
        raise CatalogLookupFailed(f"Part '{name_or_id}' does not exist in catalog.")

    def find_recipe_id(self, name_or_id: str) -> str:
        """Resolve a recipe id from either its id or its display name.

        Raises:
            CatalogLookupFailed: if nothing matches
        """
        if name_or_id in self._recipes:
            return name_or_id
        wanted = name_or_id.strip().lower()
        for recipe_id, recipe in self._recipes.items():
            if recipe.name.lower() == wanted:
                return recipe_id
        raise CatalogLookupFailed(f"Recipe '{name_or_id}' does not exist in catalog.")

    def recipe_ids(self) -> list[str]:
        """Get all recipe ids in catalog order."""
        return list(self._recipes.keys())

    def part_ids(self) -> list[str]:
        """Get all part ids in catalog order."""
        return list(self._parts.keys())


def find_default_catalog(search_paths: Iterable[Path] | None = None) -> Path:
    """Locate the bundled catalog file.

    Precondition:
        search_paths is None (use CATALOG_SEARCH_PATHS) or an iterable of candidate files

    Postcondition:
        returns the first candidate that exists

    Args:
        search_paths: candidate catalog files in priority order

    Returns:
        path of the bundled catalog

    Raises:
        FileNotFoundError: if no candidate exists
    """
    candidates = list(CATALOG_SEARCH_PATHS if search_paths is None else search_paths)
    for candidate in candidates:
        if Path(candidate).is_file():
            return Path(candidate)
    raise FileNotFoundError(
        f"No bundled catalog found, looked in {', '.join(str(c) for c in candidates)}. "
        "Pass a catalog file explicitly."
    )


def load_catalog(path: str | Path | None = None) -> Catalog:
    """Load a catalog from a JSON file.

    Precondition:
        path is None or names a readable JSON file in the catalog layout

    Postcondition:
        returns a Catalog built from the file contents

    Args:
        path: catalog file, None for the bundled sample data

    Returns:
        Catalog

    Raises:
        OSError: if the file cannot be read or no bundled catalog is installed
        CatalogLookupFailed: if a recipe references an unknown part
    """
    if path is None:
        path = find_default_catalog()
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    catalog = Catalog.from_dict(data)
    _LOGGER.debug(
        "Loaded catalog %s: %d parts, %d recipes",
        path,
        len(catalog.part_ids()),
        len(catalog.recipe_ids()),
    )
    return catalog
