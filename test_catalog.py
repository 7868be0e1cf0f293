"""Tests for catalog module"""

from pytest import raises

from catalog import (
    DEFAULT_CATALOG_PATH,
    Catalog,
    PartKind,
    RecipeInfo,
    find_default_catalog,
    load_catalog,
)
from errors import CatalogLookupFailed


def test_load_default_catalog():
    """bundled catalog should load with parts and recipes"""
    catalog = load_catalog()
    assert len(catalog.part_ids()) > 0
    assert len(catalog.recipe_ids()) > 0
    print(f"✓ Loaded {len(catalog.part_ids())} parts, {len(catalog.recipe_ids())} recipes")


def test_ingredient_and_product_flow_maps():
    """flow maps should be per minute"""
    catalog = load_catalog()
    assert catalog.ingredient_flow_map("Recipe_IronPlate_C") == {"Desc_IronIngot_C": 30.0}
    assert catalog.product_flow_map("Recipe_IronPlate_C") == {"Desc_IronPlate_C": 20.0}


def test_flow_maps_keep_recipe_order():
    """flow maps should list materials in recipe order"""
    catalog = load_catalog()
    assert list(catalog.ingredient_flow_map("Recipe_Alternate_WetConcrete_C")) == [
        "Desc_Stone_C",
        "Desc_Water_C",
    ]
    assert list(catalog.product_flow_map("Recipe_Plastic_C")) == [
        "Desc_Plastic_C",
        "Desc_HeavyOilResidue_C",
    ]


def test_is_solid_and_fluid():
    """liquid parts should be fluids, everything else solid"""
    catalog = load_catalog()
    assert catalog.is_solid("Desc_OreIron_C")
    assert not catalog.is_fluid("Desc_OreIron_C")
    assert catalog.is_fluid("Desc_Water_C")
    assert catalog.part_kind("Desc_Water_C") is PartKind.FLUID
    assert catalog.part_kind("Desc_Coal_C") is PartKind.SOLID


def test_unknown_ids_fail():
    """unknown ids should raise CatalogLookupFailed"""
    catalog = load_catalog()
    with raises(CatalogLookupFailed, match="Recipe id 'Nope' does not exist"):
        catalog.product_flow_map("Nope")
    with raises(CatalogLookupFailed, match="Part id 'Nope' does not exist"):
        catalog.is_solid("Nope")


def test_lookup_failure_is_lookup_error():
    """CatalogLookupFailed should be catchable as LookupError"""
    catalog = load_catalog()
    with raises(LookupError):
        catalog.get_recipe_info("Nope")


def test_find_ids_by_name():
    """find_part_id and find_recipe_id should accept ids or display names"""
    catalog = load_catalog()
    assert catalog.find_part_id("Iron Ore") == "Desc_OreIron_C"
    assert catalog.find_part_id("iron ore") == "Desc_OreIron_C"
    assert catalog.find_part_id("Desc_Coal_C") == "Desc_Coal_C"
    assert catalog.find_recipe_id("Iron Plate") == "Recipe_IronPlate_C"
    with raises(CatalogLookupFailed, match="Part 'Unobtainium'"):
        catalog.find_part_id("Unobtainium")


def test_get_recipes_for():
    """get_recipes_for should list recipes producing a part"""
    catalog = load_catalog()
    recipes = catalog.get_recipes_for("Desc_Cement_C")
    assert set(recipes) == {"Recipe_Concrete_C", "Recipe_Alternate_WetConcrete_C"}
    assert all(isinstance(recipe, RecipeInfo) for recipe in recipes.values())


def test_from_dict_aggregates_repeated_entries():
    """a recipe listing a part twice should sum its rate"""
    catalog = Catalog.from_dict({
        "items": {"a": {"name": "A", "liquid": False}, "b": {"name": "B", "liquid": False}},
        "recipes": {
            "r": {
                "name": "R",
                "time": 6,
                "ingredients": [{"item": "a", "amount": 1}, {"item": "a", "amount": 2}],
                "products": [{"item": "b", "amount": 1}],
            }
        },
    })
    assert catalog.ingredient_flow_map("r") == {"a": 30.0}
    assert catalog.get_recipe_info("r").produced_in == ()


def test_from_dict_rejects_unknown_part():
    """recipes referencing unknown parts should fail at load"""
    with raises(CatalogLookupFailed, match="unknown part 'ghost'"):
        Catalog.from_dict({
            "items": {"a": {"name": "A", "liquid": False}},
            "recipes": {
                "r": {
                    "name": "R",
                    "time": 1,
                    "ingredients": [{"item": "ghost", "amount": 1}],
                    "products": [{"item": "a", "amount": 1}],
                }
            },
        })


def test_from_dict_rejects_zero_duration():
    """recipes with zero duration should fail at load"""
    with raises(ValueError, match="Invalid batch duration"):
        Catalog.from_dict({
            "items": {"a": {"name": "A", "liquid": False}},
            "recipes": {
                "r": {"name": "R", "time": 0, "ingredients": [], "products": [{"item": "a", "amount": 1}]}
            },
        })


def test_find_default_catalog_search_order(tmp_path):
    """find_default_catalog should return the first existing candidate"""
    installed = tmp_path / "share" / "catalog.json"
    installed.parent.mkdir()
    installed.write_text('{"items": {}, "recipes": {}}', encoding="utf-8")
    assert find_default_catalog([tmp_path / "missing.json", installed]) == installed
    assert find_default_catalog() == DEFAULT_CATALOG_PATH
    with raises(FileNotFoundError, match="No bundled catalog found"):
        find_default_catalog([tmp_path / "missing.json"])


def test_load_catalog_explicit_path(tmp_path):
    """load_catalog should read an explicit file"""
    path = tmp_path / "tiny.json"
    path.write_text('{"items": {"a": {"name": "A", "liquid": true}}, "recipes": {}}', encoding="utf-8")
    catalog = load_catalog(path)
    assert catalog.part_ids() == ["a"]
    assert catalog.is_fluid("a")
