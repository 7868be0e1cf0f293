"""Tests for NetworkController"""

from pytest import approx, raises

from catalog import load_catalog
from network_controller import DEFAULT_ITERATIONS, ChainConfig, NetworkController
from nodes import Merger


def _controller() -> NetworkController:
    return NetworkController(load_catalog())


def test_default_state():
    """controller should start with defaults"""
    controller = _controller()
    assert controller.get_recipe_text() == ""
    assert controller.get_supplies_text().startswith("#")
    assert controller.get_iterations() == DEFAULT_ITERATIONS
    assert controller.get_current_result() is None


def test_set_iterations_rejects_negative():
    """iteration count cannot be negative"""
    controller = _controller()
    with raises(ValueError, match="Invalid iteration count"):
        controller.set_iterations(-1)
    controller.set_iterations(3)
    assert controller.get_iterations() == 3


def test_config_from_state():
    """text state should be parsed into a ChainConfig"""
    controller = _controller()
    controller.set_supplies_text("Iron Ore:60\nCoal:30")
    controller.set_recipe_text("  Steel Ingot ")
    controller.set_demand_text("20")
    config = controller.config_from_state()
    assert config.supplies == [("Iron Ore", 60.0), ("Coal", 30.0)]
    assert config.recipe == "Steel Ingot"
    assert config.building is None
    assert config.demand == 20.0
    assert config.iterations == DEFAULT_ITERATIONS


def test_config_from_state_bad_demand():
    """unparseable demand text should raise ValueError"""
    controller = _controller()
    controller.set_demand_text("lots")
    with raises(ValueError, match="Invalid rate 'lots' for demand"):
        controller.config_from_state()


def test_validate_valid_config():
    """a matching supply and recipe should validate cleanly"""
    result = _controller().validate_config(ChainConfig([("Iron Ore", 60.0)], "Iron Ingot"))
    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []


def test_validate_empty_config():
    """missing supplies and recipe should be errors"""
    result = _controller().validate_config(ChainConfig([], ""))
    assert not result.is_valid
    assert "No supplies specified" in result.errors
    assert "No recipe specified" in result.errors


def test_validate_unknown_names():
    """unknown parts and recipes should be errors"""
    result = _controller().validate_config(ChainConfig([("Mithril", 10.0)], "Excalibur"))
    assert not result.is_valid
    assert any("Mithril" in error for error in result.errors)
    assert any("Excalibur" in error for error in result.errors)


def test_validate_unknown_building():
    """an explicit unknown building should be an error"""
    result = _controller().validate_config(
        ChainConfig([("Iron Ore", 60.0)], "Iron Ingot", building="Teleporter")
    )
    assert "Unknown building 'Teleporter'" in result.errors


def test_validate_negative_numbers():
    """negative demand and iterations should be errors"""
    result = _controller().validate_config(
        ChainConfig([("Iron Ore", 60.0)], "Iron Ingot", demand=-1.0, iterations=-2)
    )
    assert not result.is_valid
    assert len(result.errors) == 2


def test_validate_input_capacity():
    """a smelter cannot take two solid materials"""
    result = _controller().validate_config(
        ChainConfig([("Iron Ore", 45.0), ("Coal", 45.0)], "Steel Ingot", building="Smelter")
    )
    assert not result.is_valid
    assert "Smelter has 1 solid input(s) but 2 solid materials are supplied" in result.errors


def test_validate_warnings():
    """unused supplies and missing ingredients should be warnings"""
    result = _controller().validate_config(
        ChainConfig([("Iron Ore", 45.0), ("Copper Ore", 10.0)], "Steel Ingot", iterations=0)
    )
    assert result.is_valid
    assert "Copper Ore is not used by recipe 'Steel Ingot'" in result.warnings
    assert "No supply of Coal" in result.warnings
    assert "Zero iterations, nothing will be balanced" in result.warnings


def test_solve_chain_single_supply():
    """one supply should feed the machine directly"""
    result = _controller().solve_chain(ChainConfig([("Iron Ore", 60.0)], "Iron Ingot"))
    assert result.machine.building == "Smelter"
    assert result.machine.efficiency == 1.0
    sockets = result.network.sockets
    assert sockets.get(result.machine.outputs[0]).flow == approx(30.0)
    assert not any(isinstance(node, Merger) for node in result.network.nodes)
    assert len(result.snapshot) == 2


def test_solve_chain_merges_repeated_material():
    """supplies sharing a material should be merged before the machine"""
    result = _controller().solve_chain(
        ChainConfig([("Iron Ingot", 10.0), ("Iron Ingot", 15.0)], "Iron Plate")
    )
    mergers = [node for node in result.network.nodes if isinstance(node, Merger)]
    assert len(mergers) == 1
    assert len(mergers[0].inputs) == 2
    assert result.network.sockets.get(mergers[0].output).flow == 25.0
    assert result.machine.efficiency == approx(25.0 / 30.0)


def test_solve_chain_with_demand():
    """a demand should limit the main product"""
    result = _controller().solve_chain(
        ChainConfig([("Iron Ore", 60.0)], "Iron Ingot", demand=10.0)
    )
    sockets = result.network.sockets
    assert sockets.get(result.machine.outputs[0]).flow == approx(10.0)
    assert sockets.get(result.machine.inputs[0]).max_permitted == approx(10.0)


def test_solve_chain_two_ingredients():
    """the scarcer ingredient should set efficiency"""
    result = _controller().solve_chain(
        ChainConfig([("Iron Ore", 45.0), ("Coal", 30.0)], "Steel Ingot")
    )
    assert result.machine.building == "Foundry"
    assert result.machine.efficiency == approx(2.0 / 3.0)


def test_solve_chain_solid_and_fluid():
    """solid and fluid supplies should reach matching inputs"""
    result = _controller().solve_chain(
        ChainConfig([("Limestone", 120.0), ("Water", 100.0)], "Alternate: Wet Concrete")
    )
    assert result.machine.building == "Refinery"
    assert result.machine.efficiency == 1.0
    assert result.network.sockets.get(result.machine.outputs[0]).flow == approx(80.0)


def test_solve_chain_invalid_raises():
    """invalid configuration should raise ValueError listing the errors"""
    with raises(ValueError, match="No supplies specified; No recipe specified"):
        _controller().solve_chain(ChainConfig([], ""))


def test_solve_from_state_stores_result():
    """solve_from_state should keep the last result"""
    controller = _controller()
    controller.set_supplies_text("Iron Ore:15")
    controller.set_recipe_text("Iron Ingot")
    result = controller.solve_from_state()
    assert controller.get_current_result() is result
    assert result.machine.efficiency == approx(0.5)


def test_format_snapshot():
    """format_snapshot should show machines and carried materials"""
    controller = _controller()
    result = controller.solve_chain(ChainConfig([("Iron Ore", 60.0)], "Iron Ingot"))
    text = controller.format_snapshot(result.snapshot)
    lines = text.splitlines()
    assert lines[0] == "[0] Smelter (Iron Ingot) at 100.0%"
    assert "    in  Iron Ore: 60/min (limit 30/min)" in lines
    assert "    out Iron Ingot: 30/min" in lines
    assert "[1] Supply" in lines

    print(text)
