#!/usr/bin/env python3
"""Command-line interface for balancing a supply chain."""

import argparse
import json
import logging
import sys

from catalog import load_catalog
from errors import NetworkError
from network_controller import DEFAULT_ITERATIONS, NetworkController


def _print_chain_info(controller: NetworkController) -> None:
    """Print information about the chain being balanced to stderr.

    Precondition:
        controller text state is set

    Postcondition:
        chain information is printed to stderr
    """
    print(f"Balancing recipe: {controller.get_recipe_text()}", file=sys.stderr)
    print(f"With supplies: {controller.get_supplies_text()}", file=sys.stderr)
    if controller.get_demand_text():
        print(f"With demand: {controller.get_demand_text()}/min", file=sys.stderr)


def _render_result(controller: NetworkController, snapshot: list[dict], as_json: bool) -> str:
    """Render a snapshot as text or JSON.

    Precondition:
        snapshot comes from Network.snapshot()

    Postcondition:
        returns JSON with two-space indentation when as_json, the controller's text
        format otherwise
    """
    if as_json:
        return json.dumps(snapshot, indent=2)
    return controller.format_snapshot(snapshot)


def _write_output(rendered: str, output_file: str | None) -> None:
    """Write the rendered snapshot to a file or stdout.

    Precondition:
        rendered is a string
        output_file is either None or a valid file path

    Postcondition:
        rendered text is written to file or stdout
        success message is printed to stderr if file written
    """
    if output_file:
        with open(output_file, "w", encoding="utf-8") as f:
            f.write(rendered)
        print(f"\nSnapshot written to {output_file}", file=sys.stderr)
    else:
        print("\n" + "=" * 60, file=sys.stderr)
        print(rendered)


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser.

    Postcondition:
        returns configured ArgumentParser with all CLI arguments defined
    """
    parser = argparse.ArgumentParser(
        description="Balance flows through a Satisfactory production chain",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One smelter fed by one ore supply
  %(prog)s --recipe "Iron Ingot" --supplies "Iron Ore:60"

  # Two belts merged before a constructor, with a downstream limit
  %(prog)s --recipe "Iron Plate" --supplies "Iron Ingot:10, Iron Ingot:15" --demand 10

  # Foundry with two ingredients, JSON output
  %(prog)s --recipe "Steel Ingot" --supplies "Iron Ore:45, Coal:30" --json
        """,
    )

    parser.add_argument(
        "--recipe",
        "-r",
        required=True,
        help="Recipe name or id run by the machine",
    )

    parser.add_argument(
        "--supplies",
        "-s",
        required=True,
        help='Supplies as "Material:Rate, Material:Rate, ..."',
    )

    parser.add_argument(
        "--building",
        "-b",
        default="",
        help="Machine building (optional, defaults to the recipe's building)",
    )

    parser.add_argument(
        "--demand",
        "-d",
        default="",
        help="Maximum rate the consumer accepts of the main product (optional)",
    )

    parser.add_argument(
        "--iterations",
        "-n",
        type=int,
        default=DEFAULT_ITERATIONS,
        help=f"Balancing passes (default {DEFAULT_ITERATIONS})",
    )

    parser.add_argument(
        "--catalog",
        default=None,
        help="Catalog JSON file (default: bundled sample data)",
    )

    parser.add_argument("--json", action="store_true", help="Print the snapshot as JSON")

    parser.add_argument(
        "--output-file", "-f", help="Write the snapshot to file instead of stdout"
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI function.

    Precondition:
        argv is None (use sys.argv) or a list of arguments

    Postcondition:
        chain is balanced and its snapshot written
        returns 0 on success, 1 on error

    Returns:
        exit code (0=success, 1=error)
    """
    parser = _create_argument_parser()
    args = parser.parse_args(argv)

    # Setup logging to capture controller messages
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    try:
        controller = NetworkController(load_catalog(args.catalog))
        controller.set_recipe_text(args.recipe)
        controller.set_supplies_text(args.supplies)
        controller.set_building_text(args.building)
        controller.set_demand_text(args.demand)
        controller.set_iterations(args.iterations)

        _print_chain_info(controller)
        result = controller.solve_from_state()
        _write_output(_render_result(controller, result.snapshot, args.json), args.output_file)

        return 0

    except (ValueError, NetworkError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
