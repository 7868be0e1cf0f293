"""Parsing of 'Material:Rate' text used to configure supplies and demands."""

import math


def _split_material_rate(text: str) -> tuple[str, str]:
    """Split 'Material:Rate' on its last colon and strip both parts.

    Precondition:
        text is a non-None string

    Postcondition:
        returns (material, rate_string), both stripped of whitespace

    Args:
        text: string in format "Material:Rate"

    Returns:
        tuple of (material, rate_string)

    Raises:
        ValueError: if text has no colon or an empty material name
    """
    if ":" not in text:
        raise ValueError(f"Invalid format: '{text}'. Expected 'Material:Rate'")
    material, rate_str = text.rsplit(":", 1)
    material = material.strip()
    if not material:
        raise ValueError(f"Invalid format: '{text}'. Material name is empty")
    return material, rate_str.strip()


def parse_flow_rate(rate_str: str, label: str = "flow") -> float:
    """Convert text to a nonnegative, finite flow rate.

    Precondition:
        rate_str is a non-None string
        label names the value in error messages

    Postcondition:
        returns float value >= 0

    Args:
        rate_str: string representation of a number
        label: what the number is, for error messages

    Returns:
        units per minute

    Raises:
        ValueError: if rate_str is not a number, is negative, or is not finite
    """
    try:
        rate = float(rate_str)
    except ValueError as exc:
        raise ValueError(f"Invalid rate '{rate_str}' for {label}. Must be a number.") from exc
    if not math.isfinite(rate) or rate < 0:
        raise ValueError(f"Invalid rate '{rate_str}' for {label}. Must be zero or more.")
    return rate


def parse_material_rate(text: str) -> tuple[str, float]:
    """Parse a 'Material:Rate' string into a (material, rate) tuple.

    Precondition:
        text is a non-None string in format "Material:Rate"

    Postcondition:
        returns (material_name, rate) with the name trimmed and rate >= 0

    Args:
        text: String in format "Material:Rate" (e.g., "Iron Ore:60")

    Returns:
        Tuple of (material_name, rate)

    Raises:
        ValueError: If format is invalid or rate is not a nonnegative number
    """
    material, rate_str = _split_material_rate(text)
    return material, parse_flow_rate(rate_str, material)


def parse_material_rates(text: str | None) -> list[tuple[str, float]]:
    """Parse 'Material:Rate' entries separated by commas or newlines.

    Precondition:
        text is a string or None

    Postcondition:
        returns list of (material, rate) in input order, duplicates kept
        blank entries and lines starting with '#' are skipped

    Args:
        text: e.g. "Iron Ore:60, Iron Ore:30" or one entry per line

    Returns:
        list of (material, rate) tuples

    Raises:
        ValueError: if any entry is malformed
    """
    if not text or not text.strip():
        return []

    result = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        for item in [stripped for item in line.split(",") if (stripped := item.strip())]:
            result.append(parse_material_rate(item))
    return result
