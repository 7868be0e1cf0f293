"""Helpers for material -> flow rate dictionaries.

All quantities are "per minute".
"""

import math
from collections import defaultdict
from typing import Iterable, Optional

from frozendict import frozendict

# Flows closer than this are considered equal
FLOW_TOLERANCE = 1e-9

UNBOUNDED = math.inf


def per_minute(amount: float, duration: float) -> float:
    """Convert a per-batch quantity into a per-minute rate.

    Precondition:
        amount >= 0
        duration is the batch duration in seconds

    Postcondition:
        returns amount * 60 / duration

    Args:
        amount: quantity consumed or produced by one batch
        duration: seconds per batch

    Returns:
        units per minute

    Raises:
        ValueError: if duration is not positive
    """
    if duration <= 0:
        raise ValueError(f"Invalid batch duration {duration}. Must be positive.")
    return amount * 60 / duration


def aggregate_flow_map(entries: Iterable[tuple[str, float]], duration: float) -> frozendict:
    """Build a flow map from (material, per-batch amount) entries.

    Precondition:
        entries is an iterable of (material, amount) pairs, materials may repeat
        duration > 0

    Postcondition:
        returns frozendict mapping each material to its summed per-minute rate
        key order follows the first appearance of each material in entries

    Args:
        entries: recipe ingredient or product list as (material, amount) pairs
        duration: seconds per batch

    Returns:
        frozendict of material -> units per minute
    """
    totals: dict[str, float] = {}
    for material, amount in entries:
        totals[material] = totals.get(material, 0.0) + per_minute(amount, duration)
    return frozendict(totals)


def sum_flows(pairs: Iterable[tuple[Optional[str], float]]) -> frozendict:
    """Sum (material, flow) pairs by material, skipping pairs without a material.

    Precondition:
        pairs is an iterable of (material or None, flow) tuples

    Postcondition:
        returns frozendict of material -> total flow
        materials appear in order of first occurrence

    Args:
        pairs: socket readings as (material, flow)

    Returns:
        frozendict of summed flows
    """
    totals = defaultdict(float)
    for material, flow in pairs:
        if material is None:
            continue
        totals[material] += flow
    return frozendict(totals)


def flow_ratios(actual: dict[str, float], theoretical: dict[str, float]) -> frozendict:
    """Compute actual / theoretical for every material in theoretical.

    Precondition:
        theoretical maps materials to required rates
        actual maps materials to measured rates (may miss materials)

    Postcondition:
        returns frozendict with exactly the keys of theoretical
        materials absent from actual have ratio 0
        ratios are not clamped

    Args:
        actual: measured flow per material
        theoretical: full-rate flow per material

    Returns:
        frozendict of material -> ratio

    Raises:
        ValueError: if a theoretical rate is not positive
    """
    ratios = {}
    for material, required in theoretical.items():
        if required <= 0:
            raise ValueError(f"Theoretical flow of {material} must be positive, got {required}")
        ratios[material] = actual.get(material, 0.0) / required
    return frozendict(ratios)


def find_bottleneck(ratios: dict[str, float]) -> tuple[Optional[str], float]:
    """Find the material with the lowest ratio.

    Precondition:
        ratios is ordered the way ties should be broken

    Postcondition:
        returns (material, ratio) of the first minimal entry
        returns (None, 1.0) when ratios is empty

    Args:
        ratios: material -> actual/theoretical ratio

    Returns:
        tuple of (bottleneck material or None, bottleneck ratio)
    """
    bottleneck, lowest = None, 1.0
    for material, ratio in ratios.items():
        if bottleneck is None or ratio < lowest:
            bottleneck, lowest = material, ratio
    return bottleneck, lowest


def limit_ratio(limit: float, full_rate: float) -> float:
    """Express an absolute flow bound as a fraction of a full-rate flow.

    An unbounded limit, or a zero full rate, never restricts anything.
    """
    if math.isinf(limit) or full_rate <= 0:
        return UNBOUNDED
    return limit / full_rate


def clamp_ratio(value: float) -> float:
    """Clamp a ratio into [0, 1]."""
    return max(0.0, min(1.0, value))


def flows_close(a: float, b: float, tolerance: float = FLOW_TOLERANCE) -> bool:
    """Check whether two flows are equal within tolerance."""
    if math.isinf(a) or math.isinf(b):
        return a == b
    return math.isclose(a, b, rel_tol=tolerance, abs_tol=tolerance)
