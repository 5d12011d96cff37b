"""
Generation pricing.

Used both to quote a price before generating and to charge for it, so the
two can never disagree.
"""

from typing import Optional

from app.core.config import settings

COMPLEXITY_LEVELS = ("simple", "intermediate", "advanced")


def calculate_generation_cost(
    complexity: str,
    include_tests: bool = False,
    framework: Optional[str] = None
) -> int:
    """
    Calculate the credit cost of a generation.

    Args:
        complexity: One of simple, intermediate, advanced
        include_tests: Whether unit tests are requested
        framework: Target framework; blank values count as none

    Returns:
        Cost in credits

    Raises:
        ValueError: If complexity is unknown
    """
    costs = settings.complexity_costs
    if complexity not in costs:
        raise ValueError(f"Unknown complexity: {complexity}")

    cost = costs[complexity]
    if include_tests:
        cost += settings.CREDITS_TESTS_SURCHARGE
    if framework and framework.strip():
        cost += settings.CREDITS_FRAMEWORK_SURCHARGE
    return cost
