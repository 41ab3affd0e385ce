"""
Portfolio allocation helpers.

- generate_default_allocation: rule-based portfolio used when the model does
  not produce one on its own
- normalize_allocation: rescale model-authored percentages so they sum to 100
"""

import math
from typing import List, Sequence

from agents.advisor_state import AGE, RISK_TOLERANCE, Allocation, AllocationItem, UserProfileFacts

DEFAULT_AGE = 30

AGGRESSIVE_TEMPLATE = (
    ("US Large Cap Stocks", 45, "S&P 500 index funds for core growth"),
    ("International Stocks", 25, "Emerging markets & developed international"),
    ("Small Cap Stocks", 15, "Higher growth potential"),
    ("Real Estate (REITs)", 10, "Diversification & income"),
    ("Bonds", 5, "Stability buffer"),
)

CONSERVATIVE_TEMPLATE = (
    ("US Large Cap Stocks", 25, "Blue chip stability"),
    ("International Stocks", 10, "Global diversification"),
    ("Government Bonds", 40, "Safe, stable income"),
    ("Corporate Bonds", 15, "Higher yield bonds"),
    ("Real Estate (REITs)", 10, "Income generation"),
)

MODERATE_TEMPLATE = (
    ("US Large Cap Stocks", 35, "S&P 500 core holdings"),
    ("International Stocks", 20, "Global market exposure"),
    ("Small Cap Stocks", 10, "Growth opportunities"),
    ("Bonds", 25, "Stability & income"),
    ("Real Estate (REITs)", 10, "Diversification"),
)


def _parse_age(value) -> int:
    try:
        age = int(str(value).strip())
    except (TypeError, ValueError):
        return DEFAULT_AGE
    return age or DEFAULT_AGE


def _build(template) -> Allocation:
    return [
        AllocationItem(category=category, percentage=percentage, description=description)
        for category, percentage, description in template
    ]


def generate_default_allocation(facts: UserProfileFacts) -> Allocation:
    """
    Pick one of three fixed portfolios from risk tolerance and age.

    Aggressive wins over conservative when both apply, and a missing or
    unreadable age counts as 30.
    """
    age = _parse_age(facts.get(AGE))
    risk = str(facts.get(RISK_TOLERANCE) or "moderate").lower()

    if "aggressive" in risk or age < 35:
        return _build(AGGRESSIVE_TEMPLATE)
    if "conservative" in risk or age > 55:
        return _build(CONSERVATIVE_TEMPLATE)
    return _build(MODERATE_TEMPLATE)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_allocation(items: Sequence[AllocationItem]) -> Allocation:
    """
    Rescale percentages to a 100 total, keeping order, categories and descriptions.

    Each item is rounded on its own, so the result may total 99 or 101.

    Raises:
        ValueError: if the percentages do not sum to a positive number
    """
    total = sum(item.percentage for item in items)
    if total <= 0:
        raise ValueError(f"Cannot normalize allocation with total {total}")

    normalized: List[AllocationItem] = []
    for item in items:
        normalized.append(
            AllocationItem(
                category=item.category,
                percentage=_round_half_up(item.percentage / total * 100),
                description=item.description or "",
            )
        )
    return normalized
