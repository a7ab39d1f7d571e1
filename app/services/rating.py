"""
Rating aggregation.

The same function feeds the preview endpoint and the persisted
overall_rating, so the displayed and saved values always agree.
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

# One decimal everywhere; the persisted value is the rounded one
RATING_PRECISION = Decimal("0.1")

RATING_LABELS = {
    1: "Needs Improvement",
    2: "Below Expectations",
    3: "Meets Expectations",
    4: "Exceeds Expectations",
    5: "Outstanding",
}


def _field(item: Any, name: str) -> float:
    value = item.get(name) if isinstance(item, dict) else getattr(item, name, None)
    return float(value or 0)


def round_rating(value: float) -> float:
    """Half-up to one decimal: 4.25 -> 4.3."""
    return float(Decimal(str(value)).quantize(RATING_PRECISION, rounding=ROUND_HALF_UP))


def total_weight(categories: Iterable[Any]) -> float:
    return sum(_field(c, "weight") for c in categories)


def calculate_overall_rating(categories: Iterable[Any]) -> float:
    """
    Weighted mean of category ratings, normalised by the actual weight sum.

    Accepts dicts or objects exposing rating and weight. Returns 0.0 for an
    empty list or a zero weight sum.
    """
    categories = list(categories)
    weight_sum = total_weight(categories)
    if not categories or weight_sum == 0:
        return 0.0
    weighted = sum(_field(c, "rating") * _field(c, "weight") for c in categories)
    return round_rating(weighted / weight_sum)


def rating_label(overall_rating: float) -> str:
    # Half-up to the nearest whole grade
    grade = int(math.floor(overall_rating + 0.5))
    return RATING_LABELS.get(grade, "Not Rated")
