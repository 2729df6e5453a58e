"""
VA Combined Rating Calculator - "whole person" method

The VA does not add disability ratings. Each rating is applied to the
remaining "efficiency" (the healthy part of the whole person) left over by
the ratings before it, and the resulting disability is rounded to the
nearest 10%.

Out-of-range values (negative, above 100, non-integer, booleans) are ignored
rather than clamped: they contribute no disability, exactly like a 0% rating.
Callers are expected to validate ratings with ``validate_rating`` first.

References:
- 38 CFR § 4.25 - Combined ratings table
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional


@dataclass
class CombinationStep:
    """One row of the step-by-step breakdown"""
    step: int
    condition_name: str
    rating: int
    disability_added: float
    remaining_efficiency: float

    def to_dict(self) -> dict:
        return {
            'step': self.step,
            'condition_name': self.condition_name,
            'rating': self.rating,
            'disability_added': self.disability_added,
            'remaining_efficiency': self.remaining_efficiency,
        }


@dataclass
class CombinationResult:
    """Result of a detailed combination"""
    combined_rating: int
    total_disability: float
    total_efficiency: float
    breakdown: List[CombinationStep] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'combined_rating': self.combined_rating,
            'total_disability': self.total_disability,
            'total_efficiency': self.total_efficiency,
            'breakdown': [step.to_dict() for step in self.breakdown],
        }


def validate_rating(percentage: Any) -> bool:
    """
    Validate that a rating is a valid VA disability percentage.
    VA ratings must be 0-100 in increments of 10.
    """
    if isinstance(percentage, bool) or not isinstance(percentage, int):
        return False
    return 0 <= percentage <= 100 and percentage % 10 == 0


def _usable_rating(value: Any) -> Optional[int]:
    """Return the rating if it contributes disability, else None."""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if value <= 0 or value > 100:
        return None
    return value


def round_to_nearest_10(value) -> int:
    """
    Round a raw combined value to the nearest 10% per VA rules.

    Per 38 CFR § 4.25:
    - 0.5 and above rounds up (65% -> 70%, 75% -> 80%)
    - Below 0.5 rounds down (64% -> 60%)
    """
    d = Decimal(str(value))
    rounded = int((d / 10).quantize(Decimal('1'), rounding=ROUND_HALF_UP) * 10)
    return min(100, max(0, rounded))


def _remaining_efficiency(ratings: Iterable[int]) -> Decimal:
    # Decimal keeps integer-percent arithmetic exact, so 50 + 30 is 65, not 64.999...
    remaining = Decimal(100)
    for rating in ratings:
        remaining -= Decimal(rating) / 100 * remaining
    return remaining


def combine(ratings: Iterable[Any]) -> int:
    """
    Combine disability percentages into one composite rating.

    Example: 50% + 30%
    - 50% of 100 leaves 50 efficiency
    - 30% of 50 is 15, leaving 35 efficiency
    - 100 - 35 = 65 -> rounds to 70
    """
    usable = sorted(
        (r for r in (_usable_rating(v) for v in (ratings or [])) if r is not None),
        reverse=True,
    )
    if not usable:
        return 0

    remaining = _remaining_efficiency(usable)
    return round_to_nearest_10(Decimal(100) - remaining)


def combine_detailed(conditions: Iterable[Any]) -> CombinationResult:
    """
    Combine ratings and keep the per-step breakdown for display.

    Accepts anything with ``condition_name``/``current_rating`` attributes
    (ConditionRecord) or plain ``(label, rating)`` pairs. The final value is
    always identical to ``combine`` over the same ratings.
    """
    entries = []
    for item in conditions or []:
        if isinstance(item, (tuple, list)) and len(item) == 2:
            label, rating = item
        else:
            label = getattr(item, 'condition_name', '') or ''
            rating = getattr(item, 'current_rating', None)
        rating = _usable_rating(rating)
        if rating is not None:
            entries.append((label, rating))

    # sorted() is stable, so ties keep input order
    entries = sorted(entries, key=lambda e: e[1], reverse=True)

    remaining = Decimal(100)
    breakdown = []
    for index, (label, rating) in enumerate(entries, start=1):
        disability = Decimal(rating) / 100 * remaining
        remaining -= disability
        breakdown.append(CombinationStep(
            step=index,
            condition_name=label,
            rating=rating,
            disability_added=round(float(disability), 1),
            remaining_efficiency=round(float(remaining), 1),
        ))

    total_disability = Decimal(100) - remaining
    return CombinationResult(
        combined_rating=round_to_nearest_10(total_disability) if entries else 0,
        total_disability=round(float(total_disability), 1),
        total_efficiency=round(float(remaining), 1),
        breakdown=breakdown,
    )
