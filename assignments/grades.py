"""Percentage and letter-grade derivation for a raw grade.

Pure helpers without I/O.  Arithmetic is done in ``Decimal`` so that band
edges such as exactly 90% land in the upper band.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal(100)

# Inclusive lower bounds, checked top-down.
LETTER_GRADE_BANDS: tuple[tuple[Decimal, str], ...] = (
    (Decimal(97), "A+"),
    (Decimal(93), "A"),
    (Decimal(90), "A-"),
    (Decimal(87), "B+"),
    (Decimal(83), "B"),
    (Decimal(80), "B-"),
    (Decimal(77), "C+"),
    (Decimal(73), "C"),
    (Decimal(70), "C-"),
    (Decimal(67), "D+"),
    (Decimal(63), "D"),
    (Decimal(60), "D-"),
)
FAILING_LETTER = "F"


def as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round2(value) -> Decimal:
    return as_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def grade_percentage(grade, point_value) -> Decimal | None:
    """Return ``grade / point_value * 100`` rounded to two decimals.

    ``None`` when there is no grade or the assignment is worth zero points.
    """

    if grade is None or not point_value:
        return None
    return round2(as_decimal(grade) / as_decimal(point_value) * HUNDRED)


def letter_grade(percentage) -> str | None:
    if percentage is None:
        return None
    percentage = as_decimal(percentage)
    for lower_bound, letter in LETTER_GRADE_BANDS:
        if percentage >= lower_bound:
            return letter
    return FAILING_LETTER


@dataclass(frozen=True)
class GradeDerivation:
    percentage: Decimal | None
    letter_grade: str | None


def derive(grade, point_value) -> GradeDerivation:
    percentage = grade_percentage(grade, point_value)
    return GradeDerivation(percentage=percentage, letter_grade=letter_grade(percentage))


def percent_of(part, whole) -> Decimal:
    """``part / whole`` as a rounded percentage, ``0`` for an empty whole."""

    if not whole:
        return Decimal("0.00")
    return round2(as_decimal(part) / as_decimal(whole) * HUNDRED)
