"""Tests for label rounding and percent daily values."""

import math

import pytest

from nutrition_labels.errors import ValidationError
from nutrition_labels.services.rounding import (
    ROUNDING_RULES,
    canonical_nutrient,
    percent_daily_value,
    round_nutrient,
)


@pytest.mark.parametrize(
    ("name", "raw", "display", "number"),
    [
        ("calories", 4.9, "0", 0),
        ("calories", 47, "45", 45),
        ("calories", 47.5, "50", 50),
        ("calories", 123, "120", 120),
        ("total_fat", 0.3, "0 g", 0),
        ("totalFat", 3.26, "3.5 g", 3.5),
        ("saturated_fat", 7.6, "8 g", 8),
        ("cholesterol", 1.5, "0 mg", 0),
        ("cholesterol", 3, "Less than 5 mg", 2),
        ("cholesterol", 72, "70 mg", 70),
        ("sodium", 3, "0 mg", 0),
        ("sodium", 137.5, "140 mg", 140),
        ("sodium", 141, "140 mg", 140),
        ("total_carbohydrate", 0.7, "Less than 1 g", 0.5),
        ("protein", 12.5, "13 g", 13),
        ("vitamin_c", 0.456, "0.46 mg", 0.46),
        ("vitamin_d", 2.34, "2.3 mcg", 2.3),
        ("iron", 0.005, "0 mg", 0),
        ("potassium", 237, "240 mg", 240),
    ],
)
def test_round_nutrient(name: str, raw: float, display: str, number: float) -> None:
    rounded = round_nutrient(name, raw)

    assert rounded.display_value == display
    assert rounded.rounded_number == pytest.approx(number)


def test_rounding_is_idempotent() -> None:
    samples = [0, 0.004, 0.3, 0.49, 0.5, 0.7, 1, 2.5, 4.75, 4.9, 9.95, 49, 137.5, 999.4]
    for name in ROUNDING_RULES:
        for raw in samples:
            once = round_nutrient(name, raw)
            twice = round_nutrient(name, once.rounded_number)
            assert twice == once, (name, raw)


def test_negative_values_round_to_zero() -> None:
    assert round_nutrient("protein", -3).rounded_number == 0


@pytest.mark.parametrize("raw", [math.nan, math.inf])
def test_non_finite_values_are_rejected(raw: float) -> None:
    with pytest.raises(ValidationError):
        round_nutrient("sodium", raw)


def test_canonical_nutrient_accepts_common_spellings() -> None:
    assert canonical_nutrient("totalCarbohydrate") == "total_carbohydrate"
    assert canonical_nutrient("Vitamin B12") == "vitamin_b12"
    with pytest.raises(ValidationError):
        canonical_nutrient("unobtainium")


def test_percent_daily_value() -> None:
    assert percent_daily_value("sodium", 140) == 6
    assert percent_daily_value("total_fat", 5) == 6
    assert percent_daily_value("added_sugars", 25) == 50
    assert percent_daily_value("protein", 0) == 0


def test_percent_daily_value_absent_without_reference() -> None:
    assert percent_daily_value("calories", 200) is None
    assert percent_daily_value("trans_fat", 1) is None
    assert percent_daily_value("total_sugars", 12) is None
