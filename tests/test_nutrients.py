"""Tests for nutrient profiles and data-quality checks."""

import math

from nutrition_labels.domain.nutrients import (
    NUTRIENT_FIELDS,
    NutrientProfile,
    audit_profile,
    flag_extreme_values,
    sanitize_profile,
)


def test_profile_arithmetic_returns_new_profiles() -> None:
    base = NutrientProfile(calories=100, protein=10)

    doubled = base.scaled(2)
    combined = base.plus(NutrientProfile(calories=50, sodium=5))

    assert base.calories == 100
    assert doubled.calories == 200
    assert doubled.protein == 20
    assert combined.calories == 150
    assert combined.sodium == 5


def test_from_mapping_zeroes_and_flags_bad_values() -> None:
    data: dict[str, object] = {name: 1.0 for name in NUTRIENT_FIELDS}
    data["sodium"] = "lots"
    data["protein"] = -4
    data["iron"] = math.nan
    del data["zinc"]

    profile, warnings = NutrientProfile.from_mapping(data, source="test")

    assert profile.sodium == 0
    assert profile.protein == 0
    assert profile.iron == 0
    assert profile.zinc == 0
    assert profile.calories == 1
    kinds = sorted(warning.kind for warning in warnings)
    assert kinds == ["invalid_value", "invalid_value", "invalid_value", "missing_nutrient"]


def test_sanitize_profile_clamps_non_finite_and_negative() -> None:
    profile, warnings = sanitize_profile(
        NutrientProfile(calories=math.inf, total_fat=-1, protein=3), source="recipe"
    )

    assert profile.calories == 0
    assert profile.total_fat == 0
    assert profile.protein == 3
    assert len(warnings) == 2


def test_audit_caps_impossible_relationships() -> None:
    profile, warnings = audit_profile(
        NutrientProfile(
            total_carbohydrate=10,
            total_sugars=12,
            added_sugars=8,
            dietary_fiber=11,
            total_fat=5,
            saturated_fat=6,
            trans_fat=7,
        ),
        source="bad entry",
    )

    assert profile.total_sugars == 10
    assert profile.added_sugars == 8
    assert profile.dietary_fiber == 10
    assert profile.saturated_fat == 5
    assert profile.trans_fat == 5
    assert {warning.kind for warning in warnings} == {
        "sugar_exceeds_carbs",
        "fiber_exceeds_carbs",
        "saturated_fat_exceeds_total",
        "trans_fat_exceeds_total",
    }


def test_audit_infers_sugar_for_pure_carbohydrate() -> None:
    profile, warnings = audit_profile(
        NutrientProfile(calories=387, total_carbohydrate=99.8), source="sugar"
    )

    assert profile.total_sugars == 99.8
    assert profile.added_sugars == 99.8
    assert [warning.kind for warning in warnings] == ["missing_sugar"]


def test_audit_leaves_consistent_profiles_alone() -> None:
    original = NutrientProfile(total_carbohydrate=20, total_sugars=5, total_fat=3)

    profile, warnings = audit_profile(original)

    assert profile is original
    assert warnings == []


def test_flag_extreme_values() -> None:
    warnings = flag_extreme_values(
        NutrientProfile(calories=950, sodium=50000, protein=20), source="recipe"
    )

    assert [warning.original_value for warning in warnings] == [950, 50000]
    assert all(warning.kind == "extreme_value" for warning in warnings)
