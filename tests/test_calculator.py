"""Tests for recipe calculation."""

import asyncio
import math

import pytest

from nutrition_labels.domain.nutrients import (
    NUTRIENT_FIELDS,
    DataQualityWarning,
    NutrientProfile,
)
from nutrition_labels.domain.recipes import Ingredient, SubRecipe
from nutrition_labels.errors import ReferenceNotFoundError, ValidationError
from nutrition_labels.services.calculator import (
    calculate_servings,
    scale_to_serving,
    typical_yield,
)
from tests.conftest import (
    BUTTER_ID,
    CHICKEN_ID,
    FLOUR_ID,
    SUGAR_ID,
    TOMATO_ID,
    Stack,
    build_stack,
    fdc_food,
)

BROTH_ID = 9001


def _broth(stack: Stack) -> None:
    stack.fdc_client.foods[BROTH_ID] = fdc_food(
        BROTH_ID,
        "Soup, stock, vegetable",
        calories=50,
        total_fat=1,
        sodium=300,
        total_carbohydrate=8,
        protein=2,
    )


def test_cooked_weight_concentrates_nutrients(stack: Stack) -> None:
    _broth(stack)
    ingredients = [Ingredient("stock", 1000, "g", fdc_id=BROTH_ID)]

    result = asyncio.run(stack.calculator.calculate(ingredients, 650))

    assert result.raw_total_weight_grams == pytest.approx(1000)
    assert result.nutrient_profile.calories == pytest.approx(500 * 100 / 650)
    assert result.nutrient_profile.calories == pytest.approx(76.9, abs=0.05)
    assert result.yield_percentage == pytest.approx(65)


def test_yield_percentage_matches_weights(stack: Stack) -> None:
    ingredients = [
        Ingredient("flour", 2, "cup", fdc_id=FLOUR_ID),
        Ingredient("butter", 4, "oz", fdc_id=BUTTER_ID),
    ]

    result = asyncio.run(stack.calculator.calculate(ingredients, 310))

    assert result.raw_total_weight_grams == pytest.approx(250 + 4 * 28.3495)
    assert result.yield_percentage == pytest.approx(
        result.final_cooked_weight_grams / result.raw_total_weight_grams * 100
    )


def test_contributions_record_conversion_source(stack: Stack) -> None:
    stack.conversions.conversions[BUTTER_ID] = {"stick": 113.0}
    ingredients = [
        Ingredient("flour", 2, "cup", fdc_id=FLOUR_ID),
        Ingredient("butter", 1, "stick", fdc_id=BUTTER_ID),
        Ingredient("chicken", 1, "lb", fdc_id=CHICKEN_ID),
    ]

    result = asyncio.run(stack.calculator.calculate(ingredients, 600))

    sources = {item.name: (item.source, item.confidence) for item in result.contributions}
    assert sources == {
        "flour": ("portion", "high"),
        "butter": ("custom", "high"),
        "chicken": ("standard", "medium"),
    }
    assert sorted(stack.fdc_client.food_calls) == [FLOUR_ID, BUTTER_ID, CHICKEN_ID]


def test_aggregation_is_additive(stack: Stack) -> None:
    first = [
        Ingredient("flour", 1, "cup", fdc_id=FLOUR_ID),
        Ingredient("sugar", 50, "g", fdc_id=SUGAR_ID),
    ]
    second = [
        Ingredient("butter", 2, "tbsp", fdc_id=BUTTER_ID),
        Ingredient("tomato", 2, "medium", fdc_id=TOMATO_ID),
    ]

    one = asyncio.run(stack.calculator.calculate(first, 150))
    two = asyncio.run(stack.calculator.calculate(second, 200))
    both = asyncio.run(stack.calculator.calculate(first + second, 350))

    for name in NUTRIENT_FIELDS:
        separate = getattr(one.nutrient_profile, name) * 1.5 + getattr(
            two.nutrient_profile, name
        ) * 2
        together = getattr(both.nutrient_profile, name) * 3.5
        assert together == pytest.approx(separate), name


def test_results_are_never_negative_or_non_finite(stack: Stack) -> None:
    stack.fdc_client.foods[BROTH_ID] = fdc_food(
        BROTH_ID,
        "Broken entry",
        calories=-40,
        total_fat=2,
        sodium=10,
        total_carbohydrate=1,
        protein=1,
    )
    ingredients = [
        Ingredient("stock", 100, "g", fdc_id=BROTH_ID),
        Ingredient("chicken", 100, "g", fdc_id=CHICKEN_ID),
    ]

    result = asyncio.run(stack.calculator.calculate(ingredients, 180))

    for value in result.nutrient_profile.as_dict().values():
        assert math.isfinite(value)
        assert value >= 0
    assert any("calories" in warning for warning in result.warnings)


def test_data_quality_corrections_become_warnings(stack: Stack) -> None:
    ingredients = [Ingredient("sugar", 100, "g", fdc_id=SUGAR_ID)]

    result = asyncio.run(stack.calculator.calculate(ingredients, 100))

    assert result.nutrient_profile.total_sugars == pytest.approx(100)
    assert [item.kind for item in result.data_quality] == ["missing_sugar"]
    assert any("sugar missing" in warning for warning in result.warnings)


def test_sub_recipe_servings_are_weighed_with_its_serving_size(stack: Stack) -> None:
    stack.sub_recipes.add(
        SubRecipe(
            id="dough",
            name="Dough",
            ingredients=(Ingredient("flour", 2, "cup", fdc_id=FLOUR_ID),),
            nutrient_profile=NutrientProfile(calories=300, total_carbohydrate=60),
            serving_size_grams=80,
            raw_total_weight=250,
            final_cooked_weight=200,
        )
    )
    ingredients = [Ingredient("dough", 2, "serving", sub_recipe_id="dough")]

    result = asyncio.run(stack.calculator.calculate(ingredients, 160))

    assert result.raw_total_weight_grams == pytest.approx(160)
    assert result.nutrient_profile.calories == pytest.approx(300)


@pytest.mark.parametrize("final_weight", [0, -5, math.nan, math.inf])
def test_invalid_final_weight_is_rejected_before_lookups(
    stack: Stack, final_weight: float
) -> None:
    ingredients = [Ingredient("flour", 1, "cup", fdc_id=FLOUR_ID)]

    with pytest.raises(ValidationError):
        asyncio.run(stack.calculator.calculate(ingredients, final_weight))

    assert stack.fdc_client.food_calls == []


def test_empty_recipe_is_rejected(stack: Stack) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(stack.calculator.calculate([], 100))


def test_non_positive_quantity_is_rejected(stack: Stack) -> None:
    ingredients = [Ingredient("flour", 0, "cup", fdc_id=FLOUR_ID)]

    with pytest.raises(ValidationError):
        asyncio.run(stack.calculator.calculate(ingredients, 100))


def test_unknown_unit_is_rejected_by_default(stack: Stack) -> None:
    ingredients = [Ingredient("flour", 1, "handful", fdc_id=FLOUR_ID)]

    with pytest.raises(ValidationError, match="handful"):
        asyncio.run(stack.calculator.calculate(ingredients, 100))


def test_unknown_unit_is_estimated_when_allowed() -> None:
    stack = build_stack(allow_unit_estimates=True)
    ingredients = [Ingredient("flour", 2, "handful", fdc_id=FLOUR_ID)]

    result = asyncio.run(stack.calculator.calculate(ingredients, 100))

    assert result.raw_total_weight_grams == pytest.approx(100)
    assert result.contributions[0].confidence == "low"
    assert any("handful" in warning for warning in result.warnings)


def test_yield_outside_expected_range_warns(stack: Stack) -> None:
    ingredients = [Ingredient("chicken", 1000, "g", fdc_id=CHICKEN_ID)]

    low = asyncio.run(stack.calculator.calculate(ingredients, 400))
    high = asyncio.run(stack.calculator.calculate(ingredients, 1600))
    normal = asyncio.run(stack.calculator.calculate(ingredients, 750))

    assert any("below 50%" in warning for warning in low.warnings)
    assert any("above 150%" in warning for warning in high.warnings)
    assert not any("Yield" in warning for warning in normal.warnings)


def test_extreme_concentration_warns(stack: Stack) -> None:
    ingredients = [Ingredient("butter", 100, "g", fdc_id=BUTTER_ID)]

    result = asyncio.run(stack.calculator.calculate(ingredients, 60))

    assert any(item.kind == "extreme_value" for item in result.data_quality)


def test_cooking_method_sets_final_weight(stack: Stack) -> None:
    ingredients = [Ingredient("chicken", 1000, "g", fdc_id=CHICKEN_ID)]

    result = asyncio.run(
        stack.calculator.calculate_for_cooking_method(ingredients, "Roasted")
    )

    assert result.final_cooked_weight_grams == pytest.approx(700)
    assert result.nutrient_profile.protein == pytest.approx(22.5 / 0.7)


def test_stored_sub_recipe_gaps_reach_the_result(stack: Stack) -> None:
    gap = DataQualityWarning(
        kind="missing_nutrient",
        message='sub-recipe "Dough": sodium missing, using 0',
        corrected_value=0.0,
    )
    stack.sub_recipes.add(
        SubRecipe(
            id="dough",
            name="Dough",
            ingredients=(Ingredient("flour", 2, "cup", fdc_id=FLOUR_ID),),
            nutrient_profile=NutrientProfile(calories=300, total_carbohydrate=60),
            serving_size_grams=80,
            raw_total_weight=250,
            final_cooked_weight=200,
            data_quality=(gap,),
        )
    )
    ingredients = [Ingredient("dough", 100, "g", sub_recipe_id="dough")]

    result = asyncio.run(stack.calculator.calculate(ingredients, 100))

    assert result.data_quality == [gap]
    assert result.warnings == [gap.message]


def test_failed_lookup_cancels_the_others(
    stack: Stack, monkeypatch: pytest.MonkeyPatch
) -> None:
    serve = stack.fdc_client.get_food
    cancelled: list[int] = []

    async def stall_tomato(fdc_id: int) -> dict[str, object]:
        if fdc_id == TOMATO_ID:
            try:
                await asyncio.Event().wait()
            finally:
                cancelled.append(fdc_id)
        return await serve(fdc_id)

    monkeypatch.setattr(stack.fdc_client, "get_food", stall_tomato)
    ingredients = [
        Ingredient("tomato", 100, "g", fdc_id=TOMATO_ID),
        Ingredient("unicorn", 1, "g", fdc_id=999999),
    ]

    async def calculate() -> list[int]:
        with pytest.raises(ReferenceNotFoundError):
            await stack.calculator.calculate(ingredients, 100)
        return list(cancelled)

    assert asyncio.run(calculate()) == [TOMATO_ID]


def test_typical_yield() -> None:
    assert typical_yield("grilled") == 75
    assert typical_yield("sauteed") == 85
    assert typical_yield("sous vide") == 100
    assert typical_yield(None) == 100


def test_serving_helpers() -> None:
    per_serving = scale_to_serving(NutrientProfile(calories=250, protein=8), 40)

    assert per_serving.calories == pytest.approx(100)
    assert per_serving.protein == pytest.approx(3.2)
    assert calculate_servings(1000, 150) == 6.7
    with pytest.raises(ValidationError):
        calculate_servings(1000, 0)
