"""Recipe nutrient aggregation and cooking-yield normalization."""

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from nutrition_labels.domain.nutrients import (
    DataQualityWarning,
    NutrientProfile,
    flag_extreme_values,
    sanitize_profile,
)
from nutrition_labels.domain.recipes import (
    CalculationResult,
    ConversionResult,
    Ingredient,
    IngredientContribution,
)
from nutrition_labels.errors import ValidationError
from nutrition_labels.services.resolver import IngredientResolver, ResolvedIngredient
from nutrition_labels.services.units import convert, estimate_grams

# Final weight as a percentage of raw weight for common cooking methods.
TYPICAL_YIELDS: dict[str, float] = {
    "raw": 100,
    "baked": 85,
    "roasted": 70,
    "grilled": 75,
    "fried": 90,
    "boiled": 100,
    "steamed": 95,
    "sautéed": 85,
    "braised": 80,
    "stewed": 90,
    "poached": 95,
}
LOW_YIELD_PERCENT = 50.0
HIGH_YIELD_PERCENT = 150.0

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Aggregate:
    total: NutrientProfile
    raw_total_weight: float
    contributions: list[IngredientContribution]
    warnings: list[str]
    data_quality: list[DataQualityWarning]


@dataclass
class RecipeCalculator:
    """Combines ingredient lookups and unit conversion into recipe nutrients."""

    resolver: IngredientResolver
    allow_unit_estimates: bool = False

    async def calculate(
        self,
        ingredients: Sequence[Ingredient],
        final_cooked_weight_grams: float,
        visited: tuple[str, ...] = (),
    ) -> CalculationResult:
        """Return nutrients per 100 g of the cooked recipe."""
        _validate_final_weight(final_cooked_weight_grams)
        aggregate = await self._aggregate(ingredients, visited)
        return _normalize(aggregate, final_cooked_weight_grams)

    async def calculate_for_cooking_method(
        self,
        ingredients: Sequence[Ingredient],
        cooking_method: str | None,
        visited: tuple[str, ...] = (),
    ) -> CalculationResult:
        """Calculate with the final weight estimated from a cooking method."""
        aggregate = await self._aggregate(ingredients, visited)
        final = aggregate.raw_total_weight * typical_yield(cooking_method) / 100
        return _normalize(aggregate, final)

    async def _aggregate(
        self, ingredients: Sequence[Ingredient], visited: tuple[str, ...]
    ) -> _Aggregate:
        if not ingredients:
            raise ValidationError("Recipe has no ingredients to calculate")
        for ingredient in ingredients:
            _validate_ingredient(ingredient)

        resolved = await self.resolver.resolve_all(ingredients, visited)

        total = NutrientProfile()
        raw_total = 0.0
        contributions: list[IngredientContribution] = []
        warnings: list[str] = []
        data_quality: list[DataQualityWarning] = []
        for item in resolved:
            ingredient = item.ingredient
            conversion = self._to_grams(item, warnings)
            contributions.append(
                IngredientContribution(
                    name=ingredient.name,
                    grams=conversion.grams,
                    confidence=conversion.confidence,
                    source=conversion.source,
                )
            )
            total = total.plus(item.profile.scaled(conversion.grams / 100))
            raw_total += conversion.grams
            data_quality.extend(item.warnings)
            warnings.extend(warning.message for warning in item.warnings)

        if raw_total <= 0:
            raise ValidationError("Ingredients weigh nothing; check quantities and units")
        return _Aggregate(
            total=total,
            raw_total_weight=raw_total,
            contributions=contributions,
            warnings=warnings,
            data_quality=data_quality,
        )

    def _to_grams(self, item: ResolvedIngredient, warnings: list[str]) -> ConversionResult:
        ingredient = item.ingredient
        conversion = convert(ingredient.quantity, ingredient.unit, item.context)
        if conversion.confidence != "unknown":
            return conversion
        if not self.allow_unit_estimates:
            raise ValidationError(
                f'Unknown unit "{ingredient.unit}" for ingredient "{ingredient.name}". '
                "Add a custom conversion or use a standard unit."
            )
        estimate = estimate_grams(ingredient.quantity, ingredient.unit)
        _logger.warning(
            "Estimated %.1fg for %s %s of %s",
            estimate.grams,
            ingredient.quantity,
            ingredient.unit,
            ingredient.name,
        )
        warnings.append(
            f'{ingredient.name}: unknown unit "{ingredient.unit}", estimated '
            f"{estimate.grams:.1f}g; verify this weight"
        )
        return estimate


def typical_yield(cooking_method: str | None) -> float:
    """Return the typical yield percentage for a cooking method, 100 if unknown."""
    if not cooking_method:
        return 100.0
    method = cooking_method.strip().lower()
    if method == "sauteed":
        method = "sautéed"
    return float(TYPICAL_YIELDS.get(method, 100))


def scale_to_serving(profile: NutrientProfile, serving_size_grams: float) -> NutrientProfile:
    """Convert a per-100 g profile into amounts for one serving."""
    if not math.isfinite(serving_size_grams) or serving_size_grams <= 0:
        raise ValidationError("Serving size must be greater than 0")
    return profile.scaled(serving_size_grams / 100)


def calculate_servings(total_weight_grams: float, serving_size_grams: float) -> float:
    """Number of servings in a batch, to one decimal place."""
    if not math.isfinite(serving_size_grams) or serving_size_grams <= 0:
        raise ValidationError("Serving size must be greater than 0")
    return round(total_weight_grams / serving_size_grams, 1)


def _normalize(aggregate: _Aggregate, final_cooked_weight: float) -> CalculationResult:
    _validate_final_weight(final_cooked_weight)
    warnings = list(aggregate.warnings)
    data_quality = list(aggregate.data_quality)

    profile = aggregate.total.scaled(100 / final_cooked_weight)
    profile, invalid = sanitize_profile(profile, source="recipe")
    extreme = flag_extreme_values(profile, source="recipe")
    for warning in invalid + extreme:
        _logger.warning("Recipe nutrient check: %s", warning.message)
        warnings.append(warning.message)
    data_quality.extend(invalid + extreme)

    yield_percentage = final_cooked_weight / aggregate.raw_total_weight * 100
    if yield_percentage < LOW_YIELD_PERCENT:
        warnings.append(
            f"Yield is {yield_percentage:.1f}% (below {LOW_YIELD_PERCENT:g}%); "
            "check the final cooked weight"
        )
    elif yield_percentage > HIGH_YIELD_PERCENT:
        warnings.append(
            f"Yield is {yield_percentage:.1f}% (above {HIGH_YIELD_PERCENT:g}%); "
            "fine for foods that absorb water, otherwise check the final cooked weight"
        )

    return CalculationResult(
        nutrient_profile=profile,
        raw_total_weight_grams=aggregate.raw_total_weight,
        final_cooked_weight_grams=final_cooked_weight,
        yield_percentage=yield_percentage,
        warnings=warnings,
        contributions=aggregate.contributions,
        data_quality=data_quality,
    )


def _validate_final_weight(final_cooked_weight: float) -> None:
    if (
        isinstance(final_cooked_weight, bool)
        or not math.isfinite(final_cooked_weight)
        or final_cooked_weight <= 0
    ):
        raise ValidationError(
            f"Final cooked weight must be greater than 0, got {final_cooked_weight}"
        )


def _validate_ingredient(ingredient: Ingredient) -> None:
    if not math.isfinite(ingredient.quantity) or ingredient.quantity <= 0:
        raise ValidationError(
            f'Ingredient "{ingredient.name}" quantity must be greater than 0, '
            f"got {ingredient.quantity}"
        )
    if not ingredient.unit or not ingredient.unit.strip():
        raise ValidationError(f'Ingredient "{ingredient.name}" has no unit')
