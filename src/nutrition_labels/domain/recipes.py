"""Recipe domain models."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from nutrition_labels.domain.nutrients import DataQualityWarning, NutrientProfile
from nutrition_labels.errors import ValidationError

Confidence = Literal["high", "medium", "low", "unknown"]
ConversionSource = Literal["custom", "portion", "standard", "estimate", "none"]


@dataclass(frozen=True)
class Ingredient:
    """A recipe line item referencing a food or a sub-recipe."""

    name: str
    quantity: float
    unit: str
    fdc_id: int | None = None
    sub_recipe_id: str | None = None

    def __post_init__(self) -> None:
        if (self.fdc_id is None) == (self.sub_recipe_id is None):
            raise ValidationError(
                f'Ingredient "{self.name}" must reference exactly one of a food '
                "or a sub-recipe"
            )

    @property
    def is_sub_recipe(self) -> bool:
        return self.sub_recipe_id is not None


@dataclass(frozen=True)
class FoodPortion:
    """Portion data supplied by the food database."""

    amount: float
    gram_weight: float
    modifier: str | None = None
    unit_name: str | None = None
    unit_abbreviation: str | None = None


@dataclass(frozen=True)
class ConversionContext:
    """Food-specific conversion data for the unit converter."""

    custom_conversions: dict[str, float] = field(default_factory=dict)
    portions: tuple[FoodPortion, ...] = ()


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of converting a quantity to grams."""

    grams: float
    confidence: Confidence
    source: ConversionSource


@dataclass(frozen=True)
class SubRecipe:
    """A reusable component recipe."""

    name: str
    ingredients: tuple[Ingredient, ...]
    nutrient_profile: NutrientProfile
    serving_size_grams: float
    raw_total_weight: float
    final_cooked_weight: float
    cooking_method: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    data_quality: tuple[DataQualityWarning, ...] = ()

    def __post_init__(self) -> None:
        _require_weight(self.name, self.final_cooked_weight)

    @property
    def yield_percentage(self) -> float:
        """Final cooked weight as a percentage of raw weight."""
        return _yield(self.raw_total_weight, self.final_cooked_weight)


@dataclass(frozen=True)
class FinalDish:
    """A terminal, labelable recipe."""

    name: str
    ingredients: tuple[Ingredient, ...]
    nutrient_profile: NutrientProfile
    serving_size_grams: float
    servings_per_container: float
    raw_total_weight: float
    final_cooked_weight: float
    serving_size_description: str | None = None
    allergens: tuple[str, ...] = ()
    cooking_method: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    data_quality: tuple[DataQualityWarning, ...] = ()

    def __post_init__(self) -> None:
        _require_weight(self.name, self.final_cooked_weight)

    @property
    def yield_percentage(self) -> float:
        """Final cooked weight as a percentage of raw weight."""
        return _yield(self.raw_total_weight, self.final_cooked_weight)


@dataclass(frozen=True)
class SubRecipeDraft:
    """Unsaved sub-recipe input."""

    name: str
    ingredients: tuple[Ingredient, ...]
    final_cooked_weight: float | None = None
    serving_size_grams: float | None = None
    cooking_method: str | None = None


@dataclass(frozen=True)
class SubRecipeComponent:
    """A new sub-recipe and the amount of it used in a dish."""

    draft: SubRecipeDraft
    quantity: float
    unit: str


@dataclass(frozen=True)
class FinalDishDraft:
    """Unsaved final dish input, possibly with new sub-recipes."""

    name: str
    ingredients: tuple[Ingredient, ...] = ()
    components: tuple[SubRecipeComponent, ...] = ()
    final_cooked_weight: float | None = None
    servings_per_container: float | None = None
    serving_size_grams: float | None = None
    serving_size_description: str | None = None
    cooking_method: str | None = None
    allergens: tuple[str, ...] = ()


@dataclass(frozen=True)
class IngredientContribution:
    """How one ingredient entered a calculation."""

    name: str
    grams: float
    confidence: Confidence
    source: ConversionSource


@dataclass(frozen=True)
class CalculationResult:
    """Aggregated, yield-normalized nutrients for a list of ingredients."""

    nutrient_profile: NutrientProfile
    raw_total_weight_grams: float
    final_cooked_weight_grams: float
    yield_percentage: float
    warnings: list[str]
    contributions: list[IngredientContribution]
    data_quality: list[DataQualityWarning] = field(default_factory=list)


def _require_weight(name: str, weight: float) -> None:
    if not math.isfinite(weight) or weight <= 0:
        raise ValidationError(
            f'Recipe "{name}" final cooked weight must be greater than 0, got {weight}'
        )


def _yield(raw: float, final: float) -> float:
    if raw <= 0:
        return 0.0
    return final / raw * 100
