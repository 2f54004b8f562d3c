"""Pydantic models for API request payloads."""

from pydantic import BaseModel, Field

from nutrition_labels.domain.nutrients import DataQualityWarning, NutrientProfile
from nutrition_labels.domain.recipes import (
    FinalDishDraft,
    Ingredient,
    SubRecipeComponent,
    SubRecipeDraft,
)
from nutrition_labels.services.rounding import canonical_nutrient


class IngredientIn(BaseModel):
    """An ingredient pointing at a food or a saved sub-recipe."""

    name: str
    quantity: float
    unit: str
    fdc_id: int | None = Field(default=None, gt=0)
    sub_recipe_id: str | None = None

    def to_domain(self) -> Ingredient:
        return Ingredient(
            name=self.name,
            quantity=self.quantity,
            unit=self.unit,
            fdc_id=self.fdc_id,
            sub_recipe_id=self.sub_recipe_id,
        )


class CalculateRequest(BaseModel):
    """Ad-hoc calculation input; without a final weight the cooking method decides."""

    ingredients: list[IngredientIn]
    final_cooked_weight_grams: float | None = None
    cooking_method: str | None = None

    def domain_ingredients(self) -> list[Ingredient]:
        return [item.to_domain() for item in self.ingredients]


class ParseRequest(BaseModel):
    text: str


class LabelRequest(BaseModel):
    """Per-100 g nutrients, keyed by snake_case or camelCase names."""

    nutrient_profile: dict[str, float | None]
    serving_size_grams: float
    servings_per_container: float
    serving_size_description: str | None = None

    def profile(self) -> tuple[NutrientProfile, list[DataQualityWarning]]:
        values = {
            canonical_nutrient(name): value for name, value in self.nutrient_profile.items()
        }
        profile, warnings = NutrientProfile.from_mapping(values, source="label input")
        # Omitted nutrients are zero on a label; only report values that were rejected.
        return profile, [item for item in warnings if item.kind != "missing_nutrient"]


class SubRecipeRequest(BaseModel):
    name: str
    ingredients: list[IngredientIn]
    final_cooked_weight_grams: float | None = None
    serving_size_grams: float | None = Field(default=None, gt=0)
    cooking_method: str | None = None

    def to_draft(self) -> SubRecipeDraft:
        return SubRecipeDraft(
            name=self.name,
            ingredients=tuple(item.to_domain() for item in self.ingredients),
            final_cooked_weight=self.final_cooked_weight_grams,
            serving_size_grams=self.serving_size_grams,
            cooking_method=self.cooking_method,
        )


class SubRecipeComponentIn(BaseModel):
    """A new sub-recipe plus how much of it the dish uses."""

    sub_recipe: SubRecipeRequest
    quantity: float
    unit: str


class FinalDishRequest(BaseModel):
    name: str
    ingredients: list[IngredientIn] = Field(default_factory=list)
    sub_recipes: list[SubRecipeComponentIn] = Field(default_factory=list)
    final_cooked_weight_grams: float | None = None
    servings_per_container: float | None = Field(default=None, gt=0)
    serving_size_grams: float | None = Field(default=None, gt=0)
    serving_size_description: str | None = None
    cooking_method: str | None = None
    allergens: list[str] = Field(default_factory=list)

    def to_draft(self) -> FinalDishDraft:
        return FinalDishDraft(
            name=self.name,
            ingredients=tuple(item.to_domain() for item in self.ingredients),
            components=tuple(
                SubRecipeComponent(
                    draft=component.sub_recipe.to_draft(),
                    quantity=component.quantity,
                    unit=component.unit,
                )
                for component in self.sub_recipes
            ),
            final_cooked_weight=self.final_cooked_weight_grams,
            servings_per_container=self.servings_per_container,
            serving_size_grams=self.serving_size_grams,
            serving_size_description=self.serving_size_description,
            cooking_method=self.cooking_method,
            allergens=tuple(self.allergens),
        )


class FinalDishFromTextRequest(BaseModel):
    """Recipe text plus the FDC id chosen for each ingredient name."""

    text: str
    fdc_matches: dict[str, int]
    final_cooked_weight_grams: float | None = None
