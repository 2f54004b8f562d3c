"""Sub-recipe and final dish workflows."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Protocol

from nutrition_labels.domain.parsing import ParsedIngredient, ParseResult
from nutrition_labels.domain.recipes import (
    CalculationResult,
    FinalDish,
    FinalDishDraft,
    Ingredient,
    SubRecipe,
    SubRecipeComponent,
    SubRecipeDraft,
)
from nutrition_labels.errors import (
    ReferenceInUseError,
    ReferenceNotFoundError,
    RollbackFailedError,
    SaveRolledBackError,
    ValidationError,
)
from nutrition_labels.services.calculator import RecipeCalculator, calculate_servings
from nutrition_labels.services.resolver import STORE_SERVICE, SubRecipeRepository
from nutrition_labels.services.retry import RetryPolicy

MAX_NAME_BYTES = 255
DEFAULT_SERVING_GRAMS = 100.0

_logger = logging.getLogger(__name__)


class FinalDishRepository(Protocol):
    """Persistence interface for final dishes."""

    def create(self, final_dish: FinalDish) -> FinalDish:
        """Insert a final dish and return it with its id."""

    def get(self, final_dish_id: str) -> FinalDish | None:
        """Return a final dish by id, if present."""

    def list_all(self) -> list[FinalDish]:
        """Return all final dishes."""

    def delete(self, final_dish_id: str) -> None:
        """Delete a final dish by id."""


@dataclass(frozen=True)
class SavedSubRecipe:
    sub_recipe: SubRecipe
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SavedFinalDish:
    final_dish: FinalDish
    sub_recipes: list[SubRecipe] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class RecipeService:
    """Application service for recipe persistence."""

    calculator: RecipeCalculator
    sub_recipes: SubRecipeRepository
    final_dishes: FinalDishRepository
    store_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(STORE_SERVICE))

    async def create_sub_recipe(self, draft: SubRecipeDraft) -> SavedSubRecipe:
        """Calculate and store a new sub-recipe."""
        _validate_name(draft.name)
        calculation = await self._calculate(
            draft.ingredients, draft.final_cooked_weight, draft.cooking_method
        )
        record = await self.store_retry.call_blocking(
            self.sub_recipes.create,
            _sub_recipe_from(draft, calculation),
            action="create_sub_recipe",
        )
        _logger.info("Created sub-recipe %s (%s)", record.name, record.id)
        return SavedSubRecipe(sub_recipe=record, warnings=calculation.warnings)

    async def update_sub_recipe(
        self, sub_recipe_id: str, draft: SubRecipeDraft
    ) -> SavedSubRecipe:
        """Recalculate and replace a sub-recipe, rejecting self references."""
        existing = await self.get_sub_recipe(sub_recipe_id)
        _validate_name(draft.name)
        calculation = await self._calculate(
            draft.ingredients,
            draft.final_cooked_weight,
            draft.cooking_method,
            visited=(sub_recipe_id,),
        )
        updated = replace(
            _sub_recipe_from(draft, calculation),
            id=existing.id,
            created_at=existing.created_at,
        )
        record = await self.store_retry.call_blocking(
            self.sub_recipes.update, updated, action=f"update_sub_recipe:{sub_recipe_id}"
        )
        _logger.info("Updated sub-recipe %s (%s)", record.name, record.id)
        return SavedSubRecipe(sub_recipe=record, warnings=calculation.warnings)

    async def get_sub_recipe(self, sub_recipe_id: str) -> SubRecipe:
        record = await self.store_retry.call_blocking(
            self.sub_recipes.get, sub_recipe_id, action=f"get_sub_recipe:{sub_recipe_id}"
        )
        if record is None:
            raise ReferenceNotFoundError("sub-recipe", sub_recipe_id)
        return record

    async def list_sub_recipes(self) -> list[SubRecipe]:
        records = await self.store_retry.call_blocking(
            self.sub_recipes.list_all, action="list_sub_recipes"
        )
        return sorted(records, key=lambda item: item.name.lower())

    async def delete_sub_recipe(self, sub_recipe_id: str) -> None:
        """Delete a sub-recipe no other recipe uses."""
        await self.get_sub_recipe(sub_recipe_id)
        users = [
            dish.name
            for dish in await self.list_final_dishes()
            if _references(dish.ingredients, sub_recipe_id)
        ]
        users.extend(
            item.name
            for item in await self.list_sub_recipes()
            if item.id != sub_recipe_id and _references(item.ingredients, sub_recipe_id)
        )
        if users:
            raise ReferenceInUseError(sub_recipe_id, users)
        await self.store_retry.call_blocking(
            self.sub_recipes.delete, sub_recipe_id, action=f"delete_sub_recipe:{sub_recipe_id}"
        )
        _logger.info("Deleted sub-recipe %s", sub_recipe_id)

    async def get_final_dish(self, final_dish_id: str) -> FinalDish:
        record = await self.store_retry.call_blocking(
            self.final_dishes.get, final_dish_id, action=f"get_final_dish:{final_dish_id}"
        )
        if record is None:
            raise ReferenceNotFoundError("final dish", final_dish_id)
        return record

    async def list_final_dishes(self) -> list[FinalDish]:
        records = await self.store_retry.call_blocking(
            self.final_dishes.list_all, action="list_final_dishes"
        )
        return sorted(records, key=lambda item: item.name.lower())

    async def delete_final_dish(self, final_dish_id: str) -> None:
        await self.get_final_dish(final_dish_id)
        await self.store_retry.call_blocking(
            self.final_dishes.delete, final_dish_id, action=f"delete_final_dish:{final_dish_id}"
        )
        _logger.info("Deleted final dish %s", final_dish_id)

    async def save_final_dish(self, draft: FinalDishDraft) -> SavedFinalDish:
        """Create any new sub-recipes, then the dish that uses them.

        The writes form one logical transaction: when a later step fails, the
        sub-recipes created so far are deleted again, newest first.
        """
        _validate_name(draft.name)
        if not draft.ingredients and not draft.components:
            raise ValidationError(f'Final dish "{draft.name}" has no ingredients')

        created: list[SubRecipe] = []
        warnings: list[str] = []
        try:
            ingredients = list(draft.ingredients)
            for component in draft.components:
                saved = await self.create_sub_recipe(component.draft)
                created.append(saved.sub_recipe)
                warnings.extend(saved.warnings)
                ingredients.append(
                    Ingredient(
                        name=saved.sub_recipe.name,
                        quantity=component.quantity,
                        unit=component.unit,
                        sub_recipe_id=saved.sub_recipe.id,
                    )
                )
            calculation = await self._calculate(
                ingredients, draft.final_cooked_weight, draft.cooking_method
            )
            warnings.extend(calculation.warnings)
            servings, serving_size = _servings(draft, calculation)
            dish = FinalDish(
                name=await self.available_dish_name(draft.name),
                ingredients=tuple(ingredients),
                nutrient_profile=calculation.nutrient_profile,
                serving_size_grams=serving_size,
                servings_per_container=servings,
                raw_total_weight=calculation.raw_total_weight_grams,
                final_cooked_weight=calculation.final_cooked_weight_grams,
                serving_size_description=draft.serving_size_description,
                allergens=tuple(draft.allergens),
                cooking_method=draft.cooking_method,
            )
            record = await self.store_retry.call_blocking(
                self.final_dishes.create, dish, action="create_final_dish"
            )
        except Exception as exc:
            if not created:
                raise
            await self._roll_back(draft.name, created, exc)
            raise
        _logger.info(
            "Created final dish %s (%s) with %s new sub-recipe(s)",
            record.name,
            record.id,
            len(created),
        )
        return SavedFinalDish(final_dish=record, sub_recipes=created, warnings=warnings)

    async def available_dish_name(self, name: str) -> str:
        """Return name, or name with " (2)", " (3)"... if it is taken."""
        taken = {dish.name.strip().lower() for dish in await self.list_final_dishes()}
        if name.strip().lower() not in taken:
            return name
        for counter in range(2, 101):
            candidate = f"{name} ({counter})"
            if candidate.lower() not in taken:
                return candidate
        raise ValidationError(f'Could not find an unused name for "{name}"')

    def build_draft(
        self,
        parsed: ParseResult,
        fdc_matches: Mapping[str, int],
        final_cooked_weight: float | None = None,
    ) -> FinalDishDraft:
        """Turn parser output plus chosen food matches into a savable draft.

        `fdc_matches` maps ingredient names (case-insensitive) to FDC ids.
        """
        matches = {name.strip().lower(): fdc_id for name, fdc_id in fdc_matches.items()}
        missing: list[str] = []

        def to_ingredients(items: Sequence[ParsedIngredient]) -> tuple[Ingredient, ...]:
            result: list[Ingredient] = []
            for item in items:
                fdc_id = matches.get(item.name.strip().lower())
                if fdc_id is None:
                    missing.append(item.name)
                    continue
                result.append(
                    Ingredient(
                        name=item.name, quantity=item.quantity, unit=item.unit, fdc_id=fdc_id
                    )
                )
            return tuple(result)

        ingredients = to_ingredients(parsed.ingredients)
        components = tuple(
            SubRecipeComponent(
                draft=SubRecipeDraft(
                    name=sub.name, ingredients=to_ingredients(sub.ingredients)
                ),
                quantity=sub.quantity,
                unit=sub.unit,
            )
            for sub in parsed.sub_recipes
        )
        if missing:
            raise ValidationError(
                "No food match chosen for: " + ", ".join(dict.fromkeys(missing))
            )
        return FinalDishDraft(
            name=parsed.name,
            ingredients=ingredients,
            components=components,
            final_cooked_weight=final_cooked_weight,
            servings_per_container=parsed.explicit_servings,
        )

    async def _calculate(
        self,
        ingredients: Sequence[Ingredient],
        final_cooked_weight: float | None,
        cooking_method: str | None,
        visited: tuple[str, ...] = (),
    ) -> CalculationResult:
        if final_cooked_weight is not None:
            return await self.calculator.calculate(ingredients, final_cooked_weight, visited)
        return await self.calculator.calculate_for_cooking_method(
            ingredients, cooking_method, visited
        )

    async def _roll_back(
        self, name: str, created: list[SubRecipe], cause: Exception
    ) -> None:
        orphaned: list[str] = []
        for sub_recipe in reversed(created):
            try:
                await self.store_retry.call_blocking(
                    self.sub_recipes.delete,
                    sub_recipe.id,
                    action=f"roll_back_sub_recipe:{sub_recipe.id}",
                )
            except Exception:
                _logger.exception("Rollback could not delete sub-recipe %s", sub_recipe.id)
                orphaned.append(sub_recipe.id)
        if orphaned:
            _logger.error(
                "Saving %s failed and rollback left orphaned sub-recipes: %s",
                name,
                ", ".join(orphaned),
            )
            raise RollbackFailedError(
                f'Saving "{name}" failed ({cause}) and {len(orphaned)} sub-recipe(s) '
                f"could not be removed: {', '.join(orphaned)}",
                orphaned,
            ) from cause
        rolled_back = [sub_recipe.id for sub_recipe in created]
        _logger.warning(
            "Saving %s failed, removed %s new sub-recipe(s): %s", name, len(created), cause
        )
        raise SaveRolledBackError(
            f'Saving "{name}" failed and the {len(created)} new sub-recipe(s) were '
            f"removed: {cause}",
            rolled_back,
        ) from cause


def _validate_name(name: str) -> None:
    if not name or not name.strip():
        raise ValidationError("Recipe name is required")
    size = len(name.encode("utf-8"))
    if size > MAX_NAME_BYTES:
        raise ValidationError(
            f"Recipe name is too long ({size} bytes, maximum {MAX_NAME_BYTES})"
        )


def _references(ingredients: tuple[Ingredient, ...], sub_recipe_id: str) -> bool:
    return any(item.sub_recipe_id == sub_recipe_id for item in ingredients)


def _sub_recipe_from(draft: SubRecipeDraft, calculation: CalculationResult) -> SubRecipe:
    return SubRecipe(
        name=draft.name,
        ingredients=tuple(draft.ingredients),
        nutrient_profile=calculation.nutrient_profile,
        serving_size_grams=draft.serving_size_grams or DEFAULT_SERVING_GRAMS,
        raw_total_weight=calculation.raw_total_weight_grams,
        final_cooked_weight=calculation.final_cooked_weight_grams,
        cooking_method=draft.cooking_method,
    )


def _servings(draft: FinalDishDraft, calculation: CalculationResult) -> tuple[float, float]:
    final = calculation.final_cooked_weight_grams
    if draft.servings_per_container is not None:
        servings = float(draft.servings_per_container)
        if servings <= 0:
            raise ValidationError("Servings per container must be greater than 0")
        return servings, draft.serving_size_grams or final / servings
    if draft.serving_size_grams:
        return calculate_servings(final, draft.serving_size_grams), draft.serving_size_grams
    servings = float(max(1, round(final / DEFAULT_SERVING_GRAMS)))
    return servings, final / servings
