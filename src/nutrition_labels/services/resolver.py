"""Resolve ingredient references to per-100 g nutrient profiles."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from nutrition_labels.domain.nutrients import (
    DataQualityWarning,
    NutrientProfile,
    audit_profile,
)
from nutrition_labels.domain.recipes import ConversionContext, Ingredient, SubRecipe
from nutrition_labels.errors import CircularReferenceError, ReferenceNotFoundError
from nutrition_labels.services.nutrition import NutritionService
from nutrition_labels.services.retry import RetryPolicy

STORE_SERVICE = "Supabase"

_logger = logging.getLogger(__name__)


class SubRecipeRepository(Protocol):
    """Persistence interface for sub-recipes."""

    def create(self, sub_recipe: SubRecipe) -> SubRecipe:
        """Insert a sub-recipe and return it with its id."""

    def update(self, sub_recipe: SubRecipe) -> SubRecipe:
        """Replace a stored sub-recipe."""

    def get(self, sub_recipe_id: str) -> SubRecipe | None:
        """Return a sub-recipe by id, if present."""

    def list_all(self) -> list[SubRecipe]:
        """Return all sub-recipes."""

    def delete(self, sub_recipe_id: str) -> None:
        """Delete a sub-recipe by id."""


class ConversionRepository(Protocol):
    """User-defined unit conversions for food-database entries."""

    def get_custom_conversions(self, fdc_id: int) -> dict[str, float]:
        """Return unit -> grams-per-unit for a food."""


@dataclass(frozen=True)
class ResolvedIngredient:
    """An ingredient with the data needed to weigh and score it."""

    ingredient: Ingredient
    profile: NutrientProfile
    context: ConversionContext
    warnings: list[DataQualityWarning]


@dataclass
class IngredientResolver:
    """Looks up foods and sub-recipes, guarding against reference cycles."""

    nutrition_service: NutritionService
    sub_recipes: SubRecipeRepository
    conversions: ConversionRepository
    store_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(STORE_SERVICE))

    async def resolve(
        self, ingredient: Ingredient, visited: tuple[str, ...] = ()
    ) -> ResolvedIngredient:
        """Resolve one ingredient.

        `visited` holds the sub-recipe ids already being expanded above this
        call, outermost first.
        """
        if ingredient.is_sub_recipe:
            return await self._resolve_sub_recipe(ingredient, visited)
        return await self._resolve_food(ingredient)

    async def resolve_all(
        self, ingredients: Sequence[Ingredient], visited: tuple[str, ...] = ()
    ) -> list[ResolvedIngredient]:
        """Resolve ingredients concurrently, in input order.

        The first failure cancels the lookups still in flight and is raised
        as is.
        """
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(self.resolve(ingredient, visited))
                    for ingredient in ingredients
                ]
        except ExceptionGroup as failures:
            raise failures.exceptions[0]
        return [task.result() for task in tasks]

    async def _resolve_food(self, ingredient: Ingredient) -> ResolvedIngredient:
        fdc_id = ingredient.fdc_id
        try:
            details = await self.nutrition_service.get_food(fdc_id)
        except ReferenceNotFoundError as exc:
            raise ReferenceNotFoundError("food", fdc_id, ingredient.name) from exc
        profile, corrections = audit_profile(details.profile, source=ingredient.name)
        _log_corrections(ingredient.name, corrections)
        context = ConversionContext(
            custom_conversions=await self.store_retry.call_blocking(
                self.conversions.get_custom_conversions,
                fdc_id,
                action=f"get_custom_conversions:{fdc_id}",
            ),
            portions=details.portions,
        )
        return ResolvedIngredient(
            ingredient=ingredient,
            profile=profile,
            context=context,
            warnings=list(details.warnings) + corrections,
        )

    async def _resolve_sub_recipe(
        self, ingredient: Ingredient, visited: tuple[str, ...]
    ) -> ResolvedIngredient:
        sub_recipe_id = ingredient.sub_recipe_id
        if sub_recipe_id in visited:
            start = visited.index(sub_recipe_id)
            raise CircularReferenceError([*visited[start:], sub_recipe_id])
        record = await self.store_retry.call_blocking(
            self.sub_recipes.get, sub_recipe_id, action=f"get_sub_recipe:{sub_recipe_id}"
        )
        if record is None:
            raise ReferenceNotFoundError("sub-recipe", sub_recipe_id, ingredient.name)

        path = (*visited, sub_recipe_id)
        nested = [item for item in record.ingredients if item.is_sub_recipe]
        if nested:
            await self.resolve_all(nested, path)

        profile, corrections = audit_profile(record.nutrient_profile, source=record.name)
        _log_corrections(ingredient.name, corrections)
        custom: dict[str, float] = {}
        if record.serving_size_grams > 0:
            custom["serving"] = record.serving_size_grams
        return ResolvedIngredient(
            ingredient=ingredient,
            profile=profile,
            context=ConversionContext(custom_conversions=custom),
            warnings=list(record.data_quality) + corrections,
        )


def _log_corrections(name: str, corrections: list[DataQualityWarning]) -> None:
    for warning in corrections:
        _logger.info("Data-quality correction for %s: %s", name, warning.message)
