"""Supabase implementations for recipe persistence."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from nutrition_labels.adapters.recipe_codec import (
    decode_allergens,
    decode_ingredients,
    decode_profile,
    encode_allergens,
    encode_ingredients,
    encode_profile,
)
from nutrition_labels.domain.recipes import FinalDish, SubRecipe
from nutrition_labels.errors import StoredDataError
from nutrition_labels.services.recipes import FinalDishRepository
from nutrition_labels.services.resolver import ConversionRepository, SubRecipeRepository


@dataclass
class SupabaseSubRecipeRepository(SubRecipeRepository):
    """Supabase-backed repository for sub-recipes."""

    client: Client

    def create(self, sub_recipe: SubRecipe) -> SubRecipe:
        """Insert a sub-recipe and return the stored row."""
        response = (
            self.client.table("sub_recipes").insert(_sub_recipe_payload(sub_recipe)).execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create sub-recipe")
        return _parse_sub_recipe(response.data[0])

    def update(self, sub_recipe: SubRecipe) -> SubRecipe:
        """Replace a sub-recipe's fields and return the stored row."""
        if sub_recipe.id is None:
            raise ValueError("Cannot update a sub-recipe without an id")
        response = (
            self.client.table("sub_recipes")
            .update(_sub_recipe_payload(sub_recipe))
            .eq("id", sub_recipe.id)
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to update sub-recipe")
        return _parse_sub_recipe(response.data[0])

    def get(self, sub_recipe_id: str) -> SubRecipe | None:
        """Return a sub-recipe by id, if present."""
        response = (
            self.client.table("sub_recipes")
            .select("*")
            .eq("id", sub_recipe_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_sub_recipe(response.data[0])

    def list_all(self) -> list[SubRecipe]:
        """Return all sub-recipes by name."""
        response = self.client.table("sub_recipes").select("*").order("name").execute()
        return [_parse_sub_recipe(row) for row in response.data or []]

    def delete(self, sub_recipe_id: str) -> None:
        """Delete a sub-recipe by id."""
        self.client.table("sub_recipes").delete().eq("id", sub_recipe_id).execute()


@dataclass
class SupabaseFinalDishRepository(FinalDishRepository):
    """Supabase-backed repository for final dishes."""

    client: Client

    def create(self, final_dish: FinalDish) -> FinalDish:
        """Insert a final dish and return the stored row."""
        response = (
            self.client.table("final_dishes")
            .insert(_final_dish_payload(final_dish))
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create final dish")
        return _parse_final_dish(response.data[0])

    def get(self, final_dish_id: str) -> FinalDish | None:
        """Return a final dish by id, if present."""
        response = (
            self.client.table("final_dishes")
            .select("*")
            .eq("id", final_dish_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_final_dish(response.data[0])

    def list_all(self) -> list[FinalDish]:
        """Return all final dishes by name."""
        response = self.client.table("final_dishes").select("*").order("name").execute()
        return [_parse_final_dish(row) for row in response.data or []]

    def delete(self, final_dish_id: str) -> None:
        """Delete a final dish by id."""
        self.client.table("final_dishes").delete().eq("id", final_dish_id).execute()


@dataclass
class SupabaseConversionRepository(ConversionRepository):
    """Supabase-backed custom unit conversions."""

    client: Client

    def get_custom_conversions(self, fdc_id: int) -> dict[str, float]:
        """Return unit -> grams-per-unit for a food."""
        response = (
            self.client.table("custom_conversions")
            .select("unit", "grams_per_unit")
            .eq("fdc_id", fdc_id)
            .execute()
        )
        conversions: dict[str, float] = {}
        for row in response.data or []:
            unit = str(row.get("unit", "")).strip().lower()
            grams = row.get("grams_per_unit")
            if unit and isinstance(grams, int | float) and grams > 0:
                conversions[unit] = float(grams)
        return conversions

    def set_custom_conversion(self, fdc_id: int, unit: str, grams_per_unit: float) -> None:
        """Store or replace a conversion for a food and unit."""
        if grams_per_unit <= 0:
            raise ValueError("grams_per_unit must be greater than 0")
        self.client.table("custom_conversions").upsert(
            {
                "fdc_id": fdc_id,
                "unit": unit.strip().lower(),
                "grams_per_unit": grams_per_unit,
            },
            on_conflict="fdc_id,unit",
        ).execute()


def _sub_recipe_payload(sub_recipe: SubRecipe) -> dict[str, object]:
    return {
        "name": sub_recipe.name,
        "ingredients_json": encode_ingredients(sub_recipe.ingredients),
        "nutrient_profile_json": encode_profile(sub_recipe.nutrient_profile),
        "serving_size_grams": sub_recipe.serving_size_grams,
        "raw_total_weight": sub_recipe.raw_total_weight,
        "final_cooked_weight": sub_recipe.final_cooked_weight,
        "yield_percentage": sub_recipe.yield_percentage,
        "cooking_method": sub_recipe.cooking_method,
    }


def _final_dish_payload(final_dish: FinalDish) -> dict[str, object]:
    return {
        "name": final_dish.name,
        "ingredients_json": encode_ingredients(final_dish.ingredients),
        "nutrient_profile_json": encode_profile(final_dish.nutrient_profile),
        "serving_size_grams": final_dish.serving_size_grams,
        "servings_per_container": final_dish.servings_per_container,
        "serving_size_description": final_dish.serving_size_description,
        "raw_total_weight": final_dish.raw_total_weight,
        "final_cooked_weight": final_dish.final_cooked_weight,
        "yield_percentage": final_dish.yield_percentage,
        "allergens_json": encode_allergens(final_dish.allergens),
        "cooking_method": final_dish.cooking_method,
    }


def _parse_sub_recipe(row: dict[str, object]) -> SubRecipe:
    """Parse a sub_recipes row into a domain model."""
    name = str(row.get("name", ""))
    profile, data_quality = decode_profile(
        row.get("nutrient_profile_json"),
        column="nutrient_profile_json",
        source=f'sub-recipe "{name}"',
    )
    return SubRecipe(
        id=str(row["id"]),
        name=name,
        ingredients=decode_ingredients(row.get("ingredients_json"), column="ingredients_json"),
        nutrient_profile=profile,
        serving_size_grams=float(row.get("serving_size_grams") or 0.0),
        raw_total_weight=float(row.get("raw_total_weight") or 0.0),
        final_cooked_weight=_stored_weight(row),
        cooking_method=row.get("cooking_method"),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
        data_quality=tuple(data_quality),
    )


def _parse_final_dish(row: dict[str, object]) -> FinalDish:
    """Parse a final_dishes row into a domain model."""
    name = str(row.get("name", ""))
    profile, data_quality = decode_profile(
        row.get("nutrient_profile_json"),
        column="nutrient_profile_json",
        source=f'final dish "{name}"',
    )
    return FinalDish(
        id=str(row["id"]),
        name=name,
        ingredients=decode_ingredients(row.get("ingredients_json"), column="ingredients_json"),
        nutrient_profile=profile,
        serving_size_grams=float(row.get("serving_size_grams") or 0.0),
        servings_per_container=float(row.get("servings_per_container") or 0.0),
        serving_size_description=row.get("serving_size_description"),
        raw_total_weight=float(row.get("raw_total_weight") or 0.0),
        final_cooked_weight=_stored_weight(row),
        allergens=decode_allergens(row.get("allergens_json")),
        cooking_method=row.get("cooking_method"),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
        data_quality=tuple(data_quality),
    )


def _stored_weight(row: dict[str, object]) -> float:
    weight = row.get("final_cooked_weight")
    if not isinstance(weight, int | float) or weight <= 0:
        raise StoredDataError(f"Row {row.get('id')} has no usable final_cooked_weight")
    return float(weight)


def _parse_timestamp(raw: object) -> datetime | None:
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None
