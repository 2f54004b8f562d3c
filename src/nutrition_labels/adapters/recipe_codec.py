"""JSON text encoding for recipe columns.

Ingredients, nutrient profiles and allergens are stored as JSON strings. Rows
written by older clients use camelCase keys (`fdcId`, `totalFat`), so decoding
accepts both spellings.
"""

import json
import logging
import re

from nutrition_labels.domain.nutrients import (
    NUTRIENT_FIELDS,
    DataQualityWarning,
    NutrientProfile,
)
from nutrition_labels.domain.recipes import Ingredient
from nutrition_labels.errors import StoredDataError, ValidationError

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_KEY_ALIASES = {
    "carbohydrates": "total_carbohydrate",
    "total_carbohydrates": "total_carbohydrate",
    "fiber": "dietary_fiber",
    "sugars": "total_sugars",
}

_logger = logging.getLogger(__name__)


def encode_ingredients(ingredients: tuple[Ingredient, ...] | list[Ingredient]) -> str:
    payload = []
    for ingredient in ingredients:
        item: dict[str, object] = {
            "name": ingredient.name,
            "quantity": ingredient.quantity,
            "unit": ingredient.unit,
        }
        if ingredient.fdc_id is not None:
            item["fdc_id"] = ingredient.fdc_id
        if ingredient.sub_recipe_id is not None:
            item["sub_recipe_id"] = ingredient.sub_recipe_id
        payload.append(item)
    return json.dumps(payload)


def decode_ingredients(raw: object, *, column: str = "ingredients") -> tuple[Ingredient, ...]:
    items = _load(raw, column, default=[])
    if not isinstance(items, list):
        raise StoredDataError(f"{column} must hold a JSON list")
    ingredients = []
    for item in items:
        if not isinstance(item, dict):
            raise StoredDataError(f"{column} contains a non-object entry: {item!r}")
        fdc_id = item.get("fdc_id", item.get("fdcId"))
        sub_recipe_id = item.get("sub_recipe_id", item.get("subRecipeId"))
        try:
            ingredients.append(
                Ingredient(
                    name=str(item.get("name", "")),
                    quantity=float(item.get("quantity", 0)),
                    unit=str(item.get("unit", "")),
                    fdc_id=int(fdc_id) if fdc_id is not None else None,
                    sub_recipe_id=str(sub_recipe_id) if sub_recipe_id is not None else None,
                )
            )
        except (TypeError, ValueError, ValidationError) as exc:
            raise StoredDataError(f"{column} entry {item!r} is invalid: {exc}") from exc
    return tuple(ingredients)


def encode_profile(profile: NutrientProfile) -> str:
    return json.dumps(profile.as_dict())


def decode_profile(
    raw: object, *, column: str = "nutrient_profile", source: str | None = None
) -> tuple[NutrientProfile, list[DataQualityWarning]]:
    """Decode a stored profile; unknown keys are ignored, bad values zeroed.

    Every zeroed field comes back as a warning naming `source`, or the column
    when no source is given.
    """
    data = _load(raw, column, default={})
    if not isinstance(data, dict):
        raise StoredDataError(f"{column} must hold a JSON object")
    normalized = {_snake_case(str(key)): value for key, value in data.items()}
    normalized = {key: value for key, value in normalized.items() if key in NUTRIENT_FIELDS}
    profile, warnings = NutrientProfile.from_mapping(normalized, source=source or column)
    for warning in warnings:
        _logger.warning("Stored profile: %s", warning.message)
    return profile, warnings


def encode_allergens(allergens: tuple[str, ...] | list[str]) -> str:
    return json.dumps(list(allergens))


def decode_allergens(raw: object) -> tuple[str, ...]:
    data = _load(raw, "allergens", default=[])
    if not isinstance(data, list):
        raise StoredDataError("allergens must hold a JSON list")
    return tuple(str(item) for item in data)


def _load(raw: object, column: str, default: object) -> object:
    if raw is None or raw == "":
        return default
    if not isinstance(raw, str):
        # jsonb columns arrive already decoded
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StoredDataError(f"{column} is not valid JSON: {exc}") from exc


def _snake_case(key: str) -> str:
    snake = _CAMEL_BOUNDARY.sub("_", key).lower()
    return _KEY_ALIASES.get(snake, snake)
