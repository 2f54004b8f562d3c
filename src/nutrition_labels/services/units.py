"""Quantity to gram conversion.

Lookups go custom conversion, then food-database portion, then the standard
table. Volume units assume water density and the loosely defined units
(pinch, dash, smidgen, egg-size descriptors) are approximations.
"""

import math
import re

from nutrition_labels.domain.recipes import (
    ConversionContext,
    ConversionResult,
    FoodPortion,
)
from nutrition_labels.errors import ValidationError

STANDARD_CONVERSIONS: dict[str, float] = {
    # mass, exact
    "g": 1.0,
    "mg": 0.001,
    "kg": 1000.0,
    "oz": 28.3495,
    "lb": 453.592,
    # volume, water density
    "ml": 1.0,
    "l": 1000.0,
    "tsp": 4.92892,
    "tbsp": 14.7868,
    "fl oz": 29.5735,
    "cup": 236.588,
    "pint": 473.176,
    "quart": 946.353,
    "gallon": 3785.41,
    # approximations
    "pinch": 0.5,
    "dash": 0.6,
    "smidgen": 0.25,
    # single-item size descriptors, based on egg weights
    "small": 25.0,
    "medium": 30.0,
    "large": 33.0,
    "extra-large": 38.0,
    "jumbo": 42.0,
}

UNIT_ALIASES: dict[str, str] = {
    "gram": "g",
    "grams": "g",
    "gr": "g",
    "gm": "g",
    "milligram": "mg",
    "milligrams": "mg",
    "kilogram": "kg",
    "kilograms": "kg",
    "kilo": "kg",
    "kilos": "kg",
    "ounce": "oz",
    "ounces": "oz",
    "pound": "lb",
    "pounds": "lb",
    "lbs": "lb",
    "milliliter": "ml",
    "milliliters": "ml",
    "millilitre": "ml",
    "millilitres": "ml",
    "liter": "l",
    "liters": "l",
    "litre": "l",
    "litres": "l",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "tsps": "tsp",
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "tbsps": "tbsp",
    "tbs": "tbsp",
    "tbl": "tbsp",
    "fluid ounce": "fl oz",
    "fluid ounces": "fl oz",
    "fl oz": "fl oz",
    "floz": "fl oz",
    "c": "cup",
    "pt": "pint",
    "qt": "quart",
    "gal": "gallon",
    "extra large": "extra-large",
    "xl": "extra-large",
    "x-large": "extra-large",
    "lg": "large",
    "med": "medium",
    "sm": "small",
}

COUNT_UNITS: frozenset[str] = frozenset(
    {
        "item",
        "whole",
        "piece",
        "each",
        "clove",
        "slice",
        "can",
        "package",
        "bunch",
        "head",
        "stalk",
        "sprig",
        "leaf",
        "stick",
        "serving",
        "portion",
    }
)

_COUNT_ESTIMATE_GRAMS = 150.0
_TO_TASTE_GRAMS = 1.0
_UNKNOWN_ESTIMATE_GRAMS = 50.0

_WHITESPACE = re.compile(r"\s+")


def normalize_unit(unit: str) -> str:
    """Fold case, whitespace, trailing periods, plurals and aliases."""
    text = _WHITESPACE.sub(" ", unit.strip().lower()).replace(".", "").strip()
    if text in UNIT_ALIASES:
        return UNIT_ALIASES[text]
    if text in STANDARD_CONVERSIONS or text in COUNT_UNITS:
        return text
    for suffix in ("es", "s"):
        if text.endswith(suffix) and len(text) > len(suffix):
            singular = text[: -len(suffix)]
            if singular in UNIT_ALIASES:
                return UNIT_ALIASES[singular]
            if singular in STANDARD_CONVERSIONS or singular in COUNT_UNITS:
                return singular
    if text == "leaves":
        return "leaf"
    return text


def is_known_unit(unit: str) -> bool:
    """Return True when the standard table can convert the unit."""
    return normalize_unit(unit) in STANDARD_CONVERSIONS


def is_count_unit(unit: str) -> bool:
    return normalize_unit(unit) in COUNT_UNITS


def supported_units() -> list[str]:
    """Return units the standard table converts, in table order."""
    return list(STANDARD_CONVERSIONS)


def convert(
    quantity: float, unit: str, context: ConversionContext | None = None
) -> ConversionResult:
    """Convert a quantity of a unit to grams."""
    if not math.isfinite(quantity) or quantity <= 0:
        raise ValidationError(f"Quantity must be a positive number, got {quantity}")
    normalized = normalize_unit(unit)
    if context is not None:
        for custom_unit, grams_per_unit in context.custom_conversions.items():
            if normalize_unit(custom_unit) == normalized:
                return ConversionResult(
                    grams=quantity * grams_per_unit, confidence="high", source="custom"
                )
        for portion in context.portions:
            if portion.amount > 0 and normalized in _portion_units(portion):
                return ConversionResult(
                    grams=portion.gram_weight / portion.amount * quantity,
                    confidence="high",
                    source="portion",
                )
    factor = STANDARD_CONVERSIONS.get(normalized)
    if factor is not None:
        return ConversionResult(
            grams=quantity * factor, confidence="medium", source="standard"
        )
    return ConversionResult(grams=0.0, confidence="unknown", source="none")


def estimate_grams(quantity: float, unit: str) -> ConversionResult:
    """Return a flat, low-confidence weight for a unit with no conversion."""
    text = unit.strip().lower()
    if text in {"to taste", "as needed"}:
        grams = _TO_TASTE_GRAMS
    elif normalize_unit(unit) in COUNT_UNITS:
        grams = _COUNT_ESTIMATE_GRAMS * quantity
    else:
        grams = _UNKNOWN_ESTIMATE_GRAMS * quantity
    return ConversionResult(grams=grams, confidence="low", source="estimate")


def _portion_units(portion: FoodPortion) -> set[str]:
    names: set[str] = set()
    for value in (portion.unit_name, portion.unit_abbreviation, portion.modifier):
        if not value:
            continue
        names.add(normalize_unit(value))
        head = value.split(",", 1)[0]
        names.add(normalize_unit(head))
        # leading size word, so "medium whole" answers to "medium"
        names.add(normalize_unit(head.split(" ", 1)[0]))
    names.discard("")
    names.discard("undetermined")
    return names
