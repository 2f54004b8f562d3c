"""Nutrition facts label formatting."""

import math

from nutrition_labels.domain.labels import LabelLine, LabelModel
from nutrition_labels.domain.nutrients import NutrientProfile
from nutrition_labels.errors import ValidationError
from nutrition_labels.services.calculator import scale_to_serving
from nutrition_labels.services.rounding import percent_daily_value, round_nutrient

# (field, label, indent) in the order a nutrition facts panel lists them.
PANEL_LINES: tuple[tuple[str, str, int], ...] = (
    ("total_fat", "Total Fat", 0),
    ("saturated_fat", "Saturated Fat", 1),
    ("trans_fat", "Trans Fat", 1),
    ("cholesterol", "Cholesterol", 0),
    ("sodium", "Sodium", 0),
    ("total_carbohydrate", "Total Carbohydrate", 0),
    ("dietary_fiber", "Dietary Fiber", 1),
    ("total_sugars", "Total Sugars", 1),
    ("added_sugars", "Includes Added Sugars", 2),
    ("protein", "Protein", 0),
    ("vitamin_d", "Vitamin D", 0),
    ("calcium", "Calcium", 0),
    ("iron", "Iron", 0),
    ("potassium", "Potassium", 0),
)
SUPPLEMENTARY_LINES: tuple[tuple[str, str], ...] = (
    ("vitamin_a", "Vitamin A"),
    ("vitamin_c", "Vitamin C"),
    ("vitamin_e", "Vitamin E"),
    ("vitamin_k", "Vitamin K"),
    ("thiamin", "Thiamin"),
    ("riboflavin", "Riboflavin"),
    ("niacin", "Niacin"),
    ("vitamin_b6", "Vitamin B6"),
    ("folate", "Folate"),
    ("vitamin_b12", "Vitamin B12"),
    ("magnesium", "Magnesium"),
    ("phosphorus", "Phosphorus"),
    ("zinc", "Zinc"),
    ("copper", "Copper"),
    ("manganese", "Manganese"),
    ("selenium", "Selenium"),
)


def format_label(
    profile: NutrientProfile,
    serving_size_grams: float,
    servings_per_container: float,
    serving_size_description: str | None = None,
) -> LabelModel:
    """Scale a per-100 g profile to one serving and round it for display."""
    _require_positive("Serving size", serving_size_grams)
    _require_positive("Servings per container", servings_per_container)
    serving = scale_to_serving(profile, serving_size_grams)

    def line(name: str, label: str, indent: int = 0) -> LabelLine:
        rounded = round_nutrient(name, getattr(serving, name))
        return LabelLine(
            nutrient=name,
            label=label,
            display_value=rounded.display_value,
            rounded_number=rounded.rounded_number,
            percent_daily_value=percent_daily_value(name, rounded.rounded_number),
            indent=indent,
        )

    return LabelModel(
        serving_size_grams=serving_size_grams,
        servings_per_container=servings_per_container,
        serving_size_description=serving_size_description,
        calories=line("calories", "Calories"),
        lines=[line(name, label, indent) for name, label, indent in PANEL_LINES],
        supplementary_lines=[line(name, label) for name, label in SUPPLEMENTARY_LINES],
    )


def _require_positive(label: str, value: float) -> None:
    if isinstance(value, bool) or not math.isfinite(value) or value <= 0:
        raise ValidationError(f"{label} must be greater than 0, got {value}")
