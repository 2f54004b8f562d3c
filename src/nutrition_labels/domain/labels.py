"""Nutrition label presentation models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RoundedValue:
    """A nutrient value after label rounding."""

    display_value: str
    rounded_number: float


@dataclass(frozen=True)
class LabelLine:
    """One row of a nutrition facts panel."""

    nutrient: str
    label: str
    display_value: str
    rounded_number: float
    percent_daily_value: int | None
    indent: int = 0


@dataclass(frozen=True)
class LabelModel:
    """Render-ready nutrition facts for one serving."""

    serving_size_grams: float
    servings_per_container: float
    calories: LabelLine
    lines: list[LabelLine]
    supplementary_lines: list[LabelLine]
    serving_size_description: str | None = None
