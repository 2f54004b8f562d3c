"""Nutrition label rounding rules and percent daily values."""

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from nutrition_labels.domain.labels import RoundedValue
from nutrition_labels.errors import ValidationError


@dataclass(frozen=True)
class RoundingBand:
    """Values below `below` use this band.

    An increment of 0 displays zero. A `less_than` band displays the phrase and
    keeps the band's lower bound as the numeric value.
    """

    below: float
    increment: float = 0.0
    less_than: float | None = None


@dataclass(frozen=True)
class RoundingRule:
    unit: str
    bands: tuple[RoundingBand, ...]


_ENERGY = RoundingRule(
    unit="",
    bands=(
        RoundingBand(below=5),
        RoundingBand(below=50, increment=5),
        RoundingBand(below=math.inf, increment=10),
    ),
)
_FAT = RoundingRule(
    unit="g",
    bands=(
        RoundingBand(below=0.5),
        RoundingBand(below=5, increment=0.5),
        RoundingBand(below=math.inf, increment=1),
    ),
)
_CHOLESTEROL = RoundingRule(
    unit="mg",
    bands=(
        RoundingBand(below=2),
        RoundingBand(below=5, less_than=5),
        RoundingBand(below=math.inf, increment=5),
    ),
)
_SODIUM = RoundingRule(
    unit="mg",
    bands=(
        RoundingBand(below=5),
        RoundingBand(below=140, increment=5),
        RoundingBand(below=math.inf, increment=10),
    ),
)
_MACRO_GRAMS = RoundingRule(
    unit="g",
    bands=(
        RoundingBand(below=0.5),
        RoundingBand(below=1, less_than=1),
        RoundingBand(below=math.inf, increment=1),
    ),
)
_MACRO_MINERAL = RoundingRule(
    unit="mg",
    bands=(
        RoundingBand(below=5),
        RoundingBand(below=50, increment=5),
        RoundingBand(below=math.inf, increment=10),
    ),
)
_TRACE_MG = RoundingRule(
    unit="mg",
    bands=(
        RoundingBand(below=0.01),
        RoundingBand(below=1, increment=0.01),
        RoundingBand(below=math.inf, increment=0.1),
    ),
)
_MICROGRAM = RoundingRule(
    unit="mcg",
    bands=(
        RoundingBand(below=0.05),
        RoundingBand(below=10, increment=0.1),
        RoundingBand(below=math.inf, increment=1),
    ),
)

ROUNDING_RULES: dict[str, RoundingRule] = {
    "calories": _ENERGY,
    "total_fat": _FAT,
    "saturated_fat": _FAT,
    "trans_fat": _FAT,
    "cholesterol": _CHOLESTEROL,
    "sodium": _SODIUM,
    "total_carbohydrate": _MACRO_GRAMS,
    "dietary_fiber": _MACRO_GRAMS,
    "total_sugars": _MACRO_GRAMS,
    "added_sugars": _MACRO_GRAMS,
    "protein": _MACRO_GRAMS,
    "vitamin_d": _MICROGRAM,
    "vitamin_a": _MICROGRAM,
    "vitamin_c": _TRACE_MG,
    "vitamin_e": _TRACE_MG,
    "vitamin_k": _MICROGRAM,
    "thiamin": _TRACE_MG,
    "riboflavin": _TRACE_MG,
    "niacin": _TRACE_MG,
    "vitamin_b6": _TRACE_MG,
    "folate": _MICROGRAM,
    "vitamin_b12": _MICROGRAM,
    "calcium": _MACRO_MINERAL,
    "iron": _TRACE_MG,
    "magnesium": _MACRO_MINERAL,
    "phosphorus": _MACRO_MINERAL,
    "potassium": _MACRO_MINERAL,
    "zinc": _TRACE_MG,
    "copper": _TRACE_MG,
    "manganese": _TRACE_MG,
    "selenium": _MICROGRAM,
}

# Reference daily intakes for a 2,000 calorie diet, in each nutrient's label unit.
DAILY_VALUES: dict[str, float] = {
    "total_fat": 78,
    "saturated_fat": 20,
    "cholesterol": 300,
    "sodium": 2300,
    "total_carbohydrate": 275,
    "dietary_fiber": 28,
    "added_sugars": 50,
    "protein": 50,
    "vitamin_d": 20,
    "vitamin_a": 900,
    "vitamin_c": 90,
    "vitamin_e": 15,
    "vitamin_k": 120,
    "thiamin": 1.2,
    "riboflavin": 1.3,
    "niacin": 16,
    "vitamin_b6": 1.7,
    "folate": 400,
    "vitamin_b12": 2.4,
    "calcium": 1300,
    "iron": 18,
    "magnesium": 420,
    "phosphorus": 1250,
    "potassium": 4700,
    "zinc": 11,
    "copper": 0.9,
    "manganese": 2.3,
    "selenium": 55,
}

_NAME_INDEX = {name.replace("_", ""): name for name in ROUNDING_RULES}


def canonical_nutrient(name: str) -> str:
    """Map `totalFat`, `total_fat` or `Total Fat` to the profile field name."""
    key = "".join(ch for ch in name.lower() if ch.isalnum())
    try:
        return _NAME_INDEX[key]
    except KeyError:
        raise ValidationError(f"Unknown nutrient: {name}") from None


def round_nutrient(name: str, raw: float) -> RoundedValue:
    """Round a raw per-serving amount the way a nutrition label displays it."""
    rule = ROUNDING_RULES[canonical_nutrient(name)]
    if not math.isfinite(raw):
        raise ValidationError(f"Cannot round non-finite value for {name}: {raw}")
    value = max(raw, 0.0)
    lower = 0.0
    for band in rule.bands:
        if value < band.below:
            break
        lower = band.below
    if band.less_than is not None:
        return RoundedValue(
            display_value=f"Less than {_format(band.less_than, rule.unit)}",
            rounded_number=lower,
        )
    if band.increment == 0:
        return RoundedValue(display_value=_format(0, rule.unit), rounded_number=0.0)
    rounded = _round_half_up(value, band.increment)
    return RoundedValue(
        display_value=_format(rounded, rule.unit), rounded_number=rounded
    )


def percent_daily_value(name: str, rounded: float) -> int | None:
    """Return the whole-number %DV, or None when there is no reference intake."""
    reference = DAILY_VALUES.get(canonical_nutrient(name))
    if reference is None:
        return None
    if not math.isfinite(rounded) or rounded <= 0:
        return 0
    return int(_round_half_up(rounded / reference * 100, 1))


def _round_half_up(value: float, increment: float) -> float:
    step = Decimal(str(increment))
    steps = (Decimal(repr(value)) / step).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return float(steps * step)


def _format(number: float, unit: str) -> str:
    if float(number).is_integer():
        text = str(int(number))
    else:
        text = f"{number:.2f}".rstrip("0").rstrip(".")
    return f"{text} {unit}" if unit else text
