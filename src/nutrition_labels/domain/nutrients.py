"""Nutrient profile domain model and data-quality checks."""

import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields, replace


@dataclass(frozen=True)
class NutrientProfile:
    """Nutrient amounts per 100 g of food.

    Energy is in kcal; macronutrients in g; cholesterol, sodium and most
    minerals in mg; vitamin A/D/K, folate, B12 and selenium in mcg.
    """

    calories: float = 0.0
    total_fat: float = 0.0
    saturated_fat: float = 0.0
    trans_fat: float = 0.0
    cholesterol: float = 0.0
    sodium: float = 0.0
    total_carbohydrate: float = 0.0
    dietary_fiber: float = 0.0
    total_sugars: float = 0.0
    added_sugars: float = 0.0
    protein: float = 0.0
    vitamin_d: float = 0.0
    vitamin_a: float = 0.0
    vitamin_c: float = 0.0
    vitamin_e: float = 0.0
    vitamin_k: float = 0.0
    thiamin: float = 0.0
    riboflavin: float = 0.0
    niacin: float = 0.0
    vitamin_b6: float = 0.0
    folate: float = 0.0
    vitamin_b12: float = 0.0
    calcium: float = 0.0
    iron: float = 0.0
    magnesium: float = 0.0
    phosphorus: float = 0.0
    potassium: float = 0.0
    zinc: float = 0.0
    copper: float = 0.0
    manganese: float = 0.0
    selenium: float = 0.0

    def scaled(self, factor: float) -> "NutrientProfile":
        """Return a profile with every field multiplied by factor."""
        return NutrientProfile(
            **{name: getattr(self, name) * factor for name in NUTRIENT_FIELDS}
        )

    def plus(self, other: "NutrientProfile") -> "NutrientProfile":
        """Return the field-wise sum of two profiles."""
        return NutrientProfile(
            **{
                name: getattr(self, name) + getattr(other, name)
                for name in NUTRIENT_FIELDS
            }
        )

    def as_dict(self) -> dict[str, float]:
        """Return the profile as a plain mapping."""
        return asdict(self)

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, object], *, source: str = "profile"
    ) -> tuple["NutrientProfile", list["DataQualityWarning"]]:
        """Build a profile from untyped data, zeroing and flagging bad fields."""
        values: dict[str, float] = {}
        warnings: list[DataQualityWarning] = []
        for name in NUTRIENT_FIELDS:
            if name not in data or data[name] is None:
                warnings.append(
                    DataQualityWarning(
                        kind="missing_nutrient",
                        message=f"{source}: {name} missing, using 0",
                        corrected_value=0.0,
                    )
                )
                values[name] = 0.0
                continue
            value = _coerce(data[name])
            if value is None or not math.isfinite(value) or value < 0:
                warnings.append(
                    DataQualityWarning(
                        kind="invalid_value",
                        message=f"{source}: {name} has invalid value {data[name]!r}, using 0",
                        corrected_value=0.0,
                    )
                )
                values[name] = 0.0
                continue
            values[name] = value
        return cls(**values), warnings


NUTRIENT_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(NutrientProfile))


@dataclass(frozen=True)
class DataQualityWarning:
    """Non-fatal anomaly found in nutrient data."""

    kind: str
    message: str
    original_value: float | None = None
    corrected_value: float | None = None

    def __str__(self) -> str:
        return self.message


# Per-100 g ceilings above which a value is almost certainly a data error.
PLAUSIBLE_MAXIMUMS: dict[str, float] = {
    "calories": 900.0,
    "total_fat": 100.0,
    "protein": 100.0,
    "total_carbohydrate": 100.0,
    "sodium": 40000.0,
    "cholesterol": 3000.0,
}


def sanitize_profile(
    profile: NutrientProfile, *, source: str = "profile"
) -> tuple[NutrientProfile, list[DataQualityWarning]]:
    """Clamp NaN, infinite and negative values to zero."""
    warnings: list[DataQualityWarning] = []
    changes: dict[str, float] = {}
    for name in NUTRIENT_FIELDS:
        value = getattr(profile, name)
        if math.isfinite(value) and value >= 0:
            continue
        changes[name] = 0.0
        warnings.append(
            DataQualityWarning(
                kind="invalid_value",
                message=f"{source}: {name} was {value}, clamped to 0",
                original_value=value,
                corrected_value=0.0,
            )
        )
    if not changes:
        return profile, warnings
    return replace(profile, **changes), warnings


def audit_profile(
    profile: NutrientProfile, *, source: str = "profile"
) -> tuple[NutrientProfile, list[DataQualityWarning]]:
    """Correct impossible relationships between nutrient fields.

    Sugars can't exceed carbohydrate, added sugars can't exceed total sugars,
    fiber can't exceed carbohydrate, and saturated or trans fat can't exceed
    total fat. Near-pure carbohydrate foods reported with zero sugar (a known
    gap in some database entries) get their sugar inferred.
    """
    warnings: list[DataQualityWarning] = []
    values = profile.as_dict()

    def cap(field: str, limit_field: str, kind: str, label: str, limit_label: str) -> None:
        value = values[field]
        limit = values[limit_field]
        if limit > 0 and value > limit:
            warnings.append(
                DataQualityWarning(
                    kind=kind,
                    message=(
                        f"{source}: {label} ({value:.1f}g) exceeds {limit_label} "
                        f"({limit:.1f}g), corrected to {limit:.1f}g"
                    ),
                    original_value=value,
                    corrected_value=limit,
                )
            )
            values[field] = limit

    if values["total_sugars"] == 0 and values["total_carbohydrate"] >= 95:
        carbs = values["total_carbohydrate"]
        warnings.append(
            DataQualityWarning(
                kind="missing_sugar",
                message=(
                    f"{source}: sugar missing, inferred {carbs:.1f}g "
                    "from carbohydrate content"
                ),
                original_value=0.0,
                corrected_value=carbs,
            )
        )
        values["total_sugars"] = carbs
        values["added_sugars"] = carbs

    cap("total_sugars", "total_carbohydrate", "sugar_exceeds_carbs", "sugar", "carbohydrate")
    if values["added_sugars"] > values["total_carbohydrate"] > 0:
        values["added_sugars"] = values["total_carbohydrate"]
    cap(
        "added_sugars",
        "total_sugars",
        "added_sugar_exceeds_total",
        "added sugar",
        "total sugar",
    )
    cap("dietary_fiber", "total_carbohydrate", "fiber_exceeds_carbs", "fiber", "carbohydrate")
    cap(
        "saturated_fat",
        "total_fat",
        "saturated_fat_exceeds_total",
        "saturated fat",
        "total fat",
    )
    cap("trans_fat", "total_fat", "trans_fat_exceeds_total", "trans fat", "total fat")

    if not warnings:
        return profile, warnings
    return NutrientProfile(**values), warnings


def flag_extreme_values(
    profile: NutrientProfile, *, source: str = "profile"
) -> list[DataQualityWarning]:
    """Return warnings for per-100 g values above plausible maximums."""
    warnings: list[DataQualityWarning] = []
    for name, maximum in PLAUSIBLE_MAXIMUMS.items():
        value = getattr(profile, name)
        if value > maximum:
            warnings.append(
                DataQualityWarning(
                    kind="extreme_value",
                    message=(
                        f"{source}: {name} is {value:.1f} per 100g, above the "
                        f"plausible maximum of {maximum:g}; verify ingredient data"
                    ),
                    original_value=value,
                )
            )
    return warnings


def _coerce(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None
