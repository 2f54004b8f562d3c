"""Food database domain models."""

from dataclasses import dataclass, field

from nutrition_labels.domain.nutrients import DataQualityWarning, NutrientProfile
from nutrition_labels.domain.recipes import FoodPortion


@dataclass(frozen=True)
class FoodSummary:
    """Summary information about a food from FDC."""

    fdc_id: int
    description: str
    brand_owner: str | None
    brand_name: str | None
    data_type: str | None


@dataclass(frozen=True)
class FoodDetails:
    """Full food details with a per-100 g nutrient profile."""

    summary: FoodSummary
    profile: NutrientProfile
    portions: tuple[FoodPortion, ...]
    serving_size_g: float | None
    warnings: tuple[DataQualityWarning, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class VariantSearchResult:
    """Outcome of searching with progressively looser queries."""

    food: FoodSummary | None
    variant_used: str | None
    variants_tried: list[str]
