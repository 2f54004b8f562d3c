"""Nutrition service integrating USDA FDC."""

import logging
import math
from dataclasses import dataclass, field

from nutrition_labels.adapters.fdc_client import FdcClient
from nutrition_labels.domain.nutrients import (
    NUTRIENT_FIELDS,
    DataQualityWarning,
    NutrientProfile,
    sanitize_profile,
)
from nutrition_labels.domain.nutrition import (
    FoodDetails,
    FoodSummary,
    VariantSearchResult,
)
from nutrition_labels.domain.recipes import FoodPortion
from nutrition_labels.services.cache import Cache
from nutrition_labels.services.retry import RetryPolicy
from nutrition_labels.services.search_terms import rank_candidates, search_variants

# FDC nutrient ids to profile fields.
NUTRIENT_IDS: dict[int, str] = {
    1008: "calories",
    1004: "total_fat",
    1258: "saturated_fat",
    1257: "trans_fat",
    1253: "cholesterol",
    1093: "sodium",
    1005: "total_carbohydrate",
    1079: "dietary_fiber",
    2000: "total_sugars",
    1235: "added_sugars",
    1003: "protein",
    1114: "vitamin_d",
    1106: "vitamin_a",
    1162: "vitamin_c",
    1109: "vitamin_e",
    1185: "vitamin_k",
    1165: "thiamin",
    1166: "riboflavin",
    1167: "niacin",
    1175: "vitamin_b6",
    1190: "folate",
    1178: "vitamin_b12",
    1087: "calcium",
    1089: "iron",
    1090: "magnesium",
    1091: "phosphorus",
    1092: "potassium",
    1095: "zinc",
    1098: "copper",
    1101: "manganese",
    1103: "selenium",
}
# Atwater energy, reported by Foundation foods that lack 1008.
_ENERGY_FALLBACK_IDS = (2047, 2048)
# Fields a label can't be built without; a gap here is worth a warning.
CORE_NUTRIENTS = ("calories", "total_fat", "total_carbohydrate", "protein", "sodium")
FDC_SERVICE = "USDA FoodData Central"

_logger = logging.getLogger(__name__)


@dataclass
class NutritionService:
    """Service for nutrition lookups with caching and retries."""

    fdc_client: FdcClient
    cache: Cache
    search_ttl_seconds: int = 3600
    food_ttl_seconds: int = 86400
    debug: bool = False
    retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(FDC_SERVICE))

    async def search(self, query: str, limit: int = 5) -> list[FoodSummary]:
        """Search FDC foods with caching."""
        cache_key = f"fdc:search:{query.lower()}:{limit}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return cached

        payload = await self.retry.call(
            lambda: self.fdc_client.search_foods(query, page_size=limit),
            action="search",
        )
        foods = [_parse_summary(food) for food in payload.get("foods", [])]
        self.cache.set(cache_key, foods, ttl_seconds=self.search_ttl_seconds)
        if self.debug:
            _logger.info("Nutrition search FDC: query=%s results=%s", query, len(foods))
        return foods

    async def search_with_variants(
        self, ingredient: str, limit: int = 10
    ) -> VariantSearchResult:
        """Try looser queries until one returns foods, then pick the best hit."""
        variants = search_variants(ingredient)
        tried: list[str] = []
        for variant in variants:
            tried.append(variant)
            foods = await self.search(variant, limit=limit)
            if foods:
                best = rank_candidates(variant, foods)[0]
                _logger.info(
                    "Matched %r using variant %r (attempt %s/%s): %s",
                    ingredient,
                    variant,
                    len(tried),
                    len(variants),
                    best.description,
                )
                return VariantSearchResult(
                    food=best, variant_used=variant, variants_tried=tried
                )
        _logger.warning("No FDC match for %r after %s variants", ingredient, len(tried))
        return VariantSearchResult(food=None, variant_used=None, variants_tried=tried)

    async def get_food(self, fdc_id: int) -> FoodDetails:
        """Retrieve a food with its per-100 g profile and portions from FDC."""
        cache_key = f"fdc:food:{fdc_id}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, FoodDetails):
            return cached

        payload = await self.retry.call(
            lambda: self.fdc_client.get_food(fdc_id),
            action=f"get_food:{fdc_id}",
            reference=("food", fdc_id),
        )
        summary = _parse_summary(payload)
        profile, warnings = extract_profile(
            payload.get("foodNutrients", []), source=summary.description or str(fdc_id)
        )
        serving_size = _as_float(payload.get("servingSize"))
        details = FoodDetails(
            summary=summary,
            profile=profile,
            portions=_parse_portions(payload, serving_size),
            serving_size_g=serving_size,
            warnings=tuple(warnings),
        )
        self.cache.set(cache_key, details, ttl_seconds=self.food_ttl_seconds)
        if self.debug:
            _logger.info("Nutrition food FDC: fdc_id=%s", fdc_id)
        return details


def extract_profile(
    food_nutrients: list[dict[str, object]], *, source: str = "food"
) -> tuple[NutrientProfile, list[DataQualityWarning]]:
    """Map FDC nutrient rows onto a profile, zero-filling what is absent."""
    values: dict[str, float] = {}
    fallback_energy: dict[int, float] = {}
    warnings: list[DataQualityWarning] = []
    for nutrient in food_nutrients:
        nutrient_info = nutrient.get("nutrient") or {}
        nutrient_id = nutrient_info.get("id") or nutrient.get("nutrientId")
        amount = nutrient.get("amount", nutrient.get("value"))
        if amount is None:
            continue
        value = _as_float(amount)
        if value is None:
            warnings.append(
                DataQualityWarning(
                    kind="invalid_value",
                    message=f"{source}: nutrient {nutrient_id} has invalid value {amount!r}, using 0",
                    corrected_value=0.0,
                )
            )
            continue
        if nutrient_id in _ENERGY_FALLBACK_IDS:
            fallback_energy[nutrient_id] = value
            continue
        name = NUTRIENT_IDS.get(nutrient_id)
        if name is not None:
            values[name] = value

    if "calories" not in values:
        for nutrient_id in _ENERGY_FALLBACK_IDS:
            if nutrient_id in fallback_energy:
                values["calories"] = fallback_energy[nutrient_id]
                break

    for name in CORE_NUTRIENTS:
        if name not in values:
            warnings.append(
                DataQualityWarning(
                    kind="missing_nutrient",
                    message=f"{source}: {name} not reported, using 0",
                    corrected_value=0.0,
                )
            )
    profile = NutrientProfile(**{name: values.get(name, 0.0) for name in NUTRIENT_FIELDS})
    profile, sanitize_warnings = sanitize_profile(profile, source=source)
    return profile, warnings + sanitize_warnings


def _parse_summary(food: dict[str, object]) -> FoodSummary:
    return FoodSummary(
        fdc_id=food["fdcId"],
        description=food.get("description", ""),
        brand_owner=food.get("brandOwner"),
        brand_name=food.get("brandName"),
        data_type=food.get("dataType"),
    )


def _parse_portions(
    payload: dict[str, object], serving_size: float | None
) -> tuple[FoodPortion, ...]:
    portions: list[FoodPortion] = []
    for row in payload.get("foodPortions") or []:
        measure_unit = row.get("measureUnit") or {}
        amount = _as_float(row.get("amount"))
        gram_weight = _as_float(row.get("gramWeight"))
        portions.append(
            FoodPortion(
                amount=amount if amount else 1.0,
                gram_weight=gram_weight if gram_weight else 100.0,
                modifier=row.get("modifier") or row.get("portionDescription"),
                unit_name=measure_unit.get("name"),
                unit_abbreviation=measure_unit.get("abbreviation"),
            )
        )
    unit = str(payload.get("servingSizeUnit") or "").lower()
    if serving_size and unit in {"g", "grm"}:
        portions.append(
            FoodPortion(amount=1.0, gram_weight=serving_size, unit_name="serving")
        )
    return tuple(portions)


def _as_float(value: object) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
