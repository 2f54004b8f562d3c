"""Tests for search query handling."""

from nutrition_labels.domain.nutrition import FoodSummary
from nutrition_labels.services.search_terms import (
    MAX_VARIANTS,
    clean_search_query,
    rank_candidates,
    search_variants,
)


def _food(fdc_id: int, description: str, data_type: str) -> FoodSummary:
    return FoodSummary(
        fdc_id=fdc_id,
        description=description,
        brand_owner=None,
        brand_name=None,
        data_type=data_type,
    )


def test_clean_search_query_drops_descriptors_and_brackets() -> None:
    assert clean_search_query("Fresh Basil Leaves (chopped)") == "basil leaves"
    assert clean_search_query("Kirkland™ Organic Chicken, boneless") == (
        "kirkland chicken boneless"
    )


def test_clean_search_query_keeps_text_when_everything_is_a_descriptor() -> None:
    assert clean_search_query("Fresh") == "fresh"


def test_search_variants_start_specific_and_loosen() -> None:
    variants = search_variants("boneless skinless chicken")

    assert variants[0] == "boneless skinless chicken"
    assert "chicken" in variants
    assert "chicken breast" in variants
    assert len(variants) == len(set(variants))
    assert len(variants) <= MAX_VARIANTS


def test_search_variants_empty_input() -> None:
    assert search_variants("   ") == []


def test_rank_candidates_prefers_generic_reference_foods() -> None:
    foods = [
        _food(1, "ALMOND FLOUR", "Branded"),
        _food(2, "Wheat flour, white, all-purpose, enriched", "SR Legacy"),
        _food(3, "Flour, coconut, dried", "Foundation"),
    ]

    ranked = rank_candidates("flour", foods)

    assert ranked[0].fdc_id == 2
    assert ranked[-1].fdc_id == 1
