"""Tests for recipe text parsing."""

import pytest

from nutrition_labels.services.parser import (
    RecipeTextParser,
    extract_serving_count,
    parse_number,
    parse_recipe,
    sanitize,
)
from nutrition_labels.services.parser_vocabulary import FOOD_WORDS, ParserVocabulary


def test_ingredient_list_in_parentheses_becomes_sub_recipe() -> None:
    result = parse_recipe("1 cup salsa (1 tomato, 1 jalapeño, cilantro)")

    assert result.ingredients == []
    assert len(result.sub_recipes) == 1
    salsa = result.sub_recipes[0]
    assert salsa.name == "salsa"
    assert salsa.quantity == 1
    assert salsa.unit == "cup"
    assert [item.name for item in salsa.ingredients] == ["tomato", "jalapeño", "cilantro"]
    assert result.errors == []


def test_descriptors_in_parentheses_stay_a_note() -> None:
    result = parse_recipe("1 pound chicken (boneless, skinless, breast)")

    assert result.sub_recipes == []
    assert len(result.ingredients) == 1
    chicken = result.ingredients[0]
    assert chicken.name == "chicken"
    assert chicken.unit == "lb"
    assert chicken.note == "boneless, skinless, breast"


def test_full_recipe_with_title_servings_and_directions() -> None:
    text = "\n".join(
        [
            "Chicken Soup",
            "Serves 4",
            "Ingredients:",
            "• 2 cups chicken broth",
            "1½ cups diced carrots",
            "3 cloves garlic (minced)",
            "Directions",
            "Bring the broth to a boil and add the vegetables, then simmer for twenty "
            "minutes.",
        ]
    )

    result = parse_recipe(text)

    assert result.name == "Chicken Soup"
    assert result.explicit_servings == 4
    assert [item.name for item in result.ingredients] == [
        "chicken broth",
        "diced carrots",
        "garlic",
    ]
    assert [item.quantity for item in result.ingredients] == [2, 1.5, 3]
    assert [item.unit for item in result.ingredients] == ["cup", "cup", "clove"]
    assert result.ingredients[2].note == "minced"
    assert result.errors == []


def test_bad_lines_are_reported_and_the_rest_parsed() -> None:
    text = "\n".join(
        [
            "Test",
            "0 cups flour",
            "-2 cups milk",
            "1/0 cup sugar",
            "200000 g rice",
            "2 cups flour (sifted",
            "1 cup rice ()",
            "1 tbsp butter",
        ]
    )

    result = parse_recipe(text)

    assert [item.name for item in result.ingredients] == ["butter"]
    assert len(result.errors) == 6
    assert any("greater than 0" in error for error in result.errors)
    assert any("zero denominator" in error for error in result.errors)
    assert any("100,000" in error for error in result.errors)
    assert any("unbalanced" in error for error in result.errors)
    assert any("empty parentheses" in error for error in result.errors)


def test_quantity_range_uses_midpoint() -> None:
    result = parse_recipe("Garlic bread\n2-3 cloves garlic")

    assert result.ingredients[0].quantity == 2.5
    assert any("range" in warning for warning in result.warnings)


def test_missing_unit_and_quantity_default_with_warnings() -> None:
    result = parse_recipe("Omelette\n3 eggs\nSalt")

    eggs, salt = result.ingredients
    assert (eggs.quantity, eggs.unit, eggs.name) == (3, "item", "eggs")
    assert (salt.quantity, salt.unit, salt.name) == (1, "item", "Salt")
    assert any("no quantity" in warning for warning in result.warnings)
    assert any('defaulting to "item"' in warning for warning in result.warnings)


def test_high_variation_produce_needs_specification() -> None:
    result = parse_recipe("Salad\n2 tomatoes\n2 roma tomatoes\n1 cup tomato")

    vague, specific, measured = result.ingredients
    assert vague.needs_specification
    assert vague.base_ingredient == "tomato"
    assert "roma tomato" in vague.specification_options
    assert not specific.needs_specification
    assert not measured.needs_specification


def test_nested_parentheses_are_flattened() -> None:
    result = parse_recipe("1 cup sauce (tomato (crushed), garlic)")

    assert result.sub_recipes[0].name == "sauce"
    assert [item.name for item in result.sub_recipes[0].ingredients] == [
        "tomato crushed",
        "garlic",
    ]
    assert any("nested parentheses" in warning for warning in result.warnings)


def test_informational_parenthetical_is_a_note() -> None:
    result = parse_recipe("2 cups rice (about 400 g, cooked)")

    assert result.sub_recipes == []
    assert result.ingredients[0].note == "about 400 g, cooked"


def test_duplicate_sub_recipe_names_warn() -> None:
    result = parse_recipe(
        "Tacos\n1 cup salsa (1 tomato, 1 onion)\n1 cup salsa (2 tomato, 1 lime)"
    )

    assert len(result.sub_recipes) == 2
    assert any("Duplicate sub-recipe" in warning for warning in result.warnings)


def test_long_names_are_truncated() -> None:
    result = parse_recipe("Long\n1 cup " + "x" * 300)

    assert len(result.ingredients[0].name) == 255
    assert any("truncated" in warning for warning in result.warnings)


def test_empty_text() -> None:
    assert parse_recipe("  \n\n ").errors == ["Recipe text is empty"]


def test_title_without_ingredients() -> None:
    result = parse_recipe("Just a title")

    assert result.name == "Just a title"
    assert "at least one ingredient" in result.errors[0]


def test_vocabulary_is_replaceable() -> None:
    line = "1 cup dressing (oil, vinegar)"
    tuned = RecipeTextParser(ParserVocabulary(food_words=FOOD_WORDS + ("vinegar",)))

    assert parse_recipe(line).sub_recipes == []
    assert tuned.parse(line).sub_recipes[0].name == "dressing"


def test_sanitize_strips_markup_and_expands_fractions() -> None:
    assert sanitize("<b>1½ cup</b> milk &amp; honey") == "1 1/2 cup milk & honey"
    assert sanitize("¾\u200b tsp salt") == "3/4 tsp salt"
    assert sanitize("1⁄2 cup") == "1/2 cup"


def test_extract_serving_count() -> None:
    assert extract_serving_count(["Makes:", "12"]) == 12
    assert extract_serving_count(["Yield: 6 servings"]) == 6
    assert extract_serving_count(["1 cup rice"]) is None


@pytest.mark.parametrize(
    ("text", "expected"), [("2", 2), ("1.5", 1.5), ("3/4", 0.75), ("1 1/2", 1.5)]
)
def test_parse_number(text: str, expected: float) -> None:
    assert parse_number(text) == expected
