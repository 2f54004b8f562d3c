"""Word lists that steer the recipe text parser.

Whether `salsa (1 tomato, 1 jalapeño, cilantro)` is a sub-recipe or
`chicken (boneless, skinless, breast)` is a described ingredient is decided
by scoring the parenthetical against these lists. They are product tuning,
so callers can pass their own `ParserVocabulary`.
"""

import re
from dataclasses import dataclass, field
from functools import cached_property

DESCRIPTOR_WORDS: tuple[str, ...] = (
    "boneless",
    "skinless",
    "fresh",
    "raw",
    "cooked",
    "dried",
    "frozen",
    "canned",
    "organic",
    "chopped",
    "diced",
    "minced",
    "sliced",
    "shredded",
    "grated",
    "whole",
    "ground",
    "breast",
    "thigh",
    "leg",
    "wing",
    "fillet",
    "loin",
    "rib",
    "back",
    "neck",
    "shoulder",
)

FOOD_WORDS: tuple[str, ...] = (
    "tomato",
    "onion",
    "garlic",
    "pepper",
    "oil",
    "water",
    "salt",
    "sugar",
    "flour",
    "cheese",
    "meat",
    "chicken",
    "beef",
    "pork",
    "fish",
    "rice",
    "bean",
    "carrot",
    "celery",
    "basil",
    "cilantro",
    "parsley",
    "egg",
    "milk",
    "cream",
    "butter",
    "sauce",
    "broth",
    "stock",
    "jalapeño",
    "jalapeno",
    "lime",
    "lemon",
)

INFORMATIONAL_PREFIXES: tuple[str, ...] = (
    "about",
    "approximately",
    "approx",
    "roughly",
    "around",
    "optional",
    "to taste",
    "as needed",
    "or more",
    "or less",
    "plus more",
    "divided",
)

MEASURE_WORDS: tuple[str, ...] = (
    "cup",
    "tbsp",
    "tsp",
    "tablespoon",
    "teaspoon",
    "oz",
    "ounce",
    "pound",
    "lb",
    "gram",
    "kg",
    "ml",
    "liter",
)

VAGUE_UNITS: tuple[str, ...] = ("some", "handful", "splash", "bunch", "bit")

HIGH_VARIATION: dict[str, tuple[str, ...]] = {
    "tomato": (
        "cherry tomato",
        "grape tomato",
        "roma tomato",
        "medium tomato",
        "large tomato",
        "beefsteak tomato",
        "heirloom tomato",
    ),
    "potato": (
        "small potato",
        "medium potato",
        "large potato",
        "russet potato",
        "red potato",
        "yukon gold potato",
        "fingerling potato",
    ),
    "onion": (
        "small onion",
        "medium onion",
        "large onion",
        "pearl onion",
        "shallot",
        "red onion",
        "white onion",
        "yellow onion",
    ),
    "apple": (
        "small apple",
        "medium apple",
        "large apple",
        "granny smith apple",
        "fuji apple",
        "honeycrisp apple",
        "gala apple",
    ),
    "pepper": (
        "bell pepper",
        "red bell pepper",
        "green bell pepper",
        "jalapeño pepper",
        "serrano pepper",
        "poblano pepper",
    ),
    "carrot": ("baby carrot", "medium carrot", "large carrot"),
    "orange": (
        "small orange",
        "medium orange",
        "large orange",
        "navel orange",
        "blood orange",
    ),
    "banana": ("small banana", "medium banana", "large banana"),
    "zucchini": ("small zucchini", "medium zucchini", "large zucchini"),
    "eggplant": (
        "small eggplant",
        "medium eggplant",
        "large eggplant",
        "japanese eggplant",
    ),
}


def _word_pattern(words: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(word) for word in sorted(words, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})(?:es|s)?\b", re.IGNORECASE)


@dataclass(frozen=True)
class ParserVocabulary:
    """Tunable word lists for the recipe text parser."""

    descriptor_words: tuple[str, ...] = DESCRIPTOR_WORDS
    food_words: tuple[str, ...] = FOOD_WORDS
    informational_prefixes: tuple[str, ...] = INFORMATIONAL_PREFIXES
    measure_words: tuple[str, ...] = MEASURE_WORDS
    vague_units: tuple[str, ...] = VAGUE_UNITS
    high_variation: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(HIGH_VARIATION)
    )

    @cached_property
    def descriptor_pattern(self) -> re.Pattern[str]:
        return _word_pattern(self.descriptor_words)

    @cached_property
    def food_pattern(self) -> re.Pattern[str]:
        return _word_pattern(self.food_words)

    @cached_property
    def measure_pattern(self) -> re.Pattern[str]:
        return _word_pattern(self.measure_words)

    @cached_property
    def informational_pattern(self) -> re.Pattern[str]:
        alternatives = "|".join(re.escape(prefix) for prefix in self.informational_prefixes)
        return re.compile(rf"^(?:{alternatives})\b", re.IGNORECASE)

    def is_informational(self, text: str) -> bool:
        return bool(self.informational_pattern.match(text.strip()))

    def variation_for(self, name: str) -> tuple[str, tuple[str, ...]] | None:
        """Return (base, varieties) when a name needs a variety or size."""
        lowered = name.lower()
        for base, varieties in self.high_variation.items():
            if not re.search(rf"\b{re.escape(base)}(?:es|s)?\b", lowered):
                continue
            if any(variety in lowered for variety in varieties):
                return None
            return base, varieties
        return None


DEFAULT_VOCABULARY = ParserVocabulary()
