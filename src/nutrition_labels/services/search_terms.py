"""Search query cleaning, variant generation and candidate ranking."""

import re

from nutrition_labels.domain.nutrition import FoodSummary

MAX_QUERY_LENGTH = 200
MAX_VARIANTS = 10

_DESCRIPTORS = re.compile(
    r"\b(fresh|raw|cooked|dried|frozen|canned|chopped|diced|minced|sliced|"
    r"shredded|grated|julienned|organic|free-range|grass-fed|wild-caught|extra|"
    r"virgin|pure|natural|whole|part-skim|low-fat|non-fat|reduced-fat|unsalted|"
    r"salted|sweetened|unsweetened)\b"
)
_BRACKETED = re.compile(r"\([^)]*\)|\[[^\]]*\]|\{[^}]*\}")
_QUOTES = re.compile("[\"'“”‘’]")
_MARKS = re.compile("[™®©]")

SUBSTITUTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bboneless\s+skinless\s+chicken\b"), "chicken breast"),
    (re.compile(r"\bground\s+beef\b"), "beef ground"),
    (re.compile(r"\bheavy\s+cream\b"), "cream"),
    (re.compile(r"\bsour\s+cream\b"), "cream sour"),
    (re.compile(r"\ball\s+purpose\s+flour\b"), "flour wheat"),
    (re.compile(r"\bbrown\s+sugar\b"), "sugar brown"),
    (re.compile(r"\bwhite\s+sugar\b"), "sugar"),
)

# Specialty words that push a candidate down unless the query asks for them.
SPECIALTY_TERMS: tuple[str, ...] = (
    "almond",
    "coconut",
    "amaranth",
    "barley",
    "rye",
    "spelt",
    "cassava",
    "tapioca",
    "chickpea",
    "soy",
    "lentil",
    "quinoa",
    "buckwheat",
    "sorghum",
    "millet",
    "semolina",
    "sauce",
)
PROCESSED_TERMS: tuple[str, ...] = ("dried", "powder", "dehydrated")
DATA_TYPE_SCORES: dict[str, int] = {
    "Foundation": 150,
    "SR Legacy": 120,
    "Survey (FNDDS)": 40,
    "Branded": -80,
}


def clean_search_query(ingredient: str) -> str:
    """Strip descriptors and punctuation that hurt food-database matches."""
    text = ingredient.lower()
    text = _MARKS.sub("", text)
    text = _BRACKETED.sub("", text)
    text = text.replace("/", " ")
    text = re.sub(r"\s*&\s*", " and ", text)
    text = re.sub("[—–,]", " ", text)
    text = _QUOTES.sub("", text)
    text = re.sub(r"[+*#@!?°%]", " ", text)
    text = re.sub(r"\.(?!\d)", " ", text)
    text = _DESCRIPTORS.sub("", text)
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"-+", "-", text).strip()
    result = text or ingredient.lower().strip()
    return result[:MAX_QUERY_LENGTH].strip()


def search_variants(ingredient: str) -> list[str]:
    """Return progressively looser queries to try, most specific first."""
    original = ingredient.lower().strip()
    if not original:
        return []
    variants: list[str] = []

    def add(candidate: str) -> None:
        candidate = candidate.strip()
        if candidate and candidate not in variants:
            variants.append(candidate)

    cleaned = clean_search_query(ingredient)
    add(cleaned)
    add(re.sub(r"\s+", " ", _QUOTES.sub("", _MARKS.sub("", original))))
    add(clean_search_query(re.split(r"[,;]", original)[0]))

    words = cleaned.split()
    if len(words) >= 2:
        add(" ".join(words[-2:]))
    if len(words) >= 3:
        add(" ".join(words[-3:]))
    if len(words) >= 2 and len(words[-1]) > 2:
        add(words[-1])

    for variant in list(variants[:3]):
        if variant.endswith("s") and len(variant) > 3:
            add(variant[:-1])
        elif not variant.endswith("s"):
            add(variant + "s")

    for pattern, replacement in SUBSTITUTIONS:
        substituted = pattern.sub(replacement, cleaned)
        if substituted != cleaned:
            add(substituted)

    return variants[:MAX_VARIANTS]


def score_candidate(query: str, food: FoodSummary) -> int:
    """Score a search hit, preferring generic reference foods."""
    query = query.lower()
    description = food.description.lower()
    score = 0
    if "all-purpose" in description or "all purpose" in description:
        score += 100
    if "raw" in description or "fresh" in description:
        score += 30
    for term in SPECIALTY_TERMS:
        if term in description and term not in query:
            score -= 100
    for term in PROCESSED_TERMS:
        if term in description and term not in query:
            score -= 60
    if "organic" in description and "organic" not in query:
        score -= 40
    score += DATA_TYPE_SCORES.get(food.data_type or "", 0)
    if len(description) < 30:
        score += 20
    elif len(description) > 60:
        score -= 20
    return score


def rank_candidates(query: str, foods: list[FoodSummary]) -> list[FoodSummary]:
    """Sort foods best match first; ties keep database order."""
    return sorted(foods, key=lambda food: score_candidate(query, food), reverse=True)
