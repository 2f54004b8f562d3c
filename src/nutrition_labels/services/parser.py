"""Best-effort parsing of pasted recipe text.

The first line is the recipe title unless it already reads as an ingredient.
Each remaining line is `[quantity] [unit] name [(parenthetical)]`. A
parenthetical that reads as an ingredient list turns the line into a
sub-recipe; anything else is kept as a note on the ingredient.
"""

import html
import logging
import math
import re
from dataclasses import dataclass

from nutrition_labels.domain.parsing import (
    ParsedIngredient,
    ParsedSubRecipe,
    ParseResult,
)
from nutrition_labels.services.parser_vocabulary import (
    DEFAULT_VOCABULARY,
    ParserVocabulary,
)
from nutrition_labels.services.units import (
    COUNT_UNITS,
    STANDARD_CONVERSIONS,
    normalize_unit,
)

MAX_QUANTITY = 100_000
MAX_NAME_LENGTH = 255
MAX_SERVINGS = 1000
DEFAULT_TITLE = "Untitled recipe"

_logger = logging.getLogger(__name__)

_UNICODE_FRACTIONS = {
    "¼": "1/4",
    "½": "1/2",
    "¾": "3/4",
    "⅐": "1/7",
    "⅑": "1/9",
    "⅒": "1/10",
    "⅓": "1/3",
    "⅔": "2/3",
    "⅕": "1/5",
    "⅖": "2/5",
    "⅗": "3/5",
    "⅘": "4/5",
    "⅙": "1/6",
    "⅚": "5/6",
    "⅛": "1/8",
    "⅜": "3/8",
    "⅝": "5/8",
    "⅞": "7/8",
}
_FRACTION_CHARS = re.compile(rf"(\d)?\s*([{''.join(_UNICODE_FRACTIONS)}])")
_TAGS = re.compile(r"<[^>]*>")
_INVISIBLE = re.compile(r"[\u200b-\u200d\ufeff\u00ad]")
_PRIVATE_USE = re.compile(r"^[\ue000-\uf8ff]+\s*")
_BULLET = re.compile(
    r"^(?:[\u2022\u2023\u25e6\u2043\u2219\u25cb\u25cf\u25aa\u25ab\u25a0\u25a1"
    r"\u2192\u203a\u00bb*+]|-(?=\s))\s*"
)
_NUMBERED = re.compile(r"^\d+[.)]\s+")
_SPACES = re.compile(r"[ \t\u00a0\u1680\u2000-\u200a\u202f\u205f\u3000]+")

_NUMBER = r"(?:\d+\s+\d+/\d+|\d+/\d+|\d+(?:\.\d+)?|\.\d+)"
_QUANTITY = re.compile(
    rf"^(?P<sign>-)?(?P<value>{_NUMBER})"
    rf"(?:\s*(?:-|–|to)\s*(?P<upper>{_NUMBER}))?(?=\s|$|[a-zA-Z])\s*(?P<rest>.*)$"
)
_LEADING_QUANTITY = re.compile(r"^\s*-?(?:\d|\.\d)")

_SKIP_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^(directions?|instructions?|steps?|method|preparation)\b.*:?$",
        r"^(prep|cook|total) time\b",
        r"^(source|from|recipe (from|by|courtesy)|adapted from):?$",
        r"^(nutrition|nutritional? info(rmation)?|calories):?$",
        r"^(notes?|tips?|variations?):?$",
        r"^(ingredients?|for the [\w ]+):?$",
        r"^(makes?|serves?|servings?|yield)\b",
        r"^(wash hands|preheat|heat|bake|cook|stir|mix|combine|pour|add|remove)\b",
        r"^(place|set)\b",
        r"\brating",
        r"add to (cookbook|favorites)",
        r"^\d+\s+(servings?|serves?|portions?|people)$",
    )
)
_SOURCE_HEADER = re.compile(
    r"^(source|from|adapted from|recipe (by|from)|courtesy of):?$", re.IGNORECASE
)
_URL = re.compile(r"^https?://", re.IGNORECASE)
_SERVING_PATTERNS = (
    re.compile(r"^(?:makes?|serves?|servings?|yield)\s*:?\s*(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s+(?:servings?|serves?|portions?|people)\b", re.IGNORECASE),
)
_SERVING_HEADER = re.compile(r"^(?:makes?|serves?|yield):?$", re.IGNORECASE)
_MASHED = re.compile(r"\d+\s*(?:g|gram|oz|cups?|tbsp|tsp|lbs?|kg|ml)\b", re.IGNORECASE)


@dataclass(frozen=True)
class _LineParts:
    quantity: float
    unit: str
    name: str
    groups: list[str]
    ends_with_group: bool


class _LineError(ValueError):
    """A line that can't become an ingredient."""


@dataclass
class RecipeTextParser:
    """Turns pasted recipe text into ingredients and sub-recipes."""

    vocabulary: ParserVocabulary = DEFAULT_VOCABULARY

    def parse(self, text: str) -> ParseResult:
        cleaned = (_clean_line(raw) for raw in sanitize(text).split("\n"))
        lines = [line for line in cleaned if line]
        if not lines:
            return ParseResult(name="", errors=["Recipe text is empty"])

        result = ParseResult(name=DEFAULT_TITLE)
        result.explicit_servings = extract_serving_count(lines)
        if _LEADING_QUANTITY.match(lines[0]):
            body = lines
        else:
            result.name = _truncate(lines[0], "Recipe name", result.warnings)
            body = lines[1:]

        candidates = [
            line
            for index, line in enumerate(body)
            if not self._should_skip(
                line, result.name, body[index - 1] if index else None
            )
        ]
        if not candidates:
            result.errors.append(
                "Recipe must have at least one ingredient. Put each ingredient on "
                "its own line after the recipe name."
            )
            return result

        for line in candidates:
            try:
                self._parse_line(line, result)
            except _LineError as exc:
                result.errors.append(str(exc))
        _logger.debug(
            "Parsed recipe %r: %s ingredients, %s sub-recipes, %s errors",
            result.name,
            len(result.ingredients),
            len(result.sub_recipes),
            len(result.errors),
        )
        return result

    def classify_parenthetical(self, content: str) -> bool:
        """Return True when a parenthetical reads as an ingredient list."""
        if self.vocabulary.is_informational(content):
            return False
        items = [item.strip() for item in content.split(",") if item.strip()]
        if len(items) < 2:
            return False
        ingredient_like = 0
        descriptor_like = 0
        for item in items:
            has_measure = bool(re.search(r"\d", item)) or bool(
                self.vocabulary.measure_pattern.search(item)
            )
            has_food = bool(self.vocabulary.food_pattern.search(item))
            has_descriptor = bool(self.vocabulary.descriptor_pattern.search(item))
            short_adjective = len(item.split()) == 1 and len(item) < 12 and not has_food
            if has_measure or (has_food and not has_descriptor):
                ingredient_like += 1
            elif has_descriptor or short_adjective:
                descriptor_like += 1
        return ingredient_like >= 2 and ingredient_like > descriptor_like

    def _should_skip(self, line: str, title: str, previous: str | None) -> bool:
        lowered = line.lower()
        if lowered == title.lower():
            return True
        if any(pattern.search(lowered) for pattern in _SKIP_PATTERNS):
            return True
        if _URL.match(lowered):
            return True
        words = lowered.split()
        if len(words) > 8 and lowered.endswith((".", "!")):
            return True
        if not re.search(r"\d", line) and len(words) >= 3:
            if len(re.findall(r"\b[A-Z][a-z]+", line)) >= 3:
                return True
        if len(words) == 1 and lowered.endswith(":"):
            return True
        if previous is not None and _SOURCE_HEADER.match(previous.strip()):
            return True
        return False

    def _parse_line(self, line: str, result: ParseResult) -> None:
        if len(_MASHED.findall(line)) > 1 and "(" not in line:
            result.warnings.append(
                f'"{line}" looks like several ingredients on one line; put each '
                "ingredient on its own line"
            )
        parts = self._split_line(line, result.warnings)
        if (
            len(parts.groups) == 1
            and parts.ends_with_group
            and parts.name
            and self.classify_parenthetical(parts.groups[0])
        ):
            self._add_sub_recipe(line, parts, result)
            return
        result.ingredients.append(self._ingredient(line, parts, result.warnings))

    def _add_sub_recipe(self, line: str, parts: _LineParts, result: ParseResult) -> None:
        components: list[ParsedIngredient] = []
        for item in (piece.strip() for piece in parts.groups[0].split(",")):
            if not item:
                continue
            try:
                item_parts = self._split_line(item, result.warnings)
            except _LineError as exc:
                result.errors.append(f'Sub-recipe "{parts.name}": {exc}')
                continue
            components.append(self._ingredient(item, item_parts, result.warnings))
        if not components:
            raise _LineError(f'Sub-recipe "{parts.name}" has no ingredients')
        if any(sub.name.lower() == parts.name.lower() for sub in result.sub_recipes):
            result.warnings.append(
                f'Duplicate sub-recipe name "{parts.name}"; each will be saved separately'
            )
        result.sub_recipes.append(
            ParsedSubRecipe(
                name=parts.name,
                quantity=parts.quantity,
                unit=parts.unit,
                ingredients=tuple(components),
                original_line=line,
            )
        )

    def _ingredient(
        self, line: str, parts: _LineParts, warnings: list[str]
    ) -> ParsedIngredient:
        name = parts.name or line
        note = "; ".join(parts.groups) or None
        variation = None
        if normalize_unit(parts.unit) in COUNT_UNITS:
            variation = self.vocabulary.variation_for(name)
        return ParsedIngredient(
            quantity=parts.quantity,
            unit=parts.unit,
            name=name,
            original_line=line,
            note=note,
            needs_specification=variation is not None,
            specification_options=variation[1] if variation else (),
            base_ingredient=variation[0] if variation else None,
        )

    def _split_line(self, line: str, warnings: list[str]) -> _LineParts:
        text = _check_parentheses(line, warnings)
        quantity, rest = _parse_quantity(text, line, warnings)
        unit, rest = self._parse_unit(rest, line, warnings)
        if rest.lower().startswith("of "):
            rest = rest[3:]

        groups = [group.strip() for group in re.findall(r"\(([^()]*)\)", rest)]
        ends_with_group = rest.rstrip().endswith(")")
        base = re.sub(r"\([^()]*\)", " ", rest)
        base = re.sub(r"\s+", " ", base).strip(" ,;")
        if not base:
            raise _LineError(f'Line "{line}" has no ingredient name')
        return _LineParts(
            quantity=quantity,
            unit=unit,
            name=_truncate(base, "Ingredient name", warnings),
            groups=[group for group in groups if group],
            ends_with_group=ends_with_group,
        )

    def _parse_unit(self, rest: str, line: str, warnings: list[str]) -> tuple[str, str]:
        tokens = rest.split()
        for size in (2, 1):
            if len(tokens) <= size:
                continue
            candidate = normalize_unit(" ".join(tokens[:size]))
            if candidate in STANDARD_CONVERSIONS or candidate in COUNT_UNITS:
                if tokens[0].lower() in self.vocabulary.vague_units:
                    warnings.append(
                        f'"{line}" uses the vague unit "{tokens[0]}"; a cup, spoon or '
                        "weight measure gives a more accurate label"
                    )
                return candidate, " ".join(tokens[size:])
        if tokens and tokens[0].lower() in self.vocabulary.vague_units:
            warnings.append(
                f'"{line}" uses the vague unit "{tokens[0]}"; a cup, spoon or '
                "weight measure gives a more accurate label"
            )
        warnings.append(f'"{line}" has no unit; defaulting to "item"')
        return "item", rest


def parse_recipe(text: str, vocabulary: ParserVocabulary | None = None) -> ParseResult:
    """Parse recipe text with the given or default vocabulary."""
    return RecipeTextParser(vocabulary or DEFAULT_VOCABULARY).parse(text)


def sanitize(text: str) -> str:
    """Strip markup and normalize fractions and invisible characters."""
    cleaned = html.unescape(_TAGS.sub("", text))
    cleaned = _FRACTION_CHARS.sub(_expand_fraction, cleaned)
    cleaned = cleaned.replace("⁄", "/")
    cleaned = _INVISIBLE.sub("", cleaned)
    return cleaned.replace("\r\n", "\n").replace("\r", "\n")


def extract_serving_count(lines: list[str]) -> int | None:
    """Find "Serves 4", "Makes: 12 servings" or a split "Makes:" / "12" pair."""
    for index, line in enumerate(lines):
        for pattern in _SERVING_PATTERNS:
            match = pattern.search(line)
            if match:
                count = int(match.group(1))
                if 0 < count <= MAX_SERVINGS:
                    return count
        if _SERVING_HEADER.match(line) and index + 1 < len(lines):
            match = re.match(r"^(\d+)", lines[index + 1])
            if match and 0 < int(match.group(1)) <= MAX_SERVINGS:
                return int(match.group(1))
    return None


def parse_number(text: str) -> float:
    """Parse `2`, `1.5`, `3/4` or `1 1/2`."""
    total = 0.0
    for part in text.split():
        if "/" in part:
            numerator, denominator = part.split("/", 1)
            if float(denominator) == 0:
                raise ZeroDivisionError(part)
            total += float(numerator) / float(denominator)
        else:
            total += float(part)
    return total


def _parse_quantity(text: str, line: str, warnings: list[str]) -> tuple[float, str]:
    match = _QUANTITY.match(text)
    if match is None:
        warnings.append(f'"{line}" has no quantity; defaulting to 1')
        return 1.0, text
    try:
        quantity = parse_number(match.group("value"))
        if match.group("upper"):
            upper = parse_number(match.group("upper"))
            warnings.append(f'"{line}" gives a range; using the midpoint')
            quantity = (quantity + upper) / 2
    except ZeroDivisionError:
        raise _LineError(f'Line "{line}" has a fraction with a zero denominator') from None
    if match.group("sign"):
        quantity = -quantity
    if not math.isfinite(quantity) or quantity <= 0:
        raise _LineError(f'Line "{line}" must have a quantity greater than 0')
    if quantity > MAX_QUANTITY:
        raise _LineError(
            f'Line "{line}" has quantity {quantity:g}, above the {MAX_QUANTITY:,} limit'
        )
    return quantity, match.group("rest").strip()


def _check_parentheses(line: str, warnings: list[str]) -> str:
    depth = 0
    max_depth = 0
    for char in line:
        if char == "(":
            depth += 1
            max_depth = max(max_depth, depth)
        elif char == ")":
            depth -= 1
            if depth < 0:
                break
    if depth != 0:
        raise _LineError(
            f'Line "{line}" has unbalanced parentheses ({line.count("(")} opening, '
            f'{line.count(")")} closing)'
        )
    if re.search(r"\(\s*\)", line):
        raise _LineError(f'Line "{line}" has empty parentheses')
    if max_depth <= 1:
        return line
    warnings.append(
        f'"{line}" has nested parentheses; only the outer level is used and inner '
        "parentheses are treated as plain text"
    )
    return _flatten_parentheses(line)


def _flatten_parentheses(line: str) -> str:
    output: list[str] = []
    depth = 0
    for char in line:
        if char == "(":
            depth += 1
            if depth == 1:
                output.append(char)
            continue
        if char == ")":
            depth -= 1
            if depth == 0:
                output.append(char)
            continue
        output.append(char)
    return "".join(output)


def _truncate(name: str, label: str, warnings: list[str]) -> str:
    if len(name) <= MAX_NAME_LENGTH:
        return name
    warnings.append(
        f'{label} "{name[:40]}..." is longer than {MAX_NAME_LENGTH} characters '
        "and was truncated"
    )
    return name[:MAX_NAME_LENGTH].rstrip()


def _clean_line(line: str) -> str:
    text = _SPACES.sub(" ", line).strip()
    text = _PRIVATE_USE.sub("", text)
    text = _BULLET.sub("", text)
    text = _NUMBERED.sub("", text)
    return text.strip()


def _expand_fraction(match: re.Match[str]) -> str:
    whole, fraction = match.group(1), _UNICODE_FRACTIONS[match.group(2)]
    return f"{whole} {fraction}" if whole else fraction
