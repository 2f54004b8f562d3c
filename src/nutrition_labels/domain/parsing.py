"""Domain models for parsed recipe text."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ParsedIngredient:
    """An ingredient line read from recipe text."""

    quantity: float
    unit: str
    name: str
    original_line: str
    note: str | None = None
    needs_specification: bool = False
    specification_options: tuple[str, ...] = ()
    base_ingredient: str | None = None


@dataclass(frozen=True)
class ParsedSubRecipe:
    """A line whose parenthetical holds its own ingredient list."""

    name: str
    quantity: float
    unit: str
    ingredients: tuple[ParsedIngredient, ...]
    original_line: str


@dataclass
class ParseResult:
    """Everything read from one block of recipe text."""

    name: str
    ingredients: list[ParsedIngredient] = field(default_factory=list)
    sub_recipes: list[ParsedSubRecipe] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    explicit_servings: int | None = None
