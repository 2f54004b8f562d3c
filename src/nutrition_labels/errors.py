"""Error taxonomy for the nutrition calculation pipeline."""

from collections.abc import Sequence


class NutritionLabelError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(NutritionLabelError):
    """Raised for bad caller input. Never retried."""


class ReferenceInUseError(ValidationError):
    """Raised when deleting a sub-recipe that other recipes still reference."""

    def __init__(self, sub_recipe_id: str, referenced_by: Sequence[str]) -> None:
        self.sub_recipe_id = sub_recipe_id
        self.referenced_by = list(referenced_by)
        names = ", ".join(self.referenced_by)
        super().__init__(
            f"Sub-recipe {sub_recipe_id} is still used by: {names}. "
            "Remove it from those recipes first."
        )


class ReferenceNotFoundError(NutritionLabelError):
    """Raised when an ingredient points at a food or sub-recipe that is gone."""

    def __init__(
        self,
        kind: str,
        reference_id: str | int,
        ingredient_name: str | None = None,
    ) -> None:
        self.kind = kind
        self.reference_id = reference_id
        self.ingredient_name = ingredient_name
        target = f"{kind} {reference_id}"
        if ingredient_name:
            message = (
                f'Ingredient "{ingredient_name}" references missing {target}. '
                "Search for the ingredient again to fix the reference."
            )
        else:
            message = f"Missing {target}"
        super().__init__(message)


class CircularReferenceError(NutritionLabelError):
    """Raised when sub-recipes reference each other in a loop."""

    def __init__(self, chain: Sequence[str]) -> None:
        self.chain = list(chain)
        super().__init__(
            "Circular sub-recipe reference: " + " -> ".join(self.chain)
        )


class UpstreamUnavailableError(NutritionLabelError):
    """Raised after retries against an external service are exhausted."""

    _HINTS = {
        "rate_limit": "rate limit exceeded, try again later",
        "server_error": "server error, try again later",
        "timeout": "request timed out",
        "network": "network error, check the connection",
        "client_error": "request rejected, check the API key and query",
    }

    def __init__(
        self,
        service: str,
        kind: str,
        attempts: int,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.kind = kind
        self.attempts = attempts
        self.status_code = status_code
        hint = self._HINTS.get(kind, kind)
        super().__init__(f"{service} unavailable after {attempts} attempt(s): {hint}")


class SaveRolledBackError(NutritionLabelError):
    """Raised when a multi-step save failed and its partial writes were undone."""

    def __init__(self, message: str, rolled_back_ids: Sequence[str]) -> None:
        self.rolled_back_ids = list(rolled_back_ids)
        super().__init__(message)


class RollbackFailedError(NutritionLabelError):
    """Raised when undoing a failed save left records behind."""

    def __init__(self, message: str, orphaned_ids: Sequence[str]) -> None:
        self.orphaned_ids = list(orphaned_ids)
        super().__init__(message)


class StoredDataError(NutritionLabelError):
    """Raised when a persisted record cannot be decoded."""
