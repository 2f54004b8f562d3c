"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from nutrition_labels.api.models import (
    CalculateRequest,
    FinalDishFromTextRequest,
    FinalDishRequest,
    LabelRequest,
    ParseRequest,
    SubRecipeRequest,
)
from nutrition_labels.app_logging import configure_logging
from nutrition_labels.containers import AppContainer
from nutrition_labels.domain.recipes import CalculationResult, FinalDish, Ingredient, SubRecipe
from nutrition_labels.errors import (
    CircularReferenceError,
    NutritionLabelError,
    ReferenceInUseError,
    ReferenceNotFoundError,
    RollbackFailedError,
    SaveRolledBackError,
    UpstreamUnavailableError,
    ValidationError,
)
from nutrition_labels.services.labels import format_label
from nutrition_labels.services.units import supported_units


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(NutritionLabelError)
    async def handle_domain_error(
        request: Request, exc: NutritionLabelError
    ) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content=_error_body(exc))

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/recipes/parse")
    async def parse_recipe(payload: ParseRequest, request: Request) -> dict[str, object]:
        """Split recipe text into ingredients and sub-recipes."""
        state_container: AppContainer = request.app.state.container
        return asdict(state_container.parser.parse(payload.text))

    @app.post("/recipes/calculate")
    async def calculate_recipe(
        payload: CalculateRequest, request: Request
    ) -> dict[str, object]:
        """Calculate per-100 g nutrients without saving anything."""
        state_container: AppContainer = request.app.state.container
        ingredients = payload.domain_ingredients()
        if payload.final_cooked_weight_grams is not None:
            result = await state_container.calculator.calculate(
                ingredients, payload.final_cooked_weight_grams
            )
        else:
            result = await state_container.calculator.calculate_for_cooking_method(
                ingredients, payload.cooking_method
            )
        return _calculation_payload(result)

    @app.post("/labels")
    async def build_label(payload: LabelRequest) -> dict[str, object]:
        """Round a per-100 g profile into nutrition facts for one serving."""
        profile, warnings = payload.profile()
        label = format_label(
            profile,
            payload.serving_size_grams,
            payload.servings_per_container,
            payload.serving_size_description,
        )
        return {"label": asdict(label), "warnings": [item.message for item in warnings]}

    @app.get("/units")
    async def list_units() -> dict[str, list[str]]:
        """Units the standard table converts without food-specific data."""
        return {"units": supported_units()}

    @app.get("/foods/search")
    async def search_foods(
        q: str, request: Request, limit: int = 10, variants: bool = False
    ) -> dict[str, object]:
        """Search FoodData Central, optionally trying looser query variants."""
        state_container: AppContainer = request.app.state.container
        service = state_container.nutrition_service
        if variants:
            result = await service.search_with_variants(q, limit=limit)
            return {
                "foods": [asdict(result.food)] if result.food else [],
                "variant_used": result.variant_used,
                "variants_tried": result.variants_tried,
            }
        foods = await service.search(q, limit=limit)
        return {"foods": [asdict(food) for food in foods]}

    @app.get("/sub-recipes")
    async def list_sub_recipes(request: Request) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        records = await state_container.recipe_service.list_sub_recipes()
        return {"sub_recipes": [_sub_recipe_payload(record) for record in records]}

    @app.post("/sub-recipes", status_code=status.HTTP_201_CREATED)
    async def create_sub_recipe(
        payload: SubRecipeRequest, request: Request
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        saved = await state_container.recipe_service.create_sub_recipe(payload.to_draft())
        return {
            "sub_recipe": _sub_recipe_payload(saved.sub_recipe),
            "warnings": saved.warnings,
        }

    @app.get("/sub-recipes/{sub_recipe_id}")
    async def get_sub_recipe(sub_recipe_id: str, request: Request) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        record = await state_container.recipe_service.get_sub_recipe(sub_recipe_id)
        return {"sub_recipe": _sub_recipe_payload(record)}

    @app.put("/sub-recipes/{sub_recipe_id}")
    async def update_sub_recipe(
        sub_recipe_id: str, payload: SubRecipeRequest, request: Request
    ) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        saved = await state_container.recipe_service.update_sub_recipe(
            sub_recipe_id, payload.to_draft()
        )
        return {
            "sub_recipe": _sub_recipe_payload(saved.sub_recipe),
            "warnings": saved.warnings,
        }

    @app.delete("/sub-recipes/{sub_recipe_id}")
    async def delete_sub_recipe(sub_recipe_id: str, request: Request) -> dict[str, str]:
        state_container: AppContainer = request.app.state.container
        await state_container.recipe_service.delete_sub_recipe(sub_recipe_id)
        return {"status": "deleted"}

    @app.get("/final-dishes")
    async def list_final_dishes(request: Request) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        records = await state_container.recipe_service.list_final_dishes()
        return {"final_dishes": [_final_dish_payload(record) for record in records]}

    @app.post("/final-dishes", status_code=status.HTTP_201_CREATED)
    async def create_final_dish(
        payload: FinalDishRequest, request: Request
    ) -> dict[str, object]:
        """Save a dish, creating any new sub-recipes it brings along."""
        state_container: AppContainer = request.app.state.container
        saved = await state_container.recipe_service.save_final_dish(payload.to_draft())
        return {
            "final_dish": _final_dish_payload(saved.final_dish),
            "sub_recipes": [_sub_recipe_payload(item) for item in saved.sub_recipes],
            "warnings": saved.warnings,
        }

    @app.post("/final-dishes/from-text", status_code=status.HTTP_201_CREATED)
    async def create_final_dish_from_text(
        payload: FinalDishFromTextRequest, request: Request
    ) -> dict[str, object]:
        """Parse recipe text and save it with the chosen food matches."""
        state_container: AppContainer = request.app.state.container
        parsed = state_container.parser.parse(payload.text)
        if parsed.errors:
            raise ValidationError("Recipe text has errors: " + "; ".join(parsed.errors))
        draft = state_container.recipe_service.build_draft(
            parsed, payload.fdc_matches, payload.final_cooked_weight_grams
        )
        saved = await state_container.recipe_service.save_final_dish(draft)
        return {
            "final_dish": _final_dish_payload(saved.final_dish),
            "sub_recipes": [_sub_recipe_payload(item) for item in saved.sub_recipes],
            "warnings": parsed.warnings + saved.warnings,
        }

    @app.get("/final-dishes/{final_dish_id}")
    async def get_final_dish(final_dish_id: str, request: Request) -> dict[str, object]:
        state_container: AppContainer = request.app.state.container
        record = await state_container.recipe_service.get_final_dish(final_dish_id)
        return {"final_dish": _final_dish_payload(record)}

    @app.delete("/final-dishes/{final_dish_id}")
    async def delete_final_dish(final_dish_id: str, request: Request) -> dict[str, str]:
        state_container: AppContainer = request.app.state.container
        await state_container.recipe_service.delete_final_dish(final_dish_id)
        return {"status": "deleted"}

    @app.get("/final-dishes/{final_dish_id}/label")
    async def final_dish_label(
        final_dish_id: str, request: Request
    ) -> dict[str, object]:
        """Nutrition facts for one serving of a saved dish."""
        state_container: AppContainer = request.app.state.container
        record = await state_container.recipe_service.get_final_dish(final_dish_id)
        label = format_label(
            record.nutrient_profile,
            record.serving_size_grams,
            record.servings_per_container,
            record.serving_size_description,
        )
        return {
            "label": asdict(label),
            "allergens": list(record.allergens),
            "warnings": [item.message for item in record.data_quality],
        }

    return app


def _status_for(exc: BaseException) -> int:
    if isinstance(exc, ReferenceInUseError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ValidationError | CircularReferenceError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, ReferenceNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, UpstreamUnavailableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, SaveRolledBackError) and isinstance(
        exc.__cause__, NutritionLabelError
    ):
        # Nothing was left behind, so report the failure that caused it.
        return _status_for(exc.__cause__)
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _error_body(exc: NutritionLabelError) -> dict[str, object]:
    body: dict[str, object] = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, CircularReferenceError):
        body["chain"] = exc.chain
    elif isinstance(exc, ReferenceInUseError):
        body["referenced_by"] = exc.referenced_by
    elif isinstance(exc, UpstreamUnavailableError):
        body["kind"] = exc.kind
        body["attempts"] = exc.attempts
    elif isinstance(exc, SaveRolledBackError):
        body["rolled_back_ids"] = exc.rolled_back_ids
    elif isinstance(exc, RollbackFailedError):
        body["orphaned_ids"] = exc.orphaned_ids
    return body


def _ingredient_payload(ingredient: Ingredient) -> dict[str, object]:
    return {
        "name": ingredient.name,
        "quantity": ingredient.quantity,
        "unit": ingredient.unit,
        "fdc_id": ingredient.fdc_id,
        "sub_recipe_id": ingredient.sub_recipe_id,
    }


def _sub_recipe_payload(record: SubRecipe) -> dict[str, object]:
    return {
        "id": record.id,
        "name": record.name,
        "ingredients": [_ingredient_payload(item) for item in record.ingredients],
        "nutrient_profile": record.nutrient_profile.as_dict(),
        "serving_size_grams": record.serving_size_grams,
        "raw_total_weight": record.raw_total_weight,
        "final_cooked_weight": record.final_cooked_weight,
        "yield_percentage": record.yield_percentage,
        "cooking_method": record.cooking_method,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def _final_dish_payload(record: FinalDish) -> dict[str, object]:
    return {
        "id": record.id,
        "name": record.name,
        "ingredients": [_ingredient_payload(item) for item in record.ingredients],
        "nutrient_profile": record.nutrient_profile.as_dict(),
        "serving_size_grams": record.serving_size_grams,
        "servings_per_container": record.servings_per_container,
        "serving_size_description": record.serving_size_description,
        "raw_total_weight": record.raw_total_weight,
        "final_cooked_weight": record.final_cooked_weight,
        "yield_percentage": record.yield_percentage,
        "allergens": list(record.allergens),
        "cooking_method": record.cooking_method,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def _calculation_payload(result: CalculationResult) -> dict[str, object]:
    return {
        "nutrient_profile": result.nutrient_profile.as_dict(),
        "raw_total_weight_grams": result.raw_total_weight_grams,
        "final_cooked_weight_grams": result.final_cooked_weight_grams,
        "yield_percentage": result.yield_percentage,
        "warnings": result.warnings,
        "contributions": [asdict(item) for item in result.contributions],
        "data_quality": [asdict(item) for item in result.data_quality],
    }
