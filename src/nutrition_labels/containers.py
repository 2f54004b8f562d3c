"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import ClientOptions, create_client

from nutrition_labels.adapters.fdc_client import HttpxFdcClient
from nutrition_labels.adapters.supabase_recipe_repository import (
    SupabaseConversionRepository,
    SupabaseFinalDishRepository,
    SupabaseSubRecipeRepository,
)
from nutrition_labels.config import Settings
from nutrition_labels.services.cache import InMemoryCache
from nutrition_labels.services.calculator import RecipeCalculator
from nutrition_labels.services.nutrition import FDC_SERVICE, NutritionService
from nutrition_labels.services.parser import RecipeTextParser
from nutrition_labels.services.recipes import RecipeService
from nutrition_labels.services.resolver import STORE_SERVICE, IngredientResolver
from nutrition_labels.services.retry import RetryPolicy


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    nutrition_service: NutritionService
    calculator: RecipeCalculator
    parser: RecipeTextParser
    recipe_service: RecipeService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url,
        resolved_settings.supabase_service_key,
        options=ClientOptions(
            postgrest_client_timeout=resolved_settings.supabase_timeout_seconds
        ),
    )
    sub_recipe_repository = SupabaseSubRecipeRepository(supabase_client)
    final_dish_repository = SupabaseFinalDishRepository(supabase_client)
    conversion_repository = SupabaseConversionRepository(supabase_client)

    fdc_client = HttpxFdcClient.create(
        api_key=resolved_settings.fdc_api_key,
        base_url=resolved_settings.fdc_base_url,
        timeout_seconds=resolved_settings.fdc_timeout_seconds,
    )
    nutrition_service = NutritionService(
        fdc_client=fdc_client,
        cache=InMemoryCache(),
        retry=_retry_policy(
            FDC_SERVICE, resolved_settings.fdc_retry_attempts, resolved_settings
        ),
    )
    store_retry = _retry_policy(
        STORE_SERVICE, resolved_settings.supabase_retry_attempts, resolved_settings
    )
    resolver = IngredientResolver(
        nutrition_service=nutrition_service,
        sub_recipes=sub_recipe_repository,
        conversions=conversion_repository,
        store_retry=store_retry,
    )
    calculator = RecipeCalculator(
        resolver=resolver,
        allow_unit_estimates=resolved_settings.allow_unit_estimates,
    )
    recipe_service = RecipeService(
        calculator=calculator,
        sub_recipes=sub_recipe_repository,
        final_dishes=final_dish_repository,
        store_retry=store_retry,
    )

    async def close_resources() -> None:
        await fdc_client.close()

    return AppContainer(
        settings=resolved_settings,
        nutrition_service=nutrition_service,
        calculator=calculator,
        parser=RecipeTextParser(),
        recipe_service=recipe_service,
        close_resources=close_resources,
    )


def _retry_policy(service: str, max_attempts: int, settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        service,
        max_attempts=max_attempts,
        base_delay_seconds=settings.retry_base_delay_seconds,
        max_delay_seconds=settings.retry_max_delay_seconds,
        jitter_ratio=settings.retry_jitter_ratio,
    )
