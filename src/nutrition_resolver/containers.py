"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutrition_resolver.adapters.fdc_client import HttpxFdcClient
from nutrition_resolver.adapters.openai_client import OpenAILlmClient
from nutrition_resolver.adapters.supabase_correction_repository import (
    SupabaseCorrectionRepository,
)
from nutrition_resolver.adapters.supabase_result_cache_repository import (
    SupabaseResultCacheRepository,
)
from nutrition_resolver.config import Settings
from nutrition_resolver.errors import ConfigurationError
from nutrition_resolver.services.cache import InMemoryCache
from nutrition_resolver.services.corrections import CorrectionService
from nutrition_resolver.services.database import DatabaseResolver
from nutrition_resolver.services.estimator import Estimator
from nutrition_resolver.services.orchestrator import ResolutionOrchestrator
from nutrition_resolver.services.parser import FoodParser
from nutrition_resolver.services.result_cache import ResultCache


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    orchestrator: ResolutionOrchestrator | None
    correction_service: CorrectionService | None
    close_resources: Callable[[], Awaitable[None]]

    def require_orchestrator(self) -> ResolutionOrchestrator:
        """Return the orchestrator or raise when credentials are missing."""
        if self.orchestrator is None:
            raise ConfigurationError("OpenAI API key not configured")
        return self.orchestrator


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    closers: list[Callable[[], Awaitable[None]]] = []

    correction_service = None
    result_cache = None
    if resolved_settings.corrections_enabled:
        supabase_client = create_client(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )
        correction_service = CorrectionService(
            SupabaseCorrectionRepository(supabase_client)
        )
        if resolved_settings.result_cache_enabled:
            result_cache = ResultCache(SupabaseResultCacheRepository(supabase_client))

    database = None
    if resolved_settings.database_enabled:
        fdc_client = HttpxFdcClient.create(
            api_key=resolved_settings.fdc_api_key,
            base_url=resolved_settings.fdc_base_url,
        )
        closers.append(fdc_client.close)
        database = DatabaseResolver(
            fdc_client=fdc_client,
            cache=InMemoryCache(),
            page_size=resolved_settings.fdc_search_page_size,
        )

    orchestrator = None
    if resolved_settings.openai_api_key:
        llm_client = OpenAILlmClient.create(
            resolved_settings.openai_api_key, store=resolved_settings.openai_store
        )
        closers.append(llm_client.close)
        orchestrator = ResolutionOrchestrator(
            parser=FoodParser(
                client=llm_client, model=resolved_settings.openai_parse_model
            ),
            estimator=Estimator(
                client=llm_client, model=resolved_settings.openai_lookup_model
            ),
            database=database,
            corrections=correction_service,
            result_cache=result_cache,
        )

    async def close_resources() -> None:
        for close in closers:
            await close()

    return AppContainer(
        settings=resolved_settings,
        orchestrator=orchestrator,
        correction_service=correction_service,
        close_resources=close_resources,
    )
