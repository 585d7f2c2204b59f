"""Shared test fixtures."""

import asyncio
import dataclasses
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from nutrition_resolver.adapters.fdc_client import FdcClient
from nutrition_resolver.adapters.openai_client import LlmClient
from nutrition_resolver.config import Settings
from nutrition_resolver.containers import AppContainer
from nutrition_resolver.domain.corrections import PendingCorrection, VerifiedCorrection
from nutrition_resolver.domain.nutrition import CachedNutrition, NutrientVector
from nutrition_resolver.errors import UpstreamUnavailable
from nutrition_resolver.services.cache import InMemoryCache
from nutrition_resolver.services.corrections import (
    CorrectionRepository,
    CorrectionService,
)
from nutrition_resolver.services.database import DatabaseResolver
from nutrition_resolver.services.estimator import Estimator
from nutrition_resolver.services.orchestrator import ResolutionOrchestrator
from nutrition_resolver.services.parser import PARSE_INSTRUCTIONS, FoodParser
from nutrition_resolver.services.result_cache import (
    ResultCache,
    ResultCacheRepository,
)

BANANA_SEARCH = {
    "foods": [
        {
            "fdcId": 173944,
            "description": "Bananas, raw",
            "dataType": "SR Legacy",
            "foodNutrients": [
                {"nutrientId": 1008, "value": 89},
                {"nutrientId": 1003, "value": 1.09},
                {"nutrientId": 1005, "value": 22.84},
                {"nutrientId": 1004, "value": 0.33},
            ],
        },
        {
            "fdcId": 1105314,
            "description": "Banana, raw",
            "dataType": "Survey (FNDDS)",
        },
    ]
}

BANANA_DETAIL = {
    "fdcId": 173944,
    "description": "Bananas, raw",
    "foodNutrients": [
        {"nutrient": {"id": 1008, "name": "Energy"}, "amount": 89.0},
        {"nutrient": {"id": 1003, "name": "Protein"}, "amount": 1.09},
        {"nutrient": {"id": 1005, "name": "Carbohydrate"}, "amount": 22.84},
        {"nutrient": {"id": 1004, "name": "Total lipid (fat)"}, "amount": 0.33},
    ],
    "foodPortions": [
        {"portionDescription": "1 cup, mashed", "gramWeight": 225.0},
        {"portionDescription": "1 medium", "gramWeight": 118.0},
        {"portionDescription": "Quantity not specified", "gramWeight": 118.0},
    ],
}


@dataclass
class FakeFdcClient(FdcClient):
    """Fake FDC client with in-memory responses."""

    search_payload: dict[str, object] = field(default_factory=lambda: BANANA_SEARCH)
    food_payload: dict[str, object] = field(default_factory=lambda: BANANA_DETAIL)
    search_error: Exception | None = None
    food_error: Exception | None = None
    search_calls: list[str] = field(default_factory=list)
    food_calls: list[int] = field(default_factory=list)

    async def search_foods(self, query: str, page_size: int = 10) -> dict[str, object]:
        self.search_calls.append(query)
        if self.search_error:
            raise self.search_error
        return self.search_payload

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        self.food_calls.append(fdc_id)
        if self.food_error:
            raise self.food_error
        return self.food_payload


@dataclass
class FakeLlmClient(LlmClient):
    """Fake LLM that answers parse prompts and estimate prompts separately."""

    parse_output: str = "[]"
    estimate_output: str | Callable[[str], str] = (
        '{"calories": 250, "protein": 10, "carbs": 30, "fat": 8}'
    )
    estimate_delays: dict[str, float] = field(default_factory=dict)
    error: Exception | None = None
    calls: list[dict[str, object]] = field(default_factory=list)

    async def complete(
        self,
        *,
        model: str,
        instructions: str,
        prompt: str,
        web_search: bool = False,
        max_output_tokens: int | None = None,
    ) -> str:
        self.calls.append(
            {
                "model": model,
                "instructions": instructions,
                "prompt": prompt,
                "web_search": web_search,
            }
        )
        if self.error:
            raise self.error
        if instructions == PARSE_INSTRUCTIONS:
            return self.parse_output
        for needle, delay in self.estimate_delays.items():
            if needle in prompt:
                await asyncio.sleep(delay)
        if callable(self.estimate_output):
            return self.estimate_output(prompt)
        return self.estimate_output

    @property
    def estimate_calls(self) -> list[dict[str, object]]:
        return [
            call for call in self.calls if call["instructions"] != PARSE_INSTRUCTIONS
        ]


@dataclass
class InMemoryCorrectionRepository(CorrectionRepository):
    """In-memory correction repository for tests."""

    corrections: dict[str, VerifiedCorrection] = field(default_factory=dict)
    pending: dict[UUID, PendingCorrection] = field(default_factory=dict)
    fail_reads: bool = False
    read_delays: dict[str, float] = field(default_factory=dict)

    def get_correction(self, food_key: str) -> VerifiedCorrection | None:
        if self.fail_reads:
            raise RuntimeError("database unavailable")
        # Blocks the calling thread, like the Supabase client.
        time.sleep(self.read_delays.get(food_key, 0))
        return self.corrections.get(food_key)

    def upsert_correction(self, correction: VerifiedCorrection) -> None:
        self.corrections[correction.food_key] = correction

    def create_pending(  # noqa: PLR0913
        self,
        food_query: str,
        food_key: str,
        quantity: float,
        unit: str | None,
        nutrients: NutrientVector,
    ) -> None:
        pending_id = uuid4()
        self.pending[pending_id] = PendingCorrection(
            id=pending_id,
            food_query=food_query,
            food_key=food_key,
            quantity=quantity,
            unit=unit,
            nutrients=nutrients,
            status="pending",
            created_at=datetime.now(tz=UTC),
        )

    def list_pending(self, limit: int) -> list[PendingCorrection]:
        rows = [row for row in self.pending.values() if row.status == "pending"]
        return rows[:limit]

    def get_pending(self, pending_id: UUID) -> PendingCorrection | None:
        return self.pending.get(pending_id)

    def update_pending_status(self, pending_id: UUID, status: str) -> None:
        row = self.pending[pending_id]
        self.pending[pending_id] = PendingCorrection(
            id=row.id,
            food_query=row.food_query,
            food_key=row.food_key,
            quantity=row.quantity,
            unit=row.unit,
            nutrients=row.nutrients,
            status=status,
            created_at=row.created_at,
        )


@dataclass
class InMemoryResultCacheRepository(ResultCacheRepository):
    """In-memory result cache repository for tests."""

    entries: dict[str, tuple[CachedNutrition, datetime]] = field(default_factory=dict)
    fail: bool = False

    def get_result(self, cache_key: str, now: datetime) -> CachedNutrition | None:
        if self.fail:
            raise RuntimeError("database unavailable")
        stored = self.entries.get(cache_key)
        if stored is None or stored[1] <= now:
            return None
        return stored[0]

    def save_result(self, entry: CachedNutrition, expires_at: datetime) -> None:
        if self.fail:
            raise RuntimeError("database unavailable")
        self.entries[entry.cache_key] = (entry, expires_at)

    def record_hit(self, cache_key: str, hit_count: int) -> None:
        entry, expires_at = self.entries[cache_key]
        self.entries[cache_key] = (
            dataclasses.replace(entry, hit_count=hit_count),
            expires_at,
        )

def build_orchestrator(
    llm_client: FakeLlmClient,
    fdc_client: FakeFdcClient | None = None,
    corrections: CorrectionService | None = None,
    result_cache: ResultCache | None = None,
) -> ResolutionOrchestrator:
    database = (
        DatabaseResolver(fdc_client=fdc_client, cache=InMemoryCache())
        if fdc_client is not None
        else None
    )
    return ResolutionOrchestrator(
        parser=FoodParser(client=llm_client, model="parse-model"),
        estimator=Estimator(client=llm_client, model="lookup-model"),
        database=database,
        corrections=corrections,
        result_cache=result_cache,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        fdc_api_key="fdc-key",
        admin_token="admin-token",
        supabase_url=None,
        supabase_service_key=None,
    )


@pytest.fixture
def llm_client() -> FakeLlmClient:
    return FakeLlmClient()


@pytest.fixture
def fdc_client() -> FakeFdcClient:
    return FakeFdcClient()


@pytest.fixture
def correction_repository() -> InMemoryCorrectionRepository:
    return InMemoryCorrectionRepository()


@pytest.fixture
def container(
    settings: Settings,
    llm_client: FakeLlmClient,
    fdc_client: FakeFdcClient,
    correction_repository: InMemoryCorrectionRepository,
) -> AppContainer:
    correction_service = CorrectionService(correction_repository)

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        orchestrator=build_orchestrator(llm_client, fdc_client, correction_service),
        correction_service=correction_service,
        close_resources=close_resources,
    )


def upstream_error(status_code: int = 503) -> UpstreamUnavailable:
    return UpstreamUnavailable(f"upstream returned {status_code}", status_code)
