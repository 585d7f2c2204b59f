"""Tests for resolution orchestration."""

import asyncio
import json
import time
from datetime import UTC, datetime, timedelta

from nutrition_resolver.domain.corrections import VerifiedCorrection
from nutrition_resolver.domain.nutrition import NutrientVector, ResultSource
from nutrition_resolver.domain.parsing import ParsedFoodItem
from nutrition_resolver.services.corrections import CorrectionService
from nutrition_resolver.services.estimator import EstimateMode
from nutrition_resolver.services.orchestrator import count_sources, estimate_mode
from nutrition_resolver.services.result_cache import ResultCache
from tests.conftest import (
    FakeFdcClient,
    FakeLlmClient,
    InMemoryCorrectionRepository,
    InMemoryResultCacheRepository,
    build_orchestrator,
)

BANANA = ParsedFoodItem(
    name="banana",
    search_term="Banana, raw",
    portion_hint="1 medium",
    is_generic=True,
)
FAIRLIFE = ParsedFoodItem(
    name="Low Fat Milk", unit="cup", brand="Fairlife", is_generic=False
)


def _calories_by_name(prompt: str) -> str:
    calories = {"apple": 95, "bread": 80, "cheese": 110}
    for name, value in calories.items():
        if name in prompt:
            return json.dumps({"calories": value, "protein": 1, "carbs": 2, "fat": 3})
    return "no idea"


def test_results_keep_input_order_when_completion_order_differs() -> None:
    client = FakeLlmClient(
        estimate_output=_calories_by_name,
        estimate_delays={"apple": 0.05, "bread": 0.02, "cheese": 0.0},
    )
    orchestrator = build_orchestrator(client)
    items = [ParsedFoodItem(name=name) for name in ("apple", "bread", "cheese")]

    results = asyncio.run(orchestrator.resolve(items))

    assert [result.nutrients.calories for result in results] == [95, 80, 110]


def test_generic_item_uses_database() -> None:
    fdc_client = FakeFdcClient()
    client = FakeLlmClient()
    orchestrator = build_orchestrator(client, fdc_client)

    [result] = asyncio.run(orchestrator.resolve([BANANA]))

    assert result.source is ResultSource.DATABASE
    assert result.matched_portion == "1 medium"
    assert client.estimate_calls == []


def test_branded_item_never_queries_database() -> None:
    fdc_client = FakeFdcClient()
    client = FakeLlmClient()
    orchestrator = build_orchestrator(client, fdc_client)

    [result] = asyncio.run(orchestrator.resolve([FAIRLIFE]))

    assert fdc_client.search_calls == []
    assert result.source is ResultSource.ESTIMATOR_WEB_SEARCH
    assert client.estimate_calls[0]["web_search"] is True
    assert "Fairlife Low Fat Milk" in str(client.estimate_calls[0]["prompt"])


def test_database_miss_falls_back_to_best_estimate() -> None:
    fdc_client = FakeFdcClient(search_payload={"foods": []})
    client = FakeLlmClient()
    orchestrator = build_orchestrator(client, fdc_client)
    item = ParsedFoodItem(name="xyzzyq", search_term="Xyzzyq, raw", is_generic=True)

    [result] = asyncio.run(orchestrator.resolve([item]))

    assert fdc_client.search_calls == ["Xyzzyq, raw"]
    assert result.source is ResultSource.ESTIMATOR
    assert client.estimate_calls[0]["web_search"] is False


def test_generic_item_without_database_uses_estimator() -> None:
    client = FakeLlmClient()
    orchestrator = build_orchestrator(client, fdc_client=None)

    [result] = asyncio.run(orchestrator.resolve([BANANA]))

    assert result.source is ResultSource.ESTIMATOR


def test_unparsable_estimate_is_error_without_raising() -> None:
    client = FakeLlmClient(estimate_output="I am not sure about that one.")
    orchestrator = build_orchestrator(client)

    [result] = asyncio.run(orchestrator.resolve([FAIRLIFE]))

    assert result.source is ResultSource.ERROR
    assert result.nutrients == NutrientVector.zero()


def test_one_failing_item_does_not_block_others() -> None:
    fdc_client = FakeFdcClient(search_error=RuntimeError("connection reset"))
    client = FakeLlmClient()
    orchestrator = build_orchestrator(client, fdc_client)

    results = asyncio.run(orchestrator.resolve([BANANA, FAIRLIFE]))

    assert [result.source for result in results] == [
        ResultSource.ERROR,
        ResultSource.ESTIMATOR_WEB_SEARCH,
    ]
    assert results[0].nutrients == NutrientVector.zero()


def test_resolve_returns_one_result_per_item() -> None:
    client = FakeLlmClient()
    orchestrator = build_orchestrator(client, FakeFdcClient())
    items = [BANANA, FAIRLIFE, BANANA, ParsedFoodItem(name="toast")]

    results = asyncio.run(orchestrator.resolve(items))

    assert len(results) == len(items)
    assert asyncio.run(orchestrator.resolve([])) == []


def test_verified_correction_takes_priority() -> None:
    repository = InMemoryCorrectionRepository()
    repository.upsert_correction(
        VerifiedCorrection(
            food_key="fairlife:low_fat_milk",
            food_name="Fairlife Low Fat Milk",
            nutrients=NutrientVector(
                calories=120, protein_g=13, carbs_g=6, fat_g=4.5
            ),
            quantity=1,
            unit="cup",
            source="review",
        )
    )
    client = FakeLlmClient()
    orchestrator = build_orchestrator(
        client, corrections=CorrectionService(repository)
    )
    item = FAIRLIFE.model_copy(update={"quantity": 2})

    [result] = asyncio.run(orchestrator.resolve([item]))

    assert result.source is ResultSource.VERIFIED
    assert result.nutrients == NutrientVector(
        calories=240, protein_g=26, carbs_g=12, fat_g=9
    )
    assert client.estimate_calls == []


def test_web_search_estimates_are_queued_for_review() -> None:
    repository = InMemoryCorrectionRepository()
    orchestrator = build_orchestrator(
        FakeLlmClient(), corrections=CorrectionService(repository)
    )

    toast = ParsedFoodItem(name="toast", is_generic=True)

    asyncio.run(orchestrator.resolve([FAIRLIFE, toast]))

    pending = repository.list_pending(10)
    assert [row.food_key for row in pending] == ["fairlife:low_fat_milk"]
    assert pending[0].food_query == "Fairlife Low Fat Milk"


def test_resolve_text_builds_report() -> None:
    client = FakeLlmClient(
        parse_output=json.dumps(
            [
                {
                    "name": "banana",
                    "quantity": 2,
                    "unit": "piece",
                    "searchTerm": "Banana, raw",
                    "portionHint": "1 medium",
                    "isGeneric": True,
                },
                {
                    "name": "Big Mac",
                    "isGeneric": False,
                    "restaurant": "McDonald's",
                },
            ]
        )
    )
    orchestrator = build_orchestrator(client, FakeFdcClient())

    report = asyncio.run(orchestrator.resolve_text("2 bananas and a big mac"))

    assert [resolved.display_name for resolved in report.items] == [
        "🍌 2 Banana",
        "Big Mac",
    ]
    assert report.sources == {"Database": 1, "EstimatorWebSearch": 1}
    assert report.items[0].result.nutrients.calories == 210
    assert report.total_seconds >= report.parse_seconds


def test_resolve_text_with_no_items() -> None:
    client = FakeLlmClient(parse_output="No food here.")
    orchestrator = build_orchestrator(client)

    report = asyncio.run(orchestrator.resolve_text("hello there"))

    assert report.items == []
    assert report.sources == {}
    assert client.estimate_calls == []


def test_estimate_mode_routing() -> None:
    assert estimate_mode(FAIRLIFE) is EstimateMode.WEB_SEARCH
    assert (
        estimate_mode(ParsedFoodItem(name="fries", restaurant="Five Guys"))
        is EstimateMode.WEB_SEARCH
    )
    assert (
        estimate_mode(ParsedFoodItem(name="yogurt", brand="Chobani", is_generic=True))
        is EstimateMode.WEB_SEARCH
    )
    assert estimate_mode(ParsedFoodItem(name="curry")) is EstimateMode.WEB_SEARCH
    assert estimate_mode(BANANA) is EstimateMode.BEST_ESTIMATE


def test_count_sources() -> None:
    client = FakeLlmClient()
    orchestrator = build_orchestrator(client, FakeFdcClient())

    results = asyncio.run(orchestrator.resolve([BANANA, BANANA, FAIRLIFE]))

    assert count_sources(results) == {"Database": 2, "EstimatorWebSearch": 1}


def test_slow_correction_read_does_not_stall_other_items() -> None:
    repository = InMemoryCorrectionRepository(read_delays={"apple": 0.5})
    finished: dict[str, float] = {}
    started = time.perf_counter()

    def answer(prompt: str) -> str:
        for name in ("apple", "bread"):
            if name in prompt:
                finished[name] = time.perf_counter() - started
        return '{"calories": 100, "protein": 1, "carbs": 20, "fat": 1}'

    orchestrator = build_orchestrator(
        FakeLlmClient(estimate_output=answer),
        corrections=CorrectionService(repository),
    )
    items = [
        ParsedFoodItem(name="apple", is_generic=True),
        ParsedFoodItem(name="bread", is_generic=True),
    ]

    results = asyncio.run(orchestrator.resolve(items))

    assert [result.source for result in results] == [ResultSource.ESTIMATOR] * 2
    assert finished["bread"] < 0.25
    assert finished["apple"] >= 0.5


def test_estimates_are_cached_and_rescaled() -> None:
    repository = InMemoryResultCacheRepository()
    client = FakeLlmClient()
    orchestrator = build_orchestrator(client, result_cache=ResultCache(repository))

    [first] = asyncio.run(orchestrator.resolve([FAIRLIFE]))
    [second] = asyncio.run(
        orchestrator.resolve([FAIRLIFE.model_copy(update={"quantity": 2})])
    )

    assert len(client.estimate_calls) == 1
    assert first.nutrients.calories == 250
    assert second.source is ResultSource.ESTIMATOR_WEB_SEARCH
    assert second.nutrients == NutrientVector(
        calories=500, protein_g=20, carbs_g=60, fat_g=16
    )
    entry, expires_at = repository.entries["fairlife:low_fat_milk"]
    assert entry.hit_count == 1
    expected_expiry = datetime.now(tz=UTC) + timedelta(days=90)
    assert abs(expires_at - expected_expiry) < timedelta(minutes=1)


def test_cached_database_result_survives_restart() -> None:
    repository = InMemoryResultCacheRepository()
    asyncio.run(
        build_orchestrator(
            FakeLlmClient(), FakeFdcClient(), result_cache=ResultCache(repository)
        ).resolve([BANANA])
    )
    fdc_client = FakeFdcClient()
    restarted = build_orchestrator(
        FakeLlmClient(), fdc_client, result_cache=ResultCache(repository)
    )

    [result] = asyncio.run(restarted.resolve([BANANA]))

    assert fdc_client.search_calls == []
    assert result.source is ResultSource.DATABASE
    assert result.matched_food_id == 173944
    assert result.matched_portion == "1 medium"
    assert result.nutrients.calories == 105
    _, expires_at = repository.entries["banana"]
    assert expires_at - datetime.now(tz=UTC) > timedelta(days=364)


def test_error_results_are_not_cached() -> None:
    repository = InMemoryResultCacheRepository()
    orchestrator = build_orchestrator(
        FakeLlmClient(estimate_output="no idea"),
        result_cache=ResultCache(repository),
    )

    [result] = asyncio.run(orchestrator.resolve([FAIRLIFE]))

    assert result.source is ResultSource.ERROR
    assert repository.entries == {}


def test_verified_correction_beats_cached_result() -> None:
    corrections = InMemoryCorrectionRepository()
    corrections.upsert_correction(
        VerifiedCorrection(
            food_key="fairlife:low_fat_milk",
            food_name="Fairlife Low Fat Milk",
            nutrients=NutrientVector(
                calories=120, protein_g=13, carbs_g=6, fat_g=4.5
            ),
            quantity=1,
            unit="cup",
            source="review",
        )
    )
    cache = InMemoryResultCacheRepository()
    client = FakeLlmClient()
    asyncio.run(
        build_orchestrator(client, result_cache=ResultCache(cache)).resolve(
            [FAIRLIFE]
        )
    )
    orchestrator = build_orchestrator(
        client,
        corrections=CorrectionService(corrections),
        result_cache=ResultCache(cache),
    )

    [result] = asyncio.run(orchestrator.resolve([FAIRLIFE]))

    assert result.source is ResultSource.VERIFIED
    assert cache.entries["fairlife:low_fat_milk"][0].hit_count == 0


def test_cache_unit_mismatch_and_failures_fall_through() -> None:
    repository = InMemoryResultCacheRepository()
    client = FakeLlmClient()
    orchestrator = build_orchestrator(client, result_cache=ResultCache(repository))
    asyncio.run(orchestrator.resolve([FAIRLIFE]))

    asyncio.run(orchestrator.resolve([FAIRLIFE.model_copy(update={"unit": "oz"})]))
    repository.fail = True
    [result] = asyncio.run(orchestrator.resolve([FAIRLIFE]))

    assert len(client.estimate_calls) == 3
    assert result.source is ResultSource.ESTIMATOR_WEB_SEARCH
