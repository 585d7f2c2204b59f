"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nutrition_resolver.api.admin import router as admin_router
from nutrition_resolver.api.models import LookupRequest
from nutrition_resolver.app_logging import configure_logging
from nutrition_resolver.containers import AppContainer
from nutrition_resolver.errors import ConfigurationError, UpstreamUnavailable
from nutrition_resolver.services.orchestrator import ResolutionReport, ResolvedItem


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(RequestValidationError)
    async def invalid_request(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Invalid request",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/nutrition/lookup", response_model=None)
    async def nutrition_lookup(
        payload: LookupRequest, request: Request
    ) -> dict[str, object] | JSONResponse:
        """Resolve nutrition for a free-text food description."""
        text = payload.input.strip()
        if not text:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"error": "Input is required"},
            )
        state_container: AppContainer = request.app.state.container
        orchestrator = state_container.require_orchestrator()
        logger.info("Processing: %.100r", text)
        try:
            report = await orchestrator.resolve_text(text)
        except UpstreamUnavailable as exc:
            logger.warning("Food parsing failed: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_502_BAD_GATEWAY,
                content={
                    "error": "Failed to process nutrition request",
                    "message": str(exc),
                },
            )
        return _report_payload(report)

    return app


def _report_payload(report: ResolutionReport) -> dict[str, object]:
    payload: dict[str, object] = {
        "items": [_item_payload(resolved) for resolved in report.items],
        "sources": report.sources,
        "timing": {
            "parse": round(report.parse_seconds, 3),
            "lookup": round(report.lookup_seconds, 3),
            "total": round(report.total_seconds, 3),
        },
    }
    if not report.items:
        payload["message"] = "No food items found in input"
    return payload


def _item_payload(resolved: ResolvedItem) -> dict[str, object]:
    item = resolved.item
    result = resolved.result
    payload: dict[str, object] = {
        "item": resolved.display_name,
        "name": item.name,
        "quantity": item.quantity,
        "unit": item.unit,
        "brand": item.brand,
        "restaurant": item.restaurant,
        "isGeneric": item.is_generic,
        "calories": result.nutrients.calories,
        "protein": result.nutrients.protein_g,
        "carbs": result.nutrients.carbs_g,
        "fat": result.nutrients.fat_g,
        "source": result.source.value,
        "matchedFoodId": result.matched_food_id,
        "matchedDescription": result.matched_description,
        "matchedPortion": result.matched_portion,
        "matchedGrams": result.matched_grams,
    }
    if result.message:
        payload["message"] = result.message
    return payload
