"""Admin API endpoints for reviewing nutrition corrections."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from nutrition_resolver.containers import AppContainer
    from nutrition_resolver.domain.corrections import PendingCorrection
    from nutrition_resolver.services.corrections import CorrectionService

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str | None:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str | None = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not admin_token or not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def _correction_service(request: Request) -> CorrectionService:
    container: AppContainer = request.app.state.container
    if container.correction_service is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Corrections storage is not configured",
        )
    return container.correction_service


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/corrections/pending", dependencies=[Depends(require_admin)])
async def list_pending(request: Request, limit: int = 50) -> dict[str, object]:
    """Return web-search estimates awaiting review."""
    service = _correction_service(request)
    pending = await service.list_pending(limit)
    return {"pending": [_pending_payload(p) for p in pending]}


@router.post(
    "/corrections/{pending_id}/approve", dependencies=[Depends(require_admin)]
)
async def approve_correction(pending_id: UUID, request: Request) -> dict[str, object]:
    """Promote a pending estimate to a verified correction."""
    service = _correction_service(request)
    correction = await service.approve(pending_id)
    if correction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"status": "approved", "food_key": correction.food_key}


@router.post(
    "/corrections/{pending_id}/reject", dependencies=[Depends(require_admin)]
)
async def reject_correction(pending_id: UUID, request: Request) -> dict[str, str]:
    """Reject a pending estimate."""
    service = _correction_service(request)
    if not await service.reject(pending_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"status": "rejected"}


def _pending_payload(pending: PendingCorrection) -> dict[str, object]:
    return {
        "id": str(pending.id),
        "food_query": pending.food_query,
        "food_key": pending.food_key,
        "quantity": pending.quantity,
        "unit": pending.unit,
        "calories": pending.nutrients.calories,
        "protein": pending.nutrients.protein_g,
        "carbs": pending.nutrients.carbs_g,
        "fat": pending.nutrients.fat_g,
        "status": pending.status,
        "created_at": pending.created_at.isoformat() if pending.created_at else None,
    }
