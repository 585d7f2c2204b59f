"""Supabase implementation for verified and pending corrections."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from nutrition_resolver.domain.corrections import PendingCorrection, VerifiedCorrection
from nutrition_resolver.domain.nutrition import NutrientVector
from nutrition_resolver.services.corrections import CorrectionRepository


@dataclass
class SupabaseCorrectionRepository(CorrectionRepository):
    """Supabase-backed repository for nutrition corrections."""

    client: Client

    def get_correction(self, food_key: str) -> VerifiedCorrection | None:
        """Return the verified correction for a food key, if any."""
        response = (
            self.client.table("global_corrections")
            .select("*")
            .eq("food_key", food_key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return VerifiedCorrection(
            food_key=row["food_key"],
            food_name=row.get("food_name") or row["food_key"],
            nutrients=_nutrients_from_row(row),
            quantity=float(row.get("quantity") or 1),
            unit=row.get("unit"),
            source=row.get("source"),
        )

    def upsert_correction(self, correction: VerifiedCorrection) -> None:
        """Create or replace the verified correction for its food key."""
        self.client.table("global_corrections").upsert(
            {
                "food_key": correction.food_key,
                "food_name": correction.food_name,
                "calories": correction.nutrients.calories,
                "protein": correction.nutrients.protein_g,
                "carbs": correction.nutrients.carbs_g,
                "fat": correction.nutrients.fat_g,
                "quantity": correction.quantity,
                "unit": correction.unit,
                "source": correction.source,
            },
            on_conflict="food_key",
        ).execute()

    def create_pending(  # noqa: PLR0913
        self,
        food_query: str,
        food_key: str,
        quantity: float,
        unit: str | None,
        nutrients: NutrientVector,
    ) -> None:
        """Queue an estimate for review."""
        self.client.table("pending_corrections").insert(
            {
                "food_query": food_query,
                "food_key": food_key,
                "quantity": quantity,
                "unit": unit,
                "gpt_result": {
                    "calories": nutrients.calories,
                    "protein": nutrients.protein_g,
                    "carbs": nutrients.carbs_g,
                    "fat": nutrients.fat_g,
                },
                "status": "pending",
            }
        ).execute()

    def list_pending(self, limit: int) -> list[PendingCorrection]:
        """Return pending corrections, newest first."""
        response = (
            self.client.table("pending_corrections")
            .select("*")
            .eq("status", "pending")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_pending(row) for row in response.data or []]

    def get_pending(self, pending_id: UUID) -> PendingCorrection | None:
        """Return a pending correction by id."""
        response = (
            self.client.table("pending_corrections")
            .select("*")
            .eq("id", str(pending_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_pending(response.data[0])

    def update_pending_status(self, pending_id: UUID, status: str) -> None:
        """Set the review status of a pending correction."""
        self.client.table("pending_corrections").update({"status": status}).eq(
            "id", str(pending_id)
        ).execute()


def _nutrients_from_row(row: dict[str, object]) -> NutrientVector:
    return NutrientVector(
        calories=float(row.get("calories") or 0),
        protein_g=float(row.get("protein") or 0),
        carbs_g=float(row.get("carbs") or 0),
        fat_g=float(row.get("fat") or 0),
    )


def _parse_pending(row: dict[str, object]) -> PendingCorrection:
    created_at = row.get("created_at")
    return PendingCorrection(
        id=UUID(str(row["id"])),
        food_query=str(row["food_query"]),
        food_key=str(row["food_key"]),
        quantity=float(row.get("quantity") or 1),
        unit=row.get("unit"),
        nutrients=_nutrients_from_row(row.get("gpt_result") or {}),
        status=str(row.get("status") or "pending"),
        created_at=(
            datetime.fromisoformat(created_at) if isinstance(created_at, str) else None
        ),
    )
