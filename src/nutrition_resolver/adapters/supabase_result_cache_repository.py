"""Supabase implementation for the nutrition result cache."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from nutrition_resolver.domain.nutrition import (
    CachedNutrition,
    NutrientVector,
    ResultSource,
)
from nutrition_resolver.services.result_cache import ResultCacheRepository

# Coarse provenance column kept alongside the exact source inside `nutrition`.
_SOURCE_TYPES = {
    ResultSource.DATABASE: "usda",
    ResultSource.DATABASE_ESTIMATED: "usda",
    ResultSource.ESTIMATOR_WEB_SEARCH: "gpt_web",
    ResultSource.ESTIMATOR: "gpt_estimate",
}


@dataclass
class SupabaseResultCacheRepository(ResultCacheRepository):
    """Supabase-backed `nutrition_cache` table."""

    client: Client

    def get_result(self, cache_key: str, now: datetime) -> CachedNutrition | None:
        """Return the entry for a key if it has not expired at `now`."""
        response = (
            self.client.table("nutrition_cache")
            .select("*")
            .eq("cache_key", cache_key)
            .gt("expires_at", now.isoformat())
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        nutrition = row.get("nutrition") or {}
        return CachedNutrition(
            cache_key=str(row["cache_key"]),
            source=ResultSource(nutrition["source"]),
            nutrients=NutrientVector(
                calories=float(nutrition.get("calories") or 0),
                protein_g=float(nutrition.get("protein") or 0),
                carbs_g=float(nutrition.get("carbs") or 0),
                fat_g=float(nutrition.get("fat") or 0),
            ),
            quantity=float(nutrition.get("quantity") or 1),
            unit=nutrition.get("unit"),
            matched_food_id=row.get("usda_fdc_id"),
            matched_description=nutrition.get("matched_description"),
            matched_portion=nutrition.get("matched_portion"),
            matched_grams=nutrition.get("matched_grams"),
            hit_count=int(row.get("hit_count") or 0),
        )

    def save_result(self, entry: CachedNutrition, expires_at: datetime) -> None:
        """Create or replace the entry for its key."""
        self.client.table("nutrition_cache").upsert(
            {
                "cache_key": entry.cache_key,
                "source_type": _SOURCE_TYPES.get(entry.source, "gpt_estimate"),
                "nutrition": {
                    "source": entry.source.value,
                    "calories": entry.nutrients.calories,
                    "protein": entry.nutrients.protein_g,
                    "carbs": entry.nutrients.carbs_g,
                    "fat": entry.nutrients.fat_g,
                    "quantity": entry.quantity,
                    "unit": entry.unit,
                    "matched_description": entry.matched_description,
                    "matched_portion": entry.matched_portion,
                    "matched_grams": entry.matched_grams,
                },
                "usda_fdc_id": entry.matched_food_id,
                "created_at": datetime.now(tz=UTC).isoformat(),
                "expires_at": expires_at.isoformat(),
                "hit_count": 0,
            },
            on_conflict="cache_key",
        ).execute()

    def record_hit(self, cache_key: str, hit_count: int) -> None:
        """Store the updated hit count for a key."""
        self.client.table("nutrition_cache").update(
            {"hit_count": hit_count, "last_hit_at": datetime.now(tz=UTC).isoformat()}
        ).eq("cache_key", cache_key).execute()
