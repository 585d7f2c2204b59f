"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    openai_api_key: str | None = None
    openai_parse_model: str = "gpt-4o-mini"
    openai_lookup_model: str = "gpt-4o-mini"
    openai_store: bool = False
    fdc_api_key: str | None = None
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    fdc_search_page_size: int = 10
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    admin_token: str | None = None
    nutrition_cache_enabled: bool = True
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def database_enabled(self) -> bool:
        """Whether the canonical nutrient database is configured."""
        return bool(self.fdc_api_key)

    @property
    def corrections_enabled(self) -> bool:
        """Whether verified corrections storage is configured."""
        return bool(self.supabase_url and self.supabase_service_key)

    @property
    def result_cache_enabled(self) -> bool:
        """Whether resolved results are cached in the corrections storage."""
        return self.corrections_enabled and self.nutrition_cache_enabled
