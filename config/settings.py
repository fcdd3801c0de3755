"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )

    # ===================
    # AI MAPPING
    # ===================
    anthropic_api_key: Optional[str] = Field(
        None,
        description="Anthropic API key used for AI column mapping"
    )
    mapping_suggester: str = Field(
        default="auto",
        pattern="^(auto|ai|fuzzy)$",
        description="Which suggester proposes the first mapping (auto = AI when a key is set)"
    )
    ai_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model used for column mapping suggestions"
    )
    ai_max_tokens: int = Field(
        default=1024,
        ge=64,
        le=8192,
        description="Maximum tokens in the mapping response"
    )
    ai_max_retries: int = Field(
        default=2,
        ge=0,
        le=5,
        description="Additional attempts after the first failed suggestion"
    )
    ai_retry_base_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        le=30,
        description="Delay before retry N is N times this value"
    )

    # ===================
    # UPLOAD WORKFLOW
    # ===================
    sample_row_count: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Rows kept as preview sample per upload"
    )
    upload_yield_every: int = Field(
        default=10,
        ge=1,
        le=1000,
        description="Yield to the event loop after this many records"
    )
    workflow_ttl_minutes: int = Field(
        default=30,
        ge=1,
        le=240,
        description="Minutes an idle mapping workflow is kept in memory"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
            "http://localhost:8080",
        ],
        description="Origins allowed to call the API"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def ai_configured(self) -> bool:
        """Check if the AI suggester has credentials."""
        return bool(self.anthropic_api_key)

    @property
    def use_ai_suggester(self) -> bool:
        """Resolve the configured suggester against available credentials."""
        if self.mapping_suggester == "fuzzy":
            return False
        if self.mapping_suggester == "ai":
            return True
        return self.ai_configured


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
