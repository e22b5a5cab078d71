import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    auth_secret_key: str = Field("change-me", alias="AUTH_SECRET_KEY")
    auth_algorithm: str = Field("HS256", alias="AUTH_ALGORITHM")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    # Bounded fetch of caller-supplied URLs
    fetch_timeout_seconds: float = Field(10.0, alias="FETCH_TIMEOUT_SECONDS")
    fetch_max_bytes: int = Field(2 * 1024 * 1024, alias="FETCH_MAX_BYTES")
    fetch_max_redirects: int = Field(5, alias="FETCH_MAX_REDIRECTS")
    fetch_user_agent: str = Field(
        "Mozilla/5.0 (compatible; ChompRecipeParser/1.0; +https://chompgrocery.com)",
        alias="FETCH_USER_AGENT",
    )
    # External text-extraction service (OpenAI-compatible chat completions)
    extraction_base_url: str | None = Field(None, alias="EXTRACTION_BASE_URL")
    extraction_api_key: str | None = Field(None, alias="EXTRACTION_API_KEY")
    extraction_model_name: str = Field("full", alias="EXTRACTION_MODEL_NAME")
    extraction_timeout_seconds: float = Field(30.0, alias="EXTRACTION_TIMEOUT_SECONDS")
    extraction_max_tokens: int = Field(2048, alias="EXTRACTION_MAX_TOKENS")
    # Per-identity fixed-window rate limiting
    rate_limit_max_requests: int = Field(30, alias="RATE_LIMIT_MAX_REQUESTS")
    rate_limit_window_seconds: float = Field(60.0, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_sweep_interval_seconds: float = Field(
        60.0, alias="RATE_LIMIT_SWEEP_INTERVAL_SECONDS"
    )

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


logger = logging.getLogger(__name__)


@lru_cache
def get_settings() -> Settings:
    try:
        settings = Settings()
    except PermissionError:
        logger.warning("Unable to read .env; continuing with environment variables only")
        settings = Settings(_env_file=None)
    return settings
