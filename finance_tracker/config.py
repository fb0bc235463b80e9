from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FALLBACK_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.92,
    "GBP": 0.79,
    "JPY": 149.5,
    "CAD": 1.35,
    "AUD": 1.52,
    "INR": 85.0,
    "CNY": 7.24,
    "KRW": 1331.0,
    "SGD": 1.34,
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Finance Tracker FX Service"
    api_prefix: str = "/v1"
    log_level: str = "INFO"

    fx_provider_base_url: str = "https://openexchangerates.org/api"
    fx_app_id: str = ""
    fx_base_currency: str = "USD"
    fx_rate_ttl_seconds: int = 24 * 60 * 60
    fx_prewarm_on_startup: bool = False
    fx_fallback_rates: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_FALLBACK_RATES)
    )

    request_timeout_seconds: int = 15

    @field_validator("fx_base_currency", mode="before")
    @classmethod
    def _normalize_base(cls, value: str) -> str:
        return str(value).strip().upper()

    @field_validator("fx_fallback_rates", mode="after")
    @classmethod
    def _normalize_fallback(cls, value: dict[str, float]) -> dict[str, float]:
        normalized = {code.strip().upper(): float(rate) for code, rate in value.items()}
        if any(rate <= 0 for rate in normalized.values()):
            raise ValueError("fallback rates must be positive")
        return normalized


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
