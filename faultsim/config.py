"""Configuration for faultsim."""

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide settings, read once from the environment."""

    # Storage fault injection
    simulate_connection_issues: bool = False
    connection_failure_rate: float = Field(default=0.3, ge=0.0, le=1.0)
    max_connection_retries: int = Field(default=3, ge=0)
    base_retry_delay_ms: int = Field(default=100, ge=0)
    slow_operation_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    fault_injection_seed: Optional[int] = None

    # Single-shot call delays (payment gateway)
    simulate_payment_delays: bool = False
    payment_delay_frequency: float = Field(default=0.3, ge=0.0, le=1.0)
    payment_min_delay_ms: int = Field(default=2000, ge=0)
    payment_max_delay_ms: int = Field(default=8000, ge=0)
    payment_timeout_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    # Cart storage
    redis_url: Optional[str] = None
    cart_operation_timeout_seconds: Optional[float] = Field(default=None, gt=0)

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_delay_window(self) -> "Settings":
        if self.payment_min_delay_ms > self.payment_max_delay_ms:
            raise ValueError("payment_min_delay_ms must not exceed payment_max_delay_ms")
        return self


def load_settings() -> Settings:
    """Read settings from the environment (and .env, when present)."""
    return Settings()
