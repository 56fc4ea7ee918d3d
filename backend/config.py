"""
Configuration management for the storefront payment-status service.

Loads settings from .env via pydantic-settings.

Notes:
    - validate_production_settings() enforces strict CORS and disables the
      NETS mock flow in production
    - immediate_success_methods is a comma-separated list, parsed on access
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/storefront.db"

    # ── Checkout ────────────────────────────────────────────────────
    tax_rate: float = 0.07
    # Card/wallet methods that settle synchronously at checkout
    immediate_success_methods: str = "applepay,paynow,visa,mastercard"
    pending_order_reuse_minutes: int = 10

    # ── Live status stream ──────────────────────────────────────────
    sse_heartbeat_seconds: float = 15.0
    sink_queue_size: int = 100

    # ── NETS QR ─────────────────────────────────────────────────────
    nets_mock_enabled: bool = True
    public_base_url: str = "http://localhost:8000"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def immediate_success_methods_set(self) -> set[str]:
        return {
            m.strip().lower()
            for m in self.immediate_success_methods.split(",")
            if m.strip()
        }

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if self.nets_mock_enabled:
                raise ValueError(
                    "NETS_MOCK_ENABLED must be false in production. "
                    "The mock flow lets anyone holding a reference mark an order paid."
                )
            logger.info("Production settings validated")
        else:
            warnings = []
            if self.nets_mock_enabled:
                warnings.append("NETS_MOCK_ENABLED=true (mock QR payments accepted)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(w)


# Global settings instance
settings = Settings()
