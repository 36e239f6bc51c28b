"""Service configuration via environment variables."""

from __future__ import annotations

from datetime import timedelta

from pydantic_settings import BaseSettings


class CoachConfig(BaseSettings):
    """All configuration loaded from env vars or .env file."""

    # Storage
    db_path: str = "data/coach.db"

    # Session lifecycle
    retention_window_hours: float = 24.0
    history_limit: int = 500

    # Pricing
    upgrade_credit_window_hours: float = 24.0
    currency: str = "usd"

    # Payment processor
    stripe_secret_key: str | None = None
    checkout_success_url: str = (
        "http://localhost:5173/interview-coach"
        "?session_type={session_kind}&session_id={session_id}"
        "&checkout_session_id={{CHECKOUT_SESSION_ID}}"
    )
    checkout_cancel_url: str = "http://localhost:5173/?canceled=true"

    # HTTP transport
    host: str = "127.0.0.1"
    port: int = 8000
    api_token: str = "dev-token-change-me"
    cors_allow_origins: str = "http://localhost:5173,http://localhost:3000"

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def retention_window(self) -> timedelta:
        return timedelta(hours=self.retention_window_hours)

    @property
    def upgrade_credit_window(self) -> timedelta:
        return timedelta(hours=self.upgrade_credit_window_hours)

    @property
    def allowed_origins(self) -> list[str]:
        if not self.cors_allow_origins:
            return []
        return [x.strip() for x in self.cors_allow_origins.split(",") if x.strip()]
