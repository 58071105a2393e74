"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env from the repo root regardless of CWD
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./propcalc_platform.db"

    # AI
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    insight_timeout_seconds: float = 30.0

    # Identity provider (JWTs are issued externally, we only verify them)
    identity_jwt_secret: str = "change-me-in-production"
    identity_jwt_algorithm: str = "HS256"
    identity_issuer: str = ""
    identity_audience: str = ""

    # Admin
    admin_emails: str = ""

    # Deal wizard
    strict_step_order: bool = False
    enforce_deal_ownership: bool = False

    # CORS / Frontend
    cors_origins: str = "http://localhost:3000"

    # General
    debug: bool = True

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list.

        In debug mode, returns ["*"] to allow any origin.
        """
        if self.debug:
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def admin_emails_list(self) -> list[str]:
        """Lower-cased admin email allow-list."""
        return [e.strip().lower() for e in self.admin_emails.split(",") if e.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
