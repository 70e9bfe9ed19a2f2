from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, ValidationError


class Settings(BaseModel):
    supabase_url: HttpUrl
    supabase_anon_key: str
    supabase_service_key: str | None = None
    environment: Literal["local", "staging", "production"] = "local"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    license_grace_period_days: int = Field(default=7, ge=0)
    auth_timeout_seconds: float = Field(default=10.0, gt=0)
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    theme_storage_path: str | None = None
    reminder_hour: int = Field(default=9, ge=0, le=23)
    site_url: str | None = None
    reminder_organization_ids: list[str] = Field(default_factory=list)

    @property
    def is_debug(self) -> bool:
        return self.environment == "local"


def _build_settings() -> Settings:
    # Load .env file once on first settings build (for local development)
    load_dotenv()

    try:
        return Settings(
            supabase_url=os.environ["SUPABASE_URL"],
            supabase_anon_key=os.environ["SUPABASE_ANON_KEY"],
            supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY"),
            environment=os.getenv("ENVIRONMENT", "local"),
            log_level=os.getenv("LOG_LEVEL", "").upper() or None,
            license_grace_period_days=os.getenv("LICENSE_GRACE_PERIOD_DAYS", "7"),
            auth_timeout_seconds=os.getenv("AUTH_TIMEOUT_SECONDS", "10"),
            request_timeout_seconds=os.getenv("REQUEST_TIMEOUT_SECONDS", "30"),
            theme_storage_path=os.getenv("THEME_STORAGE_PATH"),
            reminder_hour=os.getenv("REMINDER_HOUR", "9"),
            site_url=os.getenv("SITE_URL"),
            reminder_organization_ids=[
                org_id.strip()
                for org_id in os.getenv("REMINDER_ORGANIZATION_IDS", "").split(",")
                if org_id.strip()
            ],
        )
    except KeyError as exc:
        required_keys = ("SUPABASE_URL", "SUPABASE_ANON_KEY")
        missing = [key for key in required_keys if key not in os.environ]
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        ) from exc
    except ValidationError as exc:
        raise RuntimeError(f"Invalid settings: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Reads environment variables once and validates them with Pydantic.
    """

    return _build_settings()
