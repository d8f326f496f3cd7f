from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
import json
from typing import List, Any, Union
from pathlib import Path
from dotenv import load_dotenv

# Resolve project root (parent of alignzo/)
PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_PATH = PROJECT_ROOT / ".env"

# Explicitly load .env into process env before Pydantic reads it
load_dotenv(ENV_PATH, override=False)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=ENV_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    app_secret: str = Field(alias="APP_SECRET", default="change-me-please-32bytes")
    database_url: str = Field(default="sqlite+aiosqlite:///./alignzo.db", alias="DATABASE_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Allow a single string or comma/semicolon separated list in .env (e.g. FRONTEND_ORIGINS=http://localhost:3000,https://acme.com)
    frontend_origins: Union[str, List[str]] = Field(default=["http://localhost:3000"], alias="FRONTEND_ORIGINS")

    bootstrap_admin_email: str = Field(default="admin@example.com", alias="BOOTSTRAP_ADMIN_EMAIL")
    bootstrap_admin_password: str = Field(default="admin123", alias="BOOTSTRAP_ADMIN_PASSWORD")

    jira_base_url: str | None = Field(default=None, alias="JIRA_BASE_URL")
    jira_email: str | None = Field(default=None, alias="JIRA_EMAIL")
    jira_api_token: str | None = Field(default=None, alias="JIRA_API_TOKEN")

    # Zone used for naive timestamps coming out of ITSM exports
    timezone: str = Field(default="UTC", alias="TIMEZONE")

    upload_max_bytes: int = Field(default=1_048_576, alias="UPLOAD_MAX_BYTES")
    upload_batch_size: int = Field(default=50, alias="UPLOAD_BATCH_SIZE")

    timer_poll_seconds: int = Field(default=5, alias="TIMER_POLL_SECONDS")

    @field_validator("frontend_origins", mode="before")
    @classmethod
    def _parse_frontend_origins(cls, v: Any):
        # Accept JSON-style list OR simple comma/semicolon separated string
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                return json.loads(s)
            parts = [p.strip() for p in s.replace(";", ",").split(",") if p.strip()]
            return parts or ["http://localhost:3000"]
        return v

    @field_validator("upload_batch_size")
    @classmethod
    def _positive_batch(cls, v: int):
        if v < 1:
            raise ValueError("UPLOAD_BATCH_SIZE must be at least 1")
        return v

@lru_cache
def get_settings() -> Settings:
    return Settings()
