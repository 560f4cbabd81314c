from functools import lru_cache
import json
from pathlib import Path
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

LOG_LEVELS = {"debug", "info", "warning", "error"}


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8", extra="ignore")

    project_name: str = "NORA Timetable API"
    api_prefix: str = "/v1"
    port: int = 8000
    environment: str = "development"
    log_level: str | None = None

    database_url: str | None = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = ""
    db_name: str = "nora"
    db_sslmode: str = "disable"
    db_timezone: str = "Europe/Berlin"
    db_pool_size: int = 10
    db_max_overflow: int = 90
    db_pool_recycle_seconds: int = 3600

    keycloak_url: str = "http://localhost:8080"
    keycloak_admin_user: str = "admin"
    keycloak_admin_password: str = ""
    keycloak_master_realm: str = "master"
    keycloak_client_id: str = "nora-frontend"
    jwks_cache_seconds: int = 300
    identity_timeout_seconds: float = 10.0

    default_tenant_slug: str = "default"
    enable_tenant_subdomain: bool = False

    ics_base_url: str = "https://cis.nordakademie.de/fileadmin/Infos/Stundenplaene"
    ics_fetch_timeout_seconds: float = 30.0
    ics_semesters: int = 7
    ics_import_log_file: str = "logs/ics_data_imports.log"

    scheduler_enabled: bool = True
    scheduler_run_on_startup: bool = True
    scheduler_jitter_seconds: int = 0

    smtp_host: str | None = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_from_email: str | None = "nora@nora-nak.de"
    smtp_from_name: str = "NORA"
    smtp_use_tls: bool = True
    smtp_use_ssl: bool = False
    smtp_retry_attempts: int = 2
    smtp_retry_backoff_seconds: float = 1.0
    smtp_timeout_seconds: int = 15

    frontend_url: str = "https://nora-nak.de"
    background_max_workers: int = 4

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str | None) -> str | None:
        if value is None:
            return None
        lowered = value.strip().lower()
        if lowered not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(sorted(LOG_LEVELS))}")
        return lowered

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level
        return "warning" if self.is_production else "info"

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        password = quote_plus(self.db_password)
        options = quote_plus(f"-c timezone={self.db_timezone}")
        return (
            f"postgresql+psycopg://{self.db_user}:{password}@{self.db_host}:{self.db_port}/{self.db_name}"
            f"?sslmode={self.db_sslmode}&options={options}"
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
