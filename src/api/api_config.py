# This file defines runtime settings for the API layer in one place.
# It exists so versioning, storage table names, upload limits, and pending import retention can be configured without code edits.
# The config loader reads API_* environment variables and applies safe defaults for local development.
# It also validates table names and version paths to prevent unsafe SQL identifier usage.

from __future__ import annotations

import os
import re
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

_IDENTIFIER_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class ApiConfig(BaseModel):
    """Typed API runtime configuration."""

    model_config = ConfigDict(extra="ignore")

    api_name: str = "Occupancy Pricing API"
    api_version_path: str = "/api/v1"
    schema_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8000
    environment: str = "local"
    database_url: str
    allowed_origins: list[str] = Field(default_factory=list)
    price_list_table_name: str = "price_list_document"
    engine_config_path: str = "configs/occupancy_pricing.yaml"
    max_upload_bytes: int = 10 * 1024 * 1024
    import_session_ttl_seconds: int = 3600
    max_pending_imports: int = 100
    app_version: str = "0.1.0"

    @field_validator("api_version_path")
    @classmethod
    def validate_api_version_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("api_version_path must start with '/'.")
        parts = [part for part in value.split("/") if part]
        if len(parts) < 2 or parts[-1].startswith("v") is False:
            raise ValueError("api_version_path must look like '/api/v1'.")
        return value.rstrip("/")

    @field_validator("price_list_table_name")
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        if not _IDENTIFIER_RE.match(value):
            raise ValueError(f"Unsafe SQL identifier: {value!r}")
        return value

    @field_validator("max_upload_bytes", "import_session_ttl_seconds", "max_pending_imports")
    @classmethod
    def validate_positive_ints(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Value must be greater than 0.")
        return value

    def api_version_label(self) -> str:
        return self.api_version_path.rstrip("/").split("/")[-1]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_list(name: str, default: list[str] | None = None) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default or [])
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_api_config(*, load_env: bool = True) -> ApiConfig:
    """Load API configuration from `.env` and process environment."""

    if load_env:
        load_dotenv()

    config_values: dict[str, object] = {
        "api_name": os.getenv("API_NAME", "Occupancy Pricing API"),
        "api_version_path": os.getenv("API_VERSION_PATH", "/api/v1"),
        "schema_version": os.getenv("API_SCHEMA_VERSION", "1.0.0"),
        "host": os.getenv("API_HOST", "0.0.0.0"),
        "port": _env_int("API_PORT", 8000),
        "environment": os.getenv("ENV", "local"),
        "database_url": os.getenv("DATABASE_URL", ""),
        "allowed_origins": _env_list("API_ALLOWED_ORIGINS", []),
        "price_list_table_name": os.getenv("API_PRICE_LIST_TABLE_NAME", "price_list_document"),
        "engine_config_path": os.getenv("API_ENGINE_CONFIG_PATH", "configs/occupancy_pricing.yaml"),
        "max_upload_bytes": _env_int("API_MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
        "import_session_ttl_seconds": _env_int("API_IMPORT_SESSION_TTL_SECONDS", 3600),
        "max_pending_imports": _env_int("API_MAX_PENDING_IMPORTS", 100),
        "app_version": os.getenv("APP_VERSION", "0.1.0"),
    }
    if not config_values["database_url"]:
        raise RuntimeError("DATABASE_URL is required for API startup.")

    return ApiConfig.model_validate(config_values)


@lru_cache(maxsize=1)
def get_api_config() -> ApiConfig:
    """Cached accessor for API config."""

    return load_api_config()
