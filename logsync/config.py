"""
Configuration settings for logsync.

Uses Pydantic Settings to load environment variables (and an optional `.env`
file) for the Loki source, the destination store, the sync engine tunables and
logging. The resulting `Settings` object is validated once at the boundary and
then passed explicitly into every component.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from logsync.errors import ConfigError
from logsync.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_TIMEZONE_OFFSET = "+00:00"
_TIMEZONE_OFFSET_RE = re.compile(r"^[+-]([01]\d|2[0-3]):([0-5]\d)$")
_SECRET_FIELDS = ("loki_password", "loki_api_key", "db_password")


class Settings(BaseSettings):
    # Loki source
    loki_endpoint: Optional[str] = Field(None, alias="LOKI_API_ENDPOINT")
    loki_username: Optional[str] = Field(None, alias="LOKI_USERNAME")
    loki_password: Optional[str] = Field(None, alias="LOKI_PASSWORD")
    loki_api_key: Optional[str] = Field(None, alias="LOKI_API_KEY")
    base_query: Optional[str] = Field(None, alias="LOKI_BASE_QUERY")
    query_limit: int = Field(1000, alias="LOKI_QUERY_LIMIT", gt=0)
    overlap_seconds: int = Field(0, alias="LOKI_OVERLAP_SECONDS", ge=0)
    request_timeout_seconds: float = Field(30.0, alias="LOKI_TIMEOUT_SECONDS", gt=0)

    # Sync engine
    timezone_offset: str = Field(DEFAULT_TIMEZONE_OFFSET, alias="TIMEZONE_OFFSET")
    initial_lookback_seconds: int = Field(3600, alias="INITIAL_LOOKBACK_SECONDS", gt=0)
    tail_rows: int = Field(10, alias="SYNC_TAIL_ROWS", ge=1)
    timestamp_column: str = Field("_timestamp", alias="TIMESTAMP_COLUMN", min_length=1)
    group_key_field: str = Field("metric_name", alias="GROUP_KEY_FIELD", min_length=1)
    ignored_group_prefix: str = Field("_", alias="IGNORED_GROUP_PREFIX")

    # Destination
    destination_backend: Literal["csv", "postgres"] = Field("csv", alias="DESTINATION_BACKEND")
    destination_dir: str = Field("data", alias="DESTINATION_DIR")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("logsync", alias="DB_NAME")
    db_schema: str = Field("logsync", alias="DB_SCHEMA")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(False, alias="JSON_LOGS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("timezone_offset", mode="before")
    @classmethod
    def _fallback_timezone_offset(cls, value: Any) -> str:
        text = "" if value is None else str(value).strip()
        if not _TIMEZONE_OFFSET_RE.match(text):
            log.warning(
                f"Invalid TIMEZONE_OFFSET '{value}', falling back to {DEFAULT_TIMEZONE_OFFSET}",
                extra={"timezone_offset": value},
            )
            return DEFAULT_TIMEZONE_OFFSET
        return text

    def missing_for_sync(self) -> List[str]:
        """Names of the environment variables a sync run still needs."""
        missing: List[str] = []
        if not self.loki_endpoint:
            missing.append("LOKI_API_ENDPOINT")
        if not self.base_query:
            missing.append("LOKI_BASE_QUERY")
        if self.destination_backend == "csv" and not self.destination_dir:
            missing.append("DESTINATION_DIR")
        if self.destination_backend == "postgres" and not self.db_name:
            missing.append("DB_NAME")
        return missing

    def validate_for_sync(self) -> "Settings":
        """
        Raise ConfigError when a required setting is missing.

        Returns the settings themselves so callers can chain.
        """
        missing = self.missing_for_sync()
        if missing:
            raise ConfigError(
                f"Missing required settings: {', '.join(missing)}",
                details={"missing": missing},
            )
        return self

    def masked(self) -> Dict[str, Any]:
        """Effective configuration with secrets replaced, for display."""
        values = self.model_dump()
        for name in _SECRET_FIELDS:
            if values.get(name):
                values[name] = "***"
        return values


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings", "DEFAULT_TIMEZONE_OFFSET"]
