"""
Settings for the SQL Server data-access layer.

Values come from MSSQL_* environment variables (or a local .env file).
MSSQL_USER, MSSQL_PASSWORD, MSSQL_DB and MSSQL_APP_NAME are required; a
missing or empty value raises ConfigError when the settings are built.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Any

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mssql_access.core.errors import ConfigError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    MSSQL_USER: str = Field(min_length=1)
    MSSQL_PASSWORD: SecretStr
    MSSQL_DB: str = Field(min_length=1)
    MSSQL_APP_NAME: str = Field(min_length=1)
    MSSQL_SERVER: str = "localhost"
    MSSQL_PORT: int = 1433

    # Pool
    MSSQL_POOL_SIZE: int = Field(default=10, ge=1)
    MSSQL_POOL_MAX_AGE_SEC: float = 600.0
    MSSQL_LOGIN_TIMEOUT: int = 60
    MSSQL_QUERY_TIMEOUT: int = 0  # 0 = driver default (no timeout)

    # Startup: fixed wait between attempts; None retries forever
    MSSQL_CONNECT_RETRY_INTERVAL_SEC: float = 5.0
    MSSQL_CONNECT_MAX_RETRIES: int | None = Field(default=None, ge=0)

    # Coercion knobs. MSSQL_DATE_FORMAT is accepted but not applied.
    MSSQL_NULL_CURRENCY_VALUE: Decimal | None = None
    MSSQL_DATE_FORMAT: str | None = None
    MSSQL_CACHE_TABLE_COLUMNS: bool = False

    @field_validator("MSSQL_PASSWORD")
    @classmethod
    def _password_not_empty(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("must not be empty")
        return v


def load_settings(**values: Any) -> Settings:
    """Build Settings from the environment, raising ConfigError on bad input.

    Keyword arguments override environment values (field names, e.g.
    ``MSSQL_DB="app"``; ``_env_file=None`` disables the .env lookup).
    """
    try:
        return Settings(**values)
    except ValidationError as e:
        # Only field names go into the message; input values may be secrets.
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise ConfigError(
            f"Missing or invalid settings: {', '.join(fields)}"
        ) from None


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings (built on first call)."""
    return load_settings()
