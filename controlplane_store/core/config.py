"""
Configuration Settings.

This module defines the store configuration using Pydantic's BaseSettings.
It loads all configuration from environment variables and an optional .env file
without explicit dotenv loading.
"""

from dataclasses import dataclass
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class DatabaseConfig(BaseModel):
    """Relational backend configuration."""

    url: str = Field(
        default="sqlite+aiosqlite:///.controlplane/store.sqlite",
        alias="CONTROLPLANE_STORE_DATABASE_URL",
        description="Async SQLAlchemy URL of the durable store",
    )
    pool_size: int = Field(
        default=20, alias="CONTROLPLANE_STORE_POOL_SIZE", description="Connection pool size for server databases"
    )
    pool_timeout: int = Field(
        default=5,
        alias="CONTROLPLANE_STORE_POOL_TIMEOUT",
        description="Seconds to wait for a pooled connection",
    )
    echo: bool = Field(default=False, alias="CONTROLPLANE_STORE_ECHO_SQL", description="Echo emitted SQL statements")

    model_config = {"populate_by_name": True}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", alias="CONTROLPLANE_STORE_LOG_LEVEL", description="Console log level")
    format: str = Field(
        default="detailed", alias="CONTROLPLANE_STORE_LOG_FORMAT", description="Log format (simple, detailed, json)"
    )
    file_dir: Optional[str] = Field(
        default=None,
        alias="CONTROLPLANE_STORE_LOG_FILE_DIR",
        description="Directory for the log file; file logging is off when unset",
    )

    model_config = {"populate_by_name": True}


@dataclass(frozen=True)
class StoreDefaults:
    """Fallback identities used when seeding and when callers omit a scope."""

    tenant_id: str = "t_default"
    workspace_id: str = "w_default"
    target_id: str = "target_local_default"

    @property
    def budget_scope_key(self) -> str:
        """Budget scope key of the default workspace."""
        return f"workspace:{self.tenant_id}:{self.workspace_id}"


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Store settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    # =====================================================================
    # Backend Selection
    # =====================================================================
    backend: Literal["memory", "sql"] = Field(
        default="sql",
        description="Repository backend (memory or sql)",
        alias="CONTROLPLANE_STORE_BACKEND",
    )

    # =====================================================================
    # Database Configuration
    # =====================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///.controlplane/store.sqlite",
        description="Async SQLAlchemy URL of the durable store",
        alias="CONTROLPLANE_STORE_DATABASE_URL",
    )
    pool_size: int = Field(default=20, alias="CONTROLPLANE_STORE_POOL_SIZE")
    pool_timeout: int = Field(default=5, alias="CONTROLPLANE_STORE_POOL_TIMEOUT")
    echo_sql: bool = Field(default=False, alias="CONTROLPLANE_STORE_ECHO_SQL")

    # =====================================================================
    # Seed / Fallback Identities
    # =====================================================================
    default_tenant_id: str = Field(default="t_default", alias="CONTROLPLANE_STORE_DEFAULT_TENANT_ID")
    default_workspace_id: str = Field(default="w_default", alias="CONTROLPLANE_STORE_DEFAULT_WORKSPACE_ID")
    default_target_id: str = Field(default="target_local_default", alias="CONTROLPLANE_STORE_DEFAULT_TARGET_ID")

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="CONTROLPLANE_STORE_LOG_LEVEL",
    )
    log_format: str = Field(default="detailed", alias="CONTROLPLANE_STORE_LOG_FORMAT")
    log_file_dir: Optional[str] = Field(default=None, alias="CONTROLPLANE_STORE_LOG_FILE_DIR")

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def database(self) -> DatabaseConfig:
        """Get relational backend configuration from environment variables."""
        return DatabaseConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration from environment variables."""
        return LoggingConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def defaults(self) -> StoreDefaults:
        """Get the seed/fallback identities."""
        return StoreDefaults(
            tenant_id=self.default_tenant_id,
            workspace_id=self.default_workspace_id,
            target_id=self.default_target_id,
        )


settings = Settings()
