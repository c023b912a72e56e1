"""Configuration management for kvbase."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BackendName = Literal["sqlite", "rocksdb"]


class StorageConfig(BaseModel):
    """Storage backend selection and locations."""

    backend: BackendName = Field(default="sqlite", description="Backend used by open_backend")
    sqlite_path: Path = Field(default=Path("data.db"), description="SQLite database file")
    rocksdb_path: Path = Field(default=Path("data"), description="RocksDB database directory")
    open_timeout_seconds: float = Field(
        default=1.0, gt=0, le=300, description="How long SQLite waits for the file lock on open"
    )

    def source_for(self, backend: BackendName | None = None) -> Path:
        """Return the configured location for a backend (default: the selected one)."""
        if (backend or self.backend) == "rocksdb":
            return self.rocksdb_path
        return self.sqlite_path


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(default="kvbase", description="Service name for tracing")
    metrics_port: int | None = Field(
        default=None, ge=1, le=65535, description="Prometheus metrics port (None disables the server)"
    )


class Config(BaseSettings):
    """Main configuration for kvbase."""

    model_config = SettingsConfigDict(
        env_prefix="KVBASE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def ensure_directories(self) -> None:
        """Ensure the parent directories of both backend locations exist."""
        self.storage.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        self.storage.rocksdb_path.parent.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    config = Config()
    config.ensure_directories()
    return config
