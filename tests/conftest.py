"""Pytest configuration and fixtures for kvbase tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from kvbase.adapters.outbound import RocksDBBackend, SQLiteBackend
from kvbase.infrastructure.config import Config, StorageConfig
from kvbase.infrastructure.container import Container
from kvbase.infrastructure.metrics import MetricsRegistry
from kvbase.ports import Backend


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid duplicate-timeseries errors between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """Provide a test configuration rooted in the temporary directory."""
    return Config(
        storage=StorageConfig(
            backend="sqlite",
            sqlite_path=temp_dir / "kv" / "test.db",
            rocksdb_path=temp_dir / "kv" / "rocks",
            open_timeout_seconds=0.2,
        ),
    )


@pytest.fixture
def container() -> Generator[Container, None, None]:
    """Provide a fresh DI container for each test."""
    c = Container()
    yield c
    c.clear()


@pytest.fixture
def sqlite_backend(temp_dir: Path, metrics_registry: MetricsRegistry) -> Generator[SQLiteBackend, None, None]:
    """Provide an open SQLite backend."""
    backend = SQLiteBackend(temp_dir / "test.db", open_timeout=0.2, metrics=metrics_registry)
    yield backend
    backend.close()


@pytest.fixture
def rocksdb_backend(temp_dir: Path, metrics_registry: MetricsRegistry) -> Generator[RocksDBBackend, None, None]:
    """Provide an open RocksDB backend."""
    backend = RocksDBBackend(temp_dir / "rocks", metrics=metrics_registry)
    yield backend
    backend.close()


@pytest.fixture(params=["sqlite", "rocksdb"])
def backend(request: pytest.FixtureRequest) -> Backend:
    """Provide each backend in turn, for contract tests."""
    return request.getfixturevalue(f"{request.param}_backend")


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
