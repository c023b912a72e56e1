"""Unit tests for SQLiteBackend."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from kvbase.adapters.outbound import SQLiteBackend
from kvbase.adapters.outbound.sqlite_backend import table_name
from kvbase.domain.errors import (
    EngineError,
    KeyAlreadyExistsError,
    KeyNotFoundError,
    SerializationError,
)
from kvbase.infrastructure.metrics import MetricsRegistry


def tables(path: Path) -> set[str]:
    """List the tables of a closed database file."""
    conn = sqlite3.connect(str(path))
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    finally:
        conn.close()
    return {name for (name,) in rows}


@pytest.mark.unit
class TestSQLiteBackendOpen:
    """Tests for opening and closing the SQLite backend."""

    def test_creates_file(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        path = temp_dir / "nested" / "kv.db"

        with SQLiteBackend(path, open_timeout=0.2, metrics=metrics_registry) as db:
            assert db.name == "sqlite"
            assert db.source == path
            assert db.is_open

        assert path.exists()

    def test_default_source(
        self,
        temp_dir: Path,
        monkeypatch: pytest.MonkeyPatch,
        metrics_registry: MetricsRegistry,
    ) -> None:
        """An empty source falls back to data.db."""
        monkeypatch.chdir(temp_dir)

        with SQLiteBackend("", open_timeout=0.2, metrics=metrics_registry) as db:
            assert db.source == Path("data.db")

        assert (temp_dir / "data.db").exists()

    def test_second_open_fails_fast(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        """A held file makes a second opener fail after the timeout."""
        path = temp_dir / "locked.db"

        with SQLiteBackend(path, open_timeout=0.2, metrics=metrics_registry):
            with pytest.raises(EngineError, match="cannot open"):
                SQLiteBackend(path, open_timeout=0.1, metrics=metrics_registry)

        # Lock is released on close
        with SQLiteBackend(path, open_timeout=0.1, metrics=metrics_registry) as db:
            assert db.count("users") == 0

    def test_not_a_database(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        path = temp_dir / "garbage.db"
        path.write_bytes(b"this is not a sqlite file" * 100)

        with pytest.raises(EngineError) as exc_info:
            SQLiteBackend(path, open_timeout=0.1, metrics=metrics_registry)

        assert isinstance(exc_info.value.__cause__, sqlite3.Error)

    def test_parent_path_is_a_file(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        """An unusable parent directory surfaces as EngineError."""
        (temp_dir / "f").write_text("x")

        with pytest.raises(EngineError, match="cannot open") as exc_info:
            SQLiteBackend(temp_dir / "f" / "kv.db", open_timeout=0.1, metrics=metrics_registry)

        assert isinstance(exc_info.value.__cause__, OSError)

    def test_close_is_idempotent(self, sqlite_backend: SQLiteBackend) -> None:
        sqlite_backend.close()
        sqlite_backend.close()

        assert not sqlite_backend.is_open
        assert "closed" in repr(sqlite_backend)

    def test_use_after_close(self, sqlite_backend: SQLiteBackend) -> None:
        sqlite_backend.close()

        with pytest.raises(EngineError, match="closed"):
            sqlite_backend.count("users")

    def test_open_connections_gauge(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        labels = {"backend": "sqlite"}
        db = SQLiteBackend(temp_dir / "g.db", open_timeout=0.2, metrics=metrics_registry)
        assert metrics_registry._registry.get_sample_value("kvbase_open_connections", labels) == 1.0

        db.close()
        assert metrics_registry._registry.get_sample_value("kvbase_open_connections", labels) == 0.0


@pytest.mark.unit
class TestSQLiteBackendBuckets:
    """Tests for bucket-to-table mapping."""

    def test_table_name_is_hex(self) -> None:
        assert table_name("users") == "kv_" + b"users".hex()

    def test_reads_do_not_create_buckets(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        """Reading a missing bucket leaves no table behind."""
        path = temp_dir / "untouched.db"

        with SQLiteBackend(path, open_timeout=0.2, metrics=metrics_registry) as db:
            assert db.count("ghost") == 0
            assert db.get("ghost") == {}
            for call in (
                lambda: db.read("ghost", "k"),
                lambda: db.update("ghost", "k", 1),
                lambda: db.delete("ghost", "k"),
            ):
                with pytest.raises(KeyNotFoundError):
                    call()

        assert table_name("ghost") not in tables(path)

    def test_create_makes_table(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        path = temp_dir / "create.db"

        with SQLiteBackend(path, open_timeout=0.2, metrics=metrics_registry) as db:
            db.create("users", "u1", {"name": "Ann"})

        assert tables(path) == {table_name("users")}

    def test_bucket_survives_deleting_all_keys(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        path = temp_dir / "empty.db"

        with SQLiteBackend(path, open_timeout=0.2, metrics=metrics_registry) as db:
            db.create("users", "u1", 1)
            db.delete("users", "u1")
            assert db.count("users") == 0

        assert table_name("users") in tables(path)

    def test_drop_removes_table(self, temp_dir: Path, metrics_registry: MetricsRegistry) -> None:
        path = temp_dir / "drop.db"

        with SQLiteBackend(path, open_timeout=0.2, metrics=metrics_registry) as db:
            db.create("users", "u1", 1)
            db.drop("users")

        assert tables(path) == set()

    def test_bucket_names_are_case_sensitive(self, sqlite_backend: SQLiteBackend) -> None:
        """SQLite table names ignore case; bucket names must not."""
        sqlite_backend.create("Users", "u1", "upper")
        sqlite_backend.create("users", "u1", "lower")

        assert sqlite_backend.read("Users", "u1") == "upper"
        assert sqlite_backend.read("users", "u1") == "lower"

    def test_reserved_looking_bucket(self, sqlite_backend: SQLiteBackend) -> None:
        """Names SQLite reserves for itself are ordinary buckets here."""
        sqlite_backend.create("sqlite_master", "k", 1)
        sqlite_backend.create('we"ird', "k", 2)

        assert sqlite_backend.read("sqlite_master", "k") == 1
        assert sqlite_backend.read('we"ird', "k") == 2


@pytest.mark.unit
class TestSQLiteBackendWrites:
    """Tests for write atomicity."""

    def test_failed_update_keeps_value(self, sqlite_backend: SQLiteBackend) -> None:
        sqlite_backend.create("users", "u1", {"name": "Ann"})

        with pytest.raises(SerializationError):
            sqlite_backend.update("users", "u1", object())

        assert sqlite_backend.read("users", "u1") == {"name": "Ann"}

    def test_failed_create_writes_nothing(self, sqlite_backend: SQLiteBackend) -> None:
        with pytest.raises(SerializationError):
            sqlite_backend.create("users", "u1", object())

        assert sqlite_backend.count("users") == 0

    def test_transaction_rolled_back_on_error(self, sqlite_backend: SQLiteBackend) -> None:
        """A failure inside a write transaction leaves the connection usable."""
        sqlite_backend.create("users", "u1", 1)

        with pytest.raises(KeyNotFoundError):
            sqlite_backend.delete("users", "missing")

        sqlite_backend.create("users", "u2", 2)
        assert sqlite_backend.count("users") == 2

    def test_bytes_written_metric(self, sqlite_backend: SQLiteBackend, metrics_registry: MetricsRegistry) -> None:
        sqlite_backend.create("users", "u1", {"name": "Ann"})

        written = metrics_registry._registry.get_sample_value(
            "kvbase_value_bytes_written_total", {"backend": "sqlite"}
        )
        assert written == len(b'{"name":"Ann"}')

    def test_rejected_writes_count_no_bytes(
        self, sqlite_backend: SQLiteBackend, metrics_registry: MetricsRegistry
    ) -> None:
        """Bytes are counted only for writes that commit."""
        sqlite_backend.create("users", "u1", 1)

        with pytest.raises(KeyAlreadyExistsError):
            sqlite_backend.create("users", "u1", 22)
        with pytest.raises(KeyNotFoundError):
            sqlite_backend.update("users", "missing", 333)

        written = metrics_registry._registry.get_sample_value(
            "kvbase_value_bytes_written_total", {"backend": "sqlite"}
        )
        assert written == len(b"1")

    def test_error_survives_implicit_rollback(self, sqlite_backend: SQLiteBackend) -> None:
        """The block's own error propagates when SQLite already ended the transaction."""
        with pytest.raises(ValueError, match="original"):
            with sqlite_backend._transaction() as conn:
                conn.execute("ROLLBACK")
                raise ValueError("original")

        sqlite_backend.create("users", "u1", 1)
        assert sqlite_backend.read("users", "u1") == 1

    def test_failed_commit_leaves_connection_usable(self, sqlite_backend: SQLiteBackend) -> None:
        with pytest.raises(sqlite3.OperationalError):
            with sqlite_backend._transaction() as conn:
                conn.execute("ROLLBACK")

        assert not sqlite_backend._connection().in_transaction
        sqlite_backend.create("users", "u1", 1)
        assert sqlite_backend.count("users") == 1
