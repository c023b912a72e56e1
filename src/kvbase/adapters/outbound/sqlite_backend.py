"""SQLite implementation of the Backend port.

One database file holds every bucket. Each bucket is its own table, the
engine's native namespace, clustered on the key:

    CREATE TABLE "kv_<hex bucket>" (key TEXT PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID

SQLite compares table names case-insensitively, so the table name is the
hex encoding of the UTF-8 bucket name. Buckets ``"Users"`` and ``"users"``
stay apart and no bucket can hit a reserved ``sqlite_`` name.

Bucket tables are created by ``create`` only. Reads, updates, deletes and
counts against a bucket that was never written leave the file untouched.

Locking:
    The connection runs in exclusive locking mode and takes the lock when it
    opens, so the file has a single owner. A second opener waits at most
    ``open_timeout`` seconds and then fails with EngineError.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, TypeVar

from kvbase.domain.errors import EngineError, KeyAlreadyExistsError, KeyNotFoundError
from kvbase.domain.services import ValueCodec
from kvbase.domain.value_objects import validate_name
from kvbase.infrastructure.config import get_config
from kvbase.infrastructure.metrics import MetricsRegistry, get_metrics, instrument

T = TypeVar("T")

DEFAULT_SOURCE = "data.db"
TABLE_PREFIX = "kv_"

logger = logging.getLogger(__name__)


def table_name(bucket: str) -> str:
    """Return the table that stores ``bucket``."""
    return TABLE_PREFIX + validate_name("bucket", bucket).encode("utf-8").hex()


class SQLiteBackend:
    """SQLite-backed implementation of the Backend protocol.

    Attributes:
        name: Always "sqlite".
        source: Path of the database file.

    Example:
        with SQLiteBackend("app.db") as db:
            db.create("users", "u1", {"name": "Ann"})
            assert db.count("users") == 1
    """

    name = "sqlite"

    def __init__(
        self,
        source: str | Path = "",
        *,
        open_timeout: float | None = None,
        metrics: MetricsRegistry | None = None,
        codec: ValueCodec | None = None,
    ) -> None:
        """Open (creating if needed) the database file.

        Args:
            source: Database file. Empty falls back to "data.db".
            open_timeout: Seconds to wait for the file lock (default from config).
            metrics: Metrics registry (default: global registry).
            codec: Value codec (default: JSON via pydantic).

        Raises:
            EngineError: If the file cannot be opened, is not a SQLite
                database, or stays locked past the timeout.
        """
        self._source = Path(source or DEFAULT_SOURCE)
        self._open_timeout = (
            open_timeout if open_timeout is not None
            else get_config().storage.open_timeout_seconds
        )
        self._metrics = metrics or get_metrics()
        self._codec = codec or ValueCodec()
        self._conn: sqlite3.Connection | None = None

        with instrument(self.name, "open", metrics=self._metrics):
            self._conn = self._open()

        self._metrics.open_connections.labels(self.name).inc()
        logger.info(f"Opened SQLite backend at {self._source}")

    def _open(self) -> sqlite3.Connection:
        """Connect and take the exclusive file lock."""
        conn: sqlite3.Connection | None = None
        try:
            self._source.parent.mkdir(parents=True, exist_ok=True)
            # isolation_level=None: transactions are issued explicitly below
            conn = sqlite3.connect(
                str(self._source),
                timeout=self._open_timeout,
                isolation_level=None,
            )
            conn.execute("PRAGMA locking_mode = EXCLUSIVE")
            conn.execute("BEGIN EXCLUSIVE")
            # Fails here on a file that is not a SQLite database
            conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
            conn.execute("COMMIT")
        except (sqlite3.Error, OSError) as exc:
            if conn is not None:
                conn.close()
            logger.warning(f"Failed to open SQLite backend at {self._source}: {exc}")
            raise EngineError(self.name, f"cannot open {self._source}: {exc}") from exc
        return conn

    @property
    def source(self) -> Path:
        """Return the database file path."""
        return self._source

    @property
    def is_open(self) -> bool:
        """Check whether the connection is still open."""
        return self._conn is not None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise EngineError(self.name, f"backend at {self._source} is closed")
        return self._conn

    @contextmanager
    def _operation(self, operation: str, bucket: str) -> Iterator[None]:
        """Instrument an operation and translate sqlite3 errors."""
        with instrument(self.name, operation, bucket, self._metrics):
            try:
                yield
            except sqlite3.Error as exc:
                logger.warning(f"SQLite {operation} on bucket {bucket!r} failed: {exc}")
                raise EngineError(self.name, f"{operation} on {bucket!r} failed: {exc}") from exc

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block in one write transaction, rolling back on any error."""
        conn = self._connection()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.execute("COMMIT")
        except BaseException:
            # SQLite may already have rolled back on its own
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise

    def _bucket_exists(self, conn: sqlite3.Connection, bucket: str) -> bool:
        row = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table_name(bucket),),
        ).fetchone()
        return row is not None

    def _ensure_bucket(self, conn: sqlite3.Connection, bucket: str) -> None:
        conn.execute(
            f'CREATE TABLE IF NOT EXISTS "{table_name(bucket)}" '
            "(key TEXT PRIMARY KEY, value BLOB NOT NULL) WITHOUT ROWID"
        )

    def _view(self, conn: sqlite3.Connection, bucket: str, key: str) -> bytes:
        """Return the stored bytes for a key.

        Raises:
            KeyNotFoundError: If the bucket or the key is absent.
        """
        if not self._bucket_exists(conn, bucket):
            raise KeyNotFoundError(bucket, key)

        row = conn.execute(
            f'SELECT value FROM "{table_name(bucket)}" WHERE key = ?', (key,)
        ).fetchone()
        if row is None:
            raise KeyNotFoundError(bucket, key)
        return bytes(row[0])

    def _write(self, conn: sqlite3.Connection, bucket: str, key: str, data: bytes) -> None:
        """Store bytes under a key in an existing bucket."""
        conn.execute(
            f'INSERT OR REPLACE INTO "{table_name(bucket)}" (key, value) VALUES (?, ?)',
            (key, data),
        )

    def count(self, bucket: str) -> int:
        """Return the number of records in a bucket (0 if it does not exist)."""
        validate_name("bucket", bucket)

        with self._operation("count", bucket):
            conn = self._connection()
            if not self._bucket_exists(conn, bucket):
                return 0
            (total,) = conn.execute(f'SELECT COUNT(*) FROM "{table_name(bucket)}"').fetchone()
            return int(total)

    def create(self, bucket: str, key: str, value: Any) -> None:
        """Insert a new record, creating the bucket table if needed."""
        validate_name("bucket", bucket)
        validate_name("key", key)

        with self._operation("create", bucket):
            data = self._codec.encode(value)
            with self._transaction() as conn:
                self._ensure_bucket(conn, bucket)
                try:
                    self._view(conn, bucket, key)
                except KeyNotFoundError:
                    self._write(conn, bucket, key, data)
                else:
                    raise KeyAlreadyExistsError(bucket, key)
            self._metrics.value_bytes_written_total.labels(self.name).inc(len(data))

        logger.debug(f"Created {bucket}/{key} ({len(data)} bytes)")

    def read(self, bucket: str, key: str, model: type[T] = Any) -> T:  # type: ignore[assignment]
        """Return one record decoded as ``model``."""
        validate_name("bucket", bucket)
        validate_name("key", key)

        with self._operation("read", bucket):
            data = self._view(self._connection(), bucket, key)
            return self._codec.decode(data, model)

    def update(self, bucket: str, key: str, value: Any) -> None:
        """Overwrite an existing record."""
        validate_name("bucket", bucket)
        validate_name("key", key)

        with self._operation("update", bucket):
            data = self._codec.encode(value)
            with self._transaction() as conn:
                self._view(conn, bucket, key)
                self._write(conn, bucket, key, data)
            self._metrics.value_bytes_written_total.labels(self.name).inc(len(data))

        logger.debug(f"Updated {bucket}/{key} ({len(data)} bytes)")

    def delete(self, bucket: str, key: str) -> None:
        """Remove a record. The bucket table stays, possibly empty."""
        validate_name("bucket", bucket)
        validate_name("key", key)

        with self._operation("delete", bucket):
            with self._transaction() as conn:
                self._view(conn, bucket, key)
                conn.execute(f'DELETE FROM "{table_name(bucket)}" WHERE key = ?', (key,))

        logger.debug(f"Deleted {bucket}/{key}")

    def drop(self, bucket: str) -> None:
        """Drop the bucket table. A missing bucket is a no-op."""
        validate_name("bucket", bucket)

        with self._operation("drop", bucket):
            with self._transaction() as conn:
                conn.execute(f'DROP TABLE IF EXISTS "{table_name(bucket)}"')

        logger.info(f"Dropped bucket {bucket!r}")

    def get(self, bucket: str, model: type[T] = Any) -> dict[str, T]:  # type: ignore[assignment]
        """Return every record in a bucket, keyed by record key."""
        validate_name("bucket", bucket)

        with self._operation("get", bucket):
            conn = self._connection()
            if not self._bucket_exists(conn, bucket):
                return {}

            rows = conn.execute(
                f'SELECT key, value FROM "{table_name(bucket)}" ORDER BY key'
            ).fetchall()
            return {key: self._codec.decode(bytes(data), model) for key, data in rows}

    def close(self) -> None:
        """Close the connection and release the file lock."""
        if self._conn is None:
            return

        self._conn.close()
        self._conn = None
        self._metrics.open_connections.labels(self.name).dec()
        logger.info(f"Closed SQLite backend at {self._source}")

    def __enter__(self) -> SQLiteBackend:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"SQLiteBackend({str(self._source)!r}, {state})"
