"""RocksDB implementation of the Backend port.

RocksDB has one flat, byte-ordered key space. A bucket is emulated as the
range of physical keys starting with its ``BucketKey.prefix``. The prefix is
length-prefixed, so no two logical ``(bucket, key)`` pairs share a physical
key and a bucket's range never overlaps another bucket's.

A bucket has no existence apart from its keys: an empty bucket and a bucket
that was never written look the same.

Count, get and drop seek an iterator to the bucket prefix and walk forward
until the prefix stops matching, so their cost is linear in the bucket size.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Tuple, TypeVar

from rocksdict import Options, Rdict, WriteBatch

from kvbase.domain.errors import (
    EngineError,
    KeyAlreadyExistsError,
    KeyNotFoundError,
    KVBaseError,
)
from kvbase.domain.services import ValueCodec
from kvbase.domain.value_objects import BucketKey, validate_name
from kvbase.infrastructure.metrics import MetricsRegistry, get_metrics, instrument

T = TypeVar("T")
KV = Tuple[bytes, bytes]

DEFAULT_SOURCE = "data"

logger = logging.getLogger(__name__)


def make_options(*, create_if_missing: bool = True) -> Options:
    """Options for a raw-mode store: keys and values are plain bytes."""
    opts = Options(raw_mode=True)
    opts.create_if_missing(create_if_missing)
    return opts


class RocksDBBackend:
    """RocksDB-backed implementation of the Backend protocol.

    Attributes:
        name: Always "rocksdb".
        source: Path of the database directory.

    Example:
        with RocksDBBackend("app-data") as db:
            db.create("a", "b_c", 1)
            db.create("a_b", "c", 2)
            assert db.read("a", "b_c") == 1
    """

    name = "rocksdb"

    def __init__(
        self,
        source: str | Path = "",
        *,
        options: Options | None = None,
        metrics: MetricsRegistry | None = None,
        codec: ValueCodec | None = None,
    ) -> None:
        """Open (creating if needed) the database directory.

        Args:
            source: Database directory. Empty falls back to "data".
            options: rocksdict Options; must be raw mode (default: make_options()).
            metrics: Metrics registry (default: global registry).
            codec: Value codec (default: JSON via pydantic).

        Raises:
            EngineError: If RocksDB cannot open the directory, including when
                another handle holds its lock.
        """
        self._source = Path(source or DEFAULT_SOURCE)
        self._metrics = metrics or get_metrics()
        self._codec = codec or ValueCodec()
        self._db: Rdict | None = None
        if options is None:
            options = make_options()

        with instrument(self.name, "open", metrics=self._metrics):
            try:
                self._source.parent.mkdir(parents=True, exist_ok=True)
                self._db = Rdict(str(self._source), options)
            except Exception as exc:
                logger.warning(f"Failed to open RocksDB backend at {self._source}: {exc}")
                raise EngineError(self.name, f"cannot open {self._source}: {exc}") from exc

        self._metrics.open_connections.labels(self.name).inc()
        logger.info(f"Opened RocksDB backend at {self._source}")

    @property
    def source(self) -> Path:
        """Return the database directory path."""
        return self._source

    @property
    def is_open(self) -> bool:
        """Check whether the database handle is still open."""
        return self._db is not None

    def _handle(self) -> Rdict:
        if self._db is None:
            raise EngineError(self.name, f"backend at {self._source} is closed")
        return self._db

    @contextmanager
    def _engine_call(self, operation: str, bucket: str) -> Iterator[None]:
        """Translate RocksDB failures raised inside the block."""
        try:
            yield
        except KVBaseError:
            raise
        except Exception as exc:
            logger.warning(f"RocksDB {operation} on bucket {bucket!r} failed: {exc}")
            raise EngineError(self.name, f"{operation} on {bucket!r} failed: {exc}") from exc

    def _scan(self, prefix: bytes) -> Iterator[KV]:
        """Yield every (physical key, value) pair that starts with ``prefix``."""
        it = self._handle().iter()
        try:
            it.seek(prefix)
            while it.valid():
                k = it.key()
                if not k.startswith(prefix):
                    break
                yield k, it.value()
                it.next()
        finally:
            del it

    def _fetch(self, bucket: str, key: str) -> bytes | None:
        with self._engine_call("get", bucket):
            return self._handle().get(BucketKey(bucket, key).to_bytes())

    def _put(self, bucket: str, key: str, data: bytes) -> None:
        with self._engine_call("put", bucket):
            self._handle()[BucketKey(bucket, key).to_bytes()] = data
        self._metrics.value_bytes_written_total.labels(self.name).inc(len(data))

    def count(self, bucket: str) -> int:
        """Return the number of records in a bucket."""
        prefix = BucketKey.prefix(bucket)

        with instrument(self.name, "count", bucket, self._metrics):
            with self._engine_call("count", bucket):
                return sum(1 for _ in self._scan(prefix))

    def create(self, bucket: str, key: str, value: Any) -> None:
        """Insert a new record."""
        validate_name("bucket", bucket)
        validate_name("key", key)

        with instrument(self.name, "create", bucket, self._metrics):
            data = self._codec.encode(value)
            if self._fetch(bucket, key) is not None:
                raise KeyAlreadyExistsError(bucket, key)
            self._put(bucket, key, data)

        logger.debug(f"Created {bucket}/{key} ({len(data)} bytes)")

    def read(self, bucket: str, key: str, model: type[T] = Any) -> T:  # type: ignore[assignment]
        """Return one record decoded as ``model``."""
        validate_name("bucket", bucket)
        validate_name("key", key)

        with instrument(self.name, "read", bucket, self._metrics):
            data = self._fetch(bucket, key)
            if data is None:
                raise KeyNotFoundError(bucket, key)
            return self._codec.decode(data, model)

    def update(self, bucket: str, key: str, value: Any) -> None:
        """Overwrite an existing record."""
        validate_name("bucket", bucket)
        validate_name("key", key)

        with instrument(self.name, "update", bucket, self._metrics):
            data = self._codec.encode(value)
            if self._fetch(bucket, key) is None:
                raise KeyNotFoundError(bucket, key)
            self._put(bucket, key, data)

        logger.debug(f"Updated {bucket}/{key} ({len(data)} bytes)")

    def delete(self, bucket: str, key: str) -> None:
        """Remove a record."""
        validate_name("bucket", bucket)
        validate_name("key", key)

        with instrument(self.name, "delete", bucket, self._metrics):
            if self._fetch(bucket, key) is None:
                raise KeyNotFoundError(bucket, key)
            with self._engine_call("delete", bucket):
                del self._handle()[BucketKey(bucket, key).to_bytes()]

        logger.debug(f"Deleted {bucket}/{key}")

    def drop(self, bucket: str) -> None:
        """Remove every record of a bucket in one write batch."""
        prefix = BucketKey.prefix(bucket)

        with instrument(self.name, "drop", bucket, self._metrics):
            with self._engine_call("drop", bucket):
                keys = [k for k, _ in self._scan(prefix)]
                if keys:
                    batch = WriteBatch(raw_mode=True)
                    for k in keys:
                        batch.delete(k)
                    self._handle().write(batch)

        logger.info(f"Dropped bucket {bucket!r} ({len(keys)} records)")

    def get(self, bucket: str, model: type[T] = Any) -> dict[str, T]:  # type: ignore[assignment]
        """Return every record in a bucket, keyed by record key."""
        prefix = BucketKey.prefix(bucket)

        with instrument(self.name, "get", bucket, self._metrics):
            with self._engine_call("get", bucket):
                raw = [(BucketKey.key_from_bytes(prefix, k), v) for k, v in self._scan(prefix)]
            return {key: self._codec.decode(data, model) for key, data in raw}

    def close(self) -> None:
        """Close the database and release the directory lock."""
        if self._db is None:
            return

        self._db.close()
        self._db = None
        self._metrics.open_connections.labels(self.name).dec()
        logger.info(f"Closed RocksDB backend at {self._source}")

    def __enter__(self) -> RocksDBBackend:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_open else "closed"
        return f"RocksDBBackend({str(self._source)!r}, {state})"
