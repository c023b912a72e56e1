"""Backend port - the CRUD contract every storage adapter implements.

Callers hold a ``Backend`` and never the concrete adapter, so switching from
the SQLite store to the RocksDB store (or back) needs no call-site changes.

Addressing is two-level: a record lives under ``(bucket, key)``, both
non-empty strings. A key is unique within its bucket; the same key may exist
in several buckets.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import Any, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class Backend(Protocol):
    """Protocol for bucketed key-value storage.

    Values are serialized to JSON before they are written and validated
    against a caller supplied ``model`` type when read. Every mutating call
    is atomic through the engine's own transaction; nothing spans several
    calls.

    Thread Safety:
        None added. Each adapter relies on its engine's guarantees.

    Example:
        with open_backend("sqlite", "app.db") as db:
            db.create("users", "u1", {"name": "Ann"})
            db.read("users", "u1")  # {"name": "Ann"}
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend name ("sqlite" or "rocksdb")."""
        ...

    @property
    @abstractmethod
    def source(self) -> Path:
        """Return the resolved file or directory the backend opened."""
        ...

    @abstractmethod
    def count(self, bucket: str) -> int:
        """Return the number of records in a bucket.

        A bucket that does not exist has zero records.

        Raises:
            EngineError: If the engine fails.
        """
        ...

    @abstractmethod
    def create(self, bucket: str, key: str, value: Any) -> None:
        """Insert a new record, creating the bucket if needed.

        Raises:
            KeyAlreadyExistsError: If the key is already present.
            SerializationError: If the value cannot be encoded.
            EngineError: If the engine fails.
        """
        ...

    @abstractmethod
    def read(self, bucket: str, key: str, model: type[T] = Any) -> T:  # type: ignore[assignment]
        """Return one record decoded as ``model``.

        Raises:
            KeyNotFoundError: If the key is absent.
            SerializationError: If the stored bytes do not match ``model``.
            EngineError: If the engine fails.
        """
        ...

    @abstractmethod
    def update(self, bucket: str, key: str, value: Any) -> None:
        """Overwrite an existing record.

        The previous value is kept if encoding fails.

        Raises:
            KeyNotFoundError: If the key is absent.
            SerializationError: If the value cannot be encoded.
            EngineError: If the engine fails.
        """
        ...

    @abstractmethod
    def delete(self, bucket: str, key: str) -> None:
        """Remove a record.

        Raises:
            KeyNotFoundError: If the key is absent.
            EngineError: If the engine fails.
        """
        ...

    @abstractmethod
    def drop(self, bucket: str) -> None:
        """Remove a bucket and every record in it.

        Dropping a bucket that does not exist is a no-op.

        Raises:
            EngineError: If the engine fails.
        """
        ...

    @abstractmethod
    def get(self, bucket: str, model: type[T] = Any) -> dict[str, T]:  # type: ignore[assignment]
        """Return every record in a bucket, each decoded as ``model``.

        Returns an empty dict when the bucket has no records.

        Raises:
            SerializationError: If any stored value does not match ``model``.
            EngineError: If the engine fails.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the engine handle. Calling it twice is harmless."""
        ...

    def __enter__(self) -> Backend:
        ...

    def __exit__(self, *exc_info: object) -> None:
        ...
