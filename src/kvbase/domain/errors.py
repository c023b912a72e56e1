"""Errors raised by kvbase backends.

Every error a backend raises on purpose derives from ``KVBaseError``.
Engine and serialization failures keep the original exception as
``__cause__``.
"""

from __future__ import annotations


class KVBaseError(Exception):
    """Base class for kvbase errors."""


class KeyAlreadyExistsError(KVBaseError):
    """Raised by create when the bucket already holds the key."""

    def __init__(self, bucket: str, key: str):
        self.bucket = bucket
        self.key = key
        super().__init__(f"key already exists: {bucket}/{key}")


class KeyNotFoundError(KVBaseError):
    """Raised by read, update and delete when the key is absent."""

    def __init__(self, bucket: str, key: str):
        self.bucket = bucket
        self.key = key
        super().__init__(f"key does not exist: {bucket}/{key}")


class SerializationError(KVBaseError):
    """Raised when a value cannot be encoded or stored bytes cannot be decoded."""


class EngineError(KVBaseError):
    """Raised for failures surfaced by the underlying storage engine.

    This covers open failures (including lock timeouts), I/O errors and
    corruption reports.
    """

    def __init__(self, backend: str, message: str):
        self.backend = backend
        super().__init__(f"{backend}: {message}")
