"""Domain layer - errors, value objects and the value codec.

Nothing here touches a storage engine; the adapters build on these pieces.
"""

from kvbase.domain.errors import (
    EngineError,
    KeyAlreadyExistsError,
    KeyNotFoundError,
    KVBaseError,
    SerializationError,
)
from kvbase.domain.services import ValueCodec
from kvbase.domain.value_objects import BucketKey, validate_name

__all__ = [
    "KVBaseError",
    "KeyAlreadyExistsError",
    "KeyNotFoundError",
    "SerializationError",
    "EngineError",
    "BucketKey",
    "validate_name",
    "ValueCodec",
]
