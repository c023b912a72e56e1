"""JSON value codec built on pydantic.

Values go in as anything pydantic can dump (dicts, lists, scalars,
dataclasses, BaseModel instances) and come out validated against a caller
supplied type. ``Any`` returns plain JSON types.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from kvbase.domain.errors import SerializationError

T = TypeVar("T")


@lru_cache(maxsize=256)
def _adapter(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


class ValueCodec:
    """Encode values to JSON bytes and decode them into a requested shape."""

    def encode(self, value: Any) -> bytes:
        """Serialize ``value`` to JSON bytes.

        Raises:
            SerializationError: If pydantic cannot serialize the value.
        """
        try:
            return to_json(value)
        except PydanticSerializationError as exc:
            raise SerializationError(f"cannot encode {type(value).__name__}: {exc}") from exc

    def decode(self, data: bytes, model: type[T] = Any) -> T:  # type: ignore[assignment]
        """Deserialize JSON bytes and validate them as ``model``.

        Raises:
            SerializationError: If the bytes are not JSON or do not match ``model``.
        """
        try:
            adapter = _adapter(model)
        except TypeError:
            # unhashable model type, skip the cache
            adapter = TypeAdapter(model)
        try:
            return adapter.validate_json(data)
        except ValidationError as exc:
            raise SerializationError(f"cannot decode value as {model!r}: {exc}") from exc
