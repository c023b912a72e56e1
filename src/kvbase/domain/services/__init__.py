"""Domain services."""

from kvbase.domain.services.codec import ValueCodec

__all__ = [
    "ValueCodec",
]
