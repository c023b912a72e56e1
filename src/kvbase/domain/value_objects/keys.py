"""Composite physical keys for flat-namespace engines.

Engines with a single byte namespace store a logical ``(bucket, key)`` pair
under one physical key. A plain ``bucket + "_" + key`` join is ambiguous
(bucket ``"a"``/key ``"b_c"`` and bucket ``"a_b"``/key ``"c"`` both give
``"a_b_c"``), so the bucket segment is length-prefixed instead:

    +----------------------+----------------+-------------+
    | bucket length (4B BE)| bucket (UTF-8) | key (UTF-8) |
    +----------------------+----------------+-------------+

The first two fields form the bucket prefix. Every key of a bucket, and
nothing else, starts with it.
"""

from __future__ import annotations

from dataclasses import dataclass

BUCKET_LENGTH_SIZE = 4
_MAX_BUCKET_BYTES = (1 << (8 * BUCKET_LENGTH_SIZE)) - 1


def validate_name(kind: str, value: str) -> str:
    """Check that a bucket or key name is a non-empty string.

    Args:
        kind: "bucket" or "key", used in the error message.
        value: The name to check.

    Returns:
        The name, unchanged.

    Raises:
        ValueError: If the name is not a string or is empty.
    """
    if not isinstance(value, str):
        raise ValueError(f"{kind} must be a string, got {type(value).__name__}")
    if not value:
        raise ValueError(f"{kind} must not be empty")
    return value


@dataclass(frozen=True, slots=True)
class BucketKey:
    """A logical ``(bucket, key)`` address.

    Example:
        >>> BucketKey("a", "b_c").to_bytes() == BucketKey("a_b", "c").to_bytes()
        False
        >>> BucketKey.from_bytes(BucketKey("users", "u1").to_bytes())
        BucketKey('users', 'u1')
    """

    bucket: str
    key: str

    def __post_init__(self) -> None:
        validate_name("bucket", self.bucket)
        validate_name("key", self.key)

    def __repr__(self) -> str:
        return f"BucketKey({self.bucket!r}, {self.key!r})"

    @staticmethod
    def prefix(bucket: str) -> bytes:
        """Return the physical prefix shared by every key of ``bucket``."""
        encoded = validate_name("bucket", bucket).encode("utf-8")
        if len(encoded) > _MAX_BUCKET_BYTES:
            raise ValueError(f"bucket name too long: {len(encoded)} bytes")
        return len(encoded).to_bytes(BUCKET_LENGTH_SIZE, byteorder="big") + encoded

    def to_bytes(self) -> bytes:
        """Encode to the physical key."""
        return self.prefix(self.bucket) + self.key.encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> BucketKey:
        """Decode a physical key.

        Raises:
            ValueError: If ``data`` is not a well-formed physical key.
        """
        if len(data) < BUCKET_LENGTH_SIZE:
            raise ValueError(f"physical key too short: {len(data)} bytes")

        length = int.from_bytes(data[:BUCKET_LENGTH_SIZE], byteorder="big")
        end = BUCKET_LENGTH_SIZE + length
        if len(data) <= end:
            raise ValueError("physical key has no key segment")

        return cls(
            bucket=data[BUCKET_LENGTH_SIZE:end].decode("utf-8"),
            key=data[end:].decode("utf-8"),
        )

    @staticmethod
    def key_from_bytes(bucket_prefix: bytes, data: bytes) -> str:
        """Strip a known bucket prefix from a physical key and decode the key."""
        if not data.startswith(bucket_prefix):
            raise ValueError("physical key does not belong to this bucket")
        return data[len(bucket_prefix):].decode("utf-8")
