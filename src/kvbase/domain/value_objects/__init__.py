"""Value objects for bucket/key addressing."""

from kvbase.domain.value_objects.keys import (
    BUCKET_LENGTH_SIZE,
    BucketKey,
    validate_name,
)

__all__ = [
    "BucketKey",
    "BUCKET_LENGTH_SIZE",
    "validate_name",
]
