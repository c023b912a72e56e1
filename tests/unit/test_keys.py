"""Unit tests for BucketKey physical key encoding."""

from __future__ import annotations

import pytest

from kvbase.domain.value_objects import BUCKET_LENGTH_SIZE, BucketKey, validate_name


@pytest.mark.unit
class TestValidateName:
    """Tests for bucket/key name validation."""

    def test_accepts_non_empty(self) -> None:
        assert validate_name("bucket", "users") == "users"

    def test_rejects_empty(self) -> None:
        with pytest.raises(ValueError, match="bucket must not be empty"):
            validate_name("bucket", "")

    def test_rejects_non_string(self) -> None:
        with pytest.raises(ValueError, match="key must be a string"):
            validate_name("key", b"u1")  # type: ignore[arg-type]


@pytest.mark.unit
class TestBucketKey:
    """Tests for BucketKey."""

    def test_layout(self) -> None:
        """Length header, bucket bytes, then key bytes."""
        data = BucketKey("users", "u1").to_bytes()

        assert data[:BUCKET_LENGTH_SIZE] == (5).to_bytes(BUCKET_LENGTH_SIZE, "big")
        assert data[BUCKET_LENGTH_SIZE:] == b"usersu1"

    def test_prefix_is_start_of_every_key(self) -> None:
        prefix = BucketKey.prefix("users")

        assert BucketKey("users", "u1").to_bytes().startswith(prefix)
        assert BucketKey("users", "zzz").to_bytes().startswith(prefix)

    def test_underscore_pairs_do_not_collide(self) -> None:
        """("a", "b_c") and ("a_b", "c") map to different physical keys."""
        first = BucketKey("a", "b_c").to_bytes()
        second = BucketKey("a_b", "c").to_bytes()

        assert first != second
        assert not second.startswith(BucketKey.prefix("a"))

    def test_bucket_prefixes_do_not_nest(self) -> None:
        """A bucket name that extends another bucket name is not in its range."""
        assert not BucketKey("ab", "x").to_bytes().startswith(BucketKey.prefix("a"))

    def test_from_bytes(self) -> None:
        key = BucketKey("bücher", "schlüssel")

        assert BucketKey.from_bytes(key.to_bytes()) == key

    def test_key_from_bytes(self) -> None:
        prefix = BucketKey.prefix("a")

        assert BucketKey.key_from_bytes(prefix, BucketKey("a", "b_c").to_bytes()) == "b_c"

    def test_key_from_bytes_wrong_bucket(self) -> None:
        with pytest.raises(ValueError, match="does not belong"):
            BucketKey.key_from_bytes(BucketKey.prefix("a"), BucketKey("b", "c").to_bytes())

    def test_from_bytes_truncated(self) -> None:
        with pytest.raises(ValueError, match="too short"):
            BucketKey.from_bytes(b"\x00\x00")

    def test_from_bytes_without_key(self) -> None:
        with pytest.raises(ValueError, match="no key segment"):
            BucketKey.from_bytes(BucketKey.prefix("users"))

    def test_empty_parts_rejected(self) -> None:
        with pytest.raises(ValueError):
            BucketKey("", "k")
        with pytest.raises(ValueError):
            BucketKey("b", "")

    def test_immutable(self) -> None:
        key = BucketKey("users", "u1")
        with pytest.raises(AttributeError):
            key.bucket = "other"  # type: ignore[misc]

    def test_repr(self) -> None:
        assert repr(BucketKey("users", "u1")) == "BucketKey('users', 'u1')"
