"""Adapters layer - concrete implementations of the Backend port.

- SQLiteBackend: one SQLite file, one table per bucket
- RocksDBBackend: one RocksDB directory, buckets as length-prefixed key ranges
"""

from kvbase.adapters.outbound import RocksDBBackend, SQLiteBackend

__all__ = [
    "SQLiteBackend",
    "RocksDBBackend",
]
