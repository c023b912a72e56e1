"""Outbound adapters - storage engines behind the Backend port."""

from kvbase.adapters.outbound.rocksdb_backend import RocksDBBackend
from kvbase.adapters.outbound.sqlite_backend import SQLiteBackend

__all__ = [
    "SQLiteBackend",
    "RocksDBBackend",
]
