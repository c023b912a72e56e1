"""
kvbase - Uniform CRUD over embedded key-value stores

One bucket/key interface with two interchangeable backends: a single-file
SQLite store and a RocksDB log-structured merge store.
"""

__version__ = "0.1.0"
__author__ = "Systems Engineering Portfolio"
