"""Ports layer - interface definitions following Hexagonal Architecture.

The single port, ``Backend``, is the contract callers program against.
Adapters in ``kvbase.adapters`` implement it over concrete engines.
"""

from kvbase.ports.backend import Backend

__all__ = [
    "Backend",
]
