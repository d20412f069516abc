"""
Storage Core - key-value option backends.
"""

from role_control.kernel.storage.backends import (
    InMemoryOptionBackend,
    OptionBackend,
    SqlOptionBackend,
)

__all__ = [
    "OptionBackend",
    "InMemoryOptionBackend",
    "SqlOptionBackend",
]
