"""
Identity Core - directory of actors and the host role registry.
"""

from role_control.kernel.identity.directory import IdentityDirectory, InMemoryIdentityDirectory

__all__ = [
    "IdentityDirectory",
    "InMemoryIdentityDirectory",
]
