"""
Stable Kernel Layer

- Storage Core (key-value option records, SQL or in-memory)
- Identity Core (actors and the host role registry)
- Permission Core (role defaults, user overrides, resolution, administration)

Architectural Invariants:
- ConfigStore is the only writer of the permission records
- Resolution never writes
- Invalid configuration is rejected, never silently repaired
"""

from role_control.kernel.identity import IdentityDirectory, InMemoryIdentityDirectory
from role_control.kernel.permissions import (
    ConfigStore,
    PermissionAdminService,
    PermissionResolver,
)
from role_control.kernel.storage import (
    InMemoryOptionBackend,
    OptionBackend,
    SqlOptionBackend,
)

__all__ = [
    "IdentityDirectory",
    "InMemoryIdentityDirectory",
    "ConfigStore",
    "PermissionAdminService",
    "PermissionResolver",
    "OptionBackend",
    "InMemoryOptionBackend",
    "SqlOptionBackend",
]
