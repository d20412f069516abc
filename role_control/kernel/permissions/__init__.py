"""
Permission Core - role defaults, user overrides and resolution.
"""

from role_control.kernel.permissions.admin_service import PermissionAdminService
from role_control.kernel.permissions.config_store import ConfigStore
from role_control.kernel.permissions.defaults import (
    DEFAULT_CAPABILITIES,
    DEFAULT_ROLE_PERMISSIONS,
    PermissionSet,
)
from role_control.kernel.permissions.resolver import (
    Interceptor,
    PermissionResolver,
    ResolutionBatch,
    ResolutionContext,
)
from role_control.kernel.permissions.validation import ConfigValidator

__all__ = [
    "ConfigStore",
    "ConfigValidator",
    "PermissionAdminService",
    "PermissionResolver",
    "ResolutionBatch",
    "ResolutionContext",
    "Interceptor",
    "PermissionSet",
    "DEFAULT_CAPABILITIES",
    "DEFAULT_ROLE_PERMISSIONS",
]
