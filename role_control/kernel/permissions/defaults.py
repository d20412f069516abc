"""
Compiled-in defaults used whenever no configuration has been persisted.
"""

import copy
from typing import Any, Dict, List

PermissionSet = Dict[str, bool]
RoleEntry = Dict[str, Any]
RolePermissions = Dict[str, RoleEntry]

DEFAULT_CAPABILITIES: List[str] = ["edit", "elementor"]

DESCRIPTION_KEY = "description"
LEGACY_PREFIX = "show_"

UNKNOWN_ROLE_DESCRIPTION = "Unknown role - defaulting to view-only access"
CUSTOM_ROLE_DESCRIPTION = "Custom role"

EXPORT_VERSION = "1.0"

# Role -> capability grants (+ description)
DEFAULT_ROLE_PERMISSIONS: RolePermissions = {
    "administrator": {
        "edit": True,
        "elementor": True,
        "description": "Administrators can see all edit buttons",
    },
    "editor": {
        "edit": True,
        "elementor": False,
        "description": "Editors can see classic edit button only",
    },
    "shop_manager": {
        "edit": False,
        "elementor": False,
        "description": "Shop Managers have view-only access",
    },
    "author": {
        "edit": False,
        "elementor": False,
        "description": "Authors have view-only access",
    },
    "contributor": {
        "edit": False,
        "elementor": False,
        "description": "Contributors have view-only access",
    },
    "subscriber": {
        "edit": False,
        "elementor": False,
        "description": "Subscribers have view-only access",
    },
}


def default_role_permissions() -> RolePermissions:
    """Fresh copy of the built-in role map."""
    return copy.deepcopy(DEFAULT_ROLE_PERMISSIONS)


def permission_set(entry: RoleEntry) -> PermissionSet:
    """Strip non-capability keys (description) from a role entry."""
    return {key: value for key, value in entry.items() if key != DESCRIPTION_KEY}


def all_false(capabilities: List[str]) -> PermissionSet:
    return {capability: False for capability in capabilities}


def collect_capabilities(base: List[str], role_permissions: RolePermissions) -> List[str]:
    """Base capabilities followed by any extra capability stored on a role."""
    capabilities = list(base)
    for entry in role_permissions.values():
        for key in entry:
            if key != DESCRIPTION_KEY and key not in capabilities:
                capabilities.append(key)
    return capabilities
