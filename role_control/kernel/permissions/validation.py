"""
Shape validation for role configuration, user overrides and import payloads.

Validators collect every violation instead of stopping at the first one; an
empty list means the input is valid.
"""

from collections.abc import Mapping
from typing import Any, List, Optional, Sequence

from role_control.kernel.permissions.defaults import (
    DEFAULT_CAPABILITIES,
    DESCRIPTION_KEY,
    LEGACY_PREFIX,
    PermissionSet,
    RolePermissions,
)


def capability_from_key(key: str) -> str:
    """Map a legacy ``show_<capability>`` key onto its capability name."""
    if key.startswith(LEGACY_PREFIX) and len(key) > len(LEGACY_PREFIX):
        return key[len(LEGACY_PREFIX):]
    return key


def is_valid_name(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class ConfigValidator:
    """
    Validates configuration documents against the required capability set.

    Role entry rules:
    - every required capability key present and boolean
      (``show_<capability>`` is accepted as a legacy alias)
    - ``description`` present and a string
    - any additional capability key boolean
    """

    def __init__(self, capabilities: Optional[Sequence[str]] = None):
        self.capabilities = list(capabilities or DEFAULT_CAPABILITIES)

    def validate_role_config(self, config: Any) -> List[str]:
        """Validate a full role map. Returns all errors found."""
        errors: List[str] = []

        if not isinstance(config, Mapping):
            errors.append("Configuration must be a mapping")
            return errors

        for role, settings in config.items():
            if not is_valid_name(role):
                errors.append(f"Role name {role!r} must be a non-empty string")
                continue

            if not isinstance(settings, Mapping):
                errors.append(f"Role '{role}' configuration must be a mapping")
                continue

            errors.extend(self._validate_role_entry(role, settings))

        return errors

    def _validate_role_entry(self, role: str, settings: Mapping) -> List[str]:
        errors: List[str] = []

        for key, value in settings.items():
            if key == DESCRIPTION_KEY:
                continue
            if not is_valid_name(key):
                errors.append(f"Role '{role}' has an invalid capability name: {key!r}")
            elif not isinstance(value, bool):
                errors.append(f"Role '{role}' key '{key}' must be boolean")

        present = {capability_from_key(key) for key in settings if isinstance(key, str)}
        for capability in self.capabilities:
            if capability not in present:
                errors.append(f"Role '{role}' is missing required key: {capability}")

        if DESCRIPTION_KEY not in settings:
            errors.append(f"Role '{role}' is missing required key: {DESCRIPTION_KEY}")
        elif not isinstance(settings[DESCRIPTION_KEY], str):
            errors.append(f"Role '{role}' key '{DESCRIPTION_KEY}' must be string")

        return errors

    def validate_user_overrides(self, overrides: Any) -> List[str]:
        """Validate a UserID -> PermissionSet map."""
        errors: List[str] = []

        if not isinstance(overrides, Mapping):
            errors.append("User overrides must be a mapping")
            return errors

        for user_id, permissions in overrides.items():
            if not is_valid_name(str(user_id)) or isinstance(user_id, bool):
                errors.append(f"User id {user_id!r} must be a non-empty identifier")
                continue
            if not isinstance(permissions, Mapping):
                errors.append(f"User '{user_id}' override must be a mapping")
                continue
            errors.extend(self.validate_permission_values(permissions, owner=f"User '{user_id}'"))

        return errors

    def validate_permission_values(
        self,
        permissions: Any,
        owner: str = "Permissions",
        allow_description: bool = False,
    ) -> List[str]:
        """Validate a partial capability -> bool mapping."""
        if not isinstance(permissions, Mapping):
            return [f"{owner} must be a mapping"]

        errors: List[str] = []
        for key, value in permissions.items():
            if allow_description and key == DESCRIPTION_KEY:
                if not isinstance(value, str):
                    errors.append(f"{owner} key '{DESCRIPTION_KEY}' must be string")
                continue
            if not is_valid_name(key):
                errors.append(f"{owner} has an invalid capability name: {key!r}")
            elif not isinstance(value, bool):
                errors.append(f"{owner} key '{key}' must be boolean")
        return errors

    def validate_import_payload(self, payload: Any) -> List[str]:
        """Validate an export document before anything is written."""
        if not isinstance(payload, Mapping):
            return ["Import payload must be a mapping"]

        if "role_permissions" not in payload and "user_overrides" not in payload:
            return ["Import payload must contain role_permissions and/or user_overrides"]

        errors: List[str] = []
        if "role_permissions" in payload:
            errors.extend(self.validate_role_config(payload["role_permissions"]))
        if "user_overrides" in payload:
            errors.extend(self.validate_user_overrides(payload["user_overrides"]))
        return errors


def normalize_role_config(config: Mapping) -> RolePermissions:
    """
    Rewrite legacy ``show_<capability>`` keys to plain capability keys.

    An explicit plain key wins over its legacy alias.
    """
    normalized: RolePermissions = {}
    for role, settings in config.items():
        entry: dict = {}
        for key, value in settings.items():
            if key == DESCRIPTION_KEY:
                entry[key] = value
                continue
            capability = capability_from_key(key)
            if capability != key and capability in settings:
                continue
            entry[capability] = value
        normalized[str(role)] = entry
    return normalized


def normalize_user_overrides(overrides: Mapping) -> dict[str, PermissionSet]:
    """Stringify user ids and rewrite legacy keys; a plain key wins over its alias."""
    normalized: dict[str, PermissionSet] = {}
    for user_id, permissions in overrides.items():
        entry: PermissionSet = {}
        for key, value in permissions.items():
            capability = capability_from_key(key)
            if capability != key and capability in permissions:
                continue
            entry[capability] = value
        normalized[str(user_id)] = entry
    return normalized
