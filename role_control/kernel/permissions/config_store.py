"""
ConfigStore: sole owner of the persisted permission configuration.

Two records hold the state:
- <prefix>role_permissions: Role -> PermissionSet + description
- <prefix>user_overrides:   UserID -> PermissionSet

plus a migration-flag record and a version record.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from role_control.errors import ValidationError
from role_control.kernel.permissions.defaults import (
    CUSTOM_ROLE_DESCRIPTION,
    DEFAULT_CAPABILITIES,
    DESCRIPTION_KEY,
    EXPORT_VERSION,
    UNKNOWN_ROLE_DESCRIPTION,
    PermissionSet,
    RoleEntry,
    RolePermissions,
    all_false,
    collect_capabilities,
    default_role_permissions,
    permission_set,
)
from role_control.kernel.permissions.validation import (
    ConfigValidator,
    normalize_role_config,
    normalize_user_overrides,
)
from role_control.kernel.storage.backends import OptionBackend
from role_control.logging_config import get_logger

logger = get_logger(__name__)

UserId = Union[str, int]


class ConfigStore:
    """
    Reads and writes role permissions and user overrides.

    Usage:
        store = ConfigStore(InMemoryOptionBackend())
        await store.set_role_permissions("editor", {"elementor": True})
        await store.get_role_permissions("editor")
        # {"edit": True, "elementor": True}
    """

    ROLE_PERMISSIONS = "role_permissions"
    USER_OVERRIDES = "user_overrides"
    MIGRATED = "permissions_migrated"
    VERSION = "version"

    def __init__(
        self,
        backend: OptionBackend,
        prefix: str = "rbec_",
        capabilities: Optional[Sequence[str]] = None,
        export_version: str = EXPORT_VERSION,
    ):
        self.backend = backend
        self.prefix = prefix
        self.capabilities = list(capabilities or DEFAULT_CAPABILITIES)
        self.export_version = export_version
        self.validator = ConfigValidator(self.capabilities)

    def option_name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    # ------------------------------------------------------------------
    # Role permissions
    # ------------------------------------------------------------------

    async def get_role_permissions(
        self,
        role: Optional[str] = None,
    ) -> Union[RolePermissions, PermissionSet]:
        """
        Get role permissions.

        With a role: that role's PermissionSet (all-false if unknown).
        Without: the full Role -> entry map, defaults if nothing is persisted.
        """
        role_permissions = await self._load_role_permissions()
        if role is None:
            return role_permissions
        return permission_set(self._entry_or_unknown(role_permissions, role))

    async def get_role_entry(self, role: str) -> RoleEntry:
        """PermissionSet plus description for one role."""
        role_permissions = await self._load_role_permissions()
        return self._entry_or_unknown(role_permissions, role)

    async def has_role(self, role: str) -> bool:
        return role in await self._load_role_permissions()

    async def set_role_permissions(self, role: str, permissions: Mapping[str, Any]) -> bool:
        """Merge a partial PermissionSet into the role entry and persist the full map."""
        return await self.set_many_role_permissions({role: permissions})

    async def set_many_role_permissions(self, updates: Mapping[str, Mapping[str, Any]]) -> bool:
        """Merge several roles at once in a single write."""
        role_permissions = await self._load_role_permissions()
        for role, permissions in updates.items():
            entry = role_permissions.get(role)
            if entry is None:
                # New roles carry every configured capability so exports stay importable
                entry = {**all_false(self.capabilities), DESCRIPTION_KEY: CUSTOM_ROLE_DESCRIPTION}
                logger.info(f"Creating role entry '{role}'")
            entry.update(permissions)
            role_permissions[role] = entry

        await self.backend.set(self.option_name(self.ROLE_PERMISSIONS), role_permissions)
        logger.info(f"Role permissions saved for {sorted(updates)}")
        return True

    async def roles_with_capability(self, capability: str) -> List[str]:
        """Roles whose stored permissions grant the capability."""
        role_permissions = await self._load_role_permissions()
        return [
            role
            for role, entry in role_permissions.items()
            if entry.get(capability) is True
        ]

    async def known_capabilities(self) -> List[str]:
        """Configured capabilities followed by any extra ones stored on roles."""
        return collect_capabilities(self.capabilities, await self._load_role_permissions())

    # ------------------------------------------------------------------
    # User overrides
    # ------------------------------------------------------------------

    async def get_user_override(self, user_id: UserId) -> PermissionSet:
        overrides = await self.get_all_user_overrides()
        return overrides.get(str(user_id), {})

    async def get_all_user_overrides(self) -> Dict[str, PermissionSet]:
        overrides = await self.backend.get(self.option_name(self.USER_OVERRIDES), None)
        return overrides or {}

    async def set_user_override(self, user_id: UserId, permissions: Mapping[str, bool]) -> bool:
        """Merge a partial PermissionSet into the user's override."""
        overrides = await self.get_all_user_overrides()
        key = str(user_id)
        overrides[key] = {**overrides.get(key, {}), **permissions}

        await self.backend.set(self.option_name(self.USER_OVERRIDES), overrides)
        logger.info(f"User override saved for '{key}'", extra={"user_id": key})
        return True

    async def remove_user_override(self, user_id: UserId) -> bool:
        """Drop the user's override; the user falls back to role permissions."""
        overrides = await self.get_all_user_overrides()
        key = str(user_id)
        overrides.pop(key, None)

        await self.backend.set(self.option_name(self.USER_OVERRIDES), overrides)
        logger.info(f"User override removed for '{key}'", extra={"user_id": key})
        return True

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    async def reset_to_defaults(self) -> bool:
        """Delete both records; reads fall back to compiled-in defaults."""
        await self.backend.delete_many([
            self.option_name(self.ROLE_PERMISSIONS),
            self.option_name(self.USER_OVERRIDES),
        ])
        logger.info("Permissions reset to defaults")
        return True

    async def export_permissions(self) -> Dict[str, Any]:
        return {
            "role_permissions": await self.get_role_permissions(),
            "user_overrides": await self.get_all_user_overrides(),
            "exported_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "version": self.export_version,
        }

    async def import_permissions(self, payload: Any) -> bool:
        """
        Replace the stored maps with the payload's.

        The whole payload is validated before anything is written, and both
        maps are written in one backend call.

        Raises:
            ValidationError: payload shape is invalid; nothing was written
        """
        errors = self.validator.validate_import_payload(payload)
        if errors:
            logger.warning(f"Import rejected with {len(errors)} validation error(s)")
            raise ValidationError("Configuration validation failed", errors)

        values: Dict[str, Any] = {}
        if "role_permissions" in payload:
            values[self.option_name(self.ROLE_PERMISSIONS)] = normalize_role_config(
                payload["role_permissions"]
            )
        if "user_overrides" in payload:
            values[self.option_name(self.USER_OVERRIDES)] = normalize_user_overrides(
                payload["user_overrides"]
            )

        await self.backend.set_many(values)
        logger.info(f"Imported permissions ({', '.join(sorted(values))})")
        return True

    # ------------------------------------------------------------------
    # Installation and migration
    # ------------------------------------------------------------------

    async def ensure_installed(self, version: str) -> bool:
        """Record the installed version if none is stored yet."""
        name = self.option_name(self.VERSION)
        if await self.backend.get(name) is None:
            await self.backend.set(name, version)
            logger.info(f"Installed permission store version {version}")
            return True
        return False

    async def installed_version(self) -> Optional[str]:
        return await self.backend.get(self.option_name(self.VERSION))

    async def migrate_legacy_config(self, legacy_config: Optional[Mapping[str, Any]]) -> bool:
        """
        One-shot migration from the legacy show_<capability> role config.

        Returns True if a migration ran; subsequent calls are no-ops.
        """
        flag = self.option_name(self.MIGRATED)
        if await self.backend.get(flag):
            return False

        values: Dict[str, Any] = {flag: True}
        if legacy_config:
            errors = self.validator.validate_role_config(legacy_config)
            if errors:
                raise ValidationError("Legacy configuration is invalid", errors)
            values[self.option_name(self.ROLE_PERMISSIONS)] = normalize_role_config(legacy_config)

        await self.backend.set_many(values)
        logger.info(f"Migrated legacy configuration ({len(legacy_config or {})} roles)")
        return True

    # ------------------------------------------------------------------

    async def _load_role_permissions(self) -> RolePermissions:
        stored = await self.backend.get(self.option_name(self.ROLE_PERMISSIONS), None)
        if stored is None:
            return default_role_permissions()
        return stored

    def _entry_or_unknown(self, role_permissions: RolePermissions, role: str) -> RoleEntry:
        if role in role_permissions:
            return dict(role_permissions[role])
        return {**all_false(self.capabilities), DESCRIPTION_KEY: UNKNOWN_ROLE_DESCRIPTION}
