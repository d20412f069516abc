"""
Administration service: every write to the permission configuration goes
through here.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from role_control.errors import NotFoundError, ValidationError
from role_control.kernel.identity.directory import IdentityDirectory
from role_control.kernel.permissions.config_store import ConfigStore, UserId
from role_control.kernel.permissions.defaults import PermissionSet, RolePermissions
from role_control.kernel.permissions.resolver import PermissionResolver
from role_control.kernel.permissions.validation import (
    capability_from_key,
    is_valid_name,
)
from role_control.logging_config import get_logger
from role_control.schemas.permissions import (
    BulkUpdateResult,
    IdentityReport,
    IdentitySearchResult,
    RoleSummary,
)

logger = get_logger(__name__)


class PermissionAdminService:
    """
    Service for managing role permissions and user overrides.

    Malformed input (empty or non-string names, non-boolean values) raises
    ValidationError. Valid but surprising data, such as granting elementor
    to subscriber, is accepted.
    """

    def __init__(
        self,
        store: ConfigStore,
        resolver: PermissionResolver,
        directory: IdentityDirectory,
    ):
        self.store = store
        self.resolver = resolver
        self.directory = directory

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    async def get_role_permissions(
        self,
        role: Optional[str] = None,
    ) -> Union[RolePermissions, PermissionSet]:
        return await self.store.get_role_permissions(role)

    async def set_role_permissions(
        self,
        role: str,
        permissions: Mapping[str, Any],
        create: bool = True,
    ) -> bool:
        """
        Merge capability grants into a role.

        Args:
            role: Role slug; unknown roles are created unless create=False
            permissions: {capability: bool, ...}, may include "description"
            create: If False, an unknown role raises NotFoundError

        Raises:
            ValidationError: Empty/non-string names or non-boolean values
            NotFoundError: Role unknown and create is False
        """
        self._require_name(role, "Role name")
        normalized = self._normalize_permissions(permissions, owner=f"Role '{role}'", allow_description=True)

        if not create and not await self.is_known_role(role):
            raise NotFoundError(f"Role '{role}' not found in configuration", resource=role)

        return await self.store.set_role_permissions(role, normalized)

    async def get_available_roles(self) -> Dict[str, Dict[str, Any]]:
        """Registry roles joined with their stored permission sets."""
        roles: Dict[str, Dict[str, Any]] = {}
        for slug, name in (await self.directory.role_names()).items():
            summary = RoleSummary(name=name, permissions=await self.store.get_role_permissions(slug))
            roles[slug] = summary.model_dump()
        return roles

    async def known_roles(self) -> List[str]:
        """Roles present in the stored configuration or the host registry."""
        roles = list(await self.store.get_role_permissions())
        for slug in await self.directory.role_names():
            if slug not in roles:
                roles.append(slug)
        return roles

    async def is_known_role(self, role: str) -> bool:
        return role in await self.known_roles()

    async def roles_with_capability(self, capability: str) -> List[str]:
        self._require_name(capability, "Capability name")
        return await self.store.roles_with_capability(capability)

    async def known_capabilities(self) -> List[str]:
        return await self.store.known_capabilities()

    # ------------------------------------------------------------------
    # User overrides
    # ------------------------------------------------------------------

    async def get_user_override(self, user_id: UserId) -> PermissionSet:
        self._require_user_id(user_id)
        return await self.store.get_user_override(user_id)

    async def set_user_override(self, user_id: UserId, permissions: Mapping[str, Any]) -> bool:
        self._require_user_id(user_id)
        normalized = self._normalize_permissions(permissions, owner=f"User '{user_id}'")
        if not normalized:
            raise ValidationError("At least one capability is required for an override")
        return await self.store.set_user_override(user_id, normalized)

    async def remove_user_override(self, user_id: UserId) -> bool:
        """
        Raises:
            NotFoundError: The user has no override
        """
        self._require_user_id(user_id)
        overrides = await self.store.get_all_user_overrides()
        if str(user_id) not in overrides:
            raise NotFoundError(f"No override found for user '{user_id}'", resource=str(user_id))
        return await self.store.remove_user_override(user_id)

    async def list_user_overrides(self) -> Dict[str, PermissionSet]:
        return await self.store.get_all_user_overrides()

    # ------------------------------------------------------------------
    # Identities
    # ------------------------------------------------------------------

    async def effective_permissions(self, user_id: UserId) -> PermissionSet:
        """Resolved capability map; roles come from the identity directory."""
        identity = await self.directory.get_identity(user_id)
        roles = identity.roles if identity else []
        return await self.resolver.effective_permissions(user_id, roles)

    async def test_identity(
        self,
        user_id: Optional[UserId] = None,
        roles: Optional[Sequence[str]] = None,
    ) -> IdentityReport:
        """
        Resolve every known capability for a user id and/or an explicit role list.

        Raises:
            NotFoundError: user_id given without roles and not in the directory
        """
        if user_id is None and roles is None:
            raise ValidationError("A user id or a role list is required")

        identity = await self.directory.get_identity(user_id) if user_id is not None else None
        if roles is None:
            if identity is None:
                raise NotFoundError(f"User with ID {user_id} not found", resource=str(user_id))
            roles = identity.roles
        display_name = identity.display_name if identity else ""

        roles = list(roles)
        permissions = await self.resolver.effective_permissions(user_id, roles)
        role_details = {role: await self.store.get_role_permissions(role) for role in roles}
        has_override = False
        if user_id is not None:
            has_override = bool(await self.store.get_user_override(user_id))

        return IdentityReport(
            user_id=str(user_id) if user_id is not None else None,
            display_name=display_name,
            roles=roles,
            permissions=permissions,
            role_details=role_details,
            has_override=has_override,
        )

    async def search_identities(self, query: str, limit: int = 10) -> List[IdentitySearchResult]:
        if not isinstance(query, str):
            raise ValidationError("Search query must be a string")
        if limit < 1:
            raise ValidationError("Search limit must be positive")

        results = []
        async with self.resolver.batch() as batch:
            for identity in await self.directory.search(query, limit):
                results.append(IdentitySearchResult(
                    id=identity.user_id,
                    name=identity.display_name,
                    email=identity.email,
                    login=identity.login,
                    roles=identity.roles,
                    effective_permissions=await batch.effective_permissions(identity.user_id, identity.roles),
                ))
        return results

    # ------------------------------------------------------------------
    # Whole-configuration operations
    # ------------------------------------------------------------------

    def validate_config(self, config: Any) -> List[str]:
        """All shape violations in a role map; empty list means valid."""
        return self.store.validator.validate_role_config(config)

    async def reset_to_defaults(self) -> bool:
        return await self.store.reset_to_defaults()

    async def export_permissions(self) -> Dict[str, Any]:
        return await self.store.export_permissions()

    async def import_permissions(self, payload: Any) -> bool:
        """
        Raises:
            ValidationError: Any shape violation; nothing is written
        """
        return await self.store.import_permissions(payload)

    async def bulk_update(self, roles: Sequence[str], permissions: Mapping[str, Any]) -> BulkUpdateResult:
        """Apply the same grants to several roles; unknown roles are skipped."""
        normalized = self._normalize_permissions(permissions, owner="Bulk update")
        if not normalized:
            raise ValidationError("At least one capability is required")
        return await self.bulk_update_from_mapping({role: normalized for role in roles})

    async def bulk_update_from_mapping(self, updates: Any) -> BulkUpdateResult:
        """
        Apply per-role grants in one write.

        Raises:
            ValidationError: Malformed mapping or values
            NotFoundError: No role in the update is known
        """
        if not isinstance(updates, Mapping):
            raise ValidationError("Bulk update must be a mapping of role -> permissions")

        known = await self.known_roles()
        staged: Dict[str, PermissionSet] = {}
        skipped: List[str] = []
        errors: List[str] = []

        for role, permissions in updates.items():
            if not is_valid_name(role):
                errors.append(f"Role name {role!r} must be a non-empty string")
                continue
            if role not in known:
                logger.warning(f"Role '{role}' not found, skipping")
                skipped.append(role)
                continue
            role_errors = self.store.validator.validate_permission_values(permissions, owner=f"Role '{role}'")
            if role_errors:
                errors.extend(role_errors)
                continue
            staged[role] = {capability_from_key(key): value for key, value in permissions.items()}

        if errors:
            raise ValidationError("Bulk update validation failed", errors)
        if not staged:
            raise NotFoundError("No valid roles to update")

        await self.store.set_many_role_permissions(staged)
        return BulkUpdateResult(updated=list(staged), skipped=skipped)

    # ------------------------------------------------------------------

    def _normalize_permissions(
        self,
        permissions: Any,
        owner: str,
        allow_description: bool = False,
    ) -> Dict[str, Any]:
        errors = self.store.validator.validate_permission_values(
            permissions,
            owner=owner,
            allow_description=allow_description,
        )
        if errors:
            raise ValidationError(errors[0], errors)
        return {capability_from_key(key): value for key, value in permissions.items()}

    @staticmethod
    def _require_name(value: Any, label: str) -> None:
        if not is_valid_name(value):
            raise ValidationError(f"{label} must be a non-empty string")

    @staticmethod
    def _require_user_id(user_id: Any) -> None:
        if isinstance(user_id, bool) or not isinstance(user_id, (str, int)) or not str(user_id).strip():
            raise ValidationError("User id must be a non-empty string or integer")
