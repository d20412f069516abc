"""
Permission resolution: override -> first matching role -> deny.

Resolution never writes and never raises for unknown users, roles or
capabilities; anything it cannot find resolves to False.

IMPORTANT - first matching role wins. Roles are examined in the order the
identity lists them and the first role present in the role configuration
decides, even if a later role is more permissive:

    can(u, ["subscriber", "administrator"], "edit") == can(u, ["subscriber"], "edit")

This ordering is part of the observable contract.
"""

import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from role_control.kernel.permissions.config_store import ConfigStore, UserId
from role_control.kernel.permissions.defaults import (
    PermissionSet,
    RolePermissions,
    collect_capabilities,
)
from role_control.logging_config import batch_id_var, get_logger

logger = get_logger(__name__)


@dataclass
class ResolutionContext:
    """What the resolver saw when answering one (user, capability) question."""

    user_id: Optional[str]
    roles: List[str]
    capability: str
    source: str = "default"  # override | role | default
    matched_role: Optional[str] = None
    batch_id: Optional[str] = None


# Interceptor: return a bool to replace the result, or None to keep it.
Interceptor = Callable[[ResolutionContext, bool], Optional[bool]]


@dataclass
class ResolutionCache:
    """Short-lived memo keyed by (user_id, capability). One per batch."""

    entries: Dict[Tuple[Optional[str], str], bool] = field(default_factory=dict)

    def get(self, user_id: Optional[str], capability: str) -> Optional[bool]:
        return self.entries.get((user_id, capability))

    def put(self, user_id: Optional[str], capability: str, value: bool) -> None:
        self.entries[(user_id, capability)] = value

    def clear(self) -> None:
        self.entries.clear()

    def __len__(self) -> int:
        return len(self.entries)


class ResolutionBatch:
    """
    One resolution pass (typically one host request).

    Loads the role map and each user's override at most once, memoises
    answers per (user_id, capability) and drops everything on exit.

    Usage:
        async with resolver.batch() as batch:
            if await batch.can(user_id, roles, "edit"):
                ...

    Results are memoised by user id only: asking about the same user with a
    different role list inside one batch returns the first answer. Checks
    without a user id are resolved every time.
    """

    def __init__(self, store: ConfigStore, interceptors: Sequence[Interceptor] = ()):
        self.store = store
        self.interceptors = list(interceptors)
        self.batch_id = uuid.uuid4().hex[:12]
        self.cache = ResolutionCache()
        self._role_permissions: Optional[RolePermissions] = None
        self._overrides: Optional[Dict[str, PermissionSet]] = None
        self._token = None

    async def __aenter__(self) -> "ResolutionBatch":
        self._token = batch_id_var.set(self.batch_id)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.cache.clear()
        self._role_permissions = None
        self._overrides = None
        if self._token is not None:
            batch_id_var.reset(self._token)
            self._token = None

    async def can(
        self,
        user_id: Optional[UserId],
        roles: Sequence[str],
        capability: str,
    ) -> bool:
        """Decide whether the identity has the capability."""
        if not isinstance(capability, str) or not capability:
            logger.warning(f"Invalid capability {capability!r} - denying")
            return False

        key = str(user_id) if user_id is not None else None
        # Anonymous identities differ only by roles, so they are never memoised
        cached = self.cache.get(key, capability) if key is not None else None
        if cached is not None:
            return cached

        context = ResolutionContext(
            user_id=key,
            roles=[role for role in roles if isinstance(role, str)],
            capability=capability,
            batch_id=self.batch_id,
        )
        result = await self._resolve(context)

        for interceptor in self.interceptors:
            replacement = interceptor(context, result)
            if replacement is not None:
                result = bool(replacement)

        if key is not None:
            self.cache.put(key, capability, result)
        logger.debug(
            f"Resolved {capability} for user={key} -> {result} "
            f"(source={context.source}, role={context.matched_role})"
        )
        return result

    async def effective_permissions(
        self,
        user_id: Optional[UserId],
        roles: Sequence[str],
    ) -> PermissionSet:
        """Resolved value of every known capability, plus any the user's override sets."""
        capabilities = await self.known_capabilities()
        if user_id is not None:
            for capability in (await self._load_overrides()).get(str(user_id), {}):
                if capability not in capabilities:
                    capabilities.append(capability)
        return {
            capability: await self.can(user_id, roles, capability)
            for capability in capabilities
        }

    async def known_capabilities(self) -> List[str]:
        return collect_capabilities(self.store.capabilities, await self._load_role_permissions())

    async def _resolve(self, context: ResolutionContext) -> bool:
        # 1. Explicitly set override capability
        if context.user_id is not None:
            override = (await self._load_overrides()).get(context.user_id, {})
            if context.capability in override:
                context.source = "override"
                return override[context.capability] is True

        # 2. First role present in the configuration decides
        role_permissions = await self._load_role_permissions()
        for role in context.roles:
            if role in role_permissions:
                context.source = "role"
                context.matched_role = role
                return role_permissions[role].get(context.capability) is True

        # 3. Deny by default
        return False

    async def _load_role_permissions(self) -> RolePermissions:
        if self._role_permissions is None:
            self._role_permissions = await self.store.get_role_permissions()
        return self._role_permissions

    async def _load_overrides(self) -> Dict[str, PermissionSet]:
        if self._overrides is None:
            self._overrides = await self.store.get_all_user_overrides()
        return self._overrides


class PermissionResolver:
    """
    Read-only entry point for permission checks.

    Interceptors run in registration order after the built-in answer; each
    may replace the result that the next one sees.
    """

    def __init__(
        self,
        store: ConfigStore,
        interceptors: Optional[Sequence[Interceptor]] = None,
    ):
        self.store = store
        self.interceptors: List[Interceptor] = list(interceptors or [])

    def add_interceptor(self, interceptor: Interceptor) -> None:
        self.interceptors.append(interceptor)

    def batch(self) -> ResolutionBatch:
        return ResolutionBatch(self.store, self.interceptors)

    async def can(
        self,
        user_id: Optional[UserId],
        roles: Sequence[str],
        capability: str,
    ) -> bool:
        async with self.batch() as batch:
            return await batch.can(user_id, roles, capability)

    async def effective_permissions(
        self,
        user_id: Optional[UserId],
        roles: Sequence[str],
    ) -> PermissionSet:
        async with self.batch() as batch:
            return await batch.effective_permissions(user_id, roles)
