"""
Identity directory: who the actors are and which roles exist.

The host application owns identities and its role registry; the permission
core only needs roles-of-user lookup, text search and the role names.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from role_control.errors import NotFoundError, ValidationError
from role_control.logging_config import get_logger
from role_control.schemas.permissions import Identity

logger = get_logger(__name__)

# Registry used when the host supplies no role names
DEFAULT_ROLE_NAMES: Dict[str, str] = {
    "administrator": "Administrator",
    "editor": "Editor",
    "author": "Author",
    "contributor": "Contributor",
    "subscriber": "Subscriber",
    "shop_manager": "Shop manager",
}


class IdentityDirectory(ABC):
    """Read-only view of the host's users and role registry."""

    @abstractmethod
    async def get_identity(self, user_id: Union[str, int]) -> Optional[Identity]:
        """Return the identity or None if the user does not exist."""

    @abstractmethod
    async def search(self, query: str, limit: int = 10) -> List[Identity]:
        """Match query against display name, login and email."""

    @abstractmethod
    async def role_names(self) -> Dict[str, str]:
        """Role slug -> human readable name, in registry order."""


class InMemoryIdentityDirectory(IdentityDirectory):
    """
    Directory backed by a list of identities.

    File format (JSON):
        {
            "roles": {"editor": "Editor", ...},
            "users": [{"user_id": "7", "display_name": "...", "login": "...",
                       "email": "...", "roles": ["editor"]}]
        }
    """

    def __init__(
        self,
        identities: Iterable[Identity] = (),
        roles: Optional[Mapping[str, str]] = None,
    ):
        self._identities: Dict[str, Identity] = {identity.user_id: identity for identity in identities}
        self._roles: Dict[str, str] = dict(roles if roles is not None else DEFAULT_ROLE_NAMES)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemoryIdentityDirectory":
        path = Path(path)
        if not path.exists():
            raise NotFoundError(f"Identity file not found: {path}", resource=str(path))

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except UnicodeDecodeError as e:
            raise ValidationError(f"File is not valid UTF-8: {path}") from e
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in identity file: {e}") from e

        if not isinstance(data, dict):
            raise ValidationError("Identity file must contain a JSON object")

        try:
            identities = [
                Identity.model_validate({**user, "user_id": str(user.get("user_id", ""))})
                for user in data.get("users", [])
            ]
        except (PydanticValidationError, TypeError, AttributeError) as e:
            raise ValidationError(f"Invalid user entry in identity file: {e}") from e
        logger.debug(f"Loaded {len(identities)} identities from {path}")
        return cls(identities, roles=data.get("roles"))

    def add(self, identity: Identity) -> None:
        self._identities[identity.user_id] = identity

    async def get_identity(self, user_id: Union[str, int]) -> Optional[Identity]:
        return self._identities.get(str(user_id))

    async def search(self, query: str, limit: int = 10) -> List[Identity]:
        needle = query.strip().lower()
        results = []
        for identity in self._identities.values():
            haystack = (identity.display_name, identity.login, identity.email)
            if any(needle in value.lower() for value in haystack):
                results.append(identity)
                if len(results) >= limit:
                    break
        return results

    async def role_names(self) -> Dict[str, str]:
        return dict(self._roles)
