"""
Schemas exchanged between the permission core and its callers.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Identity(BaseModel):
    """An already-authenticated actor as provided by the identity directory."""

    user_id: str
    display_name: str = ""
    login: str = ""
    email: str = ""
    roles: List[str] = Field(default_factory=list)


class RoleSummary(BaseModel):
    """Registry role joined with its stored permissions."""

    name: str
    permissions: Dict[str, bool]


class IdentitySearchResult(BaseModel):
    """One search hit with its effective permissions."""

    id: str
    name: str
    email: str
    login: str
    roles: List[str]
    effective_permissions: Dict[str, bool]


class IdentityReport(BaseModel):
    """Result of testing an identity against every known capability."""

    user_id: Optional[str] = None
    display_name: str = ""
    roles: List[str] = Field(default_factory=list)
    permissions: Dict[str, bool]
    role_details: Dict[str, Dict[str, bool]] = Field(default_factory=dict)
    has_override: bool = False


class BulkUpdateResult(BaseModel):
    """Outcome of a bulk role update."""

    updated: List[str]
    skipped: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.updated)
