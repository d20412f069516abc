"""
Schemas for the permission core.
"""

from role_control.schemas.permissions import (
    BulkUpdateResult,
    Identity,
    IdentityReport,
    IdentitySearchResult,
    RoleSummary,
)

__all__ = [
    "Identity",
    "RoleSummary",
    "IdentitySearchResult",
    "IdentityReport",
    "BulkUpdateResult",
]
