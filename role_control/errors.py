"""
Error types for the permission core.

Every error the core raises derives from RoleControlError and carries an
ErrorType so callers (CLI, host integrations) can map it without string
matching.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorType(str, Enum):
    """Standard error types."""
    VALIDATION_FAILED = "validation_failed"
    NOT_FOUND = "not_found"
    PERSISTENCE_FAILED = "persistence_failed"
    SECURITY_POLICY = "security_policy"


class RoleControlError(Exception):
    """Base exception for the permission core."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(RoleControlError):
    """Malformed configuration, names or values. Never silently fixed."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        super().__init__(
            message,
            ErrorType.VALIDATION_FAILED,
            details={"errors": self.errors},
        )


class NotFoundError(RoleControlError):
    """A named role, user override or file does not exist."""

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(message, ErrorType.NOT_FOUND, details={"resource": resource})


class PersistenceError(RoleControlError):
    """The option backend failed to read or write; the operation was not applied."""

    def __init__(self, message: str):
        super().__init__(message, ErrorType.PERSISTENCE_FAILED)


class SecurityPolicyError(RoleControlError):
    """Executable configuration formats are always rejected."""

    def __init__(self, message: str):
        super().__init__(message, ErrorType.SECURITY_POLICY)
