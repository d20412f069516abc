"""
Kernel Data Models

SQLAlchemy models backing the durable option store.
"""

from role_control.kernel.models.option import Base, Option, TimestampMixin

__all__ = [
    "Base",
    "TimestampMixin",
    "Option",
]
