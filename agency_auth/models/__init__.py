"""Agency auth models - re-exports all models and Base.metadata."""

from .base import Base, TimestampMixin
from .tenant_record import TenantRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "TenantRecord",
]
