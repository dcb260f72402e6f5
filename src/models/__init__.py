"""SQLAlchemy models for the tax office back office."""

from src.models.base import Base
from src.models.filing import FilingStatus, TaxFiling
from src.models.permission import Permission, RolePermission
from src.models.user import RoleAuditLog, User

__all__ = [
    "Base",
    "User",
    "RoleAuditLog",
    "Permission",
    "RolePermission",
    "TaxFiling",
    "FilingStatus",
]
