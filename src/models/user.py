"""User and role-audit SQLAlchemy models."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, new_uuid, utcnow

if TYPE_CHECKING:
    from src.models.filing import TaxFiling


class User(Base, TimestampMixin):
    """Represents a portal account: a client (taxpayer) or a staff member.

    ``role`` is stored as a plain string so rows carrying legacy values
    still load; only recognised roles are honoured by authorization.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    first_name: Mapped[str | None] = mapped_column(String(255))
    last_name: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(20))
    role: Mapped[str | None] = mapped_column(String(20), default="client", index=True)
    office_id: Mapped[str | None] = mapped_column(String(36))
    assigned_to: Mapped[str | None] = mapped_column(String(36))
    """Staff member responsible for this client."""
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    tax_filings: Mapped[list["TaxFiling"]] = relationship(back_populates="client")

    @property
    def display_name(self) -> str:
        """Full name, falling back to email, then id."""
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email or self.id


class RoleAuditLog(Base):
    """Append-only record of a user's role change, kept for compliance review."""

    __tablename__ = "role_audit_log"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
    user_name: Mapped[str | None] = mapped_column(Text)
    previous_role: Mapped[str | None] = mapped_column(String(20))
    new_role: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by_id: Mapped[str] = mapped_column(String(36), nullable=False)
    changed_by_name: Mapped[str | None] = mapped_column(Text)
    reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
