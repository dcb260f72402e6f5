"""Permission catalog and role grant SQLAlchemy models."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin, new_uuid, utcnow


class Permission(Base):
    """A grantable capability identified by its slug (e.g. ``payments.view``)."""

    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    feature_group: Mapped[str] = mapped_column(String(100), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    # Relationships
    grants: Mapped[list["RolePermission"]] = relationship(back_populates="permission")


class RolePermission(Base, TimestampMixin):
    """Whether a role holds a permission. A missing row means not granted."""

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role", "permission_id", name="uq_role_permissions_role_permission"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    permission_id: Mapped[str] = mapped_column(
        ForeignKey("permissions.id"), nullable=False, index=True
    )
    granted: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    permission: Mapped["Permission"] = relationship(back_populates="grants")
