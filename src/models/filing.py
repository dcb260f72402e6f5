"""Tax filing SQLAlchemy models."""

import enum
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, JSONType, TimestampMixin, new_uuid

if TYPE_CHECKING:
    from src.models.user import User


class FilingStatus(str, enum.Enum):
    """Lifecycle of a tax filing, in the order it usually progresses."""

    NEW = "new"
    DOCUMENTS_PENDING = "documents_pending"
    REVIEW = "review"
    FILED = "filed"
    ACCEPTED = "accepted"
    APPROVED = "approved"
    PAID = "paid"


class TaxFiling(Base, TimestampMixin):
    """One client's engagement for one tax year.

    ``status_history`` is an ordered list of ``{"status", "date", "note"?}``
    entries, one per transition including creation. ``version`` is bumped on
    every flush so concurrent read-modify-write updates fail instead of
    dropping history entries.
    """

    __tablename__ = "tax_filings"
    __table_args__ = (
        UniqueConstraint("client_id", "tax_year", name="uq_tax_filings_client_year"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    client_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[FilingStatus] = mapped_column(
        Enum(
            FilingStatus,
            native_enum=False,
            length=30,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=FilingStatus.NEW,
        nullable=False,
        index=True,
    )

    # Milestones
    documents_received_at: Mapped[datetime | None] = mapped_column(DateTime)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime)
    funded_at: Mapped[datetime | None] = mapped_column(DateTime)

    # Money
    estimated_refund: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    actual_refund: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    service_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    fee_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Assignment
    preparer_id: Mapped[str | None] = mapped_column(String(36), index=True)
    preparer_name: Mapped[str | None] = mapped_column(Text)
    office_location: Mapped[str | None] = mapped_column(String(100))

    # Filing details
    filing_type: Mapped[str] = mapped_column(
        String(50), default="individual", nullable=False
    )
    federal_status: Mapped[str | None] = mapped_column(String(50))
    state_status: Mapped[str | None] = mapped_column(String(50))
    states_filed: Mapped[list[str] | None] = mapped_column(JSONType)

    notes: Mapped[str | None] = mapped_column(Text)
    status_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType, default=list, nullable=False
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    client: Mapped["User"] = relationship(back_populates="tax_filings")
