"""Tax filing storage operations.

Filings are unique per (client, tax year); a duplicate insert surfaces as
``sqlalchemy.exc.IntegrityError`` from the flush and is left to the caller.
Status changes go through the state machine so history and milestones stay
in step; general updates never touch either.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.filings.errors import InvalidFilingUpdate, TaxFilingNotFound
from src.filings.state_machine import create_state_machine, history_entry
from src.models.filing import FilingStatus, TaxFiling
from src.models.user import User

logger = get_logger(__name__)

MONEY_FIELDS = frozenset({"estimated_refund", "actual_refund", "service_fee"})

UPDATABLE_FIELDS = MONEY_FIELDS | frozenset(
    {
        "fee_paid",
        "preparer_id",
        "preparer_name",
        "office_location",
        "filing_type",
        "federal_status",
        "state_status",
        "states_filed",
        "notes",
    }
)

CENTS = Decimal("0.01")


@dataclass
class FilingMetrics:
    """Aggregate figures for one tax year."""

    tax_year: int
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    total_estimated_refund: Decimal = Decimal("0.00")
    total_actual_refund: Decimal = Decimal("0.00")


def _to_money(value: Any) -> Decimal | None:
    """Coerce a money value to a two-place Decimal."""
    if value is None:
        return None
    return Decimal(str(value)).quantize(CENTS)


def _prepare_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Validate general-update field names and normalise money values."""
    rejected = set(fields) - UPDATABLE_FIELDS
    if rejected:
        raise InvalidFilingUpdate(rejected)
    return {
        name: _to_money(value) if name in MONEY_FIELDS else value
        for name, value in fields.items()
    }


async def create_tax_filing(
    session: AsyncSession,
    client_id: str,
    tax_year: int,
    status: FilingStatus = FilingStatus.NEW,
    **fields: Any,
) -> TaxFiling:
    """Create a filing with a one-entry status history.

    Raises:
        InvalidFilingUpdate: If ``fields`` names a non-editable column.
        sqlalchemy.exc.IntegrityError: If the client already has a filing
            for ``tax_year``.
    """
    filing = TaxFiling(
        client_id=client_id,
        tax_year=tax_year,
        status=status,
        status_history=[history_entry(status)],
        **_prepare_fields(fields),
    )
    session.add(filing)
    await session.flush()
    logger.info(
        "tax_filing_created",
        filing_id=filing.id,
        client_id=client_id,
        tax_year=tax_year,
        status=status.value,
    )
    return filing


async def get_tax_filing(session: AsyncSession, filing_id: str) -> TaxFiling:
    """Load a filing by id.

    Raises:
        TaxFilingNotFound: If it does not exist.
    """
    filing = await session.get(TaxFiling, filing_id)
    if filing is None:
        raise TaxFilingNotFound(filing_id)
    return filing


async def update_tax_filing_status(
    session: AsyncSession,
    filing_id: str,
    new_status: FilingStatus,
    note: str | None = None,
) -> TaxFiling:
    """Set a filing's status, append history, and stamp its milestone.

    Any status may follow any other. The filing's version counter makes a
    concurrent update of the same row fail with ``StaleDataError`` on flush
    instead of silently dropping a history entry.

    Raises:
        TaxFilingNotFound: If the filing does not exist.
    """
    filing = await get_tax_filing(session, filing_id)
    sm = create_state_machine(filing)
    sm.set_status(new_status, note=note)
    await session.flush()
    return filing


async def update_tax_filing(
    session: AsyncSession,
    filing_id: str,
    fields: Mapping[str, Any],
) -> TaxFiling:
    """Patch non-status fields. History and milestones are left untouched.

    Raises:
        TaxFilingNotFound: If the filing does not exist.
        InvalidFilingUpdate: If ``fields`` names status, history, milestones,
            or another non-editable column.
    """
    updates = _prepare_fields(fields)
    filing = await get_tax_filing(session, filing_id)
    for name, value in updates.items():
        setattr(filing, name, value)
    await session.flush()
    logger.info("tax_filing_updated", filing_id=filing.id, fields=sorted(updates))
    return filing


async def delete_tax_filing(session: AsyncSession, filing_id: str) -> bool:
    """Delete a filing row. Returns False when nothing was deleted."""
    filing = await session.get(TaxFiling, filing_id)
    if filing is None:
        return False
    await session.delete(filing)
    await session.flush()
    logger.info("tax_filing_deleted", filing_id=filing_id)
    return True


def _build_filing_filters(
    tax_year: int | None,
    client_id: str | None,
    status: FilingStatus | None,
    preparer_id: str | None,
    assigned_to: str | None = None,
) -> list[Any]:
    """Build SQLAlchemy filter clauses for filing listing.

    ``assigned_to`` keeps only filings whose client is assigned to that
    staff member.
    """
    filters = []
    if tax_year is not None:
        filters.append(TaxFiling.tax_year == tax_year)
    if client_id is not None:
        filters.append(TaxFiling.client_id == client_id)
    if status is not None:
        filters.append(TaxFiling.status == status)
    if preparer_id is not None:
        filters.append(TaxFiling.preparer_id == preparer_id)
    if assigned_to is not None:
        filters.append(
            TaxFiling.client_id.in_(select(User.id).where(User.assigned_to == assigned_to))
        )
    return filters


async def get_tax_filings(
    session: AsyncSession,
    *,
    tax_year: int | None = None,
    client_id: str | None = None,
    status: FilingStatus | None = None,
    preparer_id: str | None = None,
    assigned_to: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[TaxFiling]:
    """List filings matching every given filter, newest first."""
    stmt = select(TaxFiling).order_by(TaxFiling.created_at.desc(), TaxFiling.id)
    filters = _build_filing_filters(tax_year, client_id, status, preparer_id, assigned_to)
    if filters:
        stmt = stmt.where(*filters)
    if limit is not None:
        stmt = stmt.limit(limit)
    if offset:
        stmt = stmt.offset(offset)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_tax_filings(
    session: AsyncSession,
    *,
    tax_year: int | None = None,
    client_id: str | None = None,
    status: FilingStatus | None = None,
    preparer_id: str | None = None,
    assigned_to: str | None = None,
) -> int:
    """Count filings matching every given filter."""
    stmt = select(func.count(TaxFiling.id))
    filters = _build_filing_filters(tax_year, client_id, status, preparer_id, assigned_to)
    if filters:
        stmt = stmt.where(*filters)
    result = await session.execute(stmt)
    return int(result.scalar() or 0)


async def get_tax_filings_by_year(session: AsyncSession, tax_year: int) -> list[TaxFiling]:
    return await get_tax_filings(session, tax_year=tax_year)


async def get_tax_filings_by_client(session: AsyncSession, client_id: str) -> list[TaxFiling]:
    return await get_tax_filings(session, client_id=client_id)


async def get_tax_filings_by_status(
    session: AsyncSession, status: FilingStatus
) -> list[TaxFiling]:
    return await get_tax_filings(session, status=status)


async def get_tax_filings_by_year_and_status(
    session: AsyncSession, tax_year: int, status: FilingStatus
) -> list[TaxFiling]:
    return await get_tax_filings(session, tax_year=tax_year, status=status)


async def get_tax_filing_by_client_year(
    session: AsyncSession, client_id: str, tax_year: int
) -> TaxFiling | None:
    """Return the client's filing for ``tax_year``, if any."""
    result = await session.execute(
        select(TaxFiling)
        .where(TaxFiling.client_id == client_id)
        .where(TaxFiling.tax_year == tax_year)
    )
    return result.scalars().first()


async def get_tax_filing_metrics(session: AsyncSession, tax_year: int) -> FilingMetrics:
    """Count filings per status and total refunds for a year.

    Every status appears in ``by_status``, with zero when no filing has it.
    """
    result = await session.execute(
        select(
            TaxFiling.status,
            func.count(TaxFiling.id),
            func.sum(TaxFiling.estimated_refund),
            func.sum(TaxFiling.actual_refund),
        )
        .where(TaxFiling.tax_year == tax_year)
        .group_by(TaxFiling.status)
    )

    metrics = FilingMetrics(
        tax_year=tax_year,
        by_status={status.value: 0 for status in FilingStatus},
    )
    for status, count, estimated, actual in result.all():
        count_int = int(count or 0)
        metrics.by_status[FilingStatus(status).value] = count_int
        metrics.total += count_int
        metrics.total_estimated_refund += _to_money(estimated or 0)
        metrics.total_actual_refund += _to_money(actual or 0)

    return metrics
