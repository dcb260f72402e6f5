"""Tax filing API endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from src.api.deps import (
    CurrentUser,
    forbidden,
    get_current_user,
    get_db,
    get_visible_client,
    require_permission,
    sees_all_clients,
)
from src.authz.errors import AccessDenied
from src.authz.guards import check_own_resource_or_staff
from src.core.config import settings
from src.core.logging import get_logger
from src.filings.errors import InvalidFilingUpdate, TaxFilingNotFound
from src.filings.service import (
    count_tax_filings,
    create_tax_filing,
    delete_tax_filing,
    get_tax_filing,
    get_tax_filing_metrics,
    get_tax_filings,
    update_tax_filing,
    update_tax_filing_status,
)
from src.models.filing import FilingStatus, TaxFiling
from src.models.user import User

logger = get_logger(__name__)

router = APIRouter(prefix="/api/tax-filings", tags=["tax-filings"])

CONCURRENT_UPDATE_DETAIL = "Tax filing was modified concurrently; reload and retry"

# Non-nullable columns; an explicit null for these is ignored.
REQUIRED_FIELDS = frozenset({"fee_paid", "filing_type"})


class StatusHistoryEntry(BaseModel):
    """One recorded status change."""

    status: str
    date: str
    note: str | None = None


class TaxFilingFields(BaseModel):
    """Editable non-status fields shared by create and update payloads."""

    model_config = ConfigDict(extra="forbid")

    estimated_refund: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    actual_refund: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    service_fee: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    fee_paid: bool | None = None
    preparer_id: str | None = Field(default=None, max_length=36)
    preparer_name: str | None = None
    office_location: str | None = Field(default=None, max_length=100)
    filing_type: str | None = Field(default=None, max_length=50)
    federal_status: str | None = Field(default=None, max_length=50)
    state_status: str | None = Field(default=None, max_length=50)
    states_filed: list[str] | None = None
    notes: str | None = None

    def editable_fields(self) -> dict[str, Any]:
        """Return the fields the caller set, dropping nulls on required columns."""
        fields = self.model_dump(exclude_unset=True, exclude={"client_id", "tax_year"})
        return {
            name: value
            for name, value in fields.items()
            if value is not None or name not in REQUIRED_FIELDS
        }


class TaxFilingCreateRequest(TaxFilingFields):
    """Payload for opening a filing for a client and year."""

    client_id: str = Field(min_length=1, max_length=36)
    tax_year: int = Field(default_factory=lambda: settings.default_tax_year, ge=2000, le=2100)


class StatusChangeRequest(BaseModel):
    """Payload for moving a filing to another status."""

    status: FilingStatus
    note: str | None = Field(default=None, max_length=2000)


class TaxFilingResponse(BaseModel):
    """Tax filing response model."""

    id: str
    client_id: str
    tax_year: int
    status: FilingStatus
    documents_received_at: datetime | None
    submitted_at: datetime | None
    accepted_at: datetime | None
    approved_at: datetime | None
    funded_at: datetime | None
    estimated_refund: Decimal | None
    actual_refund: Decimal | None
    service_fee: Decimal | None
    fee_paid: bool
    preparer_id: str | None
    preparer_name: str | None
    office_location: str | None
    filing_type: str
    federal_status: str | None
    state_status: str | None
    states_filed: list[str] | None
    notes: str | None
    status_history: list[StatusHistoryEntry]
    created_at: datetime
    updated_at: datetime | None


class TaxFilingListResponse(BaseModel):
    """Paginated filing list response."""

    items: list[TaxFilingResponse]
    total: int
    limit: int
    offset: int


class FilingMetricsResponse(BaseModel):
    """Per-status counts and refund totals for a tax year."""

    tax_year: int
    total: int
    by_status: dict[str, int]
    total_estimated_refund: Decimal
    total_actual_refund: Decimal


def _to_filing_response(filing: TaxFiling) -> TaxFilingResponse:
    """Map SQLAlchemy filing model to response model."""
    return TaxFilingResponse(
        id=filing.id,
        client_id=filing.client_id,
        tax_year=filing.tax_year,
        status=filing.status,
        documents_received_at=filing.documents_received_at,
        submitted_at=filing.submitted_at,
        accepted_at=filing.accepted_at,
        approved_at=filing.approved_at,
        funded_at=filing.funded_at,
        estimated_refund=filing.estimated_refund,
        actual_refund=filing.actual_refund,
        service_fee=filing.service_fee,
        fee_paid=filing.fee_paid,
        preparer_id=filing.preparer_id,
        preparer_name=filing.preparer_name,
        office_location=filing.office_location,
        filing_type=filing.filing_type,
        federal_status=filing.federal_status,
        state_status=filing.state_status,
        states_filed=filing.states_filed,
        notes=filing.notes,
        status_history=[StatusHistoryEntry(**entry) for entry in filing.status_history or []],
        created_at=filing.created_at,
        updated_at=filing.updated_at,
    )


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Tax filing not found")


async def _get_visible_filing(
    db: AsyncSession, current: CurrentUser, filing_id: str
) -> TaxFiling:
    """Load a filing the caller may see.

    Clients may only reach their own filings (403 otherwise). Staff without
    ``clients.view_all`` only reach filings of clients assigned to them;
    any other filing is reported as missing.
    """
    try:
        filing = await get_tax_filing(db, filing_id)
    except TaxFilingNotFound as exc:
        raise _not_found() from exc

    try:
        check_own_resource_or_staff(current.id, current.role, filing.client_id)
    except AccessDenied as exc:
        raise forbidden(exc) from exc

    if filing.client_id != current.id and not await sees_all_clients(db, current):
        client = await db.get(User, filing.client_id)
        if client is None or client.assigned_to != current.id:
            raise _not_found()
    return filing


@router.get("", response_model=TaxFilingListResponse)
async def list_tax_filings(
    tax_year: int | None = Query(default=None),
    client_id: str | None = Query(default=None),
    filing_status: FilingStatus | None = Query(default=None, alias="status"),
    preparer_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("clients.view")),
) -> TaxFilingListResponse:
    """List filings with optional filters and pagination.

    Staff without ``clients.view_all`` only see filings of their assigned
    clients.
    """
    filters: dict[str, Any] = {
        "tax_year": tax_year,
        "client_id": client_id,
        "status": filing_status,
        "preparer_id": preparer_id,
    }
    if not await sees_all_clients(db, current):
        filters["assigned_to"] = current.id
    total = await count_tax_filings(db, **filters)
    filings = await get_tax_filings(db, limit=limit, offset=offset, **filters)
    return TaxFilingListResponse(
        items=[_to_filing_response(filing) for filing in filings],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/mine", response_model=list[TaxFilingResponse])
async def list_my_tax_filings(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
) -> list[TaxFilingResponse]:
    """List the caller's own filings, newest first."""
    filings = await get_tax_filings(db, client_id=current.id)
    return [_to_filing_response(filing) for filing in filings]


@router.get("/metrics/{tax_year}", response_model=FilingMetricsResponse)
async def get_metrics(
    tax_year: int,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permission("reports.view", "dashboard.stats")),
) -> FilingMetricsResponse:
    """Return per-status counts and refund totals for ``tax_year``."""
    metrics = await get_tax_filing_metrics(db, tax_year)
    return FilingMetricsResponse(
        tax_year=metrics.tax_year,
        total=metrics.total,
        by_status=metrics.by_status,
        total_estimated_refund=metrics.total_estimated_refund,
        total_actual_refund=metrics.total_actual_refund,
    )


@router.get("/{filing_id}", response_model=TaxFilingResponse)
async def get_filing(
    filing_id: str,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
) -> TaxFilingResponse:
    """Get a filing. Clients may only read their own."""
    filing = await _get_visible_filing(db, current, filing_id)
    return _to_filing_response(filing)


@router.post("", response_model=TaxFilingResponse, status_code=status.HTTP_201_CREATED)
async def create_filing(
    payload: TaxFilingCreateRequest,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("clients.edit")),
) -> TaxFilingResponse:
    """Open a filing for a client and year, starting in ``new``."""
    await get_visible_client(db, current, payload.client_id)

    fields = payload.editable_fields()
    try:
        filing = await create_tax_filing(db, payload.client_id, payload.tax_year, **fields)
    except IntegrityError as exc:
        logger.warning(
            "tax_filing_duplicate",
            client_id=payload.client_id,
            tax_year=payload.tax_year,
        )
        raise HTTPException(
            status_code=409,
            detail="Tax filing already exists for this client and year",
        ) from exc
    return _to_filing_response(filing)


@router.patch("/{filing_id}", response_model=TaxFilingResponse)
async def update_filing(
    filing_id: str,
    payload: TaxFilingFields,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("clients.edit")),
) -> TaxFilingResponse:
    """Partially update non-status fields."""
    await _get_visible_filing(db, current, filing_id)
    try:
        filing = await update_tax_filing(db, filing_id, payload.editable_fields())
    except TaxFilingNotFound as exc:
        raise _not_found() from exc
    except InvalidFilingUpdate as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except StaleDataError as exc:
        raise HTTPException(status_code=409, detail=CONCURRENT_UPDATE_DETAIL) from exc
    return _to_filing_response(filing)


@router.patch("/{filing_id}/status", response_model=TaxFilingResponse)
async def change_filing_status(
    filing_id: str,
    payload: StatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("clients.edit")),
) -> TaxFilingResponse:
    """Move a filing to any status, recording history and milestones."""
    await _get_visible_filing(db, current, filing_id)
    try:
        filing = await update_tax_filing_status(db, filing_id, payload.status, note=payload.note)
    except TaxFilingNotFound as exc:
        raise _not_found() from exc
    except StaleDataError as exc:
        logger.warning("tax_filing_concurrent_update", filing_id=filing_id)
        raise HTTPException(status_code=409, detail=CONCURRENT_UPDATE_DETAIL) from exc
    return _to_filing_response(filing)


@router.delete("/{filing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_filing(
    filing_id: str,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("clients.delete")),
) -> None:
    """Delete a filing."""
    await _get_visible_filing(db, current, filing_id)
    if not await delete_tax_filing(db, filing_id):
        raise HTTPException(status_code=404, detail="Tax filing not found")
