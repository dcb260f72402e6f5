"""Clients API endpoints.

Clients are user accounts holding the ``client`` role. Staff without
``clients.view_all`` only see clients assigned to them.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import (
    CurrentUser,
    get_db,
    get_visible_client,
    require_permission,
    sees_all_clients,
)
from src.authz.roles import Role
from src.filings.service import count_tax_filings
from src.models.user import User

router = APIRouter(prefix="/api/clients", tags=["clients"])


class ClientCreateRequest(BaseModel):
    """Payload for creating a client."""

    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    assigned_to: str | None = Field(default=None, max_length=36)


class ClientUpdateRequest(BaseModel):
    """Payload for updating a client."""

    first_name: str | None = Field(default=None, min_length=1, max_length=255)
    last_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    assigned_to: str | None = Field(default=None, max_length=36)


class ClientResponse(BaseModel):
    """Client response model."""

    id: str
    first_name: str | None
    last_name: str | None
    email: str | None
    phone: str | None
    assigned_to: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime | None


class ClientListResponse(BaseModel):
    """Paginated client list response."""

    items: list[ClientResponse]
    total: int
    limit: int
    offset: int


def _to_client_response(client: User) -> ClientResponse:
    """Map SQLAlchemy user model to client response model."""
    return ClientResponse(
        id=client.id,
        first_name=client.first_name,
        last_name=client.last_name,
        email=client.email,
        phone=client.phone,
        assigned_to=client.assigned_to,
        is_active=client.is_active,
        created_at=client.created_at,
        updated_at=client.updated_at,
    )


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    payload: ClientCreateRequest,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permission("clients.create")),
) -> ClientResponse:
    """Create a new client account."""
    client = User(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=payload.email,
        phone=payload.phone,
        assigned_to=payload.assigned_to,
        role=Role.CLIENT.value,
    )
    db.add(client)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Email already in use") from exc
    return _to_client_response(client)


@router.get("", response_model=ClientListResponse)
async def list_clients(
    search: str | None = Query(default=None, min_length=1),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("clients.view")),
) -> ClientListResponse:
    """List clients with optional search and pagination."""
    filters = [User.role == Role.CLIENT.value]
    if not await sees_all_clients(db, current):
        filters.append(User.assigned_to == current.id)
    if search:
        search_pattern = f"%{search.strip().lower()}%"
        filters.append(
            or_(
                func.lower(func.coalesce(User.first_name, "")).like(search_pattern),
                func.lower(func.coalesce(User.last_name, "")).like(search_pattern),
                func.lower(func.coalesce(User.email, "")).like(search_pattern),
            )
        )

    count_stmt = select(func.count(User.id)).where(*filters)
    list_stmt = (
        select(User)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id.desc())
    )

    total_result = await db.execute(count_stmt)
    total = int(total_result.scalar() or 0)

    clients_result = await db.execute(list_stmt.limit(limit).offset(offset))
    clients = clients_result.scalars().all()

    return ClientListResponse(
        items=[_to_client_response(client) for client in clients],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("clients.view")),
) -> ClientResponse:
    """Get client by ID."""
    client = await get_visible_client(db, current, client_id)
    return _to_client_response(client)


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: str,
    payload: ClientUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("clients.edit")),
) -> ClientResponse:
    """Partially update client fields."""
    client = await get_visible_client(db, current, client_id)

    updates = payload.model_dump(exclude_unset=True)
    for name in ("first_name", "last_name"):
        if updates.get(name) is not None:
            setattr(client, name, updates[name].strip())
    for name in ("email", "phone", "assigned_to"):
        if name in updates:
            setattr(client, name, updates[name])

    try:
        await db.flush()
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Email already in use") from exc
    return _to_client_response(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(
    client_id: str,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("clients.delete")),
) -> None:
    """Delete a client that has no tax filings."""
    client = await get_visible_client(db, current, client_id)
    if await count_tax_filings(db, client_id=client.id):
        raise HTTPException(
            status_code=409, detail="Client has tax filings and cannot be deleted"
        )
    await db.delete(client)
    await db.flush()
