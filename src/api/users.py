"""Staff management and role audit endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import CurrentUser, get_db, require_permission
from src.authz.errors import UserNotFound
from src.authz.permissions import has_permission
from src.authz.roles import Role, has_minimum_role
from src.authz.users import (
    get_role_audit_logs,
    get_staff_users,
    get_user,
    get_users_by_role,
    update_user_role,
    update_user_status,
)
from src.models.user import RoleAuditLog, User

router = APIRouter(prefix="/api/users", tags=["users"])


class UserResponse(BaseModel):
    """User account response model."""

    id: str
    email: str | None
    first_name: str | None
    last_name: str | None
    role: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime | None


class RoleChangeRequest(BaseModel):
    """Payload for changing a user's role."""

    role: Role
    reason: str | None = Field(default=None, max_length=1000)


class StatusChangeRequest(BaseModel):
    """Payload for activating or deactivating a user."""

    is_active: bool


class RoleAuditResponse(BaseModel):
    """One recorded role change."""

    id: str
    user_id: str
    user_name: str | None
    previous_role: str | None
    new_role: str
    changed_by_id: str
    changed_by_name: str | None
    reason: str | None
    created_at: datetime


def _to_user_response(user: User) -> UserResponse:
    """Map SQLAlchemy user model to response model."""
    return UserResponse(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_active=user.is_active,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def _to_audit_response(entry: RoleAuditLog) -> RoleAuditResponse:
    return RoleAuditResponse(
        id=entry.id,
        user_id=entry.user_id,
        user_name=entry.user_name,
        previous_role=entry.previous_role,
        new_role=entry.new_role,
        changed_by_id=entry.changed_by_id,
        changed_by_name=entry.changed_by_name,
        reason=entry.reason,
        created_at=entry.created_at,
    )


@router.get("", response_model=list[UserResponse])
async def list_users(
    role: Role | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permission("admin.users", "agents.view")),
) -> list[UserResponse]:
    """List staff accounts, or every account holding ``role``."""
    users = await get_users_by_role(db, role) if role else await get_staff_users(db)
    return [_to_user_response(user) for user in users]


@router.patch("/{user_id}/role", response_model=UserResponse)
async def change_user_role(
    user_id: str,
    payload: RoleChangeRequest,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("admin.users")),
) -> UserResponse:
    """Change a user's role; the change is written to the role audit log."""
    if user_id == current.id:
        raise HTTPException(status_code=400, detail="You cannot change your own role")
    try:
        user = await update_user_role(
            db,
            user_id,
            payload.role,
            changed_by=current.user,
            reason=payload.reason,
        )
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    return _to_user_response(user)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def change_user_status(
    user_id: str,
    payload: StatusChangeRequest,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission("admin.users", "agents.disable")),
) -> UserResponse:
    """Activate or deactivate an account.

    Without ``admin.users`` the caller may only change accounts ranked below
    their own role.
    """
    if user_id == current.id and not payload.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate yourself")
    try:
        target = await get_user(db, user_id)
    except UserNotFound as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    if has_minimum_role(target.role, current.role) and not await has_permission(
        db, current.role, "admin.users"
    ):
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Access denied",
                "message": "Cannot change the status of an account at or above your role",
                "role": current.role.value,
            },
        )
    user = await update_user_status(db, target.id, payload.is_active)
    return _to_user_response(user)


@router.get("/role-audit", response_model=list[RoleAuditResponse])
async def list_role_audit(
    user_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permission("admin.audit")),
) -> list[RoleAuditResponse]:
    """Return recorded role changes, newest first."""
    entries = await get_role_audit_logs(db, user_id=user_id, limit=limit)
    return [_to_audit_response(entry) for entry in entries]
