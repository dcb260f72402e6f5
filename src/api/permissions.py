"""Permission catalog and role grant administration endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import CurrentUser, get_current_user, get_db, require_permission
from src.authz.catalog import CATALOG_SLUGS
from src.authz.errors import PermissionNotFound
from src.authz.invalidation import publish_invalidation
from src.authz.permissions import (
    clear_permission_cache,
    get_permissions_by_group,
    get_role_permission_matrix,
    get_role_permissions,
    load_user_permissions,
    set_role_permission,
    update_role_permissions,
)
from src.authz.roles import ROLE_DISPLAY_NAMES, Role
from src.core.logging import get_logger
from src.models.permission import Permission

logger = get_logger(__name__)

router = APIRouter(prefix="/api/permissions", tags=["permissions"])

MANAGE_PERMISSIONS = "admin.permissions"


class PermissionResponse(BaseModel):
    """Permission catalog entry."""

    slug: str
    label: str
    description: str | None
    feature_group: str
    sort_order: int


class PermissionGroupResponse(BaseModel):
    """Permissions belonging to one feature group."""

    group: str
    permissions: list[PermissionResponse]


class PermissionMatrixResponse(BaseModel):
    """Role x permission grid for the admin UI."""

    roles: dict[str, str]
    permissions: list[PermissionResponse]
    matrix: dict[str, dict[str, bool]]


class RolePermissionsResponse(BaseModel):
    """Slugs granted to a role."""

    role: str
    permissions: list[str]


class GrantRequest(BaseModel):
    """Payload for granting or revoking one permission."""

    granted: bool


class GrantResponse(BaseModel):
    """Stored state of one role grant."""

    role: str
    slug: str
    granted: bool


class BulkGrantRequest(BaseModel):
    """Payload mapping permission slugs to granted flags."""

    permissions: dict[str, bool]


def _to_permission_response(permission: Permission) -> PermissionResponse:
    """Map SQLAlchemy permission model to response model."""
    return PermissionResponse(
        slug=permission.slug,
        label=permission.label,
        description=permission.description,
        feature_group=permission.feature_group,
        sort_order=permission.sort_order,
    )


async def _commit_and_invalidate(db: AsyncSession, request: Request, role: Role) -> None:
    """Commit grant changes, then drop cached grants here and in other processes.

    The cache is cleared only after commit so no request can reload the
    pre-change grants into it.
    """
    await db.commit()
    clear_permission_cache(role)
    redis_pool = getattr(request.app.state, "redis", None)
    if redis_pool is not None:
        await publish_invalidation(redis_pool, role)


@router.get("", response_model=list[PermissionGroupResponse])
async def list_permissions(
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permission(MANAGE_PERMISSIONS)),
) -> list[PermissionGroupResponse]:
    """Return the permission catalog grouped by feature."""
    grouped = await get_permissions_by_group(db)
    return [
        PermissionGroupResponse(
            group=group,
            permissions=[_to_permission_response(p) for p in permissions],
        )
        for group, permissions in grouped.items()
    ]


@router.get("/matrix", response_model=PermissionMatrixResponse)
async def get_matrix(
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permission(MANAGE_PERMISSIONS)),
) -> PermissionMatrixResponse:
    """Return every role's grant for every permission."""
    result = await get_role_permission_matrix(db)
    return PermissionMatrixResponse(
        roles={role.value: ROLE_DISPLAY_NAMES[role] for role in Role},
        permissions=[_to_permission_response(p) for p in result.permissions],
        matrix=result.matrix,
    )


@router.get("/me", response_model=RolePermissionsResponse)
async def get_my_permissions(
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(get_current_user),
) -> RolePermissionsResponse:
    """Return the caller's effective permissions (all of them for admin)."""
    if current.role is Role.ADMIN:
        slugs = CATALOG_SLUGS
    else:
        slugs = await load_user_permissions(db, current.role)
    return RolePermissionsResponse(role=current.role.value, permissions=sorted(slugs))


@router.get("/roles/{role}", response_model=RolePermissionsResponse)
async def get_permissions_for_role(
    role: Role,
    db: AsyncSession = Depends(get_db),
    _: CurrentUser = Depends(require_permission(MANAGE_PERMISSIONS)),
) -> RolePermissionsResponse:
    """Return the grants stored for a role, bypassing the cache."""
    slugs = await get_role_permissions(db, role)
    return RolePermissionsResponse(role=role.value, permissions=slugs)


@router.put("/roles/{role}/{slug}", response_model=GrantResponse)
async def set_permission_for_role(
    role: Role,
    slug: str,
    payload: GrantRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission(MANAGE_PERMISSIONS)),
) -> GrantResponse:
    """Grant or revoke one permission for a role."""
    try:
        grant = await set_role_permission(db, role, slug, payload.granted)
    except PermissionNotFound as exc:
        logger.error("permission_slug_unknown", permission=slug)
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    await _commit_and_invalidate(db, request, role)
    logger.info(
        "role_permission_changed_by_admin",
        target_role=role.value,
        permission=slug,
        granted=grant.granted,
        changed_by_id=current.id,
    )
    return GrantResponse(role=role.value, slug=slug, granted=grant.granted)


@router.put(
    "/roles/{role}",
    response_model=RolePermissionsResponse,
    status_code=status.HTTP_200_OK,
)
async def bulk_set_permissions_for_role(
    role: Role,
    payload: BulkGrantRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current: CurrentUser = Depends(require_permission(MANAGE_PERMISSIONS)),
) -> RolePermissionsResponse:
    """Apply several grant changes for a role in one transaction."""
    try:
        await update_role_permissions(db, role, payload.permissions)
    except PermissionNotFound as exc:
        logger.error("permission_slug_unknown", permission=exc.slug)
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    await _commit_and_invalidate(db, request, role)
    logger.info(
        "role_permissions_bulk_changed_by_admin",
        target_role=role.value,
        changed=len(payload.permissions),
        changed_by_id=current.id,
    )
    slugs = await get_role_permissions(db, role)
    return RolePermissionsResponse(role=role.value, permissions=slugs)
