"""FastAPI dependency injection for database, Redis, and caller authorization."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.authz.errors import AccessDenied, AuthenticationRequired, NoRoleAssigned
from src.authz.guards import check_min_role, check_permission, check_role, resolve_role
from src.authz.permissions import has_permission
from src.authz.roles import Role
from src.authz.tokens import decode_access_token
from src.core.logging import role_ctx, user_id_ctx
from src.models.user import User

if TYPE_CHECKING:
    import redis.asyncio as redis

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Authenticated caller and their resolved role."""

    user: User
    role: Role

    @property
    def id(self) -> str:
        return self.user.id


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session from the app's session factory.

    Args:
        request: FastAPI request containing app state.

    Yields:
        AsyncSession for database operations with automatic commit/rollback.
    """
    async with request.app.state.async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_redis(request: Request) -> "redis.Redis":
    """Get Redis connection pool from app state.

    Args:
        request: FastAPI request containing app state.

    Returns:
        Redis connection pool for pub/sub and health checks.
    """
    return request.app.state.redis


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def forbidden(exc: AccessDenied) -> HTTPException:
    """Translate an AccessDenied into a 403 carrying what was required."""
    detail: dict[str, Any] = {
        "error": "Access denied",
        "message": str(exc),
        "role": exc.role,
    }
    if exc.allowed_roles:
        detail["allowed_roles"] = exc.allowed_roles
    if exc.required_permissions:
        detail["required_permissions"] = exc.required_permissions
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the caller from the bearer token.

    Raises:
        HTTPException: 401 when no valid token, no active user, or no
            recognised role can be resolved.
    """
    if credentials is None:
        raise _unauthorized("Authentication required")

    try:
        user_id = decode_access_token(credentials.credentials)
    except AuthenticationRequired as exc:
        raise _unauthorized(str(exc)) from exc

    user = await db.get(User, user_id)
    if user is None or not user.is_active:
        raise _unauthorized("Authentication required")

    try:
        role = resolve_role(user)
    except NoRoleAssigned as exc:
        raise _unauthorized(str(exc)) from exc

    user_id_ctx.set(user.id)
    role_ctx.set(role.value)
    current = CurrentUser(user=user, role=role)
    request.state.current_user = current
    return current


def require_role(*allowed_roles: Role) -> Callable[..., Awaitable[CurrentUser]]:
    """Dependency allowing the listed roles, plus admin unconditionally.

    Usage:
        @router.get("/reports")
        async def reports(caller: CurrentUser = Depends(require_role(Role.TAX_OFFICE))):
            ...
    """

    async def dependency(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        try:
            check_role(current.role, allowed_roles)
        except AccessDenied as exc:
            raise forbidden(exc) from exc
        return current

    return dependency


def require_min_role(minimum_role: Role) -> Callable[..., Awaitable[CurrentUser]]:
    """Dependency allowing roles ranked at or above ``minimum_role``."""

    async def dependency(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        try:
            check_min_role(current.role, minimum_role)
        except AccessDenied as exc:
            raise forbidden(exc) from exc
        return current

    return dependency


def require_admin() -> Callable[..., Awaitable[CurrentUser]]:
    return require_role(Role.ADMIN)


def require_staff() -> Callable[..., Awaitable[CurrentUser]]:
    return require_min_role(Role.AGENT)


def require_permission(*slugs: str) -> Callable[..., Awaitable[CurrentUser]]:
    """Dependency allowing admin, or any role granted one of ``slugs``.

    Usage:
        @router.get("/payments")
        async def payments(caller: CurrentUser = Depends(require_permission("payments.view"))):
            ...
    """

    async def dependency(
        current: CurrentUser = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> CurrentUser:
        try:
            await check_permission(db, current.role, slugs)
        except AccessDenied as exc:
            raise forbidden(exc) from exc
        return current

    return dependency


async def sees_all_clients(db: AsyncSession, current: CurrentUser) -> bool:
    """True when the caller may see clients not assigned to them."""
    return await has_permission(db, current.role, "clients.view_all")


async def get_visible_client(db: AsyncSession, current: CurrentUser, client_id: str) -> User:
    """Load a client the caller may see, or raise 404.

    Callers without ``clients.view_all`` only see clients assigned to them;
    any other client is reported as missing.
    """
    client = await db.get(User, client_id)
    if client is None or client.role != Role.CLIENT.value:
        raise HTTPException(status_code=404, detail="Client not found")
    if client.assigned_to != current.id and not await sees_all_clients(db, current):
        raise HTTPException(status_code=404, detail="Client not found")
    return client
