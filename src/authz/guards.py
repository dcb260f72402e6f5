"""Caller role resolution and access checks, independent of the web framework.

The admin bypass is checked before anything else, so admins pass even when
the permission catalog is incomplete or a slug is misspelled.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.authz.cache import PermissionCache
from src.authz.errors import AccessDenied, NoRoleAssigned
from src.authz.permissions import load_user_permissions
from src.authz.roles import Role, has_minimum_role, parse_role
from src.models.user import User


def resolve_role(user: User) -> Role:
    """Return the user's recognised role.

    Raises:
        NoRoleAssigned: If the stored role is empty or not a server role.
    """
    role = parse_role(user.role)
    if role is None:
        raise NoRoleAssigned(user.id)
    return role


def check_role(role: Role, allowed_roles: tuple[Role, ...]) -> None:
    """Allow ``role`` if it is listed or is admin.

    Raises:
        AccessDenied: Otherwise.
    """
    if role is Role.ADMIN or role in allowed_roles:
        return
    raise AccessDenied(
        role=role.value,
        allowed_roles=[allowed.value for allowed in allowed_roles],
    )


def check_min_role(role: Role, minimum_role: Role) -> None:
    """Allow ``role`` if it ranks at or above ``minimum_role``.

    Raises:
        AccessDenied: Otherwise.
    """
    if has_minimum_role(role, minimum_role):
        return
    raise AccessDenied(
        role=role.value,
        allowed_roles=[r.value for r in Role if has_minimum_role(r, minimum_role)],
    )


async def check_permission(
    session: AsyncSession,
    role: Role,
    slugs: tuple[str, ...],
    cache: PermissionCache | None = None,
) -> None:
    """Allow ``role`` if it is admin or holds ANY of ``slugs``.

    Raises:
        AccessDenied: Otherwise, including when grants could not be loaded.
    """
    if role is Role.ADMIN:
        return
    granted = await load_user_permissions(session, role, cache=cache)
    if any(slug in granted for slug in slugs):
        return
    raise AccessDenied(role=role.value, required_permissions=slugs)


def check_own_resource_or_staff(user_id: str, role: Role, owner_id: str | None) -> None:
    """Allow the resource owner, or any staff member (agent and above).

    Raises:
        AccessDenied: Otherwise.
    """
    if owner_id is not None and user_id == owner_id:
        return
    if has_minimum_role(role, Role.AGENT):
        return
    raise AccessDenied(
        role=role.value,
        allowed_roles=["owner", *(r.value for r in Role if has_minimum_role(r, Role.AGENT))],
    )
