"""Role permission storage, lookup, and seeding.

Permissions are data: each role's grants live in ``role_permissions`` and
can be changed at runtime. Resolution rules:

- ``admin`` holds every permission without consulting the table.
- A missing (role, permission) row means not granted.
- If grants cannot be loaded, the role is treated as holding none.
"""

from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.authz.cache import PermissionCache, permission_cache
from src.authz.catalog import DEFAULT_PERMISSIONS
from src.authz.errors import PermissionNotFound
from src.authz.roles import ALL_ROLES, Role
from src.core.logging import get_logger
from src.models.permission import Permission, RolePermission

logger = get_logger(__name__)


@dataclass
class PermissionMatrix:
    """Every permission crossed with every role."""

    permissions: list[Permission]
    matrix: dict[str, dict[str, bool]] = field(default_factory=dict)


async def get_permissions(session: AsyncSession) -> list[Permission]:
    """Return the permission catalog in display order."""
    result = await session.execute(
        select(Permission).order_by(Permission.sort_order, Permission.slug)
    )
    return list(result.scalars().all())


async def get_permissions_by_group(session: AsyncSession) -> dict[str, list[Permission]]:
    """Return the catalog grouped by feature group, preserving display order."""
    grouped: dict[str, list[Permission]] = defaultdict(list)
    for permission in await get_permissions(session):
        grouped[permission.feature_group or "other"].append(permission)
    return dict(grouped)


async def get_permission_by_slug(session: AsyncSession, slug: str) -> Permission:
    """Load a permission by slug.

    Raises:
        PermissionNotFound: If the slug is not in the catalog.
    """
    result = await session.execute(select(Permission).where(Permission.slug == slug))
    permission = result.scalars().first()
    if permission is None:
        raise PermissionNotFound(slug)
    return permission


async def get_role_permissions(session: AsyncSession, role: Role) -> list[str]:
    """Read the slugs granted to ``role`` straight from storage."""
    result = await session.execute(
        select(Permission.slug)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role == role.value)
        .where(RolePermission.granted.is_(True))
        .order_by(Permission.sort_order, Permission.slug)
    )
    return list(result.scalars().all())


async def load_user_permissions(
    session: AsyncSession,
    role: Role,
    cache: PermissionCache | None = None,
) -> frozenset[str]:
    """Return the slugs granted to ``role``, served from cache when fresh.

    A storage failure is logged and yields an empty set, which is not
    cached, so the next call retries.
    """
    cache = cache or permission_cache
    cached = cache.get(role)
    if cached is not None:
        return cached

    try:
        slugs = await get_role_permissions(session, role)
    except Exception as e:
        logger.exception("permission_load_failed", target_role=role.value, error=str(e))
        return frozenset()

    logger.debug("permissions_loaded", target_role=role.value, count=len(slugs))
    return cache.set(role, slugs)


def clear_permission_cache(
    role: Role | None = None,
    cache: PermissionCache | None = None,
) -> None:
    """Invalidate cached grants for one role, or for all roles."""
    (cache or permission_cache).clear(role)


async def has_permission(
    session: AsyncSession,
    role: Role,
    slug: str,
    cache: PermissionCache | None = None,
) -> bool:
    """Return True when ``role`` holds ``slug``. Admin always does."""
    if role is Role.ADMIN:
        return True
    return slug in await load_user_permissions(session, role, cache=cache)


async def set_role_permission(
    session: AsyncSession,
    role: Role,
    slug: str,
    granted: bool,
) -> RolePermission:
    """Grant or revoke one permission for a role (insert or update).

    The cache is not touched; callers clear it once their change is
    committed.

    Raises:
        PermissionNotFound: If the slug is not in the catalog.
    """
    permission = await get_permission_by_slug(session, slug)

    result = await session.execute(
        select(RolePermission)
        .where(RolePermission.role == role.value)
        .where(RolePermission.permission_id == permission.id)
    )
    grant = result.scalars().first()
    if grant is None:
        grant = RolePermission(
            role=role.value,
            permission_id=permission.id,
            granted=granted,
        )
        session.add(grant)
    else:
        grant.granted = granted

    await session.flush()
    logger.info(
        "role_permission_set",
        target_role=role.value,
        permission=slug,
        granted=granted,
    )
    return grant


async def update_role_permissions(
    session: AsyncSession,
    role: Role,
    grants: Mapping[str, bool],
) -> None:
    """Apply several grant changes for one role.

    Raises:
        PermissionNotFound: On the first unknown slug; earlier changes in the
            same session are rolled back with it by the session owner.
    """
    for slug, granted in grants.items():
        await set_role_permission(session, role, slug, bool(granted))


async def get_role_permission_matrix(session: AsyncSession) -> PermissionMatrix:
    """Build the full role x permission grid from a single join.

    Pairs without a stored row are reported as not granted.
    """
    result = await session.execute(
        select(Permission, RolePermission)
        .outerjoin(RolePermission, RolePermission.permission_id == Permission.id)
        .order_by(Permission.sort_order, Permission.slug)
    )

    permissions: dict[str, Permission] = {}
    granted_pairs: set[tuple[str, str]] = set()
    for permission, grant in result.all():
        permissions.setdefault(permission.id, permission)
        if grant is not None and grant.granted:
            granted_pairs.add((grant.role, permission.slug))

    ordered = list(permissions.values())
    matrix = {
        role.value: {
            permission.slug: (role.value, permission.slug) in granted_pairs
            for permission in ordered
        }
        for role in ALL_ROLES
    }
    return PermissionMatrix(permissions=ordered, matrix=matrix)


async def seed_default_permissions(session: AsyncSession) -> int:
    """Insert catalog permissions and default grants that are missing.

    Existing rows are left alone, so grants changed by an admin survive
    restarts.

    Returns:
        Number of rows inserted (permissions plus grants).
    """
    inserted = 0
    existing = {permission.slug: permission for permission in await get_permissions(session)}

    for sort_order, entry in enumerate(DEFAULT_PERMISSIONS):
        if entry.slug in existing:
            continue
        permission = Permission(
            slug=entry.slug,
            label=entry.label,
            description=entry.description,
            feature_group=entry.feature_group,
            sort_order=sort_order,
        )
        session.add(permission)
        existing[entry.slug] = permission
        inserted += 1
    await session.flush()

    result = await session.execute(select(RolePermission.role, RolePermission.permission_id))
    stored_pairs = {(role, permission_id) for role, permission_id in result.all()}

    for entry in DEFAULT_PERMISSIONS:
        permission_id = existing[entry.slug].id
        for role in entry.default_roles:
            if (role.value, permission_id) in stored_pairs:
                continue
            session.add(
                RolePermission(role=role.value, permission_id=permission_id, granted=True)
            )
            inserted += 1
    await session.flush()

    if inserted:
        logger.info("permissions_seeded", inserted=inserted)
    return inserted
