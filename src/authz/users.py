"""Staff and role management with a compliance audit trail."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.authz.errors import UserNotFound
from src.authz.roles import Role
from src.core.logging import get_logger
from src.models.user import RoleAuditLog, User

logger = get_logger(__name__)


async def get_user(session: AsyncSession, user_id: str) -> User:
    """Load a user by id.

    Raises:
        UserNotFound: If no such user exists.
    """
    user = await session.get(User, user_id)
    if user is None:
        raise UserNotFound(user_id)
    return user


async def get_users_by_role(session: AsyncSession, role: Role) -> list[User]:
    """Return users holding ``role``, newest first."""
    result = await session.execute(
        select(User)
        .where(User.role == role.value)
        .order_by(User.created_at.desc(), User.id)
    )
    return list(result.scalars().all())


async def get_staff_users(session: AsyncSession) -> list[User]:
    """Return every account whose role is above client."""
    staff_roles = [role.value for role in Role if role is not Role.CLIENT]
    result = await session.execute(
        select(User).where(User.role.in_(staff_roles)).order_by(User.email, User.id)
    )
    return list(result.scalars().all())


async def update_user_role(
    session: AsyncSession,
    user_id: str,
    new_role: Role,
    changed_by: User,
    reason: str | None = None,
) -> User:
    """Change a user's role and record the change in the role audit log.

    Setting the role a user already holds is a no-op and writes no audit row.

    Raises:
        UserNotFound: If the target user does not exist.
    """
    user = await get_user(session, user_id)
    previous_role = user.role
    if previous_role == new_role.value:
        return user

    user.role = new_role.value
    session.add(
        RoleAuditLog(
            user_id=user.id,
            user_name=user.display_name,
            previous_role=previous_role,
            new_role=new_role.value,
            changed_by_id=changed_by.id,
            changed_by_name=changed_by.display_name,
            reason=reason,
        )
    )
    await session.flush()
    logger.info(
        "user_role_changed",
        target_user_id=user.id,
        previous_role=previous_role,
        new_role=new_role.value,
        changed_by_id=changed_by.id,
    )
    return user


async def update_user_status(session: AsyncSession, user_id: str, is_active: bool) -> User:
    """Activate or deactivate an account.

    Raises:
        UserNotFound: If the target user does not exist.
    """
    user = await get_user(session, user_id)
    user.is_active = is_active
    await session.flush()
    logger.info("user_status_changed", target_user_id=user.id, is_active=is_active)
    return user


async def get_role_audit_logs(
    session: AsyncSession,
    user_id: str | None = None,
    limit: int = 100,
) -> list[RoleAuditLog]:
    """Return role changes, newest first, optionally for a single user."""
    stmt = select(RoleAuditLog).order_by(
        RoleAuditLog.created_at.desc(), RoleAuditLog.id
    )
    if user_id is not None:
        stmt = stmt.where(RoleAuditLog.user_id == user_id)
    result = await session.execute(stmt.limit(limit))
    return list(result.scalars().all())
