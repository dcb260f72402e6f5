"""Cross-process permission cache invalidation over Redis pub/sub.

When grants change, the process handling the change clears its own cache
and publishes the role on a channel. Every process listens on that channel
and clears its local entry. Delivery is best effort: a process that misses
a message still reloads once its entry's TTL lapses.
"""

import asyncio

import redis.asyncio as redis

from src.authz.cache import PermissionCache, permission_cache
from src.authz.roles import Role, parse_role
from src.core.config import settings
from src.core.logging import get_logger
from src.core.redis import subscribe

logger = get_logger(__name__)

ALL_ROLES_MARKER = "*"
RESUBSCRIBE_DELAY_SECONDS = 5.0


async def publish_invalidation(pool: redis.Redis, role: Role | None = None) -> bool:
    """Tell other processes to drop cached grants for ``role`` (or all roles).

    Returns:
        True if the message was published, False if Redis was unavailable.
    """
    payload = role.value if role else ALL_ROLES_MARKER
    try:
        await pool.publish(settings.permission_invalidation_channel, payload)
    except Exception as e:
        logger.warning("permission_invalidation_publish_failed", payload=payload, error=str(e))
        return False
    return True


def handle_invalidation_message(payload: str, cache: PermissionCache | None = None) -> None:
    """Apply one invalidation message to the local cache."""
    cache = cache or permission_cache
    if payload == ALL_ROLES_MARKER:
        cache.clear()
        return
    role = parse_role(payload)
    if role is None:
        logger.warning("permission_invalidation_unknown_role", payload=payload)
        return
    cache.clear(role)


async def listen_for_invalidations(
    pool: redis.Redis,
    cache: PermissionCache | None = None,
) -> None:
    """Keep a subscription open until cancelled, resubscribing after errors."""
    cache = cache or permission_cache
    while True:
        try:
            await subscribe(
                pool,
                settings.permission_invalidation_channel,
                lambda payload: handle_invalidation_message(payload, cache),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("permission_invalidation_listener_failed", error=str(e))
        await asyncio.sleep(RESUBSCRIBE_DELAY_SECONDS)
