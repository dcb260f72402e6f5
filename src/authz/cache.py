"""Process-local cache of each role's granted permission slugs.

Entries expire after a TTL and are dropped explicitly whenever an admin
changes a role's grants. The cache is per process: other processes learn
about a change through the invalidation broadcast, or after the TTL.
"""

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from src.authz.roles import Role
from src.core.config import settings
from src.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CachedPermissions:
    """Permission slugs loaded for a role and when they were loaded."""

    permissions: frozenset[str]
    loaded_at: float


class PermissionCache:
    """TTL cache keyed by role."""

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty cache.

        Args:
            ttl_seconds: Seconds an entry stays valid after loading.
            clock: Monotonic time source, injectable for tests.
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Role, CachedPermissions] = {}

    def get(self, role: Role) -> frozenset[str] | None:
        """Return the cached slugs for ``role``, or None if missing or expired."""
        entry = self._entries.get(role)
        if entry is None:
            return None
        if self._clock() - entry.loaded_at >= self.ttl_seconds:
            del self._entries[role]
            return None
        return entry.permissions

    def set(self, role: Role, permissions: Iterable[str]) -> frozenset[str]:
        """Store a freshly loaded permission set for ``role``."""
        frozen = frozenset(permissions)
        self._entries[role] = CachedPermissions(
            permissions=frozen, loaded_at=self._clock()
        )
        return frozen

    def clear(self, role: Role | None = None) -> None:
        """Drop one role's entry, or every entry when ``role`` is None."""
        if role is None:
            self._entries.clear()
        else:
            self._entries.pop(role, None)
        logger.info(
            "permission_cache_cleared",
            cleared_role=role.value if role else "*",
        )


permission_cache = PermissionCache(ttl_seconds=settings.permission_cache_ttl_seconds)
