"""Tests for the TTL permission cache."""

from src.authz.cache import PermissionCache
from src.authz.roles import Role


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_get_returns_none_when_empty() -> None:
    cache = PermissionCache(ttl_seconds=300)
    assert cache.get(Role.AGENT) is None


def test_set_then_get_returns_frozen_permissions() -> None:
    cache = PermissionCache(ttl_seconds=300)
    stored = cache.set(Role.AGENT, ["clients.view", "clients.edit"])

    assert stored == frozenset({"clients.view", "clients.edit"})
    assert cache.get(Role.AGENT) == stored


def test_entry_expires_after_ttl() -> None:
    clock = FakeClock()
    cache = PermissionCache(ttl_seconds=300, clock=clock)
    cache.set(Role.AGENT, ["clients.view"])

    clock.advance(299)
    assert cache.get(Role.AGENT) == frozenset({"clients.view"})

    clock.advance(1)
    assert cache.get(Role.AGENT) is None


def test_clear_single_role_keeps_others() -> None:
    cache = PermissionCache(ttl_seconds=300)
    cache.set(Role.AGENT, ["clients.view"])
    cache.set(Role.TAX_OFFICE, ["clients.view_all"])

    cache.clear(Role.AGENT)

    assert cache.get(Role.AGENT) is None
    assert cache.get(Role.TAX_OFFICE) == frozenset({"clients.view_all"})


def test_clear_all_roles() -> None:
    cache = PermissionCache(ttl_seconds=300)
    cache.set(Role.AGENT, ["clients.view"])
    cache.set(Role.CLIENT, ["dashboard.view"])

    cache.clear()

    assert cache.get(Role.AGENT) is None
    assert cache.get(Role.CLIENT) is None


def test_empty_permission_set_is_cached() -> None:
    cache = PermissionCache(ttl_seconds=300)
    cache.set(Role.CLIENT, [])
    assert cache.get(Role.CLIENT) == frozenset()
