"""Tests for staff management endpoints."""

from collections.abc import Callable

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.user import User

Headers = Callable[[User], dict[str, str]]


@pytest.mark.asyncio
async def test_list_staff(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.get("/api/users", headers=auth_headers(users["tax_office"]))

    assert response.status_code == 200
    assert {user["role"] for user in response.json()} == {"agent", "tax_office", "admin"}


@pytest.mark.asyncio
async def test_list_by_role(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.get(
        "/api/users", params={"role": "client"}, headers=auth_headers(users["admin"])
    )

    assert [user["id"] for user in response.json()] == [users["client"].id]


@pytest.mark.asyncio
async def test_agent_cannot_list_staff(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.get("/api/users", headers=auth_headers(users["agent"]))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_role_change_is_audited(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    admin_headers = auth_headers(users["admin"])
    target = users["agent"]

    response = await api_client.patch(
        f"/api/users/{target.id}/role",
        json={"role": "tax_office", "reason": "Promoted to office manager"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["role"] == "tax_office"

    audit = await api_client.get("/api/users/role-audit", headers=admin_headers)
    assert audit.status_code == 200
    entries = audit.json()
    assert len(entries) == 1
    assert entries[0]["user_id"] == target.id
    assert entries[0]["previous_role"] == "agent"
    assert entries[0]["new_role"] == "tax_office"
    assert entries[0]["changed_by_id"] == users["admin"].id
    assert entries[0]["reason"] == "Promoted to office manager"


@pytest.mark.asyncio
async def test_role_change_applies_to_next_request(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    target = users["agent"]
    await api_client.patch(
        f"/api/users/{target.id}/role",
        json={"role": "client"},
        headers=auth_headers(users["admin"]),
    )

    response = await api_client.get("/api/permissions/me", headers=auth_headers(target))
    assert response.json()["role"] == "client"


@pytest.mark.asyncio
async def test_cannot_change_own_role(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    admin = users["admin"]
    response = await api_client.patch(
        f"/api/users/{admin.id}/role", json={"role": "agent"}, headers=auth_headers(admin)
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_role_change_requires_admin_users(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.patch(
        f"/api/users/{users['agent'].id}/role",
        json={"role": "admin"},
        headers=auth_headers(users["tax_office"]),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_role_change_unknown_user(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.patch(
        "/api/users/missing/role", json={"role": "agent"}, headers=auth_headers(users["admin"])
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_role_change_rejects_unknown_role(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.patch(
        f"/api/users/{users['agent'].id}/role",
        json={"role": "super_admin"},
        headers=auth_headers(users["admin"]),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_deactivated_user_loses_access(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    agent = users["agent"]
    response = await api_client.patch(
        f"/api/users/{agent.id}/status",
        json={"is_active": False},
        headers=auth_headers(users["tax_office"]),
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    denied = await api_client.get("/api/permissions/me", headers=auth_headers(agent))
    assert denied.status_code == 401


@pytest.mark.asyncio
async def test_role_audit_requires_permission(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.get("/api/users/role-audit", headers=auth_headers(users["agent"]))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_agents_disable_cannot_reach_higher_roles(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    office_headers = auth_headers(users["tax_office"])

    response = await api_client.patch(
        f"/api/users/{users['admin'].id}/status",
        json={"is_active": False},
        headers=office_headers,
    )
    assert response.status_code == 403
    assert response.json()["detail"]["role"] == "tax_office"

    still_active = await api_client.get(
        "/api/permissions/me", headers=auth_headers(users["admin"])
    )
    assert still_active.status_code == 200


@pytest.mark.asyncio
async def test_agents_disable_cannot_reach_same_role(
    api_client: AsyncClient,
    seeded_session: AsyncSession,
    users: dict[str, User],
    auth_headers: Headers,
) -> None:
    peer = User(email="peer@example.com", role="tax_office")
    seeded_session.add(peer)
    await seeded_session.commit()

    response = await api_client.patch(
        f"/api/users/{peer.id}/status",
        json={"is_active": False},
        headers=auth_headers(users["tax_office"]),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_users_may_change_any_status(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.patch(
        f"/api/users/{users['tax_office'].id}/status",
        json={"is_active": False},
        headers=auth_headers(users["admin"]),
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is False


@pytest.mark.asyncio
async def test_status_change_unknown_user_is_404(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.patch(
        "/api/users/missing/status",
        json={"is_active": False},
        headers=auth_headers(users["tax_office"]),
    )
    assert response.status_code == 404
