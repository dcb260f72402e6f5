"""Tests for tax filing API endpoints."""

from collections.abc import Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from src.authz.permissions import set_role_permission
from src.authz.roles import Role
from src.models.user import User

Headers = Callable[[User], dict[str, str]]


@pytest_asyncio.fixture(autouse=True)
async def assign_client_to_agent(seeded_session: AsyncSession, users: dict[str, User]) -> None:
    """Put the shared client on the agent's book so the agent may work its filings."""
    users["client"].assigned_to = users["agent"].id
    await seeded_session.commit()


async def _create_filing(
    api_client: AsyncClient, headers: dict[str, str], client_id: str, **fields: object
) -> dict:
    response = await api_client.post(
        "/api/tax-filings",
        json={"client_id": client_id, "tax_year": 2024, **fields},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_filing(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    filing = await _create_filing(
        api_client,
        auth_headers(users["agent"]),
        users["client"].id,
        estimated_refund="1250.00",
        states_filed=["CA"],
    )

    assert filing["status"] == "new"
    assert filing["estimated_refund"] == "1250.00"
    assert filing["states_filed"] == ["CA"]
    assert [entry["status"] for entry in filing["status_history"]] == ["new"]


@pytest.mark.asyncio
async def test_duplicate_filing_is_409(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    headers = auth_headers(users["agent"])
    await _create_filing(api_client, headers, users["client"].id)

    response = await api_client.post(
        "/api/tax-filings",
        json={"client_id": users["client"].id, "tax_year": 2024},
        headers=headers,
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "Tax filing already exists for this client and year"


@pytest.mark.asyncio
async def test_create_for_unknown_client_is_404(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.post(
        "/api/tax-filings",
        json={"client_id": "missing", "tax_year": 2024},
        headers=auth_headers(users["agent"]),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_rejects_status_in_body(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.post(
        "/api/tax-filings",
        json={"client_id": users["client"].id, "tax_year": 2024, "status": "paid"},
        headers=auth_headers(users["agent"]),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_status_change_flow(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    headers = auth_headers(users["agent"])
    filing = await _create_filing(api_client, headers, users["client"].id)

    for status, note in (("review", "Docs in"), ("filed", None), ("review", "IRS rejected")):
        response = await api_client.patch(
            f"/api/tax-filings/{filing['id']}/status",
            json={"status": status, "note": note},
            headers=headers,
        )
        assert response.status_code == 200

    payload = response.json()
    assert payload["status"] == "review"
    assert [e["status"] for e in payload["status_history"]] == ["new", "review", "filed", "review"]
    assert payload["status_history"][-1]["note"] == "IRS rejected"
    assert payload["status_history"][2]["note"] is None
    assert payload["documents_received_at"] is not None
    assert payload["submitted_at"] is not None


@pytest.mark.asyncio
async def test_status_change_unknown_status_is_422(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    headers = auth_headers(users["agent"])
    filing = await _create_filing(api_client, headers, users["client"].id)

    response = await api_client.patch(
        f"/api/tax-filings/{filing['id']}/status", json={"status": "lost"}, headers=headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_status_change_missing_filing_is_404(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.patch(
        "/api/tax-filings/missing/status",
        json={"status": "filed"},
        headers=auth_headers(users["agent"]),
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Tax filing not found"


@pytest.mark.asyncio
async def test_update_fields_keeps_history(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    headers = auth_headers(users["agent"])
    filing = await _create_filing(api_client, headers, users["client"].id)

    response = await api_client.patch(
        f"/api/tax-filings/{filing['id']}",
        json={"actual_refund": "1100.00", "fee_paid": True, "filing_type": None},
        headers=headers,
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["actual_refund"] == "1100.00"
    assert payload["fee_paid"] is True
    assert payload["filing_type"] == "individual"
    assert len(payload["status_history"]) == 1


@pytest.mark.asyncio
async def test_update_rejects_history_fields(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    headers = auth_headers(users["agent"])
    filing = await _create_filing(api_client, headers, users["client"].id)

    response = await api_client.patch(
        f"/api/tax-filings/{filing['id']}",
        json={"status_history": []},
        headers=headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_client_reads_own_filing_only(
    api_client: AsyncClient,
    seeded_session: AsyncSession,
    users: dict[str, User],
    auth_headers: Headers,
) -> None:
    other = User(email="other@example.com", role="client")
    seeded_session.add(other)
    await seeded_session.commit()

    filing = await _create_filing(api_client, auth_headers(users["agent"]), users["client"].id)

    own = await api_client.get(
        f"/api/tax-filings/{filing['id']}", headers=auth_headers(users["client"])
    )
    assert own.status_code == 200

    foreign = await api_client.get(f"/api/tax-filings/{filing['id']}", headers=auth_headers(other))
    assert foreign.status_code == 403
    assert "owner" in foreign.json()["detail"]["allowed_roles"]


@pytest.mark.asyncio
async def test_client_lists_own_filings(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    await _create_filing(api_client, auth_headers(users["agent"]), users["client"].id)

    response = await api_client.get("/api/tax-filings/mine", headers=auth_headers(users["client"]))

    assert response.status_code == 200
    assert [f["client_id"] for f in response.json()] == [users["client"].id]


@pytest.mark.asyncio
async def test_client_cannot_list_all_filings(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    response = await api_client.get("/api/tax-filings", headers=auth_headers(users["client"]))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_filters(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    headers = auth_headers(users["agent"])
    filing = await _create_filing(api_client, headers, users["client"].id)
    await api_client.patch(
        f"/api/tax-filings/{filing['id']}/status", json={"status": "filed"}, headers=headers
    )

    filed = await api_client.get(
        "/api/tax-filings", params={"tax_year": 2024, "status": "filed"}, headers=headers
    )
    new = await api_client.get("/api/tax-filings", params={"status": "new"}, headers=headers)

    assert filed.json()["total"] == 1
    assert new.json()["total"] == 0


@pytest.mark.asyncio
async def test_metrics(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    headers = auth_headers(users["agent"])
    await _create_filing(api_client, headers, users["client"].id, estimated_refund="300.10")

    response = await api_client.get("/api/tax-filings/metrics/2024", headers=headers)

    assert response.status_code == 200
    payload = response.json()
    assert payload["total"] == 1
    assert payload["by_status"]["new"] == 1
    assert payload["by_status"]["paid"] == 0
    assert payload["total_estimated_refund"] == "300.10"


@pytest.mark.asyncio
async def test_delete_requires_permission(
    api_client: AsyncClient, users: dict[str, User], auth_headers: Headers
) -> None:
    filing = await _create_filing(api_client, auth_headers(users["agent"]), users["client"].id)

    denied = await api_client.delete(
        f"/api/tax-filings/{filing['id']}", headers=auth_headers(users["agent"])
    )
    assert denied.status_code == 403

    office_headers = auth_headers(users["tax_office"])
    deleted = await api_client.delete(f"/api/tax-filings/{filing['id']}", headers=office_headers)
    assert deleted.status_code == 204

    again = await api_client.delete(f"/api/tax-filings/{filing['id']}", headers=office_headers)
    assert again.status_code == 404


@pytest_asyncio.fixture
async def unassigned_client(seeded_session: AsyncSession) -> User:
    """A client on nobody's book."""
    client = User(email="walkin@example.com", first_name="Walk", last_name="In", role="client")
    seeded_session.add(client)
    await seeded_session.commit()
    return client


@pytest.mark.asyncio
async def test_agent_cannot_reach_unassigned_client_filing(
    api_client: AsyncClient,
    users: dict[str, User],
    unassigned_client: User,
    auth_headers: Headers,
) -> None:
    office_headers = auth_headers(users["tax_office"])
    filing = await _create_filing(
        api_client, office_headers, unassigned_client.id, actual_refund="999.00"
    )
    agent_headers = auth_headers(users["agent"])
    url = f"/api/tax-filings/{filing['id']}"

    read = await api_client.get(url, headers=agent_headers)
    assert read.status_code == 404
    assert read.json()["detail"] == "Tax filing not found"

    patched = await api_client.patch(url, json={"actual_refund": "1.00"}, headers=agent_headers)
    assert patched.status_code == 404

    moved = await api_client.patch(f"{url}/status", json={"status": "paid"}, headers=agent_headers)
    assert moved.status_code == 404

    unchanged = (await api_client.get(url, headers=office_headers)).json()
    assert unchanged["status"] == "new"
    assert unchanged["actual_refund"] == "999.00"
    assert len(unchanged["status_history"]) == 1


@pytest.mark.asyncio
async def test_agent_list_excludes_unassigned_clients(
    api_client: AsyncClient,
    users: dict[str, User],
    unassigned_client: User,
    auth_headers: Headers,
) -> None:
    office_headers = auth_headers(users["tax_office"])
    own = await _create_filing(api_client, office_headers, users["client"].id)
    await _create_filing(api_client, office_headers, unassigned_client.id)

    agent_view = await api_client.get("/api/tax-filings", headers=auth_headers(users["agent"]))
    assert agent_view.status_code == 200
    assert agent_view.json()["total"] == 1
    assert [f["id"] for f in agent_view.json()["items"]] == [own["id"]]

    filtered = await api_client.get(
        "/api/tax-filings",
        params={"client_id": unassigned_client.id},
        headers=auth_headers(users["agent"]),
    )
    assert filtered.json()["total"] == 0

    office_view = await api_client.get("/api/tax-filings", headers=office_headers)
    assert office_view.json()["total"] == 2


@pytest.mark.asyncio
async def test_agent_cannot_open_filing_for_unassigned_client(
    api_client: AsyncClient,
    users: dict[str, User],
    unassigned_client: User,
    auth_headers: Headers,
) -> None:
    response = await api_client.post(
        "/api/tax-filings",
        json={"client_id": unassigned_client.id, "tax_year": 2024},
        headers=auth_headers(users["agent"]),
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "Client not found"


@pytest.mark.asyncio
async def test_agent_delete_is_scoped_to_assigned_clients(
    api_client: AsyncClient,
    seeded_session: AsyncSession,
    users: dict[str, User],
    unassigned_client: User,
    auth_headers: Headers,
) -> None:
    await set_role_permission(seeded_session, Role.AGENT, "clients.delete", True)
    await seeded_session.commit()

    office_headers = auth_headers(users["tax_office"])
    own = await _create_filing(api_client, office_headers, users["client"].id)
    foreign = await _create_filing(api_client, office_headers, unassigned_client.id)
    agent_headers = auth_headers(users["agent"])

    hidden = await api_client.delete(f"/api/tax-filings/{foreign['id']}", headers=agent_headers)
    assert hidden.status_code == 404
    still_there = await api_client.get(f"/api/tax-filings/{foreign['id']}", headers=office_headers)
    assert still_there.status_code == 200

    deleted = await api_client.delete(f"/api/tax-filings/{own['id']}", headers=agent_headers)
    assert deleted.status_code == 204
