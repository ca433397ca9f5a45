from datetime import date, datetime, timedelta

import pytest

from memberhub.features.roles.catalog import Role

from tests.support import GUJARAT, PUNJAB

APPLICATION = {
    "full_name": "Asha Patel",
    "email": "Asha@Example.org",
    "phone": "+91 98765 43210",
    "state": GUJARAT,
    "district": "Vadodara",
}


# ============================================================================
# Applications
# ============================================================================

@pytest.mark.asyncio
async def test_submit_application_is_public(client) -> None:
    response = await client.post("/applications", json=APPLICATION)

    assert response.status_code == 201
    assert response.json()["status"] == "pending"

    duplicate = await client.post("/applications", json=APPLICATION)
    assert duplicate.status_code == 409
    assert "already pending" in duplicate.json()["detail"]


@pytest.mark.asyncio
async def test_invalid_application_returns_field_map(client) -> None:
    response = await client.post("/applications", json={**APPLICATION, "phone": "12345", "state": "Atlantis"})

    assert response.status_code == 400
    body = response.json()
    assert set(body) == {"phone", "state"}


@pytest.mark.asyncio
async def test_admin_approves_and_token_verifies(client, acting_as, make_member, make_application, provisioner) -> None:
    await make_member("admin", Role.ADMIN, state=None)
    application = await make_application(email="asha@example.org")
    acting_as("admin")

    response = await client.post(f"/applications/{application.id}/approve")

    assert response.status_code == 200
    issued = response.json()
    assert issued["user_id"] == provisioner.accounts[0].user_id
    verified = await client.get(f"/verify/{issued['membership_id']}")
    assert verified.json()["kind"] == "active"
    assert verified.json()["payload"]["email"] == "asha@example.org"


@pytest.mark.asyncio
async def test_reject_application_requires_reason(client, acting_as, make_member, make_application) -> None:
    await make_member("admin", Role.ADMIN, state=None)
    application = await make_application()
    acting_as("admin")

    response = await client.post(f"/applications/{application.id}/reject", json={"reason": " "})

    assert response.status_code == 400
    assert (await client.get(f"/applications/{application.id}")).json()["status"] == "pending"


# ============================================================================
# Members
# ============================================================================

@pytest.mark.asyncio
async def test_out_of_scope_member_is_forbidden(client, acting_as, make_member) -> None:
    await make_member("convener", Role.STATE_CONVENER, state=PUNJAB)
    await make_member("asha")
    acting_as("convener")

    response = await client.get("/members/asha")

    assert response.status_code == 403
    assert response.json()["detail"]


@pytest.mark.asyncio
async def test_unknown_member(client, acting_as, make_member) -> None:
    await make_member("admin", Role.ADMIN, state=None)
    acting_as("admin")

    response = await client.get("/members/nobody")

    assert response.status_code == 404
    assert response.json() == {"detail": "Member not found"}


@pytest.mark.asyncio
async def test_change_role_returns_effective_view(client, acting_as, make_member) -> None:
    await make_member("admin", Role.ADMIN, state=None)
    await make_member("asha")
    acting_as("admin")

    response = await client.put("/members/asha/role", json={"role": "DESIGNATORY"})

    assert response.status_code == 200
    assert response.json()["role"] == "DESIGNATORY"
    assert response.json()["role_label"] == "Designatory"


@pytest.mark.asyncio
async def test_member_cannot_raise_own_role(client, acting_as, make_member) -> None:
    await make_member("asha")
    acting_as("asha")

    response = await client.put("/members/asha/role", json={"role": "ADMIN"})

    assert response.status_code == 403
    assert (await client.get("/members/me")).json()["role"] == "MEMBER"


@pytest.mark.asyncio
async def test_verify_omits_phone_without_consent(client, make_member) -> None:
    await make_member(
        "asha", phone="9999999999", membership_id="SAV-GUJ-2026-0042", allow_mobile_sharing=False
    )

    response = await client.get("/verify/SAV-GUJ-2026-0042")

    assert response.status_code == 200
    payload = response.json()["payload"]
    assert "phone" not in payload
    assert payload["membership_id"] == "SAV-GUJ-2026-0042"


# ============================================================================
# Events
# ============================================================================

@pytest.mark.asyncio
async def test_event_manager_flow(client, acting_as, make_member) -> None:
    await make_member("admin", Role.ADMIN, state=None)
    await make_member("manager")
    acting_as("admin")
    expiry = (date.today() + timedelta(days=30)).isoformat()

    granted = await client.post(
        "/events/managers", json={"user_id": "manager", "event_name": "Youth Summit", "expiry_date": expiry}
    )
    assert granted.status_code == 201
    assert granted.json()["is_active"] is True

    acting_as("manager")
    saved = await client.put("/events/form", json={
        "title": "Summit registration",
        "fields": [
            {"id": "name", "label": "Name", "type": "text", "required": True},
            {"id": "phone", "label": "Phone", "type": "tel"},
        ],
    })
    assert saved.status_code == 200

    form = await client.get("/events/manager/form")
    assert form.json()["event_name"] == "Youth Summit"
    assert [f["label"] for f in form.json()["fields"]] == ["Name", "Phone"]

    registered = await client.post("/events/manager/register", json={"answers": {"name": "Ravi"}})
    assert registered.status_code == 201
    delegate_id = registered.json()["id"]

    verified = await client.get(f"/verify/delegates/{delegate_id}")
    assert verified.json()["custom_data"] == {"Name": "Ravi"}
    created_at = datetime.fromisoformat(verified.json()["created_at"].replace("Z", "+00:00"))
    assert created_at.utcoffset() is not None

    delegates = await client.get("/events/delegates")
    assert [d["id"] for d in delegates.json()] == [delegate_id]
    assert delegates.json()[0]["created_at"] == verified.json()["created_at"]


@pytest.mark.asyncio
async def test_registration_missing_required_answer(client, acting_as, make_member) -> None:
    await make_member("admin", Role.ADMIN, state=None)
    await make_member("manager")
    acting_as("admin")
    expiry = (date.today() + timedelta(days=30)).isoformat()
    await client.post("/events/managers", json={"user_id": "manager", "event_name": "Summit", "expiry_date": expiry})
    acting_as("manager")
    await client.put("/events/form", json={"fields": [{"id": "name", "label": "Name", "type": "text", "required": True}]})

    response = await client.post("/events/manager/register", json={"answers": {}})

    assert response.status_code == 400
    assert "Name" in response.json()["errors"]


@pytest.mark.asyncio
async def test_unknown_event_form(client) -> None:
    response = await client.get("/events/nobody/form")

    assert response.status_code == 404


# ============================================================================
# Audit
# ============================================================================

@pytest.mark.asyncio
async def test_audit_log_is_admin_only(client, acting_as, make_member) -> None:
    await make_member("admin", Role.ADMIN, state=None)
    await make_member("asha")
    acting_as("asha")
    assert (await client.get("/audit")).status_code == 403

    acting_as("admin")
    await client.post("/members/asha/card")
    response = await client.get("/audit", params={"action": "ID_CARD_ISSUED"})

    assert response.status_code == 200
    assert [entry["target_id"] for entry in response.json()] == ["asha"]
