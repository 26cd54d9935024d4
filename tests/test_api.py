"""
API endpoint tests over the ASGI app with the in-memory database
"""

import pytest
from jose import jwt

from config.payout_config import PROGRAMS
from src.database.crud import create_payout_request, create_user


ADMIN_EMAIL = "admin@example.com"
AFFILIATE_EMAIL = "affiliate@example.com"

PAYPAL_METHOD = {
    "name": "PayPal",
    "is_default": True,
    "details": {"type": "paypal", "email": "pay@example.com"},
}


# ============================================================================
# AUTH
# ============================================================================


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_database_health(client, monkeypatch):
    import api_server

    async def connected():
        return True

    async def disconnected():
        return False

    async def missing_payouts():
        return ["payout_requests"]

    monkeypatch.setattr(api_server, "check_connection", connected)
    monkeypatch.setattr(api_server, "get_missing_tables", missing_payouts)

    response = await client.get("/health/database")
    assert response.status_code == 200
    assert response.json() == {
        "connected": True,
        "initialized": False,
        "missing_tables": ["payout_requests"],
    }

    monkeypatch.setattr(api_server, "check_connection", disconnected)

    response = await client.get("/health/database")
    assert response.status_code == 503
    assert response.json()["connected"] is False


@pytest.mark.asyncio
async def test_missing_or_invalid_token(client):
    assert (await client.get("/api/profile")).status_code == 401

    forged = jwt.encode({"email": AFFILIATE_EMAIL}, "wrong-secret", algorithm="HS256")
    response = await client.get("/api/profile", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_first_sign_in_creates_user(client, auth_headers):
    response = await client.get(
        "/api/profile",
        headers=auth_headers("New.Person@example.com", user_metadata={"first_name": "New"}),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["user"]["email"] == "new.person@example.com"
    assert data["user"]["first_name"] == "New"
    assert data["user"]["is_admin"] is False
    assert data["stats"]["total"] == 0


@pytest.mark.asyncio
async def test_admin_emails_become_admins(client, auth_headers):
    response = await client.get("/api/profile", headers=auth_headers(ADMIN_EMAIL))

    assert response.json()["user"]["is_admin"] is True


@pytest.mark.asyncio
async def test_suspended_user_is_refused(client, auth_headers, db_session):
    await create_user(db_session, email="blocked@example.com")
    user = (await client.get("/api/profile", headers=auth_headers("blocked@example.com"))).json()["user"]
    admin = auth_headers(ADMIN_EMAIL)

    response = await client.post(f"/api/admin/users/{user['id']}/suspend", headers=admin, json={"suspended": True})
    assert response.status_code == 200
    assert response.json()["user"]["is_suspended"] is True

    response = await client.get("/api/profile", headers=auth_headers("blocked@example.com"))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_affiliate_cannot_use_admin_routes(client, auth_headers):
    response = await client.get("/api/admin/overview", headers=auth_headers(AFFILIATE_EMAIL))

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_cannot_use_affiliate_routes(client, auth_headers):
    admin = auth_headers(ADMIN_EMAIL)

    response = await client.post(
        "/api/leads",
        headers=admin,
        json={"full_name": "Jane", "email": "jane@example.com", "program": PROGRAMS[0]},
    )
    assert response.status_code == 403

    assert (await client.get("/api/leads", headers=admin)).status_code == 403
    assert (await client.get("/api/payouts", headers=admin)).status_code == 403
    assert (await client.post("/api/payouts", headers=admin)).status_code == 403

    # Shared routes stay open to admins
    assert (await client.get("/api/profile", headers=admin)).status_code == 200
    assert (await client.get("/api/payment-methods", headers=admin)).status_code == 200


@pytest.mark.asyncio
async def test_update_profile(client, auth_headers):
    headers = auth_headers(AFFILIATE_EMAIL)

    response = await client.patch(
        "/api/profile",
        headers=headers,
        json={"first_name": "Ann", "profile_image": "https://cdn.example.com/ann.png"},
    )

    assert response.status_code == 200
    assert response.json()["user"]["first_name"] == "Ann"
    assert response.json()["user"]["profile_image"] == "https://cdn.example.com/ann.png"


# ============================================================================
# LEADS
# ============================================================================


@pytest.mark.asyncio
async def test_submit_and_list_leads(client, auth_headers):
    headers = auth_headers(AFFILIATE_EMAIL)

    response = await client.post(
        "/api/leads",
        headers=headers,
        json={
            "full_name": "Jane Doe",
            "email": "jane@example.com",
            "program": PROGRAMS[0],
            "website": "janedoe.com",
        },
    )
    assert response.status_code == 200
    lead = response.json()["lead"]
    assert lead["status"] == "pending"
    assert lead["website"] == "https://janedoe.com"
    assert lead["can_edit"] is True

    response = await client.get("/api/leads", headers=headers)
    data = response.json()
    assert [item["id"] for item in data["leads"]] == [lead["id"]]
    assert data["stats"]["pending"] == 1
    assert data["programs"] == PROGRAMS


@pytest.mark.asyncio
async def test_submit_invalid_lead(client, auth_headers):
    response = await client.post(
        "/api/leads",
        headers=auth_headers(AFFILIATE_EMAIL),
        json={"full_name": "Jane", "email": "not-an-email", "program": PROGRAMS[0]},
    )

    assert response.status_code == 400
    assert "valid email" in response.json()["detail"]


@pytest.mark.asyncio
async def test_lead_detail_and_edit(client, auth_headers):
    headers = auth_headers(AFFILIATE_EMAIL)
    lead = (
        await client.post(
            "/api/leads",
            headers=headers,
            json={"full_name": "Jane", "email": "jane@example.com", "program": PROGRAMS[0]},
        )
    ).json()["lead"]

    response = await client.patch(
        f"/api/leads/{lead['id']}",
        headers=headers,
        json={"full_name": "Jane Roe", "email": "jane@example.com", "program": PROGRAMS[0]},
    )
    assert response.status_code == 200
    assert response.json()["lead"]["full_name"] == "Jane Roe"

    # Other affiliates cannot see it
    response = await client.get(f"/api/leads/{lead['id']}", headers=auth_headers("other@example.com"))
    assert response.status_code == 403

    response = await client.get("/api/leads/9999", headers=headers)
    assert response.status_code == 404


# ============================================================================
# PAYMENT METHODS
# ============================================================================


@pytest.mark.asyncio
async def test_payment_method_crud(client, auth_headers):
    headers = auth_headers(AFFILIATE_EMAIL)

    created = await client.post("/api/payment-methods", headers=headers, json=PAYPAL_METHOD)
    assert created.status_code == 200
    method = created.json()["method"]
    assert method["type"] == "paypal"
    assert method["label"] == "PayPal"
    assert method["is_default"] is True

    wise = await client.post(
        "/api/payment-methods",
        headers=headers,
        json={
            "name": "Wise",
            "details": {"type": "wise", "name": "Ann", "email": "ann@example.com", "account_id": "1"},
        },
    )
    wise_id = wise.json()["method"]["id"]

    response = await client.post(f"/api/payment-methods/{wise_id}/default", headers=headers)
    defaults = [m["id"] for m in response.json()["methods"] if m["is_default"]]
    assert defaults == [wise_id]

    response = await client.put(
        f"/api/payment-methods/{method['id']}",
        headers=headers,
        json={"name": "Renamed", "details": {"type": "paypal", "email": "new@example.com"}},
    )
    assert response.json()["method"]["name"] == "Renamed"

    response = await client.delete(f"/api/payment-methods/{wise_id}", headers=headers)
    assert [m["id"] for m in response.json()["methods"]] == [method["id"]]
    assert response.json()["methods"][0]["is_default"] is True

    listed = await client.get("/api/payment-methods", headers=headers)
    assert len(listed.json()["methods"]) == 1


@pytest.mark.asyncio
async def test_payment_method_validation(client, auth_headers):
    headers = auth_headers(AFFILIATE_EMAIL)

    response = await client.post(
        "/api/payment-methods",
        headers=headers,
        json={"name": "Bank", "details": {"type": "bank_transfer", "name": "Ann", "iban": "DE89"}},
    )
    assert response.status_code == 422

    response = await client.delete("/api/payment-methods/pm_missing", headers=headers)
    assert response.status_code == 404


# ============================================================================
# PAYOUTS
# ============================================================================


@pytest.mark.asyncio
async def test_payout_eligibility_and_request(client, auth_headers, affiliate, lead_factory):
    headers = auth_headers(AFFILIATE_EMAIL)
    await lead_factory(affiliate, price=60)
    await lead_factory(affiliate, price=50)

    status = (await client.get("/api/payouts", headers=headers)).json()
    assert status["unpaid_earnings"] == 110.0
    assert status["has_payment_method"] is False
    assert status["can_request_payout"] is False

    response = await client.post("/api/payouts", headers=headers)
    assert response.status_code == 400

    await client.post("/api/payment-methods", headers=headers, json=PAYPAL_METHOD)

    status = (await client.get("/api/payouts", headers=headers)).json()
    assert status["can_request_payout"] is True

    response = await client.post("/api/payouts", headers=headers, json={})
    assert response.status_code == 200
    payout = response.json()["payout"]
    assert payout["amount"] == 110.0
    assert payout["status"] == "requested"
    assert payout["details"] == {"type": "paypal", "email": "pay@example.com"}


@pytest.mark.asyncio
async def test_payout_below_minimum(client, auth_headers, affiliate, lead_factory):
    headers = auth_headers(AFFILIATE_EMAIL)
    await lead_factory(affiliate, price=99.99)
    await client.post("/api/payment-methods", headers=headers, json=PAYPAL_METHOD)

    response = await client.post("/api/payouts", headers=headers)

    assert response.status_code == 400
    assert "at least" in response.json()["detail"]
    assert (await client.get("/api/payouts", headers=headers)).json()["payouts"] == []


# ============================================================================
# ADMIN
# ============================================================================


@pytest.mark.asyncio
async def test_admin_review_and_approve_flow(client, auth_headers):
    affiliate = auth_headers(AFFILIATE_EMAIL)
    admin = auth_headers(ADMIN_EMAIL)

    lead_ids = []
    for name in ("First", "Second", "Third"):
        response = await client.post(
            "/api/leads",
            headers=affiliate,
            json={"full_name": name, "email": f"{name.lower()}@example.com", "program": PROGRAMS[0]},
        )
        lead_ids.append(response.json()["lead"]["id"])

    for lead_id in lead_ids:
        response = await client.patch(
            f"/api/admin/leads/{lead_id}", headers=admin, json={"status": "approved", "price": 50}
        )
        assert response.status_code == 200
        assert response.json()["lead"]["price"] == 50.0

    # Approved leads cannot be moved back
    response = await client.patch(f"/api/admin/leads/{lead_ids[0]}", headers=admin, json={"status": "rejected"})
    assert response.status_code == 400

    await client.post("/api/payment-methods", headers=affiliate, json=PAYPAL_METHOD)
    payout = (await client.post("/api/payouts", headers=affiliate)).json()["payout"]
    assert payout["amount"] == 150.0

    listed = (await client.get("/api/admin/payouts?status=requested", headers=admin)).json()
    assert [p["id"] for p in listed["payouts"]] == [payout["id"]]
    assert listed["payouts"][0]["affiliate"]["email"] == AFFILIATE_EMAIL

    response = await client.post(
        f"/api/admin/payouts/{payout['id']}/approve", headers=admin, json={"note": "Paid"}
    )
    assert response.status_code == 200
    assert response.json()["paid_lead_ids"] == lead_ids
    assert response.json()["remaining_unallocated"] == 0.0

    response = await client.post(f"/api/admin/payouts/{payout['id']}/reject", headers=admin)
    assert response.status_code == 400

    profile = (await client.get("/api/profile", headers=affiliate)).json()
    assert profile["stats"]["paid_earnings"] == 150.0
    assert profile["stats"]["unpaid_earnings"] == 0.0

    # Price is frozen once paid
    response = await client.patch(f"/api/admin/leads/{lead_ids[0]}", headers=admin, json={"price": 80})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_reject_payout(client, auth_headers, affiliate, lead_factory, db_session):
    await lead_factory(affiliate, price=200)
    payout = await create_payout_request(
        db_session, affiliate.id, 200, "paypal", {"type": "paypal", "email": "pay@example.com"}
    )

    response = await client.post(
        f"/api/admin/payouts/{payout.id}/reject", headers=auth_headers(ADMIN_EMAIL), json={"note": "Fraud"}
    )

    assert response.status_code == 200
    assert response.json()["payout"]["status"] == "rejected"
    assert response.json()["payout"]["note"] == "Fraud"

    status = (await client.get("/api/payouts", headers=auth_headers(AFFILIATE_EMAIL))).json()
    assert status["unpaid_earnings"] == 200.0


@pytest.mark.asyncio
async def test_admin_call_and_lead_filters(client, auth_headers, affiliate, lead_factory):
    admin = auth_headers(ADMIN_EMAIL)
    lead = await lead_factory(affiliate, status="pending")
    await lead_factory(affiliate, status="approved", price=10)

    response = await client.post(
        f"/api/admin/leads/{lead.id}/call", headers=admin, json={"meeting_link": "https://meet.example.com/x"}
    )
    assert response.status_code == 200
    assert response.json()["lead"]["call_requested"] is True

    filtered = (await client.get("/api/admin/leads?call_requested=true", headers=admin)).json()
    assert [item["id"] for item in filtered["leads"]] == [lead.id]
    assert filtered["leads"][0]["affiliate_email"] == AFFILIATE_EMAIL

    assert (await client.get("/api/admin/leads?status=approved", headers=admin)).json()["total"] == 1


@pytest.mark.asyncio
async def test_admin_overview_and_users(client, auth_headers, affiliate, lead_factory, db_session):
    admin = auth_headers(ADMIN_EMAIL)
    other = await create_user(db_session, email="other@example.com")
    await lead_factory(affiliate, price=300)
    await lead_factory(other, price=100, paid=True)
    await lead_factory(other, status="pending")

    overview = (await client.get("/api/admin/overview", headers=admin)).json()
    assert overview["stats"]["total_leads"] == 3
    assert overview["stats"]["pending_leads"] == 1
    assert overview["stats"]["total_earnings"] == 400.0
    assert overview["stats"]["unpaid_earnings"] == 300.0
    assert [u["email"] for u in overview["top_affiliates"]] == [AFFILIATE_EMAIL, "other@example.com"]

    users = (await client.get("/api/admin/users?role=affiliate", headers=admin)).json()
    assert {u["email"] for u in users["users"]} == {AFFILIATE_EMAIL, "other@example.com"}

    with_earnings = (await client.get("/api/admin/users?has_earnings=false", headers=admin)).json()
    assert [u["email"] for u in with_earnings["users"]] == [ADMIN_EMAIL]

    detail = (await client.get(f"/api/admin/users/{other.id}", headers=admin)).json()
    assert detail["stats"]["total"] == 2
    assert len(detail["leads"]) == 2

    assert (await client.get("/api/admin/users?role=owner", headers=admin)).status_code == 400
    assert (await client.get("/api/admin/users/9999", headers=admin)).status_code == 404


@pytest.mark.asyncio
async def test_admin_delete_user(client, auth_headers, affiliate, lead_factory):
    admin = auth_headers(ADMIN_EMAIL)
    await lead_factory(affiliate, price=10)
    admin_id = (await client.get("/api/profile", headers=admin)).json()["user"]["id"]

    assert (await client.delete(f"/api/admin/users/{admin_id}", headers=admin)).status_code == 400
    assert (await client.post(f"/api/admin/users/{admin_id}/suspend", headers=admin)).status_code == 400

    response = await client.delete(f"/api/admin/users/{affiliate.id}", headers=admin)
    assert response.status_code == 200

    assert (await client.get(f"/api/admin/users/{affiliate.id}", headers=admin)).status_code == 404
    assert (await client.get("/api/admin/leads", headers=admin)).json()["total"] == 0


@pytest.mark.asyncio
async def test_failed_lead_reconciliation_is_reported(client, auth_headers, affiliate, lead_factory, db_session, monkeypatch):
    from src.services import payout_service

    admin = auth_headers(ADMIN_EMAIL)
    await lead_factory(affiliate, price=150)
    payout = await create_payout_request(
        db_session, affiliate.id, 150, "paypal", {"type": "paypal", "email": "pay@example.com"}
    )
    payout_id = payout.id

    async def broken_mark_leads_paid(session, lead_ids, commit=True):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(payout_service, "mark_leads_paid", broken_mark_leads_paid)

    response = await client.post(f"/api/admin/payouts/{payout_id}/approve", headers=admin)

    assert response.status_code == 500
    assert "rolled back" in response.json()["detail"]
    assert "connection reset" in response.json()["detail"]

    listed = (await client.get("/api/admin/payouts?status=requested", headers=admin)).json()
    assert [p["id"] for p in listed["payouts"]] == [payout_id]

    status = (await client.get("/api/payouts", headers=auth_headers(AFFILIATE_EMAIL))).json()
    assert status["unpaid_earnings"] == 150.0
