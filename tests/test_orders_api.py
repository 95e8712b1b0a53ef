"""Tests for the order thread HTTP API."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.core.deps import COOKIE_NAME
from app.db.models import OrderThreadEvent
from app.services import identity_service, order_update_service, read_receipt_service
from conftest import as_actor, client_for, make_order


# =============================================================================
# Posting updates
# =============================================================================

@pytest.mark.asyncio
async def test_post_update_returns_created_event(customer_client: AsyncClient, order, customer, admin, dispatcher, clock):
    """Customer comment is stored sanitized and the assigned admin is notified."""
    response = await customer_client.post(
        f"/orders/{order.id}/updates",
        json={"body": "<i>Any news?</i>", "requiresResponse": True},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["body"] == "Any news?"
    assert data["order_id"] == order.id
    assert data["author_user_id"] == customer.id
    assert data["author_email"] == customer.email
    assert data["event_type"] == "comment"
    assert data["requires_customer_response"] is False
    assert [n.target_user_id for n in dispatcher.notices] == [admin.id]


@pytest.mark.asyncio
async def test_post_update_requires_session(db, order, dispatcher):
    """Anonymous requests are rejected before anything is written."""
    async with client_for(None) as anon:
        response = await anon.post(f"/orders/{order.id}/updates", json={"body": "hi"})
    assert response.status_code == 401
    assert db.query(OrderThreadEvent).count() == 0


@pytest.mark.asyncio
async def test_post_update_requires_csrf_header(db, order, customer, dispatcher):
    async with client_for(customer, csrf=False) as c:
        response = await c.post(f"/orders/{order.id}/updates", json={"body": "hi"})
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"
    assert "CSRF" in response.json()["detail"]


@pytest.mark.asyncio
async def test_post_empty_update_is_bad_request(customer_client: AsyncClient, order):
    response = await customer_client.post(f"/orders/{order.id}/updates", json={"body": "  <p></p> "})
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_malformed_order_id_is_bad_request(customer_client: AsyncClient):
    response = await customer_client.post("/orders/abc/updates", json={"body": "hi"})
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_post_update_unknown_order(customer_client: AsyncClient):
    response = await customer_client.post("/orders/99999/updates", json={"body": "hi"})
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_post_update_by_stranger_forbidden(db, order, other_customer, dispatcher):
    async with client_for(other_customer) as c:
        response = await c.post(f"/orders/{order.id}/updates", json={"body": "hi"})
    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


@pytest.mark.asyncio
async def test_post_update_on_closed_order_conflicts(db, customer, dispatcher):
    order = make_order(db, customer, status="complete")
    async with client_for(customer) as c:
        response = await c.post(f"/orders/{order.id}/updates", json={"body": "one more thing"})

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "order_closed"
    assert data["status"] == "complete"
    assert data["reason"] == "closed"


@pytest.mark.asyncio
async def test_second_post_in_same_second_is_rate_limited(customer_client: AsyncClient, order, clock):
    first = await customer_client.post(f"/orders/{order.id}/updates", json={"body": "one"})
    second = await customer_client.post(f"/orders/{order.id}/updates", json={"body": "two"})

    assert first.status_code == 201
    assert second.status_code == 429
    assert second.json()["code"] == "rate_limited"

    clock.advance(seconds=1)
    third = await customer_client.post(f"/orders/{order.id}/updates", json={"body": "two"})
    assert third.status_code == 201


# =============================================================================
# Thread, status, assignment
# =============================================================================

@pytest.mark.asyncio
async def test_get_thread(admin_client: AsyncClient, db, order, customer, clock):
    order_update_service.post_comment(db, order.id, as_actor(customer), "first")
    clock.advance(seconds=1)
    order_update_service.post_comment(db, order.id, as_actor(customer), "second")

    response = await admin_client.get(f"/orders/{order.id}/thread")

    assert response.status_code == 200
    data = response.json()
    assert data["order"]["id"] == order.id
    assert data["can_post"] is True
    assert [u["body"] for u in data["updates"]] == ["first", "second"]


@pytest.mark.asyncio
async def test_admin_sets_status(admin_client: AsyncClient, db, order, clock):
    response = await admin_client.post(f"/orders/{order.id}/status", json={"status": "in-progress"})

    assert response.status_code == 200
    assert response.json() == {"order_id": order.id, "status": "in-progress"}

    thread = await admin_client.get(f"/orders/{order.id}/thread")
    assert thread.json()["order"]["status"] == "in-progress"
    assert [u["body"] for u in thread.json()["updates"]] == ["Status changed to in-progress"]


@pytest.mark.asyncio
async def test_customer_cannot_set_status(customer_client: AsyncClient, order):
    response = await customer_client.post(f"/orders/{order.id}/status", json={"status": "complete"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_status_is_bad_request(admin_client: AsyncClient, order):
    response = await admin_client.post(f"/orders/{order.id}/status", json={"status": "shipped"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_assign_accepts_camel_case(admin_client: AsyncClient, order, other_admin, clock):
    response = await admin_client.post(
        f"/orders/{order.id}/assign", json={"adminUserId": other_admin.id}
    )
    assert response.status_code == 200
    assert response.json() == {"order_id": order.id, "assigned_admin_id": other_admin.id}


@pytest.mark.asyncio
async def test_assign_to_customer_is_bad_request(admin_client: AsyncClient, order, customer):
    response = await admin_client.post(
        f"/orders/{order.id}/assign", json={"assignedAdminId": customer.id}
    )
    assert response.status_code == 400


# =============================================================================
# Read receipts and customer inbox
# =============================================================================

@pytest.mark.asyncio
async def test_mark_read_clears_unread(admin_client: AsyncClient, db, order, customer, admin, clock):
    order_update_service.post_comment(db, order.id, as_actor(customer), "hello")
    clock.advance(seconds=1)

    response = await admin_client.post(f"/orders/{order.id}/read")

    assert response.status_code == 204
    assert read_receipt_service.unread_count_for_order(db, admin.id, order.id) == 0


@pytest.mark.asyncio
async def test_mark_read_by_stranger_forbidden(db, order, other_customer, dispatcher):
    async with client_for(other_customer) as c:
        response = await c.post(f"/orders/{order.id}/read")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_my_orders_and_read_all(customer_client: AsyncClient, db, order, customer, admin, clock):
    other = make_order(db, customer, created_at=clock.now - timedelta(days=1))
    clock.advance(seconds=1)
    order_update_service.post_comment(db, other.id, as_actor(admin), "Proof attached")

    response = await customer_client.get("/orders/mine")
    assert response.status_code == 200
    data = response.json()
    assert {o["id"] for o in data["orders"]} == {order.id, other.id}
    assert data["unread_order_ids"] == [other.id]

    clock.advance(seconds=1)
    marked = await customer_client.post("/orders/read-all")
    assert marked.status_code == 204

    after = (await customer_client.get("/orders/mine")).json()
    assert after["unread_order_ids"] == []
    assert all(o["is_unread"] is False for o in after["orders"])


@pytest.mark.asyncio
async def test_customer_cancels_recent_order(customer_client: AsyncClient, db, customer, clock):
    order = make_order(db, customer, created_at=clock.now - timedelta(hours=1))

    response = await customer_client.post(f"/orders/{order.id}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


# =============================================================================
# Admin order list
# =============================================================================

@pytest.mark.asyncio
async def test_admin_list_with_query_aliases(admin_client: AsyncClient, db, customer, admin, clock):
    mine = make_order(
        db, customer, assigned_admin=admin, created_at=clock.now - timedelta(hours=3),
        project_type="branding",
    )
    make_order(db, customer, created_at=clock.now - timedelta(days=10), project_type="branding")
    make_order(db, customer, assigned_admin=admin, created_at=clock.now, project_type="website")

    response = await admin_client.get(
        "/admin/orders",
        params={"updatedWithin": "7d", "projectType": "branding", "assigned": "me", "pageSize": 5},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["page_size"] == 5
    [row] = data["rows"]
    assert row["id"] == mine.id
    assert row["customer_email"] == customer.email
    assert row["age_hours"] == 3


@pytest.mark.asyncio
async def test_admin_list_unread_filter(admin_client: AsyncClient, db, customer, admin, clock):
    quiet = make_order(db, customer, created_at=clock.now - timedelta(hours=1))
    noisy = make_order(db, customer, created_at=clock.now - timedelta(hours=2))
    order_update_service.post_comment(db, noisy.id, as_actor(customer), "ping")

    response = await admin_client.get("/admin/orders", params={"unread": "true"})

    data = response.json()
    assert data["total"] == 1
    assert data["rows"][0]["id"] == noisy.id
    assert data["rows"][0]["unread_count"] == 1
    assert quiet.id not in {row["id"] for row in data["rows"]}


@pytest.mark.asyncio
async def test_admin_list_bad_filter(admin_client: AsyncClient):
    response = await admin_client.get("/admin/orders", params={"updatedWithin": "1y"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_admin_list_forbidden_for_customers(customer_client: AsyncClient):
    response = await customer_client.get("/admin/orders")
    assert response.status_code == 403
    assert response.json() == {"detail": "Admin access required", "code": "forbidden"}


# =============================================================================
# Sessions
# =============================================================================

def _token(user_id: int, token_version: int, secret: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "token_version": token_version,
        "iat": now,
        "exp": now + timedelta(hours=1),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.mark.asyncio
async def test_previous_secret_still_accepted(db, order, customer, monkeypatch, dispatcher):
    """Tokens signed before a secret rotation keep working until the old secret is cleared."""
    old_token = _token(customer.id, customer.token_version, "retired-secret")
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", "retired-secret")

    async with client_for(None) as c:
        c.cookies.set(COOKIE_NAME, old_token)
        response = await c.get(f"/orders/{order.id}/thread")
    assert response.status_code == 200

    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", "")
    async with client_for(None) as c:
        c.cookies.set(COOKIE_NAME, old_token)
        response = await c.get(f"/orders/{order.id}/thread")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_revoked_session_rejected(db, order, admin, dispatcher):
    """Changing the admin capability bumps token_version and ends old sessions."""
    async with client_for(admin) as c:
        assert (await c.get(f"/orders/{order.id}/thread")).status_code == 200
        identity_service.set_admin(db, admin, False)
        response = await c.get(f"/orders/{order.id}/thread")
    assert response.status_code == 401
    assert response.json()["detail"] == "Session revoked"


@pytest.mark.asyncio
async def test_health(db):
    async with client_for(None) as c:
        response = await c.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
