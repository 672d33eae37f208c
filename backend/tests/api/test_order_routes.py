"""Order Routes — verifies the REST surface of the order lifecycle.

Tests:
    - POST /orders creates a DRAFT (201); submit moves it to PENDING_PAYMENT
    - Bodiless cancel works; cancel reasons are recorded
    - Unknown ids answer 404, illegal transitions 409, bad input 400
    - Manual fulfill is idempotent; registration cancel voids its ticket
"""

from uuid import uuid4


async def test_create_and_submit(client, course_order_body):
    created = await client.post("/api/v1/orders", json=course_order_body)

    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "DRAFT"
    assert body["total_cents"] == 200_000
    assert len(body["registrations"]) == 2

    submitted = await client.post(f"/api/v1/orders/{body['id']}/submit")
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "PENDING_PAYMENT"
    assert {r["status"] for r in submitted.json()["registrations"]} == {"PENDING_PAYMENT"}


async def test_get_order(client, pending_order):
    res = await client.get(f"/api/v1/orders/{pending_order['id']}")
    assert res.status_code == 200
    assert res.json()["id"] == pending_order["id"]


async def test_unknown_order_is_404(client):
    res = await client.get(f"/api/v1/orders/{uuid4()}")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


async def test_empty_lines_is_400(client, course_order_body):
    res = await client.post("/api/v1/orders", json={**course_order_body, "lines": []})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_cancel_without_body(client, pending_order):
    res = await client.post(f"/api/v1/orders/{pending_order['id']}/cancel")
    assert res.status_code == 200
    assert res.json()["status"] == "CANCELLED"


async def test_cancel_with_reason(client, pending_order):
    res = await client.post(
        f"/api/v1/orders/{pending_order['id']}/cancel", json={"reason": "  ill  "},
    )
    assert {r["cancellation_reason"] for r in res.json()["registrations"]} == {"ill"}


async def test_refund_pending_order_is_409(client, pending_order):
    res = await client.post(f"/api/v1/orders/{pending_order['id']}/refund")
    assert res.status_code == 409
    error = res.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["severity"] == "critical"


async def test_manual_fulfill_is_idempotent(client, pending_order, notifier):
    url = f"/api/v1/orders/{pending_order['id']}/fulfill"

    first = await client.post(url, json={"session_ref": "cs_manual"})
    second = await client.post(url)

    assert first.status_code == 200
    assert first.json()["already_paid"] is False
    assert first.json()["order_number"] == "ODS-2026-00001"
    assert len(first.json()["tickets"]) == 2
    assert second.json()["already_paid"] is True
    assert [t["id"] for t in second.json()["tickets"]] == [
        t["id"] for t in first.json()["tickets"]
    ]
    assert len(notifier.sent) == 1


async def test_fulfill_cancelled_order_is_409(client, pending_order):
    await client.post(f"/api/v1/orders/{pending_order['id']}/cancel")
    res = await client.post(f"/api/v1/orders/{pending_order['id']}/fulfill")
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "INVALID_STATE"


async def test_cancel_registration_voids_ticket(client, pending_order):
    await client.post(f"/api/v1/orders/{pending_order['id']}/fulfill")
    registration_id = pending_order["registrations"][0]["id"]

    res = await client.post(
        f"/api/v1/registrations/{registration_id}/cancel", json={"reason": "injury"},
    )

    assert res.status_code == 200
    assert res.json()["status"] == "CANCELLED"
    order = (await client.get(f"/api/v1/orders/{pending_order['id']}")).json()
    assert order["status"] == "PAID"
    voided = [t for t in order["tickets"] if t["registration_id"] == registration_id]
    assert [t["status"] for t in voided] == ["VOID"]
