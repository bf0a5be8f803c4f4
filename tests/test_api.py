from datetime import date

from httpx import ASGITransport, AsyncClient

from app import bookings
from app.main import app
from tests.conftest import bearer


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


async def test_request_id_echoed(client):
    r = await client.get("/health", headers={"X-Request-Id": "req-42"})
    assert r.headers["X-Request-Id"] == "req-42"


# ---- auth ----

async def test_login_issues_token(client):
    r = await client.post("/auth/login", json={"email": "Manager@example.com", "password": "s3cret"})

    assert r.status_code == 200
    body = r.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["roles"] == ["MANAGER"]

    r = await client.get("/manager/bookings/stats", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert r.status_code == 200


async def test_login_rejects_bad_password(client):
    r = await client.post("/auth/login", json={"email": "manager@example.com", "password": "nope"})

    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Invalid credentials"}


async def test_missing_token(client):
    r = await client.get("/manager/bookings")
    assert r.status_code == 401
    assert r.json()["success"] is False


async def test_vendor_token_cannot_use_manager_routes(client, seed, vendor_headers):
    r = await client.get("/manager/bookings", headers=vendor_headers(seed.v1))
    assert r.status_code == 403


async def test_garbage_token(client):
    r = await client.get("/manager/bookings", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


# ---- manager ----

async def test_assign_vendor_endpoint(client, seed, make_booking, manager_headers):
    b1 = await make_booking(status="AWAITING_MANAGER")

    r = await client.put(
        f"/manager/bookings/{b1.id}/assign-vendor", json={"vendorId": seed.v1.id}, headers=manager_headers
    )

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["data"]["status"] == "AWAITING_VENDOR_RESPONSE"
    assert body["data"]["vendorId"] == seed.v1.id
    assert body["data"]["vendorName"] == "Alpha Salon"


async def test_assign_vendor_requires_vendor_id(client, seed, make_booking, manager_headers):
    b1 = await make_booking(status="AWAITING_MANAGER")

    r = await client.put(f"/manager/bookings/{b1.id}/assign-vendor", json={}, headers=manager_headers)

    assert r.status_code == 400
    assert r.json()["success"] is False


async def test_assign_unapproved_vendor_endpoint(client, seed, make_booking, manager_headers):
    b1 = await make_booking(status="AWAITING_MANAGER")

    r = await client.put(
        f"/manager/bookings/{b1.id}/assign-vendor", json={"vendorId": seed.pending.id}, headers=manager_headers
    )

    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Vendor not found or not approved"}


async def test_assign_vendor_wrong_state_is_conflict(client, seed, make_booking, manager_headers):
    b1 = await make_booking(status="COMPLETED")

    r = await client.put(
        f"/manager/bookings/{b1.id}/assign-vendor", json={"vendorId": seed.v1.id}, headers=manager_headers
    )

    assert r.status_code == 409


async def test_list_bookings_filters_and_paginates(client, seed, make_booking, manager_headers):
    older = await make_booking(status="AWAITING_MANAGER", scheduled_date=date(2026, 11, 1))
    newer = await make_booking(status="AWAITING_MANAGER", scheduled_date=date(2026, 11, 30))
    await make_booking(status="CONFIRMED", vendor=seed.v1)

    r = await client.get(
        "/manager/bookings", params={"status": "AWAITING_MANAGER", "limit": 1}, headers=manager_headers
    )

    body = r.json()
    assert r.status_code == 200
    assert [b["id"] for b in body["data"]] == [newer.id]
    assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    r = await client.get(
        "/manager/bookings",
        params={"status": "AWAITING_MANAGER", "limit": 1, "page": 2},
        headers=manager_headers,
    )
    assert [b["id"] for b in r.json()["data"]] == [older.id]


async def test_list_bookings_search_and_bad_status(client, seed, make_booking, manager_headers):
    await make_booking()

    r = await client.get("/manager/bookings", params={"search": "amina"}, headers=manager_headers)
    assert r.json()["pagination"]["total"] == 1
    r = await client.get("/manager/bookings", params={"search": "nobody"}, headers=manager_headers)
    assert r.json()["data"] == []
    for wildcard in ("%", "_"):
        r = await client.get("/manager/bookings", params={"search": wildcard}, headers=manager_headers)
        assert r.json()["data"] == []

    r = await client.get("/manager/bookings", params={"status": "LOST"}, headers=manager_headers)
    assert r.status_code == 400


async def test_stats(client, seed, make_booking, manager_headers):
    await make_booking(status="PENDING")
    await make_booking(status="AWAITING_MANAGER")
    await make_booking(status="AWAITING_VENDOR_RESPONSE", vendor=seed.v1)
    await make_booking(status="COMPLETED", vendor=seed.v1)

    r = await client.get("/manager/bookings/stats", headers=manager_headers)

    stats = r.json()["data"]
    assert stats["total"] == 4
    assert stats["pending"] == 3
    assert stats["awaitingManager"] == 1
    assert stats["awaitingVendor"] == 1
    assert stats["completed"] == 1
    assert stats["confirmed"] == 0


async def test_booking_events_endpoint(client, seed, make_booking, manager_headers):
    b1 = await make_booking(status="AWAITING_MANAGER")
    await client.put(f"/manager/bookings/{b1.id}/cancel", json={"reason": "duplicate"}, headers=manager_headers)

    r = await client.get(f"/manager/bookings/{b1.id}/events", headers=manager_headers)

    events = r.json()["data"]
    assert [e["type"] for e in events] == ["BOOKING_CANCELLED"]
    assert events[0]["payload"] == {"reason": "duplicate"}
    assert events[0]["bookingId"] == b1.id
    assert "timestamp" in events[0]


async def test_unknown_booking_is_404(client, seed, manager_headers):
    r = await client.get("/manager/bookings/missing", headers=manager_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Booking not found"


async def test_bulk_route_endpoint(client, seed, make_booking, manager_headers):
    await make_booking(status="PENDING", booking_type="IN_SALON")

    r = await client.put(
        "/manager/bookings/bulk/awaiting-manager", json={"bookingType": "IN_SALON"}, headers=manager_headers
    )

    assert r.status_code == 200
    assert r.json()["data"]["updated"] == 1


async def test_employees_endpoint(client, seed, manager_headers):
    r = await client.get("/manager/employees", params={"vendorId": seed.v1.id}, headers=manager_headers)
    assert [e["name"] for e in r.json()["data"]] == ["Grace"]

    r = await client.get("/manager/employees", params={"status": "ALL"}, headers=manager_headers)
    assert len(r.json()["data"]) == 3


async def test_eligible_vendors_endpoint(client, seed, make_booking, manager_headers):
    b = await make_booking(status="PENDING", booking_type="AT_HOME", services=[seed.haircut], products=[seed.serum])

    r = await client.get(f"/manager/athome-bookings/{b.id}/eligible-vendors", headers=manager_headers)

    data = r.json()["data"]
    assert [v["id"] for v in data["serviceVendors"]] == [seed.v1.id]
    assert [v["id"] for v in data["productVendors"]] == [seed.v3.id]


async def test_athome_assign_requires_a_vendor(client, seed, make_booking, manager_headers):
    b = await make_booking(status="PENDING", booking_type="AT_HOME", services=[seed.haircut])

    r = await client.post(f"/manager/athome-bookings/{b.id}/assign", json={}, headers=manager_headers)

    assert r.status_code == 400
    assert r.json()["success"] is False


async def test_athome_round_trip(client, seed, make_booking, manager_headers, vendor_headers):
    b = await make_booking(status="PENDING", booking_type="AT_HOME", services=[seed.haircut], products=[seed.serum])

    r = await client.get("/manager/athome-bookings", headers=manager_headers)
    assert [x["id"] for x in r.json()["data"]] == [b.id]

    r = await client.post(
        f"/manager/athome-bookings/{b.id}/assign",
        json={"service_vendor_id": seed.v1.id, "product_vendor_id": seed.v3.id},
        headers=manager_headers,
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "ASSIGNED"

    r = await client.get("/vendor/athome-assignments", headers=vendor_headers(seed.v1))
    [assignment] = r.json()["data"]
    assert assignment["vendorStatus"] == "PENDING_ACCEPTANCE"
    assert [s["name"] for s in assignment["services"]] == ["Haircut"]
    assert assignment["products"] == []

    r = await client.post(f"/vendor/athome-assignments/{b.id}/accept", headers=vendor_headers(seed.v1))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "ASSIGNED"

    r = await client.get("/vendor/athome-assignments", headers=vendor_headers(seed.v1))
    assert r.json()["data"][0]["vendorStatus"] == "ACCEPTED"

    r = await client.post(
        f"/vendor/athome-assignments/{b.id}/reject", json={"reason": "out of stock"}, headers=vendor_headers(seed.v3)
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "PENDING"

    r = await client.get("/vendor/athome-assignments", headers=vendor_headers(seed.v3))
    assert r.json()["data"] == []


# ---- vendor ----

async def test_vendor_status(client, seed, vendor_headers):
    r = await client.get("/vendor/status", headers=vendor_headers(seed.rejected))

    assert r.json()["data"] == {
        "id": seed.rejected.id,
        "shopName": "Rejected Rooms",
        "status": "REJECTED",
        "rejectionReason": "docs",
    }


async def test_vendor_without_profile(client, seed):
    r = await client.get("/vendor/status", headers=bearer(seed.customer.id, ["VENDOR"]))
    assert r.status_code == 404


async def test_vendor_booking_flow(client, seed, make_booking, manager_headers, vendor_headers):
    b1 = await make_booking(status="AWAITING_MANAGER")
    await client.put(
        f"/manager/bookings/{b1.id}/assign-vendor", json={"vendorId": seed.v1.id}, headers=manager_headers
    )
    headers = vendor_headers(seed.v1)

    r = await client.get("/vendor/bookings", headers=headers)
    assert [b["id"] for b in r.json()["data"]] == [b1.id]

    r = await client.put(f"/vendor/bookings/{b1.id}/approve", headers=headers)
    assert r.json()["data"]["status"] == "AWAITING_BEAUTICIAN"

    r = await client.put(f"/vendor/bookings/{b1.id}/approve", headers=headers)
    assert r.status_code == 409

    r = await client.put(
        f"/vendor/bookings/{b1.id}/assign-beautician",
        json={"beautician": {"name": "Joy", "email": "joy@example.com"}},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "CONFIRMED"
    assert r.json()["data"]["employeeName"] == "Joy"

    r = await client.put(f"/vendor/bookings/{b1.id}/start", headers=headers)
    assert r.json()["data"]["status"] == "IN_PROGRESS"
    r = await client.put(f"/vendor/bookings/{b1.id}/complete", headers=headers)
    assert r.json()["data"]["status"] == "COMPLETED"


async def test_vendor_reject_endpoint(client, seed, make_booking, manager_headers, vendor_headers):
    b1 = await make_booking(status="AWAITING_MANAGER")
    await client.put(
        f"/manager/bookings/{b1.id}/assign-vendor", json={"vendorId": seed.v1.id}, headers=manager_headers
    )

    r = await client.put(
        f"/vendor/bookings/{b1.id}/reject", json={"reason": "fully booked"}, headers=vendor_headers(seed.v1)
    )

    data = r.json()["data"]
    assert data["status"] == "AWAITING_MANAGER"
    assert data["vendorId"] is None
    assert data["managerId"] is None

    r = await client.put(f"/vendor/bookings/{b1.id}/approve", headers=vendor_headers(seed.v1))
    assert r.status_code == 404


async def test_unexpected_error_uses_failure_envelope(client, seed, manager_headers, monkeypatch):
    async def broken(db):
        raise RuntimeError("stats cache exploded")

    monkeypatch.setattr(bookings, "booking_stats", broken)

    # the server error middleware re-raises after responding
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.get("/manager/bookings/stats", headers=manager_headers)

    assert r.status_code == 500
    assert r.headers["content-type"] == "application/json"
    assert r.json() == {"success": False, "message": "Internal server error"}
