from datetime import date, time, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from roam_api.auth import get_current_provider
from roam_api.domain.bookings.service import EMPTY_STATS, aggregate_booking_counts, time_category
from roam_api.main import app
from roam_api.models import Booking, BookingStatusHistory, CustomerProfile, Provider, Service

TODAY = date.today()


@pytest.fixture
def bookings(db, business, owner):
    db.add_all(
        [
            CustomerProfile(id="cust-1", user_id="user-cust", first_name="Casey", last_name="Jones"),
            Service(id="svc-1", name="Swedish Massage", min_price=90),
            Provider(id="prov-staff", user_id="user-staff", business_id=business.id, provider_role="provider", is_active=True),
            Booking(
                id="bk-today",
                booking_reference="BK-100",
                business_id=business.id,
                customer_id="cust-1",
                service_id="svc-1",
                provider_id="prov-staff",
                booking_date=TODAY,
                start_time=time(10, 0),
                booking_status="confirmed",
                total_amount=120,
            ),
            Booking(
                id="bk-future",
                business_id=business.id,
                service_id="svc-1",
                provider_id="prov-owner",
                booking_date=TODAY + timedelta(days=7),
                booking_status="pending",
                guest_name="Walk In",
                total_amount=80,
            ),
            Booking(
                id="bk-done",
                business_id=business.id,
                customer_id="cust-1",
                service_id="svc-1",
                booking_date=TODAY - timedelta(days=3),
                booking_status="completed",
                total_amount=150,
            ),
        ]
    )
    db.commit()


def test_time_category():
    assert time_category("completed", TODAY + timedelta(days=1), TODAY) == "past"
    assert time_category("pending", TODAY + timedelta(days=1), TODAY) == "future"
    assert time_category("confirmed", TODAY, TODAY) == "present"


def test_aggregate_booking_counts():
    rows = [
        ("completed", TODAY, 100),
        ("pending", TODAY + timedelta(days=2), 40),
        ("confirmed", TODAY, 60),
    ]

    counts = aggregate_booking_counts(rows, TODAY)

    assert counts["total_bookings"] == 3
    assert counts["completed_bookings"] == 1
    assert counts["past_count"] == 1
    assert counts["future_count"] == 1
    assert counts["present_count"] == 1
    assert counts["total_revenue"] == 100
    assert counts["pending_revenue"] == 100


def test_list_bookings_fallback(owner_client, bookings):
    response = owner_client.get("/api/bookings-optimized", params={"business_id": "biz-1"})

    assert response.status_code == 200
    data = response.json()
    assert data["pagination"]["total"] == 3
    assert data["stats"]["total_bookings"] == 3
    assert data["_meta"]["fallback_mode"] is True
    assert [b["id"] for b in data["bookings"]] == ["bk-future", "bk-today", "bk-done"]


def test_list_bookings_search_and_category(owner_client, bookings):
    response = owner_client.get(
        "/api/bookings-optimized", params={"business_id": "biz-1", "search": "casey", "category": "present"}
    )

    data = response.json()
    assert [b["id"] for b in data["bookings"]] == ["bk-today"]
    assert data["bookings"][0]["customer_profiles"]["first_name"] == "Casey"


def test_counts_only(owner_client, bookings):
    response = owner_client.get("/api/bookings-optimized", params={"business_id": "biz-1", "counts_only": "true"})

    counts = response.json()["counts"]
    assert counts["total_bookings"] == 3
    assert counts["total_revenue"] == 150


def test_provider_role_only_sees_own_bookings(client, db, bookings):
    staff = db.query(Provider).filter(Provider.id == "prov-staff").first()
    app.dependency_overrides[get_current_provider] = lambda: staff

    response = client.get("/api/bookings-optimized", params={"business_id": "biz-1", "provider_id": "prov-owner"})

    assert [b["id"] for b in response.json()["bookings"]] == ["bk-today"]


def test_invalid_status_filter(owner_client, bookings):
    response = owner_client.get("/api/bookings-optimized", params={"business_id": "biz-1", "status": "lost"})

    assert response.status_code == 400


def test_status_update_missing_fields(owner_client, bookings):
    response = owner_client.post("/api/bookings/status-update", json={"bookingId": "bk-today"})

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields"


def test_status_update_declines_and_notifies(owner_client, bookings, db):
    with patch("roam_api.domain.bookings.service.send_notification", new_callable=AsyncMock) as mock_send:
        response = owner_client.post(
            "/api/bookings/status-update",
            json={"bookingId": "bk-today", "newStatus": "declined", "updatedBy": "user-owner", "reason": "Fully booked"},
        )

    assert response.status_code == 200
    assert response.json()["booking"]["booking_status"] == "declined"
    assert response.json()["booking"]["decline_reason"] == "Fully booked"
    history = db.query(BookingStatusHistory).filter(BookingStatusHistory.booking_id == "bk-today").all()
    assert [h.status for h in history] == ["declined"]

    mock_send.assert_awaited_once()
    _, user_id, notification_type, variables = mock_send.await_args.args
    assert user_id == "user-cust"
    assert notification_type == "customer_booking_declined"
    assert variables["decline_reason"] == "Fully booked"


def test_status_update_other_business_denied(owner_client, bookings, db):
    db.add(Booking(id="bk-other", business_id="biz-2", booking_date=TODAY, booking_status="pending"))
    db.commit()

    response = owner_client.post(
        "/api/bookings/status-update",
        json={"bookingId": "bk-other", "newStatus": "confirmed", "updatedBy": "user-owner"},
    )

    assert response.status_code == 403


def test_list_bookings_from_rpc(owner_client):
    stats = {"total_bookings": 40, "pending_bookings": 3}
    rows = [
        {"booking": {"id": "bk-a", "booking_status": "pending"}, "total_count": 40, "stats": stats},
        {"booking": {"id": "bk-b", "booking_status": "confirmed"}, "total_count": 40, "stats": stats},
    ]
    with patch("roam_api.domain.bookings.service.call_rpc", return_value=rows) as mock_rpc:
        response = owner_client.get(
            "/api/bookings-optimized", params={"business_id": "biz-1", "status": "pending", "limit": 2}
        )

    assert response.status_code == 200
    data = response.json()
    assert [b["id"] for b in data["bookings"]] == ["bk-a", "bk-b"]
    assert data["stats"] == stats
    assert data["pagination"] == {"limit": 2, "offset": 0, "total": 40, "has_more": True}
    assert "fallback_mode" not in data["_meta"]
    name, params = mock_rpc.call_args.args[1:]
    assert name == "get_provider_bookings_paginated"
    assert params["p_status"] == "pending"
    assert params["p_provider_id"] is None


def test_counts_only_from_rpc(owner_client):
    counts = {**EMPTY_STATS, "total_bookings": 12}
    with patch("roam_api.domain.bookings.service.call_rpc", return_value=[counts]):
        response = owner_client.get("/api/bookings-optimized", params={"business_id": "biz-1", "counts_only": "true"})

    assert response.json()["counts"] == counts
    assert "fallback_mode" not in response.json()["_meta"]
