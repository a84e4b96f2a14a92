from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from roam_api.domain.admin.content_service import announcement_status
from roam_api.domain.admin.service import average_rating, booking_stats
from roam_api.models import (
    Announcement,
    ApplicationApproval,
    Booking,
    BusinessPaymentTransaction,
    BusinessProfile,
    ContactSubmission,
    CustomerProfile,
    PayoutRequest,
    PromotionUsage,
    ProviderApplication,
    Provider,
    Review,
    Service,
)
from roam_api.services.identity_service import SupabaseAdminError
from roam_api.services.token_service import decode_phase2_token
from tests.conftest import login_as


@pytest.fixture
def pending_business(db):
    db.add_all(
        [
            BusinessProfile(
                id="biz-new", business_name="Glow Studio", contact_email="glow@example.com", verification_status="under_review"
            ),
            Provider(
                id="prov-new",
                user_id="user-new",
                business_id="biz-new",
                provider_role="owner",
                email="nina@example.com",
                is_active=False,
            ),
            ProviderApplication(id="app-1", user_id="user-new", business_id="biz-new", application_status="submitted"),
        ]
    )
    db.commit()


def test_non_admin_is_rejected(client):
    login_as("user-nobody")

    response = client.get("/api/admin/customers")

    assert response.status_code == 403
    assert response.json() == {"error": "Admin access required"}


def test_approve_business(admin_client, db, pending_business):
    with patch(
        "roam_api.domain.admin.service.send_business_approved_email", new_callable=AsyncMock
    ) as mock_email:
        response = admin_client.post(
            "/api/admin/approve-business", json={"businessId": "biz-new", "approvalNotes": "Welcome aboard"}
        )

    assert response.status_code == 200
    data = response.json()
    assert data["approvedBy"] == "user-admin"
    assert data["emailStatus"] == {"sent": True}
    claims = decode_phase2_token(data["approvalToken"])
    assert claims["business_id"] == "biz-new"
    assert claims["user_id"] == "user-new"
    assert claims["application_id"] == "app-1"

    recipient, business_name, approval_url, notes = mock_email.await_args.args
    assert recipient == "nina@example.com"
    assert approval_url == data["approvalUrl"]

    db.expire_all()
    business = db.query(BusinessProfile).filter(BusinessProfile.id == "biz-new").first()
    assert business.verification_status == "approved"
    assert business.approved_by == "user-admin"
    assert db.query(Provider).filter(Provider.id == "prov-new").first().is_active is True
    assert db.query(ProviderApplication).first().application_status == "approved"
    assert db.query(ApplicationApproval).count() == 1


def test_approve_business_without_owner(admin_client, db):
    db.add(BusinessProfile(id="biz-orphan", business_name="Orphan"))
    db.commit()

    response = admin_client.post("/api/admin/approve-business", json={"businessId": "biz-orphan"})

    assert response.status_code == 500
    assert response.json()["error"] == "Missing owner provider"


def test_send_rejection_email_requires_reason(admin_client):
    response = admin_client.post(
        "/api/admin/send-rejection-email",
        json={"businessName": "Glow Studio", "contactEmail": "glow@example.com", "businessId": "biz-new"},
    )

    assert response.status_code == 400
    assert response.json()["received"]["rejectionReason"] is False


def test_booking_stats():
    service = Service(name="Facial")
    bookings = [
        Booking(booking_status="completed", total_amount=100, service=service),
        Booking(booking_status="completed", total_amount=50, service=service),
        Booking(booking_status="cancelled", total_amount=80),
        Booking(booking_status="pending", total_amount=40),
    ]

    stats = booking_stats(bookings)

    assert stats["overall"]["completion_rate"] == 50
    assert stats["overall"]["cancellation_rate"] == 25
    assert stats["revenue"] == {"total_revenue": 150, "pending_revenue": 40, "average_booking_value": 75.0}
    assert stats["popular_services"][0] == {"name": "Facial", "booking_count": 2}


def test_admin_bookings_list(admin_client, db, business):
    db.add_all(
        [
            Booking(id="bk-1", business_id="biz-1", booking_date=date.today(), booking_status="pending", guest_name="Gwen"),
            Booking(id="bk-old", business_id="biz-1", booking_date=date.today() - timedelta(days=90)),
        ]
    )
    db.commit()

    response = admin_client.get("/api/admin/bookings")

    data = response.json()
    assert [b["id"] for b in data["data"]] == ["bk-1"]
    assert data["data"][0]["business_name"] == "Serenity Spa"
    assert data["data"][0]["customer_name"] == "Gwen"
    assert data["dateRange"]["isDefault"] is True


def test_list_and_update_customers(admin_client, db):
    db.add(CustomerProfile(id="cust-1", user_id="user-cust", first_name="Casey", is_active=True))
    db.commit()

    users = [
        {"id": "user-other", "email": "other@example.com"},
        {"id": "user-cust", "email": "casey@example.com", "last_sign_in_at": "2025-01-01T00:00:00Z"},
    ]
    with patch("roam_api.services.identity_service.list_users", new_callable=AsyncMock, return_value=users) as mock_list:
        listing = admin_client.get("/api/admin/customers")

    mock_list.assert_awaited_once_with(page=1)

    customer = listing.json()["data"][0]
    assert customer["auth_email"] == "casey@example.com"
    assert customer["email_notifications"] is True
    assert customer["sms_notifications"] is False

    response = admin_client.patch("/api/admin/customers/cust-1", json={"isActive": False})
    assert response.json()["message"] == "Customer deactivated successfully"
    assert admin_client.patch("/api/admin/customers/cust-1", json={}).status_code == 400


def test_update_provider_role_validation(admin_client, owner):
    bad = admin_client.patch("/api/admin/providers/prov-owner", json={"provider_role": "admin"})
    good = admin_client.patch("/api/admin/providers/prov-owner", json={"verification_status": "approved"})

    assert bad.status_code == 400
    assert good.json()["data"]["verification_status"] == "approved"
    assert good.json()["data"]["business_name"] == "Serenity Spa"


def test_average_rating_falls_back_to_overall():
    assert average_rating(Review(overall_rating=4, service_rating=2)) == "3.5"
    assert average_rating(Review(overall_rating=0)) is None


def test_review_moderation(admin_client, db):
    db.add(Review(id="rev-1", overall_rating=5, review_text="Lovely"))
    db.commit()

    response = admin_client.patch("/api/admin/reviews/rev-1", json={"action": "approve"})

    assert response.json()["message"] == "Review approved successfully"
    assert response.json()["data"]["is_approved"] is True
    assert response.json()["data"]["moderated_by"] == "user-admin"

    bad_rating = admin_client.patch("/api/admin/reviews/rev-1", json={"service_rating": 9})
    assert bad_rating.status_code == 400

    deleted = admin_client.delete("/api/admin/reviews/rev-1")
    assert deleted.json() == {"message": "Review deleted successfully", "id": "rev-1"}


def test_announcement_status():
    now = datetime(2025, 6, 1)

    assert announcement_status(Announcement(is_active=False), now) == "inactive"
    assert announcement_status(Announcement(is_active=True, start_date=now + timedelta(days=1)), now) == "scheduled"
    assert announcement_status(Announcement(is_active=True, end_date=now - timedelta(days=1)), now) == "expired"
    assert announcement_status(Announcement(is_active=True), now) == "active"


def test_announcement_lifecycle(admin_client):
    created = admin_client.post(
        "/api/admin/announcements",
        json={"title": "Maintenance", "content": "Sunday 2am", "is_active": False, "priority": "high"},
    )
    assert created.status_code == 201
    announcement_id = created.json()["data"]["id"]
    assert created.json()["data"]["computed_status"] == "inactive"
    assert created.json()["data"]["created_by"] == "user-admin"

    published = admin_client.post(f"/api/admin/announcements/{announcement_id}/publish")
    assert published.json()["message"] == "Announcement published successfully"
    assert published.json()["data"]["computed_status"] == "active"

    active = admin_client.get("/api/admin/announcements/active", params={"target_audience": "providers"})
    assert [a["id"] for a in active.json()["data"]] == [announcement_id]


def test_announcement_validation(admin_client):
    bad_audience = admin_client.post(
        "/api/admin/announcements", json={"title": "Hi", "content": "There", "target_audience": "everyone"}
    )
    bad_window = admin_client.post(
        "/api/admin/announcements",
        json={"title": "Hi", "content": "There", "start_date": "2025-06-02T00:00:00", "end_date": "2025-06-01T00:00:00"},
    )

    assert bad_audience.status_code == 400
    assert bad_window.json() == {"error": "end_date must be after start_date"}


def test_promotion_lifecycle(admin_client, db):
    created = admin_client.post(
        "/api/admin/promotions",
        json={"title": "Spring", "promo_code": "SPRING20", "savings_type": "percentage_off", "savings_amount": 20},
    )
    assert created.status_code == 201
    promotion_id = created.json()["data"]["id"]
    assert created.json()["data"]["status"] == "active"

    duplicate = admin_client.post("/api/admin/promotions", json={"title": "Again", "promo_code": "SPRING20"})
    assert duplicate.json() == {"error": 'Promo code "SPRING20" already exists'}

    deactivated = admin_client.post(f"/api/admin/promotions/{promotion_id}/deactivate")
    assert deactivated.json()["data"]["status"] == "inactive"

    db.add(PromotionUsage(promotion_id=promotion_id, discount_applied=15))
    db.commit()
    blocked = admin_client.delete(f"/api/admin/promotions/{promotion_id}")
    assert blocked.status_code == 400

    usage = admin_client.get(f"/api/admin/promotions/{promotion_id}/usage")
    assert usage.json()["pagination"]["total"] == 1


def test_promotion_percentage_bounds(admin_client):
    response = admin_client.post(
        "/api/admin/promotions",
        json={"title": "Too good", "promo_code": "FREE", "savings_type": "percentage_off", "savings_amount": 150},
    )

    assert response.status_code == 400


def test_financial_stats_and_revenue(admin_client, db, business):
    today = date.today()
    db.add_all(
        [
            BusinessPaymentTransaction(
                business_id="biz-1", payment_date=today, gross_payment_amount=200, platform_fee=20, net_payment_amount=180
            ),
            BusinessPaymentTransaction(
                business_id="biz-1",
                payment_date=today - timedelta(days=40),
                gross_payment_amount=100,
                platform_fee=10,
                net_payment_amount=90,
            ),
            PayoutRequest(id="po-1", business_id="biz-1", amount=180, status="pending"),
        ]
    )
    db.commit()

    stats = admin_client.get("/api/admin/financial/stats").json()["data"]
    assert stats["totalRevenue"]["amount"] == 200
    assert stats["totalRevenue"]["change"] == 100
    assert stats["pendingPayouts"] == {"amount": 180, "count": 1, "change": 0}

    series = admin_client.get("/api/admin/financial/revenue", params={"days": 7}).json()["data"]
    assert len(series) == 7
    assert series[-1] == {"date": today.isoformat(), "revenue": 200, "bookings": 1, "fees": 20}
    assert series[0]["revenue"] == 0


def test_update_payout(admin_client, db, business):
    db.add(PayoutRequest(id="po-1", business_id="biz-1", amount=50, status="pending"))
    db.commit()

    bad = admin_client.patch("/api/admin/financial/payouts/po-1", json={"action": "hold"})
    good = admin_client.patch("/api/admin/financial/payouts/po-1", json={"action": "approve", "notes": "Paid"})

    assert bad.status_code == 400
    assert good.json() == {"success": True, "message": "Payout approved successfully"}
    payouts = admin_client.get("/api/admin/financial/payouts", params={"status": "approved"}).json()["data"]
    assert payouts[0]["business_name"] == "Serenity Spa"
    assert payouts[0]["notes"] == "Paid"


def test_report_metrics(admin_client, db, owner):
    db.add_all([CustomerProfile(user_id="user-cust"), Review(overall_rating=4), Review(overall_rating=5)])
    db.commit()

    metrics = admin_client.get("/api/admin/reports/metrics").json()["data"]

    assert metrics["totalUsers"]["count"] == 2
    assert metrics["avgRating"]["rating"] == 4.5
    assert metrics["totalUsers"]["period"] == "Last 30 days"


def test_contact_reply(admin_client, db):
    db.add(
        ContactSubmission(
            id="sub-1", full_name="Casey Jones", from_email="casey@example.com", subject="Refund", message="Help"
        )
    )
    db.commit()

    with patch(
        "roam_api.domain.admin.service.send_contact_reply_email", new_callable=AsyncMock, return_value={"id": "em_1"}
    ) as mock_email:
        response = admin_client.post(
            "/api/admin/contact-reply",
            json={"submissionId": "sub-1", "replySubject": "Re: Refund", "replyMessage": "Processed"},
        )

    assert response.json() == {"success": True, "message": "Reply sent successfully", "emailId": "em_1"}
    assert mock_email.await_args.kwargs["to"] == "casey@example.com"
    db.expire_all()
    submission = db.query(ContactSubmission).first()
    assert submission.status == "responded"
    assert submission.responded_by == "user-admin"


def test_customer_listing_tolerates_identity_outage(admin_client, db):
    db.add(CustomerProfile(id="cust-1", user_id="user-cust", first_name="Casey", is_active=True))
    db.commit()

    with patch(
        "roam_api.services.identity_service.list_users",
        new_callable=AsyncMock,
        side_effect=SupabaseAdminError("Failed to reach identity provider"),
    ):
        response = admin_client.get("/api/admin/customers")

    assert response.status_code == 200
    assert response.json()["data"][0]["auth_email"] is None
