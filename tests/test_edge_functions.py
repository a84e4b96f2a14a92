from datetime import date, datetime, time, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from roam_api.models import (
    AdminUser,
    Booking,
    BusinessLocation,
    CustomerLocation,
    CustomerProfile,
    NotificationLog,
    NotificationTemplate,
    Provider,
    Service,
    UserSettings,
)
from roam_api.services.reminder_service import (
    ReminderTemplateMissing,
    format_booking_location,
    send_booking_reminders,
)
from tests.conftest import SERVICE_ROLE_HEADERS

TODAY = date(2025, 3, 10)
TOMORROW = TODAY + timedelta(days=1)


@pytest.fixture
def deliveries():
    """Capture outbound email/SMS for the webhook handlers"""
    with patch(
        "roam_api.routes.edge_functions.deliver_email", new_callable=AsyncMock, return_value=True
    ) as email, patch(
        "roam_api.routes.edge_functions.deliver_sms", new_callable=AsyncMock, return_value=True
    ) as sms:
        yield {"email": email, "sms": sms}


@pytest.fixture
def booking_record(db, business):
    db.add_all(
        [
            Service(id="svc-1", name="Swedish Massage"),
            CustomerProfile(id="cust-1", user_id="user-cust", first_name="Casey", last_name="Jones"),
            Provider(
                id="prov-1",
                user_id="user-prov",
                business_id="biz-1",
                first_name="Pat",
                last_name="Lee",
                email="pat@serenity.example",
                phone="5553334444",
            ),
        ]
    )
    db.commit()
    return {
        "id": "bk-1",
        "business_id": "biz-1",
        "service_id": "svc-1",
        "customer_id": "cust-1",
        "provider_id": "prov-1",
        "booking_date": "2025-03-11",
        "start_time": "14:30:00",
        "total_amount": 120,
    }


def test_webhooks_require_service_role(client):
    response = client.post(
        "/functions/v1/notify-new-booking", json={"type": "INSERT"}, headers={"Authorization": "Bearer wrong"}
    )

    assert response.status_code == 401


def test_notify_new_booking_ignores_updates(client):
    response = client.post("/functions/v1/notify-new-booking", json={"type": "UPDATE"}, headers=SERVICE_ROLE_HEADERS)

    assert response.json() == {"message": "Ignoring non-INSERT event"}


def test_notify_new_booking(client, booking_record, deliveries):
    response = client.post(
        "/functions/v1/notify-new-booking",
        json={"type": "INSERT", "table": "bookings", "record": booking_record},
        headers=SERVICE_ROLE_HEADERS,
    )

    assert response.status_code == 200
    assert response.json()["results"] == [
        "Business email (hello@serenity.example): sent",
        "Business SMS (5551234567): sent",
        "Provider email (pat@serenity.example): sent",
        "Provider SMS: disabled by preference",
    ]

    business_call, provider_call = deliveries["email"].await_args_list
    message = business_call.args[3]
    assert message.subject == "New Booking: Swedish Massage with Casey Jones"
    assert "Tuesday, March 11, 2025 at 2:30 PM" in message.text
    assert provider_call.kwargs["user_id"] == "user-prov"
    assert deliveries["sms"].await_args.args[2] == "+15551234567"


def test_notify_new_booking_provider_quiet_hours(client, db, booking_record, deliveries):
    db.add(
        UserSettings(user_id="user-prov", quiet_hours_enabled=True, quiet_hours_start="00:00", quiet_hours_end="23:59")
    )
    db.commit()

    with patch("roam_api.routes.edge_functions.is_quiet_hours", return_value=True):
        response = client.post(
            "/functions/v1/notify-new-booking",
            json={"type": "INSERT", "record": booking_record},
            headers=SERVICE_ROLE_HEADERS,
        )

    assert response.json()["results"][-1] == "Provider notifications: skipped (quiet hours enabled)"


def test_notify_new_booking_unassigned(client, booking_record, deliveries):
    record = {**booking_record, "provider_id": None}

    response = client.post(
        "/functions/v1/notify-new-booking", json={"type": "INSERT", "record": record}, headers=SERVICE_ROLE_HEADERS
    )

    assert response.json()["results"][-1] == "Provider: not assigned"


def test_notify_new_booking_missing_customer(client, booking_record, deliveries):
    record = {**booking_record, "customer_id": "cust-missing"}

    response = client.post(
        "/functions/v1/notify-new-booking", json={"type": "INSERT", "record": record}, headers=SERVICE_ROLE_HEADERS
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Customer not found"}


@pytest.fixture
def verification_template(db):
    db.add(
        NotificationTemplate(
            template_key="admin_business_verification",
            email_subject="New business: {{business_name}}",
            email_body_html="<p>{{business_name}} ({{business_category}}) by {{owner_name}}</p>",
            sms_body="ROAM: {{business_name}} needs review",
            is_active=True,
        )
    )
    db.commit()


def test_notify_new_business(client, db, admin, verification_template, deliveries):
    db.add_all(
        [
            AdminUser(user_id="user-admin-2", email="ops@roam.example", phone="5550009999", is_active=True),
            UserSettings(
                user_id="user-admin-2",
                email_notifications=False,
                sms_notifications=True,
                admin_business_verification_sms=True,
            ),
        ]
    )
    db.commit()

    response = client.post(
        "/functions/v1/notify-new-business",
        json={
            "type": "INSERT",
            "table": "business_profiles",
            "record": {
                "id": "biz-9",
                "business_name": "Glow Studio",
                "business_type": "sole_proprietorship",
                "contact_email": "nina@glow.example",
            },
        },
        headers=SERVICE_ROLE_HEADERS,
    )

    assert response.status_code == 200
    results = {r["userId"]: r for r in response.json()["results"]}
    assert results["user-admin"] == {"userId": "user-admin", "email": {"ok": True}, "sms": {"ok": False}}
    assert results["user-admin-2"] == {"userId": "user-admin-2", "email": {"ok": False}, "sms": {"ok": True}}

    message = deliveries["email"].await_args.args[3]
    assert message.html == "<p>Glow Studio (Sole Proprietorship) by nina</p>"
    assert deliveries["email"].await_args.kwargs["metadata"] == {
        "source": "edge_function_notify_new_business",
        "business_id": "biz-9",
    }


def test_notify_new_business_without_template(client, admin):
    response = client.post(
        "/functions/v1/notify-new-business",
        json={"type": "INSERT", "record": {"id": "biz-9"}},
        headers=SERVICE_ROLE_HEADERS,
    )

    assert response.status_code == 500
    assert response.json() == {"error": "admin_business_verification template missing/inactive"}


def test_notify_new_business_without_admins(client, verification_template):
    response = client.post(
        "/functions/v1/notify-new-business",
        json={"type": "INSERT", "record": {"id": "biz-9"}},
        headers=SERVICE_ROLE_HEADERS,
    )

    assert response.status_code == 500
    assert response.json() == {"error": "No active admin users found"}


# ============================================================================
# Booking reminders
# ============================================================================


def test_format_booking_location():
    at_home = Booking(
        delivery_type="customer_location",
        customer_location=CustomerLocation(
            street_address="12 Elm St", unit_number="Apt 4", city="Austin", state="TX", zip_code="78701"
        ),
    )
    at_business = Booking(
        delivery_type="business_location",
        business_location=BusinessLocation(address_line1="5 Main St", city="Austin", state="TX", postal_code="78702"),
    )

    assert format_booking_location(at_home) == "12 Elm St Apt 4, Austin, TX 78701"
    assert format_booking_location(at_business) == "5 Main St, Austin, TX 78702"
    assert format_booking_location(Booking(delivery_type="customer_location")) == "Location TBD"


@pytest.fixture
def reminder_setup(db, business):
    db.add_all(
        [
            NotificationTemplate(
                template_key="customer_booking_reminder",
                email_subject="Reminder: {{service_name}} tomorrow",
                email_body_html="<p>Hi {{customer_name}}, see you at {{booking_time}}</p>",
                sms_body="ROAM: {{service_name}} tomorrow at {{booking_time}}",
                is_active=True,
            ),
            Service(id="svc-1", name="Facial"),
            CustomerProfile(id="cust-1", user_id="user-cust", first_name="Casey", email="casey@example.com", phone="+15551112222"),
            Booking(
                id="bk-1",
                business_id="biz-1",
                customer_id="cust-1",
                service_id="svc-1",
                booking_date=TOMORROW,
                start_time=time(9, 0),
                booking_status="confirmed",
            ),
            Booking(
                id="bk-guest",
                business_id="biz-1",
                service_id="svc-1",
                booking_date=TOMORROW,
                booking_status="confirmed",
                guest_name="Gwen",
                guest_email="gwen@example.com",
            ),
            Booking(id="bk-pending", business_id="biz-1", booking_date=TOMORROW, booking_status="pending"),
        ]
    )
    db.commit()


@pytest.mark.asyncio
async def test_send_booking_reminders(db, reminder_setup):
    with patch(
        "roam_api.services.reminder_service.deliver_email", new_callable=AsyncMock, return_value=True
    ) as mock_email, patch(
        "roam_api.services.reminder_service.deliver_sms", new_callable=AsyncMock, return_value=False
    ):
        summary = await send_booking_reminders(db, today=TODAY)

    assert summary["date"] == "2025-03-11"
    assert summary["totalBookings"] == 2
    assert summary["emailsSent"] == 2
    assert summary["smsFailed"] == 1
    by_id = {r["bookingId"]: r for r in summary["results"]}
    assert by_id["bk-guest"]["customerName"] == "Gwen"
    assert by_id["bk-guest"]["sms"] == {"status": "no_phone"}
    assert by_id["bk-1"]["sms"] == {"status": "failed", "to": "+15551112222"}

    messages = {call.args[2]: call.args[3] for call in mock_email.await_args_list}
    assert messages["casey@example.com"].html == "<p>Hi Casey, see you at 9:00 AM</p>"


@pytest.mark.asyncio
async def test_reminders_respect_master_toggles(db, reminder_setup):
    db.add(UserSettings(user_id="user-cust", email_notifications=False, sms_notifications=False))
    db.commit()

    with patch(
        "roam_api.services.reminder_service.deliver_email", new_callable=AsyncMock, return_value=True
    ), patch("roam_api.services.reminder_service.deliver_sms", new_callable=AsyncMock, return_value=True) as mock_sms:
        summary = await send_booking_reminders(db, today=TODAY)

    by_id = {r["bookingId"]: r for r in summary["results"]}
    assert by_id["bk-1"]["email"] == {"status": "disabled_by_preference"}
    assert by_id["bk-1"]["sms"] == {"status": "disabled_by_preference"}
    mock_sms.assert_not_awaited()


@pytest.mark.asyncio
async def test_reminders_skip_already_sent(db, reminder_setup):
    db.add(
        NotificationLog(
            notification_type="customer_booking_reminder",
            channel="email",
            status="sent",
            sent_at=datetime.combine(TODAY, time(14, 0)),
            metadata_={"booking_id": "bk-1"},
        )
    )
    db.commit()

    with patch(
        "roam_api.services.reminder_service.deliver_email", new_callable=AsyncMock, return_value=True
    ), patch("roam_api.services.reminder_service.deliver_sms", new_callable=AsyncMock, return_value=True):
        summary = await send_booking_reminders(db, today=TODAY)

    assert summary["skipped"] == 1
    assert [r["bookingId"] for r in summary["results"]] == ["bk-guest"]


@pytest.mark.asyncio
async def test_reminders_without_bookings(db, reminder_setup):
    summary = await send_booking_reminders(db, today=TODAY + timedelta(days=30))

    assert summary["remindersSent"] == 0
    assert summary["message"] == "No bookings found for tomorrow"


@pytest.mark.asyncio
async def test_reminders_require_template(db):
    with pytest.raises(ReminderTemplateMissing):
        await send_booking_reminders(db, today=TODAY)


def test_send_booking_reminder_endpoint_without_template(client):
    response = client.get("/functions/v1/send-booking-reminder", headers=SERVICE_ROLE_HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "Notification template not found"}
