from datetime import datetime
from unittest.mock import AsyncMock, patch

import pytest

from roam_api.models import CustomerProfile, NotificationLog, NotificationTemplate, UserSettings
from roam_api.services.notification_service import channel_preferences, is_quiet_hours, render_message
from tests.conftest import SERVICE_ROLE_HEADERS


def test_channel_defaults_without_settings():
    assert channel_preferences(None, "customer_booking_accepted") == (True, False)


def test_channel_type_flags_override_defaults():
    settings = UserSettings(
        email_notifications=True,
        sms_notifications=True,
        customer_booking_accepted_email=False,
        customer_booking_accepted_sms=True,
    )

    assert channel_preferences(settings, "customer_booking_accepted") == (False, True)
    assert channel_preferences(settings, "customer_booking_declined") == (True, False)


def test_master_toggle_wins_over_type_flag():
    settings = UserSettings(email_notifications=False, provider_new_booking_email=True)

    assert channel_preferences(settings, "provider_new_booking") == (False, False)


@pytest.mark.parametrize(
    "start, end, now, expected",
    [
        ("22:00", "07:00", "23:30", True),
        ("22:00", "07:00", "06:59", True),
        ("22:00", "07:00", "07:00", False),
        ("12:00", "13:00", "12:30", True),
        ("12:00", "13:00", "13:00", False),
    ],
)
def test_quiet_hours(start, end, now, expected):
    settings = UserSettings(quiet_hours_enabled=True, quiet_hours_start=start, quiet_hours_end=end)
    moment = datetime.strptime(f"2025-01-01 {now}", "%Y-%m-%d %H:%M")

    assert is_quiet_hours(settings, moment) is expected


def test_quiet_hours_disabled():
    settings = UserSettings(quiet_hours_enabled=False, quiet_hours_start="00:00", quiet_hours_end="23:59")

    assert is_quiet_hours(settings, datetime(2025, 1, 1, 12, 0)) is False


def test_render_message_fallback():
    message = render_message(None, {}, fallback_subject="Hello", fallback_body="See you soon")

    assert message.subject == "Hello"
    assert message.html == "<p>See you soon</p>"
    assert message.sms == "ROAM: See you soon"


@pytest.fixture
def accepted_template(db):
    db.add(
        NotificationTemplate(
            template_key="customer_booking_accepted",
            email_subject="Booking confirmed: {{service_name}}",
            email_body_html="<p>Hi {{customer_name}}</p>",
            email_body_text="Hi {{customer_name}}",
            sms_body="ROAM: {{service_name}} confirmed",
            is_active=True,
        )
    )
    db.add(CustomerProfile(user_id="user-cust", email="casey@example.com", phone="+15551112222"))
    db.commit()


def test_send_requires_service_role(client):
    response = client.post("/api/notifications/send", json={})

    assert response.status_code in (401, 403)


def test_send_rejects_unknown_type(client):
    response = client.post(
        "/api/notifications/send",
        json={"userId": "user-cust", "notificationType": "marketing_blast", "templateVariables": {}},
        headers=SERVICE_ROLE_HEADERS,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid notification type"


def test_send_requires_template_variables(client):
    response = client.post(
        "/api/notifications/send",
        json={"userId": "user-cust", "notificationType": "customer_welcome"},
        headers=SERVICE_ROLE_HEADERS,
    )

    assert response.json() == {"error": "templateVariables object is required"}


def test_send_email_and_log(client, db, accepted_template):
    db.add(UserSettings(user_id="user-cust", sms_notifications=True, customer_booking_accepted_sms=True))
    db.commit()

    with patch(
        "roam_api.services.notification_service.send_html_email", return_value={"id": "em_1"}
    ) as mock_email, patch(
        "roam_api.services.notification_service.send_sms",
        new_callable=AsyncMock,
        return_value=(True, "SM123", None),
    ) as mock_sms:
        response = client.post(
            "/api/notifications/send",
            json={
                "userId": "user-cust",
                "notificationType": "customer_booking_accepted",
                "templateVariables": {"service_name": "Facial", "customer_name": "Casey"},
                "metadata": {"booking_id": "bk-1"},
            },
            headers=SERVICE_ROLE_HEADERS,
        )

    assert response.status_code == 200
    assert response.json()["sent"] == {"email": True, "sms": True, "skipped": None}
    assert mock_email.call_args.args[:3] == ("casey@example.com", "Booking confirmed: Facial", "<p>Hi Casey</p>")
    mock_sms.assert_awaited_once_with("+15551112222", "ROAM: Facial confirmed")

    logs = {log.channel: log for log in db.query(NotificationLog).all()}
    assert logs["email"].resend_id == "em_1"
    assert logs["email"].metadata_ == {"booking_id": "bk-1"}
    assert logs["sms"].twilio_sid == "SM123"


def test_send_logs_failed_email(client, db, accepted_template):
    with patch("roam_api.services.notification_service.send_html_email", side_effect=RuntimeError("bounced")):
        response = client.post(
            "/api/notifications/send",
            json={"userId": "user-cust", "notificationType": "customer_booking_accepted", "templateVariables": {}},
            headers=SERVICE_ROLE_HEADERS,
        )

    assert response.json()["sent"]["email"] is False
    log = db.query(NotificationLog).one()
    assert log.status == "failed"
    assert log.error_message == "bounced"
    assert log.sent_at is None


def test_send_skips_missing_template(client):
    response = client.post(
        "/api/notifications/send",
        json={"userId": "user-cust", "notificationType": "customer_welcome", "templateVariables": {}},
        headers=SERVICE_ROLE_HEADERS,
    )

    assert response.json()["sent"]["skipped"] == "template_not_found"
