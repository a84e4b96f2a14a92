"""
Booking Reminder Service
Sends the customer_booking_reminder notification for tomorrow's confirmed
bookings. Called by the send-booking-reminder function and the daily worker cron.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ..models import Booking, NotificationLog
from ..shared.formatting import format_display_date, format_display_time
from ..shared.serialization import full_name
from .notification_service import deliver_email, deliver_sms, get_active_template, get_user_settings, render_message

logger = logging.getLogger(__name__)

REMINDER_TYPE = "customer_booking_reminder"


class ReminderTemplateMissing(Exception):
    """Raised when the customer_booking_reminder template is missing or inactive"""


def format_booking_location(booking: Booking) -> str:
    if booking.delivery_type in ("customer_location", "both_locations"):
        location = booking.customer_location
        if not location:
            return "Location TBD"
        street = location.street_address or ""
        if location.unit_number:
            street = f"{street} {location.unit_number}"
        return f"{street}, {location.city or ''}, {location.state or ''} {location.zip_code or ''}".strip()

    location = booking.business_location
    if not location:
        return "Location TBD"
    street = location.address_line1 or ""
    if location.address_line2:
        street = f"{street} {location.address_line2}"
    return f"{street}, {location.city or ''}, {location.state or ''} {location.postal_code or ''}".strip()


def already_reminded_booking_ids(db: Session, day: date) -> set:
    start = datetime.combine(day, datetime.min.time())
    logs = (
        db.query(NotificationLog)
        .filter(
            NotificationLog.notification_type == REMINDER_TYPE,
            NotificationLog.sent_at >= start,
            NotificationLog.sent_at < start + timedelta(days=1),
        )
        .all()
    )
    return {(log.metadata_ or {}).get("booking_id") for log in logs} - {None}


def reminder_variables(booking: Booking, customer_name: str) -> dict:
    provider = booking.provider
    return {
        "customer_name": customer_name,
        "service_name": booking.service.name if booking.service else "Service",
        "provider_name": f"{provider.first_name} {provider.last_name}" if provider else "Provider",
        "business_name": booking.business.business_name if booking.business else "Business",
        "booking_date": format_display_date(booking.booking_date),
        "booking_time": format_display_time(booking.start_time),
        "booking_location": format_booking_location(booking),
        "booking_id": booking.booking_reference or booking.id,
    }


async def send_booking_reminders(db: Session, today: Optional[date] = None) -> dict:
    """
    Remind customers about confirmed bookings scheduled for tomorrow (UTC).

    Bookings that already have a reminder logged today are skipped, so the
    job can safely run more than once a day.
    """
    today = today or datetime.utcnow().date()
    tomorrow = today + timedelta(days=1)

    template = get_active_template(db, REMINDER_TYPE)
    if not template:
        logger.error("❌ customer_booking_reminder template missing or inactive")
        raise ReminderTemplateMissing("Notification template not found")

    bookings = (
        db.query(Booking)
        .options(
            joinedload(Booking.customer),
            joinedload(Booking.service),
            joinedload(Booking.provider),
            joinedload(Booking.business),
            joinedload(Booking.business_location),
            joinedload(Booking.customer_location),
        )
        .filter(
            Booking.booking_date == tomorrow,
            Booking.booking_status == "confirmed",
            Booking.cancelled_at.is_(None),
        )
        .all()
    )
    logger.info(f"📅 Found {len(bookings)} confirmed bookings for {tomorrow.isoformat()}")

    if not bookings:
        return {
            "success": True,
            "message": "No bookings found for tomorrow",
            "remindersSent": 0,
            "date": tomorrow.isoformat(),
        }

    sent_ids = already_reminded_booking_ids(db, today)
    counts = {"emailsSent": 0, "emailsFailed": 0, "smsSent": 0, "smsFailed": 0}
    skipped = 0
    results = []

    for booking in bookings:
        if booking.id in sent_ids:
            skipped += 1
            continue

        customer = booking.customer
        customer_email = booking.guest_email or (customer.email if customer else None)
        customer_phone = customer.phone if customer else None
        customer_name = (
            booking.guest_name
            or (full_name(customer.first_name, customer.last_name) if customer else "")
            or "Valued Customer"
        )
        if not customer_email and not customer_phone:
            logger.warning(f"⚠️ No contact info found for booking {booking.id}")
            continue

        user_id = customer.user_id if customer else None
        settings = get_user_settings(db, user_id)
        email_enabled = True
        sms_enabled = True
        if settings is not None:
            email_enabled = settings.email_notifications if settings.email_notifications is not None else True
            sms_enabled = settings.sms_notifications if settings.sms_notifications is not None else True

        message = render_message(template, reminder_variables(booking, customer_name))
        metadata = {
            "booking_id": booking.id,
            "booking_reference": booking.booking_reference,
            "booking_date": booking.booking_date.isoformat(),
            "start_time": booking.start_time.isoformat() if booking.start_time else None,
        }
        result = {
            "bookingId": booking.id,
            "bookingReference": booking.booking_reference,
            "customerName": customer_name,
        }

        if email_enabled and customer_email:
            ok = await deliver_email(db, REMINDER_TYPE, customer_email, message, user_id=user_id, metadata=metadata)
            counts["emailsSent" if ok else "emailsFailed"] += 1
            result["email"] = {"status": "sent" if ok else "failed", "to": customer_email}
        else:
            result["email"] = {"status": "no_email" if email_enabled else "disabled_by_preference"}

        if sms_enabled and customer_phone:
            ok = await deliver_sms(db, REMINDER_TYPE, customer_phone, message.sms, user_id=user_id, metadata=metadata)
            counts["smsSent" if ok else "smsFailed"] += 1
            result["sms"] = {"status": "sent" if ok else "failed", "to": customer_phone}
        else:
            result["sms"] = {"status": "no_phone" if sms_enabled else "disabled_by_preference"}

        results.append(result)

    logger.info(
        f"📊 Reminders for {tomorrow.isoformat()}: {counts['emailsSent']} emails, "
        f"{counts['smsSent']} SMS, {skipped} skipped"
    )
    return {
        "success": True,
        "date": tomorrow.isoformat(),
        "totalBookings": len(bookings),
        "skipped": skipped,
        **counts,
        "results": results,
    }
