"""
Edge Function Routes - database webhooks and scheduled jobs

Called by Supabase database webhooks (INSERT on bookings and business_profiles)
and by the scheduler with the service-role key as bearer token.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_service_role
from ..database import get_db
from ..models import AdminUser, BusinessProfile, CustomerProfile, Provider, Service
from ..services.notification_service import (
    channel_preferences,
    deliver_email,
    deliver_sms,
    get_active_template,
    get_user_settings,
    is_quiet_hours,
    render_message,
)
from ..services.reminder_service import ReminderTemplateMissing, send_booking_reminders
from ..shared.formatting import format_display_date, format_display_time, format_label
from ..shared.serialization import full_name
from ..shared.validators import format_phone_e164

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["Edge Functions"])


class WebhookPayload(BaseModel):
    """Supabase database webhook body"""

    type: Optional[str] = None
    table: Optional[str] = None
    record: Optional[dict[str, Any]] = None
    old_record: Optional[dict[str, Any]] = None


def booking_summary(variables: dict) -> str:
    return (
        f"{variables['service_name']} with {variables['customer_name']} "
        f"on {variables['booking_date']} at {variables['booking_time']}"
    )


def booking_variables(record: dict, business: BusinessProfile, service: Service, customer_name: str) -> dict:
    total_amount = record.get("total_amount")
    return {
        "customer_name": customer_name,
        "service_name": service.name,
        "business_name": business.business_name,
        "booking_date": format_display_date(record.get("booking_date")),
        "booking_time": format_display_time(record.get("start_time")),
        "booking_reference": record.get("booking_reference") or "N/A",
        "total_amount": f"{float(total_amount):.2f}" if total_amount is not None else "0.00",
        "special_instructions": record.get("special_instructions") or "None",
        "booking_id": record.get("id"),
    }


async def notify_business(db: Session, business: BusinessProfile, variables: dict, metadata: dict) -> list[str]:
    """Email the business contact address and text its phone; businesses have no preference settings"""
    results = []
    summary = booking_summary(variables)
    template = get_active_template(db, "business_new_booking")
    if not template:
        logger.warning("⚠️ business_new_booking template not found, using fallback")
    message = render_message(
        template,
        variables,
        fallback_subject=f"New Booking: {variables['service_name']} with {variables['customer_name']}",
        fallback_body=f"New booking received for {summary}.",
    )

    if business.contact_email:
        sent = await deliver_email(db, "business_new_booking", business.contact_email, message, metadata=metadata)
        results.append(f"Business email ({business.contact_email}): {'sent' if sent else 'failed'}")
    else:
        logger.warning(f"⚠️ Business {business.id} has no contact_email configured")
        results.append("Business email: no contact_email configured")

    if business.phone:
        sms_body = message.sms or f"ROAM: New booking for {summary}."
        sent = await deliver_sms(
            db, "business_new_booking", format_phone_e164(business.phone), sms_body, metadata=metadata
        )
        results.append(f"Business SMS ({business.phone}): {'sent' if sent else 'failed'}")
    else:
        results.append("Business SMS: no phone configured")

    return results


async def notify_assigned_provider(db: Session, provider_id: str, variables: dict, metadata: dict) -> list[str]:
    provider = db.query(Provider).filter(Provider.id == provider_id).first()
    if not provider:
        logger.error(f"❌ Assigned provider {provider_id} not found")
        return ["Provider: not found"]

    settings = get_user_settings(db, provider.user_id)
    email_allowed, sms_allowed = channel_preferences(settings, "provider_new_booking")
    provider_email = (settings.notification_email if settings else None) or provider.email
    provider_phone = (settings.notification_phone if settings else None) or provider.phone
    variables = {**variables, "provider_name": full_name(provider.first_name, provider.last_name)}

    if is_quiet_hours(settings):
        logger.info(f"⏰ Provider {provider_id} in quiet hours - skipping new booking notification")
        return ["Provider notifications: skipped (quiet hours enabled)"]

    summary = booking_summary(variables)
    message = render_message(
        get_active_template(db, "provider_new_booking"),
        variables,
        fallback_subject=f"New Booking Assigned: {variables['service_name']}",
        fallback_body=f"You have a new booking for {summary}.",
    )

    results = []
    if email_allowed and provider_email:
        sent = await deliver_email(
            db, "provider_new_booking", provider_email, message, user_id=provider.user_id, metadata=metadata
        )
        results.append(f"Provider email ({provider_email}): {'sent' if sent else 'failed'}")
    else:
        results.append(f"Provider email: {'no email configured' if email_allowed else 'disabled by preference'}")

    if sms_allowed and provider_phone and message.sms:
        sent = await deliver_sms(
            db,
            "provider_new_booking",
            format_phone_e164(provider_phone),
            message.sms,
            user_id=provider.user_id,
            metadata=metadata,
        )
        results.append(f"Provider SMS ({provider_phone}): {'sent' if sent else 'failed'}")
    else:
        results.append(f"Provider SMS: {'no phone configured' if sms_allowed else 'disabled by preference'}")

    return results


@router.post("/notify-new-booking")
async def notify_new_booking(
    payload: WebhookPayload,
    _: None = Depends(require_service_role),
    db: Session = Depends(get_db),
):
    """Notify the business and the assigned provider about a newly inserted booking"""
    if payload.type != "INSERT":
        return {"message": "Ignoring non-INSERT event"}
    record = payload.record or {}
    logger.info(f"📅 New booking webhook: {record.get('id')}")

    business = db.query(BusinessProfile).filter(BusinessProfile.id == record.get("business_id")).first()
    if not business:
        raise HTTPException(status_code=400, detail="Business not found")
    service = db.query(Service).filter(Service.id == record.get("service_id")).first()
    if not service:
        raise HTTPException(status_code=400, detail="Service not found")
    customer = db.query(CustomerProfile).filter(CustomerProfile.id == record.get("customer_id")).first()
    if not customer:
        raise HTTPException(status_code=400, detail="Customer not found")

    variables = booking_variables(record, business, service, full_name(customer.first_name, customer.last_name))
    metadata = {"source": "edge_function_notify_new_booking", "booking_id": record.get("id")}

    results = await notify_business(db, business, variables, metadata)
    if record.get("provider_id"):
        results.extend(await notify_assigned_provider(db, record["provider_id"], variables, metadata))
    else:
        results.append("Provider: not assigned")

    logger.info(f"✅ New booking notifications for {record.get('id')}: {results}")
    return {"success": True, "bookingId": record.get("id"), "results": results}


@router.post("/notify-new-business")
async def notify_new_business(
    payload: WebhookPayload,
    _: None = Depends(require_service_role),
    db: Session = Depends(get_db),
):
    """Tell every active admin that a new business is awaiting verification"""
    if payload.type != "INSERT":
        return {"message": "Ignoring non-INSERT event"}
    business = payload.record or {}
    logger.info(f"🏢 New business webhook: {business.get('business_name')} ({business.get('id')})")

    template = get_active_template(db, "admin_business_verification")
    if not template:
        logger.error("❌ admin_business_verification template missing or inactive")
        raise HTTPException(status_code=500, detail="admin_business_verification template missing/inactive")

    admins = db.query(AdminUser).filter(AdminUser.is_active.is_(True)).all()
    if not admins:
        logger.error("❌ No active admin users found")
        raise HTTPException(status_code=500, detail="No active admin users found")

    contact_email = business.get("contact_email")
    variables = {
        "business_name": business.get("business_name") or "",
        "owner_name": contact_email.split("@")[0] if contact_email else "N/A",
        "contact_email": contact_email or "Not provided",
        "contact_phone": business.get("phone") or "Not provided",
        "business_category": format_label(business.get("business_type")),
        "business_location": "N/A",
        "submission_date": format_display_date(business.get("created_at")),
        "business_id": business.get("id"),
    }
    message = render_message(template, variables, fallback_subject="🔔 New Business Awaiting Verification")
    metadata = {"source": "edge_function_notify_new_business", "business_id": business.get("id")}

    results = []
    for admin in admins:
        settings = get_user_settings(db, admin.user_id)
        email_allowed, sms_allowed = channel_preferences(settings, "admin_business_verification")
        recipient_email = ((settings.notification_email if settings else None) or admin.email or "").strip()
        recipient_phone = ((settings.notification_phone if settings else None) or admin.phone or "").strip()

        result = {"userId": admin.user_id, "email": {"ok": False}, "sms": {"ok": False}}
        if email_allowed and recipient_email and message.html:
            ok = await deliver_email(
                db, "admin_business_verification", recipient_email, message, user_id=admin.user_id, metadata=metadata
            )
            result["email"] = {"ok": ok}
        if sms_allowed and recipient_phone and message.sms:
            ok = await deliver_sms(
                db,
                "admin_business_verification",
                format_phone_e164(recipient_phone),
                message.sms,
                user_id=admin.user_id,
                metadata=metadata,
            )
            result["sms"] = {"ok": ok}
        results.append(result)

    logger.info(f"✅ New business notification complete for {business.get('business_name')}: {len(results)} admins")
    return {
        "success": True,
        "businessId": business.get("id"),
        "businessName": business.get("business_name"),
        "results": results,
    }


@router.api_route("/send-booking-reminder", methods=["GET", "POST"])
async def send_booking_reminder(
    _: None = Depends(require_service_role),
    db: Session = Depends(get_db),
):
    """Send reminders for tomorrow's confirmed bookings; GET is used by cron callers"""
    try:
        return await send_booking_reminders(db)
    except ReminderTemplateMissing as e:
        raise HTTPException(status_code=500, detail=str(e))
