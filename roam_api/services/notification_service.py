"""
Unified Notification Service
Applies per-user notification settings, renders database templates and
delivers email and SMS, recording every attempt in notification_logs
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..email_service import send_html_email
from ..models import CustomerProfile, NotificationLog, NotificationTemplate, Provider, UserSettings
from ..shared.formatting import render_template
from .sms_service import send_sms

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = (
    "customer_welcome",
    "customer_booking_accepted",
    "customer_booking_completed",
    "customer_booking_declined",
    "customer_booking_reminder",
    "provider_new_booking",
    "provider_booking_cancelled",
    "provider_booking_rescheduled",
    "business_new_booking",
    "admin_business_verification",
)

NOTIFICATION_FROM = "ROAM Support <support@roamyourbestlife.com>"


@dataclass
class RenderedMessage:
    subject: str
    html: str
    text: str
    sms: str


def get_user_settings(db: Session, user_id: Optional[str]) -> Optional[UserSettings]:
    if not user_id:
        return None
    return db.query(UserSettings).filter(UserSettings.user_id == user_id).first()


def channel_preferences(settings: Optional[UserSettings], notification_type: str) -> tuple[bool, bool]:
    """
    Master toggles default to email on / SMS off; per-type flags
    ``{type}_email`` / ``{type}_sms`` follow the same defaults when unset.
    """
    email_enabled = True
    sms_enabled = False
    email_flag = None
    sms_flag = None
    if settings is not None:
        if settings.email_notifications is not None:
            email_enabled = settings.email_notifications
        if settings.sms_notifications is not None:
            sms_enabled = settings.sms_notifications
        email_flag = getattr(settings, f"{notification_type}_email", None)
        sms_flag = getattr(settings, f"{notification_type}_sms", None)

    email_allowed = email_enabled and (email_flag if email_flag is not None else True)
    sms_allowed = sms_enabled and (sms_flag if sms_flag is not None else False)
    return bool(email_allowed), bool(sms_allowed)


def is_quiet_hours(settings: Optional[UserSettings], now: Optional[datetime] = None) -> bool:
    """True inside [start, end). A start later than the end wraps past midnight."""
    if settings is None or not settings.quiet_hours_enabled:
        return False
    start = settings.quiet_hours_start
    end = settings.quiet_hours_end
    if not start or not end:
        return False

    current = (now or datetime.now()).strftime("%H:%M")
    start, end = start[:5], end[:5]
    if start > end:
        return current >= start or current < end
    return start <= current < end


def get_active_template(db: Session, template_key: str) -> Optional[NotificationTemplate]:
    return (
        db.query(NotificationTemplate)
        .filter(NotificationTemplate.template_key == template_key, NotificationTemplate.is_active.is_(True))
        .first()
    )


def render_message(
    template: Optional[NotificationTemplate],
    variables: dict,
    fallback_subject: str = "",
    fallback_body: str = "",
) -> RenderedMessage:
    """Substitute variables into a template, using plain fallbacks where it has no content."""
    if template is None:
        return RenderedMessage(
            subject=fallback_subject,
            html=f"<p>{fallback_body}</p>" if fallback_body else "",
            text=fallback_body,
            sms=f"ROAM: {fallback_body}" if fallback_body else "",
        )
    return RenderedMessage(
        subject=render_template(template.email_subject, variables) or fallback_subject,
        html=render_template(template.email_body_html, variables),
        text=render_template(template.email_body_text, variables),
        sms=render_template(template.sms_body, variables),
    )


def resolve_recipient(
    db: Session, user_id: str, settings: Optional[UserSettings]
) -> tuple[Optional[str], Optional[str]]:
    """Notification email/phone from settings, then the customer profile, then the provider profile."""
    email = settings.notification_email if settings else None
    phone = settings.notification_phone if settings else None

    if not email or not phone:
        customer = db.query(CustomerProfile).filter(CustomerProfile.user_id == user_id).first()
        if customer:
            email = email or customer.email
            phone = phone or customer.phone

    if not email or not phone:
        provider = db.query(Provider).filter(Provider.user_id == user_id).first()
        if provider:
            email = email or provider.email
            phone = phone or provider.phone

    return (email.strip() if email else None), (phone.strip() if phone else None)


def log_notification(db: Session, **fields) -> None:
    metadata = fields.pop("metadata", None)
    try:
        db.add(NotificationLog(metadata_=metadata, **fields))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"⚠️ Failed to write notification log: {e}")


async def deliver_email(
    db: Session,
    notification_type: str,
    to: str,
    message: RenderedMessage,
    user_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> bool:
    try:
        response = send_html_email(
            to, message.subject, message.html, text_content=message.text, from_address=NOTIFICATION_FROM
        )
    except Exception as e:
        logger.error(f"❌ {notification_type} email to {to} failed: {e}")
        log_notification(
            db,
            user_id=user_id,
            recipient_email=to,
            notification_type=notification_type,
            channel="email",
            status="failed",
            subject=message.subject,
            error_message=str(e),
            metadata=metadata,
        )
        return False

    log_notification(
        db,
        user_id=user_id,
        recipient_email=to,
        notification_type=notification_type,
        channel="email",
        status="sent",
        resend_id=(response or {}).get("id") if isinstance(response, dict) else None,
        subject=message.subject,
        body=message.text,
        sent_at=datetime.utcnow(),
        metadata=metadata,
    )
    logger.info(f"✅ Email sent: {notification_type} to {to}")
    return True


async def deliver_sms(
    db: Session,
    notification_type: str,
    to: str,
    body: str,
    user_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> bool:
    ok, sid, error = await send_sms(to, body)
    log_notification(
        db,
        user_id=user_id,
        recipient_phone=to,
        notification_type=notification_type,
        channel="sms",
        status="sent" if ok else "failed",
        twilio_sid=sid,
        body=body,
        sent_at=datetime.utcnow() if ok else None,
        error_message=error,
        metadata=metadata,
    )
    return ok


async def send_notification(
    db: Session,
    user_id: str,
    notification_type: str,
    template_variables: dict,
    metadata: Optional[dict] = None,
) -> dict:
    """
    Send a templated notification to a platform user.

    Returns a dict with ``email`` and ``sms`` booleans, plus ``skipped``
    with a reason when nothing was attempted.
    """
    result = {"email": False, "sms": False, "skipped": None}

    settings = get_user_settings(db, user_id)
    email_allowed, sms_allowed = channel_preferences(settings, notification_type)
    logger.info(
        f"🔍 Notification preferences for {notification_type}: user={user_id} "
        f"email={email_allowed} sms={sms_allowed}"
    )

    if is_quiet_hours(settings):
        logger.info(f"⏰ Skipping {notification_type} for {user_id} - quiet hours active")
        result["skipped"] = "quiet_hours"
        return result

    template = get_active_template(db, notification_type)
    if not template:
        logger.error(f"❌ Template not found: {notification_type}")
        result["skipped"] = "template_not_found"
        return result

    recipient_email, recipient_phone = resolve_recipient(db, user_id, settings)
    message = render_message(template, template_variables)

    if email_allowed and recipient_email and message.html:
        result["email"] = await deliver_email(
            db, notification_type, recipient_email, message, user_id=user_id, metadata=metadata
        )
    else:
        logger.info(
            f"ℹ️ Email skipped for {notification_type}: allowed={email_allowed} "
            f"recipient={bool(recipient_email)} template={bool(message.html)}"
        )

    if sms_allowed and recipient_phone and message.sms:
        result["sms"] = await deliver_sms(
            db, notification_type, recipient_phone, message.sms, user_id=user_id, metadata=metadata
        )
    else:
        logger.info(
            f"ℹ️ SMS skipped for {notification_type}: allowed={sms_allowed} "
            f"recipient={bool(recipient_phone)} template={bool(message.sms)}"
        )

    return result
