"""
Email Service using Resend
Branded emails are written in MJML and compiled to HTML; notification
templates stored in the database are already HTML and are sent as-is.
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY, SUPPORT_EMAIL
from .email_templates import (
    application_rejected_template,
    application_submitted_template,
    business_approved_template,
    contact_form_template,
    contact_reply_template,
    staff_invitation_template,
    staff_welcome_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY

PROVIDER_SUPPORT_FROM = "ROAM Provider Support <providersupport@roamyourbestlife.com>"
SUPPORT_FROM = f"ROAM Support <{SUPPORT_EMAIL}>"


class EmailNotConfigured(Exception):
    """RESEND_API_KEY is not set."""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict-like result with 'html' and 'errors'
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        html = getattr(result, "html", None)
        if html is not None:
            if getattr(result, "errors", None):
                logger.warning(f"MJML compilation warnings: {result.errors}")
            return html
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


def send_html_email(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    text_content: Optional[str] = None,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> dict:
    """
    Send pre-rendered HTML through Resend.

    Returns:
        Resend response dict (contains the message ``id``)
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfigured("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    email_data = {
        "from": from_address or EMAIL_FROM_ADDRESS,
        "to": recipients,
        "subject": subject,
        "html": html_content,
    }
    if text_content:
        email_data["text"] = text_content
    if reply_to:
        email_data["reply_to"] = reply_to

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(email_data)
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
    reply_to: Optional[str] = None,
) -> dict:
    """Compile an MJML template and send it"""
    html_content = compile_mjml_to_html(mjml_content)
    return send_html_email(to, subject, html_content, from_address=from_address, reply_to=reply_to)


# ============================================
# Pre-built emails for onboarding and support
# ============================================


async def send_application_submitted_email(to: str, business_name: str, first_name: Optional[str]) -> dict:
    return await send_email(
        to=to,
        subject="Application Received - ROAM",
        mjml_content=application_submitted_template(business_name, first_name),
        from_address=PROVIDER_SUPPORT_FROM,
    )


async def send_business_approved_email(
    to: str, business_name: str, phase2_url: str, approval_notes: Optional[str] = None
) -> dict:
    return await send_email(
        to=to,
        subject="🎉 Your Business Has Been Approved!",
        mjml_content=business_approved_template(business_name, phase2_url, approval_notes),
        from_address=PROVIDER_SUPPORT_FROM,
    )


async def send_application_rejected_email(to: str, business_name: str, rejection_reason: str) -> dict:
    return await send_email(
        to=to,
        subject="Application Status Update - Action Required",
        mjml_content=application_rejected_template(business_name, rejection_reason),
        from_address=PROVIDER_SUPPORT_FROM,
    )


async def send_staff_invitation_email(to: str, business_name: str, role: str, onboarding_link: str) -> dict:
    return await send_email(
        to=to,
        subject=f"You're invited to join {business_name} on ROAM",
        mjml_content=staff_invitation_template(business_name, role, onboarding_link),
        from_address=PROVIDER_SUPPORT_FROM,
    )


async def send_staff_welcome_email(
    to: str,
    first_name: str,
    business_name: str,
    role: str,
    login_url: str,
    temporary_password: Optional[str] = None,
) -> dict:
    return await send_email(
        to=to,
        subject=f"Welcome to {business_name} on ROAM! 🎉",
        mjml_content=staff_welcome_template(first_name, business_name, role, login_url, temporary_password),
        from_address=PROVIDER_SUPPORT_FROM,
    )


async def send_contact_form_email(
    name: str, email: str, message: str, phone: Optional[str] = None, subject: Optional[str] = None
) -> dict:
    """Forward a contact form submission to support, reply-to the sender"""
    return await send_email(
        to=SUPPORT_EMAIL,
        subject=f"New Contact Form Submission from {name}",
        mjml_content=contact_form_template(name, email, message, phone, subject),
        from_address=PROVIDER_SUPPORT_FROM,
        reply_to=email,
    )


async def send_contact_reply_email(
    to: str,
    reply_subject: str,
    reply_message: str,
    full_name: Optional[str],
    original_subject: Optional[str],
    original_message: str,
    submitted_on: Optional[str],
) -> dict:
    return await send_email(
        to=to,
        subject=reply_subject,
        mjml_content=contact_reply_template(
            full_name, reply_message, original_subject, original_message, submitted_on
        ),
        from_address=SUPPORT_FROM,
    )
