"""
Twilio SMS Service
Sends platform SMS notifications through the Twilio Messages API
"""

import logging
from typing import Optional

import httpx

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER
from ..shared.validators import format_phone_e164

logger = logging.getLogger(__name__)


def sms_configured() -> bool:
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_PHONE_NUMBER)


async def send_sms(to_phone: str, message_body: str) -> tuple[bool, Optional[str], Optional[str]]:
    """
    Send SMS via Twilio

    Args:
        to_phone: Recipient phone number, normalized to E.164 before sending
        message_body: SMS message content

    Returns:
        Tuple of (success, message_sid, error_message)
    """
    if not to_phone:
        return False, None, "No phone number provided"

    if not sms_configured():
        logger.warning("⚠️ Twilio is not configured - SMS will be skipped")
        return False, None, "SMS service not configured"

    formatted_to = format_phone_e164(to_phone)
    data = {
        "To": formatted_to,
        "From": format_phone_e164(TWILIO_PHONE_NUMBER),
        "Body": message_body,
    }

    try:
        logger.info(f"📱 Sending SMS to {formatted_to} ({len(message_body)} chars)")
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"https://api.twilio.com/2010-04-01/Accounts/{TWILIO_ACCOUNT_SID}/Messages.json",
                auth=(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN),
                data=data,
                timeout=10.0,
            )

        if response.status_code in [200, 201]:
            message_sid = response.json().get("sid")
            logger.info(f"✅ SMS sent successfully to {formatted_to} (SID: {message_sid})")
            return True, message_sid, None

        try:
            error_data = response.json()
        except ValueError:
            error_data = {}
        error_message = error_data.get("message", "Twilio API error")
        error_code = error_data.get("code")
        if error_code:
            error_message = f"[{error_code}] {error_message}"
        logger.error(f"❌ Failed to send SMS to {formatted_to}: {error_message}")
        return False, None, error_message

    except httpx.HTTPError as e:
        logger.error(f"❌ Error sending SMS to {formatted_to}: {str(e)}")
        return False, None, str(e)
