"""
Contact Routes - public contact form for the provider site
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import SUPPORT_EMAIL
from ..database import get_db
from ..email_service import EmailNotConfigured, send_contact_form_email
from ..models import ContactSubmission
from ..rate_limiter import create_rate_limiter
from ..shared.validators import is_valid_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Contact"])

contact_rate_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="contact")


class ContactRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


@router.post("/contact")
async def submit_contact_form(
    data: ContactRequest,
    _: None = Depends(contact_rate_limit),
    db: Session = Depends(get_db),
):
    """Store the message for the admin console and forward it to support"""
    if not data.name or not data.email or not data.message:
        raise HTTPException(
            status_code=400,
            detail={"error": "Missing required fields", "details": "Name, email, and message are required"},
        )
    if not is_valid_email(data.email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    try:
        db.add(
            ContactSubmission(
                full_name=data.name,
                from_email=data.email.strip(),
                to_email=SUPPORT_EMAIL,
                subject=data.subject or f"Contact form message from {data.name}",
                message=data.message,
                category="provider_contact",
                status="received",
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"⚠️ Could not store contact submission from {data.email}: {e}")

    try:
        await send_contact_form_email(data.name, data.email.strip(), data.message, data.phone, data.subject)
    except EmailNotConfigured:
        raise HTTPException(status_code=500, detail="Email service not configured")
    except Exception as e:
        logger.error(f"❌ Contact form email failed for {data.email}: {e}")
        raise HTTPException(status_code=500, detail={"error": "Failed to send email", "details": str(e)})

    logger.info(f"📧 Contact form message from {data.email} forwarded to support")
    return {
        "ok": True,
        "message": "Message sent successfully. We'll get back to you within one business day.",
    }
