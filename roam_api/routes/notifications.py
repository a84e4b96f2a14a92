"""
Notification Routes - internal entry point for templated email/SMS notifications
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_service_role
from ..database import get_db
from ..services.notification_service import NOTIFICATION_TYPES, send_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


class SendNotificationRequest(BaseModel):
    userId: Optional[str] = None
    notificationType: Optional[str] = None
    templateVariables: Optional[Any] = None
    metadata: Optional[dict] = None


@router.post("/send")
async def send_user_notification(
    data: SendNotificationRequest,
    _: None = Depends(require_service_role),
    db: Session = Depends(get_db),
):
    """Send a notification honouring the recipient's channel settings and quiet hours"""
    if not data.userId:
        raise HTTPException(status_code=400, detail="userId is required")
    if not data.notificationType:
        raise HTTPException(status_code=400, detail="notificationType is required")
    if not isinstance(data.templateVariables, dict):
        raise HTTPException(status_code=400, detail="templateVariables object is required")
    if data.notificationType not in NOTIFICATION_TYPES:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid notification type", "validTypes": list(NOTIFICATION_TYPES)},
        )

    sent = await send_notification(
        db, data.userId, data.notificationType, data.templateVariables, metadata=data.metadata
    )
    return {"success": True, "message": "Notification sent successfully", "sent": sent}
