"""Conversations router - booking conversation inbox"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import AuthUser, get_current_user
from ...database import get_db
from .schemas import ConversationQuery
from .service import ConversationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Conversations"])


def get_conversation_service(db: Session = Depends(get_db)) -> ConversationService:
    """Dependency injection for ConversationService"""
    return ConversationService(db)


def _ensure_self(user: AuthUser, user_id: Optional[str]) -> None:
    if user_id and user_id != user.id:
        logger.warning(f"⚠️ User {user.id} requested conversations of {user_id}")
        raise HTTPException(status_code=403, detail="Access denied")


@router.get("/conversations-optimized")
async def get_conversations(
    user_id: Optional[str] = None,
    user_type: Optional[str] = None,
    business_id: Optional[str] = None,
    provider_id: Optional[str] = None,
    unread_only: bool = False,
    counts_only: bool = False,
    limit: int = 50,
    offset: int = 0,
    user: AuthUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """Conversations the caller participates in, newest activity first"""
    _ensure_self(user, user_id)
    params = ConversationQuery(
        user_id=user_id,
        user_type=user_type,
        business_id=business_id,
        provider_id=provider_id,
        unread_only=unread_only,
        counts_only=counts_only,
        limit=limit,
        offset=offset,
    )
    return service.list_conversations(params)


@router.post("/conversations-optimized")
async def post_conversations(
    body: ConversationQuery,
    user: AuthUser = Depends(get_current_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """Same listing with a JSON body, or a ``mark_read`` or ``create`` action"""
    _ensure_self(user, body.user_id)
    if body.action == "mark_read":
        return service.mark_read(body.conversation_id, user.id)
    if body.action == "create":
        return service.create_conversation(body.booking_id, body.participants, user.id)
    if body.action:
        raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")
    return service.list_conversations(body)
