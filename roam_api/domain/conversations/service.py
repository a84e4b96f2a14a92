"""Conversation service - inbox listing with unread state"""

import logging
import time
from datetime import datetime
from typing import Optional, Union

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...database import RpcUnavailable, call_rpc
from ...models import ConversationParticipant
from ...shared.pagination import offset_meta
from ...shared.serialization import row_to_dict
from .repository import ConversationRepository
from .schemas import USER_TYPES, ConversationQuery, ParticipantInput

logger = logging.getLogger(__name__)


def _flag(value: Union[bool, str, None]) -> bool:
    return value is True or value == "true"


def _int(value: Union[int, str, None], default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def is_unread(participant: ConversationParticipant) -> bool:
    """A conversation is unread when its last message is newer than the participant's last read."""
    last_message = participant.conversation.last_message_at if participant.conversation else None
    if last_message is None:
        return False
    return participant.last_read_at is None or last_message > participant.last_read_at


def _serialize_conversation(participant: ConversationParticipant) -> dict:
    meta = participant.conversation
    booking = meta.booking
    return {
        "metadataId": meta.id,
        "bookingId": meta.booking_id,
        "twilioConversationSid": meta.twilio_conversation_sid,
        "conversationType": meta.conversation_type,
        "participantCount": meta.participant_count,
        "isActive": meta.is_active,
        "createdAt": meta.created_at.isoformat() if meta.created_at else None,
        "updatedAt": meta.updated_at.isoformat() if meta.updated_at else None,
        "lastMessageAt": meta.last_message_at.isoformat() if meta.last_message_at else None,
        "lastReadAt": participant.last_read_at.isoformat() if participant.last_read_at else None,
        "unreadCount": 1 if is_unread(participant) else 0,
        "lastMessage": None,
        "booking": (
            {
                "id": booking.id,
                "booking_date": booking.booking_date.isoformat() if booking.booking_date else None,
                "booking_status": booking.booking_status,
                "service_name": booking.service.name if booking.service else None,
                "business_id": booking.business_id,
                "customer_profiles": row_to_dict(
                    booking.customer, ("id", "user_id", "first_name", "last_name", "email", "image_url")
                ),
                "providers": row_to_dict(
                    booking.provider,
                    ("id", "user_id", "first_name", "last_name", "email", "provider_role", "image_url"),
                ),
            }
            if booking
            else None
        ),
    }


class ConversationService:
    """Service layer for conversation listing"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ConversationRepository()

    def _visible(self, params: ConversationQuery) -> list[ConversationParticipant]:
        participations = [
            p for p in self.repo.get_participations(self.db, params.user_id, params.user_type) if p.conversation
        ]
        if params.business_id:
            participations = [
                p
                for p in participations
                if p.conversation.booking and p.conversation.booking.business_id == params.business_id
            ]
        if params.provider_id:
            participations = [
                p
                for p in participations
                if p.conversation.booking and p.conversation.booking.provider_id == params.provider_id
            ]
        return participations

    def list_conversations(self, params: ConversationQuery) -> dict:
        started = time.time()
        if not params.user_id or not params.user_type:
            raise HTTPException(status_code=400, detail="user_id and user_type are required")
        if params.user_type not in USER_TYPES:
            raise HTTPException(status_code=400, detail=f"Invalid user_type. Must be one of: {', '.join(USER_TYPES)}")

        limit = min(max(_int(params.limit, 50) or 50, 1), 100)
        offset = max(_int(params.offset, 0), 0)
        unread_only = _flag(params.unread_only)

        if _flag(params.counts_only):
            return self._counts(params, started)

        try:
            results = call_rpc(
                self.db,
                "get_provider_conversations",
                {
                    "p_user_id": params.user_id,
                    "p_user_type": params.user_type,
                    "p_business_id": params.business_id,
                    "p_provider_id": params.provider_id,
                    "p_unread_only": unread_only,
                    "p_limit": limit,
                    "p_offset": offset,
                },
            )
            total = (results[0].get("total_count") if results else 0) or 0
            conversations = [{**row["conversation"], "unreadCount": row.get("unread_count", 0)} for row in results]
            fallback = False
        except RpcUnavailable:
            participations = self._visible(params)
            if unread_only:
                participations = [p for p in participations if is_unread(p)]
            participations.sort(
                key=lambda p: p.conversation.last_message_at or p.conversation.created_at or datetime.min,
                reverse=True,
            )
            total = len(participations)
            conversations = [_serialize_conversation(p) for p in participations[offset : offset + limit]]
            fallback = True

        meta = {
            "query_time_ms": int((time.time() - started) * 1000),
            "user_id": params.user_id,
            "user_type": params.user_type,
            "filters": {
                "business_id": params.business_id,
                "provider_id": params.provider_id,
                "unread_only": unread_only,
            },
        }
        if fallback:
            meta["fallback_mode"] = True
        return {
            "success": True,
            "conversations": conversations,
            "pagination": offset_meta(offset, limit, total, len(conversations)),
            "_meta": meta,
        }

    def _counts(self, params: ConversationQuery, started: float) -> dict:
        try:
            rows = call_rpc(
                self.db,
                "get_conversation_counts",
                {
                    "p_user_id": params.user_id,
                    "p_user_type": params.user_type,
                    "p_business_id": params.business_id,
                },
            )
            counts = rows[0] if rows else {}
            meta = {}
        except RpcUnavailable:
            participations = self._visible(params)
            unread = sum(1 for p in participations if is_unread(p))
            counts = {
                "total_conversations": len(participations),
                "unread_conversations": unread,
                "total_unread_messages": unread,
            }
            meta = {"fallback_mode": True}
        meta["query_time_ms"] = int((time.time() - started) * 1000)
        return {"success": True, "counts": counts, "_meta": meta}

    def mark_read(self, conversation_id: Optional[str], user_id: str) -> dict:
        if not conversation_id:
            raise HTTPException(status_code=400, detail="conversation_id is required")
        participant = self.repo.get_participation(self.db, conversation_id, user_id)
        if not participant:
            raise HTTPException(status_code=404, detail="Conversation not found")
        participant = self.repo.mark_read(self.db, participant, datetime.utcnow())
        logger.info(f"✅ Conversation {conversation_id} marked read for {user_id}")
        return {"success": True, "conversation_id": conversation_id, "last_read_at": participant.last_read_at.isoformat()}

    def create_conversation(
        self, booking_id: Optional[str], participants: Optional[list[ParticipantInput]], user_id: str
    ) -> dict:
        """One conversation per booking; the caller must be one of its participants."""
        if not booking_id:
            raise HTTPException(status_code=400, detail="booking_id is required")
        if not participants:
            raise HTTPException(status_code=400, detail="participants are required")

        members = []
        for participant in participants:
            if not participant.user_id or participant.user_type not in USER_TYPES:
                raise HTTPException(
                    status_code=400,
                    detail=f"Each participant needs a user_id and a user_type of: {', '.join(USER_TYPES)}",
                )
            if (participant.user_id, participant.user_type) not in members:
                members.append((participant.user_id, participant.user_type))
        if user_id not in {member_id for member_id, _ in members}:
            raise HTTPException(status_code=403, detail="Access denied")

        if not self.repo.get_booking(self.db, booking_id):
            raise HTTPException(status_code=404, detail="Booking not found")
        existing = self.repo.get_by_booking(self.db, booking_id)
        if existing:
            raise HTTPException(
                status_code=409,
                detail={"error": "Conversation already exists for this booking", "conversation_id": existing.id},
            )

        try:
            conversation = self.repo.create_conversation(self.db, booking_id, members)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create conversation for booking {booking_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create conversation")

        logger.info(f"✅ Conversation {conversation.id} created for booking {booking_id}")
        return {
            "success": True,
            "conversation": row_to_dict(conversation),
            "participants": [{"user_id": member_id, "user_type": user_type} for member_id, user_type in members],
        }
