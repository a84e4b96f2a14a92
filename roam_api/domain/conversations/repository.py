"""Conversation repository - participant and metadata queries"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Booking, ConversationMetadata, ConversationParticipant
from .schemas import PROVIDER_SIDE_TYPES


class ConversationRepository:
    """Repository for conversation database operations"""

    @staticmethod
    def get_participations(db: Session, user_id: str, user_type: str) -> list[ConversationParticipant]:
        """Active participations; provider-side roles share one inbox."""
        query = (
            db.query(ConversationParticipant)
            .options(
                joinedload(ConversationParticipant.conversation)
                .joinedload(ConversationMetadata.booking)
                .joinedload(Booking.service),
                joinedload(ConversationParticipant.conversation)
                .joinedload(ConversationMetadata.booking)
                .joinedload(Booking.customer),
                joinedload(ConversationParticipant.conversation)
                .joinedload(ConversationMetadata.booking)
                .joinedload(Booking.provider),
            )
            .filter(ConversationParticipant.user_id == user_id, ConversationParticipant.is_active.is_(True))
        )
        if user_type in PROVIDER_SIDE_TYPES:
            query = query.filter(ConversationParticipant.user_type.in_(PROVIDER_SIDE_TYPES))
        else:
            query = query.filter(ConversationParticipant.user_type == user_type)
        return query.all()

    @staticmethod
    def get_participation(db: Session, conversation_id: str, user_id: str) -> Optional[ConversationParticipant]:
        return (
            db.query(ConversationParticipant)
            .filter(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .first()
        )

    @staticmethod
    def mark_read(db: Session, participant: ConversationParticipant, read_at: datetime) -> ConversationParticipant:
        participant.last_read_at = read_at
        db.commit()
        db.refresh(participant)
        return participant

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_by_booking(db: Session, booking_id: str) -> Optional[ConversationMetadata]:
        return db.query(ConversationMetadata).filter(ConversationMetadata.booking_id == booking_id).first()

    @staticmethod
    def create_conversation(db: Session, booking_id: str, participants: list[tuple[str, str]]) -> ConversationMetadata:
        conversation = ConversationMetadata(booking_id=booking_id, participant_count=len(participants))
        db.add(conversation)
        db.flush()
        for user_id, user_type in participants:
            db.add(ConversationParticipant(conversation_id=conversation.id, user_id=user_id, user_type=user_type))
        db.commit()
        db.refresh(conversation)
        return conversation
