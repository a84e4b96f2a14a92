"""Conversation domain schemas"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

PROVIDER_SIDE_TYPES = ("provider", "owner", "dispatcher")
USER_TYPES = ("customer",) + PROVIDER_SIDE_TYPES


class ParticipantInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    user_type: Optional[str] = Field(None, alias="userType")


class ConversationQuery(BaseModel):
    """List parameters; accepts both snake_case and camelCase keys in POST bodies"""

    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    user_type: Optional[str] = Field(None, alias="userType")
    business_id: Optional[str] = Field(None, alias="businessId")
    provider_id: Optional[str] = Field(None, alias="providerId")
    unread_only: Union[bool, str] = Field(False, alias="unreadOnly")
    counts_only: Union[bool, str] = Field(False, alias="countsOnly")
    limit: Union[int, str] = 50
    offset: Union[int, str] = 0
    action: Optional[str] = None
    conversation_id: Optional[str] = Field(None, alias="conversationId")
    booking_id: Optional[str] = Field(None, alias="bookingId")
    participants: Optional[list[ParticipantInput]] = None
