"""Admin domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

ANNOUNCEMENT_AUDIENCES = ("all", "customers", "providers", "businesses", "admin")
ANNOUNCEMENT_PRIORITIES = ("low", "medium", "high", "urgent")
SAVINGS_TYPES = ("percentage_off", "fixed_amount")
REVIEW_ACTIONS = ("approve", "reject", "feature", "unfeature")
PAYOUT_ACTIONS = ("approve", "reject")


# ============================================================================
# Business approval
# ============================================================================


class ApproveBusinessRequest(BaseModel):
    businessId: Optional[str] = None
    approvalNotes: Optional[str] = None
    sendEmail: bool = True


class ApprovalEmailRequest(BaseModel):
    businessName: Optional[str] = None
    contactEmail: Optional[str] = None
    businessId: Optional[str] = None
    approvalNotes: Optional[str] = None
    userId: Optional[str] = None


class RejectionEmailRequest(BaseModel):
    businessName: Optional[str] = None
    contactEmail: Optional[str] = None
    businessId: Optional[str] = None
    rejectionReason: Optional[str] = None
    userId: Optional[str] = None


# ============================================================================
# Users
# ============================================================================


class CustomerUpdate(BaseModel):
    isActive: Optional[bool] = None


class ProviderUpdate(BaseModel):
    """Admin-editable provider columns; only the keys sent are applied"""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    provider_role: Optional[str] = None
    location_id: Optional[str] = None
    verification_status: Optional[str] = None
    background_check_status: Optional[str] = None
    is_active: Optional[bool] = None


# ============================================================================
# Moderation
# ============================================================================


class ReviewUpdate(BaseModel):
    action: Optional[str] = None
    overall_rating: Optional[int] = None
    service_rating: Optional[int] = None
    communication_rating: Optional[int] = None
    punctuality_rating: Optional[int] = None
    review_text: Optional[str] = None
    is_approved: Optional[bool] = None
    is_featured: Optional[bool] = None
    moderation_notes: Optional[str] = None


# ============================================================================
# Content
# ============================================================================


class AnnouncementCreate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    target_audience: str = "all"
    is_active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    priority: str = "medium"
    image_url: Optional[str] = None
    action_button_text: Optional[str] = None
    action_button_url: Optional[str] = None


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    target_audience: Optional[str] = None
    is_active: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    priority: Optional[str] = None
    image_url: Optional[str] = None
    action_button_text: Optional[str] = None
    action_button_url: Optional[str] = None


class PromotionCreate(BaseModel):
    title: Optional[str] = None
    promo_code: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: bool = True
    business_id: Optional[str] = None
    service_id: Optional[str] = None
    image_url: Optional[str] = None
    savings_type: Optional[str] = None
    savings_amount: Optional[float] = None
    savings_max_amount: Optional[float] = None


class PromotionUpdate(BaseModel):
    title: Optional[str] = None
    promo_code: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    business_id: Optional[str] = None
    service_id: Optional[str] = None
    image_url: Optional[str] = None
    savings_type: Optional[str] = None
    savings_amount: Optional[float] = None
    savings_max_amount: Optional[float] = None


# ============================================================================
# Financial and support
# ============================================================================


class PayoutUpdate(BaseModel):
    action: Optional[str] = None
    notes: Optional[str] = None


class ContactReplyRequest(BaseModel):
    submissionId: Optional[str] = None
    replySubject: Optional[str] = None
    replyMessage: Optional[str] = None
