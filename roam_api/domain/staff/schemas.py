"""Staff domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel

STAFF_ROLES = ("provider", "dispatcher", "owner")


class ManualStaffCreate(BaseModel):
    businessId: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    locationId: Optional[str] = None


class StaffInvite(BaseModel):
    businessId: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    locationId: Optional[str] = None
    invitedBy: Optional[str] = None


class InvitationToken(BaseModel):
    token: Optional[str] = None


class StaffOnboardingComplete(BaseModel):
    """Profile submitted by an invited staff member from the onboarding link"""

    token: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    confirmPassword: Optional[str] = None
    bio: Optional[str] = None
    avatarUrl: Optional[str] = None
    coverImageUrl: Optional[str] = None
    selectedServices: Optional[list[str]] = None
