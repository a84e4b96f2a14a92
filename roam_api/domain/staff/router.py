"""Staff router - staff invitations and onboarding"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import ensure_business_manager, get_current_provider
from ...database import get_db
from ...models import Provider
from ...rate_limiter import create_rate_limiter
from .schemas import InvitationToken, ManualStaffCreate, StaffInvite, StaffOnboardingComplete
from .service import StaffService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/staff", tags=["Staff"])

invitation_rate_limit = create_rate_limiter(limit=20, window_seconds=900, key_prefix="staff_invitation")


def get_staff_service(db: Session = Depends(get_db)) -> StaffService:
    """Dependency injection for StaffService"""
    return StaffService(db)


@router.post("/create-manual")
async def create_staff_manually(
    body: ManualStaffCreate,
    provider: Provider = Depends(get_current_provider),
    service: StaffService = Depends(get_staff_service),
):
    """Add a staff member directly, with a temporary password when they have no account"""
    if body.businessId:
        ensure_business_manager(provider, body.businessId)
    return await service.create_manual(body)


@router.post("/invite")
async def send_staff_invite(
    body: StaffInvite,
    provider: Provider = Depends(get_current_provider),
    service: StaffService = Depends(get_staff_service),
):
    if body.businessId:
        ensure_business_manager(provider, body.businessId)
    return await service.invite(body, invited_by=provider.user_id)


@router.post("/validate-invitation")
async def validate_staff_invitation(
    body: InvitationToken,
    _: None = Depends(invitation_rate_limit),
    service: StaffService = Depends(get_staff_service),
):
    return service.validate_invitation(body)


@router.post("/complete-onboarding")
async def complete_staff_onboarding(
    body: StaffOnboardingComplete,
    _: None = Depends(invitation_rate_limit),
    service: StaffService = Depends(get_staff_service),
):
    return await service.complete_onboarding(body)
