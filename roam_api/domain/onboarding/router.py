"""Onboarding router - provider signup and phase 1 / phase 2 onboarding"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...auth import AuthUser, get_current_user
from ...database import get_db
from ...rate_limiter import client_ip, create_rate_limiter
from .schemas import BusinessInfoRequest, Phase2TokenRequest, SignupRequest, SubmitApplicationRequest
from .service import OnboardingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Onboarding"])

signup_rate_limit = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="signup")


def get_onboarding_service(db: Session = Depends(get_db)) -> OnboardingService:
    """Dependency injection for OnboardingService"""
    return OnboardingService(db)


def ensure_own_account(user: AuthUser, user_id: str) -> None:
    if user_id and user_id != user.id:
        logger.warning(f"⚠️ User {user.id} attempted onboarding action for {user_id}")
        raise HTTPException(status_code=403, detail="Access denied")


@router.post("/auth/signup", status_code=201)
async def signup(
    body: SignupRequest,
    _: None = Depends(signup_rate_limit),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Create the auth account and owner provider record (phase 1, step 1)"""
    return await service.signup(body)


@router.post("/onboarding/business-info")
async def save_business_info(
    body: BusinessInfoRequest,
    user: AuthUser = Depends(get_current_user),
    service: OnboardingService = Depends(get_onboarding_service),
):
    ensure_own_account(user, body.userId)
    return await service.save_business_info(body)


@router.post("/onboarding/submit-application")
async def submit_application(
    body: SubmitApplicationRequest,
    request: Request,
    user: AuthUser = Depends(get_current_user),
    service: OnboardingService = Depends(get_onboarding_service),
):
    ensure_own_account(user, body.userId)
    return await service.submit_application(
        body, user_agent=request.headers.get("user-agent"), ip_address=client_ip(request)
    )


@router.get("/onboarding/status/{user_id}")
async def get_onboarding_status(
    user_id: str,
    user: AuthUser = Depends(get_current_user),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """Which onboarding phase and step the user should land on"""
    ensure_own_account(user, user_id)
    return await service.get_status(user_id)


@router.post("/onboarding/validate-phase2-token")
async def validate_phase2_token(
    body: Phase2TokenRequest,
    service: OnboardingService = Depends(get_onboarding_service),
):
    return service.validate_phase2_token(body.token)
