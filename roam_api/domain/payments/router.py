"""Payments router - Stripe Connect and Plaid endpoints for phase 2 onboarding"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import ensure_business_access, ensure_business_owner, get_current_provider
from ...database import get_db
from ...models import Provider
from .schemas import ConnectAccountCreate, LinkTokenCreate, PublicTokenExchange, VerificationSessionCreate
from .service import PaymentsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Payments"])


def get_payments_service(db: Session = Depends(get_db)) -> PaymentsService:
    """Dependency injection for PaymentsService"""
    return PaymentsService(db)


def ensure_owner_request(provider: Provider, user_id: Optional[str], business_id: Optional[str]) -> None:
    if business_id:
        ensure_business_owner(provider, business_id)
    if user_id and user_id != provider.user_id:
        raise HTTPException(status_code=403, detail="Access denied")


# ============================================================================
# STRIPE CONNECT
# ============================================================================


@router.post("/stripe/create-connect-account")
async def create_connect_account(
    body: ConnectAccountCreate,
    provider: Provider = Depends(get_current_provider),
    service: PaymentsService = Depends(get_payments_service),
):
    """Create an Express account and return the hosted onboarding link"""
    ensure_owner_request(provider, body.userId, body.businessId)
    return await service.create_connect_account(body)


@router.get("/stripe/check-connect-account-status")
async def check_connect_account_status(
    userId: Optional[str] = None,
    businessId: Optional[str] = None,
    provider: Provider = Depends(get_current_provider),
    service: PaymentsService = Depends(get_payments_service),
):
    ensure_owner_request(provider, userId, businessId)
    return await service.check_connect_account_status(userId, businessId)


@router.get("/stripe/check-existing-account")
async def check_existing_account(
    email: Optional[str] = None,
    businessId: Optional[str] = None,
    provider: Provider = Depends(get_current_provider),
    service: PaymentsService = Depends(get_payments_service),
):
    """Existing Connect account for the business or the owner's email, before creating a new one"""
    ensure_owner_request(provider, None, businessId)
    return await service.check_existing_account(email, businessId)


# ============================================================================
# STRIPE IDENTITY
# ============================================================================


@router.post("/stripe/create-verification-session")
async def create_verification_session(
    body: VerificationSessionCreate,
    provider: Provider = Depends(get_current_provider),
    service: PaymentsService = Depends(get_payments_service),
):
    if body.businessId:
        ensure_business_access(provider, body.businessId)
    if body.userId and body.userId != provider.user_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return await service.create_verification_session(body)


@router.get("/stripe/check-verification-status/{session_id}")
async def check_verification_status(
    session_id: str,
    businessId: Optional[str] = None,
    provider: Provider = Depends(get_current_provider),
    service: PaymentsService = Depends(get_payments_service),
):
    """Refresh an Identity session; a verified session marks the business identity as verified"""
    if businessId:
        ensure_business_access(provider, businessId)
    return await service.check_verification_status(session_id, businessId)


# ============================================================================
# PLAID
# ============================================================================


@router.post("/plaid/create-link-token")
async def create_link_token(
    body: LinkTokenCreate,
    provider: Provider = Depends(get_current_provider),
    service: PaymentsService = Depends(get_payments_service),
):
    ensure_owner_request(provider, body.userId, body.businessId)
    return await service.create_link_token(body)


@router.post("/plaid/exchange-public-token")
async def exchange_public_token(
    body: PublicTokenExchange,
    provider: Provider = Depends(get_current_provider),
    service: PaymentsService = Depends(get_payments_service),
):
    ensure_owner_request(provider, body.userId, body.businessId)
    return await service.exchange_public_token(body)


@router.get("/plaid/bank-connection/{business_id}")
async def get_bank_connection(
    business_id: str,
    provider: Provider = Depends(get_current_provider),
    service: PaymentsService = Depends(get_payments_service),
):
    ensure_business_access(provider, business_id)
    return service.get_bank_connection(business_id)
