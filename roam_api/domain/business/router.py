"""Business router - provider portal business settings and reporting"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import ensure_business_access, ensure_business_manager, get_current_provider
from ...database import get_db
from ...models import Provider
from .schemas import BusinessHoursUpdate, DocumentCreate, TaxInfoUpdate
from .service import BusinessService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/business", tags=["Business"])


def get_business_service(db: Session = Depends(get_db)) -> BusinessService:
    """Dependency injection for BusinessService"""
    return BusinessService(db)


# ============================================================================
# HOURS
# ============================================================================


@router.get("/hours")
async def get_business_hours(
    business_id: str,
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    ensure_business_access(provider, business_id)
    return service.get_hours(business_id)


@router.put("/hours")
async def update_business_hours(
    body: BusinessHoursUpdate,
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    if body.business_id:
        ensure_business_manager(provider, body.business_id)
    return service.update_hours(body)


# ============================================================================
# DASHBOARD
# ============================================================================


@router.get("/dashboard-stats")
async def get_dashboard_stats(
    business_id: str,
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    """Booking, staff, service and location counts for the dashboard"""
    ensure_business_access(provider, business_id)
    return service.get_dashboard_stats(business_id, provider.provider_role)


# ============================================================================
# SERVICE ELIGIBILITY
# ============================================================================


@router.get("/service-eligibility")
async def get_service_eligibility(
    business_id: Optional[str] = Query(None),
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    """Approved categories and subcategories with counts"""
    if business_id:
        ensure_business_access(provider, business_id)
    return service.get_service_eligibility(business_id)


# ============================================================================
# DOCUMENTS
# ============================================================================


@router.get("/documents")
async def list_documents(
    business_id: str,
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    ensure_business_access(provider, business_id)
    return service.list_documents(business_id)


@router.post("/documents", status_code=201)
async def add_document(
    body: DocumentCreate,
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    if body.business_id:
        ensure_business_manager(provider, body.business_id)
    return service.add_document(body)


@router.delete("/documents")
async def delete_document(
    business_id: Optional[str] = Query(None),
    document_id: Optional[str] = Query(None),
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    if business_id:
        ensure_business_manager(provider, business_id)
    return service.delete_document(business_id, document_id)


# ============================================================================
# TAX INFO
# ============================================================================


@router.get("/tax-info")
async def get_tax_info(
    business_id: str,
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    ensure_business_access(provider, business_id)
    return service.get_tax_info(business_id)


@router.put("/tax-info")
async def save_tax_info(
    body: TaxInfoUpdate,
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    if body.business_id:
        ensure_business_manager(provider, body.business_id)
    return service.save_tax_info(body)


# ============================================================================
# EARNINGS
# ============================================================================


@router.get("/financial-summary")
async def get_financial_summary(
    business_id: str,
    period: int = 30,
    tax_year: Optional[int] = None,
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    ensure_business_manager(provider, business_id)
    return service.get_financial_summary(business_id, period, tax_year)


@router.get("/transactions-search")
async def search_transactions(
    business_id: str,
    search: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    provider_id: Optional[str] = None,
    service_id: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    provider: Provider = Depends(get_current_provider),
    service: BusinessService = Depends(get_business_service),
):
    ensure_business_manager(provider, business_id)
    return service.search_transactions(
        business_id, search, start_date, end_date, provider_id, service_id, page, limit
    )
