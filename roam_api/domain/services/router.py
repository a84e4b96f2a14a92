"""Services router - catalogue endpoints for the provider portal"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import ensure_business_access, ensure_business_manager, get_current_provider
from ...database import get_db
from ...models import Provider
from .schemas import BusinessServiceCreate, BusinessServiceUpdate
from .service import CatalogueService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Services"])


def get_catalogue_service(db: Session = Depends(get_db)) -> CatalogueService:
    """Dependency injection for CatalogueService"""
    return CatalogueService(db)


# ============================================================================
# ELIGIBLE CATALOGUE
# ============================================================================


@router.get("/services-optimized")
async def get_services_optimized(
    business_id: str,
    search: Optional[str] = None,
    status: Optional[str] = None,
    category_id: Optional[str] = None,
    subcategory_id: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
    provider: Provider = Depends(get_current_provider),
    service: CatalogueService = Depends(get_catalogue_service),
):
    """Eligible services for a business with configuration status and stats"""
    ensure_business_access(provider, business_id)
    return service.get_eligible_services(business_id, search, status, category_id, subcategory_id, limit, offset)


@router.get("/business-eligible-addons")
async def get_business_eligible_addons(
    business_id: str,
    provider: Provider = Depends(get_current_provider),
    service: CatalogueService = Depends(get_catalogue_service),
):
    """Add-ons a business may offer based on its approved categories"""
    ensure_business_access(provider, business_id)
    return service.get_eligible_addons(business_id)


# ============================================================================
# BUSINESS SERVICES
# ============================================================================


@router.get("/business/services")
async def list_business_services(
    business_id: str,
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 25,
    provider: Provider = Depends(get_current_provider),
    service: CatalogueService = Depends(get_catalogue_service),
):
    ensure_business_access(provider, business_id)
    return service.list_business_services(business_id, status, page, limit)


@router.post("/business/services")
async def add_business_service(
    body: BusinessServiceCreate,
    provider: Provider = Depends(get_current_provider),
    service: CatalogueService = Depends(get_catalogue_service),
):
    if body.business_id:
        ensure_business_manager(provider, body.business_id)
    return service.add_business_service(body)


@router.put("/business/services")
async def update_business_service(
    body: BusinessServiceUpdate,
    provider: Provider = Depends(get_current_provider),
    service: CatalogueService = Depends(get_catalogue_service),
):
    if body.business_id:
        ensure_business_manager(provider, body.business_id)
    return service.update_business_service(body)


@router.delete("/business/services")
async def remove_business_service(
    business_id: Optional[str] = Query(None),
    service_id: Optional[str] = Query(None),
    provider: Provider = Depends(get_current_provider),
    service: CatalogueService = Depends(get_catalogue_service),
):
    if business_id:
        ensure_business_manager(provider, business_id)
    return service.remove_business_service(business_id, service_id)
