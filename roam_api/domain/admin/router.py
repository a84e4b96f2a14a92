"""Admin router - admin console endpoints, all restricted to active admin users"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...models import AdminUser
from .content_service import ContentService
from .reports_service import ReportsService
from .schemas import (
    AnnouncementCreate,
    AnnouncementUpdate,
    ApprovalEmailRequest,
    ApproveBusinessRequest,
    ContactReplyRequest,
    CustomerUpdate,
    PayoutUpdate,
    PromotionCreate,
    PromotionUpdate,
    ProviderUpdate,
    RejectionEmailRequest,
    ReviewUpdate,
)
from .service import AdminService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


def get_admin_service(db: Session = Depends(get_db)) -> AdminService:
    """Dependency injection for AdminService"""
    return AdminService(db)


def get_content_service(db: Session = Depends(get_db)) -> ContentService:
    """Dependency injection for ContentService"""
    return ContentService(db)


def get_reports_service(db: Session = Depends(get_db)) -> ReportsService:
    """Dependency injection for ReportsService"""
    return ReportsService(db)


# ============================================================================
# BUSINESS APPROVAL
# ============================================================================


@router.post("/approve-business")
async def approve_business(
    body: ApproveBusinessRequest,
    admin: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    """Approve a business, activate its owner and send the phase 2 onboarding link"""
    return await service.approve_business(body, admin)


@router.post("/send-approval-email")
async def send_approval_email(
    body: ApprovalEmailRequest,
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return await service.send_approval_email(body)


@router.post("/send-rejection-email")
async def send_rejection_email(
    body: RejectionEmailRequest,
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return await service.send_rejection_email(body)


# ============================================================================
# BOOKINGS
# ============================================================================


@router.get("/bookings")
async def list_bookings(
    booking_status: Optional[str] = None,
    provider_id: Optional[str] = None,
    customer_id: Optional[str] = None,
    business_id: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = "desc",
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    """All bookings across businesses; defaults to 30 days back and a year ahead"""
    return service.list_bookings(
        booking_status=booking_status,
        provider_id=provider_id,
        customer_id=customer_id,
        business_id=business_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        limit=limit,
        sort_by=sortBy,
        sort_order=sortOrder,
    )


@router.get("/bookings/stats")
async def get_booking_stats(
    days: int = 30,
    business_id: Optional[str] = None,
    provider_id: Optional[str] = None,
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return service.get_booking_stats(days, business_id=business_id, provider_id=provider_id)


# ============================================================================
# CUSTOMERS & PROVIDERS
# ============================================================================


@router.get("/customers")
async def list_customers(
    status: str = "all",
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return await service.list_customers(status)


@router.patch("/customers/{customer_id}")
async def update_customer(
    customer_id: str,
    body: CustomerUpdate,
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return service.update_customer(customer_id, body)


@router.get("/providers")
async def list_providers(
    verification_status: Optional[str] = None,
    background_check_status: Optional[str] = None,
    business_id: Optional[str] = None,
    is_active: Optional[bool] = None,
    provider_role: Optional[str] = None,
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return await service.list_providers(
        verification_status=verification_status,
        background_check_status=background_check_status,
        business_id=business_id,
        is_active=is_active,
        provider_role=provider_role,
    )


@router.patch("/providers/{provider_id}")
async def update_provider(
    provider_id: str,
    body: ProviderUpdate,
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return service.update_provider(provider_id, body)


# ============================================================================
# REVIEWS
# ============================================================================


@router.get("/reviews")
async def list_reviews(
    status: Optional[str] = None,
    rating: Optional[int] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = "desc",
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return service.list_reviews(
        status=status, rating=rating, search=search, page=page, limit=limit, sort_by=sortBy, sort_order=sortOrder
    )


@router.patch("/reviews/{review_id}")
async def update_review(
    review_id: str,
    body: ReviewUpdate,
    admin: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    """Edit a review or moderate it with action approve/reject/feature/unfeature"""
    return service.update_review(review_id, body, admin)


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: str,
    _: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return service.delete_review(review_id)


# ============================================================================
# ANNOUNCEMENTS
# ============================================================================


@router.get("/announcements/active")
async def get_active_announcements(
    target_audience: str = "all",
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.get_active_announcements(target_audience)


@router.get("/announcements")
async def list_announcements(
    status: Optional[str] = None,
    target_audience: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = "desc",
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.list_announcements(
        status=status,
        target_audience=target_audience,
        search=search,
        page=page,
        limit=limit,
        sort_by=sortBy,
        sort_order=sortOrder,
    )


@router.post("/announcements", status_code=201)
async def create_announcement(
    body: AnnouncementCreate,
    admin: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.create_announcement(body, admin)


@router.patch("/announcements/{announcement_id}")
async def update_announcement(
    announcement_id: str,
    body: AnnouncementUpdate,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.update_announcement(announcement_id, body)


@router.delete("/announcements/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.delete_announcement(announcement_id)


@router.post("/announcements/{announcement_id}/publish")
async def publish_announcement(
    announcement_id: str,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.set_announcement_published(announcement_id, True)


@router.post("/announcements/{announcement_id}/unpublish")
async def unpublish_announcement(
    announcement_id: str,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.set_announcement_published(announcement_id, False)


# ============================================================================
# PROMOTIONS
# ============================================================================


@router.get("/promotions")
async def list_promotions(
    status: Optional[str] = None,
    business_id: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    sortBy: Optional[str] = None,
    sortOrder: Optional[str] = "desc",
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.list_promotions(
        status=status,
        business_id=business_id,
        search=search,
        page=page,
        limit=limit,
        sort_by=sortBy,
        sort_order=sortOrder,
    )


@router.post("/promotions", status_code=201)
async def create_promotion(
    body: PromotionCreate,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.create_promotion(body)


@router.patch("/promotions/{promotion_id}")
async def update_promotion(
    promotion_id: str,
    body: PromotionUpdate,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.update_promotion(promotion_id, body)


@router.delete("/promotions/{promotion_id}")
async def delete_promotion(
    promotion_id: str,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.delete_promotion(promotion_id)


@router.post("/promotions/{promotion_id}/activate")
async def activate_promotion(
    promotion_id: str,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.set_promotion_active(promotion_id, True)


@router.post("/promotions/{promotion_id}/deactivate")
async def deactivate_promotion(
    promotion_id: str,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.set_promotion_active(promotion_id, False)


@router.get("/promotions/{promotion_id}/usage")
async def get_promotion_usage(
    promotion_id: str,
    page: int = 1,
    limit: int = 50,
    _: AdminUser = Depends(get_current_admin),
    service: ContentService = Depends(get_content_service),
):
    return service.list_promotion_usage(promotion_id, page, limit)


# ============================================================================
# FINANCIAL & REPORTS
# ============================================================================


@router.get("/financial/stats")
async def get_financial_stats(
    dateRange: int = 30,
    _: AdminUser = Depends(get_current_admin),
    service: ReportsService = Depends(get_reports_service),
):
    return service.get_financial_stats(dateRange)


@router.get("/financial/payouts")
async def list_payouts(
    status: str = "all",
    _: AdminUser = Depends(get_current_admin),
    service: ReportsService = Depends(get_reports_service),
):
    return service.list_payouts(status)


@router.patch("/financial/payouts/{payout_id}")
async def update_payout(
    payout_id: str,
    body: PayoutUpdate,
    _: AdminUser = Depends(get_current_admin),
    service: ReportsService = Depends(get_reports_service),
):
    return service.update_payout(payout_id, body)


@router.get("/financial/revenue")
async def get_revenue(
    days: int = 30,
    _: AdminUser = Depends(get_current_admin),
    service: ReportsService = Depends(get_reports_service),
):
    return service.get_revenue_series(days)


@router.get("/reports/metrics")
async def get_report_metrics(
    dateRange: int = 30,
    _: AdminUser = Depends(get_current_admin),
    service: ReportsService = Depends(get_reports_service),
):
    return service.get_report_metrics(dateRange)


# ============================================================================
# SUPPORT
# ============================================================================


@router.post("/contact-reply")
async def send_contact_reply(
    body: ContactReplyRequest,
    admin: AdminUser = Depends(get_current_admin),
    service: AdminService = Depends(get_admin_service),
):
    return await service.reply_to_contact(body, admin)
