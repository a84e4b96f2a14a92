"""Admin service - business approval, bookings oversight, users, reviews and support replies"""

import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...email_service import (
    EmailNotConfigured,
    send_application_rejected_email,
    send_business_approved_email,
    send_contact_reply_email,
)
from ...models import AdminUser, ApplicationApproval, Booking, Review
from ...services import identity_service
from ...services.identity_service import SupabaseAdminError
from ...services.token_service import create_phase2_token, phase2_url, token_expiration
from ...shared.formatting import format_display_date
from ...shared.pagination import clamp_limit, page_meta, page_offset, parse_date_param
from ...shared.serialization import full_name, row_to_dict
from ..staff.schemas import STAFF_ROLES
from .repository import AdminRepository
from .schemas import (
    REVIEW_ACTIONS,
    ApprovalEmailRequest,
    ApproveBusinessRequest,
    ContactReplyRequest,
    CustomerUpdate,
    ProviderUpdate,
    RejectionEmailRequest,
    ReviewUpdate,
)

logger = logging.getLogger(__name__)

EMAIL_NOT_CONFIGURED = "Email service configuration error: RESEND_API_KEY not found"
DEFAULT_LOOKBACK_DAYS = 30
DEFAULT_LOOKAHEAD_DAYS = 365
REVIEW_ACTION_PAST = {"approve": "approved", "reject": "rejected", "feature": "featured", "unfeature": "unfeatured"}


def serialize_admin_booking(booking: Booking) -> dict:
    data = row_to_dict(booking)
    customer = booking.customer
    provider = booking.provider
    data.update(
        {
            "customer_name": full_name(customer.first_name, customer.last_name) if customer else booking.guest_name,
            "customer_email": customer.email if customer else booking.guest_email,
            "provider_name": full_name(provider.first_name, provider.last_name) if provider else None,
            "business_name": booking.business.business_name if booking.business else None,
            "service_name": booking.service.name if booking.service else None,
        }
    )
    return data


def booking_stats(bookings: list[Booking]) -> dict:
    """Totals, status breakdown, revenue and top services for a set of bookings"""
    statuses = Counter(b.booking_status for b in bookings)
    total = len(bookings)
    completed = [b for b in bookings if b.booking_status == "completed"]
    total_revenue = sum(b.total_amount or 0 for b in completed)
    pending_revenue = sum(b.total_amount or 0 for b in bookings if b.booking_status in ("pending", "confirmed"))

    services: dict[str, dict] = {}
    for booking in bookings:
        name = booking.service.name if booking.service else "Unknown Service"
        entry = services.setdefault(name, {"name": name, "booking_count": 0})
        entry["booking_count"] += 1

    return {
        "overall": {
            "total_bookings": total,
            "completed_bookings": statuses["completed"],
            "cancelled_bookings": statuses["cancelled"],
            "pending_bookings": statuses["pending"],
            "completion_rate": round(statuses["completed"] / total * 100) if total else 0,
            "cancellation_rate": round(statuses["cancelled"] / total * 100) if total else 0,
        },
        "status_breakdown": dict(statuses),
        "revenue": {
            "total_revenue": total_revenue,
            "pending_revenue": pending_revenue,
            "average_booking_value": round(total_revenue / len(completed), 2) if completed else 0,
        },
        "popular_services": sorted(services.values(), key=lambda s: s["booking_count"], reverse=True)[:10],
    }


def average_rating(review: Review) -> Optional[str]:
    if not review.overall_rating:
        return None
    overall = review.overall_rating
    ratings = [
        overall,
        review.service_rating or overall,
        review.communication_rating or overall,
        review.punctuality_rating or overall,
    ]
    return f"{sum(ratings) / 4:.1f}"


def serialize_review(review: Review) -> dict:
    data = row_to_dict(review)
    booking = review.booking
    customer = booking.customer if booking else None
    data.update(
        {
            "customer_name": full_name(customer.first_name, customer.last_name, "Unknown Customer")
            if customer
            else "Unknown Customer",
            "service_name": booking.service.name if booking and booking.service else "Unknown Service",
            "business_name": booking.business.business_name
            if booking and booking.business
            else "Unknown Business",
            "average_rating": average_rating(review),
        }
    )
    return data


async def auth_activity(user_ids: list[str]) -> dict[str, dict]:
    """Sign-in email and last sign-in per auth user, from paged user listings indexed by id"""
    wanted = set(user_ids)
    activity = {}
    for page in range(1, identity_service.LIST_USERS_MAX_PAGES + 1):
        if not wanted - activity.keys():
            break
        try:
            users = await identity_service.list_users(page=page)
        except SupabaseAdminError as e:
            logger.warning(f"⚠️ Could not list auth users (page {page}): {e}")
            break
        for user in users:
            if user.get("id") in wanted:
                activity[user["id"]] = {"email": user.get("email"), "last_sign_in_at": user.get("last_sign_in_at")}
        if len(users) < identity_service.LIST_USERS_PAGE_SIZE:
            break
    return activity


class AdminService:
    """Service for admin console business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AdminRepository

    # ------------------------------------------------------------------
    # Business approval
    # ------------------------------------------------------------------

    async def approve_business(self, body: ApproveBusinessRequest, admin: AdminUser) -> dict:
        if not body.businessId:
            raise HTTPException(status_code=400, detail={"error": "Missing required fields", "required": ["businessId"]})

        business = self.repo.get_business(self.db, body.businessId)
        if not business:
            raise HTTPException(
                status_code=404,
                detail={
                    "error": "Business profile not found",
                    "details": f"No business profile found with ID: {body.businessId}",
                },
            )
        owner = self.repo.get_owner(self.db, body.businessId)
        if not owner or not owner.user_id:
            raise HTTPException(
                status_code=500,
                detail={
                    "error": "Missing owner provider",
                    "details": "Cannot generate approval token. Business must have a provider with provider_role = 'owner'.",
                },
            )

        application = self.repo.get_application(self.db, body.businessId)
        application_id = application.id if application else body.businessId
        token = create_phase2_token(body.businessId, owner.user_id, application_id)
        approval_url = phase2_url(token)
        now = datetime.utcnow()

        try:
            business.verification_status = "approved"
            business.is_active = True
            business.approved_at = now
            business.approved_by = admin.user_id
            business.approval_notes = body.approvalNotes
            business.setup_step = 3
            owner.verification_status = "approved"
            owner.is_active = True

            if application:
                application.application_status = "approved"
                application.review_status = "approved"
                application.reviewed_at = now
                application.reviewed_by = admin.user_id
                application.approval_notes = body.approvalNotes
                self.repo.add_approval(
                    self.db,
                    ApplicationApproval(
                        business_id=body.businessId,
                        application_id=application.id,
                        approved_by=admin.user_id,
                        approval_token=token,
                        token_expires_at=token_expiration(now),
                        approval_notes=body.approvalNotes,
                    ),
                )

            progress = self.repo.get_or_create_progress(self.db, body.businessId)
            progress.phase_1_completed = True
            progress.phase_1_completed_at = progress.phase_1_completed_at or now
            progress.current_step = 3
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to approve business {body.businessId}: {e}")
            raise HTTPException(status_code=500, detail="Failed to approve and activate business")

        logger.info(f"✅ Business {business.business_name} ({business.id}) approved by admin {admin.user_id}")

        email_status = {"sent": False}
        if body.sendEmail:
            email_status = await self._send_approval_notice(
                business.business_name, owner, business.contact_email, approval_url, body.approvalNotes
            )

        return {
            "success": True,
            "message": "Application approved successfully",
            "approvalToken": token,
            "approvalUrl": approval_url,
            "approvedAt": now.isoformat(),
            "approvedBy": admin.user_id,
            "emailStatus": email_status,
        }

    async def _send_approval_notice(
        self, business_name: str, owner, contact_email: Optional[str], approval_url: str, notes: Optional[str]
    ) -> dict:
        recipient = owner.email or contact_email
        if not recipient:
            try:
                user = await identity_service.get_user(owner.user_id)
                recipient = user.get("email") if user else None
            except SupabaseAdminError as e:
                logger.warning(f"⚠️ Could not look up auth email for {owner.user_id}: {e}")
        if not recipient:
            logger.warning(f"⚠️ No email address found for owner of {business_name}")
            return {"sent": False, "error": "No email address found for user"}

        try:
            await send_business_approved_email(recipient, business_name, approval_url, notes)
            logger.info(f"📧 Approval email sent to {recipient}")
            return {"sent": True}
        except EmailNotConfigured:
            return {"sent": False, "error": "Resend API key not configured"}
        except Exception as e:
            logger.warning(f"⚠️ Approval email to {recipient} failed: {e}")
            return {"sent": False, "error": str(e)}

    async def send_approval_email(self, body: ApprovalEmailRequest) -> dict:
        if not body.businessName or not body.contactEmail or not body.businessId:
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "Missing required fields: businessName, contactEmail, and businessId are required",
                    "received": {
                        "businessName": bool(body.businessName),
                        "contactEmail": bool(body.contactEmail),
                        "businessId": bool(body.businessId),
                    },
                },
            )

        owner = self.repo.get_owner(self.db, body.businessId)
        owner_user_id = owner.user_id if owner and owner.user_id else body.businessId
        if owner_user_id == body.businessId:
            logger.warning(f"⚠️ No owner provider for {body.businessId}, signing phase 2 link with business id")

        application = self.repo.get_application(self.db, body.businessId)
        link = phase2_url(create_phase2_token(body.businessId, owner_user_id, application.id if application else None))

        try:
            result = await send_business_approved_email(body.contactEmail, body.businessName, link, body.approvalNotes)
        except EmailNotConfigured:
            raise HTTPException(status_code=500, detail=EMAIL_NOT_CONFIGURED)
        except Exception as e:
            raise HTTPException(status_code=500, detail={"error": "Failed to send approval email", "details": str(e)})

        logger.info(f"📧 Approval email for {body.businessName} sent to {body.contactEmail}")
        return {"success": True, "message": "Approval email sent successfully", "emailId": (result or {}).get("id")}

    async def send_rejection_email(self, body: RejectionEmailRequest) -> dict:
        if not body.businessName or not body.contactEmail or not body.businessId or not body.rejectionReason:
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "Missing required fields: businessName, contactEmail, businessId, and rejectionReason are required",
                    "received": {
                        "businessName": bool(body.businessName),
                        "contactEmail": bool(body.contactEmail),
                        "businessId": bool(body.businessId),
                        "rejectionReason": bool(body.rejectionReason),
                    },
                },
            )

        try:
            result = await send_application_rejected_email(body.contactEmail, body.businessName, body.rejectionReason)
        except EmailNotConfigured:
            raise HTTPException(status_code=500, detail=EMAIL_NOT_CONFIGURED)
        except Exception as e:
            raise HTTPException(status_code=500, detail={"error": "Failed to send rejection email", "details": str(e)})

        logger.info(f"📧 Rejection email for {body.businessName} sent to {body.contactEmail}")
        return {"success": True, "message": "Rejection email sent successfully", "emailId": (result or {}).get("id")}

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def list_bookings(
        self,
        booking_status: Optional[str] = None,
        provider_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        business_id: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> dict:
        today = date.today()
        start = parse_date_param(date_from, "date_from") or today - timedelta(days=DEFAULT_LOOKBACK_DAYS)
        end = parse_date_param(date_to, "date_to") or today + timedelta(days=DEFAULT_LOOKAHEAD_DAYS)
        limit = clamp_limit(limit, maximum=200)

        bookings, total = self.repo.list_bookings(
            self.db,
            start,
            end,
            status=booking_status,
            provider_id=provider_id,
            customer_id=customer_id,
            business_id=business_id,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=page_offset(page, limit),
            limit=limit,
        )
        return {
            "data": [serialize_admin_booking(b) for b in bookings],
            "pagination": page_meta(page, limit, total),
            "dateRange": {"from": start.isoformat(), "to": end.isoformat(), "isDefault": not date_from and not date_to},
        }

    def get_booking_stats(
        self, days: int = DEFAULT_LOOKBACK_DAYS, business_id: Optional[str] = None, provider_id: Optional[str] = None
    ) -> dict:
        since = datetime.utcnow() - timedelta(days=days)
        bookings = self.repo.get_bookings_since(self.db, since, business_id=business_id, provider_id=provider_id)
        stats = booking_stats(bookings)
        stats["period_days"] = days
        return {"data": stats}

    # ------------------------------------------------------------------
    # Customers and providers
    # ------------------------------------------------------------------

    async def list_customers(self, status: str = "all") -> dict:
        customers = self.repo.list_customers(self.db, status)
        user_ids = [c.user_id for c in customers if c.user_id]
        settings = self.repo.get_settings_map(self.db, user_ids)
        activity = await auth_activity(user_ids)

        data = []
        for customer in customers:
            row = row_to_dict(customer)
            user_settings = settings.get(customer.user_id)
            auth = activity.get(customer.user_id, {})
            row.update(
                {
                    "email_notifications": user_settings.email_notifications if user_settings else True,
                    "sms_notifications": user_settings.sms_notifications if user_settings else False,
                    "auth_email": auth.get("email"),
                    "last_sign_in_at": auth.get("last_sign_in_at"),
                }
            )
            data.append(row)
        return {"success": True, "data": data}

    def update_customer(self, customer_id: str, body: CustomerUpdate) -> dict:
        if body.isActive is None:
            raise HTTPException(status_code=400, detail="Missing required field: isActive")
        customer = self.repo.get_customer(self.db, customer_id)
        if not customer:
            raise HTTPException(status_code=404, detail="Customer not found")

        customer.is_active = body.isActive
        try:
            self.repo.save(self.db, customer)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update customer {customer_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update customer status")

        action = "activated" if body.isActive else "deactivated"
        logger.info(f"✅ Customer {customer_id} {action}")
        return {"success": True, "message": f"Customer {action} successfully"}

    async def list_providers(
        self,
        verification_status: Optional[str] = None,
        background_check_status: Optional[str] = None,
        business_id: Optional[str] = None,
        is_active: Optional[bool] = None,
        provider_role: Optional[str] = None,
    ) -> dict:
        providers = self.repo.list_providers(
            self.db,
            verification_status=verification_status,
            background_check_status=background_check_status,
            business_id=business_id,
            is_active=is_active,
            provider_role=provider_role,
        )
        activity = await auth_activity([p.user_id for p in providers if p.user_id])

        data = []
        for provider in providers:
            row = row_to_dict(provider)
            auth = activity.get(provider.user_id, {})
            row.update(
                {
                    "business_name": provider.business.business_name if provider.business else None,
                    "auth_email": auth.get("email"),
                    "last_sign_in_at": auth.get("last_sign_in_at"),
                }
            )
            data.append(row)
        return {"success": True, "data": data}

    def update_provider(self, provider_id: str, body: ProviderUpdate) -> dict:
        updates = body.model_dump(exclude_unset=True)
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")
        if "provider_role" in updates and updates["provider_role"] not in STAFF_ROLES:
            raise HTTPException(status_code=400, detail="Invalid role. Must be provider, dispatcher, or owner")

        provider = self.repo.get_provider(self.db, provider_id)
        if not provider:
            raise HTTPException(status_code=404, detail="Provider not found")

        for field, value in updates.items():
            setattr(provider, field, value)
        try:
            self.repo.save(self.db, provider)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update provider {provider_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update provider")

        data = row_to_dict(provider)
        data["business_name"] = provider.business.business_name if provider.business else None
        return {"success": True, "data": data}

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def list_reviews(
        self,
        status: Optional[str] = None,
        rating: Optional[int] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> dict:
        limit = clamp_limit(limit, maximum=200)
        reviews, total = self.repo.list_reviews(
            self.db,
            status=status,
            rating=rating,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=page_offset(page, limit),
            limit=limit,
        )
        return {"data": [serialize_review(r) for r in reviews], "pagination": page_meta(page, limit, total)}

    def update_review(self, review_id: str, body: ReviewUpdate, admin: AdminUser) -> dict:
        review = self.repo.get_review(self.db, review_id)
        if not review:
            raise HTTPException(status_code=404, detail="Review not found")

        updates = body.model_dump(exclude_unset=True, exclude={"action"})
        if body.action is not None:
            if body.action not in REVIEW_ACTIONS:
                raise HTTPException(
                    status_code=400, detail="Invalid action. Must be: approve, reject, feature, or unfeature"
                )
            if body.action in ("approve", "reject"):
                updates["is_approved"] = body.action == "approve"
            else:
                updates["is_featured"] = body.action == "feature"
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update")

        for field in ("overall_rating", "service_rating", "communication_rating", "punctuality_rating"):
            value = updates.get(field)
            if value is not None and not 1 <= value <= 5:
                raise HTTPException(status_code=400, detail="Rating values must be between 1 and 5")

        for field, value in updates.items():
            setattr(review, field, value)
        if body.action is not None or updates.get("is_approved") is not None:
            review.moderated_at = datetime.utcnow()
            review.moderated_by = admin.user_id

        try:
            self.repo.save(self.db, review)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update review {review_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update review")

        result = {"data": row_to_dict(review)}
        if body.action:
            result["message"] = f"Review {REVIEW_ACTION_PAST[body.action]} successfully"
        return result

    def delete_review(self, review_id: str) -> dict:
        review = self.repo.get_review(self.db, review_id)
        if not review:
            raise HTTPException(status_code=404, detail="Review not found")
        try:
            self.repo.delete(self.db, review)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to delete review {review_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to delete review")
        logger.info(f"🗑️ Review {review_id} deleted")
        return {"message": "Review deleted successfully", "id": review_id}

    # ------------------------------------------------------------------
    # Contact submissions
    # ------------------------------------------------------------------

    async def reply_to_contact(self, body: ContactReplyRequest, admin: AdminUser) -> dict:
        if not body.submissionId or not body.replySubject or not body.replyMessage:
            raise HTTPException(
                status_code=400,
                detail="Missing required fields: submissionId, replySubject, and replyMessage are required",
            )

        submission = self.repo.get_contact_submission(self.db, body.submissionId)
        if not submission:
            raise HTTPException(status_code=404, detail="Contact submission not found")

        try:
            result = await send_contact_reply_email(
                to=submission.from_email,
                reply_subject=body.replySubject,
                reply_message=body.replyMessage,
                full_name=submission.full_name,
                original_subject=submission.subject,
                original_message=submission.message,
                submitted_on=format_display_date(submission.created_at, default=""),
            )
        except EmailNotConfigured:
            raise HTTPException(status_code=500, detail=EMAIL_NOT_CONFIGURED)
        except Exception as e:
            raise HTTPException(status_code=500, detail={"error": "Failed to send reply email", "details": str(e)})

        try:
            submission.status = "responded"
            submission.responded_at = datetime.utcnow()
            submission.responded_by = admin.user_id
            submission.notes = f"Reply sent: {body.replySubject}"
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Reply sent but submission {submission.id} not marked responded: {e}")

        logger.info(f"📧 Contact reply sent to {submission.from_email}")
        return {"success": True, "message": "Reply sent successfully", "emailId": (result or {}).get("id")}
