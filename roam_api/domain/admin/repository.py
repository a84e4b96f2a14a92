"""Admin repository - cross-tenant queries for the admin console"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session, joinedload

from ...models import (
    Announcement,
    ApplicationApproval,
    Booking,
    BusinessPaymentTransaction,
    BusinessProfile,
    BusinessSetupProgress,
    ContactSubmission,
    CustomerProfile,
    PayoutRequest,
    Promotion,
    PromotionUsage,
    Provider,
    ProviderApplication,
    Review,
    Service,
    UserSettings,
)

BOOKING_SORT_FIELDS = {
    "booking_date": Booking.booking_date,
    "created_at": Booking.created_at,
    "total_amount": Booking.total_amount,
    "booking_status": Booking.booking_status,
}
REVIEW_SORT_FIELDS = {
    "created_at": Review.created_at,
    "overall_rating": Review.overall_rating,
    "moderated_at": Review.moderated_at,
}
ANNOUNCEMENT_SORT_FIELDS = {
    "created_at": Announcement.created_at,
    "start_date": Announcement.start_date,
    "priority": Announcement.priority,
    "title": Announcement.title,
}
PROMOTION_SORT_FIELDS = {
    "created_at": Promotion.created_at,
    "start_date": Promotion.start_date,
    "end_date": Promotion.end_date,
    "title": Promotion.title,
}


def apply_sort(query: Query, fields: dict, sort_by: Optional[str], sort_order: Optional[str], default: str) -> Query:
    column = fields.get(sort_by or default, fields[default])
    return query.order_by(column.asc() if sort_order == "asc" else column.desc())


def ilike_any(search: str, *columns):
    pattern = f"%{search}%"
    return or_(*(column.ilike(pattern) for column in columns))


class AdminRepository:
    """Repository for admin console database operations"""

    @staticmethod
    def save(db: Session, instance):
        db.add(instance)
        db.commit()
        db.refresh(instance)
        return instance

    @staticmethod
    def delete(db: Session, instance) -> None:
        db.delete(instance)
        db.commit()

    # ------------------------------------------------------------------
    # Business approval
    # ------------------------------------------------------------------

    @staticmethod
    def get_business(db: Session, business_id: str) -> Optional[BusinessProfile]:
        return db.query(BusinessProfile).filter(BusinessProfile.id == business_id).first()

    @staticmethod
    def get_owner(db: Session, business_id: str) -> Optional[Provider]:
        return (
            db.query(Provider)
            .filter(Provider.business_id == business_id, Provider.provider_role == "owner")
            .first()
        )

    @staticmethod
    def get_application(db: Session, business_id: str) -> Optional[ProviderApplication]:
        return (
            db.query(ProviderApplication)
            .filter(ProviderApplication.business_id == business_id)
            .order_by(ProviderApplication.created_at.desc())
            .first()
        )

    @staticmethod
    def get_or_create_progress(db: Session, business_id: str) -> BusinessSetupProgress:
        progress = db.query(BusinessSetupProgress).filter(BusinessSetupProgress.business_id == business_id).first()
        if not progress:
            progress = BusinessSetupProgress(business_id=business_id)
            db.add(progress)
        return progress

    @staticmethod
    def add_approval(db: Session, approval: ApplicationApproval) -> None:
        db.add(approval)

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    @staticmethod
    def list_bookings(
        db: Session,
        date_from: date,
        date_to: date,
        status: Optional[str] = None,
        provider_id: Optional[str] = None,
        customer_id: Optional[str] = None,
        business_id: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[Booking], int]:
        query = (
            db.query(Booking)
            .outerjoin(CustomerProfile, Booking.customer_id == CustomerProfile.id)
            .outerjoin(Provider, Booking.provider_id == Provider.id)
            .outerjoin(BusinessProfile, Booking.business_id == BusinessProfile.id)
            .outerjoin(Service, Booking.service_id == Service.id)
            .filter(Booking.booking_date >= date_from, Booking.booking_date <= date_to)
        )
        if status and status != "all":
            query = query.filter(Booking.booking_status == status)
        if provider_id:
            query = query.filter(Booking.provider_id == provider_id)
        if customer_id:
            query = query.filter(Booking.customer_id == customer_id)
        if business_id:
            query = query.filter(Booking.business_id == business_id)
        if search:
            query = query.filter(
                ilike_any(
                    search,
                    CustomerProfile.first_name,
                    CustomerProfile.last_name,
                    CustomerProfile.email,
                    Provider.first_name,
                    Provider.last_name,
                    BusinessProfile.business_name,
                    Service.name,
                )
            )

        total = query.count()
        bookings = (
            apply_sort(query, BOOKING_SORT_FIELDS, sort_by, sort_order, "booking_date")
            .options(
                joinedload(Booking.customer),
                joinedload(Booking.provider),
                joinedload(Booking.business),
                joinedload(Booking.service),
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        return bookings, total

    @staticmethod
    def get_bookings_since(
        db: Session, since: datetime, business_id: Optional[str] = None, provider_id: Optional[str] = None
    ) -> list[Booking]:
        query = db.query(Booking).options(joinedload(Booking.service)).filter(Booking.created_at >= since)
        if business_id:
            query = query.filter(Booking.business_id == business_id)
        if provider_id:
            query = query.filter(Booking.provider_id == provider_id)
        return query.all()

    # ------------------------------------------------------------------
    # Customers and providers
    # ------------------------------------------------------------------

    @staticmethod
    def list_customers(db: Session, status: str = "all") -> list[CustomerProfile]:
        query = db.query(CustomerProfile)
        if status != "all":
            query = query.filter(CustomerProfile.is_active.is_(status == "active"))
        return query.order_by(CustomerProfile.created_at.desc()).all()

    @staticmethod
    def get_customer(db: Session, customer_id: str) -> Optional[CustomerProfile]:
        return db.query(CustomerProfile).filter(CustomerProfile.id == customer_id).first()

    @staticmethod
    def get_settings_map(db: Session, user_ids: list[str]) -> dict[str, UserSettings]:
        if not user_ids:
            return {}
        rows = db.query(UserSettings).filter(UserSettings.user_id.in_(user_ids)).all()
        return {row.user_id: row for row in rows}

    @staticmethod
    def list_providers(
        db: Session,
        verification_status: Optional[str] = None,
        background_check_status: Optional[str] = None,
        business_id: Optional[str] = None,
        is_active: Optional[bool] = None,
        provider_role: Optional[str] = None,
    ) -> list[Provider]:
        query = db.query(Provider).options(joinedload(Provider.business))
        if verification_status:
            query = query.filter(Provider.verification_status == verification_status)
        if background_check_status:
            query = query.filter(Provider.background_check_status == background_check_status)
        if business_id:
            query = query.filter(Provider.business_id == business_id)
        if is_active is not None:
            query = query.filter(Provider.is_active.is_(is_active))
        if provider_role:
            query = query.filter(Provider.provider_role == provider_role)
        return query.order_by(Provider.created_at.desc()).all()

    @staticmethod
    def get_provider(db: Session, provider_id: str) -> Optional[Provider]:
        return db.query(Provider).filter(Provider.id == provider_id).first()

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    @staticmethod
    def list_reviews(
        db: Session,
        status: Optional[str] = None,
        rating: Optional[int] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[Review], int]:
        query = db.query(Review)
        if status == "approved":
            query = query.filter(Review.is_approved.is_(True))
        elif status == "unapproved":
            query = query.filter(Review.is_approved.is_(False))
        elif status == "featured":
            query = query.filter(Review.is_featured.is_(True))
        if rating:
            query = query.filter(Review.overall_rating == rating)
        if search:
            query = query.filter(ilike_any(search, Review.review_text, Review.moderation_notes))

        total = query.count()
        reviews = (
            apply_sort(query, REVIEW_SORT_FIELDS, sort_by, sort_order, "created_at")
            .options(
                joinedload(Review.booking).joinedload(Booking.customer),
                joinedload(Review.booking).joinedload(Booking.service),
                joinedload(Review.booking).joinedload(Booking.business),
            )
            .offset(offset)
            .limit(limit)
            .all()
        )
        return reviews, total

    @staticmethod
    def get_review(db: Session, review_id: str) -> Optional[Review]:
        return db.query(Review).filter(Review.id == review_id).first()

    # ------------------------------------------------------------------
    # Announcements
    # ------------------------------------------------------------------

    @staticmethod
    def list_announcements(
        db: Session,
        status: Optional[str] = None,
        target_audience: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[Announcement], int]:
        query = db.query(Announcement)
        if status == "active":
            query = query.filter(Announcement.is_active.is_(True))
        elif status == "inactive":
            query = query.filter(Announcement.is_active.is_(False))
        if target_audience and target_audience != "all":
            query = query.filter(Announcement.target_audience == target_audience)
        if search:
            query = query.filter(ilike_any(search, Announcement.title, Announcement.content))

        total = query.count()
        rows = (
            apply_sort(query, ANNOUNCEMENT_SORT_FIELDS, sort_by, sort_order, "created_at")
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    @staticmethod
    def get_announcement(db: Session, announcement_id: str) -> Optional[Announcement]:
        return db.query(Announcement).filter(Announcement.id == announcement_id).first()

    @staticmethod
    def get_active_announcements(db: Session, target_audience: str, now: datetime) -> list[Announcement]:
        audiences = ["all"] if target_audience == "all" else ["all", target_audience]
        return (
            db.query(Announcement)
            .filter(
                Announcement.is_active.is_(True),
                or_(Announcement.start_date.is_(None), Announcement.start_date <= now),
                or_(Announcement.end_date.is_(None), Announcement.end_date >= now),
                Announcement.target_audience.in_(audiences),
            )
            .order_by(Announcement.created_at.desc())
            .all()
        )

    # ------------------------------------------------------------------
    # Promotions
    # ------------------------------------------------------------------

    @staticmethod
    def list_promotions(
        db: Session,
        status: Optional[str] = None,
        business_id: Optional[str] = None,
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> tuple[list[Promotion], int]:
        query = db.query(Promotion)
        if status == "active":
            query = query.filter(Promotion.is_active.is_(True))
        elif status == "inactive":
            query = query.filter(Promotion.is_active.is_(False))
        if business_id:
            query = query.filter(Promotion.business_id == business_id)
        if search:
            query = query.filter(ilike_any(search, Promotion.title, Promotion.description, Promotion.promo_code))

        total = query.count()
        rows = (
            apply_sort(query, PROMOTION_SORT_FIELDS, sort_by, sort_order, "created_at")
            .options(joinedload(Promotion.business), joinedload(Promotion.service))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    @staticmethod
    def get_promotion(db: Session, promotion_id: str) -> Optional[Promotion]:
        return db.query(Promotion).filter(Promotion.id == promotion_id).first()

    @staticmethod
    def get_promotion_by_code(db: Session, promo_code: str) -> Optional[Promotion]:
        return db.query(Promotion).filter(Promotion.promo_code == promo_code).first()

    @staticmethod
    def get_usage_totals(db: Session, promotion_ids: list[str]) -> dict[str, tuple[int, float]]:
        """promotion_id -> (times used, total discount given)"""
        if not promotion_ids:
            return {}
        rows = (
            db.query(
                PromotionUsage.promotion_id,
                func.count(PromotionUsage.id),
                func.coalesce(func.sum(PromotionUsage.discount_applied), 0),
            )
            .filter(PromotionUsage.promotion_id.in_(promotion_ids))
            .group_by(PromotionUsage.promotion_id)
            .all()
        )
        return {promotion_id: (count, float(total)) for promotion_id, count, total in rows}

    @staticmethod
    def list_promotion_usage(
        db: Session, promotion_id: str, offset: int = 0, limit: int = 50
    ) -> tuple[list[PromotionUsage], int]:
        query = db.query(PromotionUsage).filter(PromotionUsage.promotion_id == promotion_id)
        total = query.count()
        rows = (
            query.options(
                joinedload(PromotionUsage.booking).joinedload(Booking.customer),
                joinedload(PromotionUsage.booking).joinedload(Booking.service),
            )
            .order_by(PromotionUsage.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    # ------------------------------------------------------------------
    # Financial
    # ------------------------------------------------------------------

    @staticmethod
    def get_transactions(db: Session, start: date, end: date, inclusive_end: bool = True):
        query = db.query(BusinessPaymentTransaction).filter(BusinessPaymentTransaction.payment_date >= start)
        if inclusive_end:
            query = query.filter(BusinessPaymentTransaction.payment_date <= end)
        else:
            query = query.filter(BusinessPaymentTransaction.payment_date < end)
        return query.all()

    @staticmethod
    def list_payouts(db: Session, status: str = "all") -> list[PayoutRequest]:
        query = db.query(PayoutRequest).options(joinedload(PayoutRequest.business))
        if status != "all":
            query = query.filter(PayoutRequest.status == status)
        return query.order_by(PayoutRequest.requested_at.desc()).all()

    @staticmethod
    def get_payout(db: Session, payout_id: str) -> Optional[PayoutRequest]:
        return db.query(PayoutRequest).filter(PayoutRequest.id == payout_id).first()

    @staticmethod
    def count_active_subscriptions(db: Session) -> int:
        return db.query(BusinessProfile).filter(BusinessProfile.subscription_status == "active").count()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @staticmethod
    def count_new_users(db: Session, start: datetime, end: datetime) -> int:
        customers = (
            db.query(CustomerProfile)
            .filter(CustomerProfile.created_at >= start, CustomerProfile.created_at < end)
            .count()
        )
        providers = db.query(Provider).filter(Provider.created_at >= start, Provider.created_at < end).count()
        return customers + providers

    @staticmethod
    def get_booking_amounts(db: Session, start: datetime, end: datetime) -> list[float]:
        rows = db.query(Booking.total_amount).filter(Booking.created_at >= start, Booking.created_at < end).all()
        return [amount or 0 for (amount,) in rows]

    @staticmethod
    def get_ratings(db: Session, start: datetime, end: datetime) -> list[int]:
        rows = db.query(Review.overall_rating).filter(Review.created_at >= start, Review.created_at < end).all()
        return [rating or 0 for (rating,) in rows]

    # ------------------------------------------------------------------
    # Contact submissions
    # ------------------------------------------------------------------

    @staticmethod
    def get_contact_submission(db: Session, submission_id: str) -> Optional[ContactSubmission]:
        return db.query(ContactSubmission).filter(ContactSubmission.id == submission_id).first()
