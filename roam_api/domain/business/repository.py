"""Business repository - profile, documents, tax info and payment transactions"""

from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...models import (
    Booking,
    BusinessDocument,
    BusinessLocation,
    BusinessPaymentTransaction,
    BusinessProfile,
    BusinessService,
    BusinessServiceCategory,
    BusinessServiceSubcategory,
    BusinessStripeTaxInfo,
    CustomerProfile,
    Provider,
    Service,
)


class BusinessRepository:
    """Repository for business profile database operations"""

    @staticmethod
    def get_business(db: Session, business_id: str) -> Optional[BusinessProfile]:
        return db.query(BusinessProfile).filter(BusinessProfile.id == business_id).first()

    @staticmethod
    def save(db: Session, instance):
        db.add(instance)
        db.commit()
        db.refresh(instance)
        return instance

    @staticmethod
    def get_owner(db: Session, business_id: str) -> Optional[Provider]:
        return (
            db.query(Provider)
            .filter(Provider.business_id == business_id, Provider.provider_role == "owner")
            .first()
        )

    # ------------------------------------------------------------------
    # Service eligibility
    # ------------------------------------------------------------------

    @staticmethod
    def get_approved_categories(db: Session, business_id: str) -> list[BusinessServiceCategory]:
        return (
            db.query(BusinessServiceCategory)
            .options(joinedload(BusinessServiceCategory.category))
            .filter(BusinessServiceCategory.business_id == business_id, BusinessServiceCategory.is_active.is_(True))
            .order_by(BusinessServiceCategory.created_at.asc())
            .all()
        )

    @staticmethod
    def get_approved_subcategories(db: Session, business_id: str) -> list[BusinessServiceSubcategory]:
        return (
            db.query(BusinessServiceSubcategory)
            .options(joinedload(BusinessServiceSubcategory.subcategory))
            .filter(
                BusinessServiceSubcategory.business_id == business_id,
                BusinessServiceSubcategory.is_active.is_(True),
            )
            .order_by(BusinessServiceSubcategory.created_at.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    @staticmethod
    def get_booking_rows(db: Session, business_id: str) -> list[tuple]:
        return (
            db.query(Booking.booking_status, Booking.total_amount, Booking.provider_id, Booking.booking_date)
            .filter(Booking.business_id == business_id)
            .all()
        )

    @staticmethod
    def get_recent_bookings(db: Session, business_id: str, limit: int = 5) -> list[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.service), joinedload(Booking.customer))
            .filter(Booking.business_id == business_id)
            .order_by(Booking.created_at.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_active_flags(db: Session, model, business_id: str) -> list[bool]:
        """is_active values of a business-owned table (staff, services, locations)"""
        return [row[0] for row in db.query(model.is_active).filter(model.business_id == business_id).all()]

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @staticmethod
    def list_documents(db: Session, business_id: str) -> list[BusinessDocument]:
        return (
            db.query(BusinessDocument)
            .options(joinedload(BusinessDocument.verifier))
            .filter(BusinessDocument.business_id == business_id)
            .order_by(BusinessDocument.created_at.desc())
            .all()
        )

    @staticmethod
    def get_document(db: Session, business_id: str, document_id: str) -> Optional[BusinessDocument]:
        return (
            db.query(BusinessDocument)
            .filter(BusinessDocument.id == document_id, BusinessDocument.business_id == business_id)
            .first()
        )

    @staticmethod
    def delete(db: Session, instance) -> None:
        db.delete(instance)
        db.commit()

    # ------------------------------------------------------------------
    # Tax info
    # ------------------------------------------------------------------

    @staticmethod
    def get_tax_info(db: Session, business_id: str) -> Optional[BusinessStripeTaxInfo]:
        return db.query(BusinessStripeTaxInfo).filter(BusinessStripeTaxInfo.business_id == business_id).first()

    # ------------------------------------------------------------------
    # Payment transactions
    # ------------------------------------------------------------------

    @staticmethod
    def get_transactions_between(
        db: Session, business_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[BusinessPaymentTransaction]:
        """Transactions with start <= payment_date < end"""
        query = (
            db.query(BusinessPaymentTransaction)
            .options(joinedload(BusinessPaymentTransaction.booking).joinedload(Booking.service))
            .filter(BusinessPaymentTransaction.business_id == business_id)
        )
        if start:
            query = query.filter(BusinessPaymentTransaction.payment_date >= start)
        if end:
            query = query.filter(BusinessPaymentTransaction.payment_date < end)
        return query.order_by(
            BusinessPaymentTransaction.payment_date.desc(), BusinessPaymentTransaction.created_at.desc()
        ).all()

    @staticmethod
    def search_transactions(
        db: Session,
        business_id: str,
        start: Optional[date],
        end_exclusive: Optional[date],
        provider_id: Optional[str],
        service_id: Optional[str],
        search: Optional[str],
        offset: int,
        limit: int,
    ) -> tuple[list[BusinessPaymentTransaction], int]:
        """All filters are applied in SQL so totals and pages agree."""
        query = (
            db.query(BusinessPaymentTransaction)
            .outerjoin(Booking, Booking.id == BusinessPaymentTransaction.booking_id)
            .filter(BusinessPaymentTransaction.business_id == business_id)
        )
        if start:
            query = query.filter(BusinessPaymentTransaction.payment_date >= start)
        if end_exclusive:
            query = query.filter(BusinessPaymentTransaction.payment_date < end_exclusive)
        if provider_id:
            query = query.filter(Booking.provider_id == provider_id)
        if service_id:
            query = query.filter(Booking.service_id == service_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = (
                query.outerjoin(CustomerProfile, CustomerProfile.id == Booking.customer_id)
                .outerjoin(Service, Service.id == Booking.service_id)
                .filter(
                    or_(
                        BusinessPaymentTransaction.booking_reference.ilike(pattern),
                        Booking.booking_reference.ilike(pattern),
                        BusinessPaymentTransaction.transaction_description.ilike(pattern),
                        CustomerProfile.first_name.ilike(pattern),
                        CustomerProfile.last_name.ilike(pattern),
                        Service.name.ilike(pattern),
                    )
                )
            )

        total = query.count()
        rows = (
            query.options(
                joinedload(BusinessPaymentTransaction.booking).joinedload(Booking.customer),
                joinedload(BusinessPaymentTransaction.booking).joinedload(Booking.service),
                joinedload(BusinessPaymentTransaction.booking).joinedload(Booking.provider),
            )
            .order_by(BusinessPaymentTransaction.payment_date.desc(), BusinessPaymentTransaction.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total


ACTIVE_FLAG_MODELS = {"staff": Provider, "services": BusinessService, "locations": BusinessLocation}
