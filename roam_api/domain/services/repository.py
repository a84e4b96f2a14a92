"""Service catalogue repository - eligibility, business services and add-ons"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import (
    Booking,
    BusinessAddon,
    BusinessProfile,
    BusinessService,
    BusinessServiceCategory,
    BusinessServiceSubcategory,
    Service,
    ServiceAddon,
    ServiceAddonEligibility,
    ServiceSubcategory,
)

ACTIVE_BOOKING_STATUSES = ("pending", "confirmed", "in_progress")


class ServiceRepository:
    """Repository for service catalogue database operations"""

    @staticmethod
    def get_business(db: Session, business_id: str) -> Optional[BusinessProfile]:
        return db.query(BusinessProfile).filter(BusinessProfile.id == business_id).first()

    @staticmethod
    def get_active_subcategory_links(db: Session, business_id: str) -> list[BusinessServiceSubcategory]:
        return (
            db.query(BusinessServiceSubcategory)
            .filter(
                BusinessServiceSubcategory.business_id == business_id,
                BusinessServiceSubcategory.is_active.is_(True),
            )
            .all()
        )

    @staticmethod
    def get_approved_category_ids(db: Session, business_id: str) -> set[str]:
        rows = (
            db.query(BusinessServiceCategory.category_id)
            .filter(
                BusinessServiceCategory.business_id == business_id,
                BusinessServiceCategory.is_active.is_(True),
            )
            .all()
        )
        return {row[0] for row in rows}

    @staticmethod
    def get_active_services_in_subcategories(db: Session, subcategory_ids: list[str]) -> list[Service]:
        if not subcategory_ids:
            return []
        return (
            db.query(Service)
            .options(joinedload(Service.subcategory).joinedload(ServiceSubcategory.category))
            .filter(Service.subcategory_id.in_(subcategory_ids), Service.is_active.is_(True))
            .order_by(Service.name)
            .all()
        )

    @staticmethod
    def get_business_services_for(db: Session, business_id: str, service_ids: list[str]) -> list[BusinessService]:
        if not service_ids:
            return []
        return (
            db.query(BusinessService)
            .filter(BusinessService.business_id == business_id, BusinessService.service_id.in_(service_ids))
            .all()
        )

    @staticmethod
    def get_service(db: Session, service_id: str) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    # ------------------------------------------------------------------
    # business_services
    # ------------------------------------------------------------------

    @staticmethod
    def list_business_services(
        db: Session, business_id: str, status: Optional[str], offset: int, limit: int
    ) -> tuple[list[BusinessService], int]:
        query = db.query(BusinessService).filter(BusinessService.business_id == business_id)
        if status == "active":
            query = query.filter(BusinessService.is_active.is_(True))
        elif status == "inactive":
            query = query.filter(BusinessService.is_active.is_(False))

        total = query.count()
        rows = (
            query.options(joinedload(BusinessService.service))
            .order_by(BusinessService.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    @staticmethod
    def count_active_business_services(db: Session, business_id: str) -> int:
        return (
            db.query(BusinessService)
            .filter(BusinessService.business_id == business_id, BusinessService.is_active.is_(True))
            .count()
        )

    @staticmethod
    def get_business_service(db: Session, business_id: str, service_id: str) -> Optional[BusinessService]:
        return (
            db.query(BusinessService)
            .filter(BusinessService.business_id == business_id, BusinessService.service_id == service_id)
            .first()
        )

    @staticmethod
    def create_business_service(db: Session, **data) -> BusinessService:
        business_service = BusinessService(**data)
        db.add(business_service)
        db.commit()
        db.refresh(business_service)
        return business_service

    @staticmethod
    def update_business_service(db: Session, business_service: BusinessService, **updates) -> BusinessService:
        for key, value in updates.items():
            setattr(business_service, key, value)
        db.commit()
        db.refresh(business_service)
        return business_service

    @staticmethod
    def count_active_bookings(db: Session, business_id: str, service_id: str) -> int:
        return (
            db.query(Booking)
            .filter(
                Booking.business_id == business_id,
                Booking.service_id == service_id,
                Booking.booking_status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .count()
        )

    @staticmethod
    def delete_business_service(db: Session, business_service: BusinessService) -> None:
        db.delete(business_service)
        db.commit()

    # ------------------------------------------------------------------
    # add-ons
    # ------------------------------------------------------------------

    @staticmethod
    def get_addon_eligibility(db: Session, service_ids: list[str]) -> list[ServiceAddonEligibility]:
        if not service_ids:
            return []
        return (
            db.query(ServiceAddonEligibility)
            .options(
                joinedload(ServiceAddonEligibility.addon),
                joinedload(ServiceAddonEligibility.service).joinedload(Service.subcategory),
            )
            .join(ServiceAddon, ServiceAddon.id == ServiceAddonEligibility.addon_id)
            .filter(ServiceAddonEligibility.service_id.in_(service_ids), ServiceAddon.is_active.is_(True))
            .all()
        )

    @staticmethod
    def get_business_addons(db: Session, business_id: str) -> dict[str, BusinessAddon]:
        rows = db.query(BusinessAddon).filter(BusinessAddon.business_id == business_id).all()
        return {row.addon_id: row for row in rows}
