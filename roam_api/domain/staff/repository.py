"""Staff repository - provider rows and service assignments"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import BusinessLocation, BusinessProfile, Provider, ProviderService


class StaffRepository:
    """Repository for staff database operations"""

    @staticmethod
    def get_business(db: Session, business_id: str) -> Optional[BusinessProfile]:
        return db.query(BusinessProfile).filter(BusinessProfile.id == business_id).first()

    @staticmethod
    def get_location(db: Session, location_id: str) -> Optional[BusinessLocation]:
        return db.query(BusinessLocation).filter(BusinessLocation.id == location_id).first()

    @staticmethod
    def get_provider_by_email(db: Session, email: str, business_id: Optional[str] = None) -> Optional[Provider]:
        query = db.query(Provider).filter(func.lower(Provider.email) == email.lower())
        if business_id:
            query = query.filter(Provider.business_id == business_id)
        return query.first()

    @staticmethod
    def assign_services(db: Session, provider_id: str, service_ids: list[str]) -> None:
        existing = {
            row[0]
            for row in db.query(ProviderService.service_id).filter(ProviderService.provider_id == provider_id).all()
        }
        for service_id in service_ids:
            if service_id not in existing:
                db.add(ProviderService(provider_id=provider_id, service_id=service_id, is_active=True))
