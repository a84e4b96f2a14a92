"""Onboarding repository - applications, setup progress and category links"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    BusinessDocument,
    BusinessLocation,
    BusinessProfile,
    BusinessServiceCategory,
    BusinessServiceSubcategory,
    BusinessSetupProgress,
    ProviderApplication,
    Provider,
    ServiceSubcategory,
    StripeConnectAccount,
)


class OnboardingRepository:
    """Repository for onboarding database operations"""

    @staticmethod
    def get_business(db: Session, business_id: str) -> Optional[BusinessProfile]:
        return db.query(BusinessProfile).filter(BusinessProfile.id == business_id).first()

    @staticmethod
    def get_owner_provider(db: Session, user_id: str, business_id: Optional[str] = None) -> Optional[Provider]:
        query = db.query(Provider).filter(Provider.user_id == user_id, Provider.provider_role == "owner")
        if business_id:
            query = query.filter(Provider.business_id == business_id)
        return query.first()

    @staticmethod
    def get_application(db: Session, business_id: str) -> Optional[ProviderApplication]:
        return (
            db.query(ProviderApplication)
            .filter(ProviderApplication.business_id == business_id)
            .order_by(ProviderApplication.created_at.desc())
            .first()
        )

    @staticmethod
    def get_unlinked_application(db: Session, user_id: str) -> Optional[ProviderApplication]:
        """Draft created at signup, before the business existed"""
        return (
            db.query(ProviderApplication)
            .filter(ProviderApplication.user_id == user_id, ProviderApplication.business_id.is_(None))
            .first()
        )

    @staticmethod
    def get_document_types(db: Session, business_id: str, status: Optional[str] = None) -> set[str]:
        query = db.query(BusinessDocument.document_type).filter(BusinessDocument.business_id == business_id)
        if status:
            query = query.filter(BusinessDocument.verification_status == status)
        return {row[0] for row in query.all()}

    @staticmethod
    def get_setup_progress(db: Session, business_id: str) -> Optional[BusinessSetupProgress]:
        return db.query(BusinessSetupProgress).filter(BusinessSetupProgress.business_id == business_id).first()

    @staticmethod
    def get_stripe_account(db: Session, business_id: str) -> Optional[StripeConnectAccount]:
        return db.query(StripeConnectAccount).filter(StripeConnectAccount.business_id == business_id).first()

    @staticmethod
    def get_primary_location(db: Session, business_id: str) -> Optional[BusinessLocation]:
        return (
            db.query(BusinessLocation)
            .filter(BusinessLocation.business_id == business_id, BusinessLocation.is_primary.is_(True))
            .first()
        )

    @staticmethod
    def get_category_ids(db: Session, business_id: str) -> list[str]:
        rows = (
            db.query(BusinessServiceCategory.category_id)
            .filter(BusinessServiceCategory.business_id == business_id, BusinessServiceCategory.is_active.is_(True))
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def get_subcategory_ids(db: Session, business_id: str) -> list[str]:
        rows = (
            db.query(BusinessServiceSubcategory.subcategory_id)
            .filter(
                BusinessServiceSubcategory.business_id == business_id,
                BusinessServiceSubcategory.is_active.is_(True),
            )
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def replace_categories(db: Session, business_id: str, category_ids: list[str]) -> None:
        db.query(BusinessServiceCategory).filter(BusinessServiceCategory.business_id == business_id).delete()
        for category_id in category_ids:
            db.add(BusinessServiceCategory(business_id=business_id, category_id=category_id, is_active=True))

    @staticmethod
    def replace_subcategories(db: Session, business_id: str, subcategory_ids: list[str]) -> None:
        db.query(BusinessServiceSubcategory).filter(BusinessServiceSubcategory.business_id == business_id).delete()
        if not subcategory_ids:
            return
        subcategories = db.query(ServiceSubcategory).filter(ServiceSubcategory.id.in_(subcategory_ids)).all()
        for subcategory in subcategories:
            db.add(
                BusinessServiceSubcategory(
                    business_id=business_id,
                    category_id=subcategory.category_id,
                    subcategory_id=subcategory.id,
                    is_active=True,
                )
            )
