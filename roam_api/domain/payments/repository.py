"""Payments repository - connect accounts, link tokens and bank connections"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    BusinessLocation,
    BusinessProfile,
    BusinessSetupProgress,
    PlaidBankConnection,
    StripeConnectAccount,
    StripeIdentityVerification,
)


class PaymentsRepository:
    """Repository for payout setup database operations"""

    @staticmethod
    def get_business(db: Session, business_id: str) -> Optional[BusinessProfile]:
        return db.query(BusinessProfile).filter(BusinessProfile.id == business_id).first()

    @staticmethod
    def get_primary_location(db: Session, business_id: str) -> Optional[BusinessLocation]:
        return (
            db.query(BusinessLocation)
            .filter(BusinessLocation.business_id == business_id, BusinessLocation.is_primary.is_(True))
            .first()
        )

    @staticmethod
    def get_connect_account(db: Session, business_id: str) -> Optional[StripeConnectAccount]:
        return db.query(StripeConnectAccount).filter(StripeConnectAccount.business_id == business_id).first()

    @staticmethod
    def get_latest_verification(db: Session, user_id: str, business_id: str) -> Optional[StripeIdentityVerification]:
        return (
            db.query(StripeIdentityVerification)
            .filter(StripeIdentityVerification.user_id == user_id, StripeIdentityVerification.business_id == business_id)
            .order_by(StripeIdentityVerification.created_at.desc())
            .first()
        )

    @staticmethod
    def get_verification(db: Session, session_id: str, business_id: str) -> Optional[StripeIdentityVerification]:
        return (
            db.query(StripeIdentityVerification)
            .filter(
                StripeIdentityVerification.session_id == session_id,
                StripeIdentityVerification.business_id == business_id,
            )
            .first()
        )

    @staticmethod
    def get_bank_connection(db: Session, business_id: str) -> Optional[PlaidBankConnection]:
        return db.query(PlaidBankConnection).filter(PlaidBankConnection.business_id == business_id).first()

    @staticmethod
    def get_or_create_progress(db: Session, business_id: str) -> BusinessSetupProgress:
        progress = db.query(BusinessSetupProgress).filter(BusinessSetupProgress.business_id == business_id).first()
        if not progress:
            progress = BusinessSetupProgress(business_id=business_id, phase_1_completed=True)
            db.add(progress)
        return progress
