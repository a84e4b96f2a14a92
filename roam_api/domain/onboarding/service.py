"""Onboarding service - signup, phase 1 application and phase 2 access"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...email_service import send_application_submitted_email
from ...models import (
    BusinessLocation,
    BusinessProfile,
    BusinessSetupProgress,
    ProviderApplication,
    Provider,
    StripeConnectAccount,
)
from ...services import identity_service
from ...services.geocoding_service import geocode_address
from ...services.identity_service import SupabaseAdminError
from ...services.token_service import InvalidTokenError, decode_phase2_token
from ...shared.serialization import row_to_dict
from ...shared.validators import calculate_age, is_valid_email
from .repository import OnboardingRepository
from .schemas import (
    BASE_REQUIRED_DOCUMENTS,
    BusinessInfoRequest,
    SignupRequest,
    SubmitApplicationRequest,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
MIN_PROVIDER_AGE = 18
TOTAL_SETUP_STEPS = 8

SIGNUP_FIELDS = ("email", "password", "firstName", "lastName", "phone", "dateOfBirth")
BUSINESS_FIELDS = ("businessName", "businessType", "contactEmail", "phone")

NEXT_STEPS = {
    "backgroundCheck": "We will initiate a background check within 24 hours",
    "documentReview": "Our team will review your uploaded documents",
    "adminReview": "Admin review typically takes 2-3 business days",
    "approvalNotification": "You will receive an email with a secure link to complete Phase 2 setup",
}


def required_document_types(business_type: Optional[str]) -> list[str]:
    required = list(BASE_REQUIRED_DOCUMENTS)
    if business_type != "sole_proprietorship":
        required.append("business_license")
    return required


def onboarding_step(
    business: BusinessProfile,
    application: Optional[ProviderApplication],
    pending_document_types: set[str],
    stripe_account: Optional[StripeConnectAccount],
) -> tuple[str, str]:
    """
    Work out (phase, current step) for a business.

    Approved businesses are in phase 2 until identity, bank and a Stripe
    account able to charge and pay out are all in place.
    """
    if business.verification_status == "approved":
        if not business.identity_verified:
            return "phase2", "identity_verification"
        if not business.bank_connected:
            return "phase2", "bank_connection"
        if stripe_account and stripe_account.charges_enabled and stripe_account.payouts_enabled:
            return "complete", "complete"
        return "phase2", "stripe_setup"

    if not business.business_name:
        return "phase1", "business_info"
    if not application or application.application_status != "submitted":
        required = required_document_types(business.business_type)
        if not all(doc_type in pending_document_types for doc_type in required):
            return "phase1", "documents"
        return "phase1", "review"
    if business.verification_status == "under_review":
        return "phase1", "submitted"
    return "phase1", "review"


def setup_progress_dict(progress: Optional[BusinessSetupProgress]) -> dict:
    if not progress:
        return {
            "current_step": 1,
            "total_steps": TOTAL_SETUP_STEPS,
            "phase_1_completed": False,
            "phase_2_completed": False,
        }
    return row_to_dict(progress)


class OnboardingService:
    """Service for provider onboarding business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = OnboardingRepository

    # ------------------------------------------------------------------
    # Signup
    # ------------------------------------------------------------------

    async def signup(self, body: SignupRequest) -> dict:
        for field in SIGNUP_FIELDS:
            if not getattr(body, field):
                raise HTTPException(status_code=400, detail=f"Missing required field: {field}")

        if not is_valid_email(body.email):
            raise HTTPException(status_code=400, detail="Invalid email format")
        if len(body.password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(status_code=400, detail="Password must be at least 8 characters long")

        try:
            birth_date = date.fromisoformat(body.dateOfBirth[:10])
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date of birth. Expected YYYY-MM-DD")
        if calculate_age(birth_date) < MIN_PROVIDER_AGE:
            raise HTTPException(
                status_code=400, detail="You must be at least 18 years old to register as a provider"
            )

        email = body.email.strip().lower()
        try:
            user = await identity_service.create_user(
                email=email,
                password=body.password,
                user_metadata={
                    "first_name": body.firstName,
                    "last_name": body.lastName,
                    "phone": body.phone,
                    "date_of_birth": body.dateOfBirth,
                    "onboarding_step": "business_info",
                    "created_at": datetime.utcnow().isoformat(),
                },
            )
        except SupabaseAdminError as e:
            if e.is_email_exists:
                raise HTTPException(
                    status_code=409,
                    detail={"error": "An account with this email already exists", "code": "email_exists"},
                )
            raise HTTPException(
                status_code=400,
                detail={"error": e.message or "Failed to create user account", "code": e.code or "unknown_error"},
            )

        user_id = user.get("id")
        if not user_id:
            raise HTTPException(status_code=500, detail="Failed to create user - no user data returned")

        # The draft application can be recreated later, so it never blocks signup
        try:
            self.db.add(ProviderApplication(user_id=user_id, application_status="draft", review_status="pending"))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Could not create draft application for {user_id}: {e}")

        try:
            self.db.add(
                Provider(
                    user_id=user_id,
                    first_name=body.firstName,
                    last_name=body.lastName,
                    email=email,
                    phone=body.phone,
                    date_of_birth=birth_date,
                    provider_role="owner",
                    verification_status="pending",
                    is_active=False,
                    business_managed=True,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Provider record creation failed for {user_id}: {e}")
            try:
                await identity_service.delete_user(user_id)
            except SupabaseAdminError as cleanup_error:
                logger.error(f"❌ Could not remove orphaned auth user {user_id}: {cleanup_error}")
            raise HTTPException(status_code=500, detail="Failed to create provider record")

        logger.info(f"✅ Provider signup complete for {email}")
        return {
            "success": True,
            "user": {
                "id": user_id,
                "email": user.get("email", email),
                "firstName": body.firstName,
                "lastName": body.lastName,
                "phone": body.phone,
                "dateOfBirth": body.dateOfBirth,
            },
            "message": "Account created successfully",
        }

    # ------------------------------------------------------------------
    # Phase 1 business details
    # ------------------------------------------------------------------

    async def save_business_info(self, body: BusinessInfoRequest) -> dict:
        data = body.businessData
        if not body.userId or not data:
            raise HTTPException(status_code=400, detail="Missing required fields")

        for field in BUSINESS_FIELDS:
            if not getattr(data, field):
                raise HTTPException(status_code=400, detail=f"Missing required field: {field}")
        if not data.serviceCategories:
            raise HTTPException(
                status_code=400,
                detail="Missing required field: serviceCategories. At least one service category must be selected.",
            )

        owner = self.repo.get_owner_provider(self.db, body.userId)
        business = self.repo.get_business(self.db, owner.business_id) if owner and owner.business_id else None

        try:
            if business:
                logger.info(f"🔄 Updating business {business.id} for user {body.userId}")
            else:
                business = BusinessProfile(
                    verification_status="pending",
                    is_active=False,
                    setup_completed=False,
                    business_hours={},
                )
                self.db.add(business)

            business.business_name = data.businessName
            business.business_type = data.businessType
            business.contact_email = data.contactEmail
            business.phone = data.phone
            business.website_url = data.website
            business.business_description = data.businessDescription
            business.setup_step = 1
            self.db.flush()

            self.repo.replace_categories(self.db, business.id, data.serviceCategories)
            self.repo.replace_subcategories(self.db, business.id, data.serviceSubcategories or [])

            location = await self._save_primary_location(business, data.businessAddress)

            if not owner:
                owner = await self._create_owner(body.userId, data)
            owner.business_id = business.id
            owner.email = data.contactEmail
            owner.phone = data.phone
            if location:
                owner.location_id = location.id

            application = self.repo.get_unlinked_application(self.db, body.userId)
            if application:
                application.business_id = business.id

            self.db.commit()
            self.db.refresh(business)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save business info for {body.userId}: {e}")
            raise HTTPException(status_code=500, detail="Failed to save business information")

        logger.info(f"✅ Business info saved: {business.business_name} ({business.id})")
        return {"success": True, "business": row_to_dict(business)}

    async def _save_primary_location(self, business: BusinessProfile, address) -> Optional[BusinessLocation]:
        if not address or not address.addressLine1:
            return None

        location = self.repo.get_primary_location(self.db, business.id)
        if not location:
            location = BusinessLocation(business_id=business.id, location_name="Main Location", is_primary=True)
            self.db.add(location)

        location.address_line1 = address.addressLine1
        location.address_line2 = address.addressLine2
        location.city = address.city
        location.state = address.state
        location.postal_code = address.postalCode
        location.country = address.country or "US"
        location.is_active = True

        coordinates = await geocode_address(
            [
                address.addressLine1,
                address.addressLine2,
                address.city,
                address.state,
                address.postalCode,
                address.country,
            ]
        )
        if coordinates:
            location.latitude, location.longitude = coordinates
            business.latitude, business.longitude = coordinates

        self.db.flush()
        return location

    async def _create_owner(self, user_id: str, data) -> Provider:
        """Owner row for accounts that skipped signup (older accounts)"""
        first_name, last_name = "Provider", ""
        try:
            user = await identity_service.get_user(user_id)
        except SupabaseAdminError as e:
            logger.warning(f"⚠️ Could not load auth user {user_id} for provider names: {e}")
            user = None
        if user:
            metadata = user.get("user_metadata") or {}
            first_name = metadata.get("first_name") or first_name
            last_name = metadata.get("last_name") or last_name

        owner = Provider(
            user_id=user_id,
            first_name=first_name,
            last_name=last_name,
            email=data.contactEmail,
            phone=data.phone,
            provider_role="owner",
            verification_status="pending",
            background_check_status="under_review",
            is_active=False,
            business_managed=True,
        )
        self.db.add(owner)
        return owner

    # ------------------------------------------------------------------
    # Application submission
    # ------------------------------------------------------------------

    async def submit_application(
        self,
        body: SubmitApplicationRequest,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> dict:
        if not body.userId or not body.businessId or not body.finalConsents:
            raise HTTPException(status_code=400, detail="Missing required fields")

        consents = body.finalConsents
        if not (consents.informationAccuracy and consents.termsAccepted and consents.backgroundCheckConsent):
            raise HTTPException(status_code=400, detail="All consents must be given to submit application")

        owner = self.repo.get_owner_provider(self.db, body.userId, body.businessId)
        if not owner:
            raise HTTPException(status_code=404, detail="Business profile not found or not owned by user")

        business = self.repo.get_business(self.db, body.businessId)
        if not business:
            raise HTTPException(status_code=404, detail="Business profile not found")

        application = self.repo.get_application(self.db, body.businessId)
        if application and application.application_status == "submitted":
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "Application already submitted",
                    "applicationId": application.id,
                    "status": application.application_status,
                },
            )

        metadata = body.submissionMetadata or {}
        now = datetime.utcnow()
        uploaded = self.repo.get_document_types(self.db, body.businessId)
        documents_complete = all(t in uploaded for t in required_document_types(business.business_type))

        try:
            if not application:
                application = ProviderApplication(user_id=body.userId, business_id=body.businessId)
                self.db.add(application)
            application.application_status = "submitted"
            application.review_status = "pending"
            application.consents_given = consents.model_dump()
            application.consent_timestamp = now
            application.submission_metadata = {
                "user_agent": user_agent or metadata.get("userAgent"),
                "ip_address": ip_address or metadata.get("ipAddress"),
                "timestamp": now.isoformat(),
            }
            application.submitted_at = now

            business.verification_status = "under_review"
            business.setup_step = 2
            business.application_submitted_at = now

            for provider in business.providers:
                provider.verification_status = "under_review"
                provider.background_check_status = "pending"

            progress = self.repo.get_setup_progress(self.db, body.businessId)
            if not progress:
                progress = BusinessSetupProgress(business_id=body.businessId)
                self.db.add(progress)
            progress.current_step = 2
            progress.total_steps = TOTAL_SETUP_STEPS
            progress.business_profile_completed = True
            progress.documents_completed = documents_complete
            progress.phase_1_completed = True
            progress.phase_1_completed_at = now

            self.db.commit()
            self.db.refresh(application)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to submit application for business {body.businessId}: {e}")
            raise HTTPException(status_code=500, detail="Failed to submit application")

        logger.info(f"✅ Application {application.id} submitted for {business.business_name}")

        recipient = business.contact_email or owner.email
        if recipient:
            try:
                await send_application_submitted_email(recipient, business.business_name, owner.first_name)
                logger.info(f"📧 Application confirmation sent to {recipient}")
            except Exception as e:
                logger.warning(f"⚠️ Application confirmation email failed for {recipient}: {e}")

        return {
            "success": True,
            "applicationId": application.id,
            "submissionDate": application.submitted_at.isoformat(),
            "message": (
                "Application submitted successfully! "
                "You will receive an email within 3-5 business days with next steps."
            ),
            "nextSteps": NEXT_STEPS,
        }

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self, user_id: str) -> dict:
        try:
            user = await identity_service.get_user(user_id)
        except SupabaseAdminError as e:
            raise HTTPException(status_code=502, detail="Failed to load user account") from e
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        owner = self.repo.get_owner_provider(self.db, user_id)
        business = self.repo.get_business(self.db, owner.business_id) if owner and owner.business_id else None
        if not business:
            return {
                "phase": "phase1",
                "currentStep": "signup" if not owner else "business_info",
                "needsOnboarding": True,
                "userData": {"email": user.get("email"), "id": user_id},
            }

        application = self.repo.get_application(self.db, business.id)
        phase, current_step = onboarding_step(
            business,
            application,
            self.repo.get_document_types(self.db, business.id, status="pending"),
            self.repo.get_stripe_account(self.db, business.id),
        )
        if phase == "complete":
            return {
                "phase": "complete",
                "currentStep": "complete",
                "redirectTo": "/provider-dashboard",
                "businessId": business.id,
                "userId": user_id,
            }

        location = self.repo.get_primary_location(self.db, business.id)
        return {
            "phase": phase,
            "currentStep": current_step,
            "businessId": business.id,
            "userId": user_id,
            "userData": {
                "id": user_id,
                "email": user.get("email"),
                "firstName": owner.first_name,
                "lastName": owner.last_name,
                "phone": owner.phone,
            },
            "businessData": {
                "businessName": business.business_name,
                "businessType": business.business_type,
                "contactEmail": business.contact_email,
                "phone": business.phone,
                "serviceCategories": self.repo.get_category_ids(self.db, business.id),
                "serviceSubcategories": self.repo.get_subcategory_ids(self.db, business.id),
                "businessHours": business.business_hours,
                "businessAddress": {
                    "addressLine1": location.address_line1 if location else None,
                    "addressLine2": location.address_line2 if location else None,
                    "city": location.city if location else None,
                    "state": location.state if location else None,
                    "postalCode": location.postal_code if location else None,
                    "country": location.country if location else None,
                },
                "website": business.website_url,
                "businessDescription": business.business_description,
            },
            "applicationStatus": {
                "status": application.application_status if application else "not_submitted",
                "submittedAt": application.submitted_at.isoformat() if application and application.submitted_at else None,
                "reviewStatus": application.review_status if application else None,
            },
            "verificationStatus": {
                "business": business.verification_status,
                "identity": bool(business.identity_verified),
                "background": owner.background_check_status,
            },
            "setupProgress": setup_progress_dict(self.repo.get_setup_progress(self.db, business.id)),
        }

    # ------------------------------------------------------------------
    # Phase 2 entry
    # ------------------------------------------------------------------

    def validate_phase2_token(self, token: Optional[str]) -> dict:
        if not token:
            raise HTTPException(status_code=400, detail="Token required")

        try:
            claims = decode_phase2_token(token)
        except InvalidTokenError as e:
            if "expired" in str(e).lower():
                raise HTTPException(status_code=400, detail="Token expired")
            raise HTTPException(status_code=400, detail="Invalid token format")

        if claims.get("phase") != "phase2":
            raise HTTPException(status_code=400, detail="Invalid token type")

        expires_at = claims.get("expires_at")
        if expires_at and expires_at < datetime.utcnow().timestamp() * 1000:
            raise HTTPException(status_code=400, detail="Token expired")

        business_id = claims.get("business_id")
        business = self.repo.get_business(self.db, business_id) if business_id else None
        if not business:
            raise HTTPException(status_code=400, detail="Business not found")
        if business.verification_status != "approved":
            raise HTTPException(status_code=403, detail="Business has not been approved for phase 2")

        progress = self.repo.get_setup_progress(self.db, business.id)
        if not progress:
            try:
                progress = BusinessSetupProgress(
                    business_id=business.id, current_step=3, phase_1_completed=True
                )
                self.db.add(progress)
                self.db.commit()
                self.db.refresh(progress)
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.warning(f"⚠️ Could not create setup progress for {business.id}, continuing: {e}")
                progress = None

        return {
            "success": True,
            "valid": True,
            "business_id": business.id,
            "user_id": claims.get("user_id"),
            "application_id": claims.get("application_id"),
            "business_name": business.business_name,
            "progress": row_to_dict(progress) if progress else None,
            "can_access_phase2": True,
        }
