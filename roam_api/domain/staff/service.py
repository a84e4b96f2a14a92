"""Staff service - invitations, manual staff accounts and invited staff onboarding"""

import logging
import secrets

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import FRONTEND_URL
from ...email_service import send_staff_invitation_email, send_staff_welcome_email
from ...models import BusinessProfile, Provider
from ...services import identity_service
from ...services.identity_service import SupabaseAdminError
from ...services.token_service import (
    STAFF_INVITATION_TYPE,
    InvalidTokenError,
    create_staff_invitation_token,
    decode_staff_invitation_token,
    staff_onboarding_url,
)
from ...shared.validators import is_valid_email
from .repository import StaffRepository
from .schemas import STAFF_ROLES, InvitationToken, ManualStaffCreate, StaffInvite, StaffOnboardingComplete

logger = logging.getLogger(__name__)

TEMPORARY_PASSWORD_LENGTH = 12
# No look-alike characters (0/O, 1/l/I)
TEMPORARY_PASSWORD_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz23456789!@#$%"
MIN_PASSWORD_LENGTH = 8


def generate_temporary_password(length: int = TEMPORARY_PASSWORD_LENGTH) -> str:
    return "".join(secrets.choice(TEMPORARY_PASSWORD_CHARS) for _ in range(length))


def provider_login_url() -> str:
    return f"{FRONTEND_URL}/provider-login"


class StaffService:
    """Service for staff management business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = StaffRepository

    def _require_business(self, business_id: str) -> BusinessProfile:
        business = self.repo.get_business(self.db, business_id)
        if not business:
            raise HTTPException(status_code=404, detail="Business not found")
        return business

    def _ensure_not_member(self, email: str, business_id: str) -> None:
        existing = self.repo.get_provider_by_email(self.db, email)
        if not existing:
            return
        if existing.business_id == business_id:
            raise HTTPException(status_code=409, detail="User is already a member of this business")
        raise HTTPException(status_code=409, detail="User is already associated with another business")

    @staticmethod
    def _validate_identity_fields(email: str, role: str) -> None:
        if not is_valid_email(email):
            raise HTTPException(status_code=400, detail="Invalid email format")
        if role not in STAFF_ROLES:
            raise HTTPException(status_code=400, detail="Invalid role. Must be provider, dispatcher, or owner")

    # ------------------------------------------------------------------
    # Manual creation
    # ------------------------------------------------------------------

    async def create_manual(self, body: ManualStaffCreate) -> dict:
        if not all([body.businessId, body.firstName, body.lastName, body.email, body.phone, body.role]):
            raise HTTPException(
                status_code=400,
                detail="Missing required fields: businessId, firstName, lastName, email, phone, role",
            )
        self._validate_identity_fields(body.email, body.role)

        email = body.email.strip().lower()
        business = self._require_business(body.businessId)
        self._ensure_not_member(email, body.businessId)

        try:
            existing_user = await identity_service.find_user_by_email(email)
        except SupabaseAdminError as e:
            logger.error(f"❌ Failed to check existing users for {email}: {e}")
            raise HTTPException(status_code=500, detail="Failed to check existing users")

        temporary_password = None
        if existing_user:
            user_id = existing_user["id"]
            logger.info(f"🔍 Reusing existing auth account {user_id} for {email}")
        else:
            temporary_password = generate_temporary_password()
            try:
                user = await identity_service.create_user(
                    email=email,
                    password=temporary_password,
                    user_metadata={
                        "first_name": body.firstName,
                        "last_name": body.lastName,
                        "phone": body.phone,
                        "role": "provider",
                        "must_change_password": True,
                    },
                )
            except SupabaseAdminError as e:
                raise HTTPException(
                    status_code=500, detail={"error": "Failed to create user account", "details": e.message}
                )
            user_id = user["id"]

        provider = Provider(
            user_id=user_id,
            business_id=body.businessId,
            location_id=body.locationId or None,
            first_name=body.firstName,
            last_name=body.lastName,
            email=email,
            phone=body.phone,
            provider_role=body.role,
            verification_status="approved",
            background_check_status="approved",
            is_active=True,
            business_managed=True,
        )
        try:
            self.db.add(provider)
            self.db.commit()
            self.db.refresh(provider)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create provider record for {email}: {e}")
            if temporary_password:
                try:
                    await identity_service.delete_user(user_id)
                except SupabaseAdminError as cleanup_error:
                    logger.error(f"❌ Could not remove auth user {user_id} after failure: {cleanup_error}")
            raise HTTPException(status_code=500, detail="Failed to create provider record")

        email_sent = False
        try:
            await send_staff_welcome_email(
                email, body.firstName, business.business_name, body.role, provider_login_url(), temporary_password
            )
            email_sent = True
        except Exception as e:
            logger.warning(f"⚠️ Staff welcome email failed for {email}: {e}")

        logger.info(f"✅ Staff member {provider.id} ({body.role}) added to {business.business_name}")
        return {
            "success": True,
            "message": (
                "Staff member added successfully (used existing account)"
                if existing_user
                else "Staff member created successfully"
            ),
            "temporaryPassword": temporary_password,
            "existingUser": bool(existing_user),
            "emailSent": email_sent,
            "provider": {
                "id": provider.id,
                "firstName": provider.first_name,
                "lastName": provider.last_name,
                "email": provider.email,
                "role": provider.provider_role,
            },
        }

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def invite(self, body: StaffInvite, invited_by: str) -> dict:
        if not body.businessId or not body.email or not body.role:
            raise HTTPException(status_code=400, detail="Missing required fields: businessId, email, role")
        self._validate_identity_fields(body.email, body.role)

        email = body.email.strip().lower()
        business = self._require_business(body.businessId)
        self._ensure_not_member(email, body.businessId)

        token = create_staff_invitation_token(
            body.businessId, email, body.role, body.locationId, invited_by=body.invitedBy or invited_by
        )
        onboarding_link = staff_onboarding_url(token)

        email_sent = False
        try:
            await send_staff_invitation_email(email, business.business_name, body.role, onboarding_link)
            email_sent = True
            logger.info(f"📧 Staff invitation sent to {email} for {business.business_name}")
        except Exception as e:
            logger.warning(f"⚠️ Staff invitation email failed for {email}: {e}")

        return {
            "success": True,
            "message": "Staff invitation sent successfully",
            "email": email,
            "businessName": business.business_name,
            "role": body.role,
            "onboardingLink": onboarding_link,
            "emailSent": email_sent,
        }

    def _decode_invitation(self, token: str) -> dict:
        try:
            claims = decode_staff_invitation_token(token)
        except InvalidTokenError:
            raise HTTPException(status_code=400, detail="Invalid or expired invitation token")
        if claims.get("type") != STAFF_INVITATION_TYPE:
            raise HTTPException(status_code=400, detail="Invalid invitation token")
        return claims

    def validate_invitation(self, body: InvitationToken) -> dict:
        if not body.token:
            raise HTTPException(status_code=400, detail="Token is required")

        claims = self._decode_invitation(body.token)
        business = self._require_business(claims.get("businessId"))

        location_name = "No specific location"
        if claims.get("locationId"):
            location = self.repo.get_location(self.db, claims["locationId"])
            if location and location.location_name:
                location_name = location.location_name

        return {
            "success": True,
            "invitation": {
                "businessId": business.id,
                "email": claims.get("email"),
                "role": claims.get("role"),
                "locationId": claims.get("locationId") or "",
                "businessName": business.business_name,
                "locationName": location_name,
            },
        }

    # ------------------------------------------------------------------
    # Invited staff onboarding
    # ------------------------------------------------------------------

    async def complete_onboarding(self, body: StaffOnboardingComplete) -> dict:
        if not all([body.token, body.firstName, body.lastName, body.phone, body.password]):
            raise HTTPException(
                status_code=400, detail="Missing required fields: token, firstName, lastName, phone, password"
            )
        if body.confirmPassword is not None and body.password != body.confirmPassword:
            raise HTTPException(status_code=400, detail="Passwords do not match")
        if len(body.password) < MIN_PASSWORD_LENGTH:
            raise HTTPException(status_code=400, detail="Password must be at least 8 characters long")

        claims = self._decode_invitation(body.token)
        business_id = claims.get("businessId")
        email = (claims.get("email") or "").lower()
        role = claims.get("role") or "provider"
        self._require_business(business_id)

        created_user_id = None
        try:
            user = await identity_service.create_user(
                email=email,
                password=body.password,
                user_metadata={"first_name": body.firstName, "last_name": body.lastName, "phone": body.phone},
            )
            user_id = created_user_id = user["id"]
        except SupabaseAdminError as e:
            if not e.is_email_exists:
                raise HTTPException(
                    status_code=500, detail={"error": "Failed to create user account", "details": e.message}
                )
            try:
                existing_user = await identity_service.find_user_by_email(email)
            except SupabaseAdminError as lookup_error:
                raise HTTPException(status_code=500, detail="Failed to fetch existing user") from lookup_error
            if not existing_user:
                raise HTTPException(
                    status_code=400, detail="User exists but could not be found. Please contact support."
                )
            user_id = existing_user["id"]
            logger.info(f"🔍 Invited staff {email} already has auth account {user_id}")

        try:
            provider = self.repo.get_provider_by_email(self.db, email, business_id)
            if not provider:
                provider = Provider(business_id=business_id, email=email)
                self.db.add(provider)
            provider.user_id = user_id
            provider.first_name = body.firstName
            provider.last_name = body.lastName
            provider.phone = body.phone
            provider.bio = body.bio or None
            provider.provider_role = role
            provider.location_id = claims.get("locationId") or None
            provider.verification_status = "approved"
            provider.is_active = True
            provider.business_managed = True
            if body.avatarUrl:
                provider.image_url = body.avatarUrl
            if body.coverImageUrl:
                provider.cover_image_url = body.coverImageUrl
            self.db.flush()

            if role == "provider" and body.selectedServices:
                self.repo.assign_services(self.db, provider.id, body.selectedServices)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save provider for invited staff {email}: {e}")
            if created_user_id:
                try:
                    await identity_service.delete_user(created_user_id)
                except SupabaseAdminError as cleanup_error:
                    logger.error(f"❌ Could not remove auth user {created_user_id}: {cleanup_error}")
            raise HTTPException(status_code=500, detail="Failed to complete onboarding")

        logger.info(f"✅ Staff onboarding complete for {email} (provider {provider.id})")
        return {
            "success": True,
            "message": "Staff onboarding completed successfully",
            "providerId": provider.id,
        }
