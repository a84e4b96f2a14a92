"""Payments service - Stripe Connect onboarding and Plaid bank connections"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import APP_URL
from ...models import (
    BusinessProfile,
    PlaidBankConnection,
    PlaidLinkToken,
    StripeConnectAccount,
    StripeIdentityVerification,
)
from ...services import plaid_service, stripe_service
from ...services.plaid_service import PlaidError
from ...services.stripe_service import StripeError
from ...shared.serialization import row_to_dict
from .repository import PaymentsRepository
from .schemas import (
    STRIPE_BUSINESS_TYPES,
    ConnectAccountCreate,
    LinkTokenCreate,
    PublicTokenExchange,
    VerificationSessionCreate,
)

logger = logging.getLogger(__name__)

CONNECT_REQUIRED_FIELDS = ["userId", "businessId", "businessName", "businessType", "email", "country"]
LINK_TOKEN_TTL = timedelta(minutes=30)
VERIFICATION_TYPES = ("document", "id_number")
DOCUMENT_TYPES = ["driving_license", "passport", "id_card"]

BANK_CONNECTION_FIELDS = (
    "id",
    "business_id",
    "institution_id",
    "institution_name",
    "account_name",
    "account_mask",
    "account_type",
    "account_subtype",
    "verification_status",
    "is_active",
    "connected_at",
)


def stripe_setup_url(flag: str) -> str:
    return f"{APP_URL}/provider-onboarding/phase2/stripe-setup?{flag}=true"


def stripe_http_error(error: StripeError) -> HTTPException:
    if error.status_code >= 500:
        return HTTPException(status_code=error.status_code, detail={"error": "Stripe error", "details": error.message})
    return HTTPException(
        status_code=400,
        detail={"error": "Stripe error", "details": error.message, "type": error.error_type, "code": error.code},
    )


def parse_dob(value: str) -> dict:
    try:
        dob = date.fromisoformat(value[:10])
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid dateOfBirth. Expected YYYY-MM-DD")
    return {"day": dob.day, "month": dob.month, "year": dob.year}


def account_requirements(account: dict) -> dict:
    requirements = account.get("requirements") or {}
    return {
        "currently_due": requirements.get("currently_due") or [],
        "eventually_due": requirements.get("eventually_due") or [],
        "past_due": requirements.get("past_due") or [],
        "disabled_reason": requirements.get("disabled_reason"),
    }


def account_summary(account: dict) -> dict:
    return {
        key: account.get(key)
        for key in (
            "id",
            "email",
            "charges_enabled",
            "payouts_enabled",
            "details_submitted",
            "business_type",
            "country",
            "default_currency",
            "capabilities",
        )
    }


def document_options(verification_type: str, options: Optional[dict]) -> Optional[dict]:
    """Document checks default to ID number, live capture and a matching selfie unless disabled."""
    document = (options or {}).get("document")
    if verification_type != "document" or not document:
        return None
    return {
        "document": {
            "allowed_types": document.get("allowed_types") or DOCUMENT_TYPES,
            "require_id_number": document.get("require_id_number") is not False,
            "require_live_capture": document.get("require_live_capture") is not False,
            "require_matching_selfie": document.get("require_matching_selfie") is not False,
        }
    }


class PaymentsService:
    """Service for payout setup business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentsRepository

    def _require_approved_business(self, business_id: str, message: str) -> BusinessProfile:
        business = self.repo.get_business(self.db, business_id)
        if not business:
            raise HTTPException(status_code=404, detail="Business profile not found")
        if business.verification_status != "approved":
            raise HTTPException(
                status_code=403, detail={"error": message, "currentStatus": business.verification_status}
            )
        return business

    # ------------------------------------------------------------------
    # Stripe Connect
    # ------------------------------------------------------------------

    async def create_connect_account(self, body: ConnectAccountCreate) -> dict:
        if any(not getattr(body, field) for field in CONNECT_REQUIRED_FIELDS):
            raise HTTPException(
                status_code=400, detail={"error": "Missing required fields", "required": CONNECT_REQUIRED_FIELDS}
            )
        if body.businessType not in STRIPE_BUSINESS_TYPES:
            raise HTTPException(status_code=400, detail="businessType must be individual or company")
        if body.businessType == "individual" and not (body.firstName and body.lastName and body.dateOfBirth):
            raise HTTPException(
                status_code=400, detail="Individual accounts require firstName, lastName, and dateOfBirth"
            )
        if body.businessType == "company" and not (body.companyName and body.taxId):
            raise HTTPException(status_code=400, detail="Company accounts require companyName and taxId")

        business = self._require_approved_business(
            body.businessId, "Business must be approved before creating Stripe Connect account"
        )
        existing = self.repo.get_connect_account(self.db, body.businessId)
        if existing:
            raise HTTPException(
                status_code=409,
                detail={
                    "error": "Stripe Connect account already exists for this business",
                    "accountId": existing.account_id,
                    "status": "active" if existing.charges_enabled else "pending",
                },
            )

        location = self.repo.get_primary_location(self.db, body.businessId)
        address = {
            "country": body.country,
            "line1": location.address_line1 if location else None,
            "city": location.city if location else None,
            "state": location.state if location else None,
            "postal_code": location.postal_code if location else None,
        }
        individual = company = None
        if body.businessType == "individual":
            individual = {
                "first_name": body.firstName,
                "last_name": body.lastName,
                "email": body.email,
                "phone": body.phone,
                "dob": parse_dob(body.dateOfBirth),
                "ssn_last_4": body.ssnLast4,
                "address": address,
            }
        else:
            company = {"name": body.companyName, "tax_id": body.taxId, "phone": body.phone, "address": address}

        try:
            account = await stripe_service.create_express_account(
                email=body.email,
                country=body.country,
                business_type=body.businessType,
                business_profile={"name": body.businessName, "url": business.website_url},
                individual=individual,
                company=company,
            )
        except StripeError as e:
            raise stripe_http_error(e)

        try:
            self.db.add(
                StripeConnectAccount(
                    user_id=body.userId,
                    business_id=body.businessId,
                    account_id=account["id"],
                    business_type=body.businessType,
                    country=body.country,
                    charges_enabled=account.get("charges_enabled", False),
                    payouts_enabled=account.get("payouts_enabled", False),
                    details_submitted=account.get("details_submitted", False),
                    requirements=account.get("requirements"),
                )
            )
            business.stripe_connect_account_id = account["id"]
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Stripe account {account['id']} created but not stored for {body.businessId}: {e}")

        try:
            link = await stripe_service.create_account_link(
                account["id"], refresh_url=stripe_setup_url("refresh"), return_url=stripe_setup_url("success")
            )
        except StripeError as e:
            raise stripe_http_error(e)

        status = "active" if account.get("charges_enabled") else "pending"
        logger.info(f"✅ Stripe Connect account {account['id']} ({status}) for business {body.businessId}")
        return {
            "success": True,
            "account": {
                "id": account["id"],
                "status": status,
                "charges_enabled": account.get("charges_enabled", False),
                "payouts_enabled": account.get("payouts_enabled", False),
                "details_submitted": account.get("details_submitted", False),
                "requirements": account.get("requirements"),
            },
            "accountLink": {"url": link.get("url"), "expires_at": link.get("expires_at")},
            "message": "Stripe Connect account created successfully",
        }

    async def check_connect_account_status(self, user_id: Optional[str], business_id: Optional[str]) -> dict:
        if not user_id or not business_id:
            raise HTTPException(
                status_code=400,
                detail={"error": "Missing required query parameters", "required": ["userId", "businessId"]},
            )

        connect_account = self.repo.get_connect_account(self.db, business_id)
        if not connect_account:
            raise HTTPException(
                status_code=404,
                detail={
                    "error": "Stripe Connect account not found",
                    "details": "No account found for this user and business",
                },
            )

        try:
            account = await stripe_service.retrieve_account(connect_account.account_id)
        except StripeError as e:
            raise stripe_http_error(e)

        charges_enabled = bool(account.get("charges_enabled"))
        payouts_enabled = bool(account.get("payouts_enabled"))
        details_submitted = bool(account.get("details_submitted"))
        try:
            connect_account.charges_enabled = charges_enabled
            connect_account.payouts_enabled = payouts_enabled
            connect_account.details_submitted = details_submitted
            connect_account.requirements = account.get("requirements")
            connect_account.capabilities = account.get("capabilities")
            business = self.repo.get_business(self.db, business_id)
            if business:
                business.stripe_connect_account_id = connect_account.account_id
            progress = self.repo.get_or_create_progress(self.db, business_id)
            progress.stripe_connected = charges_enabled and payouts_enabled
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Could not sync Stripe account {connect_account.account_id}: {e}")

        status, message = stripe_service.onboarding_status(account)
        requirements = account_requirements(account)
        due_count = len(requirements["currently_due"]) + len(requirements["eventually_due"])
        return {
            "success": True,
            "account": {
                "id": account.get("id"),
                "status": status,
                "charges_enabled": charges_enabled,
                "payouts_enabled": payouts_enabled,
                "details_submitted": details_submitted,
                "country": account.get("country"),
                "default_currency": account.get("default_currency"),
                "business_type": account.get("business_type"),
                "capabilities": account.get("capabilities"),
                "requirements": requirements,
                "needs_verification": len(requirements["eventually_due"]) > 0,
                "verification_progress": {
                    "total_requirements": due_count,
                    "completed_requirements": due_count if details_submitted else 0,
                },
            },
            "onboarding_message": message,
            "can_accept_payments": charges_enabled,
            "can_receive_payouts": payouts_enabled,
        }

    async def check_existing_account(self, email: Optional[str], business_id: Optional[str]) -> dict:
        """Look for a Connect account already linked to the business, then for one registered to the email"""
        if not email or not business_id:
            raise HTTPException(
                status_code=400,
                detail={"error": "Missing required query parameters", "required": ["email", "businessId"]},
            )

        linked = self.repo.get_connect_account(self.db, business_id)
        if linked:
            try:
                account = await stripe_service.retrieve_account(linked.account_id)
                return {
                    "found": True,
                    "source": "database",
                    "account": account_summary(account),
                    "linked": True,
                    "message": "Stripe account already linked to this business",
                }
            except StripeError as e:
                logger.warning(f"⚠️ Stored Stripe account {linked.account_id} no longer retrievable: {e.message}")

        try:
            accounts = await stripe_service.list_accounts()
        except StripeError as e:
            logger.warning(f"⚠️ Could not search Stripe accounts for {email}: {e.message}")
            return {
                "found": False,
                "source": None,
                "account": None,
                "linked": False,
                "message": "Unable to search for existing accounts. Will create new account.",
                "searchError": True,
            }

        matches = [a for a in accounts if (a.get("email") or "").lower() == email.lower()]
        if not matches:
            return {
                "found": False,
                "source": None,
                "account": None,
                "linked": False,
                "message": "No existing Stripe account found. A new account will be created.",
            }

        logger.info(f"🔍 Found {len(matches)} Stripe account(s) for {email}")
        return {
            "found": True,
            "source": "stripe",
            "account": {**account_summary(matches[0]), "created": matches[0].get("created")},
            "linked": False,
            "multiple": len(matches) > 1,
            "count": len(matches),
            "message": (
                f"Found {len(matches)} accounts with this email. Showing the most recent."
                if len(matches) > 1
                else "Found existing Stripe account with this email"
            ),
        }

    # ------------------------------------------------------------------
    # Stripe Identity
    # ------------------------------------------------------------------

    async def create_verification_session(self, body: VerificationSessionCreate) -> dict:
        if not body.userId or not body.businessId:
            raise HTTPException(status_code=400, detail="Missing userId or businessId")
        if body.type not in VERIFICATION_TYPES:
            raise HTTPException(status_code=400, detail="type must be document or id_number")

        # Identity can be verified before the business is approved
        business = self.repo.get_business(self.db, body.businessId)
        if not business:
            raise HTTPException(status_code=404, detail="Business profile not found")

        existing = self.repo.get_latest_verification(self.db, body.userId, body.businessId)
        if existing and existing.status == "verified":
            return {
                "verification_session": {
                    "id": existing.session_id,
                    "client_secret": None,
                    "status": existing.status,
                    "last_verification_report": existing.verification_report,
                },
                "message": "Identity already verified",
            }

        try:
            session = await stripe_service.create_verification_session(
                body.type,
                metadata={
                    "user_id": body.userId,
                    "business_id": body.businessId,
                    "business_name": business.business_name,
                },
                options=document_options(body.type, body.options),
            )
        except StripeError as e:
            raise stripe_http_error(e)

        try:
            self.db.add(
                StripeIdentityVerification(
                    user_id=body.userId,
                    business_id=body.businessId,
                    session_id=session["id"],
                    status=session.get("status"),
                    type=session.get("type"),
                    client_secret=session.get("client_secret"),
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Identity session {session['id']} created but not stored: {e}")

        return {
            "verification_session": {
                "id": session["id"],
                "client_secret": session.get("client_secret"),
                "status": session.get("status"),
                "type": session.get("type"),
                "created": session.get("created"),
            }
        }

    async def check_verification_status(self, session_id: str, business_id: Optional[str]) -> dict:
        if not business_id:
            raise HTTPException(status_code=400, detail="Missing or invalid businessId")

        try:
            session = await stripe_service.retrieve_verification_session(session_id)
        except StripeError as e:
            if e.error_type == "invalid_request_error":
                raise HTTPException(
                    status_code=400,
                    detail={
                        "error": "Invalid verification session",
                        "details": e.message,
                        "type": e.error_type,
                        "code": e.code,
                    },
                )
            raise stripe_http_error(e)

        status = session.get("status")
        try:
            record = self.repo.get_verification(self.db, session_id, business_id)
            if record:
                record.status = status
                if session.get("last_verification_report"):
                    record.verification_report = session["last_verification_report"]
                if session.get("last_error"):
                    record.last_error = session["last_error"]

            if status == "verified":
                business = self.repo.get_business(self.db, business_id)
                if business:
                    business.identity_verified = True
                    business.identity_verified_at = datetime.utcnow()
                self.repo.get_or_create_progress(self.db, business_id).identity_verification_completed = True
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Could not record identity status {status} for business {business_id}: {e}")

        if status == "verified":
            logger.info(f"✅ Identity verified for business {business_id}")
        return {
            "verification_session": {
                "id": session.get("id"),
                "status": status,
                "type": session.get("type"),
                "last_error": session.get("last_error"),
                "last_verification_report": session.get("last_verification_report"),
                "created": session.get("created"),
                "verified_outputs": session.get("verified_outputs"),
            }
        }

    # ------------------------------------------------------------------
    # Plaid
    # ------------------------------------------------------------------

    async def create_link_token(self, body: LinkTokenCreate) -> dict:
        if not body.userId or not body.businessId:
            raise HTTPException(status_code=400, detail="Missing userId or businessId")
        self._require_approved_business(body.businessId, "Business must be approved before connecting a bank account")

        try:
            data = await plaid_service.create_link_token(body.userId)
        except PlaidError as e:
            raise HTTPException(
                status_code=e.status_code, detail={"error": "Failed to create link token", "details": e.message}
            )

        try:
            self.db.add(
                PlaidLinkToken(
                    user_id=body.userId,
                    business_id=body.businessId,
                    link_token=data["link_token"],
                    expires_at=datetime.utcnow() + LINK_TOKEN_TTL,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Could not store Plaid link token for {body.businessId}: {e}")

        return {"success": True, "link_token": data["link_token"], "expiration": data.get("expiration")}

    async def exchange_public_token(self, body: PublicTokenExchange) -> dict:
        if not body.public_token or not body.account_id or not body.userId or not body.businessId:
            raise HTTPException(status_code=400, detail="Missing required fields")

        business = self.repo.get_business(self.db, body.businessId)
        if not business:
            raise HTTPException(status_code=404, detail="Business profile not found")

        try:
            access_token, item_id = await plaid_service.exchange_public_token(body.public_token)
            auth = await plaid_service.get_auth(access_token)
        except PlaidError as e:
            raise HTTPException(
                status_code=e.status_code, detail={"error": "Failed to connect bank account", "details": e.message}
            )

        selected = next((a for a in auth.get("accounts", []) if a.get("account_id") == body.account_id), None)
        if not selected:
            raise HTTPException(status_code=400, detail="Selected account not found")

        ach_numbers = (auth.get("numbers") or {}).get("ach") or []
        routing_numbers = [n.get("routing") for n in ach_numbers if n.get("account_id") == body.account_id]
        institution = (body.metadata or {}).get("institution") or {}

        try:
            connection = self.repo.get_bank_connection(self.db, body.businessId)
            if not connection:
                connection = PlaidBankConnection(business_id=body.businessId)
                self.db.add(connection)
            connection.user_id = body.userId
            connection.plaid_access_token = plaid_service.encrypt_access_token(access_token)
            connection.plaid_item_id = item_id
            connection.plaid_account_id = body.account_id
            connection.institution_id = institution.get("institution_id")
            connection.institution_name = institution.get("name")
            connection.account_name = selected.get("name")
            connection.account_mask = selected.get("mask")
            connection.account_type = selected.get("type")
            connection.account_subtype = selected.get("subtype")
            connection.routing_numbers = routing_numbers
            connection.verification_status = "verified"
            connection.is_active = True
            connection.connected_at = datetime.utcnow()

            business.bank_connected = True
            business.bank_connected_at = datetime.utcnow()
            self.repo.get_or_create_progress(self.db, body.businessId).plaid_connected = True

            self.db.commit()
            self.db.refresh(connection)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store bank connection for {body.businessId}: {e}")
            raise HTTPException(status_code=500, detail="Failed to save bank connection")

        logger.info(f"✅ Bank account ****{selected.get('mask')} connected for business {body.businessId}")
        return {
            "success": True,
            "message": "Bank account connected successfully",
            "connection": row_to_dict(connection, BANK_CONNECTION_FIELDS),
        }

    def get_bank_connection(self, business_id: str) -> dict:
        connection = self.repo.get_bank_connection(self.db, business_id)
        if not connection or not connection.is_active:
            return {"success": True, "connected": False, "connection": None}
        return {"success": True, "connected": True, "connection": row_to_dict(connection, BANK_CONNECTION_FIELDS)}
