import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    return str(uuid.uuid4())


# ============================================================================
# Platform users
# ============================================================================


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), unique=True, index=True, nullable=False)  # auth.users.id
    email = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(50), default="admin")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class CustomerProfile(Base):
    __tablename__ = "customer_profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), unique=True, index=True, nullable=True)
    email = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    image_url = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    email_verified = Column(Boolean, default=False)
    phone_verified = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class CustomerLocation(Base):
    __tablename__ = "customer_locations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    customer_id = Column(String(36), ForeignKey("customer_profiles.id"), index=True)
    location_name = Column(String(255), nullable=True)
    street_address = Column(String(255), nullable=True)
    unit_number = Column(String(50), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)
    is_primary = Column(Boolean, default=False)
    created_at = Column(DateTime, server_default=func.now())


class UserSettings(Base):
    """Per-user notification preferences. Type flags are ``{template_key}_{channel}``."""

    __tablename__ = "user_settings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), unique=True, index=True, nullable=False)
    email_notifications = Column(Boolean, default=True)
    sms_notifications = Column(Boolean, default=False)
    notification_email = Column(String(255), nullable=True)
    notification_phone = Column(String(50), nullable=True)
    quiet_hours_enabled = Column(Boolean, default=False)
    quiet_hours_start = Column(String(8), nullable=True)  # "22:00"
    quiet_hours_end = Column(String(8), nullable=True)  # "07:00"
    customer_booking_accepted_email = Column(Boolean, nullable=True)
    customer_booking_accepted_sms = Column(Boolean, nullable=True)
    customer_booking_completed_email = Column(Boolean, nullable=True)
    customer_booking_completed_sms = Column(Boolean, nullable=True)
    customer_booking_declined_email = Column(Boolean, nullable=True)
    customer_booking_declined_sms = Column(Boolean, nullable=True)
    customer_booking_reminder_email = Column(Boolean, nullable=True)
    customer_booking_reminder_sms = Column(Boolean, nullable=True)
    provider_new_booking_email = Column(Boolean, nullable=True)
    provider_new_booking_sms = Column(Boolean, nullable=True)
    provider_booking_cancelled_email = Column(Boolean, nullable=True)
    provider_booking_cancelled_sms = Column(Boolean, nullable=True)
    business_new_booking_email = Column(Boolean, nullable=True)
    business_new_booking_sms = Column(Boolean, nullable=True)
    admin_business_verification_email = Column(Boolean, nullable=True)
    admin_business_verification_sms = Column(Boolean, nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


# ============================================================================
# Businesses and staff
# ============================================================================


class BusinessProfile(Base):
    __tablename__ = "business_profiles"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_name = Column(String(255), nullable=False)
    business_type = Column(String(50), nullable=True)  # sole_proprietorship, llc, ...
    business_description = Column(Text, nullable=True)
    contact_email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    website_url = Column(String(500), nullable=True)
    logo_url = Column(String(500), nullable=True)
    verification_status = Column(String(50), default="pending")  # pending, under_review, approved, rejected
    is_active = Column(Boolean, default=False)
    setup_completed = Column(Boolean, default=False)
    setup_step = Column(Integer, default=0)
    business_hours = Column(JSON, nullable=True)
    identity_verified = Column(Boolean, default=False)
    identity_verified_at = Column(DateTime, nullable=True)
    bank_connected = Column(Boolean, default=False)
    bank_connected_at = Column(DateTime, nullable=True)
    stripe_connect_account_id = Column(String(255), nullable=True)
    subscription_status = Column(String(50), nullable=True)
    application_submitted_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String(36), nullable=True)
    approval_notes = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    providers = relationship("Provider", back_populates="business")
    locations = relationship("BusinessLocation", back_populates="business")


class BusinessLocation(Base):
    __tablename__ = "business_locations"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    location_name = Column(String(255), nullable=True)
    address_line1 = Column(String(255), nullable=True)
    address_line2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(50), default="US")
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_primary = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    business = relationship("BusinessProfile", back_populates="locations")


class Provider(Base):
    __tablename__ = "providers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), index=True, nullable=True)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True, nullable=True)
    location_id = Column(String(36), ForeignKey("business_locations.id"), nullable=True)
    email = Column(String(255), index=True, nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    bio = Column(Text, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    image_url = Column(String(500), nullable=True)
    cover_image_url = Column(String(500), nullable=True)
    provider_role = Column(String(20), default="provider")  # owner, dispatcher, provider
    verification_status = Column(String(50), default="pending")
    background_check_status = Column(String(50), default="pending")
    is_active = Column(Boolean, default=False)
    business_managed = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    business = relationship("BusinessProfile", back_populates="providers")


class ProviderApplication(Base):
    __tablename__ = "provider_applications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), index=True, nullable=False)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True, nullable=True)
    application_status = Column(String(50), default="draft")  # draft, submitted, approved, rejected
    review_status = Column(String(50), nullable=True)
    consents_given = Column(JSON, nullable=True)
    consent_timestamp = Column(DateTime, nullable=True)
    submission_metadata = Column(JSON, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String(36), nullable=True)
    approval_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class ApplicationApproval(Base):
    __tablename__ = "application_approvals"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    application_id = Column(String(36), ForeignKey("provider_applications.id"))
    approved_by = Column(String(36), nullable=True)
    approval_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)
    approval_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class BusinessSetupProgress(Base):
    __tablename__ = "business_setup_progress"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), unique=True, index=True)
    current_step = Column(Integer, default=1)
    total_steps = Column(Integer, default=8)
    business_profile_completed = Column(Boolean, default=False)
    documents_completed = Column(Boolean, default=False)
    phase_1_completed = Column(Boolean, default=False)
    phase_1_completed_at = Column(DateTime, nullable=True)
    identity_verification_completed = Column(Boolean, default=False)
    plaid_connected = Column(Boolean, default=False)
    stripe_connected = Column(Boolean, default=False)
    phase_2_completed = Column(Boolean, default=False)
    phase_2_completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class BusinessDocument(Base):
    __tablename__ = "business_documents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    document_type = Column(String(100), nullable=False)
    document_name = Column(String(255), nullable=False)
    file_url = Column(String(1000), nullable=False)
    file_size_bytes = Column(Integer, nullable=True)
    verification_status = Column(String(50), default="pending")
    verified_by = Column(String(36), ForeignKey("admin_users.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    expiry_date = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    verifier = relationship("AdminUser")


class BusinessStripeTaxInfo(Base):
    __tablename__ = "business_stripe_tax_info"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), unique=True, index=True)
    business_entity_type = Column(String(50), default="llc")
    legal_business_name = Column(String(255), nullable=True)
    tax_id = Column(String(50), nullable=True)
    tax_id_type = Column(String(10), default="EIN")
    tax_address_line1 = Column(String(255), nullable=True)
    tax_address_line2 = Column(String(255), nullable=True)
    tax_city = Column(String(100), nullable=True)
    tax_state = Column(String(50), nullable=True)
    tax_postal_code = Column(String(20), nullable=True)
    tax_country = Column(String(10), default="US")
    tax_contact_name = Column(String(255), nullable=True)
    tax_contact_email = Column(String(255), nullable=True)
    tax_contact_phone = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


# ============================================================================
# Service catalogue
# ============================================================================


class ServiceCategory(Base):
    __tablename__ = "service_categories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    service_category_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    sort_order = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)


class ServiceSubcategory(Base):
    __tablename__ = "service_subcategories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    category_id = Column(String(36), ForeignKey("service_categories.id"), index=True)
    service_subcategory_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)

    category = relationship("ServiceCategory")


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    subcategory_id = Column(String(36), ForeignKey("service_subcategories.id"), index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    min_price = Column(Float, default=0)
    duration_minutes = Column(Integer, nullable=True)
    pricing_type = Column(String(50), default="fixed")
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)

    subcategory = relationship("ServiceSubcategory")


class BusinessServiceCategory(Base):
    __tablename__ = "business_service_categories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    category_id = Column(String(36), ForeignKey("service_categories.id"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    category = relationship("ServiceCategory")


class BusinessServiceSubcategory(Base):
    __tablename__ = "business_service_subcategories"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    category_id = Column(String(36), ForeignKey("service_categories.id"), nullable=True)
    subcategory_id = Column(String(36), ForeignKey("service_subcategories.id"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    subcategory = relationship("ServiceSubcategory")


class BusinessService(Base):
    __tablename__ = "business_services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    service_id = Column(String(36), ForeignKey("services.id"), index=True)
    business_price = Column(Float, nullable=True)
    business_duration_minutes = Column(Integer, nullable=True)
    delivery_type = Column(String(50), default="customer_location")
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    service = relationship("Service")


class ServiceAddon(Base):
    __tablename__ = "service_addons"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)


class ServiceAddonEligibility(Base):
    __tablename__ = "service_addon_eligibility"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    service_id = Column(String(36), ForeignKey("services.id"), index=True)
    addon_id = Column(String(36), ForeignKey("service_addons.id"), index=True)
    is_recommended = Column(Boolean, default=False)

    addon = relationship("ServiceAddon")
    service = relationship("Service")


class BusinessAddon(Base):
    __tablename__ = "business_addons"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    addon_id = Column(String(36), ForeignKey("service_addons.id"))
    custom_price = Column(Float, nullable=True)
    is_available = Column(Boolean, default=True)


class ProviderService(Base):
    __tablename__ = "provider_services"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider_id = Column(String(36), ForeignKey("providers.id"), index=True)
    service_id = Column(String(36), ForeignKey("services.id"))
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())


# ============================================================================
# Bookings, reviews and payments
# ============================================================================


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_reference = Column(String(50), nullable=True, index=True)
    customer_id = Column(String(36), ForeignKey("customer_profiles.id"), index=True, nullable=True)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    provider_id = Column(String(36), ForeignKey("providers.id"), index=True, nullable=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)
    customer_location_id = Column(String(36), ForeignKey("customer_locations.id"), nullable=True)
    business_location_id = Column(String(36), ForeignKey("business_locations.id"), nullable=True)
    booking_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=True)
    booking_status = Column(String(50), default="pending", index=True)
    payment_status = Column(String(50), default="pending")
    delivery_type = Column(String(50), nullable=True)  # business_location, customer_location, virtual, both_locations
    total_amount = Column(Float, default=0)
    service_fee = Column(Float, default=0)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)
    special_instructions = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(String(36), nullable=True)
    decline_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    customer = relationship("CustomerProfile")
    business = relationship("BusinessProfile")
    provider = relationship("Provider")
    service = relationship("Service")
    customer_location = relationship("CustomerLocation")
    business_location = relationship("BusinessLocation")


class BookingStatusHistory(Base):
    __tablename__ = "booking_status_history"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), index=True)
    status = Column(String(50), nullable=False)
    changed_by = Column(String(36), nullable=True)
    reason = Column(Text, nullable=True)
    changed_at = Column(DateTime, server_default=func.now())


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), index=True)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), nullable=True)
    provider_id = Column(String(36), ForeignKey("providers.id"), nullable=True)
    overall_rating = Column(Integer, nullable=False)
    service_rating = Column(Integer, nullable=True)
    communication_rating = Column(Integer, nullable=True)
    punctuality_rating = Column(Integer, nullable=True)
    review_text = Column(Text, nullable=True)
    is_approved = Column(Boolean, default=False)
    is_featured = Column(Boolean, default=False)
    moderated_by = Column(String(36), nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    moderation_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking")


class BusinessPaymentTransaction(Base):
    __tablename__ = "business_payment_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), index=True)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    payment_date = Column(Date, nullable=False, index=True)
    gross_payment_amount = Column(Float, default=0)
    platform_fee = Column(Float, default=0)
    net_payment_amount = Column(Float, default=0)
    tax_year = Column(Integer, nullable=True)
    transaction_type = Column(String(50), default="initial_booking")  # initial_booking, additional_service
    stripe_payment_intent_id = Column(String(255), nullable=True)
    stripe_transfer_id = Column(String(255), nullable=True)
    stripe_connect_account_id = Column(String(255), nullable=True)
    booking_reference = Column(String(50), nullable=True)
    transaction_description = Column(Text, nullable=True)
    transfer_reversed = Column(Boolean, default=False)
    transfer_reversed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking")


class PayoutRequest(Base):
    __tablename__ = "payout_requests"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    amount = Column(Float, default=0)
    status = Column(String(50), default="pending")  # pending, approved, rejected
    requested_at = Column(DateTime, server_default=func.now())
    processed_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    business = relationship("BusinessProfile")


class StripeConnectAccount(Base):
    __tablename__ = "stripe_connect_accounts"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), index=True)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), unique=True, index=True)
    account_id = Column(String(255), unique=True, nullable=False)
    account_type = Column(String(50), default="express")
    business_type = Column(String(50), nullable=True)
    country = Column(String(10), default="US")
    default_currency = Column(String(10), default="usd")
    charges_enabled = Column(Boolean, default=False)
    payouts_enabled = Column(Boolean, default=False)
    details_submitted = Column(Boolean, default=False)
    capabilities = Column(JSON, nullable=True)
    requirements = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class StripeIdentityVerification(Base):
    __tablename__ = "stripe_identity_verifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), index=True)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), index=True)
    session_id = Column(String(255), unique=True, nullable=False)
    status = Column(String(50), nullable=True)  # requires_input, processing, verified, canceled
    type = Column(String(50), default="document")
    client_secret = Column(String(500), nullable=True)
    verification_report = Column(JSON, nullable=True)
    last_error = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class PlaidLinkToken(Base):
    __tablename__ = "plaid_link_tokens"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), index=True)
    business_id = Column(String(36), ForeignKey("business_profiles.id"))
    link_token = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class PlaidBankConnection(Base):
    __tablename__ = "plaid_bank_connections"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), index=True)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), unique=True, index=True)
    plaid_access_token = Column(Text, nullable=False)  # Fernet encrypted
    plaid_item_id = Column(String(255), nullable=True)
    plaid_account_id = Column(String(255), nullable=True)
    institution_id = Column(String(100), nullable=True)
    institution_name = Column(String(255), nullable=True)
    account_name = Column(String(255), nullable=True)
    account_mask = Column(String(10), nullable=True)
    account_type = Column(String(50), nullable=True)
    account_subtype = Column(String(50), nullable=True)
    routing_numbers = Column(JSON, nullable=True)
    verification_status = Column(String(50), default="pending")
    is_active = Column(Boolean, default=True)
    connected_at = Column(DateTime, server_default=func.now())


class Promotion(Base):
    __tablename__ = "promotions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    promo_code = Column(String(50), unique=True, index=True, nullable=False)
    savings_type = Column(String(30), nullable=True)  # percentage_off, fixed_amount
    savings_amount = Column(Float, nullable=True)
    savings_max_amount = Column(Float, nullable=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True)
    business_id = Column(String(36), ForeignKey("business_profiles.id"), nullable=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=True)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    business = relationship("BusinessProfile")
    service = relationship("Service")


class PromotionUsage(Base):
    __tablename__ = "promotion_usage"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    promotion_id = Column(String(36), ForeignKey("promotions.id"), index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=True)
    discount_applied = Column(Float, default=0)
    original_amount = Column(Float, nullable=True)
    final_amount = Column(Float, nullable=True)
    used_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking")


# ============================================================================
# Messaging, notifications and admin content
# ============================================================================


class ConversationMetadata(Base):
    __tablename__ = "conversation_metadata"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey("bookings.id"), index=True)
    twilio_conversation_sid = Column(String(64), nullable=True)
    conversation_type = Column(String(50), default="booking_chat")
    participant_count = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    last_message_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking")
    participants = relationship("ConversationParticipant", back_populates="conversation")


class ConversationParticipant(Base):
    __tablename__ = "conversation_participants"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    conversation_id = Column(String(36), ForeignKey("conversation_metadata.id"), index=True)
    user_id = Column(String(36), index=True, nullable=False)
    user_type = Column(String(20), nullable=False)  # customer, provider, owner, dispatcher
    is_active = Column(Boolean, default=True)
    joined_at = Column(DateTime, server_default=func.now())
    last_read_at = Column(DateTime, nullable=True)

    conversation = relationship("ConversationMetadata", back_populates="participants")


class NotificationTemplate(Base):
    __tablename__ = "notification_templates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    template_key = Column(String(100), unique=True, index=True, nullable=False)
    template_name = Column(String(255), nullable=True)
    email_subject = Column(String(500), nullable=True)
    email_body_html = Column(Text, nullable=True)
    email_body_text = Column(Text, nullable=True)
    sms_body = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)


class NotificationLog(Base):
    __tablename__ = "notification_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), index=True, nullable=True)
    recipient_email = Column(String(255), nullable=True)
    recipient_phone = Column(String(50), nullable=True)
    notification_type = Column(String(100), nullable=False)
    channel = Column(String(20), nullable=False)  # email, sms
    status = Column(String(20), nullable=False)  # sent, failed
    resend_id = Column(String(255), nullable=True)
    twilio_sid = Column(String(64), nullable=True)
    subject = Column(String(500), nullable=True)
    body = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)


class Announcement(Base):
    __tablename__ = "announcements"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    target_audience = Column(String(30), default="all")
    is_active = Column(Boolean, default=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    priority = Column(String(20), default="medium")
    image_url = Column(String(500), nullable=True)
    action_button_text = Column(String(100), nullable=True)
    action_button_url = Column(String(500), nullable=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ContactSubmission(Base):
    __tablename__ = "contact_submissions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    full_name = Column(String(255), nullable=True)
    from_email = Column(String(255), nullable=False)
    to_email = Column(String(255), nullable=True)
    subject = Column(String(500), nullable=True)
    message = Column(Text, nullable=False)
    category = Column(String(50), nullable=True)
    status = Column(String(30), default="received")  # received, responded
    responded_at = Column(DateTime, nullable=True)
    responded_by = Column(String(36), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
