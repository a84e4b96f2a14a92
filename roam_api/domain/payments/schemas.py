"""Payments domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel

STRIPE_BUSINESS_TYPES = ("individual", "company")


class ConnectAccountCreate(BaseModel):
    userId: Optional[str] = None
    businessId: Optional[str] = None
    businessName: Optional[str] = None
    businessType: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    dateOfBirth: Optional[str] = None
    ssnLast4: Optional[str] = None
    companyName: Optional[str] = None
    taxId: Optional[str] = None
    phone: Optional[str] = None


class LinkTokenCreate(BaseModel):
    userId: Optional[str] = None
    businessId: Optional[str] = None


class PublicTokenExchange(BaseModel):
    """Payload from Plaid Link's onSuccess callback"""

    public_token: Optional[str] = None
    account_id: Optional[str] = None
    userId: Optional[str] = None
    businessId: Optional[str] = None
    metadata: Optional[dict] = None


class VerificationSessionCreate(BaseModel):
    userId: Optional[str] = None
    businessId: Optional[str] = None
    type: str = "document"
    options: Optional[dict] = None
