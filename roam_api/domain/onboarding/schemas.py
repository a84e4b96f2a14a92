"""Onboarding domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel

# Every provider uploads these; non sole proprietors also need a business license
BASE_REQUIRED_DOCUMENTS = ("professional_license", "professional_headshot")


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    dateOfBirth: Optional[str] = None


class BusinessAddress(BaseModel):
    addressLine1: Optional[str] = None
    addressLine2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postalCode: Optional[str] = None
    country: Optional[str] = None


class BusinessData(BaseModel):
    businessName: Optional[str] = None
    businessType: Optional[str] = None
    contactEmail: Optional[str] = None
    phone: Optional[str] = None
    serviceCategories: Optional[list[str]] = None
    serviceSubcategories: Optional[list[str]] = None
    businessAddress: Optional[BusinessAddress] = None
    website: Optional[str] = None
    businessDescription: Optional[str] = None


class BusinessInfoRequest(BaseModel):
    """Phase 1 business details step"""

    userId: Optional[str] = None
    businessData: Optional[BusinessData] = None


class FinalConsents(BaseModel):
    informationAccuracy: bool = False
    termsAccepted: bool = False
    backgroundCheckConsent: bool = False


class SubmitApplicationRequest(BaseModel):
    userId: Optional[str] = None
    businessId: Optional[str] = None
    finalConsents: Optional[FinalConsents] = None
    submissionMetadata: Optional[dict] = None


class Phase2TokenRequest(BaseModel):
    token: Optional[str] = None
