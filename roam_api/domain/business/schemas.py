"""Business domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
ENTITY_TYPES = ("sole_proprietorship", "partnership", "llc", "corporation", "non_profit")


class BusinessHoursUpdate(BaseModel):
    business_id: Optional[str] = None
    business_hours: Optional[dict] = None


class DocumentCreate(BaseModel):
    """Metadata for a document already uploaded to object storage"""

    business_id: Optional[str] = None
    document_type: Optional[str] = None
    document_name: Optional[str] = None
    file_url: Optional[str] = None
    file_size_bytes: Optional[int] = None
    expiry_date: Optional[str] = None


class TaxInfoUpdate(BaseModel):
    business_id: Optional[str] = None
    business_entity_type: Optional[str] = None
    legal_business_name: Optional[str] = None
    tax_id: Optional[str] = None
    tax_id_type: Optional[str] = None
    tax_address_line1: Optional[str] = None
    tax_address_line2: Optional[str] = None
    tax_city: Optional[str] = None
    tax_state: Optional[str] = None
    tax_postal_code: Optional[str] = None
    tax_country: Optional[str] = None
    tax_contact_name: Optional[str] = None
    tax_contact_email: Optional[str] = None
    tax_contact_phone: Optional[str] = None
