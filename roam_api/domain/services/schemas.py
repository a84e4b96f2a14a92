"""Service catalogue schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel

DELIVERY_TYPES = ("business_location", "customer_location", "virtual", "both_locations")


class BusinessServiceCreate(BaseModel):
    """Schema for adding a catalogue service to a business"""

    business_id: Optional[str] = None
    service_id: Optional[str] = None
    business_price: Optional[float] = None
    business_duration_minutes: Optional[int] = None
    delivery_type: str = "customer_location"
    is_active: bool = True


class BusinessServiceUpdate(BaseModel):
    """Schema for updating a business service"""

    business_id: Optional[str] = None
    service_id: Optional[str] = None
    business_price: Optional[float] = None
    business_duration_minutes: Optional[int] = None
    delivery_type: Optional[str] = None
    is_active: Optional[bool] = None
