"""Booking domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel

BOOKING_STATUSES = ("pending", "confirmed", "in_progress", "completed", "cancelled", "declined", "no_show")
BOOKING_CATEGORIES = ("present", "future", "past")


class BookingStatusUpdate(BaseModel):
    """Schema for a provider-driven booking status change"""

    bookingId: Optional[str] = None
    newStatus: Optional[str] = None
    updatedBy: Optional[str] = None
    reason: Optional[str] = None
    notifyCustomer: bool = True
    notifyProvider: bool = True
