"""Bookings router - provider portal booking endpoints"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...auth import ensure_business_access, get_current_provider
from ...database import get_db
from ...models import Provider
from .schemas import BookingStatusUpdate
from .service import BookingService, notify_status_change, serialize_booking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


@router.get("/bookings-optimized")
async def get_bookings_optimized(
    business_id: str,
    provider_id: Optional[str] = None,
    status: Optional[str] = None,
    category: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 25,
    offset: int = 0,
    counts_only: bool = False,
    provider: Provider = Depends(get_current_provider),
    service: BookingService = Depends(get_booking_service),
):
    """Paginated bookings with server-side filters and per-status stats"""
    ensure_business_access(provider, business_id)
    return service.list_bookings(
        business_id,
        provider,
        provider_id=provider_id,
        status=status,
        category=category,
        date_from=date_from,
        date_to=date_to,
        search=search,
        limit=limit,
        offset=offset,
        counts_only=counts_only,
    )


@router.post("/bookings/status-update")
async def update_booking_status(
    body: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    provider: Provider = Depends(get_current_provider),
    service: BookingService = Depends(get_booking_service),
):
    """Change a booking's status and notify the affected party"""
    booking = service.update_status(body, provider)

    if body.notifyCustomer or body.notifyProvider:
        background_tasks.add_task(
            notify_status_change, booking.id, body.newStatus, body.notifyCustomer, body.notifyProvider
        )

    return {"success": True, "booking": serialize_booking(booking), "timestamp": datetime.utcnow().isoformat()}
