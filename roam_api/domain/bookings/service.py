"""Booking service - provider booking lists, counts and status transitions"""

import logging
import time
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...database import RpcUnavailable, SessionLocal, call_rpc
from ...models import Booking, Provider
from ...services.notification_service import send_notification
from ...shared.formatting import format_display_date, format_display_time
from ...shared.pagination import offset_meta, parse_date_param
from ...shared.serialization import full_name, row_to_dict
from .repository import FINAL_STATUSES, BookingRepository
from .schemas import BOOKING_CATEGORIES, BOOKING_STATUSES, BookingStatusUpdate

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 500

EMPTY_STATS = {
    "total_bookings": 0,
    "pending_bookings": 0,
    "confirmed_bookings": 0,
    "completed_bookings": 0,
    "cancelled_bookings": 0,
    "in_progress_bookings": 0,
    "present_count": 0,
    "future_count": 0,
    "past_count": 0,
    "total_revenue": 0,
    "pending_revenue": 0,
}


def time_category(status: Optional[str], booking_date: Optional[date], today: date) -> str:
    """Finished bookings are past; open ones are future when after today, else present."""
    if status in FINAL_STATUSES:
        return "past"
    if booking_date and booking_date > today:
        return "future"
    return "present"


def aggregate_booking_counts(rows: list[tuple], today: date) -> dict:
    """Reduce (status, date, amount) rows into per-status and per-category counts plus revenue."""
    counts = dict(EMPTY_STATS)
    counts["total_bookings"] = len(rows)
    for status, booking_date, amount in rows:
        key = f"{status}_bookings"
        if key in counts:
            counts[key] += 1
        counts[f"{time_category(status, booking_date, today)}_count"] += 1
        if status == "completed":
            counts["total_revenue"] += amount or 0
        elif status in ("pending", "confirmed"):
            counts["pending_revenue"] += amount or 0
    return counts


def serialize_booking(booking: Booking) -> dict:
    item = row_to_dict(booking)
    customer = booking.customer
    item["customer_profiles"] = (
        row_to_dict(customer, ("id", "user_id", "first_name", "last_name", "email", "phone", "image_url"))
        if customer
        else None
    )
    item["services"] = (
        row_to_dict(
            booking.service, ("id", "name", "description", "duration_minutes", "min_price", "pricing_type")
        )
        if booking.service
        else None
    )
    item["providers"] = (
        row_to_dict(booking.provider, ("id", "user_id", "first_name", "last_name", "image_url"))
        if booking.provider
        else None
    )
    item["customer_locations"] = (
        row_to_dict(
            booking.customer_location,
            ("id", "location_name", "street_address", "unit_number", "city", "state", "zip_code"),
        )
        if booking.customer_location
        else None
    )
    item["business_locations"] = (
        row_to_dict(
            booking.business_location,
            ("id", "location_name", "address_line1", "address_line2", "city", "state", "postal_code"),
        )
        if booking.business_location
        else None
    )
    return item


def _booking_location(booking: Booking) -> str:
    location = booking.customer_location or booking.business_location
    if location is None:
        return "Location TBD"
    street = getattr(location, "street_address", None) or getattr(location, "address_line1", None)
    parts = [street, location.city, location.state]
    return ", ".join(p for p in parts if p) or "Location TBD"


def build_status_notification(booking: Booking, new_status: str, notify_customer: bool, notify_provider: bool):
    """Pick the (notification_type, user_id, variables) for a status change, or None."""
    customer = booking.customer
    provider = booking.provider
    service_name = booking.service.name if booking.service else "Service"
    booking_date = format_display_date(booking.booking_date)
    booking_time = format_display_time(booking.start_time)
    provider_name = full_name(provider.first_name, provider.last_name, "Provider") if provider else "Provider"

    if new_status == "confirmed" and notify_customer and customer and customer.user_id:
        return "customer_booking_accepted", customer.user_id, {
            "customer_name": customer.first_name or "Customer",
            "service_name": service_name,
            "provider_name": provider_name,
            "booking_date": booking_date,
            "booking_time": booking_time,
            "booking_location": _booking_location(booking),
            "total_amount": f"{booking.total_amount or 0:.2f}",
            "booking_id": booking.id,
        }
    if new_status == "completed" and notify_customer and customer and customer.user_id:
        return "customer_booking_completed", customer.user_id, {
            "customer_name": customer.first_name or "Customer",
            "service_name": service_name,
            "provider_name": provider_name,
            "provider_id": provider.id if provider else "",
            "booking_id": booking.id,
        }
    if new_status == "declined" and notify_customer and customer and customer.user_id:
        return "customer_booking_declined", customer.user_id, {
            "customer_name": customer.first_name or "Customer",
            "service_name": service_name,
            "provider_name": provider_name,
            "booking_date": booking_date,
            "booking_time": booking_time,
            "decline_reason": booking.decline_reason or "No reason provided",
            "booking_id": booking.id,
        }
    if new_status == "cancelled" and notify_provider and provider and provider.user_id:
        return "provider_booking_cancelled", provider.user_id, {
            "provider_name": provider.first_name or "Provider",
            "customer_name": full_name(customer.first_name, customer.last_name, "Customer")
            if customer
            else booking.guest_name or "Customer",
            "service_name": service_name,
            "booking_date": booking_date,
            "booking_time": booking_time,
            "cancellation_reason": booking.cancellation_reason or "No reason provided",
        }
    return None


async def notify_status_change(booking_id: str, new_status: str, notify_customer: bool, notify_provider: bool):
    """Background task: status notifications never fail the status update itself."""
    db = SessionLocal()
    try:
        booking = BookingRepository.get_booking(db, booking_id)
        if booking is None:
            return
        notification = build_status_notification(booking, new_status, notify_customer, notify_provider)
        if notification is None:
            logger.info(f"ℹ️ No notification for booking {booking_id} status {new_status}")
            return
        notification_type, user_id, variables = notification
        await send_notification(
            db,
            user_id,
            notification_type,
            variables,
            metadata={"booking_id": booking_id, "event_type": f"booking_{new_status}"},
        )
    except Exception as e:
        logger.warning(f"⚠️ Status notification for booking {booking_id} failed: {e}")
    finally:
        db.close()


class BookingService:
    """Service layer for provider booking operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def list_bookings(
        self,
        business_id: str,
        provider: Provider,
        provider_id: Optional[str] = None,
        status: Optional[str] = None,
        category: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 25,
        offset: int = 0,
        counts_only: bool = False,
    ) -> dict:
        started = time.time()
        # Staff with the provider role only ever see their own bookings
        effective_provider_id = provider.id if provider.provider_role == "provider" else provider_id
        if status and status not in BOOKING_STATUSES:
            raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of: {', '.join(BOOKING_STATUSES)}")
        if category and category not in BOOKING_CATEGORIES:
            raise HTTPException(status_code=400, detail="Invalid category. Must be present, future, or past")
        start = parse_date_param(date_from, "date_from")
        end = parse_date_param(date_to, "date_to")
        limit = min(max(limit or 25, 1), MAX_PAGE_SIZE)
        offset = max(offset or 0, 0)

        meta = {"business_id": business_id, "provider_role": provider.provider_role}

        if counts_only:
            try:
                rows = call_rpc(
                    self.db,
                    "get_provider_booking_counts",
                    {
                        "p_business_id": business_id,
                        "p_provider_id": effective_provider_id,
                        "p_date_from": start,
                        "p_date_to": end,
                    },
                )
                counts = rows[0] if rows else dict(EMPTY_STATS)
            except RpcUnavailable:
                rows = self.repo.get_status_dates(self.db, business_id, effective_provider_id, start, end)
                counts = aggregate_booking_counts(rows, date.today())
                meta["fallback_mode"] = True
            meta["query_time_ms"] = int((time.time() - started) * 1000)
            return {"counts": counts, "_meta": meta}

        try:
            results = call_rpc(
                self.db,
                "get_provider_bookings_paginated",
                {
                    "p_business_id": business_id,
                    "p_provider_id": effective_provider_id,
                    "p_status": status or None,
                    "p_category": category or None,
                    "p_date_from": start,
                    "p_date_to": end,
                    "p_search": search or None,
                    "p_limit": limit,
                    "p_offset": offset,
                },
            )
            stats = (results[0].get("stats") if results else None) or dict(EMPTY_STATS)
            total = (results[0].get("total_count") if results else 0) or 0
            bookings = [row["booking"] for row in results]
        except RpcUnavailable:
            logger.info(f"🔍 Using fallback bookings query for business {business_id}")
            today = date.today()
            rows, total = self.repo.search_bookings(
                self.db, business_id, effective_provider_id, status, category, start, end, search, today, offset, limit
            )
            bookings = [serialize_booking(row) for row in rows]
            stats = aggregate_booking_counts(
                self.repo.get_status_dates(self.db, business_id, effective_provider_id, start, end), today
            )
            meta["fallback_mode"] = True

        meta["query_time_ms"] = int((time.time() - started) * 1000)
        meta["filters_applied"] = {
            "provider_id": effective_provider_id,
            "status": status or None,
            "category": category or None,
            "date_from": date_from or None,
            "date_to": date_to or None,
            "search": search or None,
        }
        return {
            "bookings": bookings,
            "stats": stats,
            "pagination": offset_meta(offset, limit, total, len(bookings)),
            "_meta": meta,
        }

    def update_status(self, data: BookingStatusUpdate, provider: Provider) -> Booking:
        if not data.bookingId or not data.newStatus or not data.updatedBy:
            raise HTTPException(
                status_code=400,
                detail={
                    "error": "Missing required fields",
                    "details": f"bookingId: {bool(data.bookingId)}, newStatus: {bool(data.newStatus)}, "
                    f"updatedBy: {bool(data.updatedBy)}",
                },
            )
        if data.newStatus not in BOOKING_STATUSES:
            raise HTTPException(
                status_code=400, detail=f"Invalid status. Must be one of: {', '.join(BOOKING_STATUSES)}"
            )

        booking = self.repo.get_booking(self.db, data.bookingId)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        if booking.business_id != provider.business_id:
            raise HTTPException(status_code=403, detail="Access denied to this booking")
        if provider.provider_role == "provider" and booking.provider_id != provider.id:
            raise HTTPException(status_code=403, detail="Access denied to this booking")

        updates = {"booking_status": data.newStatus}
        if data.newStatus == "cancelled":
            updates.update(
                cancelled_at=datetime.utcnow(), cancelled_by=data.updatedBy, cancellation_reason=data.reason
            )
        elif data.newStatus == "declined":
            updates["decline_reason"] = data.reason
        booking = self.repo.update_booking(self.db, booking, **updates)

        try:
            self.repo.add_status_history(
                self.db,
                booking_id=booking.id,
                status=data.newStatus,
                changed_by=data.updatedBy,
                reason=data.reason,
                changed_at=datetime.utcnow(),
            )
        except Exception as e:
            self.db.rollback()
            logger.warning(f"⚠️ Failed to record status history for booking {booking.id}: {e}")

        logger.info(f"✅ Booking {booking.id} status -> {data.newStatus}")
        return booking
