"""Booking repository - Database operations for provider booking views"""

from datetime import date
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from ...models import Booking, BookingStatusHistory, CustomerProfile, Service

FINAL_STATUSES = ("completed", "cancelled", "declined", "no_show")


def _scoped(db: Session, business_id: str, provider_id: Optional[str]):
    query = db.query(Booking).filter(Booking.business_id == business_id)
    if provider_id:
        query = query.filter(Booking.provider_id == provider_id)
    return query


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_status_dates(
        db: Session,
        business_id: str,
        provider_id: Optional[str],
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[tuple]:
        """(booking_status, booking_date, total_amount) rows used for count aggregation"""
        query = _scoped(db, business_id, provider_id).with_entities(
            Booking.booking_status, Booking.booking_date, Booking.total_amount
        )
        if date_from:
            query = query.filter(Booking.booking_date >= date_from)
        if date_to:
            query = query.filter(Booking.booking_date <= date_to)
        return query.all()

    @staticmethod
    def search_bookings(
        db: Session,
        business_id: str,
        provider_id: Optional[str],
        status: Optional[str],
        category: Optional[str],
        date_from: Optional[date],
        date_to: Optional[date],
        search: Optional[str],
        today: date,
        offset: int,
        limit: int,
    ) -> tuple[list[Booking], int]:
        query = _scoped(db, business_id, provider_id)

        if status:
            query = query.filter(Booking.booking_status == status)
        if category == "past":
            query = query.filter(Booking.booking_status.in_(FINAL_STATUSES))
        elif category == "future":
            query = query.filter(~Booking.booking_status.in_(FINAL_STATUSES), Booking.booking_date > today)
        elif category == "present":
            query = query.filter(~Booking.booking_status.in_(FINAL_STATUSES), Booking.booking_date <= today)
        if date_from:
            query = query.filter(Booking.booking_date >= date_from)
        if date_to:
            query = query.filter(Booking.booking_date <= date_to)
        if search:
            pattern = f"%{search.strip()}%"
            query = (
                query.outerjoin(CustomerProfile, CustomerProfile.id == Booking.customer_id)
                .outerjoin(Service, Service.id == Booking.service_id)
                .filter(
                    or_(
                        Booking.booking_reference.ilike(pattern),
                        Booking.guest_name.ilike(pattern),
                        CustomerProfile.first_name.ilike(pattern),
                        CustomerProfile.last_name.ilike(pattern),
                        Service.name.ilike(pattern),
                    )
                )
            )

        total = query.count()
        rows = (
            query.options(
                joinedload(Booking.customer),
                joinedload(Booking.service),
                joinedload(Booking.provider),
                joinedload(Booking.customer_location),
                joinedload(Booking.business_location),
            )
            .order_by(Booking.booking_date.desc(), Booking.start_time.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return rows, total

    @staticmethod
    def get_booking(db: Session, booking_id: str) -> Optional[Booking]:
        return (
            db.query(Booking)
            .options(
                joinedload(Booking.customer),
                joinedload(Booking.provider),
                joinedload(Booking.business),
                joinedload(Booking.service),
            )
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def update_booking(db: Session, booking: Booking, **updates) -> Booking:
        for key, value in updates.items():
            setattr(booking, key, value)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def add_status_history(db: Session, **fields) -> BookingStatusHistory:
        history = BookingStatusHistory(**fields)
        db.add(history)
        db.commit()
        return history
