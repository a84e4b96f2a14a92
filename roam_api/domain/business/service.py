"""Business service - hours, dashboard stats, documents, tax info and earnings"""

import logging
import time
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...database import RpcUnavailable, call_rpc
from ...models import BusinessDocument, BusinessPaymentTransaction, BusinessStripeTaxInfo
from ...services.storage_service import delete_document_file
from ...shared.formatting import percent_change
from ...shared.pagination import clamp_limit, page_meta, page_offset, parse_date_param
from ...shared.serialization import full_name, row_to_dict
from ...shared.validators import is_valid_email, validate_time_of_day
from .repository import ACTIVE_FLAG_MODELS, BusinessRepository
from .schemas import ENTITY_TYPES, WEEKDAYS, BusinessHoursUpdate, DocumentCreate, TaxInfoUpdate

logger = logging.getLogger(__name__)

DEFAULT_OPEN = "09:00"
DEFAULT_CLOSE = "17:00"


# ============================================================================
# Business hours
# ============================================================================


def hours_for_display(stored: Optional[dict]) -> dict:
    """
    Stored hours use capitalized day keys ({"Monday": {...}}); the portal
    works with lowercase keys and an explicit ``closed`` flag. Missing days
    get the default 09:00-17:00 schedule, with Sunday closed.
    """
    hours = {
        day: {"open": DEFAULT_OPEN, "close": DEFAULT_CLOSE, "closed": day == "sunday"} for day in WEEKDAYS
    }
    for day, value in (stored or {}).items():
        key = day.lower()
        if key in hours and isinstance(value, dict):
            hours[key] = {
                "open": value.get("open") or DEFAULT_OPEN,
                "close": value.get("close") or DEFAULT_CLOSE,
                "closed": value.get("closed", False),
            }
    return hours


def hours_for_storage(hours: dict) -> dict:
    """Validate portal hours and convert them to the stored capitalized form."""
    stored = {}
    for day, value in hours.items():
        key = day.lower()
        if key not in WEEKDAYS:
            raise HTTPException(status_code=400, detail=f"Invalid day: {day}")
        if not isinstance(value, dict):
            raise HTTPException(status_code=400, detail=f"Invalid hours for {day}")

        closed = value.get("closed", False)
        if not isinstance(closed, bool):
            raise HTTPException(status_code=400, detail=f"Invalid closed flag for {day}. Use true or false")
        open_time, close_time = value.get("open"), value.get("close")
        if not closed:
            if not validate_time_of_day(open_time) or not validate_time_of_day(close_time):
                raise HTTPException(status_code=400, detail=f"Invalid time format for {day}. Use HH:MM")
            if open_time >= close_time:
                raise HTTPException(status_code=400, detail=f"Opening time must be before closing time for {day}")
        stored[key.capitalize()] = {"open": open_time, "close": close_time, "closed": closed}
    return stored


# ============================================================================
# Service eligibility
# ============================================================================

UNKNOWN_CATEGORY_SORT = 999


def _approved_at(row) -> Optional[str]:
    return row.created_at.isoformat() if row.created_at else None


def approved_category_tree(categories: list, subcategories: list) -> list[dict]:
    """
    Group approved subcategories under their approved categories, ordered by
    the category sort order. A subcategory approval whose category was never
    approved is listed under an "Unknown Category" placeholder.
    """
    tree: dict[str, dict] = {}
    for approval in categories:
        category = approval.category
        if category is None:
            continue
        tree[category.id] = {
            "category_id": category.id,
            "category_name": category.service_category_type,
            "description": category.description,
            "image_url": category.image_url,
            "sort_order": category.sort_order,
            "is_active": category.is_active,
            "approved_at": _approved_at(approval),
            "subcategories": [],
        }

    for approval in subcategories:
        subcategory = approval.subcategory
        category_id = approval.category_id or (subcategory.category_id if subcategory else None)
        if subcategory is None or not category_id:
            continue
        parent = tree.setdefault(
            category_id,
            {
                "category_id": category_id,
                "category_name": "Unknown Category",
                "description": None,
                "image_url": None,
                "sort_order": UNKNOWN_CATEGORY_SORT,
                "is_active": True,
                "approved_at": None,
                "subcategories": [],
            },
        )
        parent["subcategories"].append(
            {
                "subcategory_id": subcategory.id,
                "subcategory_name": subcategory.service_subcategory_type,
                "description": subcategory.description,
                "image_url": subcategory.image_url,
                "is_active": subcategory.is_active,
                "approved_at": _approved_at(approval),
            }
        )

    return sorted(tree.values(), key=lambda c: c["sort_order"] or UNKNOWN_CATEGORY_SORT)


# ============================================================================
# Documents
# ============================================================================


def serialize_document(document: BusinessDocument) -> dict:
    verifier = document.verifier
    status = document.verification_status or "pending"
    created_at = document.created_at.isoformat() if document.created_at else None
    return {
        "id": document.id,
        "business_id": document.business_id,
        "document_type": document.document_type,
        "document_name": document.document_name,
        "document_url": document.file_url,
        "file_url": document.file_url,
        "file_size_bytes": document.file_size_bytes,
        "upload_status": status,
        "verification_status": status,
        "verified_by": document.verified_by,
        "verified_at": document.verified_at.isoformat() if document.verified_at else None,
        "rejection_reason": document.rejection_reason,
        "expiry_date": document.expiry_date.isoformat() if document.expiry_date else None,
        "uploaded_at": created_at,
        "created_at": created_at,
        "original_filename": document.document_name,
        "verifier": (
            {
                "id": verifier.id,
                "name": full_name(verifier.first_name, verifier.last_name),
                "email": verifier.email,
            }
            if verifier
            else None
        ),
    }


# ============================================================================
# Earnings
# ============================================================================


def _sum_transactions(transactions: list[BusinessPaymentTransaction]) -> dict:
    return {
        "transaction_count": len(transactions),
        "booking_count": len({t.booking_id for t in transactions if t.booking_id}),
        "gross_earnings": sum(t.gross_payment_amount or 0 for t in transactions),
        "platform_fees": sum(t.platform_fee or 0 for t in transactions),
        "net_earnings": sum(t.net_payment_amount or 0 for t in transactions),
        "initial_bookings": sum(1 for t in transactions if t.transaction_type == "initial_booking"),
        "additional_services": sum(1 for t in transactions if t.transaction_type == "additional_service"),
    }


def monthly_earnings(transactions: list[BusinessPaymentTransaction]) -> list[dict]:
    months: dict[date, list] = defaultdict(list)
    for t in transactions:
        months[t.payment_date.replace(day=1)].append(t)
    result = []
    for month_start in sorted(months, reverse=True)[:12]:
        totals = _sum_transactions(months[month_start])
        result.append({"month_start": month_start.isoformat(), **totals})
    return result


def earnings_by_service(transactions: list[BusinessPaymentTransaction]) -> list[dict]:
    services: dict[Optional[str], dict] = {}
    for t in transactions:
        service = t.booking.service if t.booking else None
        key = service.id if service else None
        entry = services.setdefault(
            key,
            {
                "service_id": key,
                "service_name": service.name if service else "Unknown Service",
                "transaction_count": 0,
                "total_gross_earnings": 0.0,
                "total_net_earnings": 0.0,
            },
        )
        entry["transaction_count"] += 1
        entry["total_gross_earnings"] += t.gross_payment_amount or 0
        entry["total_net_earnings"] += t.net_payment_amount or 0
    return sorted(services.values(), key=lambda s: s["total_net_earnings"], reverse=True)[:10]


def serialize_transaction(transaction: BusinessPaymentTransaction) -> dict:
    item = row_to_dict(transaction)
    booking = transaction.booking
    item["bookings"] = (
        {
            "booking_reference": booking.booking_reference,
            "provider_id": booking.provider_id,
            "service_id": booking.service_id,
            "customer_profiles": row_to_dict(booking.customer, ("first_name", "last_name")),
            "services": row_to_dict(booking.service, ("name",)),
            "providers": row_to_dict(booking.provider, ("first_name", "last_name")),
        }
        if booking
        else None
    )
    return item


class BusinessService:
    """Service layer for provider business settings and reporting"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BusinessRepository()

    def _get_business(self, business_id: str):
        business = self.repo.get_business(self.db, business_id)
        if not business:
            raise HTTPException(status_code=404, detail="Business not found")
        return business

    # ------------------------------------------------------------------
    # Hours
    # ------------------------------------------------------------------

    def get_hours(self, business_id: str) -> dict:
        business = self._get_business(business_id)
        return {
            "business_id": business.id,
            "business_name": business.business_name,
            "business_hours": hours_for_display(business.business_hours),
        }

    def update_hours(self, data: BusinessHoursUpdate) -> dict:
        if not data.business_id:
            raise HTTPException(status_code=400, detail="business_id is required")
        if not isinstance(data.business_hours, dict):
            raise HTTPException(status_code=400, detail="business_hours object is required")

        business = self._get_business(data.business_id)
        business.business_hours = hours_for_storage(data.business_hours)
        business = self.repo.save(self.db, business)
        logger.info(f"✅ Updated business hours for {business.id}")
        return {
            "message": "Business hours updated successfully",
            "business_id": business.id,
            "business_name": business.business_name,
            "business_hours": hours_for_display(business.business_hours),
        }

    # ------------------------------------------------------------------
    # Service eligibility
    # ------------------------------------------------------------------

    def get_service_eligibility(self, business_id: Optional[str]) -> dict:
        """Categories and subcategories an admin has approved the business to offer"""
        if not business_id:
            raise HTTPException(status_code=400, detail="Business ID is required")

        categories = self.repo.get_approved_categories(self.db, business_id)
        subcategories = self.repo.get_approved_subcategories(self.db, business_id)
        approved = approved_category_tree(categories, subcategories)

        updated = [row.updated_at for row in (*categories, *subcategories) if row.updated_at]
        return {
            "business_id": business_id,
            "approved_categories": approved,
            "stats": {
                "total_categories": len(approved),
                "total_subcategories": len(subcategories),
            },
            "last_updated": max(updated).isoformat() if updated else None,
            "additional_info": (
                None
                if approved
                else "No service categories have been approved for this business yet. "
                "Contact platform administration for approval."
            ),
        }

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def _recent_bookings(self, business_id: str) -> list[dict]:
        recent = []
        for booking in self.repo.get_recent_bookings(self.db, business_id):
            item = row_to_dict(
                booking,
                (
                    "id",
                    "booking_reference",
                    "booking_date",
                    "start_time",
                    "booking_status",
                    "total_amount",
                    "created_at",
                    "guest_name",
                ),
            )
            item["services"] = row_to_dict(booking.service, ("id", "name"))
            item["customer_profiles"] = row_to_dict(
                booking.customer, ("id", "user_id", "first_name", "last_name", "email", "image_url")
            )
            recent.append(item)
        return recent

    def get_dashboard_stats(self, business_id: str, provider_role: str) -> dict:
        started = time.time()
        today = date.today()
        rows = self.repo.get_booking_rows(self.db, business_id)
        open_rows = [r for r in rows if r[0] in ("pending", "confirmed")]
        unassigned = sum(1 for r in open_rows if not r[2])
        todays_confirmed = sum(1 for r in open_rows if r[0] == "confirmed" and r[3] == today)

        try:
            result = call_rpc(self.db, "get_provider_dashboard_stats", {"p_business_id": business_id}, scalar=True)
            stats = result if isinstance(result, dict) else {}
            meta = {"provider_role": provider_role}
        except RpcUnavailable:
            stats = self._fallback_stats(business_id, rows)
            meta = {
                "fallback_mode": True,
                "message": "Using fallback stats. Run the migration to enable optimized stats.",
            }

        meta.update(query_time_ms=int((time.time() - started) * 1000), business_id=business_id)
        return {
            **stats,
            "unassigned_bookings": unassigned,
            "todays_confirmed_count": todays_confirmed,
            "recent_bookings": self._recent_bookings(business_id),
            "_meta": meta,
        }

    def _fallback_stats(self, business_id: str, rows: list[tuple]) -> dict:
        def count(status: str) -> int:
            return sum(1 for r in rows if r[0] == status)

        stats = {
            "total_bookings": len(rows),
            "pending_bookings": count("pending"),
            "confirmed_bookings": count("confirmed"),
            "completed_bookings": count("completed"),
            "cancelled_bookings": count("cancelled"),
            "in_progress_bookings": count("in_progress"),
            "total_revenue": sum(r[1] or 0 for r in rows if r[0] == "completed"),
            "stats_generated_at": datetime.utcnow().isoformat(),
        }
        # total_/active_ counts per business-owned table
        for name, model in ACTIVE_FLAG_MODELS.items():
            flags = self.repo.get_active_flags(self.db, model, business_id)
            stats[f"total_{name}"] = len(flags)
            stats[f"active_{name}"] = sum(1 for flag in flags if flag)
        return stats

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def list_documents(self, business_id: str) -> dict:
        documents = [serialize_document(d) for d in self.repo.list_documents(self.db, business_id)]
        return {"business_id": business_id, "document_count": len(documents), "documents": documents}

    def add_document(self, data: DocumentCreate) -> dict:
        if not data.business_id or not data.document_type or not data.document_name or not data.file_url:
            raise HTTPException(
                status_code=400,
                detail="business_id, document_type, document_name, and file_url are required",
            )
        self._get_business(data.business_id)
        document = self.repo.save(
            self.db,
            BusinessDocument(
                business_id=data.business_id,
                document_type=data.document_type,
                document_name=data.document_name,
                file_url=data.file_url,
                file_size_bytes=data.file_size_bytes,
                expiry_date=parse_date_param(data.expiry_date, "expiry_date"),
                verification_status="pending",
            ),
        )
        logger.info(f"📄 Recorded {data.document_type} document for business {data.business_id}")
        return {"message": "Document uploaded successfully", "document": serialize_document(document)}

    def delete_document(self, business_id: Optional[str], document_id: Optional[str]) -> dict:
        if not business_id or not document_id:
            raise HTTPException(status_code=400, detail="business_id and document_id query parameters are required")
        document = self.repo.get_document(self.db, business_id, document_id)
        if not document:
            raise HTTPException(status_code=404, detail="Document not found")

        delete_document_file(document.file_url)
        self.repo.delete(self.db, document)
        logger.info(f"🗑️ Deleted document {document_id} for business {business_id}")
        return {"message": "Document deleted successfully"}

    # ------------------------------------------------------------------
    # Tax info
    # ------------------------------------------------------------------

    def get_tax_info(self, business_id: str) -> dict:
        return {"business_id": business_id, "tax_info": row_to_dict(self.repo.get_tax_info(self.db, business_id))}

    def save_tax_info(self, data: TaxInfoUpdate) -> dict:
        if not data.business_id:
            raise HTTPException(status_code=400, detail="business_id is required")

        contact_name = data.tax_contact_name
        contact_email = data.tax_contact_email
        if not contact_name or not contact_email:
            business = self.repo.get_business(self.db, data.business_id)
            if business:
                contact_name = contact_name or business.business_name
                if not contact_email:
                    contact_email = business.contact_email
                if not contact_email:
                    owner = self.repo.get_owner(self.db, data.business_id)
                    if owner and owner.email:
                        contact_email = owner.email
        if not contact_email:
            raise HTTPException(
                status_code=400,
                detail="Contact email is required. Please ensure your business profile has a contact email.",
            )
        if not is_valid_email(contact_email):
            raise HTTPException(status_code=400, detail="Invalid tax contact email format")

        id_type = (data.tax_id_type or "").upper()
        values = {
            "business_entity_type": data.business_entity_type if data.business_entity_type in ENTITY_TYPES else "llc",
            "legal_business_name": data.legal_business_name or None,
            "tax_id": data.tax_id or None,
            "tax_id_type": id_type if id_type in ("EIN", "SSN") else "EIN",
            "tax_address_line1": data.tax_address_line1 or None,
            "tax_address_line2": data.tax_address_line2 or None,
            "tax_city": data.tax_city or None,
            "tax_state": data.tax_state or None,
            "tax_postal_code": data.tax_postal_code or None,
            "tax_country": data.tax_country or "US",
            "tax_contact_name": contact_name or "Business Owner",
            "tax_contact_email": contact_email,
            "tax_contact_phone": data.tax_contact_phone or None,
        }

        tax_info = self.repo.get_tax_info(self.db, data.business_id)
        if tax_info is None:
            tax_info = BusinessStripeTaxInfo(business_id=data.business_id)
        for key, value in values.items():
            setattr(tax_info, key, value)
        tax_info = self.repo.save(self.db, tax_info)
        logger.info(f"✅ Saved tax info for business {data.business_id}")
        return {"message": "Saved", "tax_info": row_to_dict(tax_info)}

    # ------------------------------------------------------------------
    # Earnings
    # ------------------------------------------------------------------

    def get_financial_summary(self, business_id: str, period: int = 30, tax_year: Optional[int] = None) -> dict:
        if period < 1:
            raise HTTPException(status_code=400, detail="period must be a positive number of days")
        today = date.today()
        year = tax_year or today.year
        period_start = today - timedelta(days=period)
        previous_start = period_start - timedelta(days=period)

        year_transactions = self.repo.get_transactions_between(
            self.db, business_id, date(year, 1, 1), date(year + 1, 1, 1)
        )
        period_totals = _sum_transactions(self.repo.get_transactions_between(self.db, business_id, period_start))
        previous_totals = _sum_transactions(
            self.repo.get_transactions_between(self.db, business_id, previous_start, period_start)
        )
        year_totals = _sum_transactions(year_transactions)

        average_order_value = (
            period_totals["net_earnings"] / period_totals["booking_count"] if period_totals["booking_count"] else 0
        )
        initial = period_totals["initial_bookings"]
        completion_rate = (initial / (initial + period_totals["additional_services"])) * 100 if initial else 0

        return {
            "summary": {
                "total_transactions": year_totals["transaction_count"],
                "total_bookings": year_totals["booking_count"],
                "total_gross_earnings": year_totals["gross_earnings"],
                "total_platform_fees": year_totals["platform_fees"],
                "total_net_earnings": year_totals["net_earnings"],
                "tax_year": year,
            },
            "period_summary": {
                **period_totals,
                "average_order_value": average_order_value,
                "revenue_change": percent_change(period_totals["net_earnings"], previous_totals["net_earnings"]),
                "bookings_change": percent_change(period_totals["booking_count"], previous_totals["booking_count"]),
                "period_days": period,
                "period_start": period_start.isoformat(),
            },
            "monthly_earnings": monthly_earnings(year_transactions),
            "earnings_by_service": earnings_by_service(year_transactions),
            "recent_transactions": [serialize_transaction(t) for t in year_transactions[:50]],
            "calculated_metrics": {
                "average_order_value": average_order_value,
                "completion_rate": completion_rate,
            },
        }

    def search_transactions(
        self,
        business_id: str,
        search: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        provider_id: Optional[str] = None,
        service_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        page = max(page, 1)
        limit = clamp_limit(limit, default=20)
        start = parse_date_param(start_date, "start_date")
        end = parse_date_param(end_date, "end_date")
        # "all" is the portal's no-filter sentinel
        provider_filter = provider_id if provider_id and provider_id != "all" else None
        service_filter = service_id if service_id and service_id != "all" else None

        rows, total = self.repo.search_transactions(
            self.db,
            business_id,
            start,
            end + timedelta(days=1) if end else None,
            provider_filter,
            service_filter,
            search.strip() if search and search.strip() else None,
            page_offset(page, limit),
            limit,
        )
        return {
            "transactions": [serialize_transaction(t) for t in rows],
            "pagination": page_meta(page, limit, total),
            "filters": {
                "search": search or None,
                "start_date": start_date or None,
                "end_date": end_date or None,
                "provider_id": provider_id or None,
                "service_id": service_id or None,
            },
        }
