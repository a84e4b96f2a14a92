"""Admin content service - announcements and promotions"""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models import AdminUser, Announcement, Promotion, PromotionUsage
from ...shared.pagination import clamp_limit, page_meta, page_offset
from ...shared.serialization import full_name, row_to_dict
from .repository import AdminRepository
from .schemas import (
    ANNOUNCEMENT_AUDIENCES,
    ANNOUNCEMENT_PRIORITIES,
    SAVINGS_TYPES,
    AnnouncementCreate,
    AnnouncementUpdate,
    PromotionCreate,
    PromotionUpdate,
)

logger = logging.getLogger(__name__)

PRIORITY_RANK = {priority: rank for rank, priority in enumerate(ANNOUNCEMENT_PRIORITIES)}


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_until(moment: Optional[datetime], now: datetime) -> Optional[int]:
    if not moment or moment <= now:
        return None
    return math.ceil((moment - now).total_seconds() / 86400)


def announcement_status(announcement: Announcement, now: datetime) -> str:
    """inactive, scheduled, active or expired"""
    if not announcement.is_active:
        return "inactive"
    if announcement.start_date and announcement.start_date > now:
        return "scheduled"
    if announcement.end_date and announcement.end_date < now:
        return "expired"
    return "active"


def serialize_announcement(announcement: Announcement, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    status = announcement_status(announcement, now)
    data = row_to_dict(announcement)
    data.update(
        {
            "computed_status": status,
            "is_currently_active": status == "active",
            "days_until_start": days_until(announcement.start_date, now),
            "days_until_end": days_until(announcement.end_date, now),
        }
    )
    return data


def promotion_is_valid(promotion: Promotion, now: datetime) -> bool:
    return bool(
        promotion.is_active
        and (not promotion.start_date or promotion.start_date <= now)
        and (not promotion.end_date or promotion.end_date >= now)
    )


def serialize_promotion(promotion: Promotion, usage: tuple[int, float] = (0, 0.0)) -> dict:
    valid = promotion_is_valid(promotion, datetime.utcnow())
    data = row_to_dict(promotion)
    data.update(
        {
            "business_name": promotion.business.business_name if promotion.business else None,
            "service_name": promotion.service.name if promotion.service else None,
            "usage_count": usage[0],
            "total_savings": usage[1],
            "is_currently_valid": valid,
            "status": "active" if valid else ("scheduled" if promotion.is_active else "inactive"),
        }
    )
    return data


def serialize_usage(usage: PromotionUsage) -> dict:
    data = row_to_dict(usage)
    booking = usage.booking
    customer = booking.customer if booking else None
    data.update(
        {
            "customer_name": full_name(customer.first_name, customer.last_name) if customer else "",
            "service_name": booking.service.name if booking and booking.service else "Unknown Service",
            "booking_reference": (booking.booking_reference or booking.id) if booking else None,
        }
    )
    return data


def validate_date_window(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start and end and start >= end:
        raise HTTPException(status_code=400, detail="end_date must be after start_date")


def validate_savings(savings_type: Optional[str], savings_amount: Optional[float]) -> None:
    if savings_type is None:
        return
    if savings_type not in SAVINGS_TYPES:
        raise HTTPException(
            status_code=400, detail='savings_type must be either "percentage_off" or "fixed_amount"'
        )
    if savings_amount is None:
        return
    if savings_type == "percentage_off" and not 0 <= savings_amount <= 100:
        raise HTTPException(status_code=400, detail="Percentage discount must be between 0 and 100")
    if savings_type == "fixed_amount" and savings_amount < 0:
        raise HTTPException(status_code=400, detail="Fixed amount discount must be positive")


class ContentService:
    """Service for admin-managed announcements and promotions"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AdminRepository

    def _save(self, instance, action: str):
        try:
            return self.repo.save(self.db, instance)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to {action}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to {action}")

    def _delete(self, instance, action: str) -> None:
        try:
            self.repo.delete(self.db, instance)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to {action}: {e}")
            raise HTTPException(status_code=500, detail=f"Failed to {action}")

    # ------------------------------------------------------------------
    # Announcements
    # ------------------------------------------------------------------

    def _require_announcement(self, announcement_id: str) -> Announcement:
        announcement = self.repo.get_announcement(self.db, announcement_id)
        if not announcement:
            raise HTTPException(status_code=404, detail="Announcement not found")
        return announcement

    @staticmethod
    def _validate_announcement_fields(target_audience: Optional[str], priority: Optional[str]) -> None:
        if target_audience is not None and target_audience not in ANNOUNCEMENT_AUDIENCES:
            raise HTTPException(
                status_code=400, detail=f"target_audience must be one of: {', '.join(ANNOUNCEMENT_AUDIENCES)}"
            )
        if priority is not None and priority not in ANNOUNCEMENT_PRIORITIES:
            raise HTTPException(
                status_code=400, detail=f"priority must be one of: {', '.join(ANNOUNCEMENT_PRIORITIES)}"
            )

    def list_announcements(
        self,
        status: Optional[str] = None,
        target_audience: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> dict:
        limit = clamp_limit(limit, maximum=200)
        rows, total = self.repo.list_announcements(
            self.db,
            status=status,
            target_audience=target_audience,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=page_offset(page, limit),
            limit=limit,
        )
        now = datetime.utcnow()
        return {"data": [serialize_announcement(a, now) for a in rows], "pagination": page_meta(page, limit, total)}

    def get_active_announcements(self, target_audience: str = "all") -> dict:
        rows = self.repo.get_active_announcements(self.db, target_audience, datetime.utcnow())
        # Stable sort keeps newest first within a priority
        rows.sort(key=lambda a: PRIORITY_RANK.get(a.priority, 0), reverse=True)
        return {"data": [row_to_dict(a) for a in rows]}

    def create_announcement(self, body: AnnouncementCreate, admin: AdminUser) -> dict:
        if not body.title or not body.content:
            raise HTTPException(status_code=400, detail="title and content are required")
        self._validate_announcement_fields(body.target_audience, body.priority)
        start, end = naive_utc(body.start_date), naive_utc(body.end_date)
        validate_date_window(start, end)

        announcement = Announcement(
            title=body.title,
            content=body.content,
            target_audience=body.target_audience,
            is_active=body.is_active,
            start_date=start,
            end_date=end,
            priority=body.priority,
            image_url=body.image_url,
            action_button_text=body.action_button_text,
            action_button_url=body.action_button_url,
            created_by=admin.user_id,
        )
        self._save(announcement, "create announcement")
        logger.info(f"✅ Announcement '{announcement.title}' created by {admin.user_id}")
        return {"data": serialize_announcement(announcement)}

    def update_announcement(self, announcement_id: str, body: AnnouncementUpdate) -> dict:
        announcement = self._require_announcement(announcement_id)
        updates = body.model_dump(exclude_unset=True)
        self._validate_announcement_fields(updates.get("target_audience"), updates.get("priority"))
        for field in ("start_date", "end_date"):
            if field in updates:
                updates[field] = naive_utc(updates[field])
        validate_date_window(
            updates.get("start_date", announcement.start_date), updates.get("end_date", announcement.end_date)
        )

        for field, value in updates.items():
            setattr(announcement, field, value)
        self._save(announcement, "update announcement")
        return {"data": serialize_announcement(announcement)}

    def delete_announcement(self, announcement_id: str) -> dict:
        announcement = self._require_announcement(announcement_id)
        self._delete(announcement, "delete announcement")
        return {"message": "Announcement deleted successfully", "id": announcement_id}

    def set_announcement_published(self, announcement_id: str, publish: bool) -> dict:
        announcement = self._require_announcement(announcement_id)
        announcement.is_active = publish
        if publish and not announcement.start_date:
            announcement.start_date = datetime.utcnow()
        self._save(announcement, "update announcement publication status")

        action = "published" if publish else "unpublished"
        logger.info(f"📢 Announcement {announcement_id} {action}")
        return {"data": serialize_announcement(announcement), "message": f"Announcement {action} successfully"}

    # ------------------------------------------------------------------
    # Promotions
    # ------------------------------------------------------------------

    def _require_promotion(self, promotion_id: str) -> Promotion:
        promotion = self.repo.get_promotion(self.db, promotion_id)
        if not promotion:
            raise HTTPException(status_code=404, detail="Promotion not found")
        return promotion

    def _ensure_code_available(self, promo_code: str, promotion_id: Optional[str] = None) -> None:
        existing = self.repo.get_promotion_by_code(self.db, promo_code)
        if existing and existing.id != promotion_id:
            raise HTTPException(status_code=400, detail=f'Promo code "{promo_code}" already exists')

    def _with_usage(self, promotion: Promotion) -> dict:
        usage = self.repo.get_usage_totals(self.db, [promotion.id]).get(promotion.id, (0, 0.0))
        return serialize_promotion(promotion, usage)

    def list_promotions(
        self,
        status: Optional[str] = None,
        business_id: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> dict:
        limit = clamp_limit(limit, maximum=200)
        rows, total = self.repo.list_promotions(
            self.db,
            status=status,
            business_id=business_id,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            offset=page_offset(page, limit),
            limit=limit,
        )
        usage = self.repo.get_usage_totals(self.db, [p.id for p in rows])
        return {
            "data": [serialize_promotion(p, usage.get(p.id, (0, 0.0))) for p in rows],
            "pagination": page_meta(page, limit, total),
        }

    def create_promotion(self, body: PromotionCreate) -> dict:
        if not body.title or not body.promo_code:
            raise HTTPException(status_code=400, detail="title and promo_code are required")
        validate_savings(body.savings_type, body.savings_amount)
        start, end = naive_utc(body.start_date), naive_utc(body.end_date)
        validate_date_window(start, end)
        self._ensure_code_available(body.promo_code)

        promotion = Promotion(
            title=body.title,
            description=body.description,
            promo_code=body.promo_code,
            start_date=start,
            end_date=end,
            is_active=body.is_active,
            business_id=body.business_id,
            service_id=body.service_id,
            image_url=body.image_url,
            savings_type=body.savings_type,
            savings_amount=body.savings_amount,
            savings_max_amount=body.savings_max_amount,
        )
        self._save(promotion, "create promotion")
        logger.info(f"✅ Promotion {promotion.promo_code} created")
        return {"data": serialize_promotion(promotion)}

    def update_promotion(self, promotion_id: str, body: PromotionUpdate) -> dict:
        promotion = self._require_promotion(promotion_id)
        updates = body.model_dump(exclude_unset=True)
        validate_savings(
            updates.get("savings_type", promotion.savings_type), updates.get("savings_amount", promotion.savings_amount)
        )
        for field in ("start_date", "end_date"):
            if field in updates:
                updates[field] = naive_utc(updates[field])
        validate_date_window(updates.get("start_date", promotion.start_date), updates.get("end_date", promotion.end_date))
        if updates.get("promo_code") and updates["promo_code"] != promotion.promo_code:
            self._ensure_code_available(updates["promo_code"], promotion.id)

        for field, value in updates.items():
            setattr(promotion, field, value)
        self._save(promotion, "update promotion")
        return {"data": self._with_usage(promotion)}

    def delete_promotion(self, promotion_id: str) -> dict:
        promotion = self._require_promotion(promotion_id)
        times_used, _ = self.repo.get_usage_totals(self.db, [promotion.id]).get(promotion.id, (0, 0.0))
        if times_used:
            raise HTTPException(
                status_code=400,
                detail="Cannot delete promotion that has been used. Consider deactivating it instead.",
            )
        self._delete(promotion, "delete promotion")
        return {"message": "Promotion deleted successfully", "id": promotion_id}

    def set_promotion_active(self, promotion_id: str, active: bool) -> dict:
        promotion = self._require_promotion(promotion_id)
        promotion.is_active = active
        self._save(promotion, "update promotion status")

        action = "activated" if active else "deactivated"
        logger.info(f"🏷️ Promotion {promotion.promo_code} {action}")
        return {"data": self._with_usage(promotion), "message": f"Promotion {action} successfully"}

    def list_promotion_usage(self, promotion_id: str, page: int = 1, limit: int = 50) -> dict:
        self._require_promotion(promotion_id)
        limit = clamp_limit(limit, maximum=200)
        rows, total = self.repo.list_promotion_usage(self.db, promotion_id, page_offset(page, limit), limit)
        return {"data": [serialize_usage(u) for u in rows], "pagination": page_meta(page, limit, total)}
