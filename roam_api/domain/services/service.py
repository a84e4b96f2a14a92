"""Service catalogue service - eligibility and business service configuration"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...database import RpcUnavailable, call_rpc
from ...models import BusinessService, Service
from ...shared.pagination import clamp_limit, page_offset
from ...shared.serialization import row_to_dict
from .repository import ServiceRepository
from .schemas import DELIVERY_TYPES, BusinessServiceCreate, BusinessServiceUpdate

logger = logging.getLogger(__name__)

EMPTY_STATS = {
    "total_services": 0,
    "active_services": 0,
    "configured_services": 0,
    "unconfigured_services": 0,
    "avg_price": 0,
    "total_value": 0,
    "category_count": 0,
    "subcategory_count": 0,
}

MAX_ADDONS = 500

SERVICE_DETAIL_FIELDS = ("id", "name", "description", "min_price", "duration_minutes", "image_url")


def _service_details(service: Optional[Service]) -> Optional[dict]:
    if service is None:
        return None
    details = row_to_dict(service, SERVICE_DETAIL_FIELDS)
    subcategory = service.subcategory
    details["service_subcategories"] = (
        {
            "service_subcategory_type": subcategory.service_subcategory_type,
            "service_categories": (
                {"service_category_type": subcategory.category.service_category_type}
                if subcategory.category
                else None
            ),
        }
        if subcategory
        else None
    )
    return details


def _eligible_service_item(service: Service, business_service: Optional[BusinessService]) -> dict:
    subcategory = service.subcategory
    category = subcategory.category if subcategory else None
    return {
        "id": service.id,
        "name": service.name,
        "description": service.description,
        "min_price": service.min_price,
        "duration_minutes": service.duration_minutes,
        "image_url": service.image_url,
        "subcategory_id": service.subcategory_id,
        "subcategory_name": subcategory.service_subcategory_type if subcategory else None,
        "category_id": category.id if category else None,
        "category_name": category.service_category_type if category else None,
        "is_configured": business_service is not None,
        "business_service_id": business_service.id if business_service else None,
        "business_price": business_service.business_price if business_service else None,
        "business_duration_minutes": business_service.business_duration_minutes if business_service else None,
        "delivery_type": business_service.delivery_type if business_service else None,
        "business_is_active": bool(business_service and business_service.is_active),
    }


def eligible_service_stats(services: list[dict]) -> dict:
    """Aggregate counts over the full eligible list; prices only count active offerings."""
    active = [s for s in services if s["business_is_active"]]
    total_value = sum((s["business_price"] or s["min_price"] or 0) for s in active)
    return {
        "total_services": len(services),
        "active_services": len(active),
        "configured_services": sum(1 for s in services if s["is_configured"]),
        "unconfigured_services": sum(1 for s in services if not s["is_configured"]),
        "avg_price": total_value / len(active) if active else 0,
        "total_value": total_value,
        "category_count": len({s["category_id"] for s in services}),
        "subcategory_count": len({s["subcategory_id"] for s in services}),
    }


def _matches_status(item: dict, status: Optional[str]) -> bool:
    if status == "active":
        return item["business_is_active"]
    if status == "inactive":
        return item["is_configured"] and not item["business_is_active"]
    if status == "configured":
        return item["is_configured"]
    if status == "unconfigured":
        return not item["is_configured"]
    return True


class CatalogueService:
    """Service layer for the provider service catalogue"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ServiceRepository()

    # ------------------------------------------------------------------
    # Eligible services
    # ------------------------------------------------------------------

    def get_eligible_services(
        self,
        business_id: str,
        search: Optional[str] = None,
        status: Optional[str] = None,
        category_id: Optional[str] = None,
        subcategory_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        """Services a business may offer, with its configuration, filters, stats and pagination"""
        limit = clamp_limit(limit)
        offset = max(offset, 0)
        try:
            rows = call_rpc(
                self.db,
                "get_business_eligible_services_optimized",
                {
                    "p_business_id": business_id,
                    "p_search": search or None,
                    "p_status": status or None,
                    "p_category_id": category_id or None,
                    "p_subcategory_id": subcategory_id or None,
                    "p_limit": limit,
                    "p_offset": offset,
                },
            )
        except RpcUnavailable:
            return self._eligible_services_fallback(
                business_id, search, status, category_id, subcategory_id, limit, offset
            )

        data = rows[0] if rows else {}
        total = data.get("total_count") or 0
        return {
            "business_id": business_id,
            "eligible_services": data.get("services") or [],
            "service_count": total,
            "stats": data.get("stats") or dict(EMPTY_STATS),
            "pagination": {"limit": limit, "offset": offset, "total": total},
        }

    def _eligible_services_fallback(
        self,
        business_id: str,
        search: Optional[str],
        status: Optional[str],
        category_id: Optional[str],
        subcategory_id: Optional[str],
        limit: int,
        offset: int,
    ) -> dict:
        logger.info(f"🔍 Using fallback services query for business {business_id}")
        links = self.repo.get_active_subcategory_links(self.db, business_id)
        subcategory_ids = [link.subcategory_id for link in links if link.subcategory_id]
        services = self.repo.get_active_services_in_subcategories(self.db, subcategory_ids)

        configured = {
            bs.service_id: bs
            for bs in self.repo.get_business_services_for(self.db, business_id, [s.id for s in services])
        }
        items = [_eligible_service_item(service, configured.get(service.id)) for service in services]
        stats = eligible_service_stats(items) if items else dict(EMPTY_STATS)

        term = (search or "").strip().lower()
        filtered = [
            item
            for item in items
            if _matches_status(item, status)
            and (not category_id or item["category_id"] == category_id)
            and (not subcategory_id or item["subcategory_id"] == subcategory_id)
            and (
                not term
                or term in (item["name"] or "").lower()
                or term in (item["description"] or "").lower()
            )
        ]

        return {
            "business_id": business_id,
            "eligible_services": filtered[offset : offset + limit],
            "service_count": len(filtered),
            "stats": stats,
            "pagination": {"limit": limit, "offset": offset, "total": len(filtered)},
            "_meta": {
                "fallback_mode": True,
                "message": "Using fallback mode. Run migration for optimized queries.",
            },
        }

    # ------------------------------------------------------------------
    # Eligible add-ons
    # ------------------------------------------------------------------

    def get_eligible_addons(self, business_id: str) -> dict:
        if not self.repo.get_business(self.db, business_id):
            raise HTTPException(status_code=404, detail="Business not found")

        try:
            rows = call_rpc(
                self.db,
                "get_business_eligible_addons_optimized",
                {
                    "p_business_id": business_id,
                    "p_search": None,
                    "p_status": None,
                    "p_limit": MAX_ADDONS,
                    "p_offset": 0,
                },
            )
        except RpcUnavailable:
            result = self._eligible_addons_fallback(business_id)
            result["_meta"] = {"fallback_mode": True}
            return result

        data = rows[0] if rows else {}
        return {
            "business_id": business_id,
            "addon_count": data.get("total_count") or 0,
            "eligible_addons": data.get("addons") or [],
            "stats": data.get("stats") or {},
        }

    def _eligible_addons_fallback(self, business_id: str) -> dict:
        logger.info(f"🔍 Using fallback add-ons query for business {business_id}")
        approved_categories = self.repo.get_approved_category_ids(self.db, business_id)
        subcategory_ids = [
            link.subcategory_id
            for link in self.repo.get_active_subcategory_links(self.db, business_id)
            if link.category_id in approved_categories and link.subcategory_id
        ]
        if not subcategory_ids:
            return {
                "business_id": business_id,
                "addon_count": 0,
                "eligible_addons": [],
                "message": "No approved service categories or subcategories. "
                "Contact platform administration for add-on approval.",
            }

        services = self.repo.get_active_services_in_subcategories(self.db, subcategory_ids)
        if not services:
            return {
                "business_id": business_id,
                "addon_count": 0,
                "eligible_addons": [],
                "message": "No services found for approved subcategories",
            }

        business_addons = self.repo.get_business_addons(self.db, business_id)
        addons: dict[str, dict] = {}
        for eligibility in self.repo.get_addon_eligibility(self.db, [s.id for s in services]):
            addon = eligibility.addon
            if addon is None or addon.id in addons:
                continue
            subcategory = eligibility.service.subcategory if eligibility.service else None
            business_addon = business_addons.get(addon.id)
            addons[addon.id] = {
                "id": addon.id,
                "name": addon.name,
                "description": addon.description,
                "image_url": addon.image_url,
                "is_active": addon.is_active,
                "subcategory_id": subcategory.id if subcategory else None,
                "subcategory_name": subcategory.service_subcategory_type if subcategory else "Unknown",
                "is_configured": business_addon is not None,
                "custom_price": business_addon.custom_price if business_addon else None,
                "is_available": business_addon.is_available if business_addon else None,
            }

        eligible = list(addons.values())
        logger.info(f"✅ {len(eligible)} eligible add-ons for business {business_id}")
        return {"business_id": business_id, "addon_count": len(eligible), "eligible_addons": eligible}

    # ------------------------------------------------------------------
    # Business services
    # ------------------------------------------------------------------

    def list_business_services(self, business_id: str, status: Optional[str], page: int, limit: int) -> dict:
        page = max(page, 1)
        limit = clamp_limit(limit, default=25)
        rows, total = self.repo.list_business_services(
            self.db, business_id, status, page_offset(page, limit), limit
        )
        services = []
        for row in rows:
            item = row_to_dict(
                row, ("id", "business_id", "service_id", "business_price", "is_active", "delivery_type", "created_at")
            )
            item["services"] = _service_details(row.service)
            services.append(item)

        active_total = self.repo.count_active_business_services(self.db, business_id)
        prices = [s["business_price"] or 0 for s in services]
        return {
            "business_id": business_id,
            "services": services,
            "stats": {
                "total_services": total,
                "active_services": active_total,
                "total_revenue": 0,
                "avg_price": sum(prices) / len(prices) if prices else 0,
            },
            "pagination": {"page": page, "limit": limit, "total": total},
        }

    def _check_price(self, service: Service, price: Optional[float]) -> None:
        if price is None or price <= 0:
            raise HTTPException(status_code=400, detail="business_price must be a positive number")
        if price < (service.min_price or 0):
            raise HTTPException(
                status_code=400,
                detail=f"Price must be at least ${service.min_price:g} for {service.name}",
            )

    def _check_delivery_type(self, delivery_type: Optional[str]) -> None:
        if delivery_type is not None and delivery_type not in DELIVERY_TYPES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid delivery_type. Must be one of: {', '.join(DELIVERY_TYPES)}",
            )

    def _serialize(self, business_service: BusinessService) -> dict:
        item = row_to_dict(business_service)
        item["services"] = _service_details(business_service.service)
        return item

    def add_business_service(self, data: BusinessServiceCreate) -> dict:
        if not data.business_id or not data.service_id or data.business_price is None:
            raise HTTPException(
                status_code=400, detail="business_id, service_id, and business_price are required"
            )
        self._check_delivery_type(data.delivery_type)

        service = self.repo.get_service(self.db, data.service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        self._check_price(service, data.business_price)

        if self.repo.get_business_service(self.db, data.business_id, data.service_id):
            raise HTTPException(status_code=409, detail="Service already added to business")

        business_service = self.repo.create_business_service(
            self.db,
            business_id=data.business_id,
            service_id=data.service_id,
            business_price=data.business_price,
            business_duration_minutes=data.business_duration_minutes,
            delivery_type=data.delivery_type,
            is_active=data.is_active,
        )
        logger.info(f"✅ Added service {data.service_id} to business {data.business_id}")
        return {"message": "Service added successfully", "service": self._serialize(business_service)}

    def update_business_service(self, data: BusinessServiceUpdate) -> dict:
        if not data.business_id or not data.service_id:
            raise HTTPException(status_code=400, detail="business_id and service_id are required")
        self._check_delivery_type(data.delivery_type)

        if data.business_price is not None:
            service = self.repo.get_service(self.db, data.service_id)
            if not service:
                raise HTTPException(status_code=404, detail="Service not found")
            self._check_price(service, data.business_price)

        updates = data.model_dump(
            include={"business_price", "business_duration_minutes", "delivery_type", "is_active"},
            exclude_none=True,
        )
        if not updates:
            raise HTTPException(status_code=400, detail="No fields to update provided")

        business_service = self.repo.get_business_service(self.db, data.business_id, data.service_id)
        if not business_service:
            raise HTTPException(status_code=404, detail="Business service not found")

        business_service = self.repo.update_business_service(self.db, business_service, **updates)
        return {"message": "Service updated successfully", "service": self._serialize(business_service)}

    def remove_business_service(self, business_id: Optional[str], service_id: Optional[str]) -> dict:
        if not business_id or not service_id:
            raise HTTPException(status_code=400, detail="business_id and service_id are required")

        business_service = self.repo.get_business_service(self.db, business_id, service_id)
        if not business_service:
            raise HTTPException(status_code=404, detail="Business service not found")

        if self.repo.count_active_bookings(self.db, business_id, service_id):
            raise HTTPException(
                status_code=409,
                detail="Cannot remove service with active bookings. "
                "Please complete or cancel existing bookings first.",
            )

        self.repo.delete_business_service(self.db, business_service)
        logger.info(f"🗑️ Removed service {service_id} from business {business_id}")
        return {"message": "Service removed successfully"}
