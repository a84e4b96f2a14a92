from datetime import date
from unittest.mock import patch

import pytest

from roam_api.models import (
    Booking,
    BusinessAddon,
    BusinessService,
    BusinessServiceCategory,
    BusinessServiceSubcategory,
    Service,
    ServiceAddon,
    ServiceAddonEligibility,
    ServiceCategory,
    ServiceSubcategory,
)


@pytest.fixture
def catalogue(db, business):
    category = ServiceCategory(id="cat-1", service_category_type="massage")
    subcategory = ServiceSubcategory(id="sub-1", category_id="cat-1", service_subcategory_type="deep_tissue")
    other_subcategory = ServiceSubcategory(id="sub-2", category_id="cat-1", service_subcategory_type="sports")
    db.add_all([category, subcategory, other_subcategory])
    db.add_all(
        [
            Service(id="svc-1", subcategory_id="sub-1", name="Deep Tissue 60", min_price=80, duration_minutes=60),
            Service(id="svc-2", subcategory_id="sub-1", name="Deep Tissue 90", min_price=110, duration_minutes=90),
            Service(id="svc-3", subcategory_id="sub-2", name="Sports Recovery", min_price=90),
            BusinessServiceSubcategory(business_id=business.id, category_id="cat-1", subcategory_id="sub-1"),
            BusinessService(business_id=business.id, service_id="svc-1", business_price=100, is_active=True),
        ]
    )
    db.commit()


def test_eligible_services_fallback_marks_configured(owner_client, catalogue):
    response = owner_client.get("/api/services-optimized", params={"business_id": "biz-1"})

    assert response.status_code == 200
    data = response.json()
    assert data["_meta"]["fallback_mode"] is True
    assert data["service_count"] == 2
    by_id = {item["id"]: item for item in data["eligible_services"]}
    assert set(by_id) == {"svc-1", "svc-2"}
    assert by_id["svc-1"]["is_configured"] is True
    assert by_id["svc-1"]["business_price"] == 100
    assert by_id["svc-2"]["is_configured"] is False
    assert data["stats"]["active_services"] == 1
    assert data["stats"]["configured_services"] == 1


def test_eligible_services_status_filter(owner_client, catalogue):
    response = owner_client.get(
        "/api/services-optimized", params={"business_id": "biz-1", "status": "unconfigured"}
    )

    assert response.status_code == 200
    assert [item["id"] for item in response.json()["eligible_services"]] == ["svc-2"]


def test_other_business_is_forbidden(owner_client, catalogue):
    response = owner_client.get("/api/services-optimized", params={"business_id": "someone-else"})

    assert response.status_code == 403
    assert response.json() == {"error": "Access denied to this business"}


def test_add_service_below_minimum_price(owner_client, catalogue):
    response = owner_client.post(
        "/api/business/services",
        json={"business_id": "biz-1", "service_id": "svc-2", "business_price": 50},
    )

    assert response.status_code == 400
    assert "at least $110" in response.json()["error"]


def test_add_service_and_reject_duplicate(owner_client, catalogue):
    payload = {"business_id": "biz-1", "service_id": "svc-2", "business_price": 120, "delivery_type": "virtual"}

    first = owner_client.post("/api/business/services", json=payload)
    second = owner_client.post("/api/business/services", json=payload)

    assert first.status_code == 200
    assert first.json()["service"]["delivery_type"] == "virtual"
    assert first.json()["service"]["services"]["name"] == "Deep Tissue 90"
    assert second.status_code == 409


def test_update_requires_fields(owner_client, catalogue):
    response = owner_client.put("/api/business/services", json={"business_id": "biz-1", "service_id": "svc-1"})

    assert response.status_code == 400
    assert response.json() == {"error": "No fields to update provided"}


def test_remove_service_blocked_by_active_booking(owner_client, catalogue, db):
    db.add(Booking(business_id="biz-1", service_id="svc-1", booking_date=date(2030, 1, 1)))
    db.commit()

    response = owner_client.delete("/api/business/services", params={"business_id": "biz-1", "service_id": "svc-1"})

    assert response.status_code == 409


def test_remove_service(owner_client, catalogue, db):
    response = owner_client.delete("/api/business/services", params={"business_id": "biz-1", "service_id": "svc-1"})

    assert response.status_code == 200
    assert db.query(BusinessService).count() == 0


def test_list_business_services(owner_client, catalogue):
    response = owner_client.get("/api/business/services", params={"business_id": "biz-1"})

    assert response.status_code == 200
    data = response.json()
    assert data["stats"]["total_services"] == 1
    assert data["services"][0]["services"]["service_subcategories"]["service_subcategory_type"] == "deep_tissue"


def test_eligible_services_from_rpc(owner_client):
    data = {
        "services": [{"id": "svc-9", "name": "Hot Stone", "is_configured": True}],
        "total_count": 1,
        "stats": {"total_services": 1, "active_services": 1},
    }
    with patch("roam_api.domain.services.service.call_rpc", return_value=[data]) as mock_rpc:
        response = owner_client.get(
            "/api/services-optimized", params={"business_id": "biz-1", "search": "stone", "limit": 10}
        )

    assert response.status_code == 200
    body = response.json()
    assert body["eligible_services"] == data["services"]
    assert body["service_count"] == 1
    assert body["stats"] == data["stats"]
    assert body["pagination"] == {"limit": 10, "offset": 0, "total": 1}
    assert mock_rpc.call_args.args[2]["p_search"] == "stone"


def test_eligible_addons_fallback(owner_client, db, catalogue):
    db.add_all(
        [
            BusinessServiceCategory(business_id="biz-1", category_id="cat-1"),
            ServiceAddon(id="addon-1", name="Hot Stones"),
            ServiceAddon(id="addon-2", name="Aromatherapy"),
            ServiceAddon(id="addon-3", name="Cupping"),
            ServiceAddonEligibility(service_id="svc-1", addon_id="addon-1"),
            ServiceAddonEligibility(service_id="svc-2", addon_id="addon-1"),
            ServiceAddonEligibility(service_id="svc-2", addon_id="addon-2"),
            ServiceAddonEligibility(service_id="svc-3", addon_id="addon-3"),
            BusinessAddon(business_id="biz-1", addon_id="addon-2", custom_price=15, is_available=True),
        ]
    )
    db.commit()

    response = owner_client.get("/api/business-eligible-addons", params={"business_id": "biz-1"})

    assert response.status_code == 200
    data = response.json()
    assert data["_meta"]["fallback_mode"] is True
    assert data["addon_count"] == 2
    by_id = {addon["id"]: addon for addon in data["eligible_addons"]}
    assert set(by_id) == {"addon-1", "addon-2"}
    assert by_id["addon-1"]["is_configured"] is False
    assert by_id["addon-2"]["custom_price"] == 15
    assert by_id["addon-2"]["subcategory_name"] == "deep_tissue"


def test_eligible_addons_without_approved_categories(owner_client, catalogue):
    response = owner_client.get("/api/business-eligible-addons", params={"business_id": "biz-1"})

    data = response.json()
    assert data["addon_count"] == 0
    assert data["message"].startswith("No approved service categories")


def test_eligible_addons_from_rpc(owner_client):
    data = {
        "addons": [{"id": "addon-9", "name": "Hot Stones", "is_configured": False}],
        "total_count": 1,
        "stats": {"total_addons": 1, "configured_addons": 0},
    }
    with patch("roam_api.domain.services.service.call_rpc", return_value=[data]) as mock_rpc:
        response = owner_client.get("/api/business-eligible-addons", params={"business_id": "biz-1"})

    body = response.json()
    assert body == {
        "business_id": "biz-1",
        "addon_count": 1,
        "eligible_addons": data["addons"],
        "stats": data["stats"],
    }
    assert mock_rpc.call_args.args[1] == "get_business_eligible_addons_optimized"
