from datetime import date
from unittest.mock import patch

import pytest
from fastapi import HTTPException

from roam_api.domain.business.service import hours_for_display, hours_for_storage
from roam_api.models import (
    Booking,
    BusinessDocument,
    BusinessPaymentTransaction,
    BusinessProfile,
    BusinessServiceCategory,
    BusinessServiceSubcategory,
    BusinessStripeTaxInfo,
    Provider,
    Service,
    ServiceCategory,
    ServiceSubcategory,
)
from tests.conftest import login_as


def test_hours_for_display_defaults():
    hours = hours_for_display({"Monday": {"open": "08:00", "close": "12:00"}})

    assert hours["monday"] == {"open": "08:00", "close": "12:00", "closed": False}
    assert hours["tuesday"] == {"open": "09:00", "close": "17:00", "closed": False}
    assert hours["sunday"]["closed"] is True


def test_hours_for_storage_validation():
    assert hours_for_storage({"friday": {"open": "10:00", "close": "18:00"}}) == {
        "Friday": {"open": "10:00", "close": "18:00", "closed": False}
    }
    with pytest.raises(HTTPException) as exc:
        hours_for_storage({"friday": {"open": "18:00", "close": "10:00"}})
    assert exc.value.status_code == 400
    with pytest.raises(HTTPException):
        hours_for_storage({"funday": {"closed": True}})


def test_update_hours(owner_client, db):
    response = owner_client.put(
        "/api/business/hours",
        json={"business_id": "biz-1", "business_hours": {"saturday": {"open": "10:00", "close": "14:00"}}},
    )

    assert response.status_code == 200
    assert response.json()["business_hours"]["saturday"]["open"] == "10:00"
    db.expire_all()
    assert db.query(BusinessProfile).first().business_hours["Saturday"]["close"] == "14:00"


def test_update_hours_rejects_bad_time(owner_client):
    response = owner_client.put(
        "/api/business/hours",
        json={"business_id": "biz-1", "business_hours": {"monday": {"open": "9am", "close": "17:00"}}},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid time format for monday. Use HH:MM"}


def test_update_hours_rejects_string_closed_flag(owner_client, db):
    response = owner_client.put(
        "/api/business/hours",
        json={
            "business_id": "biz-1",
            "business_hours": {"monday": {"open": "09:00", "close": "17:00", "closed": "false"}},
        },
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid closed flag for monday. Use true or false"}
    assert db.query(BusinessProfile).first().business_hours is None


def test_dashboard_stats_fallback(owner_client, db):
    today = date.today()
    db.add_all(
        [
            Booking(business_id="biz-1", booking_date=today, booking_status="confirmed", provider_id="prov-owner"),
            Booking(business_id="biz-1", booking_date=today, booking_status="pending"),
            Booking(business_id="biz-1", booking_date=today, booking_status="completed", total_amount=200),
        ]
    )
    db.commit()

    response = owner_client.get("/api/business/dashboard-stats", params={"business_id": "biz-1"})

    data = response.json()
    assert data["total_bookings"] == 3
    assert data["total_revenue"] == 200
    assert data["unassigned_bookings"] == 1
    assert data["todays_confirmed_count"] == 1
    assert data["_meta"]["fallback_mode"] is True
    assert len(data["recent_bookings"]) == 3


def test_document_lifecycle(owner_client, db):
    created = owner_client.post(
        "/api/business/documents",
        json={
            "business_id": "biz-1",
            "document_type": "business_license",
            "document_name": "license.pdf",
            "file_url": "https://files.example/biz-1/license.pdf",
        },
    )
    assert created.status_code == 201
    document_id = created.json()["document"]["id"]
    assert created.json()["document"]["verification_status"] == "pending"

    listing = owner_client.get("/api/business/documents", params={"business_id": "biz-1"})
    assert listing.json()["document_count"] == 1

    with patch("roam_api.domain.business.service.delete_document_file") as mock_delete:
        deleted = owner_client.delete(
            "/api/business/documents", params={"business_id": "biz-1", "document_id": document_id}
        )
    assert deleted.status_code == 200
    mock_delete.assert_called_once_with("https://files.example/biz-1/license.pdf")
    assert db.query(BusinessDocument).count() == 0


def test_tax_info_defaults_contact_from_business(owner_client, db):
    response = owner_client.put(
        "/api/business/tax-info",
        json={"business_id": "biz-1", "tax_id": "12-3456789", "tax_id_type": "ein", "business_entity_type": "other"},
    )

    assert response.status_code == 200
    tax_info = response.json()["tax_info"]
    assert tax_info["tax_contact_email"] == "hello@serenity.example"
    assert tax_info["tax_contact_name"] == "Serenity Spa"
    assert tax_info["tax_id_type"] == "EIN"
    assert tax_info["business_entity_type"] == "llc"
    assert db.query(BusinessStripeTaxInfo).count() == 1


def test_tax_info_rejects_bad_email(owner_client):
    response = owner_client.put(
        "/api/business/tax-info", json={"business_id": "biz-1", "tax_contact_email": "not-an-email"}
    )

    assert response.status_code == 400


def test_financial_summary(owner_client, db):
    today = date.today()
    db.add_all(
        [
            Service(id="svc-1", name="Facial"),
            Booking(id="bk-1", business_id="biz-1", service_id="svc-1", booking_date=today),
            BusinessPaymentTransaction(
                booking_id="bk-1",
                business_id="biz-1",
                payment_date=today,
                gross_payment_amount=100,
                platform_fee=10,
                net_payment_amount=90,
            ),
        ]
    )
    db.commit()

    response = owner_client.get("/api/business/financial-summary", params={"business_id": "biz-1", "period": 30})

    data = response.json()
    assert data["period_summary"]["net_earnings"] == 90
    assert data["period_summary"]["booking_count"] == 1
    assert data["earnings_by_service"][0]["service_name"] == "Facial"
    assert data["recent_transactions"][0]["bookings"]["services"] == {"name": "Facial"}


def test_financial_summary_requires_manager(client, db, business):
    db.add(Provider(id="prov-staff", user_id="user-staff", business_id="biz-1", provider_role="provider", is_active=True))
    db.commit()
    login_as("user-staff")

    response = client.get("/api/business/financial-summary", params={"business_id": "biz-1"})

    assert response.status_code == 403


def test_service_eligibility_groups_approvals(owner_client, db):
    db.add_all(
        [
            ServiceCategory(id="cat-massage", service_category_type="massage", sort_order=2),
            ServiceCategory(id="cat-beauty", service_category_type="beauty", sort_order=1, image_url="beauty.png"),
            ServiceCategory(id="cat-fitness", service_category_type="fitness", sort_order=3),
            ServiceSubcategory(id="sub-deep", category_id="cat-massage", service_subcategory_type="deep_tissue"),
            ServiceSubcategory(id="sub-yoga", category_id="cat-fitness", service_subcategory_type="yoga"),
            BusinessServiceCategory(business_id="biz-1", category_id="cat-massage"),
            BusinessServiceCategory(business_id="biz-1", category_id="cat-beauty"),
            BusinessServiceCategory(business_id="biz-1", category_id="cat-fitness", is_active=False),
            BusinessServiceSubcategory(business_id="biz-1", category_id="cat-massage", subcategory_id="sub-deep"),
            BusinessServiceSubcategory(business_id="biz-1", category_id="cat-fitness", subcategory_id="sub-yoga"),
        ]
    )
    db.commit()

    response = owner_client.get("/api/business/service-eligibility", params={"business_id": "biz-1"})

    assert response.status_code == 200
    data = response.json()
    assert [c["category_name"] for c in data["approved_categories"]] == ["beauty", "massage", "Unknown Category"]
    assert data["approved_categories"][0]["image_url"] == "beauty.png"
    assert data["approved_categories"][1]["subcategories"][0]["subcategory_name"] == "deep_tissue"
    assert data["approved_categories"][2]["subcategories"][0]["subcategory_id"] == "sub-yoga"
    assert data["stats"] == {"total_categories": 3, "total_subcategories": 2}
    assert data["last_updated"] is not None
    assert data["additional_info"] is None


def test_service_eligibility_without_approvals(owner_client):
    response = owner_client.get("/api/business/service-eligibility", params={"business_id": "biz-1"})

    data = response.json()
    assert data["approved_categories"] == []
    assert data["stats"] == {"total_categories": 0, "total_subcategories": 0}
    assert data["last_updated"] is None
    assert "No service categories have been approved" in data["additional_info"]


def test_service_eligibility_requires_business_id(owner_client):
    response = owner_client.get("/api/business/service-eligibility")

    assert response.status_code == 400
    assert response.json() == {"error": "Business ID is required"}
