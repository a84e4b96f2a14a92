from datetime import date, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from roam_api.models import (
    BusinessDocument,
    BusinessProfile,
    BusinessServiceCategory,
    ProviderApplication,
    Provider,
)
from roam_api.services.identity_service import SupabaseAdminError
from roam_api.services.token_service import create_phase2_token
from tests.conftest import login_as

SIGNUP = {
    "email": "New.Provider@Example.com",
    "password": "correct-horse",
    "firstName": "Nina",
    "lastName": "Nguyen",
    "phone": "5559876543",
    "dateOfBirth": "1990-05-17",
}


def test_signup_creates_owner_and_draft_application(client, db):
    with patch(
        "roam_api.services.identity_service.create_user",
        new_callable=AsyncMock,
        return_value={"id": "user-new", "email": "new.provider@example.com"},
    ) as mock_create:
        response = client.post("/api/auth/signup", json=SIGNUP)

    assert response.status_code == 201
    assert response.json()["user"]["id"] == "user-new"
    assert mock_create.await_args.kwargs["email"] == "new.provider@example.com"

    provider = db.query(Provider).filter(Provider.user_id == "user-new").first()
    assert provider.provider_role == "owner"
    assert provider.is_active is False
    assert db.query(ProviderApplication).first().application_status == "draft"


def test_signup_rejects_minors(client):
    too_young = (date.today() - timedelta(days=17 * 365)).isoformat()

    response = client.post("/api/auth/signup", json={**SIGNUP, "dateOfBirth": too_young})

    assert response.status_code == 400
    assert "18 years old" in response.json()["error"]


@pytest.mark.parametrize(
    "override, message",
    [
        ({"email": None}, "Missing required field: email"),
        ({"email": "not-an-email"}, "Invalid email format"),
        ({"password": "short"}, "Password must be at least 8 characters long"),
    ],
)
def test_signup_validation(client, override, message):
    response = client.post("/api/auth/signup", json={**SIGNUP, **override})

    assert response.status_code == 400
    assert response.json() == {"error": message}


def test_signup_existing_email(client):
    error = SupabaseAdminError("User already registered", status_code=422, code="email_exists")
    with patch("roam_api.services.identity_service.create_user", new_callable=AsyncMock, side_effect=error):
        response = client.post("/api/auth/signup", json=SIGNUP)

    assert response.status_code == 409
    assert response.json()["code"] == "email_exists"


def test_business_info_creates_business(client, db):
    db.add_all(
        [
            Provider(id="prov-new", user_id="user-new", provider_role="owner", first_name="Nina", is_active=False),
            ProviderApplication(user_id="user-new", application_status="draft"),
        ]
    )
    db.commit()
    login_as("user-new")

    response = client.post(
        "/api/onboarding/business-info",
        json={
            "userId": "user-new",
            "businessData": {
                "businessName": "Glow Studio",
                "businessType": "sole_proprietorship",
                "contactEmail": "glow@example.com",
                "phone": "5550001111",
                "serviceCategories": ["cat-1"],
            },
        },
    )

    assert response.status_code == 200
    business_id = response.json()["business"]["id"]
    assert response.json()["business"]["verification_status"] == "pending"
    db.expire_all()
    assert db.query(Provider).filter(Provider.id == "prov-new").first().business_id == business_id
    assert db.query(ProviderApplication).first().business_id == business_id
    assert db.query(BusinessServiceCategory).filter(BusinessServiceCategory.business_id == business_id).count() == 1


def test_business_info_requires_categories(client):
    login_as("user-new")

    response = client.post(
        "/api/onboarding/business-info",
        json={
            "userId": "user-new",
            "businessData": {
                "businessName": "Glow Studio",
                "businessType": "llc",
                "contactEmail": "glow@example.com",
                "phone": "5550001111",
                "serviceCategories": [],
            },
        },
    )

    assert response.status_code == 400
    assert response.json()["error"].startswith("Missing required field: serviceCategories")


def test_business_info_for_another_user_is_denied(client):
    login_as("user-new")

    response = client.post("/api/onboarding/business-info", json={"userId": "user-other", "businessData": {}})

    assert response.status_code == 403


@pytest.fixture
def pending_business(db):
    db.add_all(
        [
            BusinessProfile(
                id="biz-new",
                business_name="Glow Studio",
                business_type="sole_proprietorship",
                contact_email="glow@example.com",
                verification_status="pending",
            ),
            Provider(id="prov-new", user_id="user-new", business_id="biz-new", provider_role="owner", first_name="Nina"),
            BusinessDocument(
                business_id="biz-new",
                document_type="professional_license",
                document_name="license.pdf",
                file_url="https://files.example/license.pdf",
                verification_status="pending",
            ),
            BusinessDocument(
                business_id="biz-new",
                document_type="professional_headshot",
                document_name="headshot.jpg",
                file_url="https://files.example/headshot.jpg",
                verification_status="pending",
            ),
        ]
    )
    db.commit()
    login_as("user-new")


CONSENTS = {"informationAccuracy": True, "termsAccepted": True, "backgroundCheckConsent": True}


def test_submit_application(client, db, pending_business):
    with patch(
        "roam_api.domain.onboarding.service.send_application_submitted_email", new_callable=AsyncMock
    ) as mock_email:
        response = client.post(
            "/api/onboarding/submit-application",
            json={"userId": "user-new", "businessId": "biz-new", "finalConsents": CONSENTS},
        )

    assert response.status_code == 200
    assert response.json()["success"] is True
    mock_email.assert_awaited_once_with("glow@example.com", "Glow Studio", "Nina")
    db.expire_all()
    assert db.query(BusinessProfile).first().verification_status == "under_review"
    assert db.query(Provider).first().verification_status == "under_review"

    again = client.post(
        "/api/onboarding/submit-application",
        json={"userId": "user-new", "businessId": "biz-new", "finalConsents": CONSENTS},
    )
    assert again.status_code == 400
    assert again.json()["error"] == "Application already submitted"


def test_submit_requires_all_consents(client, pending_business):
    response = client.post(
        "/api/onboarding/submit-application",
        json={"userId": "user-new", "businessId": "biz-new", "finalConsents": {**CONSENTS, "termsAccepted": False}},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "All consents must be given to submit application"}


def test_status_phase1_review(client, pending_business):
    with patch(
        "roam_api.services.identity_service.get_user",
        new_callable=AsyncMock,
        return_value={"id": "user-new", "email": "glow@example.com"},
    ):
        response = client.get("/api/onboarding/status/user-new")

    data = response.json()
    assert data["phase"] == "phase1"
    assert data["currentStep"] == "review"
    assert data["applicationStatus"]["status"] == "not_submitted"
    assert data["setupProgress"]["current_step"] == 1


def test_status_phase2_identity(client, db, pending_business):
    business = db.query(BusinessProfile).first()
    business.verification_status = "approved"
    db.commit()

    with patch(
        "roam_api.services.identity_service.get_user",
        new_callable=AsyncMock,
        return_value={"id": "user-new", "email": "glow@example.com"},
    ):
        response = client.get("/api/onboarding/status/user-new")

    assert response.json()["phase"] == "phase2"
    assert response.json()["currentStep"] == "identity_verification"


def test_validate_phase2_token(client, db, business):
    token = create_phase2_token("biz-1", "user-owner", "app-1")

    response = client.post("/api/onboarding/validate-phase2-token", json={"token": token})

    assert response.status_code == 200
    data = response.json()
    assert data["business_id"] == "biz-1"
    assert data["application_id"] == "app-1"
    assert data["progress"]["current_step"] == 3


def test_validate_phase2_token_errors(client, db, business):
    assert client.post("/api/onboarding/validate-phase2-token", json={}).json() == {"error": "Token required"}
    assert client.post("/api/onboarding/validate-phase2-token", json={"token": "garbage"}).json() == {
        "error": "Invalid token format"
    }

    business.verification_status = "pending"
    db.commit()
    token = create_phase2_token("biz-1", "user-owner")
    response = client.post("/api/onboarding/validate-phase2-token", json={"token": token})
    assert response.status_code == 403
