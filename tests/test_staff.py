from unittest.mock import AsyncMock, patch

import pytest

from roam_api.domain.staff.service import TEMPORARY_PASSWORD_CHARS, generate_temporary_password
from roam_api.models import Provider
from roam_api.services.identity_service import SupabaseAdminError
from roam_api.services.token_service import create_staff_invitation_token


@pytest.fixture
def mock_emails():
    with patch("roam_api.domain.staff.service.send_staff_welcome_email", new_callable=AsyncMock) as welcome, patch(
        "roam_api.domain.staff.service.send_staff_invitation_email", new_callable=AsyncMock
    ) as invitation:
        yield {"welcome": welcome, "invitation": invitation}


def test_temporary_password_alphabet():
    password = generate_temporary_password()

    assert len(password) == 12
    assert all(char in TEMPORARY_PASSWORD_CHARS for char in password)
    assert not set("0O1lI") & set(password)


def test_create_manual_staff(owner_client, db, mock_emails):
    with patch(
        "roam_api.services.identity_service.find_user_by_email", new_callable=AsyncMock, return_value=None
    ), patch(
        "roam_api.services.identity_service.create_user", new_callable=AsyncMock, return_value={"id": "user-staff"}
    ):
        response = owner_client.post(
            "/api/staff/create-manual",
            json={
                "businessId": "biz-1",
                "firstName": "Sam",
                "lastName": "Staff",
                "email": "Sam@Example.com",
                "phone": "5552223333",
                "role": "provider",
            },
        )

    assert response.status_code == 200
    data = response.json()
    assert data["existingUser"] is False
    assert data["emailSent"] is True
    assert len(data["temporaryPassword"]) == 12
    provider = db.query(Provider).filter(Provider.user_id == "user-staff").first()
    assert provider.email == "sam@example.com"
    assert provider.business_id == "biz-1"
    mock_emails["welcome"].assert_awaited_once()


def test_create_manual_reuses_existing_account(owner_client, mock_emails):
    with patch(
        "roam_api.services.identity_service.find_user_by_email",
        new_callable=AsyncMock,
        return_value={"id": "user-existing"},
    ), patch("roam_api.services.identity_service.create_user", new_callable=AsyncMock) as mock_create:
        response = owner_client.post(
            "/api/staff/create-manual",
            json={
                "businessId": "biz-1",
                "firstName": "Sam",
                "lastName": "Staff",
                "email": "sam@example.com",
                "phone": "5552223333",
                "role": "dispatcher",
            },
        )

    assert response.json()["existingUser"] is True
    assert response.json()["temporaryPassword"] is None
    mock_create.assert_not_awaited()


def test_create_manual_rejects_existing_member(owner_client, mock_emails):
    response = owner_client.post(
        "/api/staff/create-manual",
        json={
            "businessId": "biz-1",
            "firstName": "Olivia",
            "lastName": "Owner",
            "email": "owner@serenity.example",
            "phone": "5552223333",
            "role": "provider",
        },
    )

    assert response.status_code == 409
    assert response.json() == {"error": "User is already a member of this business"}


def test_invite_rejects_bad_role(owner_client, mock_emails):
    response = owner_client.post(
        "/api/staff/invite", json={"businessId": "biz-1", "email": "new@example.com", "role": "admin"}
    )

    assert response.status_code == 400


def test_invite_and_validate(owner_client, client, mock_emails):
    invite = owner_client.post(
        "/api/staff/invite", json={"businessId": "biz-1", "email": "New@Example.com", "role": "provider"}
    )

    assert invite.status_code == 200
    assert invite.json()["email"] == "new@example.com"
    assert "/staff-onboarding?token=" in invite.json()["onboardingLink"]
    token = invite.json()["onboardingLink"].split("token=")[1]

    validated = client.post("/api/staff/validate-invitation", json={"token": token})

    assert validated.json()["invitation"] == {
        "businessId": "biz-1",
        "email": "new@example.com",
        "role": "provider",
        "locationId": "",
        "businessName": "Serenity Spa",
        "locationName": "No specific location",
    }


def test_validate_invitation_bad_token(client):
    response = client.post("/api/staff/validate-invitation", json={"token": "nope"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid or expired invitation token"}


def test_complete_onboarding_with_existing_account(client, db, business):
    token = create_staff_invitation_token("biz-1", "invitee@example.com", "dispatcher")
    exists = SupabaseAdminError("User already registered", status_code=422)

    with patch(
        "roam_api.services.identity_service.create_user", new_callable=AsyncMock, side_effect=exists
    ), patch(
        "roam_api.services.identity_service.find_user_by_email",
        new_callable=AsyncMock,
        return_value={"id": "user-invitee"},
    ):
        response = client.post(
            "/api/staff/complete-onboarding",
            json={
                "token": token,
                "firstName": "Ivy",
                "lastName": "Invitee",
                "phone": "5554445555",
                "password": "long-enough",
                "confirmPassword": "long-enough",
            },
        )

    assert response.status_code == 200
    provider = db.query(Provider).filter(Provider.id == response.json()["providerId"]).first()
    assert provider.user_id == "user-invitee"
    assert provider.provider_role == "dispatcher"
    assert provider.is_active is True


def test_complete_onboarding_password_mismatch(client, business):
    token = create_staff_invitation_token("biz-1", "invitee@example.com", "provider")

    response = client.post(
        "/api/staff/complete-onboarding",
        json={
            "token": token,
            "firstName": "Ivy",
            "lastName": "Invitee",
            "phone": "5554445555",
            "password": "long-enough",
            "confirmPassword": "different",
        },
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Passwords do not match"}
