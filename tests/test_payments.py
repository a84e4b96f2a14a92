from unittest.mock import AsyncMock, patch

import pytest

from roam_api.models import (
    BusinessProfile,
    BusinessSetupProgress,
    PlaidBankConnection,
    Provider,
    StripeConnectAccount,
    StripeIdentityVerification,
)
from roam_api.services.plaid_service import decrypt_access_token, encrypt_access_token
from roam_api.domain.payments.service import document_options
from roam_api.services.stripe_service import StripeError, encode_form, onboarding_status
from tests.conftest import login_as

CONNECT_BODY = {
    "userId": "user-owner",
    "businessId": "biz-1",
    "businessName": "Serenity Spa",
    "businessType": "company",
    "email": "hello@serenity.example",
    "country": "US",
    "companyName": "Serenity Spa LLC",
    "taxId": "12-3456789",
}


def test_encode_form_flattens_nested_params():
    fields = encode_form({"type": "express", "capabilities": {"transfers": {"requested": True}}, "skip": None})

    assert fields == [("type", "express"), ("capabilities[transfers][requested]", "true")]


def test_onboarding_status():
    assert onboarding_status({"charges_enabled": True, "payouts_enabled": True})[0] == "complete"
    assert onboarding_status({"details_submitted": True})[0] == "review"
    assert onboarding_status({"requirements": {"currently_due": ["tos_acceptance.date"]}}) == (
        "incomplete",
        "Account setup incomplete: 1 items required",
    )


def test_access_token_encryption():
    encrypted = encrypt_access_token("access-sandbox-123")

    assert encrypted != "access-sandbox-123"
    assert decrypt_access_token(encrypted) == "access-sandbox-123"


def test_create_connect_account(owner_client, db):
    with patch(
        "roam_api.services.stripe_service.create_express_account",
        new_callable=AsyncMock,
        return_value={"id": "acct_123", "charges_enabled": False},
    ) as mock_account, patch(
        "roam_api.services.stripe_service.create_account_link",
        new_callable=AsyncMock,
        return_value={"url": "https://connect.stripe.com/setup/acct_123", "expires_at": 1700000000},
    ):
        response = owner_client.post("/api/stripe/create-connect-account", json=CONNECT_BODY)

    assert response.status_code == 200
    data = response.json()
    assert data["account"] == {
        "id": "acct_123",
        "status": "pending",
        "charges_enabled": False,
        "payouts_enabled": False,
        "details_submitted": False,
        "requirements": None,
    }
    assert data["accountLink"]["url"] == "https://connect.stripe.com/setup/acct_123"
    assert mock_account.await_args.kwargs["company"]["name"] == "Serenity Spa LLC"
    assert db.query(StripeConnectAccount).first().account_id == "acct_123"
    assert db.query(BusinessProfile).first().stripe_connect_account_id == "acct_123"


def test_create_connect_account_requires_approval(owner_client, db):
    business = db.query(BusinessProfile).first()
    business.verification_status = "under_review"
    db.commit()

    response = owner_client.post("/api/stripe/create-connect-account", json=CONNECT_BODY)

    assert response.status_code == 403
    assert response.json()["currentStatus"] == "under_review"


def test_create_connect_account_existing(owner_client, db):
    db.add(StripeConnectAccount(business_id="biz-1", user_id="user-owner", account_id="acct_old", charges_enabled=True))
    db.commit()

    response = owner_client.post("/api/stripe/create-connect-account", json=CONNECT_BODY)

    assert response.status_code == 409
    assert response.json()["status"] == "active"


def test_create_connect_account_stripe_error(owner_client):
    error = StripeError("Invalid tax id", status_code=400, code="invalid_tax_id", error_type="invalid_request_error")
    with patch("roam_api.services.stripe_service.create_express_account", new_callable=AsyncMock, side_effect=error):
        response = owner_client.post("/api/stripe/create-connect-account", json=CONNECT_BODY)

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_tax_id"


def test_individual_requires_personal_details(owner_client):
    response = owner_client.post(
        "/api/stripe/create-connect-account", json={**CONNECT_BODY, "businessType": "individual"}
    )

    assert response.status_code == 400


def test_only_owner_can_create_connect_account(client, db, business):
    db.add(Provider(id="prov-disp", user_id="user-disp", business_id="biz-1", provider_role="dispatcher", is_active=True))
    db.commit()
    login_as("user-disp")

    response = client.post("/api/stripe/create-connect-account", json={**CONNECT_BODY, "userId": "user-disp"})

    assert response.status_code == 403


def test_check_connect_account_status_syncs(owner_client, db):
    db.add(StripeConnectAccount(business_id="biz-1", user_id="user-owner", account_id="acct_123"))
    db.commit()

    account = {
        "id": "acct_123",
        "charges_enabled": True,
        "payouts_enabled": True,
        "details_submitted": True,
        "requirements": {"currently_due": [], "eventually_due": ["individual.id_number"]},
    }
    with patch("roam_api.services.stripe_service.retrieve_account", new_callable=AsyncMock, return_value=account):
        response = owner_client.get(
            "/api/stripe/check-connect-account-status", params={"userId": "user-owner", "businessId": "biz-1"}
        )

    data = response.json()
    assert data["account"]["status"] == "complete"
    assert data["account"]["needs_verification"] is True
    assert data["can_accept_payments"] is True
    db.expire_all()
    assert db.query(StripeConnectAccount).first().payouts_enabled is True


def test_check_connect_account_status_not_found(owner_client):
    response = owner_client.get(
        "/api/stripe/check-connect-account-status", params={"userId": "user-owner", "businessId": "biz-1"}
    )

    assert response.status_code == 404


def test_create_link_token(owner_client):
    with patch(
        "roam_api.services.plaid_service.create_link_token",
        new_callable=AsyncMock,
        return_value={"link_token": "link-sandbox-1", "expiration": "2030-01-01T00:00:00Z"},
    ):
        response = owner_client.post("/api/plaid/create-link-token", json={"userId": "user-owner", "businessId": "biz-1"})

    assert response.json() == {"success": True, "link_token": "link-sandbox-1", "expiration": "2030-01-01T00:00:00Z"}


@pytest.fixture
def plaid_auth():
    return {
        "accounts": [
            {"account_id": "acc-1", "name": "Business Checking", "mask": "0000", "type": "depository", "subtype": "checking"}
        ],
        "numbers": {"ach": [{"account_id": "acc-1", "routing": "011401533"}]},
    }


def test_exchange_public_token(owner_client, db, plaid_auth):
    with patch(
        "roam_api.services.plaid_service.exchange_public_token",
        new_callable=AsyncMock,
        return_value=("access-sandbox-1", "item-1"),
    ), patch("roam_api.services.plaid_service.get_auth", new_callable=AsyncMock, return_value=plaid_auth):
        response = owner_client.post(
            "/api/plaid/exchange-public-token",
            json={
                "public_token": "public-sandbox-1",
                "account_id": "acc-1",
                "userId": "user-owner",
                "businessId": "biz-1",
                "metadata": {"institution": {"institution_id": "ins_1", "name": "Chase"}},
            },
        )

    assert response.status_code == 200
    connection = response.json()["connection"]
    assert connection["account_mask"] == "0000"
    assert connection["institution_name"] == "Chase"
    assert "plaid_access_token" not in connection

    stored = db.query(PlaidBankConnection).first()
    assert decrypt_access_token(stored.plaid_access_token) == "access-sandbox-1"
    assert stored.routing_numbers == ["011401533"]
    db.expire_all()
    assert db.query(BusinessProfile).first().bank_connected is True

    lookup = owner_client.get("/api/plaid/bank-connection/biz-1")
    assert lookup.json()["connected"] is True


def test_exchange_public_token_unknown_account(owner_client, plaid_auth):
    with patch(
        "roam_api.services.plaid_service.exchange_public_token",
        new_callable=AsyncMock,
        return_value=("access-sandbox-1", "item-1"),
    ), patch("roam_api.services.plaid_service.get_auth", new_callable=AsyncMock, return_value=plaid_auth):
        response = owner_client.post(
            "/api/plaid/exchange-public-token",
            json={"public_token": "p", "account_id": "acc-missing", "userId": "user-owner", "businessId": "biz-1"},
        )

    assert response.status_code == 400
    assert response.json() == {"error": "Selected account not found"}


# ============================================================================
# Stripe Identity
# ============================================================================


def test_document_options_default_to_strict_checks():
    assert document_options("document", {"document": {"require_live_capture": False}}) == {
        "document": {
            "allowed_types": ["driving_license", "passport", "id_card"],
            "require_id_number": True,
            "require_live_capture": False,
            "require_matching_selfie": True,
        }
    }
    assert document_options("id_number", {"document": {}}) is None


def test_create_verification_session(owner_client, db):
    session = {
        "id": "vs_123",
        "client_secret": "vs_123_secret",
        "status": "requires_input",
        "type": "document",
        "created": 1700000000,
    }
    with patch(
        "roam_api.services.stripe_service.create_verification_session", new_callable=AsyncMock, return_value=session
    ) as mock_session:
        response = owner_client.post(
            "/api/stripe/create-verification-session", json={"userId": "user-owner", "businessId": "biz-1"}
        )

    assert response.status_code == 200
    assert response.json()["verification_session"]["client_secret"] == "vs_123_secret"
    assert mock_session.await_args.kwargs["metadata"]["business_name"] == "Serenity Spa"
    stored = db.query(StripeIdentityVerification).first()
    assert stored.session_id == "vs_123"
    assert stored.status == "requires_input"


def test_create_verification_session_when_already_verified(owner_client, db):
    db.add(
        StripeIdentityVerification(
            user_id="user-owner", business_id="biz-1", session_id="vs_done", status="verified", client_secret="secret"
        )
    )
    db.commit()

    with patch("roam_api.services.stripe_service.create_verification_session", new_callable=AsyncMock) as mock_session:
        response = owner_client.post(
            "/api/stripe/create-verification-session", json={"userId": "user-owner", "businessId": "biz-1"}
        )

    assert response.json()["message"] == "Identity already verified"
    assert response.json()["verification_session"]["client_secret"] is None
    mock_session.assert_not_awaited()


def test_check_verification_status_marks_identity_verified(owner_client, db):
    db.add(StripeIdentityVerification(user_id="user-owner", business_id="biz-1", session_id="vs_123", status="processing"))
    db.commit()

    session = {"id": "vs_123", "status": "verified", "type": "document", "last_verification_report": "vr_1"}
    with patch(
        "roam_api.services.stripe_service.retrieve_verification_session", new_callable=AsyncMock, return_value=session
    ):
        response = owner_client.get("/api/stripe/check-verification-status/vs_123", params={"businessId": "biz-1"})

    assert response.status_code == 200
    assert response.json()["verification_session"]["status"] == "verified"
    db.expire_all()
    business = db.query(BusinessProfile).first()
    assert business.identity_verified is True
    assert business.identity_verified_at is not None
    assert db.query(StripeIdentityVerification).first().verification_report == "vr_1"
    assert db.query(BusinessSetupProgress).first().identity_verification_completed is True

    with patch(
        "roam_api.services.identity_service.get_user",
        new_callable=AsyncMock,
        return_value={"id": "user-owner", "email": "hello@serenity.example"},
    ):
        status = owner_client.get("/api/onboarding/status/user-owner")

    assert status.json()["currentStep"] == "bank_connection"


def test_check_verification_status_invalid_session(owner_client):
    error = StripeError("No such session", code="resource_missing", error_type="invalid_request_error")
    with patch(
        "roam_api.services.stripe_service.retrieve_verification_session", new_callable=AsyncMock, side_effect=error
    ):
        response = owner_client.get("/api/stripe/check-verification-status/vs_bad", params={"businessId": "biz-1"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid verification session"


def test_check_existing_account_linked(owner_client, db):
    db.add(StripeConnectAccount(business_id="biz-1", user_id="user-owner", account_id="acct_123"))
    db.commit()

    with patch(
        "roam_api.services.stripe_service.retrieve_account",
        new_callable=AsyncMock,
        return_value={"id": "acct_123", "email": "hello@serenity.example", "charges_enabled": True},
    ):
        response = owner_client.get(
            "/api/stripe/check-existing-account", params={"email": "hello@serenity.example", "businessId": "biz-1"}
        )

    data = response.json()
    assert data["found"] is True
    assert data["source"] == "database"
    assert data["linked"] is True
    assert data["account"]["id"] == "acct_123"


def test_check_existing_account_matches_email(owner_client):
    accounts = [
        {"id": "acct_other", "email": "someone@example.com"},
        {"id": "acct_match", "email": "Hello@Serenity.example", "created": 1700000000},
    ]
    with patch("roam_api.services.stripe_service.list_accounts", new_callable=AsyncMock, return_value=accounts):
        response = owner_client.get(
            "/api/stripe/check-existing-account", params={"email": "hello@serenity.example", "businessId": "biz-1"}
        )

    data = response.json()
    assert data["source"] == "stripe"
    assert data["linked"] is False
    assert data["account"]["id"] == "acct_match"
    assert data["count"] == 1


def test_check_existing_account_search_failure(owner_client):
    with patch(
        "roam_api.services.stripe_service.list_accounts", new_callable=AsyncMock, side_effect=StripeError("down")
    ):
        response = owner_client.get(
            "/api/stripe/check-existing-account", params={"email": "hello@serenity.example", "businessId": "biz-1"}
        )

    assert response.json()["found"] is False
    assert response.json()["searchError"] is True
