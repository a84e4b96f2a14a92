"""
Plaid REST client for business bank account linking
Access tokens are encrypted with Fernet before they are stored.
"""

import base64
import hashlib
import logging
import os
from typing import Optional

import httpx
from cryptography.fernet import Fernet

from ..config import JWT_SECRET, PLAID_CLIENT_ID, PLAID_ENV, PLAID_SECRET, PLAID_WEBHOOK_URL

logger = logging.getLogger(__name__)

PLAID_ENVIRONMENTS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}


def _encryption_key() -> bytes:
    key = os.getenv("PLAID_ENCRYPTION_KEY")
    if key:
        return key.encode()
    # Derive a valid Fernet key from the signing secret
    return base64.urlsafe_b64encode(hashlib.sha256(JWT_SECRET.encode()).digest())


cipher_suite = Fernet(_encryption_key())


def encrypt_access_token(access_token: str) -> str:
    return cipher_suite.encrypt(access_token.encode()).decode()


def decrypt_access_token(encrypted: str) -> str:
    return cipher_suite.decrypt(encrypted.encode()).decode()


class PlaidError(Exception):
    def __init__(self, message: str, status_code: int = 500, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


def _base_url() -> str:
    return PLAID_ENVIRONMENTS.get(PLAID_ENV, PLAID_ENVIRONMENTS["sandbox"])


async def _post(path: str, payload: dict) -> dict:
    if not PLAID_CLIENT_ID or not PLAID_SECRET:
        raise PlaidError("Plaid configuration error: PLAID_CLIENT_ID and PLAID_SECRET are required")

    body = {"client_id": PLAID_CLIENT_ID, "secret": PLAID_SECRET, **payload}
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(f"{_base_url()}{path}", json=body, timeout=20.0)
    except httpx.HTTPError as e:
        logger.error(f"❌ Plaid request {path} failed: {e}")
        raise PlaidError("Failed to reach Plaid", status_code=502) from e

    data = response.json()
    if response.status_code >= 400:
        message = data.get("error_message") or data.get("display_message") or "Plaid error"
        logger.error(f"❌ Plaid API error on {path}: {data.get('error_code')} {message}")
        raise PlaidError(message, status_code=500, code=data.get("error_code"))
    return data


async def create_link_token(user_id: str) -> dict:
    payload = {
        "user": {"client_user_id": user_id},
        "client_name": "ROAM Provider Onboarding",
        "products": ["auth"],
        "country_codes": ["US"],
        "language": "en",
        "account_filters": {"depository": {"account_subtypes": ["checking", "savings"]}},
    }
    if PLAID_WEBHOOK_URL:
        payload["webhook"] = PLAID_WEBHOOK_URL
    data = await _post("/link/token/create", payload)
    logger.info(f"✅ Created Plaid link token for user {user_id}")
    return data


async def exchange_public_token(public_token: str) -> tuple[str, str]:
    """Returns (access_token, item_id)."""
    data = await _post("/item/public_token/exchange", {"public_token": public_token})
    return data["access_token"], data["item_id"]


async def get_auth(access_token: str) -> dict:
    """Accounts plus ACH numbers (routing / account) for verified accounts."""
    return await _post("/auth/get", {"access_token": access_token})
