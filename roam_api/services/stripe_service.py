"""
Stripe REST client
Connect Express accounts for provider payouts and Identity sessions for
owner verification; requests are form-encoded as the
Stripe API expects.
"""

import logging
from typing import Any, Optional

import httpx

from ..config import STRIPE_API_BASE, STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)


class StripeError(Exception):
    def __init__(self, message: str, status_code: int = 400, code: Optional[str] = None, error_type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.error_type = error_type


def encode_form(params: dict, prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested dicts/lists into Stripe's ``a[b][c]=v`` form fields. None values are dropped."""
    fields: list[tuple[str, str]] = []
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            fields.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                if isinstance(item, dict):
                    fields.extend(encode_form(item, f"{name}[{index}]"))
                else:
                    fields.append((f"{name}[{index}]", _form_value(item)))
        else:
            fields.append((name, _form_value(value)))
    return fields


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


async def _request(method: str, path: str, params: Optional[dict] = None) -> dict:
    if not STRIPE_SECRET_KEY:
        raise StripeError("Stripe configuration error: STRIPE_SECRET_KEY is not configured", status_code=500)

    url = f"{STRIPE_API_BASE}{path}"
    try:
        async with httpx.AsyncClient() as client:
            if method == "GET":
                response = await client.get(url, auth=(STRIPE_SECRET_KEY, ""), timeout=20.0)
            else:
                response = await client.request(
                    method, url, data=encode_form(params or {}), auth=(STRIPE_SECRET_KEY, ""), timeout=20.0
                )
    except httpx.HTTPError as e:
        logger.error(f"❌ Stripe request {method} {path} failed: {e}")
        raise StripeError("Failed to reach Stripe", status_code=502) from e

    body = response.json()
    if response.status_code >= 400:
        error = body.get("error", {})
        logger.error(f"❌ Stripe API error on {path}: {error.get('message')}")
        raise StripeError(
            error.get("message", "Stripe error"),
            status_code=400,
            code=error.get("code"),
            error_type=error.get("type"),
        )
    return body


async def create_express_account(
    email: str,
    country: str,
    business_type: str,
    business_profile: dict,
    individual: Optional[dict] = None,
    company: Optional[dict] = None,
) -> dict:
    params = {
        "type": "express",
        "country": country,
        "email": email,
        "business_type": business_type,
        "business_profile": business_profile,
        "capabilities": {
            "card_payments": {"requested": True},
            "transfers": {"requested": True},
        },
        "individual": individual,
        "company": company,
    }
    account = await _request("POST", "/accounts", params)
    logger.info(f"✅ Created Stripe Connect account {account.get('id')}")
    return account


async def create_account_link(account_id: str, refresh_url: str, return_url: str) -> dict:
    return await _request(
        "POST",
        "/account_links",
        {
            "account": account_id,
            "refresh_url": refresh_url,
            "return_url": return_url,
            "type": "account_onboarding",
            "collect": "eventually_due",
        },
    )


async def retrieve_account(account_id: str) -> dict:
    return await _request("GET", f"/accounts/{account_id}")


async def list_accounts(limit: int = 100) -> list[dict]:
    """Most recent connected accounts; Stripe has no email search for Connect accounts."""
    body = await _request("GET", f"/accounts?limit={limit}")
    return body.get("data") or []


async def create_verification_session(verification_type: str, metadata: dict, options: Optional[dict] = None) -> dict:
    session = await _request(
        "POST",
        "/identity/verification_sessions",
        {"type": verification_type, "metadata": metadata, "options": options},
    )
    logger.info(f"✅ Created Stripe Identity session {session.get('id')}")
    return session


async def retrieve_verification_session(session_id: str) -> dict:
    return await _request("GET", f"/identity/verification_sessions/{session_id}")


def onboarding_status(account: dict) -> tuple[str, str]:
    """Map a Stripe account to (status, human message)."""
    requirements = account.get("requirements") or {}
    currently_due = requirements.get("currently_due") or []

    if account.get("charges_enabled") and account.get("payouts_enabled"):
        return "complete", "Account fully onboarded and ready to accept payments"
    if account.get("details_submitted"):
        return "review", "Account details submitted, pending Stripe review"
    if currently_due:
        return "incomplete", f"Account setup incomplete: {len(currently_due)} items required"
    return "pending", "Account setup in progress"
