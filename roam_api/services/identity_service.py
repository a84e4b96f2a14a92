"""
Supabase Auth admin API client
User accounts live in the hosted identity provider; this service creates,
looks up and removes them with the service-role key.
"""

import logging
from typing import Optional

import httpx

from ..config import SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

LIST_USERS_PAGE_SIZE = 1000
LIST_USERS_MAX_PAGES = 20


class SupabaseAdminError(Exception):
    def __init__(self, message: str, status_code: int = 500, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    @property
    def is_email_exists(self) -> bool:
        text = self.message.lower()
        return (
            self.code == "email_exists"
            or "already registered" in text
            or "already been registered" in text
        )


def _headers() -> dict:
    return {
        "apikey": SUPABASE_SERVICE_ROLE_KEY or "",
        "Authorization": f"Bearer {SUPABASE_SERVICE_ROLE_KEY}",
        "Content-Type": "application/json",
    }


def _admin_url(path: str = "") -> str:
    if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
        raise SupabaseAdminError("Supabase configuration error")
    return f"{SUPABASE_URL}/auth/v1/admin/users{path}"


def _raise_for_response(response: httpx.Response, action: str) -> None:
    if response.status_code < 400:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = body.get("msg") or body.get("message") or body.get("error_description") or response.text
    code = body.get("error_code") or body.get("code")
    logger.error(f"❌ Supabase admin {action} failed ({response.status_code}): {message}")
    raise SupabaseAdminError(str(message), status_code=response.status_code, code=str(code) if code else None)


async def create_user(
    email: str,
    password: str,
    user_metadata: Optional[dict] = None,
    email_confirm: bool = True,
) -> dict:
    """Create a confirmed auth user and return the user object."""
    payload = {
        "email": email,
        "password": password,
        "email_confirm": email_confirm,
        "user_metadata": user_metadata or {},
    }
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(_admin_url(), json=payload, headers=_headers(), timeout=15.0)
    except httpx.HTTPError as e:
        logger.error(f"❌ Supabase admin create user request failed: {e}")
        raise SupabaseAdminError("Failed to reach identity provider") from e

    _raise_for_response(response, "create user")
    user = response.json()
    # Older GoTrue versions wrap the user
    user = user.get("user", user)
    logger.info(f"✅ Created auth user {user.get('id')} for {email}")
    return user


async def get_user(user_id: str) -> Optional[dict]:
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(_admin_url(f"/{user_id}"), headers=_headers(), timeout=10.0)
    except httpx.HTTPError as e:
        raise SupabaseAdminError("Failed to reach identity provider") from e

    if response.status_code == 404:
        return None
    _raise_for_response(response, "get user")
    user = response.json()
    return user.get("user", user)


async def list_users(page: int = 1, per_page: int = LIST_USERS_PAGE_SIZE) -> list[dict]:
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                _admin_url(),
                params={"page": page, "per_page": per_page},
                headers=_headers(),
                timeout=15.0,
            )
    except httpx.HTTPError as e:
        raise SupabaseAdminError("Failed to reach identity provider") from e

    _raise_for_response(response, "list users")
    return response.json().get("users", [])


async def find_user_by_email(email: str) -> Optional[dict]:
    """Page through auth users looking for an email (case-insensitive)."""
    target = email.strip().lower()
    for page in range(1, LIST_USERS_MAX_PAGES + 1):
        users = await list_users(page=page)
        for user in users:
            if (user.get("email") or "").lower() == target:
                return user
        if len(users) < LIST_USERS_PAGE_SIZE:
            break
    return None


async def delete_user(user_id: str) -> None:
    try:
        async with httpx.AsyncClient() as client:
            response = await client.delete(_admin_url(f"/{user_id}"), headers=_headers(), timeout=10.0)
    except httpx.HTTPError as e:
        raise SupabaseAdminError("Failed to reach identity provider") from e

    _raise_for_response(response, "delete user")
    logger.info(f"🗑️ Deleted auth user {user_id}")
