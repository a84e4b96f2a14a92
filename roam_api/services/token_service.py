"""
Signed onboarding tokens (phase 2 onboarding links and staff invitations)
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt

from ..config import FRONTEND_URL, JWT_SECRET

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_TTL = timedelta(days=7)

PHASE2_ISSUER = "roam-admin"
PHASE2_AUDIENCE = "roam-provider-app"
STAFF_INVITATION_TYPE = "staff_invitation"


class InvalidTokenError(Exception):
    """Token is malformed, expired, or signed with another key."""


def token_expiration(now: Optional[datetime] = None) -> datetime:
    return (now or datetime.utcnow()) + TOKEN_TTL


def create_phase2_token(business_id: str, user_id: str, application_id: Optional[str] = None) -> str:
    now = datetime.utcnow()
    expires = token_expiration(now)
    claims = {
        "business_id": business_id,
        "user_id": user_id,
        "application_id": application_id,
        "phase": "phase2",
        "issued_at": int(now.timestamp() * 1000),
        "expires_at": int(expires.timestamp() * 1000),
        "iat": now,
        "exp": expires,
        "iss": PHASE2_ISSUER,
        "aud": PHASE2_AUDIENCE,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=ALGORITHM)


def phase2_url(token: str) -> str:
    return f"{FRONTEND_URL}/provider-onboarding/phase2?token={token}"


def decode_phase2_token(token: str) -> dict:
    """
    Verify a phase 2 token. Links issued before issuer/audience claims were
    added are still accepted on signature and expiry alone.
    """
    try:
        return jwt.decode(
            token, JWT_SECRET, algorithms=[ALGORITHM], audience=PHASE2_AUDIENCE, issuer=PHASE2_ISSUER
        )
    except JWTError:
        pass

    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM], options={"verify_aud": False})
    except JWTError as e:
        logger.warning(f"⚠️ Invalid phase 2 token: {e}")
        raise InvalidTokenError(str(e)) from e


def create_staff_invitation_token(
    business_id: str,
    email: str,
    role: str,
    location_id: Optional[str] = None,
    invited_by: Optional[str] = None,
) -> str:
    claims = {
        "businessId": business_id,
        "email": email,
        "role": role,
        "locationId": location_id,
        "type": STAFF_INVITATION_TYPE,
        "exp": token_expiration(),
    }
    if invited_by:
        claims["invitedBy"] = invited_by
    return jwt.encode(claims, JWT_SECRET, algorithm=ALGORITHM)


def staff_onboarding_url(token: str) -> str:
    return f"{FRONTEND_URL}/staff-onboarding?token={token}"


def decode_staff_invitation_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"⚠️ Invalid staff invitation token: {e}")
        raise InvalidTokenError(str(e)) from e
