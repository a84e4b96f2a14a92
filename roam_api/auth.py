import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .config import SUPABASE_JWT_AUDIENCE, SUPABASE_JWT_SECRET, SUPABASE_SERVICE_ROLE_KEY
from .database import get_db
from .models import AdminUser, Provider

logger = logging.getLogger(__name__)

security = HTTPBearer()


class AuthUser(BaseModel):
    """Identity extracted from a Supabase access token."""

    id: str
    email: Optional[str] = None
    role: Optional[str] = None


def verify_supabase_token(token: str) -> dict:
    """Verify a Supabase access token (HS256, project JWT secret)."""
    if not SUPABASE_JWT_SECRET:
        logger.error("❌ SUPABASE_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")

    try:
        return jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.warning(f"⚠️ Invalid access token: {e}")
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> AuthUser:
    """Get current user from the Supabase bearer token"""
    token = credentials.credentials

    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(status_code=401, detail="Invalid token format. Expected a valid JWT token.")

    claims = verify_supabase_token(token)
    user_id = claims.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing sub claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    return AuthUser(id=user_id, email=claims.get("email"), role=claims.get("role"))


async def get_current_provider(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Provider:
    """Active provider profile (owner, dispatcher or provider) for the caller."""
    provider = (
        db.query(Provider)
        .filter(Provider.user_id == user.id, Provider.is_active.is_(True))
        .first()
    )
    if not provider:
        logger.warning(f"⚠️ No active provider profile for user {user.id}")
        raise HTTPException(status_code=403, detail="Provider profile not found")
    return provider


def ensure_business_access(provider: Provider, business_id: str) -> None:
    if provider.business_id != business_id:
        logger.warning(
            f"⚠️ Provider {provider.id} attempted to access business {business_id}"
        )
        raise HTTPException(status_code=403, detail="Access denied to this business")


def ensure_business_manager(provider: Provider, business_id: str) -> None:
    """Owners and dispatchers manage staff and business settings."""
    ensure_business_access(provider, business_id)
    if provider.provider_role not in ("owner", "dispatcher"):
        raise HTTPException(status_code=403, detail="Only owners and dispatchers can perform this action")


async def get_current_admin(
    user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AdminUser:
    admin = (
        db.query(AdminUser)
        .filter(AdminUser.user_id == user.id, AdminUser.is_active.is_(True))
        .first()
    )
    if not admin:
        logger.warning(f"⚠️ Non-admin user {user.id} attempted to access admin route")
        raise HTTPException(status_code=403, detail="Admin access required")
    return admin


async def require_service_role(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> None:
    """Database webhooks and internal jobs authenticate with the service-role key."""
    if not SUPABASE_SERVICE_ROLE_KEY:
        logger.error("❌ SUPABASE_SERVICE_ROLE_KEY not configured")
        raise HTTPException(status_code=500, detail="Server configuration error")

    if not hmac.compare_digest(credentials.credentials, SUPABASE_SERVICE_ROLE_KEY):
        logger.warning("⚠️ Service-role request rejected: key mismatch")
        raise HTTPException(status_code=401, detail="Unauthorized")


def ensure_business_owner(provider: Provider, business_id: str) -> None:
    """Banking and payout setup is reserved to the business owner."""
    ensure_business_access(provider, business_id)
    if provider.provider_role != "owner":
        raise HTTPException(status_code=403, detail="Only the business owner can perform this action")
