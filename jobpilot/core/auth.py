"""
Authentication Utility - identity provider session tokens.

Users, organizations, memberships, permissions and plans are owned by the
external identity provider. Every request carries the provider's session
token (JWT, shared-secret signed) whose claims describe:

    sub              user id
    org_id           active organization (optional)
    org_permissions  permissions of the user inside the active organization
    features         plan features of the active organization

Provides:
- JWT verification (and creation, for local development and tests)
- FastAPI dependencies for protected routes
- Permission and plan-feature checks
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from jobpilot.core.config import get_settings

settings = get_settings()

# Bearer token extractor (optional so public routes can still read it)
bearer_scheme = HTTPBearer(auto_error=False)

# Organization permissions
PERMISSION_JOB_LISTINGS_CREATE = "org:job_listings:create"
PERMISSION_JOB_LISTINGS_UPDATE = "org:job_listings:update"
PERMISSION_JOB_LISTINGS_DELETE = "org:job_listings:delete"
PERMISSION_JOB_LISTINGS_CHANGE_STATUS = "org:job_listings:change_status"
PERMISSION_APPLICATIONS_CHANGE_STAGE = "org:job_listing_applications:change_stage"
PERMISSION_APPLICATIONS_CHANGE_RATING = "org:job_listing_applications:change_rating"


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a session token the way the identity provider does."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.identity_jwt_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.identity_jwt_secret, algorithm=settings.identity_jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify a session token."""
    try:
        return jwt.decode(token, settings.identity_jwt_secret, algorithms=[settings.identity_jwt_algorithm])
    except JWTError:
        return None


def auth_from_claims(payload: dict) -> dict:
    return {
        "user_id": payload.get("sub"),
        "org_id": payload.get("org_id") or None,
        "permissions": list(payload.get("org_permissions") or []),
        "features": list(payload.get("features") or []),
    }


ANONYMOUS = {"user_id": None, "org_id": None, "permissions": [], "features": []}


async def get_current_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    """
    FastAPI dependency - session of the caller, anonymous when no token is sent.

    An invalid token is rejected instead of silently downgraded.
    """
    if credentials is None:
        return dict(ANONYMOUS)

    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth_from_claims(payload)


async def get_current_user(auth: dict = Depends(get_current_auth)) -> dict:
    """
    FastAPI dependency - require a signed-in user.

    Usage:
        @router.get("/protected")
        async def route(user: dict = Depends(get_current_user)):
            return user
    """
    if not auth["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth


async def get_current_organization(auth: dict = Depends(get_current_user)) -> dict:
    """Dependency - require an active organization."""
    if not auth["org_id"]:
        raise HTTPException(status_code=401, detail="Organization not found.")
    return auth


def has_org_user_permission(auth: dict, permission: str) -> bool:
    return bool(auth.get("org_id")) and permission in auth.get("permissions", [])


def has_plan_feature(auth: dict, feature: str) -> bool:
    return bool(auth.get("org_id")) and feature in auth.get("features", [])
