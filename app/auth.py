import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from jose import jwt as jose_jwt
from sqlalchemy.orm import Session

from .config import JWT_ALGORITHM, JWT_AUDIENCE, SUPABASE_JWT_SECRET
from .database import get_db
from .models import Profile
from .shared.validators import validate_uuid

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

VALID_ROLES = ("client", "provider", "admin")


def verify_access_token(token: str) -> dict:
    """
    Verify a Supabase access token.
    Supabase signs user JWTs with the project's JWT secret (HS256) and sets
    aud="authenticated" for signed-in users.
    """
    try:
        payload = jose_jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        logger.info("ℹ️ Expired access token presented")
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except JWTError as e:
        logger.warning(f"⚠️ Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid token") from e

    if not validate_uuid(payload.get("sub")):
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(payload.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    return payload


def _role_from_claims(claims: dict) -> str:
    metadata = claims.get("user_metadata") or {}
    return metadata.get("role") or "client"


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    """Get the current user's profile from the bearer token"""

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    claims = verify_access_token(token)
    user_id = claims["sub"]

    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if profile:
        return profile

    role = _role_from_claims(claims)
    if role not in VALID_ROLES:
        logger.warning(f"⚠️ Rejected unknown role '{role}' for user {user_id}")
        raise HTTPException(status_code=403, detail="Insufficient role")

    metadata = claims.get("user_metadata") or {}
    logger.info(f"🆕 Creating profile for user {user_id} with role {role}")
    profile = Profile(
        id=user_id,
        email=claims.get("email"),
        full_name=metadata.get("full_name"),
        role=role,
    )
    db.add(profile)
    try:
        db.commit()
        db.refresh(profile)
    except Exception as e:
        db.rollback()
        # Concurrent first requests can race on the insert
        existing = db.query(Profile).filter(Profile.id == user_id).first()
        if existing:
            return existing
        logger.error(f"❌ Failed to create profile for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create user profile") from e

    return profile


def require_role(*roles: str):
    """Dependency factory restricting a route to the given roles"""

    async def dependency(user: Profile = Depends(get_current_user)) -> Profile:
        if user.role not in roles:
            logger.warning(f"⚠️ User {user.id} ({user.role}) denied; requires one of {roles}")
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user

    return dependency
