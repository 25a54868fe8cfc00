import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from jose import jwt as jose_jwt
from sqlalchemy.orm import Session

from .config import AUTH_JWT_AUDIENCE, AUTH_JWT_SECRET
from .database import get_db
from .domain.access import AccessResolver

logger = logging.getLogger(__name__)

security = HTTPBearer()

ALGORITHM = "HS256"
# Allowed clock skew for iat, in seconds
CLOCK_SKEW_SECONDS = 60


@dataclass
class Actor:
    """Authenticated caller; user_id is the auth provider's subject"""

    user_id: str
    role: Optional[str] = None
    email: Optional[str] = None


def create_access_token(
    user_id: str, expires_delta: Optional[timedelta] = None, **claims: Any
) -> str:
    """
    Create an access token for a user

    Args:
        user_id: Subject of the token
        expires_delta: Token expiration time (default 15 minutes)
    """
    now = datetime.now(timezone.utc)
    to_encode = {"sub": user_id, "aud": AUTH_JWT_AUDIENCE, "iat": int(now.timestamp())}
    to_encode["exp"] = int((now + (expires_delta or timedelta(minutes=15))).timestamp())
    to_encode.update(claims)
    return jose_jwt.encode(to_encode, AUTH_JWT_SECRET, algorithm=ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify signature, audience, expiry and issued-at of an access token.
    Raises HTTPException(401) on any failure.
    """
    try:
        claims = jose_jwt.decode(
            token,
            AUTH_JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=AUTH_JWT_AUDIENCE,
            options={"require_aud": True, "require_exp": True, "require_sub": True},
        )
    except ExpiredSignatureError as e:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        ) from e
    except JWTError as e:
        logger.warning(f"⚠️ JWT verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid token") from e

    # Token should not be from the future
    if claims.get("iat", 0) > time.time() + CLOCK_SKEW_SECONDS:
        logger.warning("⚠️ Token issued in the future")
        raise HTTPException(status_code=401, detail="Invalid token")

    return claims


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Actor:
    """Resolve the bearer token to an Actor with its platform role"""
    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    claims = verify_token(credentials.credentials)

    user_id = claims.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    role = AccessResolver(db).get_role(user_id)
    logger.debug(f"✅ Token verified for user {user_id} (role={role})")
    return Actor(user_id=user_id, role=role, email=claims.get("email"))
