import os
from datetime import datetime, timedelta
from jose import jwt
from typing import Optional
import logging

# FastAPI imports for dependency-based auth
from fastapi import Header, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from models.user import UserContext

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60

http_bearer = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth")


def _secret_key() -> str:
    return os.getenv("JWT_SECRET", "your_jwt_secret_here")


def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, _secret_key(), algorithm=ALGORITHM)
    return encoded_jwt


def verify_access_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, _secret_key(), algorithms=[ALGORITHM])
        return payload
    except Exception as err:  # broad to log actual cause
        logger.warning("JWT verification failed: %s", str(err))
        return None


def user_from_claims(payload: dict) -> Optional[UserContext]:
    """Build the caller identity from token claims.

    Tokens issued by Azure AD carry the mail address in ``email`` or ``upn``;
    locally issued tokens put it in ``sub``. ``tid`` is the tenant id.
    """
    email = payload.get("email") or payload.get("upn") or payload.get("sub")
    if not email:
        return None
    return UserContext(email=str(email), tenant_id=payload.get("tid"))


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    Authorization: Optional[str] = Header(None, include_in_schema=False),
) -> UserContext:
    """
    FastAPI dependency to extract and validate the caller from a Bearer token.
    Prefer standard HTTP Bearer auth (works with Swagger Authorize button).
    Also falls back to raw Authorization header if provided.
    Returns 401 when header is missing/invalid.
    """
    token: Optional[str] = None

    if credentials and credentials.scheme and credentials.credentials:
        if credentials.scheme.lower() == "bearer":
            creds = credentials.credentials.strip()
            token = creds.split(" ", 1)[1].strip() if creds.lower().startswith("bearer ") else creds
    elif Authorization:
        raw = Authorization.strip()
        token = raw.split(" ", 1)[1].strip() if raw.lower().startswith("bearer ") else raw

    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing Authorization header")

    payload = verify_access_token(token)
    user = user_from_claims(payload) if payload else None
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    return user
