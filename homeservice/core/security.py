import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import HTTPException, Header
from jose import JWTError, jwt

from homeservice.core.config import settings
from homeservice.core.logger import logger

def authenticate_admin(email: Optional[str], password: Optional[str]) -> bool:
    """
    Checks staff credentials against the ADMIN_EMAIL / ADMIN_PASSWORD pair from the environment.
    Login is impossible while either of them is unset.
    """
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.warning("⚠️ ADMIN_EMAIL / ADMIN_PASSWORD not configured, staff login disabled")
        return False
    if not email or not password:
        return False

    email_ok = secrets.compare_digest(email.strip().lower(), settings.ADMIN_EMAIL.strip().lower())
    password_ok = secrets.compare_digest(password, settings.ADMIN_PASSWORD)
    return email_ok and password_ok

def create_access_token(email: str, expires_in: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_in or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS))
    payload = {"sub": email, "role": "staff", "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

def is_authorized(credential: Optional[str]) -> bool:
    """Returns True if the credential is a valid, unexpired staff token."""
    if not credential:
        return False
    try:
        payload = jwt.decode(credential, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.info(f"🔒 Rejected staff token: {e}")
        return False
    return payload.get("role") == "staff"

async def require_staff(authorization: str = Header(None)) -> bool:
    """
    FastAPI dependency guarding the staff endpoints.
    Expects an `Authorization: Bearer <token>` header issued by the login route.
    """
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()

    if not is_authorized(token):
        raise HTTPException(status_code=401, detail="Not authorized")
    return True
