# counsel_intake/auth/security.py
"""
Staff credentials: bcrypt password hashes and HS256 bearer tokens.

A token carries who the staff member is (sub = email, user_id) and, for
the client's convenience, their role and firm; the auth context re-reads
role and firm from the database on every request.
"""
import logging
import time
from datetime import timedelta
from typing import Optional

import bcrypt
import jwt

from counsel_intake.core.config import settings
from counsel_intake.core.errors import ValidationError

ALGO = "HS256"
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72
REQUIRED_CLAIMS = ["exp", "iat", "sub"]

logger = logging.getLogger("intake.auth")


def _password_bytes(password: str) -> bytes:
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    return raw


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """False for a wrong password, an over-long one, or a malformed stored hash."""
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except (ValueError, ValidationError) as e:
        logger.warning("Password verification failed: %s", e)
        return False


def create_token(claims: dict, expires_in: Optional[timedelta] = None) -> str:
    ttl = expires_in if expires_in is not None else timedelta(minutes=settings.jwt_expire_min)
    now = int(time.time())
    return jwt.encode(
        {**claims, "iat": now, "exp": now + int(ttl.total_seconds())},
        settings.secret_key,
        algorithm=ALGO,
    )


def token_for(user) -> str:
    """Bearer token for a staff member."""
    return create_token(
        {
            "sub": user.email,
            "user_id": user.id,
            "role": user.role,
            "organization_id": user.organization_id,
        }
    )


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[ALGO], options={"require": REQUIRED_CLAIMS})
    except jwt.PyJWTError as e:
        logger.warning("Token rejected: %s", e)
        return None
