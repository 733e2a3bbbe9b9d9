"""
JWT helpers for the session context.

Tokens are issued by the external auth service. This service only needs
to verify them; minting exists for tooling and tests that share the secret.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from adera_backend.app.core.config import settings
from adera_backend.app.models.enums import UserRole


def create_access_token(
    user_id: str,
    role: UserRole = UserRole.CUSTOMER,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Sign a token carrying the caller's id and role.

    Payload:
        {"sub": <user id>, "user_id": <user id>, "role": "CUSTOMER", "exp": ...}
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {
        "sub": user_id,
        "user_id": user_id,
        "role": UserRole(role).value,
        "exp": expire,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verified claims, or None when the signature or expiry check fails."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
