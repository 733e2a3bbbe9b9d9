"""
Authentication dependencies for FastAPI.

Builds the explicit session context handed to every parcel operation.
"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from adera_backend.app.core.exceptions import AuthenticationError
from adera_backend.app.core.jwt import decode_access_token
from adera_backend.app.models.enums import UserRole

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


class SessionContext(BaseModel):
    """Authenticated caller, passed explicitly into service calls."""
    user_id: str
    role: UserRole = UserRole.CUSTOMER


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> SessionContext:
    """
    FastAPI dependency for JWT authentication.
    
    Args:
        credentials: HTTP Bearer token from request header
        
    Returns:
        SessionContext for the caller
        
    Raises:
        AuthenticationError: 401 if the token is missing, invalid or malformed
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")
    
    user_id = payload.get("user_id") or payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")
    
    try:
        role = UserRole(payload.get("role", UserRole.CUSTOMER.value))
    except ValueError:
        raise AuthenticationError("Invalid role in token")
    
    return SessionContext(user_id=str(user_id), role=role)
