"""
Security guards for role-based and party-based access control.
"""

from typing import List
from fastapi import Depends
from sqlalchemy import or_
from adera_backend.app.core.dependencies import SessionContext, get_current_user
from adera_backend.app.core.exceptions import InsufficientPermissionsError
from adera_backend.app.models.enums import UserRole
from adera_backend.app.models.parcel import Parcel


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.
    
    Usage:
        @router.patch("/parcels/{parcel_id}/status")
        async def set_status(session: SessionContext = Depends(require_role([UserRole.OPERATOR]))):
            ...
    
    Raises:
        InsufficientPermissionsError 403 if the caller's role is not allowed
    """
    async def role_checker(session: SessionContext = Depends(get_current_user)) -> SessionContext:
        if session.role not in allowed_roles:
            raise InsufficientPermissionsError(
                f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        return session
    
    return role_checker


def party_clause(user_id: str):
    """
    WHERE clause restricting parcels to those the user sends or receives.
    
    Usage:
        query = select(Parcel).where(party_clause(user_id))
    """
    return or_(Parcel.sender_id == user_id, Parcel.receiver_id == user_id)
