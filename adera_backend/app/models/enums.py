"""
User roles enumeration.

Defines the caller roles carried in session tokens.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        ADMIN: System-level access
        OPERATOR: Dispatch staff driving operator status updates
        COURIER: Picks up and delivers parcels
        CUSTOMER: Sends and receives parcels (default role)
    """
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    COURIER = "COURIER"
    CUSTOMER = "CUSTOMER"
