"""
Parcel Enumerations.
"""

import enum


class ParcelStatus(str, enum.Enum):
    """
    Parcel status enumeration.
    
    Status flow:
        PENDING → CONFIRMED → PICKED_UP → IN_TRANSIT → DELIVERED
        PENDING or CONFIRMED → CANCELLED (user initiated)
    DELIVERED and CANCELLED are terminal.
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PackageSize(str, enum.Enum):
    """Package size class."""
    DOCUMENT = "document"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class StatusFilter(str, enum.Enum):
    """Virtual filters accepted next to concrete statuses when listing."""
    ALL = "all"
    ACTIVE = "active"
