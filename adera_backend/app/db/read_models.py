"""
Derived read models over the normalized parcel schema.

Two statements stand in for database views:
- address-joined parcel view: parcel rows with both addresses outer-joined
- active-deliveries view: the joined view restricted to the active set
Rows are (Parcel, pickup Address | None, dropoff Address | None).
"""

from typing import List
from sqlalchemy import select
from sqlalchemy.orm import aliased
from adera_backend.app.core.config import settings
from adera_backend.app.models.address import Address
from adera_backend.app.models.parcel import Parcel
from adera_backend.app.models.parcel_enums import ParcelStatus

PickupAddress = aliased(Address, name="pickup_address")
DropoffAddress = aliased(Address, name="dropoff_address")


def active_statuses() -> List[ParcelStatus]:
    """The configured, authoritative "active" status set."""
    return [ParcelStatus(status) for status in settings.active_statuses]


def address_joined_view():
    return (
        select(Parcel, PickupAddress, DropoffAddress)
        .outerjoin(PickupAddress, PickupAddress.id == Parcel.pickup_address_id)
        .outerjoin(DropoffAddress, DropoffAddress.id == Parcel.dropoff_address_id)
    )


def active_deliveries_view():
    return address_joined_view().where(Parcel.status.in_(active_statuses()))
