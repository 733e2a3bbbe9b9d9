"""
Estimated delivery windows.

Fixed offsets from the current time keyed by status. Not a routing engine.
Timestamps are kept in UTC; labels are rendered in the service's display
zone (``settings.display_utc_offset_hours``, East Africa Time by default).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from adera_backend.app.core.config import settings
from adera_backend.app.models.parcel_enums import ParcelStatus

AWAITING_CONFIRMATION = "Awaiting confirmation"


def display_zone() -> timezone:
    return timezone(timedelta(hours=settings.display_utc_offset_hours))


def _clock(moment: datetime) -> str:
    # Stores without timezone support hand back naive UTC values
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(display_zone())
    return f"{local.hour}:{local.minute:02d}"


def _label(status: ParcelStatus, moment: datetime) -> Optional[str]:
    if status == ParcelStatus.CONFIRMED:
        return f"Pickup by {_clock(moment)}"
    if status in (ParcelStatus.PICKED_UP, ParcelStatus.IN_TRANSIT):
        return f"Delivery by {_clock(moment)}"
    return None


def estimate_delivery(status: ParcelStatus, now: Optional[datetime] = None) -> Tuple[Optional[datetime], Optional[str]]:
    """
    Return (estimated UTC timestamp, display label) for a parcel status.

    pending gets a label but no timestamp; terminal statuses get neither.
    """
    now = now or datetime.now(timezone.utc)
    status = ParcelStatus(status)

    if status == ParcelStatus.PENDING:
        return None, AWAITING_CONFIRMATION
    if status == ParcelStatus.CONFIRMED:
        eta = now + timedelta(hours=settings.pickup_eta_hours)
        return eta, _label(status, eta)
    if status in (ParcelStatus.PICKED_UP, ParcelStatus.IN_TRANSIT):
        eta = now + timedelta(hours=settings.delivery_eta_hours)
        return eta, _label(status, eta)
    return None, None


def describe_estimate(status: ParcelStatus, estimated_at: Optional[datetime] = None) -> Optional[str]:
    """
    Display label for a parcel, preferring the stored estimate over a fresh one.

    The clock time is shown in the display zone, not UTC.
    """
    status = ParcelStatus(status)
    if estimated_at is None:
        return estimate_delivery(status)[1]
    return _label(status, estimated_at) or estimate_delivery(status)[1]
