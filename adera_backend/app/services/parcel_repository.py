"""
Parcel Repository.

CRUD and filtered reads over parcels and their two address relations.
Every read that carries addresses goes through resolve_address so a
missing or odd-shaped address becomes None instead of failing the row.
"""

import logging
import re
import secrets
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from adera_backend.app.core.config import settings
from adera_backend.app.core.exceptions import NotFoundOrForbiddenError, PersistenceError, ValidationError
from adera_backend.app.core.guards import party_clause
from adera_backend.app.core.reliability import run_query
from adera_backend.app.db.read_models import address_joined_view
from adera_backend.app.models.address import Address
from adera_backend.app.models.parcel import Parcel, utcnow
from adera_backend.app.models.parcel_enums import ParcelStatus
from adera_backend.app.models.parcel_status_history import ParcelStatusHistory
from adera_backend.app.models.payment_enums import PaymentMethod
from adera_backend.app.schemas.address import AddressResponse
from adera_backend.app.schemas.parcel import ParcelResponse

logger = logging.getLogger(__name__)

SORT_ALIASES = {"created": "created_at"}
SORT_COLUMNS = {
    "created_at": Parcel.created_at,
    "updated_at": Parcel.updated_at,
    "price": Parcel.price,
    "status": Parcel.status,
    "tracking_code": Parcel.tracking_code,
}


def new_tracking_code() -> str:
    """Fixed prefix followed by a zero-padded random number."""
    suffix = secrets.randbelow(10 ** settings.tracking_code_digits)
    return f"{settings.tracking_code_prefix}{suffix:0{settings.tracking_code_digits}d}"


def tracking_code_pattern() -> "re.Pattern[str]":
    return re.compile(rf"^{re.escape(settings.tracking_code_prefix)}\d{{{settings.tracking_code_digits}}}$")


def resolve_address(raw: Any) -> Optional[AddressResponse]:
    """
    Canonical address resolution.

    Accepts an ORM row, a mapping, a one-element list (as some joins return)
    or None, and always yields AddressResponse or None.
    """
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        return resolve_address(raw[0]) if raw else None
    if isinstance(raw, AddressResponse):
        return raw
    try:
        if isinstance(raw, dict):
            return AddressResponse.model_validate(raw)
        return AddressResponse.model_validate(raw, from_attributes=True)
    except SchemaValidationError:
        logger.warning("Unusable address record treated as absent", extra={"address": repr(raw)})
        return None


def to_parcel_response(parcel: Parcel, pickup: Any = None, dropoff: Any = None) -> ParcelResponse:
    response = ParcelResponse.model_validate(parcel)
    return response.model_copy(update={
        "pickup_address": resolve_address(pickup),
        "dropoff_address": resolve_address(dropoff),
    })


def resolve_sort(sort_by: Optional[str], sort_direction: Optional[str]) -> Tuple[str, bool]:
    """
    Normalize sort parameters.

    Returns:
        (column key, descending)

    Raises:
        ValidationError: Unknown sort field or direction
    """
    key = SORT_ALIASES.get(sort_by or "created_at", sort_by or "created_at")
    if key not in SORT_COLUMNS:
        raise ValidationError(
            f"Unsupported sort field '{sort_by}'",
            details={"allowed": sorted(list(SORT_COLUMNS) + list(SORT_ALIASES))}
        )
    direction = (sort_direction or "desc").lower()
    if direction not in ("asc", "desc"):
        raise ValidationError(f"Unsupported sort direction '{sort_direction}'", details={"allowed": ["asc", "desc"]})
    return key, direction == "desc"


def order_clauses(key: str, descending: bool) -> list:
    column = SORT_COLUMNS[key]
    if descending:
        return [column.desc(), Parcel.id.desc()]
    return [column.asc(), Parcel.id.asc()]


def sort_in_memory(parcels: Iterable[Parcel], key: str, descending: bool) -> List[Parcel]:
    """Same ordering as order_clauses, for rows already loaded."""
    # Every sortable column is NOT NULL
    def sort_key(parcel: Parcel):
        value = getattr(parcel, key)
        if isinstance(value, ParcelStatus):
            value = value.value
        return (value, parcel.id)

    return sorted(parcels, key=sort_key, reverse=descending)


def _chunks(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ParcelRepository:
    """Reads and writes parcels through one AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _execute(self, stmt, operation: str):
        return await run_query(self.db.execute(stmt), operation)

    # --- Writes ---

    async def allocate_tracking_code(self) -> str:
        """
        Generate a tracking code not used by any parcel.

        Raises:
            PersistenceError: When every attempt collides
        """
        attempts = settings.tracking_code_max_attempts
        for attempt in range(1, attempts + 1):
            code = new_tracking_code()
            result = await self._execute(
                select(Parcel.id).where(Parcel.tracking_code == code),
                "tracking code lookup"
            )
            if result.scalar_one_or_none() is None:
                return code
            logger.warning("Tracking code collision", extra={"attempt": attempt, "tracking_code": code})

        raise PersistenceError(
            "Could not allocate a unique tracking code",
            details={"attempts": attempts}
        )

    async def create(
        self,
        sender_id: str,
        pickup_address_id: str,
        dropoff_address_id: str,
        payment_method: PaymentMethod,
        fee: float,
        **attributes: Any,
    ) -> Parcel:
        """
        Insert a pending parcel with a fresh tracking code and flush it.

        The caller commits.

        Raises:
            ValidationError: sender or an address reference is missing
        """
        if not sender_id:
            raise ValidationError("Sender is required", details={"field": "sender_id"})
        if not pickup_address_id or not dropoff_address_id:
            raise ValidationError("Pickup and dropoff addresses are required")

        tracking_code = await self.allocate_tracking_code()
        now = utcnow()
        parcel = Parcel(
            tracking_code=tracking_code,
            sender_id=sender_id,
            pickup_address_id=pickup_address_id,
            dropoff_address_id=dropoff_address_id,
            payment_method=payment_method,
            delivery_fee=fee,
            price=fee,
            status=ParcelStatus.PENDING,
            created_at=now,
            updated_at=now,
            **attributes,
        )
        self.db.add(parcel)
        await run_query(self.db.flush(), "parcel insert")

        self.add_status_history(parcel.id, None, ParcelStatus.PENDING, changed_by=sender_id, notes="Parcel created")
        return parcel

    def add_status_history(
        self,
        parcel_id: str,
        from_status: Optional[ParcelStatus],
        to_status: ParcelStatus,
        changed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ParcelStatusHistory:
        entry = ParcelStatusHistory(
            parcel_id=parcel_id,
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
            notes=notes,
            created_at=utcnow(),
        )
        self.db.add(entry)
        return entry

    # --- Single-entity reads ---

    async def get_model(self, parcel_id: str) -> Optional[Parcel]:
        result = await self._execute(select(Parcel).where(Parcel.id == parcel_id), "parcel lookup")
        return result.scalar_one_or_none()

    async def get_model_for_party(self, parcel_id: str, requesting_user_id: str) -> Parcel:
        """
        Load the ORM row if the user is its sender or receiver.

        Raises:
            NotFoundOrForbiddenError: Missing parcel or not a party (indistinguishable)
        """
        result = await self._execute(
            select(Parcel).where(Parcel.id == parcel_id, party_clause(requesting_user_id)),
            "parcel lookup"
        )
        parcel = result.scalar_one_or_none()
        if parcel is None:
            raise NotFoundOrForbiddenError("Parcel")
        return parcel

    async def get_by_id(self, parcel_id: str, requesting_user_id: str) -> ParcelResponse:
        """
        Fetch a parcel with resolved addresses for one of its parties.

        Raises:
            NotFoundOrForbiddenError: Missing parcel or not a party (indistinguishable)
        """
        rows = await self.fetch_joined(
            Parcel.id == parcel_id, party_clause(requesting_user_id),
            operation="parcel detail"
        )
        if not rows:
            raise NotFoundOrForbiddenError("Parcel")
        return rows[0]

    async def get_response(self, parcel_id: str) -> ParcelResponse:
        rows = await self.fetch_joined(Parcel.id == parcel_id, operation="parcel detail")
        if not rows:
            raise NotFoundOrForbiddenError("Parcel")
        return rows[0]

    # --- Collection reads ---

    async def list_by_sender(self, sender_id: str) -> List[ParcelResponse]:
        """All parcels sent by the user, in store order."""
        return await self.fetch_joined(Parcel.sender_id == sender_id, operation="list by sender")

    async def list_for_user(self, user_id: str) -> List[ParcelResponse]:
        """Parcels the user sends or receives, newest first."""
        return await self.fetch_joined(
            party_clause(user_id),
            order_by=order_clauses("created_at", True),
            operation="list for user"
        )

    async def fetch_joined(
        self,
        *criteria,
        order_by: Optional[list] = None,
        limit: Optional[int] = None,
        operation: str = "joined parcel read",
        view=None,
    ) -> List[ParcelResponse]:
        """Read through the address-joined view (or a view built on it)."""
        stmt = (view if view is not None else address_joined_view()).where(*criteria)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._execute(stmt, operation)
        return [to_parcel_response(parcel, pickup, dropoff) for parcel, pickup, dropoff in result.all()]

    async def fetch_joined_by_ids(self, parcel_ids: Sequence[str]) -> List[ParcelResponse]:
        """Hydrate ids through the joined view, preserving the given order."""
        if not parcel_ids:
            return []
        responses = await self.fetch_joined(Parcel.id.in_(list(parcel_ids)), operation="window hydration")
        by_id = {response.id: response for response in responses}
        return [by_id[parcel_id] for parcel_id in parcel_ids if parcel_id in by_id]

    async def fetch_rows(self, user_id: str, statuses: Optional[List[ParcelStatus]] = None) -> List[Parcel]:
        """Base-table rows (no joins) the user is a party to."""
        stmt = select(Parcel).where(party_clause(user_id))
        if statuses is not None:
            stmt = stmt.where(Parcel.status.in_(statuses))
        result = await self._execute(stmt, "base parcel read")
        return list(result.scalars().all())

    async def matching_ids(
        self,
        user_id: str,
        statuses: Optional[List[ParcelStatus]],
        sort_key: str,
        descending: bool,
    ) -> List[str]:
        """Snapshot of every matching id in the requested order."""
        stmt = select(Parcel.id).where(party_clause(user_id))
        if statuses is not None:
            stmt = stmt.where(Parcel.status.in_(statuses))
        stmt = stmt.order_by(*order_clauses(sort_key, descending))
        result = await self._execute(stmt, "matching id snapshot")
        return list(result.scalars().all())

    async def count(self, user_id: str, statuses: Optional[List[ParcelStatus]] = None) -> int:
        stmt = select(func.count(Parcel.id)).where(party_clause(user_id))
        if statuses is not None:
            stmt = stmt.where(Parcel.status.in_(statuses))
        result = await self._execute(stmt, "parcel count")
        return result.scalar() or 0

    async def hydrate(self, parcels: Sequence[Parcel]) -> List[ParcelResponse]:
        """
        Attach addresses to base rows without a join.

        Addresses are loaded in batches of settings.hydration_batch_size ids
        to keep each round trip small.
        """
        address_ids: List[str] = []
        for parcel in parcels:
            for address_id in (parcel.pickup_address_id, parcel.dropoff_address_id):
                if address_id and address_id not in address_ids:
                    address_ids.append(address_id)

        addresses: Dict[str, Address] = {}
        for batch in _chunks(address_ids, max(1, settings.hydration_batch_size)):
            result = await self._execute(select(Address).where(Address.id.in_(list(batch))), "address hydration")
            for address in result.scalars().all():
                addresses[address.id] = address

        return [
            to_parcel_response(
                parcel,
                addresses.get(parcel.pickup_address_id),
                addresses.get(parcel.dropoff_address_id),
            )
            for parcel in parcels
        ]

    async def history(self, parcel_id: str) -> List[ParcelStatusHistory]:
        result = await self._execute(
            select(ParcelStatusHistory)
            .where(ParcelStatusHistory.parcel_id == parcel_id)
            .order_by(ParcelStatusHistory.created_at.desc(), ParcelStatusHistory.id.desc()),
            "status history"
        )
        return list(result.scalars().all())
