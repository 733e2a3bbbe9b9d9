"""
Address Resolver.

Turns a location descriptor (partner point or free-form address) into an
address id, reusing the owner's identical address when one exists.
"""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from adera_backend.app.core.config import settings
from adera_backend.app.core.exceptions import ValidationError
from adera_backend.app.core.reliability import run_query
from adera_backend.app.models.address import Address
from adera_backend.app.models.parcel import utcnow
from adera_backend.app.models.partner_location import PartnerLocation
from adera_backend.app.schemas.address import LocationDescriptor

logger = logging.getLogger(__name__)


def _same_value(column, value):
    return column.is_(None) if value is None else column == value


class AddressResolver:

    @staticmethod
    async def resolve(
        db: AsyncSession,
        descriptor: Optional[LocationDescriptor],
        owner_id: str,
        role: str = "location",
    ) -> str:
        """
        Resolve a location descriptor to an address id.
        
        Flow:
        1. Partner location id → copy the partner point's address fields
        2. Otherwise use the free-form line (city defaults to settings.default_city)
        3. Reuse a matching address owned by owner_id, else insert a new one
        
        The new row is flushed, not committed: the caller owns the transaction
        so a parcel is never committed with a dangling address reference.
        
        Args:
            db: Database session
            descriptor: Location as entered by the user
            owner_id: Party that will own a newly created address
            role: "pickup" or "dropoff", used in error details
            
        Returns:
            Address id
            
        Raises:
            ValidationError: Missing location, unknown or inactive partner point
            PersistenceError / TransientError: Store failure on lookup or insert
        """
        if descriptor is None:
            raise ValidationError(f"A {role} location is required", details={"field": role})
        
        partner_location_id = None
        if descriptor.partner_location_id:
            result = await run_query(
                db.execute(select(PartnerLocation).where(PartnerLocation.id == descriptor.partner_location_id)),
                "partner location lookup"
            )
            partner = result.scalar_one_or_none()
            if partner is None or not partner.is_active:
                raise ValidationError(
                    f"Unknown {role} partner location",
                    details={"field": role, "partner_location_id": descriptor.partner_location_id}
                )
            partner_location_id = partner.id
            address_line = partner.address_line
            city = partner.city
            postal_code = descriptor.postal_code
            latitude = partner.latitude
            longitude = partner.longitude
        else:
            address_line = (descriptor.address_line or "").strip()
            if not address_line:
                raise ValidationError(f"A {role} address line is required", details={"field": role})
            city = (descriptor.city or "").strip() or settings.default_city
            postal_code = descriptor.postal_code
            latitude = descriptor.latitude
            longitude = descriptor.longitude
        
        existing = await run_query(
            db.execute(
                select(Address.id).where(
                    Address.owner_id == owner_id,
                    func.lower(Address.address_line) == address_line.lower(),
                    func.lower(Address.city) == city.lower(),
                    _same_value(Address.latitude, latitude),
                    _same_value(Address.longitude, longitude),
                ).limit(1)
            ),
            "address lookup"
        )
        address_id = existing.scalar_one_or_none()
        if address_id:
            return address_id
        
        now = utcnow()
        address = Address(
            owner_id=owner_id,
            partner_location_id=partner_location_id,
            address_line=address_line,
            city=city,
            postal_code=postal_code,
            latitude=latitude,
            longitude=longitude,
            created_at=now,
            updated_at=now,
        )
        db.add(address)
        await run_query(db.flush(), "address insert")
        
        logger.info("Address created", extra={"address_id": address.id, "owner_id": owner_id, "role": role})
        return address.id
