"""
Database seeding script for partner locations.

Creates the default Addis Ababa partner points that senders can pick
instead of typing an address. Run after the database is set up:

    python -m adera_backend.seed_partner_locations
"""

import asyncio

from sqlalchemy import select

from adera_backend.app.core.config import settings
from adera_backend.app.db.session import AsyncSessionLocal, Base, engine
from adera_backend.app.models.partner_location import PartnerLocation

DEFAULT_PARTNER_LOCATIONS = [
    {"name": "Adera Express - Bole", "address_line": "Bole Road", "latitude": 9.0105, "longitude": 38.7895},
    {"name": "Adera Express - Piassa", "address_line": "Piassa", "latitude": 9.0342, "longitude": 38.7468},
    {"name": "Adera Express - Megenagna", "address_line": "Megenagna", "latitude": 9.0205, "longitude": 38.8013},
]


async def seed_partner_locations(session_factory=AsyncSessionLocal) -> int:
    """
    Insert missing default partner locations.

    Existing rows (matched by name) are left alone, so the script can be
    re-run safely.

    Returns:
        Number of locations created
    """
    created = 0
    async with session_factory() as db:
        for location in DEFAULT_PARTNER_LOCATIONS:
            result = await db.execute(select(PartnerLocation.id).where(PartnerLocation.name == location["name"]))
            if result.scalar_one_or_none():
                print(f"ℹ️  {location['name']} already exists, skipping")
                continue
            db.add(PartnerLocation(city=settings.default_city, is_active=True, **location))
            created += 1
            print(f"✅ Created partner location {location['name']}")
        await db.commit()
    return created


async def main():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    created = await seed_partner_locations()
    print(f"\n🎉 Partner location seeding completed ({created} created)")


if __name__ == "__main__":
    asyncio.run(main())
