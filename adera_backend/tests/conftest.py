"""
Centralized Test Configuration.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from adera_backend.app.main import app
from adera_backend.app.core.jwt import create_access_token
from adera_backend.app.db.session import get_db, Base
from adera_backend.app.models.address import Address
from adera_backend.app.models.parcel import Parcel
from adera_backend.app.models.parcel_enums import ParcelStatus, PackageSize
from adera_backend.app.models.partner_location import PartnerLocation
from adera_backend.app.models.payment_enums import PaymentMethod

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SENDER_ID = "user-sender"
RECEIVER_ID = "user-receiver"
OUTSIDER_ID = "user-outsider"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Route the app's sessions to the in-memory database."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


def auth_headers(user_id: str, role: str = "CUSTOMER") -> dict:
    token = create_access_token(user_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sender_headers():
    return auth_headers(SENDER_ID)


@pytest.fixture
def receiver_headers():
    return auth_headers(RECEIVER_ID)


@pytest.fixture
def outsider_headers():
    return auth_headers(OUTSIDER_ID)


@pytest.fixture
def operator_headers():
    return auth_headers("user-operator", role="OPERATOR")


@pytest.fixture
async def partner_location(db_session):
    location = PartnerLocation(
        name="Adera Express - Bole",
        address_line="Bole Road",
        city="Addis Ababa",
        latitude=9.0105,
        longitude=38.7895,
        is_active=True,
    )
    db_session.add(location)
    await db_session.commit()
    return location.id


@pytest.fixture
def parcel_factory(db_session):
    """
    Insert parcels directly, bypassing the service.

    created_at steps forward one minute per parcel so ordering is deterministic.
    """
    base_time = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
    counter = {"n": 0}

    async def create(
        sender_id: str = SENDER_ID,
        receiver_id: str = None,
        status: ParcelStatus = ParcelStatus.PENDING,
        description: str = None,
        price: float = 150.0,
    ) -> str:
        n = counter["n"]
        counter["n"] += 1

        pickup = Address(owner_id=sender_id, address_line=f"Pickup {n}", city="Addis Ababa")
        dropoff = Address(owner_id=sender_id, address_line=f"Dropoff {n}", city="Addis Ababa")
        db_session.add_all([pickup, dropoff])
        await db_session.flush()

        created_at = base_time + timedelta(minutes=n)
        parcel = Parcel(
            tracking_code=f"MBT{n:07d}",
            sender_id=sender_id,
            receiver_id=receiver_id,
            pickup_address_id=pickup.id,
            dropoff_address_id=dropoff.id,
            package_size=PackageSize.SMALL,
            package_description=description or f"Package {n}",
            payment_method=PaymentMethod.CASH,
            delivery_fee=price,
            price=price,
            status=status,
            created_at=created_at,
            updated_at=created_at,
        )
        db_session.add(parcel)
        await db_session.commit()
        parcel_id = parcel.id

        return parcel_id

    return create
