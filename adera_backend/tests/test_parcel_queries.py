"""
Parcel read path tests.

Pagination windows and fallbacks, statistics buckets, search and
active deliveries. All reads are scoped to the caller's parcels.
"""

import asyncio

import pytest

from adera_backend.app.core.exceptions import NotFoundOrForbiddenError, PersistenceError, TransientError, ValidationError
from adera_backend.app.core.reliability import query_timeout
from adera_backend.app.models.parcel_enums import ParcelStatus
from adera_backend.app.services.pagination import PaginationEngine
from adera_backend.app.services.parcel_repository import ParcelRepository
from adera_backend.app.services.parcel_service import ParcelService
from adera_backend.app.services.search import SearchEngine
from adera_backend.app.services.statistics import StatisticsAggregator

SENDER_ID = "user-sender"
RECEIVER_ID = "user-receiver"
OUTSIDER_ID = "user-outsider"


@pytest.fixture
async def forty_five_parcels(parcel_factory):
    """MBT0000000 (oldest) .. MBT0000044 (newest), all sent by SENDER_ID."""
    for _ in range(45):
        await parcel_factory()


def codes(parcels):
    return [parcel.tracking_code for parcel in parcels]


# --- Access control ---

async def test_get_parcel_as_sender_and_receiver(db_session, parcel_factory):
    parcel_id = await parcel_factory(receiver_id=RECEIVER_ID)

    as_sender = await ParcelService.get_parcel(db_session, parcel_id, SENDER_ID)
    as_receiver = await ParcelService.get_parcel(db_session, parcel_id, RECEIVER_ID)

    assert as_sender.id == as_receiver.id == parcel_id
    assert as_sender.pickup_address.address_line == "Pickup 0"
    assert as_sender.dropoff_address.address_line == "Dropoff 0"


async def test_get_parcel_hides_other_users_parcels(db_session, parcel_factory):
    """Forbidden and missing look the same to the caller."""
    parcel_id = await parcel_factory(receiver_id=RECEIVER_ID)

    with pytest.raises(NotFoundOrForbiddenError) as forbidden:
        await ParcelService.get_parcel(db_session, parcel_id, OUTSIDER_ID)
    with pytest.raises(NotFoundOrForbiddenError) as missing:
        await ParcelService.get_parcel(db_session, "no-such-parcel", OUTSIDER_ID)

    assert forbidden.value.message == missing.value.message
    assert forbidden.value.details == missing.value.details


async def test_list_parcels_includes_sent_and_received(db_session, parcel_factory):
    await parcel_factory(sender_id=SENDER_ID)
    await parcel_factory(sender_id=OUTSIDER_ID, receiver_id=SENDER_ID)
    await parcel_factory(sender_id=OUTSIDER_ID)

    parcels = await ParcelService.list_parcels(db_session, SENDER_ID)

    # Newest first
    assert codes(parcels) == ["MBT0000001", "MBT0000000"]


async def test_list_sent_parcels_excludes_received(db_session, parcel_factory):
    await parcel_factory(sender_id=SENDER_ID)
    await parcel_factory(sender_id=OUTSIDER_ID, receiver_id=SENDER_ID)

    parcels = await ParcelService.list_sent_parcels(db_session, SENDER_ID)

    assert codes(parcels) == ["MBT0000000"]


# --- Pagination ---

async def test_page_past_end_returns_last_page(db_session, forty_five_parcels):
    """45 items, size 20, page 5 → the last five items (indices 40..44)."""
    page = await PaginationEngine(db_session).paginate(SENDER_ID, page=5, page_size=20)

    assert page.total_count == 45
    assert page.page == 3
    assert page.page_size == 20
    assert codes(page.items) == ["MBT0000004", "MBT0000003", "MBT0000002", "MBT0000001", "MBT0000000"]


async def test_first_page_newest_first(db_session, forty_five_parcels):
    page = await PaginationEngine(db_session).paginate(SENDER_ID, page=1, page_size=20)

    assert page.page == 1
    assert len(page.items) == 20
    assert page.items[0].tracking_code == "MBT0000044"
    assert page.items[-1].tracking_code == "MBT0000025"


async def test_pagination_empty_for_user_without_parcels(db_session, forty_five_parcels):
    page = await PaginationEngine(db_session).paginate(OUTSIDER_ID, page=3, page_size=20)

    assert page.items == []
    assert page.total_count == 0
    assert page.page == 1


async def test_pagination_rejects_bad_page(db_session):
    engine = PaginationEngine(db_session)

    with pytest.raises(ValidationError):
        await engine.paginate(SENDER_ID, page=0)
    with pytest.raises(ValidationError):
        await engine.paginate(SENDER_ID, page=1, page_size=0)


async def test_pagination_clamps_page_size(db_session, parcel_factory):
    await parcel_factory()

    page = await PaginationEngine(db_session).paginate(SENDER_ID, page_size=500)

    assert page.page_size == 100


async def test_pagination_default_page_size(db_session, parcel_factory):
    for _ in range(12):
        await parcel_factory()

    page = await PaginationEngine(db_session).paginate(SENDER_ID)

    assert page.page_size == 10
    assert len(page.items) == 10
    assert page.total_count == 12


async def test_pagination_status_filters(db_session, parcel_factory):
    await parcel_factory(status=ParcelStatus.PENDING)
    await parcel_factory(status=ParcelStatus.IN_TRANSIT)
    await parcel_factory(status=ParcelStatus.DELIVERED)
    await parcel_factory(status=ParcelStatus.CANCELLED)
    engine = PaginationEngine(db_session)

    active = await engine.paginate(SENDER_ID, status_filter="active")
    delivered = await engine.paginate(SENDER_ID, status_filter="delivered")
    everything = await engine.paginate(SENDER_ID, status_filter="all")

    assert codes(active.items) == ["MBT0000001", "MBT0000000"]
    assert codes(delivered.items) == ["MBT0000002"]
    assert everything.total_count == 4


async def test_pagination_rejects_unknown_filter(db_session):
    with pytest.raises(ValidationError):
        await PaginationEngine(db_session).paginate(SENDER_ID, status_filter="accepted")


async def test_pagination_sort_by_price_ascending(db_session, parcel_factory):
    await parcel_factory(price=300.0)
    await parcel_factory(price=100.0)
    await parcel_factory(price=200.0)

    page = await PaginationEngine(db_session).paginate(SENDER_ID, sort_by="price", sort_direction="asc")

    assert [item.price for item in page.items] == [100.0, 200.0, 300.0]


async def test_pagination_sort_alias(db_session, parcel_factory):
    await parcel_factory()
    await parcel_factory()

    page = await PaginationEngine(db_session).paginate(SENDER_ID, sort_by="created", sort_direction="asc")

    assert codes(page.items) == ["MBT0000000", "MBT0000001"]


async def test_pagination_rejects_unknown_sort(db_session):
    with pytest.raises(ValidationError):
        await PaginationEngine(db_session).paginate(SENDER_ID, sort_by="weight")


async def test_pagination_falls_back_to_in_memory(db_session, forty_five_parcels, mocker):
    mocker.patch.object(ParcelRepository, "matching_ids", side_effect=PersistenceError("snapshot failed"))

    page = await PaginationEngine(db_session).paginate(SENDER_ID, page=5, page_size=20)

    assert page.total_count == 45
    assert page.page == 3
    assert codes(page.items) == ["MBT0000004", "MBT0000003", "MBT0000002", "MBT0000001", "MBT0000000"]
    assert page.items[0].pickup_address.address_line == "Pickup 4"


async def test_pagination_falls_back_to_active_only(db_session, parcel_factory, mocker, monkeypatch):
    await parcel_factory(status=ParcelStatus.PENDING)
    await parcel_factory(status=ParcelStatus.DELIVERED)
    mocker.patch.object(ParcelRepository, "matching_ids", side_effect=TransientError("timeout"))
    original_fetch_rows = ParcelRepository.fetch_rows

    async def fetch_rows_without_unfiltered(self, user_id, statuses=None):
        if statuses is None:
            raise PersistenceError("full scan failed")
        return await original_fetch_rows(self, user_id, statuses)

    monkeypatch.setattr(ParcelRepository, "fetch_rows", fetch_rows_without_unfiltered)

    page = await PaginationEngine(db_session).paginate(SENDER_ID, status_filter="all")

    assert codes(page.items) == ["MBT0000000"]
    assert page.total_count == 1


async def test_pagination_degrades_to_empty_page(db_session, parcel_factory, mocker):
    await parcel_factory()
    mocker.patch.object(ParcelRepository, "matching_ids", side_effect=TransientError("timeout"))
    mocker.patch.object(ParcelRepository, "fetch_rows", side_effect=PersistenceError("down"))

    page = await PaginationEngine(db_session).paginate(SENDER_ID, page=2, page_size=20)

    assert page.items == []
    assert page.total_count == 0


async def test_hydration_batches_address_reads(db_session, parcel_factory, mocker):
    """Six parcels carry twelve addresses: three batches of five or fewer."""
    for _ in range(6):
        await parcel_factory()
    mocker.patch.object(ParcelRepository, "matching_ids", side_effect=PersistenceError("snapshot failed"))
    execute_spy = mocker.spy(ParcelRepository, "_execute")

    page = await PaginationEngine(db_session).paginate(SENDER_ID, page_size=20)

    assert len(page.items) == 6
    hydration_calls = [call for call in execute_spy.call_args_list if call.args[2] == "address hydration"]
    assert len(hydration_calls) == 3


# --- Statistics ---

async def test_statistics_zero_for_new_user(db_session):
    stats = await StatisticsAggregator(db_session).statistics(OUTSIDER_ID)

    assert stats.total == 0
    assert stats.active == 0
    assert stats.delivered == 0
    assert stats.cancelled == 0


async def test_statistics_total_is_sum_of_buckets(db_session, parcel_factory):
    await parcel_factory(status=ParcelStatus.PENDING)
    await parcel_factory(status=ParcelStatus.IN_TRANSIT)
    await parcel_factory(status=ParcelStatus.DELIVERED)
    await parcel_factory(status=ParcelStatus.DELIVERED)
    await parcel_factory(status=ParcelStatus.CANCELLED)
    await parcel_factory(sender_id=OUTSIDER_ID, receiver_id=SENDER_ID, status=ParcelStatus.CONFIRMED)

    stats = await StatisticsAggregator(db_session).statistics(SENDER_ID)

    assert stats.active == 3
    assert stats.delivered == 2
    assert stats.cancelled == 1
    assert stats.total == 6


async def test_statistics_bucket_degrades_to_zero(db_session, parcel_factory, monkeypatch):
    await parcel_factory(status=ParcelStatus.PENDING)
    await parcel_factory(status=ParcelStatus.DELIVERED)
    await parcel_factory(status=ParcelStatus.CANCELLED)
    original_count = ParcelRepository.count

    async def count_without_delivered(self, user_id, statuses=None):
        if statuses == [ParcelStatus.DELIVERED]:
            raise TransientError("timeout")
        return await original_count(self, user_id, statuses)

    monkeypatch.setattr(ParcelRepository, "count", count_without_delivered)

    stats = await StatisticsAggregator(db_session).statistics(SENDER_ID)

    assert stats.active == 1
    assert stats.delivered == 0
    assert stats.cancelled == 1
    assert stats.total == 2


async def test_statistics_honours_caller_timeout(db_session, parcel_factory, mocker):
    await parcel_factory(status=ParcelStatus.PENDING)
    wait_for = mocker.spy(asyncio, "wait_for")

    with query_timeout(4.0):
        stats = await ParcelService.statistics(db_session, SENDER_ID)

    assert stats.total == 1
    assert wait_for.call_count >= 3
    assert {call.kwargs["timeout"] for call in wait_for.call_args_list} == {4.0}


# --- Search ---

async def test_blank_search_returns_nothing(db_session, parcel_factory):
    await parcel_factory()
    engine = SearchEngine(db_session)

    assert await engine.search(SENDER_ID, "") == []
    assert await engine.search(SENDER_ID, "   ") == []


async def test_search_is_case_insensitive(db_session, parcel_factory):
    await parcel_factory(description="Fragile glass vase")
    await parcel_factory(description="Books")

    results = await SearchEngine(db_session).search(SENDER_ID, "GLASS")

    assert codes(results) == ["MBT0000000"]


async def test_search_matches_tracking_code(db_session, parcel_factory):
    await parcel_factory()
    await parcel_factory()

    results = await SearchEngine(db_session).search(SENDER_ID, "mbt0000001")

    assert codes(results) == ["MBT0000001"]


async def test_search_scoped_to_caller(db_session, parcel_factory):
    await parcel_factory(description="Laptop")

    assert await SearchEngine(db_session).search(OUTSIDER_ID, "laptop") == []


async def test_search_treats_wildcards_literally(db_session, parcel_factory):
    await parcel_factory(description="Books")
    await parcel_factory(description="50% off coupon")

    assert await SearchEngine(db_session).search(SENDER_ID, "_") == []
    assert codes(await SearchEngine(db_session).search(SENDER_ID, "50%")) == ["MBT0000001"]


async def test_search_falls_back_to_base_table(db_session, parcel_factory, mocker):
    await parcel_factory(description="Laptop")
    mocker.patch.object(ParcelRepository, "fetch_joined", side_effect=TransientError("timeout"))

    results = await SearchEngine(db_session).search(SENDER_ID, "lap")

    assert codes(results) == ["MBT0000000"]
    assert results[0].pickup_address.address_line == "Pickup 0"


async def test_search_degrades_to_empty(db_session, parcel_factory, mocker):
    await parcel_factory(description="Laptop")
    mocker.patch.object(ParcelRepository, "fetch_joined", side_effect=TransientError("timeout"))
    mocker.patch.object(ParcelRepository, "fetch_rows", side_effect=PersistenceError("down"))

    assert await SearchEngine(db_session).search(SENDER_ID, "lap") == []


# --- Active deliveries ---

async def test_active_deliveries_with_estimates(db_session, parcel_factory):
    await parcel_factory(status=ParcelStatus.PENDING)
    await parcel_factory(status=ParcelStatus.CONFIRMED)
    await parcel_factory(status=ParcelStatus.IN_TRANSIT)
    await parcel_factory(status=ParcelStatus.DELIVERED)

    parcels = await ParcelService.list_active_deliveries(db_session, SENDER_ID)

    assert codes(parcels) == ["MBT0000002", "MBT0000001", "MBT0000000"]
    in_transit, confirmed, pending = parcels
    assert in_transit.estimated_delivery.startswith("Delivery by ")
    assert in_transit.estimated_delivery_at is not None
    assert confirmed.estimated_delivery.startswith("Pickup by ")
    assert pending.estimated_delivery == "Awaiting confirmation"
    assert pending.estimated_delivery_at is None


async def test_active_deliveries_fall_back_to_base_rows(db_session, parcel_factory, mocker):
    await parcel_factory(status=ParcelStatus.CONFIRMED)
    await parcel_factory(status=ParcelStatus.CANCELLED)
    mocker.patch.object(ParcelRepository, "fetch_joined", side_effect=PersistenceError("view missing"))

    parcels = await ParcelService.list_active_deliveries(db_session, SENDER_ID)

    assert codes(parcels) == ["MBT0000000"]
