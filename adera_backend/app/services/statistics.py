"""
Statistics Aggregator.

Per-user parcel counts for dashboards. Never fails: a bucket whose count
cannot be read is reported as 0.
"""

import logging
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from adera_backend.app.core.exceptions import PersistenceError, TransientError
from adera_backend.app.core.reliability import rollback_session
from adera_backend.app.models.parcel_enums import ParcelStatus, StatusFilter
from adera_backend.app.schemas.parcel import ParcelStatistics
from adera_backend.app.services.pagination import PaginationEngine
from adera_backend.app.services.parcel_repository import ParcelRepository

logger = logging.getLogger(__name__)


class StatisticsAggregator:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = ParcelRepository(db)
        self.pagination = PaginationEngine(db, self.repository)

    async def statistics(self, user_id: str) -> ParcelStatistics:
        """
        Count a user's parcels by lifecycle bucket.
        
        total is active + delivered + cancelled, not an independent count,
        so a parcel outside the three buckets is not included.
        """
        active = await self._bucket(
            user_id, "active",
            lambda: self.pagination.count_matching(user_id, StatusFilter.ACTIVE.value)
        )
        delivered = await self._bucket(
            user_id, "delivered",
            lambda: self.repository.count(user_id, [ParcelStatus.DELIVERED])
        )
        cancelled = await self._bucket(
            user_id, "cancelled",
            lambda: self.repository.count(user_id, [ParcelStatus.CANCELLED])
        )
        
        return ParcelStatistics(
            total=active + delivered + cancelled,
            active=active,
            delivered=delivered,
            cancelled=cancelled,
        )

    async def _bucket(self, user_id: str, bucket: str, count: Callable[[], Awaitable[int]]) -> int:
        try:
            return await count()
        except (PersistenceError, TransientError) as e:
            logger.warning(
                "Statistics bucket degraded to zero",
                extra={"user_id": user_id, "bucket": bucket, "error_code": e.error_code, "error": e.message}
            )
            await rollback_session(self.db)
            return 0
