"""
Pagination Engine.

Returns a bounded, sorted, filtered slice of a user's parcels plus the
total matching count.

Window policy: a page past the end is answered with the last valid page,
never with an empty list. An empty page means the user has no matching
parcels at all.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from adera_backend.app.core.config import settings
from adera_backend.app.core.exceptions import ValidationError
from adera_backend.app.core.reliability import FallbackStage, rollback_session, run_fallbacks
from adera_backend.app.db.read_models import active_statuses
from adera_backend.app.models.parcel_enums import ParcelStatus, StatusFilter
from adera_backend.app.schemas.parcel import ParcelPage
from adera_backend.app.services.parcel_repository import ParcelRepository, resolve_sort, sort_in_memory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageWindow:
    """Half-open index range [start, end) of the effective page."""
    page: int
    start: int
    end: int


def compute_window(total_count: int, page: int, page_size: int) -> PageWindow:
    """
    Clamp a 1-based page request onto the available rows.

    Example:
        total_count=45, page_size=20, page=5 → page 3, indices 40..44
    """
    if total_count <= 0:
        return PageWindow(page=1, start=0, end=0)

    last_page = math.ceil(total_count / page_size)
    effective_page = min(max(page, 1), last_page)
    start = (effective_page - 1) * page_size
    end = min(start + page_size, total_count)
    return PageWindow(page=effective_page, start=start, end=end)


def resolve_status_filter(status_filter: Optional[str]) -> Optional[List[ParcelStatus]]:
    """
    Translate a filter into a status set.

    "all" (or None) → None, meaning no filter; "active" → configured active
    set; a concrete status → that status only.

    Raises:
        ValidationError: Unknown filter value
    """
    if status_filter is None or status_filter == StatusFilter.ALL.value:
        return None
    if status_filter == StatusFilter.ACTIVE.value:
        return active_statuses()
    try:
        return [ParcelStatus(status_filter)]
    except ValueError:
        allowed = [f.value for f in StatusFilter] + [s.value for s in ParcelStatus]
        raise ValidationError(f"Unknown status filter '{status_filter}'", details={"allowed": allowed})


class PaginationEngine:

    def __init__(self, db: AsyncSession, repository: Optional[ParcelRepository] = None):
        self.db = db
        self.repository = repository or ParcelRepository(db)

    async def paginate(
        self,
        user_id: str,
        status_filter: Optional[str] = StatusFilter.ALL.value,
        page: int = 1,
        page_size: Optional[int] = None,
        sort_by: str = "created_at",
        sort_direction: str = "desc",
    ) -> ParcelPage:
        """
        Page through the parcels a user sends or receives.

        Stages, in order:
        1. id_snapshot: ordered id list from the store, window, joined-view hydration
        2. in_memory: all matching base rows, sorted and windowed in process
        3. active_only: for "all" only, the in_memory stage on the active set
        Falls back to an empty page when every stage fails.

        Raises:
            ValidationError: Bad page, page size, filter or sort
        """
        if page is None or page < 1:
            raise ValidationError("Page must be 1 or greater", details={"page": page})
        size = settings.default_page_size if page_size is None else page_size
        if size < 1:
            raise ValidationError("Page size must be 1 or greater", details={"page_size": page_size})
        size = min(size, settings.max_page_size)

        statuses = resolve_status_filter(status_filter)
        sort_key, descending = resolve_sort(sort_by, sort_direction)

        stages = [
            FallbackStage("id_snapshot", lambda: self._paginate_snapshot(user_id, statuses, page, size, sort_key, descending)),
            FallbackStage("in_memory", lambda: self._paginate_in_memory(user_id, statuses, page, size, sort_key, descending)),
        ]
        if statuses is None:
            stages.append(
                FallbackStage("active_only", lambda: self._paginate_in_memory(
                    user_id, active_statuses(), page, size, sort_key, descending
                ))
            )

        outcome = await run_fallbacks(
            "paginate_parcels",
            stages,
            default=ParcelPage(items=[], total_count=0, page=1, page_size=size),
            on_failure=lambda: rollback_session(self.db),
        )
        result = outcome.value
        if result.total_count and result.page != page:
            logger.debug(
                "Requested page past the end, serving last page",
                extra={"user_id": user_id, "requested_page": page, "served_page": result.page, "stage": outcome.stage}
            )
        return result

    async def count_matching(self, user_id: str, status_filter: Optional[str]) -> int:
        """Full (unwindowed) count for a filter."""
        return await self.repository.count(user_id, resolve_status_filter(status_filter))

    async def _paginate_snapshot(self, user_id, statuses, page, size, sort_key, descending) -> ParcelPage:
        ids = await self.repository.matching_ids(user_id, statuses, sort_key, descending)
        window = compute_window(len(ids), page, size)
        items = await self.repository.fetch_joined_by_ids(ids[window.start:window.end])
        return ParcelPage(items=items, total_count=len(ids), page=window.page, page_size=size)

    async def _paginate_in_memory(self, user_id, statuses, page, size, sort_key, descending) -> ParcelPage:
        rows = sort_in_memory(await self.repository.fetch_rows(user_id, statuses), sort_key, descending)
        window = compute_window(len(rows), page, size)
        items = await self.repository.hydrate(rows[window.start:window.end])
        return ParcelPage(items=items, total_count=len(rows), page=window.page, page_size=size)
