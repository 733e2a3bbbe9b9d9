"""
Search Engine.

Case-insensitive substring search over tracking code and package
description, scoped to the caller's parcels.
"""

import logging
from typing import List

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from adera_backend.app.core.config import settings
from adera_backend.app.core.guards import party_clause
from adera_backend.app.core.reliability import FallbackStage, rollback_session, run_fallbacks
from adera_backend.app.models.parcel import Parcel
from adera_backend.app.schemas.parcel import ParcelResponse
from adera_backend.app.services.parcel_repository import ParcelRepository, order_clauses, sort_in_memory

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"


def like_pattern(query: str) -> str:
    """Wrap a literal substring in % wildcards, escaping LIKE metacharacters."""
    escaped = (
        query.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class SearchEngine:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = ParcelRepository(db)

    async def search(self, user_id: str, query: str) -> List[ParcelResponse]:
        """
        Find the user's parcels whose tracking code or description contains query.
        
        A blank query returns [] rather than every parcel. Store failures
        degrade to [] after the joined view and base-table reads both fail.
        """
        needle = (query or "").strip()
        if not needle:
            return []
        
        pattern = like_pattern(needle)
        matches = or_(
            Parcel.tracking_code.ilike(pattern, escape=LIKE_ESCAPE),
            Parcel.package_description.ilike(pattern, escape=LIKE_ESCAPE),
        )
        limit = settings.search_result_limit
        
        async def from_joined_view():
            return await self.repository.fetch_joined(
                party_clause(user_id), matches,
                order_by=order_clauses("created_at", True),
                limit=limit,
                operation="parcel search",
            )
        
        async def from_base_table():
            lowered = needle.lower()
            rows = [
                parcel for parcel in await self.repository.fetch_rows(user_id)
                if lowered in (parcel.tracking_code or "").lower()
                or lowered in (parcel.package_description or "").lower()
            ]
            return await self.repository.hydrate(sort_in_memory(rows, "created_at", True)[:limit])
        
        outcome = await run_fallbacks(
            "search_parcels",
            [FallbackStage("joined_view", from_joined_view), FallbackStage("base_table", from_base_table)],
            default=[],
            on_failure=lambda: rollback_session(self.db),
        )
        return outcome.value
