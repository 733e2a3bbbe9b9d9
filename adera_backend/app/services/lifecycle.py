"""
Lifecycle Controller.

Applies parcel status changes. Users may only cancel, and only before
pickup; every other transition comes from operators/couriers through the
unguarded set_status.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from adera_backend.app.core.exceptions import NotFoundOrForbiddenError, PersistenceError, TransientError
from adera_backend.app.core.reliability import run_query
from adera_backend.app.models.parcel import utcnow
from adera_backend.app.models.parcel_enums import ParcelStatus
from adera_backend.app.schemas.parcel import CancellationResult, ParcelResponse, ParcelStatusHistoryResponse
from adera_backend.app.services.delivery_estimates import estimate_delivery
from adera_backend.app.services.parcel_repository import ParcelRepository

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = frozenset({ParcelStatus.PENDING, ParcelStatus.CONFIRMED})
DEFAULT_CANCELLATION_REASON = "Cancelled by user"


class LifecycleController:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = ParcelRepository(db)

    async def cancel(
        self,
        parcel_id: str,
        requesting_user_id: str,
        reason: Optional[str] = None,
    ) -> CancellationResult:
        """
        Cancel a parcel on behalf of its sender or receiver.

        Only pending and confirmed parcels can be cancelled. For any other
        status nothing is written and the unchanged parcel comes back with
        cancelled=False; this is a refusal, not an error.

        Raises:
            NotFoundOrForbiddenError: Missing parcel or caller is not a party
            PersistenceError / TransientError: The status write failed
        """
        parcel = await self.repository.get_model_for_party(parcel_id, requesting_user_id)
        current = parcel.status

        if current not in CANCELLABLE_STATUSES:
            logger.info(
                "Cancellation refused",
                extra={"parcel_id": parcel_id, "status": current.value, "user_id": requesting_user_id}
            )
            return CancellationResult(
                parcel=await self.repository.get_by_id(parcel_id, requesting_user_id),
                cancelled=False,
                message=f"This parcel cannot be cancelled while {current.value}",
            )

        parcel.status = ParcelStatus.CANCELLED
        parcel.cancellation_reason = (reason or "").strip() or DEFAULT_CANCELLATION_REASON
        parcel.estimated_delivery_at = None
        parcel.updated_at = utcnow()
        self.repository.add_status_history(
            parcel_id, current, ParcelStatus.CANCELLED,
            changed_by=requesting_user_id, notes=parcel.cancellation_reason
        )
        await self._commit("cancel parcel")

        logger.info("Parcel cancelled", extra={"parcel_id": parcel_id, "previous_status": current.value})
        return CancellationResult(
            parcel=await self.repository.get_by_id(parcel_id, requesting_user_id),
            cancelled=True,
            message="Parcel cancelled",
        )

    async def set_status(
        self,
        parcel_id: str,
        new_status: ParcelStatus,
        changed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ParcelResponse:
        """
        Set a parcel's status without transition checks.

        Operator and courier processes rely on this being unconditional.

        Raises:
            NotFoundOrForbiddenError: Unknown parcel id
        """
        parcel = await self.repository.get_model(parcel_id)
        if parcel is None:
            raise NotFoundOrForbiddenError("Parcel")

        new_status = ParcelStatus(new_status)
        previous = parcel.status
        parcel.status = new_status
        parcel.estimated_delivery_at, _ = estimate_delivery(new_status)
        parcel.updated_at = utcnow()
        self.repository.add_status_history(parcel_id, previous, new_status, changed_by=changed_by, notes=notes)
        await self._commit("set parcel status")

        logger.info(
            "Parcel status set",
            extra={"parcel_id": parcel_id, "from_status": previous.value, "to_status": new_status.value}
        )
        return await self.repository.get_response(parcel_id)

    async def history(self, parcel_id: str, requesting_user_id: str) -> List[ParcelStatusHistoryResponse]:
        """Status changes, newest first, for a party to the parcel."""
        await self.repository.get_model_for_party(parcel_id, requesting_user_id)
        entries = await self.repository.history(parcel_id)
        return [ParcelStatusHistoryResponse.model_validate(entry) for entry in entries]

    async def _commit(self, operation: str) -> None:
        try:
            await run_query(self.db.commit(), operation)
        except (PersistenceError, TransientError):
            await self.db.rollback()
            raise
