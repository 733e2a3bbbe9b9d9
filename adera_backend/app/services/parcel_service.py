"""
Parcel Service (Domain Logic).

Facade the API layer calls. Every operation takes the session context's
user id explicitly; nothing here reads ambient authentication state.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adera_backend.app.core.exceptions import AppException, PartialFailure, ValidationError
from adera_backend.app.core.guards import party_clause
from adera_backend.app.core.reliability import FallbackStage, rollback_session, run_fallbacks, run_query
from adera_backend.app.db.read_models import active_deliveries_view, active_statuses
from adera_backend.app.domain.pricing.fee_calculator import FeeCalculator
from adera_backend.app.models.parcel_enums import PackageSize, ParcelStatus
from adera_backend.app.models.partner_location import PartnerLocation
from adera_backend.app.models.payment_enums import PaymentMethod, TransactionStatus
from adera_backend.app.models.transaction import Transaction
from adera_backend.app.schemas.address import PartnerLocationResponse
from adera_backend.app.schemas.parcel import (
    CancellationResult,
    DeliveryFeeQuote,
    ParcelCreate,
    ParcelCreationResult,
    ParcelPage,
    ParcelResponse,
    ParcelStatistics,
    ParcelStatusHistoryResponse,
    TransactionResponse,
)
from adera_backend.app.services.address_resolver import AddressResolver
from adera_backend.app.services.delivery_estimates import describe_estimate, estimate_delivery
from adera_backend.app.services.lifecycle import LifecycleController
from adera_backend.app.services.pagination import PaginationEngine
from adera_backend.app.services.parcel_repository import ParcelRepository, order_clauses, sort_in_memory
from adera_backend.app.services.search import SearchEngine
from adera_backend.app.services.statistics import StatisticsAggregator

logger = logging.getLogger(__name__)


def _with_estimate(parcel: ParcelResponse, fill_timestamp: bool = False) -> ParcelResponse:
    estimated_at = parcel.estimated_delivery_at
    if fill_timestamp and estimated_at is None:
        estimated_at, _ = estimate_delivery(parcel.status)
    return parcel.model_copy(update={
        "estimated_delivery_at": estimated_at,
        "estimated_delivery": describe_estimate(parcel.status, estimated_at),
    })


class ParcelService:

    @staticmethod
    async def create_parcel(db: AsyncSession, draft: ParcelCreate, sender_id: str) -> ParcelCreationResult:
        """
        Create a parcel and its payment transaction.

        Flow:
        1. Validate sender and both locations
        2. Use the draft fee, or quote one from size and distance
        3. Resolve pickup and dropoff to address ids, both owned by the sender
        4. Insert the parcel (pending, fresh tracking code) and commit
        5. Insert the transaction and commit separately

        The parcel is the primary write. If step 5 fails the parcel stays
        committed and the failure comes back as a PartialFailure warning.

        Raises:
            ValidationError: Missing sender or location, bad partner point
            PersistenceError / TransientError: The parcel write failed
        """
        if not sender_id:
            raise ValidationError("Sender is required", details={"field": "sender_id"})
        if draft.pickup is None:
            raise ValidationError("A pickup location is required", details={"field": "pickup"})
        if draft.dropoff is None:
            raise ValidationError("A dropoff location is required", details={"field": "dropoff"})

        fee = draft.delivery_fee
        if fee is None:
            fee = FeeCalculator.calculate(draft.package_size, draft.distance_km)

        repository = ParcelRepository(db)
        try:
            pickup_address_id = await AddressResolver.resolve(db, draft.pickup, sender_id, role="pickup")
            dropoff_address_id = await AddressResolver.resolve(db, draft.dropoff, sender_id, role="dropoff")
            parcel = await repository.create(
                sender_id=sender_id,
                pickup_address_id=pickup_address_id,
                dropoff_address_id=dropoff_address_id,
                payment_method=draft.payment_method,
                fee=fee,
                receiver_id=draft.receiver_id,
                package_size=draft.package_size,
                package_description=draft.package_description,
                is_fragile=draft.is_fragile,
                weight=draft.weight,
                pickup_contact=draft.pickup_contact,
                dropoff_contact=draft.dropoff_contact,
            )
            parcel_id = parcel.id
            tracking_code = parcel.tracking_code
            await run_query(db.commit(), "create parcel")
        except AppException:
            await db.rollback()
            raise

        logger.info(
            "Parcel created",
            extra={"parcel_id": parcel_id, "tracking_code": tracking_code, "sender_id": sender_id, "fee": fee}
        )

        transaction = None
        warnings = []
        try:
            transaction = await ParcelService._create_transaction(db, parcel_id, fee, draft.payment_method)
        except AppException as e:
            await rollback_session(db)
            failure = PartialFailure(
                "Parcel created but its payment transaction could not be recorded",
                details={"parcel_id": parcel_id, "cause": e.error_code, "reason": e.message}
            )
            logger.warning(
                "Transaction write failed after parcel commit",
                extra={"parcel_id": parcel_id, "error_code": e.error_code}
            )
            warnings.append(failure.to_dict())

        return ParcelCreationResult(
            parcel=_with_estimate(await repository.get_by_id(parcel_id, sender_id)),
            transaction=transaction,
            warnings=warnings,
        )

    @staticmethod
    async def _create_transaction(
        db: AsyncSession,
        parcel_id: str,
        amount: float,
        payment_method: PaymentMethod,
    ) -> TransactionResponse:
        transaction = Transaction(
            parcel_id=parcel_id,
            amount=amount,
            status=TransactionStatus.PENDING,
            payment_method=payment_method,
        )
        db.add(transaction)
        await run_query(db.commit(), "create transaction")
        await run_query(db.refresh(transaction), "refresh transaction")
        return TransactionResponse.model_validate(transaction)

    @staticmethod
    async def get_parcel(db: AsyncSession, parcel_id: str, user_id: str) -> ParcelResponse:
        """Fetch one parcel for its sender or receiver."""
        return _with_estimate(await ParcelRepository(db).get_by_id(parcel_id, user_id))

    @staticmethod
    async def list_parcels(db: AsyncSession, user_id: str) -> List[ParcelResponse]:
        """Every parcel the user sends or receives, newest first."""
        parcels = await ParcelRepository(db).list_for_user(user_id)
        return [_with_estimate(parcel) for parcel in parcels]

    @staticmethod
    async def list_sent_parcels(db: AsyncSession, user_id: str) -> List[ParcelResponse]:
        parcels = await ParcelRepository(db).list_by_sender(user_id)
        return [_with_estimate(parcel) for parcel in parcels]

    @staticmethod
    async def paginate_parcels(
        db: AsyncSession,
        user_id: str,
        status_filter: Optional[str] = "all",
        page: int = 1,
        page_size: Optional[int] = None,
        sort_by: str = "created_at",
        sort_direction: str = "desc",
    ) -> ParcelPage:
        result = await PaginationEngine(db).paginate(
            user_id,
            status_filter=status_filter,
            page=page,
            page_size=page_size,
            sort_by=sort_by,
            sort_direction=sort_direction,
        )
        return result.model_copy(update={"items": [_with_estimate(item) for item in result.items]})

    @staticmethod
    async def search_parcels(db: AsyncSession, user_id: str, query: str) -> List[ParcelResponse]:
        parcels = await SearchEngine(db).search(user_id, query)
        return [_with_estimate(parcel) for parcel in parcels]

    @staticmethod
    async def statistics(db: AsyncSession, user_id: str) -> ParcelStatistics:
        return await StatisticsAggregator(db).statistics(user_id)

    @staticmethod
    async def list_active_deliveries(db: AsyncSession, user_id: str) -> List[ParcelResponse]:
        """
        The user's in-flight parcels, newest first, each with a delivery label.

        Reads the active-deliveries view, then base rows, then gives up with [].
        """
        repository = ParcelRepository(db)

        async def from_view():
            return await repository.fetch_joined(
                party_clause(user_id),
                view=active_deliveries_view(),
                order_by=order_clauses("created_at", True),
                operation="active deliveries",
            )

        async def from_base_table():
            rows = await repository.fetch_rows(user_id, active_statuses())
            return await repository.hydrate(sort_in_memory(rows, "created_at", True))

        outcome = await run_fallbacks(
            "active_deliveries",
            [FallbackStage("active_view", from_view), FallbackStage("base_table", from_base_table)],
            default=[],
            on_failure=lambda: rollback_session(db),
        )
        return [_with_estimate(parcel, fill_timestamp=True) for parcel in outcome.value]

    @staticmethod
    async def cancel_parcel(
        db: AsyncSession,
        parcel_id: str,
        user_id: str,
        reason: Optional[str] = None,
    ) -> CancellationResult:
        result = await LifecycleController(db).cancel(parcel_id, user_id, reason)
        return result.model_copy(update={"parcel": _with_estimate(result.parcel)})

    @staticmethod
    async def set_parcel_status(
        db: AsyncSession,
        parcel_id: str,
        new_status: ParcelStatus,
        changed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> ParcelResponse:
        parcel = await LifecycleController(db).set_status(parcel_id, new_status, changed_by, notes)
        return _with_estimate(parcel)

    @staticmethod
    async def get_parcel_history(db: AsyncSession, parcel_id: str, user_id: str) -> List[ParcelStatusHistoryResponse]:
        return await LifecycleController(db).history(parcel_id, user_id)

    @staticmethod
    def quote_delivery_fee(package_size: PackageSize, distance_km: Optional[float] = None) -> DeliveryFeeQuote:
        return FeeCalculator.quote(package_size, distance_km)

    @staticmethod
    async def list_partner_locations(db: AsyncSession) -> List[PartnerLocationResponse]:
        """Active partner drop-off points, by name."""
        result = await run_query(
            db.execute(
                select(PartnerLocation)
                .where(PartnerLocation.is_active.is_(True))
                .order_by(PartnerLocation.name)
            ),
            "partner locations"
        )
        return [PartnerLocationResponse.model_validate(location) for location in result.scalars().all()]
