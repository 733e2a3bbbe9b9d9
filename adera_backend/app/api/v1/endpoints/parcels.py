"""
Parcel API Endpoints.

Customer-facing parcel operations plus the operator status endpoint.
Every route resolves the caller into a SessionContext and hands its
user id to the service explicitly.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from adera_backend.app.core.dependencies import SessionContext, get_current_user
from adera_backend.app.core.guards import require_role
from adera_backend.app.db.session import get_db
from adera_backend.app.models.enums import UserRole
from adera_backend.app.models.parcel_enums import PackageSize
from adera_backend.app.schemas.address import PartnerLocationResponse
from adera_backend.app.schemas.parcel import (
    CancellationResult,
    DeliveryFeeQuote,
    ParcelCancelRequest,
    ParcelCreate,
    ParcelCreationResult,
    ParcelPage,
    ParcelResponse,
    ParcelStatistics,
    ParcelStatusHistoryResponse,
    ParcelStatusUpdate,
)
from adera_backend.app.services.parcel_service import ParcelService

router = APIRouter(prefix="/parcels", tags=["Parcels"])


@router.post("", response_model=ParcelCreationResult, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_data: ParcelCreate,
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a parcel for the calling sender.

    Returns 201 even when the payment transaction could not be written;
    that case is reported in `warnings`.
    """
    return await ParcelService.create_parcel(db, parcel_data, session.user_id)


@router.get("", response_model=ParcelPage)
async def paginate_parcels(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    page_size: Optional[int] = Query(None, ge=1, description="Items per page"),
    status_filter: str = Query("all", description="all, active, or a parcel status"),
    sort_by: str = Query("created_at", description="Sort field"),
    sort_direction: str = Query("desc", description="asc or desc"),
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Page through parcels the caller sends or receives."""
    return await ParcelService.paginate_parcels(
        db,
        session.user_id,
        status_filter=status_filter,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )


@router.get("/all", response_model=List[ParcelResponse])
async def list_parcels(
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Every parcel the caller sends or receives, newest first."""
    return await ParcelService.list_parcels(db, session.user_id)


@router.get("/sent", response_model=List[ParcelResponse])
async def list_sent_parcels(
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await ParcelService.list_sent_parcels(db, session.user_id)


@router.get("/search", response_model=List[ParcelResponse])
async def search_parcels(
    q: str = Query("", max_length=100, description="Tracking code or description fragment"),
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Case-insensitive search; a blank query returns an empty list."""
    return await ParcelService.search_parcels(db, session.user_id, q)


@router.get("/statistics", response_model=ParcelStatistics)
async def get_statistics(
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await ParcelService.statistics(db, session.user_id)


@router.get("/active", response_model=List[ParcelResponse])
async def list_active_deliveries(
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """In-flight parcels with a delivery estimate label."""
    return await ParcelService.list_active_deliveries(db, session.user_id)


@router.get("/quote", response_model=DeliveryFeeQuote)
async def quote_delivery_fee(
    package_size: PackageSize = Query(..., description="Package size class"),
    distance_km: Optional[float] = Query(None, ge=0, description="Trip distance in km"),
    session: SessionContext = Depends(get_current_user),
):
    return ParcelService.quote_delivery_fee(package_size, distance_km)


@router.get("/partner-locations", response_model=List[PartnerLocationResponse])
async def list_partner_locations(
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Active partner points usable as pickup or dropoff."""
    return await ParcelService.list_partner_locations(db)


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Get one parcel.

    Returns 404 both when the parcel does not exist and when the caller is
    neither its sender nor its receiver.
    """
    return await ParcelService.get_parcel(db, parcel_id, session.user_id)


@router.get("/{parcel_id}/history", response_model=List[ParcelStatusHistoryResponse])
async def get_parcel_history(
    parcel_id: str = Path(..., description="Parcel ID"),
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await ParcelService.get_parcel_history(db, parcel_id, session.user_id)


@router.post("/{parcel_id}/cancel", response_model=CancellationResult)
async def cancel_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    cancel_request: Optional[ParcelCancelRequest] = None,
    session: SessionContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a parcel that has not been picked up yet.

    A parcel past confirmation is returned unchanged with `cancelled: false`.
    """
    reason = cancel_request.reason if cancel_request else None
    return await ParcelService.cancel_parcel(db, parcel_id, session.user_id, reason)


@router.patch("/{parcel_id}/status", response_model=ParcelResponse)
async def set_parcel_status(
    status_update: ParcelStatusUpdate,
    parcel_id: str = Path(..., description="Parcel ID"),
    session: SessionContext = Depends(require_role([UserRole.OPERATOR, UserRole.COURIER, UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Set any status without transition checks (operators, couriers, admins)."""
    return await ParcelService.set_parcel_status(
        db, parcel_id, status_update.status, changed_by=session.user_id, notes=status_update.notes
    )
