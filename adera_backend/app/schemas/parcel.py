"""
Parcel Pydantic schemas.

Defines request and response models for the parcel service.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict, Any
from adera_backend.app.models.parcel_enums import ParcelStatus, PackageSize
from adera_backend.app.models.payment_enums import PaymentStatus, PaymentMethod, TransactionStatus
from adera_backend.app.schemas.address import LocationDescriptor, AddressResponse


class ParcelCreate(BaseModel):
    """
    Creation draft for a new parcel.
    
    The sender is taken from the session. Pickup and dropoff are optional at
    the schema level so that a missing location surfaces as the service's
    ValidationError rather than a generic body error.
    """
    receiver_id: Optional[str] = Field(None, max_length=64)
    package_size: PackageSize
    package_description: Optional[str] = Field(None, max_length=500)
    is_fragile: bool = False
    weight: Optional[float] = Field(None, gt=0, description="Weight in kilograms")
    pickup: Optional[LocationDescriptor] = None
    dropoff: Optional[LocationDescriptor] = None
    pickup_contact: Optional[str] = Field(None, max_length=100)
    dropoff_contact: Optional[str] = Field(None, max_length=100)
    payment_method: PaymentMethod
    delivery_fee: Optional[float] = Field(None, ge=0, description="Fee; quoted from size and distance when absent")
    distance_km: Optional[float] = Field(None, ge=0, description="Used only to quote a missing fee")


class ParcelStatusUpdate(BaseModel):
    status: ParcelStatus
    notes: Optional[str] = Field(None, max_length=500)


class ParcelCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ParcelResponse(BaseModel):
    """Schema for parcel response with resolved addresses."""
    id: str
    tracking_code: str
    status: ParcelStatus
    sender_id: str
    receiver_id: Optional[str] = None
    pickup_address_id: str
    dropoff_address_id: str
    pickup_address: Optional[AddressResponse] = None
    dropoff_address: Optional[AddressResponse] = None
    pickup_contact: Optional[str] = None
    dropoff_contact: Optional[str] = None
    package_size: PackageSize
    package_description: Optional[str] = None
    is_fragile: bool
    weight: Optional[float] = None
    price: float
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    delivery_fee: float
    cancellation_reason: Optional[str] = None
    estimated_delivery_at: Optional[datetime] = None
    estimated_delivery: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    id: str
    parcel_id: str
    amount: float
    status: TransactionStatus
    payment_method: PaymentMethod
    created_at: datetime
    updated_at: datetime
    
    class Config:
        from_attributes = True


class ParcelCreationResult(BaseModel):
    """Created parcel plus its transaction; warnings carry partial failures."""
    parcel: ParcelResponse
    transaction: Optional[TransactionResponse] = None
    warnings: List[Dict[str, Any]] = []


class CancellationResult(BaseModel):
    """
    Outcome of a user cancel request.
    
    cancelled is False when the parcel's status did not allow it; the parcel
    is then returned unchanged.
    """
    parcel: ParcelResponse
    cancelled: bool
    message: str


class ParcelPage(BaseModel):
    """Schema for paginated parcel list."""
    items: List[ParcelResponse]
    total_count: int
    page: int
    page_size: int


class ParcelStatistics(BaseModel):
    """Per-user counts; total is the sum of the three buckets."""
    total: int = 0
    active: int = 0
    delivered: int = 0
    cancelled: int = 0


class ParcelStatusHistoryResponse(BaseModel):
    id: int
    parcel_id: str
    from_status: Optional[ParcelStatus] = None
    to_status: ParcelStatus
    changed_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    
    class Config:
        from_attributes = True


class DeliveryFeeQuote(BaseModel):
    package_size: PackageSize
    distance_km: float
    base_fee: float
    distance_fee: float
    total: float
