"""
Parcel database model.

A parcel is a single delivery order tracked end-to-end by status.
Address relations are plain foreign keys; read paths join or batch-load
them explicitly so a missing address never fails the parcel row.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Enum, Boolean
from sqlalchemy.sql import func
from adera_backend.app.db.session import Base
from adera_backend.app.models.parcel_enums import ParcelStatus, PackageSize
from adera_backend.app.models.payment_enums import PaymentStatus, PaymentMethod


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Parcel(Base):
    """
    Parcel model.
    
    Invariants:
    - sender_id is always set; receiver_id may be null
    - parcels are never deleted, cancellation is a terminal status
    """
    __tablename__ = "parcels"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tracking_code = Column(String(32), unique=True, nullable=False, index=True)
    
    # Parties
    sender_id = Column(String(64), nullable=False, index=True)
    receiver_id = Column(String(64), nullable=True, index=True)
    
    # Locations
    pickup_address_id = Column(String(36), ForeignKey('addresses.id'), nullable=False)
    dropoff_address_id = Column(String(36), ForeignKey('addresses.id'), nullable=False)
    pickup_contact = Column(String(100), nullable=True)
    dropoff_contact = Column(String(100), nullable=True)
    
    # Package
    package_size = Column(Enum(PackageSize), nullable=False)
    package_description = Column(String(500), nullable=True)
    is_fragile = Column(Boolean, default=False, nullable=False)
    weight = Column(Float, nullable=True)
    price = Column(Float, nullable=False, default=0.0)
    
    # Payment
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    delivery_fee = Column(Float, nullable=False, default=0.0)
    
    # Status
    status = Column(Enum(ParcelStatus), default=ParcelStatus.PENDING, nullable=False, index=True)
    cancellation_reason = Column(String(500), nullable=True)
    estimated_delivery_at = Column(DateTime(timezone=True), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)
    
    def __repr__(self):
        return f"<Parcel(id={self.id}, tracking='{self.tracking_code}', status='{self.status.value}')>"
