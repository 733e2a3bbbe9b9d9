"""
Transaction database model.

One-to-one payment companion of a parcel.
"""

import uuid
from sqlalchemy import Column, String, Float, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from adera_backend.app.db.session import Base
from adera_backend.app.models.payment_enums import PaymentMethod, TransactionStatus


class Transaction(Base):
    __tablename__ = "transactions"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    parcel_id = Column(String(36), ForeignKey('parcels.id'), unique=True, nullable=False, index=True)
    
    amount = Column(Float, nullable=False)
    status = Column(Enum(TransactionStatus), default=TransactionStatus.PENDING, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Transaction(id={self.id}, parcel_id={self.parcel_id}, amount={self.amount}, status='{self.status.value}')>"
