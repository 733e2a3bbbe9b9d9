"""
Partner Location database model.

Predefined pickup/dropoff points that can stand in for a free-form address.
"""

import uuid
from sqlalchemy import Column, String, Float, Boolean, DateTime
from sqlalchemy.sql import func
from adera_backend.app.db.session import Base


class PartnerLocation(Base):
    __tablename__ = "partner_locations"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    address_line = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<PartnerLocation(id={self.id}, name='{self.name}')>"
