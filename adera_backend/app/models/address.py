"""
Address database model.

Addresses are written once at parcel creation and never edited in place.
"""

import uuid
from sqlalchemy import Column, String, Float, DateTime, ForeignKey
from sqlalchemy.sql import func
from adera_backend.app.db.session import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Address(Base):
    """A resolved physical location owned by the party that created it."""
    __tablename__ = "addresses"
    
    id = Column(String(36), primary_key=True, default=_uuid)
    
    # Ownership
    owner_id = Column(String(64), nullable=False, index=True)
    partner_location_id = Column(String(36), ForeignKey('partner_locations.id'), nullable=True, index=True)
    
    # Location
    address_line = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Address(id={self.id}, line='{self.address_line}', city='{self.city}')>"
