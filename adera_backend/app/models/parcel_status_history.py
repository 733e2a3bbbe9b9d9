"""
Parcel Status History database model.

Append-only record of every status change, newest rows read first.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from adera_backend.app.db.session import Base
from adera_backend.app.models.parcel import utcnow
from adera_backend.app.models.parcel_enums import ParcelStatus


class ParcelStatusHistory(Base):
    __tablename__ = "parcel_status_history"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    parcel_id = Column(String(36), ForeignKey('parcels.id'), nullable=False, index=True)
    
    from_status = Column(Enum(ParcelStatus), nullable=True)
    to_status = Column(Enum(ParcelStatus), nullable=False)
    
    # None for system/operator processes without a user id
    changed_by = Column(String(64), nullable=True)
    notes = Column(String(500), nullable=True)
    
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    
    def __repr__(self):
        return f"<ParcelStatusHistory(parcel_id={self.parcel_id}, {self.from_status} -> {self.to_status})>"
