"""
Address Pydantic schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional


class LocationDescriptor(BaseModel):
    """
    Where a parcel is picked up or dropped off.
    
    Either a partner location id or a free-form address line is required.
    """
    partner_location_id: Optional[str] = Field(None, description="Predefined partner point")
    address_line: Optional[str] = Field(None, max_length=255, description="Free-text address line")
    city: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class AddressResponse(BaseModel):
    """Schema for address response."""
    id: str
    address_line: str
    city: str
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    partner_location_id: Optional[str] = None
    
    class Config:
        from_attributes = True


class PartnerLocationResponse(BaseModel):
    id: str
    name: str
    address_line: str
    city: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    
    class Config:
        from_attributes = True
