"""
Jurisdictional office (police station) models.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class StationCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    station_type: str = Field("SUB_STATION", max_length=50)
    address: str = Field(..., min_length=5, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    pincode: str = Field(..., min_length=3, max_length=12)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=254)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class StationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    station_type: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, min_length=5, max_length=500)
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    is_active: Optional[bool] = None


class StationResponse(BaseModel):
    id: str
    name: str
    station_type: str = "SUB_STATION"
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    latitude: float
    longitude: float
    is_active: bool = True
    created_at: Optional[datetime] = None
