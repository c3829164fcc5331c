# app/schemas/vehicle.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional

from app.schemas.vehicle_type import VehicleKind


class Location(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    timestamp: datetime


class LocationFix(BaseModel):
    """A device position as reported by a driver's phone."""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    timestamp: Optional[datetime] = None


class LocationErrorReport(BaseModel):
    error: Literal["permission_denied", "position_unavailable", "timeout"]


class VehicleRecord(BaseModel):
    """Stored vehicle document. Never returned as-is by the API (carries the password hash)."""
    id: str
    name: str
    email: str
    phone: str
    license_number: str
    plate: str
    vehicle_type: VehicleKind
    route_from: Optional[str] = None
    route_to: Optional[str] = None
    taxi_number: Optional[str] = None
    governorate: Optional[str] = None
    password_hash: str
    location: Optional[Location] = None
    approved: bool = False
    online: bool = False
    registered_at: datetime
    last_seen: datetime
    offline_reason: Optional[str] = None


class RegistrationRequest(BaseModel):
    name: str
    email: str
    phone: str
    license_number: str
    plate: str
    vehicle_type: str
    password: str
    route_from: Optional[str] = None
    route_to: Optional[str] = None
    taxi_number: Optional[str] = None
    governorate: Optional[str] = None
    location: Optional[LocationFix] = None


class VehicleProfileUpdate(BaseModel):
    """Admin edit of a driver's profile. Approval and presence are not editable here."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    license_number: Optional[str] = None
    plate: Optional[str] = None
    vehicle_type: Optional[str] = None
    password: Optional[str] = None
    route_from: Optional[str] = None
    route_to: Optional[str] = None
    taxi_number: Optional[str] = None
    governorate: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class VehicleOut(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    license_number: str
    plate: str
    vehicle_type: VehicleKind
    route_from: Optional[str]
    route_to: Optional[str]
    taxi_number: Optional[str]
    governorate: Optional[str]
    location: Optional[Location]
    approved: bool
    online: bool
    registered_at: datetime
    last_seen: datetime
    offline_reason: Optional[str]

    class Config:
        from_attributes = True


class VisibleVehicle(BaseModel):
    """What the map needs to draw one marker."""
    id: str
    vehicle_type: VehicleKind
    name: str
    plate: str
    lat: float
    lng: float
    icon: str
    color: str
    route_label: Optional[str] = None
    taxi_number: Optional[str] = None
