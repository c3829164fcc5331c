# app/schemas/vehicle_type.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class VehicleKind(str, Enum):
    taxi = "taxi"
    minibus = "minibus"
    tuk_tuk = "tuk-tuk"
    van = "van"
    bus = "bus"


class VehicleType(BaseModel):
    id: VehicleKind
    name: str
    icon: str
    color: str = Field(pattern=r"^#[0-9A-Fa-f]{6}$")
    enabled: bool = True
    step: float = Field(gt=0, le=1)      # movement magnitude per tick, degrees
    requires_approval: bool = False
    requires_route: bool = False
    shows_route_label: bool = False


class VehicleTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    icon: Optional[str] = Field(default=None, min_length=1)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
