# app/schemas/dashboard.py
from pydantic import BaseModel
from datetime import datetime


class DashboardStats(BaseModel):
    total_vehicles: int
    online_vehicles: int
    pending_approvals: int
    registered_last_week: int
    by_type: dict[str, int]
    notifications_sent: int
    computed_at: datetime


class FilterState(BaseModel):
    active_types: list[str]
    all_active: bool


class FilterUpdate(BaseModel):
    active_types: list[str]
