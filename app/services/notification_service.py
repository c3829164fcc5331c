# app/services/notification_service.py
"""
Outbound driver/admin notifications.
Used by presence_service on registration and approval.
Delivery goes through the EmailJS REST API when it is configured; otherwise
the message is only logged (demo mode) and counts as delivered.
A failed delivery is reported in the result and never raises.
"""

import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from app.config import settings
from app.schemas.vehicle import VehicleRecord
from app.utils.logger import get_logger

logger = get_logger(__name__)


class NotificationEvent(str, Enum):
    registered = "registered"
    approved = "approved"
    admin_alert = "admin_alert"


@dataclass
class NotificationResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


SUBJECTS = {
    NotificationEvent.registered:  "Welcome to NEXSE - Registration Received!",
    NotificationEvent.approved:    "NEXSE Registration Approved - Welcome!",
    NotificationEvent.admin_alert: "New Driver Registration - Approval Required",
}


def _message_for(event: NotificationEvent, vehicle: VehicleRecord) -> str:
    if event == NotificationEvent.registered:
        if vehicle.approved:
            return (f"Hello {vehicle.name}, your {vehicle.vehicle_type.value} ({vehicle.plate}) is registered. "
                    "You can log in and go online right away.")
        return (f"Hello {vehicle.name}, your {vehicle.vehicle_type.value} registration ({vehicle.plate}) "
                "is pending admin approval. We will e-mail you once it is approved.")
    if event == NotificationEvent.approved:
        return f"Hello {vehicle.name}, your registration was approved. Log in and go online to appear on the map."
    return (f"New {vehicle.vehicle_type.value} registration: {vehicle.name} <{vehicle.email}>, "
            f"plate {vehicle.plate}, licence {vehicle.license_number}. "
            f"{'Approval required.' if not vehicle.approved else 'Auto-approved.'}")


class NotificationService:
    def __init__(self, client_factory=httpx.AsyncClient):
        self._client_factory = client_factory
        self._ids = itertools.count(1)
        self.sent = 0

    def _recipients(self, event: NotificationEvent, vehicle: VehicleRecord) -> list[tuple[str, str]]:
        if event == NotificationEvent.admin_alert:
            return [(email, "Admin") for email in settings.ADMIN_EMAILS]
        return [(vehicle.email, vehicle.name)]

    async def notify(self, event: NotificationEvent, vehicle: VehicleRecord) -> NotificationResult:
        recipients = self._recipients(event, vehicle)
        if not recipients:
            logger.info(f"[NOTIFY] {event.value} for {vehicle.id}: no recipients configured")
            return NotificationResult(success=True, message_id=None)

        message = _message_for(event, vehicle)
        try:
            for to_email, to_name in recipients:
                if settings.EMAIL_ENABLED:
                    await self._send_emailjs(event, to_email, to_name, message)
                else:
                    logger.info(f"[NOTIFY] (log only) {event.value} → {to_email}: {message}")
        except httpx.HTTPError as e:
            logger.error(f"[NOTIFY] {event.value} for {vehicle.id} failed: {e}")
            return NotificationResult(success=False, error=str(e))

        self.sent += len(recipients)
        message_id = f"{event.value}_{next(self._ids)}"
        logger.info(f"[NOTIFY] {event.value} sent for {vehicle.id} ({len(recipients)} recipient(s))")
        return NotificationResult(success=True, message_id=message_id)

    async def _send_emailjs(self, event, to_email, to_name, message):
        payload = {
            "service_id": settings.EMAILJS_SERVICE_ID,
            "template_id": settings.EMAILJS_TEMPLATE_ID,
            "user_id": settings.EMAILJS_USER_ID,
            "template_params": {
                "to_email": to_email,
                "to_name": to_name,
                "from_name": settings.EMAIL_FROM_NAME,
                "subject": SUBJECTS[event],
                "message": message,
            },
        }
        async with self._client_factory(timeout=10) as client:
            response = await client.post(settings.EMAILJS_URL, json=payload)
            response.raise_for_status()
