# app/config.py
"""
Application configuration using Pydantic-Settings.
All settings can be overridden via environment variables or .env file.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # ── Database ──────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./nexse.db"

    # ── Network ───────────────────────────────────────────────────────────
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8080

    # ── Security ──────────────────────────────────────────────────────────
    ADMIN_API_KEY: Optional[str] = None   # Set in .env to protect admin endpoints

    # ── Scheduler cadences (seconds) ──────────────────────────────────────
    SCHEDULER_ENABLED: bool = True
    REFRESH_INTERVAL_SECONDS: float = 10
    MOVEMENT_INTERVAL_SECONDS: float = 15
    DASHBOARD_INTERVAL_SECONDS: float = 30
    STATUS_LOG_INTERVAL_SECONDS: float = 60

    # ── Simulation ────────────────────────────────────────────────────────
    MOVEMENT_SIMULATION_ENABLED: bool = True
    SEED_DEMO_FLEET: bool = False          # Load the demo fleet when the store is empty

    # ── Geofence ──────────────────────────────────────────────────────────
    GEOFENCE_FILE: Optional[str] = None    # GeoJSON Polygon; built-in Iraq ring when unset

    # ── Device location ───────────────────────────────────────────────────
    LOCATION_TIMEOUT_SECONDS: float = 15

    # ── Notifications (EmailJS REST API) ──────────────────────────────────
    EMAILJS_URL: str = "https://api.emailjs.com/api/v1.0/email/send"
    EMAILJS_SERVICE_ID: Optional[str] = None
    EMAILJS_TEMPLATE_ID: Optional[str] = None
    EMAILJS_USER_ID: Optional[str] = None
    EMAIL_FROM_NAME: str = "NEXSE Team"
    ADMIN_EMAILS: list[str] = []

    @property
    def EMAIL_ENABLED(self) -> bool:
        return bool(self.EMAILJS_SERVICE_ID and self.EMAILJS_TEMPLATE_ID and self.EMAILJS_USER_ID)

    @property
    def SCHEDULE(self) -> dict:
        return {
            "refresh":   self.REFRESH_INTERVAL_SECONDS,
            "movement":  self.MOVEMENT_INTERVAL_SECONDS,
            "dashboard": self.DASHBOARD_INTERVAL_SECONDS,
            "status":    self.STATUS_LOG_INTERVAL_SECONDS,
        }

    # ── Logging ───────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
