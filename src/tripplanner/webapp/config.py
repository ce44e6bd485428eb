"""Configuration constants for the trip planner web frontend."""
from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from ..config import TripConfig, load_trip_config

load_dotenv()

DATABASE_URL = os.environ.get("TRIPPLANNER_DATABASE_URL", "sqlite:///tripplanner.db")
SESSION_SECRET = os.environ.get("SESSION_SECRET", "change-this-session-secret")
TRIP_CONFIG_FILE = os.environ.get("TRIPPLANNER_CONFIG", "")
UI_LOCALE = os.environ.get("TRIPPLANNER_LOCALE", "de")
_log_file = os.environ.get("TRIPPLANNER_LOG_FILE", "")
LOG_FILE: Optional[Path] = Path(_log_file) if _log_file else None
_poll_interval = os.environ.get("TRIPPLANNER_POLL_INTERVAL", "")
_idle_minutes = os.environ.get("TRIPPLANNER_SESSION_IDLE_MINUTES", "")

TRIP_CONFIG: TripConfig = load_trip_config(
    TRIP_CONFIG_FILE or None,
    admin_pin=os.environ.get("ADMIN_PIN") or None,
    poll_interval=float(_poll_interval) if _poll_interval else None,
)
ADMIN_PIN = TRIP_CONFIG.admin_pin
POLL_INTERVAL_SECONDS = TRIP_CONFIG.poll_interval

SESSION_ID_KEY = "trip_session_id"
REMEMBER_NAME_COOKIE = "trip_remember_name"
REMEMBER_COOKIE_LIFETIME = timedelta(days=30)
REMEMBER_COOKIE_MAX_AGE = int(REMEMBER_COOKIE_LIFETIME.total_seconds())
SESSION_IDLE_TIMEOUT = timedelta(minutes=float(_idle_minutes) if _idle_minutes else 30)

__all__ = [
    "ADMIN_PIN",
    "DATABASE_URL",
    "LOG_FILE",
    "POLL_INTERVAL_SECONDS",
    "REMEMBER_COOKIE_LIFETIME",
    "REMEMBER_COOKIE_MAX_AGE",
    "REMEMBER_NAME_COOKIE",
    "SESSION_ID_KEY",
    "SESSION_IDLE_TIMEOUT",
    "SESSION_SECRET",
    "TRIP_CONFIG",
    "TRIP_CONFIG_FILE",
    "UI_LOCALE",
]
