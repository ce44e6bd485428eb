"""Trip planner package for coordinating a group trip: events, meals and flights."""

from .admin import AuditLog
from .api import TripExporter
from .backend import TripBackend
from .config import TripConfig, load_trip_config
from .costs import RsvpBreakdown, expected_cost, is_full, rsvp_breakdown
from .exceptions import (
    AdminLockedError,
    NotManagedError,
    SessionNotFoundError,
    TripPlannerError,
    UnknownPersonError,
)
from .family import FamilyResolver
from .i18n import Translator
from .models import (
    FamilyGroup,
    FlightLeg,
    MealSlot,
    RsvpStatus,
    StoreStatus,
    TravelProfile,
    TripEvent,
    TripSnapshot,
)
from .ops import StructuredLogger
from .polling import ReloadPoller
from .sessions import SessionRegistry, TripSession
from .store import TripDataStore

__all__ = [
    "AdminLockedError",
    "AuditLog",
    "FamilyGroup",
    "FamilyResolver",
    "FlightLeg",
    "MealSlot",
    "NotManagedError",
    "ReloadPoller",
    "RsvpBreakdown",
    "RsvpStatus",
    "SessionNotFoundError",
    "SessionRegistry",
    "StoreStatus",
    "StructuredLogger",
    "Translator",
    "TravelProfile",
    "TripBackend",
    "TripConfig",
    "TripDataStore",
    "TripEvent",
    "TripExporter",
    "TripPlannerError",
    "TripSession",
    "TripSnapshot",
    "UnknownPersonError",
    "expected_cost",
    "is_full",
    "load_trip_config",
    "rsvp_breakdown",
]
