"""Custom exception hierarchy for the trip planner package."""

from __future__ import annotations


class TripPlannerError(Exception):
    """Base class for all trip planner specific errors."""


class UnknownPersonError(TripPlannerError):
    """Raised when a name is not part of the participant roster."""


class NotManagedError(TripPlannerError):
    """Raised when a user tries to act for someone they do not manage."""


class SessionNotFoundError(TripPlannerError):
    """Raised when a session lookup fails."""


class AdminLockedError(TripPlannerError):
    """Raised when an admin-only action is attempted without unlocking admin mode."""
