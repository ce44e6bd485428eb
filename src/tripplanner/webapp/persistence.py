"""Database engine for the trip planner web frontend."""
from __future__ import annotations

from ..backend import TripBackend
from ..persistence import EventRow, MealRow, ProfileRow, RsvpRow, build_engine, create_db_and_tables
from .config import DATABASE_URL

engine = build_engine(DATABASE_URL)
create_db_and_tables(engine)
backend = TripBackend(engine)

__all__ = [
    "engine",
    "backend",
    "EventRow",
    "MealRow",
    "ProfileRow",
    "RsvpRow",
]
