"""SQLModel tables for the shared trip backend."""

from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Field, SQLModel, create_engine


# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
class EventRow(SQLModel, table=True):
    __tablename__ = "events"

    id: str = Field(primary_key=True)
    title: str
    date: str = Field(index=True)
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    capacity: Optional[int] = None
    price: Optional[float] = None


class RsvpRow(SQLModel, table=True):
    __tablename__ = "rsvps"

    event_id: str = Field(primary_key=True)
    person: str = Field(primary_key=True)
    status: str  # yes|no; no row means pending


class MealRow(SQLModel, table=True):
    __tablename__ = "meals"

    day: str = Field(primary_key=True)
    meal_type: str = Field(primary_key=True)  # breakfast|lunch|dinner
    person: str = Field(primary_key=True)
    enabled: bool = False


class ProfileRow(SQLModel, table=True):
    __tablename__ = "profiles"

    person: str = Field(primary_key=True)
    arrival_date: Optional[str] = None
    arrival_time: Optional[str] = None
    arrival_flight: Optional[str] = None
    departure_date: Optional[str] = None
    departure_time: Optional[str] = None
    departure_flight: Optional[str] = None


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------
def build_engine(url: str, *, echo: bool = False) -> Engine:
    connect_args: Dict[str, Any] = {}
    if url.startswith("sqlite"):
        # writes and reloads run on worker threads
        connect_args["check_same_thread"] = False
    return create_engine(url, echo=echo, connect_args=connect_args)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


__all__ = [
    "EventRow",
    "MealRow",
    "ProfileRow",
    "RsvpRow",
    "build_engine",
    "create_db_and_tables",
]
