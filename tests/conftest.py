import threading
from typing import List, Set

import pytest

from tripplanner.backend import TripBackend
from tripplanner.config import TripConfig
from tripplanner.persistence import build_engine, create_db_and_tables

TRIP_DAYS = ("2026-09-01", "2026-09-02")
PARTICIPANTS = ("Marco", "Benno", "Lx", "Emil", "Karli", "Chris")
GUARDIANS = {"Emil": ("Benno", "Lx"), "Karli": ("Benno", "Lx")}


class FlakyBackend(TripBackend):
    """Backend that records calls and fails the operations listed in ``fail``."""

    def __init__(self, engine) -> None:
        super().__init__(engine)
        self.fail: Set[str] = set()
        self.calls: List[str] = []
        self.hold_events = threading.Event()
        self.events_started = threading.Event()
        self.block_events = False

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise RuntimeError(f"{name} unavailable")

    def fetch_events(self):
        self._check("fetch_events")
        rows = super().fetch_events()
        self.events_started.set()
        if self.block_events:
            # only the first reload is held back, after it has read the events
            self.block_events = False
            self.hold_events.wait(timeout=5)
        return rows

    def fetch_rsvps(self, event_ids):
        self._check("fetch_rsvps")
        return super().fetch_rsvps(event_ids)

    def fetch_meals(self, days):
        self._check("fetch_meals")
        return super().fetch_meals(days)

    def fetch_profiles(self, people):
        self._check("fetch_profiles")
        return super().fetch_profiles(people)

    def upsert_rsvp(self, event_id, person, status):
        self._check("upsert_rsvp")
        return super().upsert_rsvp(event_id, person, status)

    def upsert_rsvps(self, rows):
        self._check("upsert_rsvps")
        return super().upsert_rsvps(rows)

    def upsert_meal(self, day, meal_type, person, enabled):
        self._check("upsert_meal")
        return super().upsert_meal(day, meal_type, person, enabled)

    def upsert_meals(self, rows):
        self._check("upsert_meals")
        return super().upsert_meals(rows)

    def upsert_profile(self, row):
        self._check("upsert_profile")
        return super().upsert_profile(row)

    def upsert_event(self, row):
        self._check("upsert_event")
        return super().upsert_event(row)


@pytest.fixture()
def trip_config() -> TripConfig:
    return TripConfig.build(
        days=TRIP_DAYS,
        participants=PARTICIPANTS,
        guardians=GUARDIANS,
        admin_name="Marco",
        admin_pin="4040",
        poll_interval=0.05,
    )


@pytest.fixture()
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'trip.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def backend(engine) -> FlakyBackend:
    return FlakyBackend(engine)
