"""Remote sync adapter: select/upsert/delete against the shared trip tables.

Every method here is blocking.  :class:`~tripplanner.store.TripDataStore`
pushes the calls onto worker threads so the event loop never waits on the
database.  Upserts use ``Session.merge`` which gives last-write-wins per row,
keyed by the table's primary key.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy.engine import Engine
from sqlmodel import Session, col, select

from .models import (
    FlightLeg,
    MealSlot,
    RsvpStatus,
    TravelProfile,
    TripEvent,
    TripSnapshot,
    empty_meals,
    empty_profiles,
    empty_rsvp,
)
from .persistence import EventRow, MealRow, ProfileRow, RsvpRow


class TripBackend:
    """Thin data-access wrapper around the four trip tables."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def fetch_events(self) -> List[EventRow]:
        with Session(self._engine) as session:
            query = select(EventRow).order_by(EventRow.date, EventRow.start_time)
            return list(session.exec(query).all())

    def fetch_rsvps(self, event_ids: Sequence[str]) -> List[RsvpRow]:
        if not event_ids:
            return []
        with Session(self._engine) as session:
            query = select(RsvpRow).where(col(RsvpRow.event_id).in_(list(event_ids)))
            return list(session.exec(query).all())

    def fetch_meals(self, days: Sequence[str]) -> List[MealRow]:
        if not days:
            return []
        with Session(self._engine) as session:
            query = select(MealRow).where(col(MealRow.day).in_(list(days)))
            return list(session.exec(query).all())

    def fetch_profiles(self, people: Sequence[str]) -> List[ProfileRow]:
        if not people:
            return []
        with Session(self._engine) as session:
            query = select(ProfileRow).where(col(ProfileRow.person).in_(list(people)))
            return list(session.exec(query).all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def upsert_event(self, row: EventRow) -> None:
        self._merge([row])

    def delete_event(self, event_id: str) -> bool:
        with Session(self._engine) as session:
            row = session.get(EventRow, event_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def upsert_rsvp(self, event_id: str, person: str, status: str) -> None:
        self._merge([RsvpRow(event_id=event_id, person=person, status=status)])

    def upsert_rsvps(self, rows: Sequence[RsvpRow]) -> None:
        self._merge(rows)

    def upsert_meal(self, day: str, meal_type: str, person: str, enabled: bool) -> None:
        self._merge([MealRow(day=day, meal_type=meal_type, person=person, enabled=enabled)])

    def upsert_meals(self, rows: Sequence[MealRow]) -> None:
        self._merge(rows)

    def upsert_profile(self, row: ProfileRow) -> None:
        self._merge([row])

    def _merge(self, rows: Iterable[Any]) -> None:
        pending = list(rows)
        if not pending:
            return
        with Session(self._engine) as session:
            for row in pending:
                session.merge(row)
            session.commit()


# ---------------------------------------------------------------------------
# Row <-> domain translation
# ---------------------------------------------------------------------------
def _text(value: Optional[str]) -> str:
    return value or ""


def _nullable(value: Any) -> Optional[str]:
    text = "" if value is None else str(value).strip()
    return text or None


def event_from_row(row: EventRow, rsvp: Mapping[str, RsvpStatus]) -> TripEvent:
    price = row.price if isinstance(row.price, (int, float)) else None
    return TripEvent(
        id=row.id,
        title=row.title,
        date=row.date,
        start_time=_text(row.start_time),
        end_time=_text(row.end_time),
        location=_text(row.location),
        description=_text(row.description),
        capacity=row.capacity,
        price=float(price) if price is not None else None,
        rsvp=dict(rsvp),
    )


def event_row_from_payload(payload: Mapping[str, Any]) -> EventRow:
    """Build an event row from an admin form payload.

    Accepts the table's column names; blank strings become ``NULL``.
    """

    event_id = _nullable(payload.get("id"))
    title = _nullable(payload.get("title"))
    day = _nullable(payload.get("date"))
    if not event_id:
        raise ValueError("Events need an id.")
    if not title:
        raise ValueError("Events need a title.")
    if not day:
        raise ValueError("Events need a date.")
    capacity = payload.get("capacity")
    price = payload.get("price")
    return EventRow(
        id=event_id,
        title=title,
        date=day,
        start_time=_nullable(payload.get("start_time")),
        end_time=_nullable(payload.get("end_time")),
        location=_nullable(payload.get("location")),
        description=_nullable(payload.get("description")),
        capacity=int(capacity) if isinstance(capacity, (int, float)) and not isinstance(capacity, bool) else None,
        price=float(price) if isinstance(price, (int, float)) and not isinstance(price, bool) else None,
    )


def profile_from_row(row: ProfileRow) -> TravelProfile:
    return TravelProfile(
        arrival=FlightLeg(
            date=_text(row.arrival_date),
            time=_text(row.arrival_time),
            flight=_text(row.arrival_flight),
        ),
        departure=FlightLeg(
            date=_text(row.departure_date),
            time=_text(row.departure_time),
            flight=_text(row.departure_flight),
        ),
    )


def profile_to_row(person: str, profile: TravelProfile) -> ProfileRow:
    arrival = profile.arrival or FlightLeg()
    departure = profile.departure or FlightLeg()
    return ProfileRow(
        person=person,
        arrival_date=_nullable(arrival.date),
        arrival_time=_nullable(arrival.time),
        arrival_flight=_nullable(arrival.flight),
        departure_date=_nullable(departure.date),
        departure_time=_nullable(departure.time),
        departure_flight=_nullable(departure.flight),
    )


def assemble_snapshot(
    event_rows: Sequence[EventRow],
    rsvp_rows: Sequence[RsvpRow],
    meal_rows: Sequence[MealRow],
    profile_rows: Sequence[ProfileRow],
    *,
    participants: Sequence[str],
    days: Sequence[str],
) -> TripSnapshot:
    """Turn fetched rows into a complete snapshot with roster defaults filled in."""

    rsvp_by_event: Dict[str, Dict[str, RsvpStatus]] = {row.id: empty_rsvp(participants) for row in event_rows}
    for rsvp in rsvp_rows:
        statuses = rsvp_by_event.setdefault(rsvp.event_id, empty_rsvp(participants))
        statuses[rsvp.person] = RsvpStatus.YES if rsvp.status == RsvpStatus.YES.value else RsvpStatus.NO

    events = [event_from_row(row, rsvp_by_event[row.id]) for row in event_rows]
    events.sort(key=lambda event: event.sort_key)

    meals = empty_meals(participants, days)
    for meal in meal_rows:
        slots = meals.get(meal.day)
        if slots is None:
            continue
        try:
            slot = MealSlot(meal.meal_type)
        except ValueError:
            continue
        slots[slot][meal.person] = bool(meal.enabled)

    profiles = empty_profiles(participants)
    for profile in profile_rows:
        profiles[profile.person] = profile_from_row(profile)

    return TripSnapshot(events=events, meals=meals, profiles=profiles)


__all__ = [
    "TripBackend",
    "assemble_snapshot",
    "event_from_row",
    "event_row_from_payload",
    "profile_from_row",
    "profile_to_row",
]
