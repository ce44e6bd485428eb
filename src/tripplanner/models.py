"""Domain models used by the trip planner package."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional


class RsvpStatus(str, Enum):
    """Attendance decision of one person for one event."""

    YES = "yes"
    NO = "no"
    PENDING = "pending"


class MealSlot(str, Enum):
    """The shared meals that can be signed up for on every trip day."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


class StoreStatus(str, Enum):
    """Lifecycle of a :class:`~tripplanner.store.TripDataStore` mirror."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    REFRESHING = "refreshing"


FLIGHT_LEGS = ("arrival", "departure")


@dataclass(slots=True)
class FlightLeg:
    """Arrival or departure details; empty strings mean "not entered yet"."""

    date: str = ""
    time: str = ""
    flight: str = ""

    def merged(self, patch: Mapping[str, Optional[str]]) -> "FlightLeg":
        """Return a copy with the keys of ``patch`` applied on top of this leg."""

        known = {item.name for item in fields(self)}
        unknown = set(patch) - known
        if unknown:
            raise ValueError(f"Unknown flight fields: {', '.join(sorted(unknown))}")
        return replace(self, **{key: (value or "").strip() for key, value in patch.items()})

    @property
    def is_empty(self) -> bool:
        return not (self.date or self.time or self.flight)


@dataclass(slots=True)
class TravelProfile:
    """Per person travel details; either leg may be missing."""

    arrival: Optional[FlightLeg] = None
    departure: Optional[FlightLeg] = None

    def merged(self, patch: Mapping[str, Mapping[str, Optional[str]]]) -> "TravelProfile":
        """Merge ``patch`` one level deep into the arrival and departure legs.

        Patching ``arrival`` rebuilds the arrival leg from the old values plus
        the patched keys; ``departure`` is left alone unless it is patched too.
        """

        unknown = set(patch) - set(FLIGHT_LEGS)
        if unknown:
            raise ValueError(f"Unknown profile sections: {', '.join(sorted(unknown))}")
        arrival = self.arrival
        departure = self.departure
        if patch.get("arrival") is not None:
            arrival = (arrival or FlightLeg()).merged(patch["arrival"])
        if patch.get("departure") is not None:
            departure = (departure or FlightLeg()).merged(patch["departure"])
        return TravelProfile(arrival=arrival, departure=departure)


@dataclass(slots=True)
class TripEvent:
    """A scheduled activity people can RSVP to."""

    id: str
    title: str
    date: str
    start_time: str = ""
    end_time: str = ""
    location: str = ""
    description: str = ""
    capacity: Optional[int] = None
    price: Optional[float] = None
    rsvp: Dict[str, RsvpStatus] = field(default_factory=dict)

    def status_for(self, person: str) -> RsvpStatus:
        return self.rsvp.get(person, RsvpStatus.PENDING)

    def yes_people(self) -> List[str]:
        return [person for person, status in self.rsvp.items() if status is RsvpStatus.YES]

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.date, self.start_time or "00:00")


@dataclass(slots=True)
class FamilyGroup:
    """People whose confirmed RSVPs are added up in the cost header."""

    label: str
    people: List[str]

    @property
    def is_family(self) -> bool:
        return self.label == "family"


MealsMap = Dict[str, Dict[MealSlot, Dict[str, bool]]]


def empty_rsvp(participants: Iterable[str]) -> Dict[str, RsvpStatus]:
    """Neutral RSVP map: everybody is pending until a row exists."""

    return {person: RsvpStatus.PENDING for person in participants}


def empty_meals(participants: Iterable[str], days: Iterable[str]) -> MealsMap:
    people = list(participants)
    return {day: {slot: {person: False for person in people} for slot in MealSlot} for day in days}


def empty_profiles(participants: Iterable[str]) -> Dict[str, TravelProfile]:
    return {person: TravelProfile() for person in participants}


@dataclass(slots=True)
class TripSnapshot:
    """Complete client-side view of the shared trip data."""

    events: List[TripEvent] = field(default_factory=list)
    meals: MealsMap = field(default_factory=dict)
    profiles: Dict[str, TravelProfile] = field(default_factory=dict)

    @classmethod
    def empty(cls, participants: Iterable[str], days: Iterable[str]) -> "TripSnapshot":
        people = list(participants)
        return cls(events=[], meals=empty_meals(people, days), profiles=empty_profiles(people))

    def event(self, event_id: str) -> Optional[TripEvent]:
        for event in self.events:
            if event.id == event_id:
                return event
        return None

    def events_on(self, day: str) -> List[TripEvent]:
        return [event for event in self.events if event.date == day]


__all__ = [
    "FLIGHT_LEGS",
    "FamilyGroup",
    "FlightLeg",
    "MealSlot",
    "MealsMap",
    "RsvpStatus",
    "StoreStatus",
    "TravelProfile",
    "TripEvent",
    "TripSnapshot",
    "empty_meals",
    "empty_profiles",
    "empty_rsvp",
]
