"""Convert trip data structures to JSON friendly dictionaries."""

from __future__ import annotations

import json
from typing import Dict, Optional, TYPE_CHECKING

from .costs import expected_cost, is_full
from .family import FamilyResolver
from .models import FlightLeg, TravelProfile, TripEvent, TripSnapshot

if TYPE_CHECKING:  # pragma: no cover
    from .sessions import TripSession


class TripExporter:
    """Serialise snapshots and sessions for the JSON endpoint."""

    def snapshot(self, snapshot: TripSnapshot) -> Dict[str, object]:
        return {
            "events": [self._serialise_event(event) for event in snapshot.events],
            "meals": {
                day: {slot.value: dict(signups) for slot, signups in slots.items()}
                for day, slots in snapshot.meals.items()
            },
            "profiles": {
                person: self._serialise_profile(profile) for person, profile in snapshot.profiles.items()
            },
        }

    def session(self, session: "TripSession", resolver: FamilyResolver) -> Dict[str, object]:
        store = session.store
        family = resolver.family_group_for_costs(session.user)
        return {
            "user": session.user,
            "acting_person": session.acting_person,
            "managed": list(session.managed),
            "admin_unlocked": session.admin_unlocked,
            "status": store.status.value,
            "load_error": store.load_error,
            "stale": store.is_stale,
            "family": {"label": family.label, "people": list(family.people)},
            "expected_cost": expected_cost(store.events, family.people),
            "trip": self.snapshot(store.snapshot),
        }

    def to_json(self, payload: Dict[str, object]) -> str:
        return json.dumps(payload, sort_keys=True)

    def _serialise_event(self, event: TripEvent) -> Dict[str, object]:
        return {
            "id": event.id,
            "title": event.title,
            "date": event.date,
            "start_time": event.start_time,
            "end_time": event.end_time,
            "location": event.location,
            "description": event.description,
            "capacity": event.capacity,
            "price": event.price,
            "full": is_full(event),
            "rsvp": {person: status.value for person, status in event.rsvp.items()},
        }

    def _serialise_profile(self, profile: TravelProfile) -> Dict[str, object]:
        return {
            "arrival": self._serialise_leg(profile.arrival),
            "departure": self._serialise_leg(profile.departure),
        }

    @staticmethod
    def _serialise_leg(leg: Optional[FlightLeg]) -> Optional[Dict[str, str]]:
        if leg is None:
            return None
        return {"date": leg.date, "time": leg.time, "flight": leg.flight}


__all__ = ["TripExporter"]
