"""Client-side mirror of the shared trip data.

Every mutation follows the same pattern: the intended end state is written
into the local mirror straight away, then the matching backend write is
dispatched without waiting for it.  A failed write is logged and recorded but
never rolled back; the next successful :meth:`TripDataStore.reload_all`
replaces the mirror with whatever the backend holds.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .backend import TripBackend, assemble_snapshot, event_row_from_payload, profile_to_row
from .config import TripConfig
from .models import (
    MealSlot,
    MealsMap,
    RsvpStatus,
    StoreStatus,
    TravelProfile,
    TripEvent,
    TripSnapshot,
)
from .ops import StructuredLogger
from .persistence import MealRow, RsvpRow

WRITE_ERRORS_KEEP = 50


def _decided_status(status: RsvpStatus | str) -> RsvpStatus:
    try:
        value = RsvpStatus(status)
    except ValueError as exc:
        raise ValueError(f"Unknown RSVP status {status!r}.") from exc
    if value is RsvpStatus.PENDING:
        raise ValueError("RSVPs can only be set to 'yes' or 'no'; pending means no answer yet.")
    return value


def _describe(exc: BaseException) -> str:
    message = str(exc).strip()
    return message or exc.__class__.__name__


class TripDataStore:
    """In-memory mirror of events, RSVPs, meals and travel profiles."""

    __slots__ = (
        "_backend",
        "_config",
        "_logger",
        "_snapshot",
        "_status",
        "_has_data",
        "_load_error",
        "_reloads_in_flight",
        "_generation",
        "_pending_writes",
        "_last_write",
        "write_errors",
        "last_reloaded_at",
    )

    def __init__(
        self,
        backend: TripBackend,
        config: TripConfig,
        *,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._backend = backend
        self._config = config
        self._logger = logger or StructuredLogger()
        self._snapshot = TripSnapshot.empty(config.participants, config.days)
        self._status = StoreStatus.UNINITIALIZED
        self._has_data = False
        self._load_error = ""
        self._reloads_in_flight = 0
        self._generation = 0
        self._pending_writes: Set[asyncio.Task] = set()
        self._last_write: Optional[asyncio.Task] = None
        self.write_errors: List[str] = []
        self.last_reloaded_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def config(self) -> TripConfig:
        return self._config

    @property
    def status(self) -> StoreStatus:
        return self._status

    @property
    def snapshot(self) -> TripSnapshot:
        return self._snapshot

    @property
    def events(self) -> Tuple[TripEvent, ...]:
        return tuple(self._snapshot.events)

    @property
    def meals(self) -> MealsMap:
        return self._snapshot.meals

    @property
    def profiles(self) -> Dict[str, TravelProfile]:
        return self._snapshot.profiles

    @property
    def load_error(self) -> str:
        return self._load_error

    @property
    def is_stale(self) -> bool:
        """True when the last reload failed and older data is being shown."""

        return bool(self._load_error)

    @property
    def is_loading(self) -> bool:
        return self._status in (StoreStatus.LOADING, StoreStatus.REFRESHING)

    @property
    def has_data(self) -> bool:
        return self._has_data

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    def event(self, event_id: str) -> Optional[TripEvent]:
        return self._snapshot.event(event_id)

    def meal_signup(self, day: str, slot: MealSlot | str, person: str) -> bool:
        return self._meal_slot(day, slot).get(person, False)

    def profile(self, person: str) -> TravelProfile:
        return self._snapshot.profiles.get(person) or TravelProfile()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def begin(self) -> None:
        """Move a fresh store into ``LOADING`` ahead of its first reload."""

        if self._status is StoreStatus.UNINITIALIZED:
            self._status = StoreStatus.LOADING

    def reset(self) -> None:
        """Drop the mirror and return to ``UNINITIALIZED`` (logout).

        Reloads still in flight are ignored when they finish; outstanding
        writes are left to complete against the backend.
        """

        self._generation += 1
        self._snapshot = TripSnapshot.empty(self._config.participants, self._config.days)
        self._status = StoreStatus.UNINITIALIZED
        self._has_data = False
        self._load_error = ""
        self._reloads_in_flight = 0
        self.last_reloaded_at = None

    async def reload_all(self) -> bool:
        """Fetch everything and swap the mirror in one step.

        Events come first because the RSVP query needs their ids.  If any
        fetch fails nothing is replaced, the error is kept for display and
        ``False`` is returned.
        """

        generation = self._generation
        self._reloads_in_flight += 1
        self._status = StoreStatus.REFRESHING if self._has_data else StoreStatus.LOADING
        try:
            snapshot = await self._fetch_snapshot()
        except Exception as exc:
            if generation == self._generation:
                self._load_error = _describe(exc)
                self._logger.error(
                    "reload_failed",
                    error=self._load_error,
                    kept_events=len(self._snapshot.events),
                )
            return False
        else:
            if generation != self._generation:
                self._logger.log("reload_discarded", reason="store reset while loading")
                return False
            self._snapshot = snapshot
            self._has_data = True
            self._load_error = ""
            self.last_reloaded_at = datetime.utcnow()
            self._logger.log("reload_completed", events=len(snapshot.events))
            return True
        finally:
            if generation == self._generation:
                self._reloads_in_flight = max(0, self._reloads_in_flight - 1)
                if self._reloads_in_flight == 0:
                    self._status = StoreStatus.READY

    async def _fetch_snapshot(self) -> TripSnapshot:
        backend = self._backend
        event_rows = await asyncio.to_thread(backend.fetch_events)
        event_ids = [row.id for row in event_rows]
        rsvp_rows = await asyncio.to_thread(backend.fetch_rsvps, event_ids)
        meal_rows = await asyncio.to_thread(backend.fetch_meals, list(self._config.days))
        profile_rows = await asyncio.to_thread(backend.fetch_profiles, list(self._config.participants))
        return assemble_snapshot(
            event_rows,
            rsvp_rows,
            meal_rows,
            profile_rows,
            participants=self._config.participants,
            days=self._config.days,
        )

    async def drain(self) -> None:
        """Wait until every dispatched write has finished."""

        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    # ------------------------------------------------------------------
    # RSVPs
    # ------------------------------------------------------------------
    def set_rsvp(self, event_id: str, person: str, status: RsvpStatus | str) -> None:
        """Record ``person``'s answer for one event; capacity is not checked."""

        value = _decided_status(status)
        self._apply_rsvp(event_id, [person], value)
        self._dispatch("set_rsvp", self._backend.upsert_rsvp, event_id, person, value.value)

    def set_rsvp_many(self, event_id: str, people: Sequence[str], status: RsvpStatus | str) -> None:
        """Give every person in ``people`` the same answer with a single backend write."""

        value = _decided_status(status)
        people = list(people)
        if not people:
            return
        self._apply_rsvp(event_id, people, value)
        rows = [RsvpRow(event_id=event_id, person=person, status=value.value) for person in people]
        self._dispatch("set_rsvp_many", self._backend.upsert_rsvps, rows)

    def _apply_rsvp(self, event_id: str, people: Sequence[str], value: RsvpStatus) -> None:
        event = self._snapshot.event(event_id)
        if event is None:
            # still persisted; the event appears with this answer on the next reload
            self._logger.log("rsvp_for_unloaded_event", event_id=event_id)
            return
        for person in people:
            event.rsvp[person] = value

    # ------------------------------------------------------------------
    # Meals
    # ------------------------------------------------------------------
    def toggle_meal(self, day: str, slot: MealSlot | str, person: str) -> bool:
        """Flip the local signup value and persist the result; returns the new value."""

        meal_slot = MealSlot(slot)
        signups = self._meal_slot(day, meal_slot)
        value = not signups.get(person, False)
        signups[person] = value
        self._dispatch("toggle_meal", self._backend.upsert_meal, day, meal_slot.value, person, value)
        return value

    def set_meal_many(self, day: str, slot: MealSlot | str, people: Sequence[str], value: bool) -> None:
        meal_slot = MealSlot(slot)
        signups = self._meal_slot(day, meal_slot)
        people = list(people)
        if not people:
            return
        enabled = bool(value)
        for person in people:
            signups[person] = enabled
        rows = [MealRow(day=day, meal_type=meal_slot.value, person=person, enabled=enabled) for person in people]
        self._dispatch("set_meal_many", self._backend.upsert_meals, rows)

    def _meal_slot(self, day: str, slot: MealSlot | str) -> Dict[str, bool]:
        if not self._config.is_trip_day(day):
            raise ValueError(f"{day!r} is not a trip day.")
        meal_slot = MealSlot(slot)
        slots = self._snapshot.meals.setdefault(day, {})
        return slots.setdefault(meal_slot, {})

    # ------------------------------------------------------------------
    # Travel profiles
    # ------------------------------------------------------------------
    def update_profile(self, person: str, patch: Mapping[str, Mapping[str, Optional[str]]]) -> TravelProfile:
        """Merge ``patch`` into ``person``'s arrival/departure and persist the full row."""

        merged = self.profile(person).merged(patch)
        self._snapshot.profiles[person] = merged
        self._dispatch("update_profile", self._backend.upsert_profile, profile_to_row(person, merged))
        return merged

    # ------------------------------------------------------------------
    # Events (admin)
    # ------------------------------------------------------------------
    async def upsert_event(self, payload: Mapping[str, Any]) -> bool:
        """Create or replace an event, then reload everything.

        There is no optimistic patch here: ordering and identity of events are
        left to the backend.
        """

        row = event_row_from_payload(payload)
        if not self._config.is_trip_day(row.date):
            raise ValueError(f"{row.date!r} is not a trip day.")
        saved = await self._write_now("upsert_event", self._backend.upsert_event, row)
        await self.reload_all()
        return saved

    async def delete_event(self, event_id: str) -> bool:
        deleted = await self._write_now("delete_event", self._backend.delete_event, event_id)
        await self.reload_all()
        return deleted

    # ------------------------------------------------------------------
    # Write dispatch
    # ------------------------------------------------------------------
    def _dispatch(self, action: str, write: Callable[..., Any], *args: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no event loop (scripts, sync callers): write inline
            self._persist(action, write, *args)
            return
        previous = self._last_write
        if previous is not None and (previous.done() or previous.get_loop() is not loop):
            previous = None
        task = loop.create_task(self._persist_async(action, write, *args, after=previous))
        self._last_write = task
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    def _persist(self, action: str, write: Callable[..., Any], *args: Any) -> bool:
        try:
            write(*args)
        except Exception as exc:
            self._record_write_failure(action, exc)
            return False
        return True

    async def _persist_async(
        self,
        action: str,
        write: Callable[..., Any],
        *args: Any,
        after: Optional[asyncio.Task] = None,
    ) -> bool:
        if after is not None:
            # writes of one store reach the backend in the order they were issued
            await asyncio.wait([after])
        try:
            await asyncio.to_thread(write, *args)
        except Exception as exc:
            self._record_write_failure(action, exc)
            return False
        return True

    async def _write_now(self, action: str, write: Callable[..., Any], *args: Any) -> bool:
        try:
            result = await asyncio.to_thread(write, *args)
        except Exception as exc:
            self._record_write_failure(action, exc)
            return False
        return result is not False

    def _record_write_failure(self, action: str, exc: Exception) -> None:
        message = f"{action}: {_describe(exc)}"
        self.write_errors.append(message)
        if len(self.write_errors) > WRITE_ERRORS_KEEP:
            del self.write_errors[: len(self.write_errors) - WRITE_ERRORS_KEEP]
        self._logger.error("write_failed", action=action, error=_describe(exc))


__all__ = ["WRITE_ERRORS_KEEP", "TripDataStore"]
