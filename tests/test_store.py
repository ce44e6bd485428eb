import asyncio
import copy

import pytest

from tripplanner.models import FlightLeg, MealSlot, RsvpStatus, StoreStatus
from tripplanner.ops import StructuredLogger
from tripplanner.persistence import EventRow
from tripplanner.store import WRITE_ERRORS_KEEP, TripDataStore

DAY = "2026-09-01"


def seed(backend) -> None:
    backend.upsert_event(
        EventRow(id="boat", title="Boat trip", date=DAY, start_time="10:00", capacity=2, price=50.0)
    )
    backend.upsert_event(EventRow(id="dinner", title="Dinner", date="2026-09-02", start_time="19:00"))
    backend.upsert_rsvp("boat", "Benno", "yes")
    backend.upsert_meal(DAY, "dinner", "Emil", True)
    backend.calls.clear()


def make_store(backend, trip_config, logger=None) -> TripDataStore:
    return TripDataStore(backend, trip_config, logger=logger or StructuredLogger())


def test_status_transitions_through_first_load(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)
    assert store.status is StoreStatus.UNINITIALIZED
    store.begin()
    assert store.status is StoreStatus.LOADING
    assert store.is_loading

    assert asyncio.run(store.reload_all()) is True
    assert store.status is StoreStatus.READY
    assert store.has_data
    assert not store.is_stale
    assert store.last_reloaded_at is not None


def test_reload_fetches_in_order_and_builds_snapshot(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)
    asyncio.run(store.reload_all())

    assert backend.calls == ["fetch_events", "fetch_rsvps", "fetch_meals", "fetch_profiles"]
    assert [event.id for event in store.events] == ["boat", "dinner"]
    boat = store.event("boat")
    assert boat.status_for("Benno") is RsvpStatus.YES
    assert boat.status_for("Lx") is RsvpStatus.PENDING
    assert store.meal_signup(DAY, MealSlot.DINNER, "Emil") is True
    assert store.meal_signup(DAY, "lunch", "Emil") is False
    assert store.profile("Chris").arrival is None


def test_reload_is_idempotent(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)
    asyncio.run(store.reload_all())
    first = store.snapshot
    asyncio.run(store.reload_all())
    assert store.snapshot == first
    assert store.snapshot is not first


def test_failed_reload_keeps_previous_snapshot(backend, trip_config) -> None:
    seed(backend)
    logger = StructuredLogger()
    store = make_store(backend, trip_config, logger)
    asyncio.run(store.reload_all())
    before = store.snapshot

    backend.upsert_event(EventRow(id="museum", title="Museum", date=DAY))
    backend.fail.add("fetch_meals")
    assert asyncio.run(store.reload_all()) is False

    assert store.snapshot is before
    assert store.event("museum") is None
    assert store.status is StoreStatus.READY
    assert store.is_stale
    assert "fetch_meals unavailable" in store.load_error
    assert logger.entries("reload_failed")

    backend.fail.clear()
    assert asyncio.run(store.reload_all()) is True
    assert store.event("museum") is not None
    assert not store.is_stale


def test_first_load_failure_leaves_empty_store(backend, trip_config) -> None:
    backend.fail.add("fetch_events")
    store = make_store(backend, trip_config)
    store.begin()
    assert asyncio.run(store.reload_all()) is False
    assert store.status is StoreStatus.READY
    assert not store.has_data
    assert store.events == ()
    assert store.load_error == "fetch_events unavailable"


def test_reset_discards_reload_in_flight(backend, trip_config) -> None:
    seed(backend)
    logger = StructuredLogger()
    store = make_store(backend, trip_config, logger)
    backend.block_events = True

    async def scenario() -> bool:
        task = asyncio.create_task(store.reload_all())
        await asyncio.to_thread(backend.events_started.wait, 5)
        store.reset()
        backend.hold_events.set()
        return await task

    assert asyncio.run(scenario()) is False
    assert store.status is StoreStatus.UNINITIALIZED
    assert not store.has_data
    assert store.events == ()
    assert logger.entries("reload_discarded")


def test_overlapping_reloads_last_to_finish_wins(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)
    backend.block_events = True

    async def scenario() -> None:
        slow = asyncio.create_task(store.reload_all())
        await asyncio.to_thread(backend.events_started.wait, 5)
        backend.upsert_event(EventRow(id="museum", title="Museum", date=DAY))

        assert await store.reload_all() is True
        assert store.event("museum") is not None
        assert store.is_loading

        backend.hold_events.set()
        assert await slow is True

    asyncio.run(scenario())
    # the slow reload read the events before the museum existed
    assert store.event("museum") is None
    assert [event.id for event in store.events] == ["boat", "dinner"]
    assert store.status is StoreStatus.READY


def test_set_rsvp_updates_mirror_and_persists(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)
    asyncio.run(store.reload_all())

    store.set_rsvp("boat", "Lx", "no")
    store.set_rsvp("boat", "Lx", RsvpStatus.NO)

    assert store.event("boat").status_for("Lx") is RsvpStatus.NO
    rows = {row.person: row.status for row in backend.fetch_rsvps(["boat"])}
    assert rows == {"Benno": "yes", "Lx": "no"}


def test_set_rsvp_rejects_pending(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    with pytest.raises(ValueError):
        store.set_rsvp("boat", "Lx", "pending")
    with pytest.raises(ValueError):
        store.set_rsvp("boat", "Lx", "maybe")
    assert "upsert_rsvp" not in backend.calls


def test_set_rsvp_many_uses_one_write(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)
    asyncio.run(store.reload_all())
    backend.calls.clear()

    store.set_rsvp_many("boat", ["Benno", "Emil", "Karli"], "yes")

    assert backend.calls == ["upsert_rsvps"]
    assert store.event("boat").yes_people() == ["Benno", "Emil", "Karli"]
    # capacity 2 is not enforced
    assert len(backend.fetch_rsvps(["boat"])) == 3

    backend.calls.clear()
    store.set_rsvp_many("boat", [], "no")
    assert backend.calls == []


def test_rsvp_for_unloaded_event_is_still_written(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    store.set_rsvp("later", "Marco", "yes")
    assert [row.person for row in backend.fetch_rsvps(["later"])] == ["Marco"]


def test_toggle_meal_flips_and_persists(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)
    asyncio.run(store.reload_all())

    assert store.toggle_meal(DAY, "breakfast", "Marco") is True
    assert store.toggle_meal(DAY, "breakfast", "Marco") is False
    assert store.toggle_meal(DAY, MealSlot.DINNER, "Emil") is False

    rows = {(row.meal_type, row.person): row.enabled for row in backend.fetch_meals([DAY])}
    assert rows == {("breakfast", "Marco"): False, ("dinner", "Emil"): False}


def test_meals_reject_unknown_day_and_slot(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    with pytest.raises(ValueError):
        store.toggle_meal("2030-01-01", "lunch", "Marco")
    with pytest.raises(ValueError):
        store.toggle_meal(DAY, "brunch", "Marco")
    with pytest.raises(ValueError):
        store.set_meal_many("2030-01-01", "lunch", ["Marco"], True)
    assert backend.calls == []


def test_set_meal_many_sets_everyone(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    store.set_meal_many(DAY, "lunch", ["Benno", "Emil", "Karli"], True)

    assert backend.calls == ["upsert_meals"]
    assert all(store.meal_signup(DAY, "lunch", person) for person in ("Benno", "Emil", "Karli"))
    assert not store.meal_signup(DAY, "lunch", "Lx")
    assert len(backend.fetch_meals([DAY])) == 3


def test_set_meal_many_twice_matches_once(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    people = ["Benno", "Emil"]

    store.set_meal_many(DAY, "lunch", people, True)
    mirror_once = copy.deepcopy(store.meals)
    rows_once = sorted((row.day, row.meal_type, row.person, row.enabled) for row in backend.fetch_meals([DAY]))

    store.set_meal_many(DAY, "lunch", people, True)
    assert store.meals == mirror_once
    rows_twice = sorted((row.day, row.meal_type, row.person, row.enabled) for row in backend.fetch_meals([DAY]))
    assert rows_twice == rows_once
    assert len(rows_twice) == 2


def test_update_profile_merges_one_level(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    store.update_profile("Chris", {"arrival": {"date": "2026-08-31", "flight": "LH 123"}})
    merged = store.update_profile("Chris", {"arrival": {"time": "10:15"}, "departure": {"date": "2026-09-06"}})

    assert merged.arrival == FlightLeg(date="2026-08-31", time="10:15", flight="LH 123")
    assert merged.departure == FlightLeg(date="2026-09-06")
    rows = backend.fetch_profiles(["Chris"])
    assert rows[0].arrival_flight == "LH 123"
    assert rows[0].departure_date == "2026-09-06"
    assert rows[0].departure_flight is None

    with pytest.raises(ValueError):
        store.update_profile("Chris", {"stopover": {"date": "x"}})
    with pytest.raises(ValueError):
        store.update_profile("Chris", {"arrival": {"gate": "B12"}})


def test_failed_write_is_not_rolled_back(backend, trip_config) -> None:
    seed(backend)
    logger = StructuredLogger()
    store = make_store(backend, trip_config, logger)
    asyncio.run(store.reload_all())
    backend.fail.add("upsert_rsvp")

    store.set_rsvp("boat", "Lx", "yes")

    assert store.event("boat").status_for("Lx") is RsvpStatus.YES
    assert store.write_errors == ["set_rsvp: upsert_rsvp unavailable"]
    assert logger.entries("write_failed")[0]["action"] == "set_rsvp"

    asyncio.run(store.reload_all())
    assert store.event("boat").status_for("Lx") is RsvpStatus.PENDING


def test_writes_on_event_loop_run_in_background(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)

    async def scenario() -> None:
        await store.reload_all()
        store.set_rsvp("boat", "Lx", "yes")
        store.toggle_meal(DAY, "lunch", "Lx")
        assert store.pending_writes == 2
        assert store.event("boat").status_for("Lx") is RsvpStatus.YES
        await store.drain()
        assert store.pending_writes == 0

    asyncio.run(scenario())
    assert {row.person for row in backend.fetch_rsvps(["boat"])} == {"Benno", "Lx"}
    assert backend.fetch_meals([DAY])


def test_background_write_failure_is_recorded(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    backend.fail.add("upsert_meals")

    async def scenario() -> None:
        store.set_meal_many(DAY, "dinner", ["Marco"], True)
        await store.drain()

    asyncio.run(scenario())
    assert store.meal_signup(DAY, "dinner", "Marco") is True
    assert store.write_errors == ["set_meal_many: upsert_meals unavailable"]


def test_upsert_event_writes_then_reloads(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    payload = {"id": "evt_1", "title": "Hike", "date": DAY, "start_time": "08:00", "capacity": 10, "price": 5.0}

    assert asyncio.run(store.upsert_event(payload)) is True
    hike = store.event("evt_1")
    assert hike.title == "Hike"
    assert hike.capacity == 10
    assert hike.status_for("Marco") is RsvpStatus.PENDING

    payload["title"] = "Long hike"
    asyncio.run(store.upsert_event(payload))
    assert [event.title for event in store.events] == ["Long hike"]


def test_upsert_event_rejects_other_days(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    with pytest.raises(ValueError):
        asyncio.run(store.upsert_event({"id": "evt_1", "title": "Hike", "date": "2030-01-01"}))
    assert backend.fetch_events() == []


def test_upsert_event_failure_still_reloads(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)
    backend.fail.add("upsert_event")

    assert asyncio.run(store.upsert_event({"id": "evt_1", "title": "Hike", "date": DAY})) is False
    assert store.write_errors == ["upsert_event: upsert_event unavailable"]
    assert store.has_data
    assert store.event("evt_1") is None


def test_delete_event_removes_and_reloads(backend, trip_config) -> None:
    seed(backend)
    store = make_store(backend, trip_config)
    asyncio.run(store.reload_all())

    assert asyncio.run(store.delete_event("boat")) is True
    assert store.event("boat") is None
    assert asyncio.run(store.delete_event("boat")) is False


def test_write_errors_keep_only_the_latest(backend, trip_config) -> None:
    store = make_store(backend, trip_config)
    backend.fail.add("upsert_rsvp")

    for index in range(WRITE_ERRORS_KEEP + 5):
        store.set_rsvp(f"evt_{index}", "Lx", "yes")

    assert len(store.write_errors) == WRITE_ERRORS_KEEP
    assert store.write_errors[-1] == "set_rsvp: upsert_rsvp unavailable"
    assert backend.calls.count("upsert_rsvp") == WRITE_ERRORS_KEEP + 5
