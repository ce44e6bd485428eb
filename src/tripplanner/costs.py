"""Cost and attendance figures derived from the current trip snapshot."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from .models import RsvpStatus, TripEvent


def event_price(event: TripEvent) -> float:
    """Return the chargeable price of ``event``; missing or odd prices count as zero."""

    price = event.price
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        return 0.0
    if not math.isfinite(price) or price <= 0:
        return 0.0
    return float(price)


def expected_cost(events: Iterable[TripEvent], people: Sequence[str]) -> float:
    """Sum price times confirmed attendees from ``people`` over all priced events."""

    if not people:
        return 0.0
    total = 0.0
    for event in events:
        price = event_price(event)
        if price <= 0:
            continue
        confirmed = sum(1 for person in people if event.status_for(person) is RsvpStatus.YES)
        total += price * confirmed
    return total


@dataclass(slots=True)
class RsvpBreakdown:
    yes: List[str] = field(default_factory=list)
    no: List[str] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)


def rsvp_breakdown(event: TripEvent, participants: Iterable[str]) -> RsvpBreakdown:
    """Split the roster by RSVP status, keeping roster order."""

    breakdown = RsvpBreakdown()
    for person in participants:
        status = event.status_for(person)
        if status is RsvpStatus.YES:
            breakdown.yes.append(person)
        elif status is RsvpStatus.NO:
            breakdown.no.append(person)
        else:
            breakdown.pending.append(person)
    return breakdown


def is_full(event: TripEvent) -> bool:
    """Capacity is only shown, never enforced: writers may push past it."""

    if event.capacity is None:
        return False
    return len(event.yes_people()) >= event.capacity


__all__ = ["RsvpBreakdown", "event_price", "expected_cost", "is_full", "rsvp_breakdown"]
