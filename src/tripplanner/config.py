"""Trip roster, calendar and guardian table.

The values below are the defaults for the trip; a JSON file with the same
keys can override any of them.  Everything is frozen into a
:class:`TripConfig` once at startup and treated as read-only afterwards.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

DEFAULT_TRIP_DAYS: Tuple[str, ...] = (
    "2026-09-01",
    "2026-09-02",
    "2026-09-03",
    "2026-09-04",
    "2026-09-05",
    "2026-09-06",
)

DEFAULT_PARTICIPANTS: Tuple[str, ...] = (
    "Marco",
    "Lx",
    "Benno",
    "Carina",
    "Chris",
    "Claudia",
    "Gianna",
    "Giulia",
    "Bassi",
    "Henry",
    "Bini",
    "Mama",
    "Papa",
    "Maxi",
    "Ricarda",
    "Roberta",
    "Emil",
    "Karli",
    "Flynn",
    "Georg",
    "Valentin",
    "Carlotta",
)

# child -> guardians, in the order the children are listed on the trip
DEFAULT_GUARDIANS: Dict[str, Tuple[str, ...]] = {
    "Emil": ("Benno", "Lx"),
    "Karli": ("Benno", "Lx"),
    "Flynn": ("Chris", "Carina"),
    "Georg": ("Claudia", "Maxi"),
    "Valentin": ("Claudia", "Maxi"),
    "Carlotta": ("Claudia", "Maxi"),
}

DEFAULT_ADMIN_NAME = "Marco"
DEFAULT_ADMIN_PIN = "4040"
DEFAULT_POLL_INTERVAL_SECONDS = 15.0


def freeze_guardians(guardians: Mapping[str, Sequence[str]]) -> Mapping[str, Tuple[str, ...]]:
    """Return a read-only copy of ``guardians`` keeping the declared child order."""

    frozen: Dict[str, Tuple[str, ...]] = {}
    for child, names in guardians.items():
        if isinstance(names, str):
            raise TypeError(f"Guardians of {child!r} must be a list of names, not a string.")
        frozen[str(child)] = tuple(str(name) for name in names)
    return MappingProxyType(frozen)


@dataclass(frozen=True, slots=True)
class TripConfig:
    """Immutable trip configuration shared by every session."""

    days: Tuple[str, ...] = DEFAULT_TRIP_DAYS
    participants: Tuple[str, ...] = DEFAULT_PARTICIPANTS
    guardians: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: freeze_guardians(DEFAULT_GUARDIANS)
    )
    admin_name: str = DEFAULT_ADMIN_NAME
    admin_pin: str = DEFAULT_ADMIN_PIN
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS

    @classmethod
    def build(
        cls,
        *,
        days: Optional[Iterable[str]] = None,
        participants: Optional[Iterable[str]] = None,
        guardians: Optional[Mapping[str, Sequence[str]]] = None,
        admin_name: Optional[str] = None,
        admin_pin: Optional[str] = None,
        poll_interval: Optional[float] = None,
    ) -> "TripConfig":
        interval = DEFAULT_POLL_INTERVAL_SECONDS if poll_interval is None else float(poll_interval)
        if interval <= 0:
            raise ValueError("poll_interval must be greater than zero.")
        return cls(
            days=tuple(days) if days is not None else DEFAULT_TRIP_DAYS,
            participants=tuple(participants) if participants is not None else DEFAULT_PARTICIPANTS,
            guardians=freeze_guardians(guardians if guardians is not None else DEFAULT_GUARDIANS),
            admin_name=admin_name if admin_name is not None else DEFAULT_ADMIN_NAME,
            admin_pin=admin_pin if admin_pin is not None else DEFAULT_ADMIN_PIN,
            poll_interval=interval,
        )

    def is_participant(self, name: str) -> bool:
        return name in self.participants

    def is_trip_day(self, day: str) -> bool:
        return day in self.days


_CONFIG_KEYS = {
    "days": "days",
    "participants": "participants",
    "guardians": "guardians",
    "admin_name": "admin_name",
    "admin_pin": "admin_pin",
    "poll_interval_seconds": "poll_interval",
}


def load_trip_config(path: Optional[str | Path] = None, **overrides: Any) -> TripConfig:
    """Build the trip configuration from an optional JSON file plus ``overrides``.

    Unknown keys in the file are rejected so typos do not silently fall back to
    the defaults.
    """

    options: Dict[str, Any] = {}
    if path:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"Trip config {path} must contain a JSON object.")
        unknown = set(raw) - set(_CONFIG_KEYS)
        if unknown:
            raise ValueError(f"Unknown trip config keys: {', '.join(sorted(unknown))}")
        options.update({_CONFIG_KEYS[key]: value for key, value in raw.items()})
    options.update({key: value for key, value in overrides.items() if value is not None})
    return TripConfig.build(**options)


__all__ = [
    "DEFAULT_ADMIN_NAME",
    "DEFAULT_ADMIN_PIN",
    "DEFAULT_GUARDIANS",
    "DEFAULT_PARTICIPANTS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "DEFAULT_TRIP_DAYS",
    "TripConfig",
    "freeze_guardians",
    "load_trip_config",
]
