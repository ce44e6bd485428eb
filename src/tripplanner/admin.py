"""Admin mode helpers: the PIN gate and a short history of admin actions."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, Optional


@dataclass(slots=True)
class AdminAction:
    """One admin action such as unlocking or saving an event."""

    actor: str
    action: str
    target: str
    at: datetime = field(default_factory=datetime.utcnow)
    details: Dict[str, Any] = field(default_factory=dict)


class AuditLog:
    """Keep the most recent admin actions, newest last.

    The calendar uses :meth:`last_for` to show who last touched an event.
    """

    def __init__(self, *, keep: int = 200) -> None:
        self._actions: Deque[AdminAction] = deque(maxlen=keep)

    def __len__(self) -> int:
        return len(self._actions)

    def record(self, actor: str, action: str, target: str, **details: Any) -> AdminAction:
        entry = AdminAction(actor=actor, action=action, target=target, details=details)
        self._actions.append(entry)
        return entry

    def latest(self) -> Optional[AdminAction]:
        return self._actions[-1] if self._actions else None

    def last_for(self, target: str) -> Optional[AdminAction]:
        for entry in reversed(self._actions):
            if entry.target == target:
                return entry
        return None


def pin_matches(candidate: str, expected: str) -> bool:
    """Plain comparison: the admin PIN is a convenience gate, not a credential."""

    return (candidate or "").strip() == expected


__all__ = ["AdminAction", "AuditLog", "pin_matches"]
