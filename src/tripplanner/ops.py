"""Operational utilities for the trip planner."""

from __future__ import annotations

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional


class StructuredLogger:
    """Write JSON lines log entries and keep a short in-memory tail."""

    def __init__(self, *, path: Path | None = None, keep: int = 500) -> None:
        self.path = path
        self._keep = keep
        self._entries: list[dict] = []
        self._lock = threading.Lock()

    def log(self, event_type: str, *, level: str = "info", **fields: object) -> dict:
        entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": level,
            "event": event_type,
            **fields,
        }
        with self._lock:
            self._entries.append(entry)
            if len(self._entries) > self._keep:
                del self._entries[: len(self._entries) - self._keep]
            if self.path:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write(json.dumps(entry, default=str) + "\n")
        return entry

    def error(self, event_type: str, **fields: object) -> dict:
        return self.log(event_type, level="error", **fields)

    def tail(self, limit: int = 50) -> tuple[dict, ...]:
        with self._lock:
            return tuple(self._entries[-limit:])

    def entries(self, event_type: Optional[str] = None) -> tuple[dict, ...]:
        with self._lock:
            if event_type is None:
                return tuple(self._entries)
            return tuple(entry for entry in self._entries if entry["event"] == event_type)


__all__ = ["StructuredLogger"]
