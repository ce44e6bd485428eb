"""Fixed-interval reload timer for a logged-in session."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from .ops import StructuredLogger


class ReloadPoller:
    """Reload immediately, then every ``interval`` seconds while armed.

    Arming always starts a fresh timer; a previous one is cancelled first so
    nothing carries over between logins.  Disarming cancels the timer but not
    a reload that is already running.
    """

    def __init__(
        self,
        reload: Callable[[], Awaitable[Any]],
        *,
        interval: float,
        logger: Optional[StructuredLogger] = None,
        name: str = "trip-poller",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be greater than zero.")
        self._reload = reload
        self._interval = interval
        self._logger = logger or StructuredLogger()
        self._name = name
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self) -> None:
        """Start polling on the running event loop."""

        self.disarm()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=self._name)
        self._logger.log("poller_armed", poller=self._name, interval=self._interval)

    def disarm(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            self._logger.log("poller_disarmed", poller=self._name)

    async def _run(self) -> None:
        while True:
            self.ticks += 1
            try:
                # shielded: cancelling the timer must not abort a reload in flight
                await asyncio.shield(self._reload())
            except Exception as exc:
                self._logger.error("poll_failed", poller=self._name, error=str(exc))
            await asyncio.sleep(self._interval)


__all__ = ["ReloadPoller"]
