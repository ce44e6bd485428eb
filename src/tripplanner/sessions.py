"""Login sessions: who is logged in, who they act for, and the admin gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from .admin import AuditLog, pin_matches
from .backend import TripBackend
from .config import TripConfig
from .exceptions import AdminLockedError, NotManagedError, SessionNotFoundError, UnknownPersonError
from .family import FamilyResolver
from .ops import StructuredLogger
from .polling import ReloadPoller
from .store import TripDataStore

DEFAULT_IDLE_TIMEOUT = timedelta(minutes=30)


@dataclass(slots=True)
class TripSession:
    """One logged-in user with their own data mirror and reload timer."""

    id: str
    user: str
    store: TripDataStore
    poller: ReloadPoller
    managed: List[str]
    acting_person: str
    admin_unlocked: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_seen: datetime = field(default_factory=datetime.utcnow)

    @property
    def kids(self) -> List[str]:
        return [person for person in self.managed if person != self.user]

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_seen = now or datetime.utcnow()

    def idle_for(self, now: Optional[datetime] = None) -> timedelta:
        return (now or datetime.utcnow()) - self.last_seen


class SessionRegistry:
    """Create and track trip sessions by id."""

    def __init__(
        self,
        backend: TripBackend,
        config: TripConfig,
        *,
        resolver: Optional[FamilyResolver] = None,
        logger: Optional[StructuredLogger] = None,
        audit: Optional[AuditLog] = None,
        idle_timeout: timedelta = DEFAULT_IDLE_TIMEOUT,
    ) -> None:
        if idle_timeout <= timedelta(0):
            raise ValueError("idle_timeout must be greater than zero.")
        self._backend = backend
        self._config = config
        self._resolver = resolver or FamilyResolver.from_config(config)
        self._logger = logger or StructuredLogger()
        self._audit = audit or AuditLog()
        self._idle_timeout = idle_timeout
        self._sessions: Dict[str, TripSession] = {}

    @property
    def resolver(self) -> FamilyResolver:
        return self._resolver

    @property
    def config(self) -> TripConfig:
        return self._config

    @property
    def audit(self) -> AuditLog:
        return self._audit

    @property
    def idle_timeout(self) -> timedelta:
        return self._idle_timeout

    # ------------------------------------------------------------------
    # Session handling helpers
    # ------------------------------------------------------------------
    async def login(self, name: str) -> TripSession:
        """Start a session for ``name`` and arm its reload timer.

        Must be awaited on the event loop that will own the session, because
        the poller and background writes are scheduled there.
        """

        user = (name or "").strip()
        if not self._config.is_participant(user):
            raise UnknownPersonError(f"{user or name!r} is not on the participant list.")
        store = TripDataStore(self._backend, self._config, logger=self._logger)
        store.begin()
        session_id = str(uuid4())
        poller = ReloadPoller(
            lambda: self._poll(session_id),
            interval=self._config.poll_interval,
            logger=self._logger,
            name=f"poller-{session_id[:8]}",
        )
        managed = self._resolver.managed_people(user)
        session = TripSession(
            id=session_id,
            user=user,
            store=store,
            poller=poller,
            managed=managed,
            acting_person=managed[0],
        )
        self._sessions[session_id] = session
        poller.arm()
        self._logger.log("login", user=user, session=session_id)
        return session

    def logout(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.poller.disarm()
        session.store.reset()
        self._logger.log("logout", user=session.user, session=session_id)

    def get(self, session_id: str) -> TripSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Unknown session id '{session_id}'.")
        return session

    def find(self, session_id: Optional[str]) -> Optional[TripSession]:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def active_sessions(self, user: Optional[str] = None) -> Iterable[TripSession]:
        if user is None:
            return tuple(self._sessions.values())
        return tuple(session for session in self._sessions.values() if session.user == user)

    def expire_idle(self, now: Optional[datetime] = None) -> List[str]:
        """Log out every session without a request for longer than the idle timeout."""

        expired = [
            session.id for session in self._sessions.values() if session.idle_for(now) > self._idle_timeout
        ]
        for session_id in expired:
            self._logger.log("session_expired", session=session_id)
            self.logout(session_id)
        return expired

    async def _poll(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        if session.idle_for() > self._idle_timeout:
            # browser is gone: stop polling for it
            self._logger.log("session_expired", session=session_id)
            self.logout(session_id)
            return False
        return await session.store.reload_all()

    async def shutdown(self) -> None:
        """Log everybody out and wait for their outstanding writes."""

        sessions = list(self._sessions.values())
        for session in sessions:
            self.logout(session.id)
        for session in sessions:
            await session.store.drain()

    # ------------------------------------------------------------------
    # Acting person
    # ------------------------------------------------------------------
    def act_as(self, session_id: str, person: str) -> str:
        session = self.get(session_id)
        if person not in session.managed:
            raise NotManagedError(f"{session.user} cannot act for {person!r}.")
        session.acting_person = person
        return person

    # ------------------------------------------------------------------
    # Admin gate
    # ------------------------------------------------------------------
    def is_admin_user(self, session_id: str) -> bool:
        return self.get(session_id).user == self._config.admin_name

    def unlock_admin(self, session_id: str, pin: str) -> bool:
        session = self.get(session_id)
        if session.user != self._config.admin_name:
            raise AdminLockedError(f"Admin mode is only available to {self._config.admin_name}.")
        if not pin_matches(pin, self._config.admin_pin):
            self._logger.log("admin_unlock_rejected", user=session.user)
            return False
        session.admin_unlocked = True
        self._audit.record(session.user, "admin_unlock", session.id)
        return True

    def lock_admin(self, session_id: str) -> None:
        self.get(session_id).admin_unlocked = False

    def require_admin(self, session_id: str) -> TripSession:
        session = self.get(session_id)
        if not session.admin_unlocked:
            raise AdminLockedError("Unlock admin mode first.")
        return session


__all__ = ["SessionRegistry", "TripSession"]
