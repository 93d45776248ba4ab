# code_architect/sessions.py
"""Server-side auth session records.

The cookie only carries a signed pointer (``sid``) into one of these stores,
so deleting the record is what makes logout stick.
"""
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class SessionRecord:
    sid: str
    user_id: int
    expires_at: datetime


class SessionStore(ABC):
    @abstractmethod
    def create(self, user_id: int) -> SessionRecord:
        ...

    @abstractmethod
    def get(self, sid: str) -> Optional[SessionRecord]:
        """Return the live record for ``sid`` or None when absent or expired."""

    @abstractmethod
    def delete(self, sid: str) -> None:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySessionStore(SessionStore):
    """Process-local store for single-instance deployments."""

    def __init__(self, ttl: timedelta = timedelta(hours=24), clock: Callable[[], datetime] = _now):
        self.ttl = ttl
        self._clock = clock
        self._records: Dict[str, SessionRecord] = {}
        self._lock = threading.Lock()

    def create(self, user_id: int) -> SessionRecord:
        record = SessionRecord(
            sid=secrets.token_urlsafe(32),
            user_id=user_id,
            expires_at=self._clock() + self.ttl,
        )
        with self._lock:
            self._purge_expired()
            self._records[record.sid] = record
        return record

    def get(self, sid: str) -> Optional[SessionRecord]:
        with self._lock:
            record = self._records.get(sid)
            if record is None:
                return None
            if record.expires_at <= self._clock():
                del self._records[sid]
                return None
            return record

    def delete(self, sid: str) -> None:
        with self._lock:
            self._records.pop(sid, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def _purge_expired(self) -> None:
        now = self._clock()
        for sid in [s for s, r in self._records.items() if r.expires_at <= now]:
            del self._records[sid]
