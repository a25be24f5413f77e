"""Server-side session storage keyed by opaque bearer tokens."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional
import threading

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlmodel import Session

from cyberchat.models.session import SessionRecord


class SessionStore(ABC):
    """Token -> session record. Only the Session Authenticator writes here."""

    @abstractmethod
    def add(self, record: SessionRecord) -> None:
        ...

    @abstractmethod
    def get(self, token: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    def delete(self, token: str) -> None:
        """Remove `token`; unknown tokens are ignored."""

    @abstractmethod
    def delete_expired(self, now: datetime) -> int:
        """Purge sessions whose expiry is at or before `now`; returns the count."""


class MemorySessionStore(SessionStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, SessionRecord] = {}

    def add(self, record: SessionRecord) -> None:
        with self._lock:
            self._records[record.token] = record

    def get(self, token: str) -> Optional[SessionRecord]:
        with self._lock:
            return self._records.get(token)

    def delete(self, token: str) -> None:
        with self._lock:
            self._records.pop(token, None)

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [token for token, record in self._records.items() if record.expires_at <= now]
            for token in expired:
                del self._records[token]
            return len(expired)


class SqlSessionStore(SessionStore):
    def __init__(self, engine: Engine):
        self.engine = engine

    def add(self, record: SessionRecord) -> None:
        with Session(self.engine) as session:
            session.add(record)
            session.commit()
            session.refresh(record)

    def get(self, token: str) -> Optional[SessionRecord]:
        with Session(self.engine) as session:
            return session.get(SessionRecord, token)

    def delete(self, token: str) -> None:
        with Session(self.engine) as session:
            session.connection().execute(delete(SessionRecord).where(SessionRecord.token == token))
            session.commit()

    def delete_expired(self, now: datetime) -> int:
        with Session(self.engine) as session:
            result = session.connection().execute(
                delete(SessionRecord).where(SessionRecord.expires_at <= now)
            )
            session.commit()
            return result.rowcount
