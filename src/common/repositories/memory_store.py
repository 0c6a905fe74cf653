"""
In-Memory Session Store

Process-local implementation backed by a dict of serialized sessions.
Used by tests and as the base of the JSON file store.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from src.common.schemas import Session

from .base import SessionStoreInterface, SweepResult, decode_session, is_session_expired

logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStoreInterface):
    """
    Dict-backed session store.

    Sessions are stored as JSON-compatible documents so every load()
    returns a fresh copy and callers never share mutable state.
    """

    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def load(self, identity: str) -> Optional[Session]:
        with self._lock:
            document = self._documents.get(identity)
        if document is None:
            return None
        return Session.from_document(document)

    def save(self, session: Session) -> None:
        document = session.to_document()
        with self._lock:
            self._documents[session.identity] = document
            self._persist()

    def delete(self, identity: str) -> bool:
        with self._lock:
            removed = self._documents.pop(identity, None) is not None
            if removed:
                self._persist()
        return removed

    def list_identities(self) -> List[str]:
        with self._lock:
            return list(self._documents.keys())

    def sweep_expired(self, max_age: timedelta, now: Optional[datetime] = None) -> SweepResult:
        now = now or datetime.utcnow()
        with self._lock:
            result = SweepResult(scanned_count=len(self._documents))
            for identity, document in list(self._documents.items()):
                session = decode_session(identity, document)
                if session is None:
                    result.invalid_identities.append(identity)
                if session is None or is_session_expired(session, max_age, now):
                    del self._documents[identity]
                    result.removed_identities.append(identity)
            if result.removed_identities:
                self._persist()

        if result.removed_identities:
            logger.info(f"Swept {result.removed_count}/{result.scanned_count} expired sessions")
        return result

    def _persist(self) -> None:
        """Hook for subclasses that mirror the dict to durable storage."""
