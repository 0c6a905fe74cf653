"""
Session Store Interface Definitions

Defines the abstract interface for session persistence.
This enables swapping implementations (in-memory, JSON file snapshot, MongoDB)
without changing orchestration code.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from src.common.logger import mask_identity
from src.common.schemas import Session

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """
    Result of an expiry sweep.

    Attributes:
        scanned_count: Number of sessions inspected
        removed_identities: Identities whose session was deleted
        invalid_identities: Removed identities whose document no longer validated
    """
    scanned_count: int
    removed_identities: List[str] = field(default_factory=list)
    invalid_identities: List[str] = field(default_factory=list)

    @property
    def removed_count(self) -> int:
        return len(self.removed_identities)


def is_session_expired(session: Session, max_age: timedelta, now: datetime) -> bool:
    """
    Decide whether a session is past retention.

    A session expires when its last activity is older than max_age, or when
    its data retention date has passed.
    """
    if now - session.last_update > max_age:
        return True
    if session.data_retention_date is not None and session.data_retention_date < now.date():
        return True
    return False


def decode_session(identity: str, document: Dict[str, Any]) -> Optional[Session]:
    """
    Decode a stored document during a sweep.

    Returns None for a document that no longer validates, so one bad record
    cannot stop the sweep from enforcing retention on the others.
    """
    try:
        return Session.from_document(document)
    except ValidationError as e:
        logger.warning(
            f"Unreadable session {mask_identity(identity)} ({e.error_count()} validation errors), removing it"
        )
        return None


class SessionStoreInterface(ABC):
    """
    Abstract interface for the keyed session store.

    Implementations:
    - InMemorySessionStore: process-local dict (tests, single worker)
    - JsonFileSessionStore: dict with a JSON snapshot written after each save
    - MongoSessionStore: MongoDB collection keyed by identity

    Sessions are returned as independent copies; callers must save() to persist changes.
    """

    @abstractmethod
    def load(self, identity: str) -> Optional[Session]:
        """
        Load the session for an identity.

        Args:
            identity: Channel identity key

        Returns:
            Session if stored, None otherwise
        """
        pass

    @abstractmethod
    def save(self, session: Session) -> None:
        """
        Insert or replace a session.

        Args:
            session: Session to persist (keyed by session.identity)

        Raises:
            Exception: If the underlying storage write fails
        """
        pass

    @abstractmethod
    def delete(self, identity: str) -> bool:
        """
        Delete the session for an identity.

        Args:
            identity: Channel identity key

        Returns:
            True if a session was removed
        """
        pass

    @abstractmethod
    def list_identities(self) -> List[str]:
        """
        List all stored identities.

        Returns:
            Identity keys in storage order
        """
        pass

    @abstractmethod
    def sweep_expired(self, max_age: timedelta, now: Optional[datetime] = None) -> SweepResult:
        """
        Remove every session past retention (see is_session_expired).

        Args:
            max_age: Maximum allowed age of last activity
            now: Reference time (defaults to utcnow)

        Returns:
            SweepResult with the removed identities
        """
        pass
