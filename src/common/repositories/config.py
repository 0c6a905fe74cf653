"""
Session Store Configuration and Factory

Provides factory function to get the appropriate session store implementation
based on environment configuration.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from src.common.config import Config

from .base import SessionStoreInterface

logger = logging.getLogger(__name__)


class StoreBackend(str, Enum):
    """Available session store backends."""
    MEMORY = "memory"
    FILE = "file"
    MONGO = "mongo"


@dataclass
class SessionStoreConfig:
    """
    Configuration for session store initialization.

    Loaded from Config (environment variables) with sensible defaults.
    """
    backend: StoreBackend = StoreBackend.FILE
    path: str = "./data/sessions.json"
    mongodb_uri: Optional[str] = None
    database: str = "candidate_intake"
    collection: str = "sessions"

    @classmethod
    def from_env(cls) -> "SessionStoreConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - SESSION_STORE: memory/file/mongo (default: file)
        - SESSION_STORE_PATH: JSON snapshot path for the file backend
        - MONGODB_URI: connection string for the mongo backend
        - SESSION_DATABASE / SESSION_COLLECTION: mongo names

        Returns:
            SessionStoreConfig instance

        Raises:
            ValueError: If the mongo backend is selected without MONGODB_URI
        """
        try:
            backend = StoreBackend(Config.SESSION_STORE)
        except ValueError:
            logger.warning(f"Invalid SESSION_STORE '{Config.SESSION_STORE}', defaulting to file")
            backend = StoreBackend.FILE

        if backend == StoreBackend.MONGO and not Config.MONGODB_URI:
            raise ValueError("MONGODB_URI environment variable is required for SESSION_STORE=mongo")

        return cls(
            backend=backend,
            path=Config.SESSION_STORE_PATH,
            mongodb_uri=Config.MONGODB_URI or None,
            database=Config.SESSION_DATABASE,
            collection=Config.SESSION_COLLECTION,
        )


def create_session_store(config: SessionStoreConfig) -> SessionStoreInterface:
    """Build a store for an explicit configuration."""
    if config.backend == StoreBackend.MONGO:
        from .mongo_store import MongoSessionStore
        return MongoSessionStore(
            mongodb_uri=config.mongodb_uri,
            database=config.database,
            collection=config.collection,
        )
    if config.backend == StoreBackend.FILE:
        from .file_store import JsonFileSessionStore
        return JsonFileSessionStore(config.path)

    from .memory_store import InMemorySessionStore
    return InMemorySessionStore()


# Singleton store instance
_store_instance: Optional[SessionStoreInterface] = None


def get_session_store() -> SessionStoreInterface:
    """
    Get the session store instance.

    Factory function that returns the implementation selected by SESSION_STORE.
    Uses singleton pattern so the file snapshot is loaded once per process.

    Returns:
        SessionStoreInterface implementation

    Raises:
        ValueError: If the selected backend is misconfigured
    """
    global _store_instance

    if _store_instance is None:
        config = SessionStoreConfig.from_env()
        _store_instance = create_session_store(config)
        logger.info(f"Initialized {config.backend.value} session store")

    return _store_instance


def reset_session_store() -> None:
    """
    Reset the store singleton.

    Used for testing or when configuration changes.
    """
    global _store_instance

    if _store_instance is not None:
        from .mongo_store import MongoSessionStore
        if isinstance(_store_instance, MongoSessionStore):
            _store_instance.close()

    _store_instance = None
    logger.info("Session store singleton reset")
