"""
MongoDB Session Store

Networked implementation: one document per identity in a MongoDB collection,
keyed by _id = identity.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from pymongo import MongoClient
from pymongo.collection import Collection

from src.common.schemas import Session

from .base import SessionStoreInterface, SweepResult, decode_session, is_session_expired

logger = logging.getLogger(__name__)


class MongoSessionStore(SessionStoreInterface):
    """
    MongoDB-backed session store.

    Connection Management:
    - MongoClient is created lazily on first use and reused
    - PyMongo handles connection pooling internally

    Error Handling:
    - Fail-fast: all errors propagate to caller
    """

    def __init__(
        self,
        mongodb_uri: str,
        database: str = "candidate_intake",
        collection: str = "sessions",
    ):
        """
        Initialize with connection parameters.

        Args:
            mongodb_uri: MongoDB connection string
            database: Database name
            collection: Collection name
        """
        self._mongodb_uri = mongodb_uri
        self._database_name = database
        self._collection_name = collection
        self._client: Optional[MongoClient] = None
        self._collection: Optional[Collection] = None

    def _get_collection(self) -> Collection:
        if self._collection is None:
            self._client = MongoClient(self._mongodb_uri)
            self._collection = self._client[self._database_name][self._collection_name]
            logger.info(
                f"Session store connected: {self._database_name}.{self._collection_name}"
            )
        return self._collection

    def load(self, identity: str) -> Optional[Session]:
        document = self._get_collection().find_one({"_id": identity})
        if document is None:
            return None
        return Session.from_document(document)

    def save(self, session: Session) -> None:
        document = session.to_document()
        document["_id"] = session.identity
        self._get_collection().replace_one({"_id": session.identity}, document, upsert=True)

    def delete(self, identity: str) -> bool:
        result = self._get_collection().delete_one({"_id": identity})
        return result.deleted_count > 0

    def list_identities(self) -> List[str]:
        return [document["_id"] for document in self._get_collection().find({}, {"_id": 1})]

    def sweep_expired(self, max_age: timedelta, now: Optional[datetime] = None) -> SweepResult:
        now = now or datetime.utcnow()
        collection = self._get_collection()

        result = SweepResult(scanned_count=0)
        for document in collection.find({}):
            result.scanned_count += 1
            identity = document["_id"]
            session = decode_session(identity, document)
            if session is None:
                result.invalid_identities.append(identity)
            if session is None or is_session_expired(session, max_age, now):
                result.removed_identities.append(identity)

        if result.removed_identities:
            collection.delete_many({"_id": {"$in": result.removed_identities}})
            logger.info(f"Swept {result.removed_count}/{result.scanned_count} expired sessions")
        return result

    def close(self) -> None:
        """Close the client connection pool."""
        if self._client is not None:
            self._client.close()
        self._client = None
        self._collection = None
