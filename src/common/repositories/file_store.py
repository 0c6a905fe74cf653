"""
JSON File Session Store

Keeps sessions in memory and writes a full JSON snapshot after every
mutation. The snapshot is loaded once at construction (process start).
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from .memory_store import InMemorySessionStore

logger = logging.getLogger(__name__)


class JsonFileSessionStore(InMemorySessionStore):
    """
    File-backed session store.

    Snapshot format: {"version": 1, "sessions": {identity: document}}.
    Writes go to a temp file in the same directory followed by os.replace,
    so a crash mid-write leaves the previous snapshot intact.
    """

    SNAPSHOT_VERSION = 1

    def __init__(self, path: str):
        """
        Initialize the store and load an existing snapshot.

        Args:
            path: Snapshot file path (parent directories are created)

        Raises:
            ValueError: If the snapshot exists but is not valid JSON
        """
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._load_snapshot()

    def _load_snapshot(self) -> None:
        if not self.path.exists():
            logger.info(f"No session snapshot at {self.path}, starting empty")
            return

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Corrupt session snapshot {self.path}: {e}") from e

        sessions = payload.get("sessions", {}) if isinstance(payload, dict) else {}
        self._documents.update(sessions)
        logger.info(f"Loaded {len(sessions)} sessions from {self.path}")

    def _persist(self) -> None:
        payload = {"version": self.SNAPSHOT_VERSION, "sessions": self._documents}
        fd, temp_path = tempfile.mkstemp(
            prefix=".sessions-", suffix=".json", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False)
            os.replace(temp_path, self.path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
