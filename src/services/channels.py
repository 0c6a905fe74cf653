"""
Outbound messaging channels.

The orchestrator replies through a MessageChannel. Delivery is best-effort:
a failed send is logged by the caller and never retried.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Tuple

from src.common.logger import mask_identity

logger = logging.getLogger(__name__)


class MessageChannel(ABC):
    """Abstract base class for outbound candidate messaging."""

    @abstractmethod
    def send(self, identity: str, text: str) -> None:
        """
        Send a text to a candidate.

        Raises:
            Exception: Implementation specific transport errors
        """
        pass


class LogOnlyChannel(MessageChannel):
    """Writes outbound texts to the log."""

    def send(self, identity: str, text: str) -> None:
        logger.info(f"[OUT {mask_identity(identity)}] {text}")


class RecordingChannel(MessageChannel):
    """Keeps every outbound text in memory (console runner and tests)."""

    def __init__(self):
        self.sent: List[Tuple[str, str]] = []

    def send(self, identity: str, text: str) -> None:
        self.sent.append((identity, text))

    def texts_for(self, identity: str) -> List[str]:
        return [text for target, text in self.sent if target == identity]

    def last_text(self, identity: str) -> str:
        texts = self.texts_for(identity)
        return texts[-1] if texts else ""
