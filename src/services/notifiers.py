"""
Reviewer notification channels.

Delivers the dispatch summary of a candidate to the tenant's reviewer
address. Supports the Resend e-mail HTTP API and a log-only notifier for
environments without an API key.

Usage:
    notifier = create_notifier()
    delivered = notifier.notify(
        to="hr@agency.example.com",
        subject="New candidate: Ion",
        body=summary.to_text(),
    )
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from src.common.config import Config

logger = logging.getLogger(__name__)


class ReviewerNotifier(ABC):
    """Abstract base class for reviewer notification channels."""

    @abstractmethod
    def notify(self, to: str, subject: str, body: str) -> bool:
        """
        Send a summary to a reviewer.

        Args:
            to: Reviewer address
            subject: Message subject
            body: Plain-text summary

        Returns:
            True only when delivery was confirmed
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the notifier is properly configured."""
        pass


class LogOnlyNotifier(ReviewerNotifier):
    """Logs the summary instead of sending it."""

    def notify(self, to: str, subject: str, body: str) -> bool:
        logger.info(f"[REVIEWER:{to}] {subject}\n{body}")
        return True

    def is_configured(self) -> bool:
        return True


class ResendEmailNotifier(ReviewerNotifier):
    """Sends summaries through the Resend e-mail API."""

    API_URL = "https://api.resend.com/emails"
    TIMEOUT = 30  # seconds

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        self._api_key = api_key or Config.RESEND_API_KEY
        self._from_email = from_email or Config.RESEND_FROM_EMAIL

    def is_configured(self) -> bool:
        return bool(self._api_key and self._from_email)

    def notify(self, to: str, subject: str, body: str) -> bool:
        if not self.is_configured():
            logger.warning("Resend notifier not configured, summary not sent")
            return False
        if not to:
            logger.error("No reviewer address, summary not sent")
            return False

        try:
            response = requests.post(
                self.API_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={
                    "from": self._from_email,
                    "to": [to],
                    "subject": subject,
                    "text": body,
                },
                timeout=self.TIMEOUT,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to send reviewer e-mail: {e}")
            return False

        logger.info(f"Reviewer e-mail accepted (status {response.status_code})")
        return True


def create_notifier() -> ReviewerNotifier:
    """Resend when an API key is configured, otherwise log-only."""
    notifier = ResendEmailNotifier()
    if notifier.is_configured():
        return notifier
    logger.info("RESEND_API_KEY not set, reviewer summaries will be logged only")
    return LogOnlyNotifier()
