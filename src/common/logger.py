"""
Centralized logging configuration for the candidate intake assistant.

Provides structured logging with identity and stage tagging for easy debugging.
Identities are masked to their last digits so phone numbers never reach the logs.
Supports debug_mode flag for verbose logging.
"""

import logging
import os
import sys
from typing import Optional


# Global debug mode flag - can be set via environment
_GLOBAL_DEBUG_MODE = os.getenv("DEBUG_MODE", "false").lower() == "true"


def set_global_debug_mode(enabled: bool) -> None:
    """Set global debug mode."""
    global _GLOBAL_DEBUG_MODE
    _GLOBAL_DEBUG_MODE = enabled


def is_debug_mode() -> bool:
    """Check if debug mode is enabled globally."""
    return _GLOBAL_DEBUG_MODE


def mask_identity(identity: Optional[str], visible: int = 4) -> str:
    """
    Mask a channel identity, keeping only its last digits.

    >>> mask_identity("whatsapp:+40712345678")
    '***5678'
    """
    if not identity:
        return "***"
    digits = "".join(ch for ch in identity if ch.isdigit())
    tail = (digits or identity)[-visible:]
    return f"***{tail}"


class ConversationLogger:
    """
    Structured logger for conversation turns.

    Adds contextual information like the masked identity and the stage to all log messages.
    """

    def __init__(
        self,
        name: str,
        identity: Optional[str] = None,
        stage: Optional[str] = None,
        debug_mode: Optional[bool] = None
    ):
        """
        Initialize conversation logger.

        Args:
            name: Logger name (usually __name__)
            identity: Optional channel identity (masked in output)
            stage: Optional stage name (e.g., "collecting_data")
            debug_mode: If True, enables DEBUG level for this logger.
                       If None, uses global debug mode setting.
        """
        self.logger = logging.getLogger(name)
        self.identity = identity
        self.stage = stage

        self._debug_mode = debug_mode if debug_mode is not None else is_debug_mode()

        if self._debug_mode:
            self.logger.setLevel(logging.DEBUG)

    @property
    def level(self) -> int:
        """Get current logging level."""
        return self.logger.level

    def bind(self, stage: Optional[str] = None) -> "ConversationLogger":
        """Return a logger for the same identity tagged with a new stage."""
        return ConversationLogger(self.logger.name, self.identity, stage, self._debug_mode)

    def _format_message(self, message: str) -> str:
        """Add contextual prefix to message."""
        prefix_parts = []
        if self.identity:
            prefix_parts.append(f"[{mask_identity(self.identity)}]")
        if self.stage:
            prefix_parts.append(f"[{self.stage}]")

        if prefix_parts:
            return f"{' '.join(prefix_parts)} {message}"
        return message

    def debug(self, message: str, **kwargs):
        self.logger.debug(self._format_message(message), **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(self._format_message(message), **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(self._format_message(message), **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(self._format_message(message), **kwargs)

    def exception(self, message: str, **kwargs):
        """Log exception with traceback."""
        self.logger.exception(self._format_message(message), **kwargs)


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Configure global logging settings.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format: Log format ("simple" or "json")
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if format == "json":
        formatter = logging.Formatter(
            '{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)


def get_logger(
    name: str,
    identity: Optional[str] = None,
    stage: Optional[str] = None,
    debug_mode: Optional[bool] = None
) -> ConversationLogger:
    """
    Get a conversation logger instance.

    Args:
        name: Logger name (usually __name__)
        identity: Optional channel identity
        stage: Optional stage name
        debug_mode: If True, enables DEBUG level. If None, uses global setting.

    Returns:
        ConversationLogger instance
    """
    return ConversationLogger(name, identity, stage, debug_mode)
