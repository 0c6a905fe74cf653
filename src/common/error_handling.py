"""
Centralized error handling for the candidate intake assistant.

Defines the exception hierarchy raised by the intake services and
utilities for consistent logging of failures that must not escalate.

Exception hierarchy:
    IntakeError
    ├── ExtractionError            model call failed or returned an unusable record
    ├── InvalidTransitionError     stage change outside the transition graph
    ├── DispatchError              reviewer notification not delivered
    └── DocumentError              document pipeline failures (carry an error code)
        ├── UnsupportedMediaTypeError
        ├── DocumentTooLargeError
        ├── DownloadTimeoutError
        ├── DocumentTransportError
        └── EmptyExtractionError
"""

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, TypeVar

# Type variable for generic return types
T = TypeVar("T")


class IntakeError(Exception):
    """Base class for all intake errors."""


class ExtractionError(IntakeError):
    """Raised when the extraction model fails or its output cannot be validated."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class InvalidTransitionError(IntakeError):
    """Raised when a stage change is not part of the transition graph."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Invalid stage transition {current} -> {target}")


class DispatchError(IntakeError):
    """Raised when the reviewer summary could not be delivered."""


class DocumentError(IntakeError):
    """Base class for document pipeline failures."""

    code = "document_error"


class UnsupportedMediaTypeError(DocumentError):
    code = "unsupported_type"


class DocumentTooLargeError(DocumentError):
    code = "oversize"


class DownloadTimeoutError(DocumentError):
    code = "timeout"


class DocumentTransportError(DocumentError):
    code = "transport_failure"


class EmptyExtractionError(DocumentError):
    code = "extraction_empty"


@dataclass
class TurnError:
    """
    Structured error information for a failed conversation turn.

    Logged at the top of the turn handler so failures can be audited
    without leaking message contents.
    """

    stage: str
    operation: str
    message: str
    timestamp: str = field(default_factory=lambda: datetime.utcnow().isoformat())
    recoverable: bool = True
    exception_type: Optional[str] = None
    stack_trace: Optional[str] = None

    @classmethod
    def from_exception(cls, stage: str, operation: str, exc: BaseException) -> "TurnError":
        return cls(
            stage=stage,
            operation=operation,
            message=str(exc),
            exception_type=type(exc).__name__,
            stack_trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "stage": self.stage,
            "operation": self.operation,
            "message": self.message,
            "timestamp": self.timestamp,
            "recoverable": self.recoverable,
            "exception_type": self.exception_type,
        }


def safe_execute(
    func: Callable[..., T],
    *args,
    operation_name: str = "operation",
    logger: Optional[logging.Logger] = None,
    fallback: T = None,
    critical: bool = False,
    **kwargs,
) -> T:
    """
    Execute a function safely with error handling and logging.

    Used for best-effort side effects (outbound replies, artifact cleanup)
    whose failure is logged and never retried.

    Args:
        func: Function to execute
        *args: Positional arguments for func
        operation_name: Name for logging
        logger: Logger instance (uses module logger if None)
        fallback: Value to return on failure
        critical: If True, log at ERROR level with traceback
        **kwargs: Keyword arguments for func

    Returns:
        Function result or fallback value on error

    Usage:
        delivered = safe_execute(
            channel.send,
            identity,
            text,
            operation_name="outbound reply",
            logger=logger,
            fallback=False,
        )
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    try:
        return func(*args, **kwargs)
    except Exception as e:
        log_level = logging.ERROR if critical else logging.WARNING
        logger.log(
            log_level,
            f"[{operation_name}] Failed: {e}",
            exc_info=critical,
        )
        return fallback
