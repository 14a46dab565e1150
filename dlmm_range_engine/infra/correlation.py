"""
Correlation ID helpers

Structured logging with correlation IDs so every log line of one
orchestrated operation can be traced together. contextvars keeps the
ID scoped to the running asyncio task.
"""

import logging
import uuid
import contextvars
from typing import Optional

logger = logging.getLogger(__name__)

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    'correlation_id', default=None
)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for operation tracing."""
    return uuid.uuid4().hex[:12]


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: Optional[str]) -> contextvars.Token:
    """Set the correlation ID in context. Returns token for reset."""
    return _correlation_id.set(correlation_id)


class CorrelationContext:
    """
    Context manager for correlation ID scoping.

    Usage:
        with CorrelationContext("create_position") as cid:
            logger.info(f"[{cid}] Starting operation")
    """

    def __init__(self, prefix: Optional[str] = None):
        """
        Initialize correlation context.

        Args:
            prefix: Optional prefix for the correlation ID (e.g., "create_position")
        """
        self.correlation_id = generate_correlation_id()
        if prefix:
            self.correlation_id = f"{prefix}_{self.correlation_id}"
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        self._token = set_correlation_id(self.correlation_id)
        return self.correlation_id

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._token is not None:
            _correlation_id.reset(self._token)


def log_with_correlation(
    level: int,
    message: str,
    operation_name: str,
    step: Optional[int] = None,
    total_steps: Optional[int] = None,
    log: Optional[logging.Logger] = None,
    **extra
):
    """
    Log message with correlation ID and structured context.

    Args:
        level: Logging level (logging.INFO, logging.WARNING, etc.)
        message: Log message
        operation_name: Name of the operation being executed
        step: Current transaction number (1-indexed)
        total_steps: Number of transactions in the operation
        log: Logger to emit on (defaults to this module's logger)
        **extra: Additional context fields
    """
    cid = get_correlation_id()

    parts = []
    if cid:
        parts.append(f"[{cid}]")
    parts.append(f"[{operation_name}]")
    if step is not None and total_steps is not None:
        parts.append(f"[{step}/{total_steps}]")
    parts.append(message)

    extra_context = {
        "correlation_id": cid,
        "operation": operation_name,
        "step": step,
        "total_steps": total_steps,
        **extra
    }

    (log or logger).log(level, " ".join(parts), extra=extra_context)
