"""
Error classification

Converts exceptions raised by external collaborators (program client,
signer sessions, RPC transports) into the engine's error taxonomy.
"""

import asyncio
from typing import Any, Optional

import httpx

from .exceptions import (
    EngineError,
    RpcError,
    InsufficientFunds,
    SimulationFailed,
    UserRejected,
    UnknownError,
)

INSUFFICIENT_FUNDS_KEYWORDS = [
    "insufficient lamports", "insufficient funds", "insufficient balance",
]

USER_REJECTED_KEYWORDS = [
    "user rejected", "user denied", "rejected the request", "user cancelled",
]

SIMULATION_KEYWORDS = [
    "simulation failed", "transaction simulation",
]

CONNECTION_KEYWORDS = [
    "timeout", "connection", "network", "rate limit",
    "too many requests", "503", "502", "504",
    "service unavailable", "econnreset", "enotfound", "etimedout",
    "socket hang up", "failed to fetch",
]


def is_insufficient_funds_message(message: Any) -> bool:
    text = str(message).lower()
    return any(keyword in text for keyword in INSUFFICIENT_FUNDS_KEYWORDS)


def classify_error(error: BaseException, endpoint: Optional[str] = None) -> EngineError:
    """
    Map an arbitrary exception onto the engine taxonomy.

    EngineError instances pass through untouched. Everything else is
    classified by exception type first, then by message keywords.

    Args:
        error: The exception to classify
        endpoint: Endpoint identity to attach to connection errors

    Returns:
        EngineError subclass instance
    """
    if isinstance(error, EngineError):
        return error

    if isinstance(error, (httpx.TransportError, asyncio.TimeoutError, OSError)):
        return RpcError.connection_failed(endpoint or "unknown", error)

    error_str = str(error).lower()

    if any(keyword in error_str for keyword in USER_REJECTED_KEYWORDS):
        return UserRejected(original_error=error)

    if any(keyword in error_str for keyword in INSUFFICIENT_FUNDS_KEYWORDS):
        return InsufficientFunds(str(error), token="SOL", original_error=error)

    if any(keyword in error_str for keyword in SIMULATION_KEYWORDS):
        return SimulationFailed(str(error), payload=str(error))

    if any(keyword in error_str for keyword in CONNECTION_KEYWORDS):
        return RpcError(
            f"Connection error: {error}",
            original_error=error,
            endpoint=endpoint,
        )

    return UnknownError.wrap(error)
