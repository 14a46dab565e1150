"""
User-facing error messages

A pure mapping from error taxonomy to one message category. The mapping
depends only on the error type, never on which signer backend is active.
"""

from enum import Enum
from typing import Optional

from .exceptions import (
    EngineError,
    RpcError,
    InvalidPool,
    NoSuitableRange,
    InsufficientFunds,
    TransactionError,
    UserRejected,
)


class ErrorCategory(Enum):
    """Human-readable message categories"""
    INSUFFICIENT_FUNDS = "insufficient_funds"
    SIMULATION_FAILURE = "simulation_failure"
    CONNECTION = "connection"
    CANCELLED = "cancelled"
    INVALID_POOL = "invalid_pool"
    NO_SUITABLE_RANGE = "no_suitable_range"
    UNKNOWN = "unknown"


USER_MESSAGES = {
    ErrorCategory.INSUFFICIENT_FUNDS: "Insufficient SOL balance. Please add more SOL to your wallet.",
    ErrorCategory.SIMULATION_FAILURE: (
        "Transaction simulation failed. The existing bins might be full or have restrictions."
    ),
    ErrorCategory.CONNECTION: "Connection error. Please check your wallet connection and try again.",
    ErrorCategory.CANCELLED: "You cancelled the transaction. Your funds are safe.",
    ErrorCategory.INVALID_POOL: "Invalid pool configuration. Please try a different pool.",
    ErrorCategory.NO_SUITABLE_RANGE: (
        "No existing price ranges available. Please wait for more liquidity or select a different pool."
    ),
    ErrorCategory.UNKNOWN: "An unexpected error occurred. Please try again.",
}


def categorize(error: Optional[BaseException]) -> ErrorCategory:
    """Return the message category for an error"""
    # Order matters: UserRejected is a SignerError, SimulationFailed a TransactionError
    if isinstance(error, UserRejected):
        return ErrorCategory.CANCELLED
    if isinstance(error, InsufficientFunds):
        return ErrorCategory.INSUFFICIENT_FUNDS
    if isinstance(error, TransactionError):
        return ErrorCategory.SIMULATION_FAILURE
    if isinstance(error, RpcError):
        return ErrorCategory.CONNECTION
    if isinstance(error, InvalidPool):
        return ErrorCategory.INVALID_POOL
    if isinstance(error, NoSuitableRange):
        return ErrorCategory.NO_SUITABLE_RANGE
    return ErrorCategory.UNKNOWN


def user_message(error: Optional[BaseException]) -> str:
    """Return the human-readable message for an error"""
    return USER_MESSAGES[categorize(error)]


def describe(error: EngineError) -> dict:
    """Structured view of an error for logs and API responses"""
    category = categorize(error)
    return {
        "code": error.code.value,
        "category": category.value,
        "message": error.message,
        "user_message": USER_MESSAGES[category],
        "recoverable": error.recoverable,
        "details": error.details,
    }
