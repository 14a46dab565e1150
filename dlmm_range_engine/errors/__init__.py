"""
Error definitions for the DLMM range engine
"""

from .exceptions import (
    ErrorCode,
    EngineError,
    RpcError,
    InvalidPool,
    NoSuitableRange,
    InsufficientFunds,
    PositionNotFound,
    TransactionError,
    SimulationFailed,
    SignerError,
    UserRejected,
    UnknownError,
    ConfigurationError,
)
from .classify import classify_error, is_insufficient_funds_message
from .messages import ErrorCategory, categorize, user_message, describe

__all__ = [
    "ErrorCode",
    "EngineError",
    "RpcError",
    "InvalidPool",
    "NoSuitableRange",
    "InsufficientFunds",
    "PositionNotFound",
    "TransactionError",
    "SimulationFailed",
    "SignerError",
    "UserRejected",
    "UnknownError",
    "ConfigurationError",
    "classify_error",
    "is_insufficient_funds_message",
    "ErrorCategory",
    "categorize",
    "user_message",
    "describe",
]
