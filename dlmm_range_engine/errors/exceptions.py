"""
Exception definitions for the DLMM range engine
"""

from enum import Enum
from typing import Any, Optional
from decimal import Decimal


class ErrorCode(Enum):
    """
    Unified error codes for engine operations

    1xxx - RPC / connection errors
    2xxx - Transaction errors
    4xxx - Pool and range errors
    5xxx - Position errors
    6xxx - Signer errors
    8xxx - Unclassified errors
    9xxx - Configuration errors
    """
    # RPC errors (recoverable)
    RPC_CONNECTION_FAILED = "1001"
    RPC_TIMEOUT = "1002"
    RPC_RATE_LIMITED = "1003"
    RPC_INVALID_RESPONSE = "1004"

    # Transaction errors
    TX_SIMULATION_FAILED = "2001"
    TX_SEND_FAILED = "2002"
    TX_CONFIRMATION_FAILED = "2003"
    TX_INSUFFICIENT_FUNDS = "2004"
    TX_ON_CHAIN_FAILED = "2005"

    # Pool / range errors
    POOL_NOT_FOUND = "4001"
    POOL_INVALID_ADDRESS = "4002"
    POOL_HANDLE_FAILED = "4003"
    NO_SUITABLE_RANGE = "4101"

    # Position errors
    POSITION_NOT_FOUND = "5001"
    POSITION_EMPTY = "5002"

    # Signer errors
    SIGNER_NOT_CONFIGURED = "6001"
    SIGNER_FAILED = "6002"
    SIGNER_TIMEOUT = "6003"
    SIGNER_NOT_READY = "6004"
    SIGNER_USER_REJECTED = "6005"

    # Catch-all
    UNKNOWN = "8001"

    # Configuration errors
    CONFIG_INVALID = "9001"
    CONFIG_MISSING = "9002"


class EngineError(Exception):
    """
    Base exception for all engine errors

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        recoverable: Whether the error might succeed on retry
        original_error: The underlying exception if any
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.original_error = original_error
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"

    @property
    def should_retry(self) -> bool:
        """Indicate if the caller may retry the operation"""
        return self.recoverable


class RpcError(EngineError):
    """
    Connection errors - endpoint unreachable or handle construction failed

    Raised when:
    - Connection to RPC endpoint fails
    - Request times out
    - Rate limit is hit
    - RPC node returns an error object
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.RPC_CONNECTION_FAILED,
        original_error: Optional[Exception] = None,
        endpoint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=True,
            original_error=original_error,
            details={"endpoint": endpoint} if endpoint else None,
        )
        self.endpoint = endpoint

    @classmethod
    def connection_failed(cls, endpoint: str, error: Exception = None) -> "RpcError":
        return cls(
            f"Failed to connect to RPC endpoint: {endpoint}",
            ErrorCode.RPC_CONNECTION_FAILED,
            original_error=error,
            endpoint=endpoint,
        )

    @classmethod
    def timeout(cls, endpoint: str, timeout_seconds: float) -> "RpcError":
        return cls(
            f"RPC request timed out after {timeout_seconds}s",
            ErrorCode.RPC_TIMEOUT,
            endpoint=endpoint,
        )

    @classmethod
    def rate_limited(cls, endpoint: str) -> "RpcError":
        return cls(
            "RPC rate limit exceeded",
            ErrorCode.RPC_RATE_LIMITED,
            endpoint=endpoint,
        )

    @classmethod
    def handle_failed(cls, pool_address: str, endpoint: str, error: Exception) -> "RpcError":
        return cls(
            f"Failed to connect pool {pool_address} via {endpoint}: {error}",
            ErrorCode.POOL_HANDLE_FAILED,
            original_error=error,
            endpoint=endpoint,
        )


class InvalidPool(EngineError):
    """
    Pool address malformed or pool not found - not recoverable
    """

    def __init__(
        self,
        message: str,
        pool_address: Optional[str] = None,
        code: ErrorCode = ErrorCode.POOL_NOT_FOUND,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            original_error=original_error,
            details={"pool_address": pool_address},
        )
        self.pool_address = pool_address

    @classmethod
    def malformed(cls, pool_address: str) -> "InvalidPool":
        return cls(
            f"Invalid pool address: {pool_address!r}",
            pool_address=pool_address,
            code=ErrorCode.POOL_INVALID_ADDRESS,
        )

    @classmethod
    def not_found(cls, pool_address: str, error: Exception = None) -> "InvalidPool":
        return cls(
            f"Pool not found: {pool_address}",
            pool_address=pool_address,
            original_error=error,
        )


class NoSuitableRange(EngineError):
    """
    The heuristic could not produce a range meeting the safety floor

    Callers are expected to fall back to a conservative default window.
    """

    def __init__(
        self,
        message: str,
        pool_address: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            ErrorCode.NO_SUITABLE_RANGE,
            recoverable=False,
            original_error=original_error,
            details={"pool_address": pool_address},
        )
        self.pool_address = pool_address

    @classmethod
    def no_ranges(cls, pool_address: str) -> "NoSuitableRange":
        return cls(
            f"No suitable bin ranges found for pool {pool_address}",
            pool_address=pool_address,
        )

    @classmethod
    def active_bin_unavailable(cls, pool_address: str, error: Exception) -> "NoSuitableRange":
        return cls(
            f"No suitable bin ranges found for pool {pool_address}: active bin read failed ({error})",
            pool_address=pool_address,
            original_error=error,
        )


class InsufficientFunds(EngineError):
    """
    Insufficient balance - not recoverable without deposit

    Carries the shortfall so callers can render how much is missing.
    """

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        required: Optional[Decimal] = None,
        available: Optional[Decimal] = None,
        original_error: Optional[Exception] = None,
    ):
        shortfall = None
        if required is not None and available is not None:
            shortfall = max(Decimal(0), required - available)
        super().__init__(
            message,
            ErrorCode.TX_INSUFFICIENT_FUNDS,
            recoverable=False,
            original_error=original_error,
            details={
                "token": token,
                "required": str(required) if required is not None else None,
                "available": str(available) if available is not None else None,
                "shortfall": str(shortfall) if shortfall is not None else None,
            },
        )
        self.token = token
        self.required = required
        self.available = available
        self.shortfall = shortfall

    @classmethod
    def sol_balance(cls, required: Decimal, available: Decimal) -> "InsufficientFunds":
        shortfall = max(Decimal(0), required - available)
        return cls(
            f"Insufficient SOL balance: need {required:.6f} SOL, have {available:.6f} SOL "
            f"(short {shortfall:.6f} SOL)",
            token="SOL",
            required=required,
            available=available,
        )

    @classmethod
    def from_simulation(cls, error: Any, logs: list = None) -> "InsufficientFunds":
        instance = cls(f"Insufficient funds during simulation: {error}", token="SOL")
        instance.details["payload"] = error
        instance.details["logs"] = logs or []
        return instance


class PositionNotFound(EngineError):
    """
    Position not found or has no bins - not recoverable
    """

    def __init__(
        self,
        message: str,
        position_id: Optional[str] = None,
        code: ErrorCode = ErrorCode.POSITION_NOT_FOUND,
    ):
        super().__init__(
            message,
            code,
            recoverable=False,
            details={"position_id": position_id},
        )
        self.position_id = position_id

    @classmethod
    def not_found(cls, position_id: str) -> "PositionNotFound":
        return cls(f"Position not found: {position_id}", position_id=position_id)

    @classmethod
    def no_bins(cls, position_id: str) -> "PositionNotFound":
        return cls(
            f"No bins found in position: {position_id}",
            position_id=position_id,
            code=ErrorCode.POSITION_EMPTY,
        )


class TransactionError(EngineError):
    """
    Transaction execution errors

    Raised when:
    - Transaction send fails
    - Confirmation times out
    - Confirmation reports an on-chain error payload
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TX_SEND_FAILED,
        signature: Optional[str] = None,
        logs: Optional[list] = None,
        payload: Any = None,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            code,
            recoverable=recoverable,
            original_error=original_error,
            details={"signature": signature, "logs": logs, "payload": payload},
        )
        self.signature = signature
        self.logs = logs or []
        self.payload = payload

    @classmethod
    def send_failed(cls, error: str, original_error: Exception = None) -> "TransactionError":
        # Some send failures are recoverable (network issues)
        recoverable = "timeout" in error.lower() or "connection" in error.lower()
        return cls(
            f"Failed to send transaction: {error}",
            ErrorCode.TX_SEND_FAILED,
            recoverable=recoverable,
            original_error=original_error,
        )

    @classmethod
    def confirmation_failed(cls, signature: str, error: str) -> "TransactionError":
        return cls(
            f"Transaction confirmation failed: {error}",
            ErrorCode.TX_CONFIRMATION_FAILED,
            signature=signature,
            recoverable=True,
        )

    @classmethod
    def on_chain(cls, signature: str, payload: Any) -> "TransactionError":
        return cls(
            f"Transaction {signature} failed on-chain: {payload}",
            ErrorCode.TX_ON_CHAIN_FAILED,
            signature=signature,
            payload=payload,
        )


class SimulationFailed(TransactionError):
    """
    Transaction simulation reported an error; raw payload is preserved
    """

    def __init__(self, message: str, payload: Any = None, logs: Optional[list] = None):
        super().__init__(
            message,
            ErrorCode.TX_SIMULATION_FAILED,
            logs=logs,
            payload=payload,
        )

    @classmethod
    def from_payload(cls, payload: Any, logs: list = None) -> "SimulationFailed":
        return cls(f"Transaction simulation failed: {payload}", payload=payload, logs=logs)


class SignerError(EngineError):
    """
    Signing-related errors

    Raised when:
    - No signer configured
    - Signer backend is not ready (no session, no connection, signing in flight)
    - Signing operation fails or times out
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SIGNER_FAILED,
        recoverable: bool = False,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, code, recoverable=recoverable, original_error=original_error)

    @classmethod
    def not_configured(cls) -> "SignerError":
        return cls(
            "No signer configured. Provide keypair or remote signer URL.",
            ErrorCode.SIGNER_NOT_CONFIGURED,
        )

    @classmethod
    def not_ready(cls) -> "SignerError":
        return cls(
            "Signer backend is not ready to sign",
            ErrorCode.SIGNER_NOT_READY,
            recoverable=True,
        )

    @classmethod
    def failed(cls, reason: str, original_error: Exception = None) -> "SignerError":
        return cls(f"Signing failed: {reason}", ErrorCode.SIGNER_FAILED, original_error=original_error)

    @classmethod
    def timeout(cls, timeout_seconds: float) -> "SignerError":
        return cls(
            f"Signer timed out after {timeout_seconds}s",
            ErrorCode.SIGNER_TIMEOUT,
            recoverable=True,
        )


class UserRejected(SignerError):
    """
    The signer declined the request (user cancelled the approval)
    """

    def __init__(self, message: str = "Transaction was rejected by the user", original_error: Optional[Exception] = None):
        super().__init__(message, ErrorCode.SIGNER_USER_REJECTED, original_error=original_error)


class UnknownError(EngineError):
    """
    Catch-all for failures outside the taxonomy; carries the original message
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, ErrorCode.UNKNOWN, original_error=original_error)

    @classmethod
    def wrap(cls, error: Exception) -> "UnknownError":
        return cls(str(error) or error.__class__.__name__, original_error=error)


class ConfigurationError(EngineError):
    """
    Configuration-related errors

    Raised when:
    - Required configuration is missing
    - Configuration values are invalid
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
    ):
        super().__init__(message, code, recoverable=False)

    @classmethod
    def missing(cls, param: str) -> "ConfigurationError":
        return cls(f"Missing required configuration: {param}", ErrorCode.CONFIG_MISSING)

    @classmethod
    def invalid(cls, param: str, reason: str) -> "ConfigurationError":
        return cls(f"Invalid configuration '{param}': {reason}", ErrorCode.CONFIG_INVALID)
