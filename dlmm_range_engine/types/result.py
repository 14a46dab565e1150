"""
Result type definitions for validation and orchestration
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import EngineError, user_message


@dataclass(frozen=True)
class CostEstimate:
    """
    SOL cost to open a position

    Bin creation is never needed because ranges reuse existing bins, so
    bins_used only appears in the breakdown.
    """
    position_rent: Decimal
    transaction_fees: Decimal
    bins_used: int
    compute_units_estimate: int
    no_bin_creation_needed: bool = True

    @property
    def total(self) -> Decimal:
        return self.position_rent + self.transaction_fees


@dataclass
class BalanceCheckResult:
    """
    Outcome of a balance check

    Attributes:
        is_valid: Whether the balance covers the required total
        available: Balance in SOL (0 when the RPC read failed)
        required: required_amount + cost total, in SOL
        shortfall: max(0, required - available)
        error: InsufficientFunds or RpcError when is_valid is False
    """
    is_valid: bool
    available: Decimal
    required: Decimal
    shortfall: Decimal = Decimal(0)
    error: Optional[EngineError] = None

    @property
    def message(self) -> Optional[str]:
        return self.error.message if self.error else None


class OperationState(Enum):
    """Orchestration state machine"""
    BUILT = "built"
    BALANCE_CHECKED = "balance_checked"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.CONFIRMED, OperationState.FAILED)


@dataclass
class OrchestrationResult:
    """
    Result of one logical operation (create, add, remove, claim, close)

    Attributes:
        operation: Operation name
        state: Final state, CONFIRMED or FAILED
        signatures: Signatures of confirmed transactions, in submission order
        total_transactions: Number of transactions the operation built
        position_identity: Key material for a newly created position
        position_address: Address of the created position
        failed_signature: Signature of the transaction that failed on-chain, if any
        error: Cause of failure
        cost_estimate: Cost used for the balance check
        balance: Balance check outcome
        transitions: States visited, in order
    """
    operation: str
    state: OperationState
    signatures: List[str] = field(default_factory=list)
    total_transactions: int = 0
    position_identity: Optional[Any] = None
    position_address: Optional[str] = None
    failed_signature: Optional[str] = None
    error: Optional[EngineError] = None
    cost_estimate: Optional[CostEstimate] = None
    balance: Optional[BalanceCheckResult] = None
    transitions: List[OperationState] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.state == OperationState.CONFIRMED

    @property
    def is_failed(self) -> bool:
        return self.state == OperationState.FAILED

    @property
    def completed(self) -> int:
        """Number of transactions confirmed before completion or failure"""
        return len(self.signatures)

    @property
    def is_partial(self) -> bool:
        return self.is_failed and self.completed > 0

    @property
    def user_message(self) -> Optional[str]:
        return user_message(self.error) if self.error else None

    def __str__(self) -> str:
        if self.is_success:
            return f"OrchestrationResult({self.operation}, CONFIRMED, {self.completed} tx)"
        return (
            f"OrchestrationResult({self.operation}, {self.state.value}, "
            f"{self.completed}/{self.total_transactions} tx, error={self.error})"
        )


@dataclass
class CacheStats:
    """Counts and keys of the engine caches"""
    pool_handles: int
    bin_ranges: int
    pool_keys: List[str] = field(default_factory=list)
    bin_range_keys: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool_handles": self.pool_handles,
            "bin_ranges": self.bin_ranges,
            "pool_keys": list(self.pool_keys),
            "bin_range_keys": list(self.bin_range_keys),
        }
