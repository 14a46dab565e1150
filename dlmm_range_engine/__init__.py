"""
DLMM Range Engine - Range resolution and position orchestration for Meteora DLMM pools

Provides:
- Heuristic bin-range selection that reuses bins likely to exist on-chain
- Pool handle and range caches with single-flight loading
- Position cost estimation and SOL balance validation
- Signer-agnostic transaction orchestration (local keypair or managed session)
"""

from .client import PositionEngine
from .config import config, get_config, reload_config, setup_logging, enable_file_logging
from .types import (
    ActiveBin,
    BinRange,
    RangeRecommendations,
    RiskProfile,
    StrategyType,
    PositionIntent,
    AddLiquidityRequest,
    RemoveLiquidityRequest,
    PositionInfo,
    CostEstimate,
    BalanceCheckResult,
    OperationState,
    OrchestrationResult,
    CacheStats,
)
from .errors import (
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
    user_message,
)
from .infra import (
    RpcClient,
    SignerCapabilities,
    SignerBackend,
    LocalKeypairBackend,
    ManagedSessionBackend,
    RemoteSession,
)
from .protocols import PoolClient, PoolConnector

__all__ = [
    # Engine
    "PositionEngine",
    # Config
    "config",
    "get_config",
    "reload_config",
    "setup_logging",
    "enable_file_logging",
    # Types
    "ActiveBin",
    "BinRange",
    "RangeRecommendations",
    "RiskProfile",
    "StrategyType",
    "PositionIntent",
    "AddLiquidityRequest",
    "RemoveLiquidityRequest",
    "PositionInfo",
    "CostEstimate",
    "BalanceCheckResult",
    "OperationState",
    "OrchestrationResult",
    "CacheStats",
    # Errors
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
    "user_message",
    # Signing & RPC
    "RpcClient",
    "SignerCapabilities",
    "SignerBackend",
    "LocalKeypairBackend",
    "ManagedSessionBackend",
    "RemoteSession",
    # Program client contract
    "PoolClient",
    "PoolConnector",
]
