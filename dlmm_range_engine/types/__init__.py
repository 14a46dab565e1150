"""
Type definitions for the DLMM range engine
"""

from .common import LAMPORTS_PER_SOL, lamports_to_sol, RiskProfile, StrategyType
from .bins import ActiveBin, BinRange, RangeResolution, RangeRecommendations
from .position import (
    StrategyParameters,
    PositionIntent,
    AddLiquidityRequest,
    RemoveLiquidityRequest,
    PositionBin,
    PositionInfo,
)
from .result import (
    CostEstimate,
    BalanceCheckResult,
    OperationState,
    OrchestrationResult,
    CacheStats,
)

__all__ = [
    "LAMPORTS_PER_SOL",
    "lamports_to_sol",
    "RiskProfile",
    "StrategyType",
    "ActiveBin",
    "BinRange",
    "RangeResolution",
    "RangeRecommendations",
    "StrategyParameters",
    "PositionIntent",
    "AddLiquidityRequest",
    "RemoveLiquidityRequest",
    "PositionBin",
    "PositionInfo",
    "CostEstimate",
    "BalanceCheckResult",
    "OperationState",
    "OrchestrationResult",
    "CacheStats",
]
