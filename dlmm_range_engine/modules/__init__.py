"""
Engine components

Provides:
- PoolHandleCache: Connected pool clients per (pool, endpoint)
- RangeResolver: Cached heuristic bin-range selection
- CostEstimator / BalanceValidator: Pre-flight cost and balance checks
- TransactionOrchestrator: Build, check, sign, submit and confirm
"""

from .pool_cache import PoolHandleCache, validate_pool_address
from .range_resolver import (
    RangeResolver,
    RangePattern,
    RiskParameters,
    RISK_PARAMETERS,
    build_smart_ranges,
    generate_likely_bins,
    inclusion_draw,
    inclusion_probability,
    fallback_range,
    validate_existing_bins_only,
)
from .validation import CostEstimator, BalanceValidator
from .orchestrator import TransactionOrchestrator, OrchestratorConfig

__all__ = [
    # Pool handles
    "PoolHandleCache",
    "validate_pool_address",
    # Ranges
    "RangeResolver",
    "RangePattern",
    "RiskParameters",
    "RISK_PARAMETERS",
    "build_smart_ranges",
    "generate_likely_bins",
    "inclusion_draw",
    "inclusion_probability",
    "fallback_range",
    "validate_existing_bins_only",
    # Validation
    "CostEstimator",
    "BalanceValidator",
    # Orchestration
    "TransactionOrchestrator",
    "OrchestratorConfig",
]
