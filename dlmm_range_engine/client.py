"""
PositionEngine - Unified entry point for range resolution and position operations

Owns one RPC client, one pool handle cache and one range cache. Engines
built against different endpoints keep independent caches.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from solders.keypair import Keypair

from .config import CostConfig, config as global_config
from .errors import NoSuitableRange, SignerError
from .infra import (
    RpcClient,
    RpcClientConfig,
    SignerBackend,
    LocalKeypairBackend,
    create_signer,
)
from .infra.cache import Clock
from .modules import (
    PoolHandleCache,
    RangeResolver,
    CostEstimator,
    BalanceValidator,
    TransactionOrchestrator,
    OrchestratorConfig,
    fallback_range,
)
from .protocols import PoolConnector
from .protocols.meteora import MAX_POSITION_WIDTH
from .types import (
    ActiveBin,
    AddLiquidityRequest,
    BalanceCheckResult,
    BinRange,
    CacheStats,
    CostEstimate,
    OrchestrationResult,
    PositionInfo,
    PositionIntent,
    RangeRecommendations,
    RemoveLiquidityRequest,
    RiskProfile,
    StrategyType,
)

logger = logging.getLogger(__name__)


class PositionEngine:
    """
    Range resolution and position orchestration engine

    Provides:
    - resolve_ranges / resolve_ranges_or_fallback / get_safe_range_recommendations
    - estimate_cost / validate_balance
    - create_position / create_one_sided_position / add_liquidity /
      remove_liquidity / remove_liquidity_from_position / claim_fees /
      claim_all_fees / close_position
    - get_active_bin / get_user_positions / get_position_info / validate_connection
    - clear_cache / cache_stats

    Usage:
        engine = PositionEngine(connect_pool, rpc_url="https://api.mainnet-beta.solana.com",
                                keypair_path="/path/to/keypair.json")

        ranges = await engine.resolve_ranges(pool, 69, RiskProfile.CONSERVATIVE)
        intent = PositionIntent(pool, engine.pubkey, total_x_amount=100_000_000)
        result = await engine.create_position(intent, ranges[0])
        if result.is_failed:
            print(result.user_message)

    Every network operation takes an optional rpc argument overriding the
    engine's client for that call.
    """

    def __init__(
        self,
        connector: PoolConnector,
        rpc_url: Optional[Union[str, List[str]]] = None,
        rpc: Optional[RpcClient] = None,
        signer: Optional[SignerBackend] = None,
        keypair: Optional["Keypair"] = None,
        keypair_path: Optional[str] = None,
        rpc_config: Optional[RpcClientConfig] = None,
        orchestrator_config: Optional[OrchestratorConfig] = None,
        cost_config: Optional[CostConfig] = None,
        range_cache_ttl: Optional[float] = None,
        clock: Optional[Clock] = None,
        verify_pool_owner: bool = False,
    ):
        """
        Initialize PositionEngine

        Args:
            connector: Coroutine building a connected pool client
            rpc_url: RPC endpoint URL or list of URLs (defaults to SOLANA_RPC_URL)
            rpc: Ready RPC client; takes precedence over rpc_url
            signer: Default signer backend for write operations
            keypair: Keypair for a local signer backend
            keypair_path: Keypair file for a local signer backend
            rpc_config: Optional RPC configuration
            orchestrator_config: Optional orchestration configuration
            cost_config: Optional cost constants
            range_cache_ttl: Range cache TTL in seconds
            clock: Time source for the range cache
            verify_pool_owner: Check pool account ownership before connecting
        """
        self._owns_rpc = rpc is None
        self._rpc = rpc or RpcClient(rpc_url or global_config.rpc.url, config=rpc_config)

        if signer is None and (keypair is not None or keypair_path is not None):
            signer = LocalKeypairBackend(create_signer(keypair=keypair, keypair_path=keypair_path))
        self._signer = signer

        self._pool_cache = PoolHandleCache(connector, verify_owner=verify_pool_owner)
        self._resolver = RangeResolver(self._pool_cache, ttl=range_cache_ttl, clock=clock)
        self._cost_estimator = CostEstimator(cost_config)
        self._balance_validator = BalanceValidator()
        self._orchestrator = TransactionOrchestrator(
            self._rpc,
            self._pool_cache,
            self._cost_estimator,
            self._balance_validator,
            config=orchestrator_config,
        )

    @property
    def rpc(self) -> RpcClient:
        """Access to RPC client"""
        return self._rpc

    @property
    def signer(self) -> Optional[SignerBackend]:
        """Default signer backend, if configured"""
        return self._signer

    @property
    def pubkey(self) -> str:
        """Default signer's public key"""
        return self._require_signer(None).pubkey

    @property
    def pool_cache(self) -> PoolHandleCache:
        return self._pool_cache

    @property
    def resolver(self) -> RangeResolver:
        return self._resolver

    @property
    def orchestrator(self) -> TransactionOrchestrator:
        return self._orchestrator

    # ========== Ranges ==========

    async def resolve_ranges(
        self,
        pool_address: str,
        max_range_width: Optional[int] = None,
        risk_profile: Union[RiskProfile, str] = RiskProfile.MODERATE,
        rpc: Optional[RpcClient] = None,
    ) -> List[BinRange]:
        """
        Candidate ranges reusing likely-existing bins, popular first

        Raises:
            InvalidPool: Malformed address or pool not found
            RpcError: Endpoint unreachable
            NoSuitableRange: Active bin unreadable or no range met the floor
        """
        return await self._resolver.resolve(
            pool_address, rpc or self._rpc, max_range_width, RiskProfile.parse(risk_profile)
        )

    async def resolve_ranges_or_fallback(
        self,
        pool_address: str,
        max_range_width: Optional[int] = None,
        risk_profile: Union[RiskProfile, str] = RiskProfile.MODERATE,
        rpc: Optional[RpcClient] = None,
    ) -> List[BinRange]:
        """
        Like resolve_ranges, but NoSuitableRange yields the default window
        centred on the last known active bin

        Re-raises when no active bin has ever been seen for the pool.
        """
        conn = rpc or self._rpc
        try:
            return await self.resolve_ranges(pool_address, max_range_width, risk_profile, conn)
        except NoSuitableRange:
            active_bin_id = self._resolver.last_active_bin(pool_address, conn.identity)
            if active_bin_id is None:
                raise
            logger.warning(f"No suitable range for {pool_address}, using fallback around bin {active_bin_id}")
            return [fallback_range(active_bin_id, global_config.range.fallback_width)]

    async def get_safe_range_recommendations(
        self,
        pool_address: str,
        rpc: Optional[RpcClient] = None,
    ) -> RangeRecommendations:
        """
        Pick conservative / balanced / aggressive ranges from one resolution

        conservative: range with the most bins
        balanced: first range with 5-10 bins (else the first range)
        aggressive: first range with 3-7 bins (else the last range)
        """
        ranges = await self.resolve_ranges(pool_address, MAX_POSITION_WIDTH, RiskProfile.MODERATE, rpc)

        conservative = max(ranges, key=lambda r: r.bin_count)
        balanced = next((r for r in ranges if 5 <= r.bin_count <= 10), ranges[0])
        aggressive = next((r for r in ranges if 3 <= r.bin_count <= 7), ranges[-1])
        return RangeRecommendations(
            conservative=conservative,
            balanced=balanced,
            aggressive=aggressive,
            all=ranges,
        )

    # ========== Cost & balance ==========

    def estimate_cost(self, bins_used: int) -> CostEstimate:
        return self._cost_estimator.estimate(bins_used)

    async def validate_balance(
        self,
        account: str,
        required_amount: Union[Decimal, int, float, str],
        cost: Optional[CostEstimate] = None,
        rpc: Optional[RpcClient] = None,
    ) -> BalanceCheckResult:
        """
        Check account SOL balance against required_amount plus cost

        Never raises on RPC failure; see BalanceCheckResult.error.
        """
        if cost is None:
            cost = self._cost_estimator.estimate(0)
        return await self._balance_validator.validate(account, required_amount, cost, rpc or self._rpc)

    # ========== Position operations ==========

    async def create_position(
        self,
        intent: PositionIntent,
        bin_range: BinRange,
        signer: Optional[SignerBackend] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        return await self._orchestrator.create_position(intent, bin_range, self._require_signer(signer), rpc)

    async def create_one_sided_position(
        self,
        intent: PositionIntent,
        use_token_x: bool,
        signer: Optional[SignerBackend] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        """
        Deposit a single token into the best resolved range

        Token X goes into bins at or above the active bin, token Y into
        bins at or below it. Spot strategies resolve conservative ranges,
        other shapes moderate ones.
        """
        backend = self._require_signer(signer)
        profile = RiskProfile.CONSERVATIVE if intent.strategy_type == StrategyType.SPOT else RiskProfile.MODERATE
        resolution = await self._resolver.resolve_with_active_bin(intent.pool_address, rpc or self._rpc, None, profile)
        selected = resolution.ranges[0]
        active_bin_id = resolution.active_bin.bin_id

        if use_token_x:
            side = [b for b in selected.existing_bins if b >= active_bin_id]
            total_x, total_y = intent.total_x_amount, 0
        else:
            side = [b for b in selected.existing_bins if b <= active_bin_id]
            total_x, total_y = 0, intent.total_y_amount or intent.total_x_amount

        bin_range = selected
        if side:
            bin_range = BinRange(
                min_bin_id=side[0],
                max_bin_id=side[-1],
                existing_bins=tuple(side),
                liquidity_depth=len(side),
                is_popular=selected.is_popular,
                description=f"{selected.description} (one-sided {'X' if use_token_x else 'Y'})",
            )
        logger.info(f"One-sided position range: [{bin_range.min_bin_id}, {bin_range.max_bin_id}]")

        one_sided = PositionIntent(
            pool_address=intent.pool_address,
            user=intent.user,
            total_x_amount=total_x,
            total_y_amount=total_y,
            strategy_type=intent.strategy_type,
            risk_profile=profile,
            use_auto_fill=False,
        )
        return await self._orchestrator.create_position(one_sided, bin_range, backend, rpc)

    async def add_liquidity(
        self,
        request: AddLiquidityRequest,
        signer: Optional[SignerBackend] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        return await self._orchestrator.add_liquidity(request, self._require_signer(signer), rpc)

    async def remove_liquidity(
        self,
        request: RemoveLiquidityRequest,
        signer: Optional[SignerBackend] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        return await self._orchestrator.remove_liquidity(request, self._require_signer(signer), rpc)

    async def remove_liquidity_from_position(
        self,
        pool_address: str,
        position: str,
        user: Optional[str] = None,
        percentage: float = 100,
        should_claim_and_close: bool = True,
        signer: Optional[SignerBackend] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        return await self._orchestrator.remove_liquidity_from_position(
            pool_address,
            position,
            self._require_signer(signer),
            percentage=percentage,
            should_claim_and_close=should_claim_and_close,
            user=user,
            rpc=rpc,
        )

    async def claim_fees(
        self,
        pool_address: str,
        position: str,
        signer: Optional[SignerBackend] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        return await self._orchestrator.claim_fees(pool_address, position, self._require_signer(signer), rpc)

    async def claim_all_fees(
        self,
        pool_address: str,
        user: Optional[str] = None,
        signer: Optional[SignerBackend] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        return await self._orchestrator.claim_all_fees(
            pool_address, self._require_signer(signer), user=user, rpc=rpc
        )

    async def close_position(
        self,
        pool_address: str,
        position: str,
        signer: Optional[SignerBackend] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        return await self._orchestrator.close_position(pool_address, position, self._require_signer(signer), rpc)

    # ========== Queries ==========

    async def get_active_bin(self, pool_address: str, rpc: Optional[RpcClient] = None) -> ActiveBin:
        return await self._resolver.get_active_bin(pool_address, rpc or self._rpc)

    async def get_user_positions(
        self,
        pool_address: str,
        user: str,
        rpc: Optional[RpcClient] = None,
    ) -> List[PositionInfo]:
        pool = await self._pool_cache.get(pool_address, rpc or self._rpc)
        return list(await pool.get_positions_by_user_and_pool(user))

    async def get_position_info(
        self,
        pool_address: str,
        position: str,
        rpc: Optional[RpcClient] = None,
    ) -> PositionInfo:
        pool = await self._pool_cache.get(pool_address, rpc or self._rpc)
        return await pool.get_position(position)

    async def validate_connection(self, pool_address: str, rpc: Optional[RpcClient] = None) -> bool:
        """True when the pool's active bin can be read"""
        try:
            await self.get_active_bin(pool_address, rpc)
        except Exception as e:
            logger.warning(f"Connection validation failed for {pool_address}: {e}")
            return False
        return True

    # ========== Cache ==========

    def clear_cache(self):
        """Drop pool handles and resolved ranges"""
        self._pool_cache.clear()
        self._resolver.clear()

    def cache_stats(self) -> CacheStats:
        return CacheStats(
            pool_handles=len(self._pool_cache),
            bin_ranges=len(self._resolver),
            pool_keys=self._pool_cache.keys(),
            bin_range_keys=self._resolver.keys(),
        )

    # ========== Lifecycle ==========

    def _require_signer(self, signer: Optional[SignerBackend]) -> SignerBackend:
        backend = signer or self._signer
        if backend is None:
            raise SignerError.not_configured()
        return backend

    async def close(self):
        """Close the RPC client if the engine created it"""
        if self._owns_rpc:
            await self._rpc.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"PositionEngine(endpoint={self._rpc.endpoint}, pools={len(self._pool_cache)})"
