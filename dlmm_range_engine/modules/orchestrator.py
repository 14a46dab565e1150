"""
Transaction Orchestrator

Drives one logical operation (create position, add/remove liquidity,
claim fees, close position) through

    BUILT -> BALANCE_CHECKED -> SIGNED -> SUBMITTED -> CONFIRMED

with FAILED reachable from every non-terminal state. Multi-transaction
operations repeat SIGNED -> SUBMITTED -> CONFIRMED for each transaction in
order and stop at the first failure. Failures are returned as results
carrying the typed cause, never raised.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Sequence

from solders.keypair import Keypair

from ..config import config as global_config
from ..errors import (
    EngineError,
    RpcError,
    InsufficientFunds,
    PositionNotFound,
    TransactionError,
    SimulationFailed,
    SignerError,
    ConfigurationError,
    UnknownError,
    classify_error,
    is_insufficient_funds_message,
)
from ..infra import (
    RpcClient,
    SignerBackend,
    CorrelationContext,
    log_with_correlation,
    partial_sign,
)
from ..protocols import PoolClient, normalize_transactions
from ..protocols.meteora import BASIS_POINT_MAX, auto_fill_y_by_strategy
from ..types import (
    AddLiquidityRequest,
    BinRange,
    CostEstimate,
    OperationState,
    OrchestrationResult,
    PositionIntent,
    RemoveLiquidityRequest,
    StrategyParameters,
    StrategyType,
)
from .pool_cache import PoolHandleCache
from .validation import BalanceValidator, CostEstimator

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS = {
    None: {OperationState.BUILT},
    OperationState.BUILT: {OperationState.BALANCE_CHECKED},
    # An operation with nothing to submit completes straight after the check
    OperationState.BALANCE_CHECKED: {OperationState.SIGNED, OperationState.CONFIRMED},
    OperationState.SIGNED: {OperationState.SUBMITTED},
    OperationState.SUBMITTED: {OperationState.CONFIRMED},
    # Next transaction of a sequence
    OperationState.CONFIRMED: {OperationState.SIGNED},
    OperationState.FAILED: set(),
}


@dataclass
class OrchestratorConfig:
    """
    Orchestrator runtime configuration

    Unset values are pulled from the global config (TxConfig / SignerConfig).
    """
    simulate_first: bool = None
    skip_preflight: bool = None
    preflight_commitment: str = None
    confirmation_timeout: float = None
    signer_timeout: float = None

    def __post_init__(self):
        if self.simulate_first is None:
            self.simulate_first = global_config.tx.simulate_first
        if self.skip_preflight is None:
            self.skip_preflight = global_config.tx.skip_preflight
        if self.preflight_commitment is None:
            self.preflight_commitment = global_config.tx.preflight_commitment
        if self.confirmation_timeout is None:
            self.confirmation_timeout = global_config.tx.confirmation_timeout
        if self.signer_timeout is None:
            self.signer_timeout = global_config.signer.timeout_seconds


@dataclass
class BuiltOperation:
    """Output of the BUILT step"""
    transactions: List[bytes]
    cost: CostEstimate
    payer: str
    required_sol: Decimal = Decimal(0)
    extra_signers: Sequence[Keypair] = field(default_factory=list)
    position_identity: Optional[Keypair] = None
    position_address: Optional[str] = None


Builder = Callable[[RpcClient], Awaitable[BuiltOperation]]


class _Operation:
    """State tracker for one logical operation"""

    def __init__(self, name: str):
        self.name = name
        self.state: Optional[OperationState] = None
        self.transitions: List[OperationState] = []

    def advance(self, state: OperationState, step: int = None, total: int = None, **extra):
        if state != OperationState.FAILED and state not in _ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"{self.name}: illegal transition {self.state} -> {state}")
        if state == OperationState.FAILED and self.state == OperationState.FAILED:
            raise RuntimeError(f"{self.name}: already failed")
        self.state = state
        self.transitions.append(state)
        log_with_correlation(
            logging.WARNING if state == OperationState.FAILED else logging.INFO,
            f"-> {state.value}",
            self.name,
            step=step,
            total_steps=total,
            log=logger,
            **extra,
        )


class TransactionOrchestrator:
    """
    Signer-agnostic operation runner

    Only the signer's capability record is consulted; which backend is
    behind it never changes the flow.

    Usage:
        orchestrator = TransactionOrchestrator(rpc, pool_cache, CostEstimator(), BalanceValidator())
        result = await orchestrator.create_position(intent, bin_range, backend)
        if result.is_failed:
            print(result.user_message)
    """

    def __init__(
        self,
        rpc: RpcClient,
        pool_cache: PoolHandleCache,
        cost_estimator: CostEstimator,
        balance_validator: BalanceValidator,
        config: Optional[OrchestratorConfig] = None,
    ):
        self._rpc = rpc
        self._pool_cache = pool_cache
        self._cost_estimator = cost_estimator
        self._balance_validator = balance_validator
        self._config = config or OrchestratorConfig()

    # ========== Operations ==========

    async def create_position(
        self,
        intent: PositionIntent,
        bin_range: BinRange,
        signer: SignerBackend,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        """
        Create a position over bin_range and deposit the intent amounts

        A fresh keypair identifies the position; it co-signs the creating
        transaction and is returned as position_identity.
        """
        position_keypair = Keypair()
        position_address = str(position_keypair.pubkey())

        async def build(conn: RpcClient) -> BuiltOperation:
            pool = await self._pool_cache.get(intent.pool_address, conn)
            total_y = await self._resolve_y_amount(
                pool,
                intent.total_x_amount,
                intent.total_y_amount,
                intent.needs_auto_fill,
                bin_range.min_bin_id,
                bin_range.max_bin_id,
                intent.strategy_type,
            )
            bundle = await pool.initialize_position_and_add_liquidity_by_strategy(
                position=position_address,
                user=intent.user,
                total_x_amount=intent.total_x_amount,
                total_y_amount=total_y,
                strategy=StrategyParameters(
                    min_bin_id=bin_range.min_bin_id,
                    max_bin_id=bin_range.max_bin_id,
                    strategy_type=intent.strategy_type,
                ),
            )
            return BuiltOperation(
                transactions=self._require_transactions(bundle),
                cost=self._cost_estimator.estimate(bin_range.bin_count),
                payer=intent.user,
                required_sol=intent.required_sol,
                extra_signers=[position_keypair],
                position_identity=position_keypair,
                position_address=position_address,
            )

        return await self._run("create_position", signer, rpc, build)

    async def add_liquidity(
        self,
        request: AddLiquidityRequest,
        signer: SignerBackend,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        async def build(conn: RpcClient) -> BuiltOperation:
            pool = await self._pool_cache.get(request.pool_address, conn)
            total_y = await self._resolve_y_amount(
                pool,
                request.total_x_amount,
                request.total_y_amount,
                request.needs_auto_fill,
                request.min_bin_id,
                request.max_bin_id,
                request.strategy_type,
            )
            bundle = await pool.add_liquidity_by_strategy(
                position=request.position,
                user=request.user,
                total_x_amount=request.total_x_amount,
                total_y_amount=total_y,
                strategy=StrategyParameters(
                    min_bin_id=request.min_bin_id,
                    max_bin_id=request.max_bin_id,
                    strategy_type=request.strategy_type,
                ),
            )
            return BuiltOperation(
                transactions=self._require_transactions(bundle),
                cost=self._cost_estimator.estimate_fees_only(request.max_bin_id - request.min_bin_id + 1),
                payer=request.user,
                required_sol=request.required_sol,
            )

        return await self._run("add_liquidity", signer, rpc, build)

    async def remove_liquidity(
        self,
        request: RemoveLiquidityRequest,
        signer: SignerBackend,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        async def build(conn: RpcClient) -> BuiltOperation:
            _check_bps(request)
            pool = await self._pool_cache.get(request.pool_address, conn)
            bundle = await pool.remove_liquidity(
                position=request.position,
                user=request.user,
                from_bin_id=request.from_bin_id,
                to_bin_id=request.to_bin_id,
                liquidity_bps_to_remove=list(request.bps_to_remove),
                should_claim_and_close=request.should_claim_and_close,
            )
            return BuiltOperation(
                transactions=self._require_transactions(bundle),
                cost=self._cost_estimator.estimate_fees_only(request.to_bin_id - request.from_bin_id + 1),
                payer=request.user,
            )

        return await self._run("remove_liquidity", signer, rpc, build)

    async def remove_liquidity_from_position(
        self,
        pool_address: str,
        position: str,
        signer: SignerBackend,
        percentage: float = 100,
        should_claim_and_close: bool = True,
        user: Optional[str] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        """
        Remove a percentage of liquidity from every bin of a position

        The position is looked up among the user's positions in the pool
        (the signer's when user is not given).
        """
        async def build(conn: RpcClient) -> BuiltOperation:
            if not 0 < percentage <= 100:
                raise ConfigurationError.invalid("percentage", f"{percentage} not in (0, 100]")
            owner = user or signer.pubkey
            pool = await self._pool_cache.get(pool_address, conn)
            positions = await pool.get_positions_by_user_and_pool(owner)
            info = next((p for p in positions if p.address == position), None)
            if info is None:
                raise PositionNotFound.not_found(position)
            if not info.bins:
                raise PositionNotFound.no_bins(position)

            from_bin_id, to_bin_id = min(info.bin_ids), max(info.bin_ids)
            bps = int(round(percentage * 100))
            request = RemoveLiquidityRequest(
                pool_address=pool_address,
                user=owner,
                position=position,
                from_bin_id=from_bin_id,
                to_bin_id=to_bin_id,
                bps_to_remove=[bps] * (to_bin_id - from_bin_id + 1),
                should_claim_and_close=should_claim_and_close,
            )
            bundle = await pool.remove_liquidity(
                position=request.position,
                user=request.user,
                from_bin_id=request.from_bin_id,
                to_bin_id=request.to_bin_id,
                liquidity_bps_to_remove=request.bps_to_remove,
                should_claim_and_close=request.should_claim_and_close,
            )
            return BuiltOperation(
                transactions=self._require_transactions(bundle),
                cost=self._cost_estimator.estimate_fees_only(len(info.bins)),
                payer=owner,
            )

        return await self._run("remove_liquidity", signer, rpc, build)

    async def claim_fees(
        self,
        pool_address: str,
        position: str,
        signer: SignerBackend,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        async def build(conn: RpcClient) -> BuiltOperation:
            pool = await self._pool_cache.get(pool_address, conn)
            info = await pool.get_position(position)
            bundle = await pool.claim_swap_fee(owner=signer.pubkey, position=info)
            return BuiltOperation(
                transactions=self._require_transactions(bundle),
                cost=self._cost_estimator.estimate_fees_only(len(info.bins)),
                payer=signer.pubkey,
            )

        return await self._run("claim_fees", signer, rpc, build)

    async def claim_all_fees(
        self,
        pool_address: str,
        signer: SignerBackend,
        user: Optional[str] = None,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        """Claim fees of every user position in the pool; nothing to claim is a success"""
        async def build(conn: RpcClient) -> BuiltOperation:
            owner = user or signer.pubkey
            pool = await self._pool_cache.get(pool_address, conn)
            positions = await pool.get_positions_by_user_and_pool(owner)
            transactions: List[bytes] = []
            if positions:
                bundle = await pool.claim_all_swap_fee(owner=owner, positions=positions)
                transactions = normalize_transactions(bundle)
            else:
                logger.info(f"No positions to claim in {pool_address}")
            return BuiltOperation(
                transactions=transactions,
                cost=self._cost_estimator.estimate_fees_only(sum(len(p.bins) for p in positions)),
                payer=signer.pubkey,
            )

        return await self._run("claim_all_fees", signer, rpc, build)

    async def close_position(
        self,
        pool_address: str,
        position: str,
        signer: SignerBackend,
        rpc: Optional[RpcClient] = None,
    ) -> OrchestrationResult:
        async def build(conn: RpcClient) -> BuiltOperation:
            pool = await self._pool_cache.get(pool_address, conn)
            info = await pool.get_position(position)
            bundle = await pool.close_position(owner=signer.pubkey, position=info)
            return BuiltOperation(
                transactions=self._require_transactions(bundle),
                cost=self._cost_estimator.estimate_fees_only(len(info.bins)),
                payer=signer.pubkey,
            )

        return await self._run("close_position", signer, rpc, build)

    async def simulate(self, tx_bytes: bytes, rpc: Optional[RpcClient] = None):
        """
        Dry-run a transaction

        Raises:
            InsufficientFunds: Simulation ran out of lamports
            SimulationFailed: Any other simulation error, payload preserved
            RpcError: Simulation request failed
        """
        conn = rpc or self._rpc
        value = await conn.simulate_transaction(tx_bytes)
        err = value.get("err")
        if not err:
            return value

        logs = value.get("logs") or []
        if is_insufficient_funds_message(err) or any(is_insufficient_funds_message(line) for line in logs):
            raise InsufficientFunds.from_simulation(err, logs)
        raise SimulationFailed.from_payload(err, logs)

    # ========== State machine ==========

    async def _run(
        self,
        name: str,
        signer: SignerBackend,
        rpc: Optional[RpcClient],
        build: Builder,
    ) -> OrchestrationResult:
        with CorrelationContext(name):
            op = _Operation(name)
            result = OrchestrationResult(operation=name, state=OperationState.BUILT, transitions=op.transitions)
            conn = rpc or self._rpc
            try:
                conn = rpc or signer.capabilities().native_connection or self._rpc
                built = await build(conn)
            except Exception as e:
                return self._fail(op, result, classify_error(e, conn.endpoint))

            total = len(built.transactions)
            result.total_transactions = total
            result.position_identity = built.position_identity
            result.position_address = built.position_address
            result.cost_estimate = built.cost
            op.advance(OperationState.BUILT, transactions=total)

            balance = await self._balance_validator.validate(
                built.payer, built.required_sol, built.cost, conn
            )
            result.balance = balance
            if not balance.is_valid:
                return self._fail(op, result, balance.error)
            op.advance(OperationState.BALANCE_CHECKED)

            if total == 0:
                op.advance(OperationState.CONFIRMED)
                result.state = OperationState.CONFIRMED
                return result

            for step, tx_bytes in enumerate(built.transactions, start=1):
                try:
                    signature = await self._submit(op, tx_bytes, built.extra_signers, signer, conn, step, total)
                except Exception as e:
                    error = classify_error(e, conn.endpoint)
                    result.failed_signature = getattr(error, "signature", None)
                    if result.signatures:
                        log_with_correlation(
                            logging.WARNING,
                            f"Partial completion: {len(result.signatures)}/{total} confirmed "
                            f"({', '.join(result.signatures)})",
                            name,
                            log=logger,
                        )
                    return self._fail(op, result, error, step=step, total=total)
                result.signatures.append(signature)

            result.state = OperationState.CONFIRMED
            return result

    async def _submit(
        self,
        op: _Operation,
        tx_bytes: bytes,
        extra_signers: Sequence[Keypair],
        signer: SignerBackend,
        conn: RpcClient,
        step: int,
        total: int,
    ) -> str:
        if extra_signers:
            tx_bytes = partial_sign(tx_bytes, extra_signers)

        if self._config.simulate_first:
            await self.simulate(tx_bytes, conn)

        caps = signer.capabilities()
        if not caps.can_sign:
            raise SignerError.not_ready()

        timeout = self._config.signer_timeout
        try:
            signed = await asyncio.wait_for(caps.sign(tx_bytes), timeout)
        except asyncio.TimeoutError as e:
            raise SignerError.timeout(timeout) from e
        op.advance(OperationState.SIGNED, step, total)

        signature = signed.signature
        if not signed.already_submitted:
            try:
                signature = await conn.send_transaction(
                    signed.raw,
                    skip_preflight=self._config.skip_preflight,
                    preflight_commitment=self._config.preflight_commitment,
                )
            except RpcError as e:
                raise _classify_send_error(e) from e
        op.advance(OperationState.SUBMITTED, step, total, signature=signature)

        confirmation = await conn.confirm_transaction(
            signature, timeout_seconds=self._config.confirmation_timeout
        )
        if confirmation.is_failed:
            raise TransactionError.on_chain(signature, confirmation.error)
        if not confirmation.confirmed:
            raise TransactionError.confirmation_failed(signature, "timed out waiting for confirmation")

        op.advance(OperationState.CONFIRMED, step, total, signature=signature)
        return signature

    def _fail(
        self,
        op: _Operation,
        result: OrchestrationResult,
        error: EngineError,
        step: int = None,
        total: int = None,
    ) -> OrchestrationResult:
        op.advance(OperationState.FAILED, step, total, error=str(error))
        result.state = OperationState.FAILED
        result.error = error
        return result

    # ========== Helpers ==========

    @staticmethod
    def _require_transactions(bundle) -> List[bytes]:
        transactions = normalize_transactions(bundle)
        if not transactions:
            raise UnknownError("Program client returned no transactions")
        return transactions

    async def _resolve_y_amount(
        self,
        pool: PoolClient,
        total_x_amount: int,
        total_y_amount: Optional[int],
        auto_fill: bool,
        min_bin_id: int,
        max_bin_id: int,
        strategy_type: StrategyType,
    ) -> int:
        """Caller amount, or the balanced amount for the active bin's reserve ratio"""
        if not auto_fill:
            return total_y_amount or 0
        try:
            active_bin = await pool.get_active_bin()
            total_y = auto_fill_y_by_strategy(
                active_bin.bin_id,
                pool.bin_step,
                total_x_amount,
                active_bin.x_amount,
                active_bin.y_amount,
                min_bin_id,
                max_bin_id,
                strategy_type,
            )
        except Exception as e:
            logger.warning(f"Auto-fill failed, using zero token Y amount: {e}")
            return 0
        logger.debug(f"Auto-filled token Y amount: {total_y}")
        return total_y


def _check_bps(request: RemoveLiquidityRequest):
    span = request.to_bin_id - request.from_bin_id + 1
    if span <= 0:
        raise ConfigurationError.invalid(
            "bin range", f"from_bin_id {request.from_bin_id} > to_bin_id {request.to_bin_id}"
        )
    if len(request.bps_to_remove) != span:
        raise ConfigurationError.invalid(
            "bps_to_remove", f"expected {span} values, got {len(request.bps_to_remove)}"
        )
    if any(not 0 <= bps <= BASIS_POINT_MAX for bps in request.bps_to_remove):
        raise ConfigurationError.invalid("bps_to_remove", f"values must be within 0..{BASIS_POINT_MAX}")


def _classify_send_error(error: RpcError) -> EngineError:
    """sendTransaction preflight failures carry the simulation result in the error data"""
    data = error.details.get("rpc_error_data") or {}
    logs = data.get("logs") if isinstance(data, dict) else None
    if is_insufficient_funds_message(error.message) or any(
        is_insufficient_funds_message(line) for line in logs or []
    ):
        return InsufficientFunds(error.message, token="SOL", original_error=error)
    if "simulation failed" in error.message.lower():
        payload = data.get("err") if isinstance(data, dict) else data
        return SimulationFailed(error.message, payload=payload, logs=logs)
    return TransactionError.send_failed(error.message, original_error=error)
