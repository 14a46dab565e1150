"""
Cost estimation and balance validation
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from ..config import CostConfig, config as global_config
from ..errors import EngineError, InsufficientFunds, classify_error
from ..infra import RpcClient
from ..types import BalanceCheckResult, CostEstimate, lamports_to_sol

logger = logging.getLogger(__name__)

Amount = Union[Decimal, int, float, str]


def _to_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.02 from turning into 0.0200000000000000004
    return Decimal(str(value))


class CostEstimator:
    """
    SOL cost of opening a position

    Ranges only reuse existing bins, so no bin-array rent is charged and
    the total does not depend on the number of bins.
    """

    def __init__(self, cost_config: Optional[CostConfig] = None):
        self._config = cost_config or global_config.cost

    def estimate(self, bins_used: int) -> CostEstimate:
        return CostEstimate(
            position_rent=self._config.position_rent,
            transaction_fees=self._config.transaction_fees,
            bins_used=bins_used,
            compute_units_estimate=self._config.compute_units,
        )

    def estimate_fees_only(self, bins_used: int = 0) -> CostEstimate:
        """Cost of an operation on an existing position (no new rent)"""
        return CostEstimate(
            position_rent=Decimal(0),
            transaction_fees=self._config.transaction_fees,
            bins_used=bins_used,
            compute_units_estimate=self._config.compute_units,
        )


class BalanceValidator:
    """
    Checks a wallet's SOL balance against required amount plus cost

    RPC failures do not raise: they come back as an invalid result with
    zero balance and the connection error attached.
    """

    async def validate(
        self,
        account: str,
        required_amount: Amount,
        cost: CostEstimate,
        rpc: RpcClient,
    ) -> BalanceCheckResult:
        """
        Args:
            account: Wallet address
            required_amount: SOL needed on top of the cost estimate
            cost: Cost estimate for the operation
            rpc: RPC client to read the balance through

        Returns:
            BalanceCheckResult
        """
        total = _to_decimal(required_amount) + cost.total

        try:
            lamports = await rpc.get_balance(account)
        except Exception as e:
            error: EngineError = classify_error(e, endpoint=rpc.endpoint)
            logger.warning(f"Balance read failed for {account}: {error}")
            return BalanceCheckResult(
                is_valid=False,
                available=Decimal(0),
                required=total,
                shortfall=total,
                error=error,
            )

        available = lamports_to_sol(lamports)
        if available >= total:
            logger.debug(f"Balance ok for {account}: {available} >= {total} SOL")
            return BalanceCheckResult(
                is_valid=True,
                available=available,
                required=total,
            )

        error = InsufficientFunds.sol_balance(total, available)
        logger.info(f"Balance check failed for {account}: {error.message}")
        return BalanceCheckResult(
            is_valid=False,
            available=available,
            required=total,
            shortfall=total - available,
            error=error,
        )
