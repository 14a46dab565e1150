"""
Test Cost Estimator and Balance Validator
"""

import asyncio
from decimal import Decimal

import httpx

from dlmm_range_engine.config import CostConfig
from dlmm_range_engine.errors import InsufficientFunds, RpcError, user_message
from dlmm_range_engine.modules import BalanceValidator, CostEstimator

from fakes import FakeRpc, LAMPORTS_PER_SOL

WALLET = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


def sol(amount: str) -> int:
    return int(Decimal(amount) * LAMPORTS_PER_SOL)


def test_cost_total_independent_of_bins():
    """Total is rent + fees for any bin count"""
    estimator = CostEstimator(CostConfig())

    for n in (0, 1, 7, 69):
        cost = estimator.estimate(n)
        assert cost.total == Decimal("0.072")
        assert cost.bins_used == n
        assert cost.no_bin_creation_needed
        assert cost.compute_units_estimate > 0


def test_cost_fees_only():
    """Existing-position operations pay no rent"""
    cost = CostEstimator(CostConfig()).estimate_fees_only(5)
    assert cost.position_rent == 0
    assert cost.total == Decimal("0.015")


def test_cost_custom_constants():
    config = CostConfig(position_rent=Decimal("0.1"), transaction_fees=Decimal("0.01"), compute_units=1)
    assert CostEstimator(config).estimate(3).total == Decimal("0.11")


def test_balance_shortfall():
    """0.05 SOL available against 0.02 + 0.072 needed"""
    rpc = FakeRpc(balance_lamports=sol("0.05"))
    cost = CostEstimator(CostConfig()).estimate(10)

    result = asyncio.run(BalanceValidator().validate(WALLET, Decimal("0.02"), cost, rpc))

    assert not result.is_valid
    assert result.available == Decimal("0.05")
    assert result.required == Decimal("0.092")
    assert result.shortfall == Decimal("0.042")
    assert isinstance(result.error, InsufficientFunds)
    assert result.error.shortfall == Decimal("0.042")
    assert "Insufficient SOL" in result.message


def test_balance_sufficient():
    rpc = FakeRpc(balance_lamports=sol("1"))
    cost = CostEstimator(CostConfig()).estimate(10)

    result = asyncio.run(BalanceValidator().validate(WALLET, "0.5", cost, rpc))

    assert result.is_valid
    assert result.shortfall == 0
    assert result.error is None


def test_balance_exactly_enough():
    rpc = FakeRpc(balance_lamports=sol("0.092"))
    cost = CostEstimator(CostConfig()).estimate(1)

    result = asyncio.run(BalanceValidator().validate(WALLET, 0.02, cost, rpc))

    assert result.is_valid


def test_balance_rpc_failure_is_returned_not_raised():
    """Unreachable RPC gives an invalid result with zero balance"""
    rpc = FakeRpc(balance_error=httpx.ConnectError("connection refused"))
    cost = CostEstimator(CostConfig()).estimate(1)

    result = asyncio.run(BalanceValidator().validate(WALLET, Decimal("0.02"), cost, rpc))

    assert not result.is_valid
    assert result.available == 0
    assert result.shortfall == result.required
    assert isinstance(result.error, RpcError)
    assert "Connection error" in user_message(result.error)


def main():
    """Run all validation tests"""
    print("=" * 60)
    print("Cost & Balance Validation Tests")
    print("=" * 60)

    tests = [
        test_cost_total_independent_of_bins,
        test_cost_fees_only,
        test_cost_custom_constants,
        test_balance_shortfall,
        test_balance_sufficient,
        test_balance_exactly_enough,
        test_balance_rpc_failure_is_returned_not_raised,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            print(f"  {test.__name__}: PASSED")
            passed += 1
        except Exception as e:
            print(f"  {test.__name__}: FAILED: {e}")
            failed += 1

    print("=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return failed == 0


if __name__ == "__main__":
    import sys

    sys.exit(0 if main() else 1)
