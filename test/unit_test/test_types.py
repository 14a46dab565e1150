"""
Test Types Module

Tests for dlmm_range_engine.types package.
"""

import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def test_bin_range():
    """Test BinRange normalization and bounds"""
    from dlmm_range_engine.types import BinRange

    bin_range = BinRange(990, 1010, existing_bins=(1005, 990, 1005, 1000), description="test")

    assert bin_range.existing_bins == (990, 1000, 1005)
    assert bin_range.bin_count == 3
    assert bin_range.width == 21
    assert bin_range.contains(990) and bin_range.contains(1010)
    assert not bin_range.contains(1011)
    assert "990" in str(bin_range)

    for bad in (lambda: BinRange(10, 5), lambda: BinRange(0, 5, existing_bins=(6,))):
        try:
            bad()
            assert False, "Should reject an inconsistent range"
        except ValueError:
            pass

    # BinRange is frozen (immutable)
    try:
        bin_range.min_bin_id = 0
        assert False, "Should not be able to modify frozen dataclass"
    except AttributeError:
        pass


def test_risk_profile_parse():
    """Test RiskProfile parsing"""
    from dlmm_range_engine.types import RiskProfile

    assert RiskProfile.parse(" Conservative ") is RiskProfile.CONSERVATIVE
    assert RiskProfile.parse(RiskProfile.AGGRESSIVE) is RiskProfile.AGGRESSIVE
    assert str(RiskProfile.MODERATE) == "moderate"

    try:
        RiskProfile.parse("yolo")
        assert False, "Should reject unknown profile"
    except ValueError as e:
        assert "yolo" in str(e)


def test_intent_amounts():
    """Test PositionIntent SOL conversion and auto-fill flag"""
    from dlmm_range_engine.types import PositionIntent, lamports_to_sol

    intent = PositionIntent("pool", "user", total_x_amount=1_500_000_000)
    assert intent.required_sol == Decimal("1.5")
    assert intent.needs_auto_fill

    assert not PositionIntent("pool", "user", 1, total_y_amount=5).needs_auto_fill
    assert not PositionIntent("pool", "user", 1, use_auto_fill=False).needs_auto_fill
    assert lamports_to_sol(1) == Decimal("0.000000001")


def test_position_info():
    """Test PositionInfo aggregates"""
    from dlmm_range_engine.types import PositionBin, PositionInfo

    position = PositionInfo(
        address="pos",
        lower_bin_id=10,
        upper_bin_id=12,
        bins=[PositionBin(10, 5, 0), PositionBin(11, 3, 2), PositionBin(12, 0, 7)],
    )

    assert position.bin_ids == [10, 11, 12]
    assert position.total_x_amount == 8
    assert position.total_y_amount == 9
    assert not position.has_fees
    position.fee_y = 1
    assert position.has_fees


def test_cost_estimate():
    """Test CostEstimate total"""
    from dlmm_range_engine.types import CostEstimate

    cost = CostEstimate(Decimal("0.057"), Decimal("0.015"), bins_used=11, compute_units_estimate=400_000)
    assert cost.total == Decimal("0.072")
    assert cost.no_bin_creation_needed


def test_orchestration_result():
    """Test OrchestrationResult status helpers"""
    from dlmm_range_engine.errors import InsufficientFunds
    from dlmm_range_engine.types import OperationState, OrchestrationResult

    ok = OrchestrationResult("claim", OperationState.CONFIRMED, signatures=["sig1"], total_transactions=1)
    assert ok.is_success and not ok.is_failed
    assert ok.user_message is None
    assert "CONFIRMED" in str(ok)

    partial = OrchestrationResult(
        "claim_all",
        OperationState.FAILED,
        signatures=["sig1"],
        total_transactions=2,
        error=InsufficientFunds("not enough", token="SOL"),
    )
    assert partial.is_partial
    assert partial.completed == 1
    assert "1/2" in str(partial)
    assert partial.user_message.startswith("Insufficient SOL")

    assert OperationState.FAILED.is_terminal
    assert not OperationState.SIGNED.is_terminal


def test_cache_stats():
    """Test CacheStats serialization"""
    from dlmm_range_engine.types import CacheStats

    stats = CacheStats(1, 2, pool_keys=["a|b"], bin_range_keys=["x", "y"])
    data = stats.to_dict()

    assert data == {"pool_handles": 1, "bin_ranges": 2, "pool_keys": ["a|b"], "bin_range_keys": ["x", "y"]}
    data["pool_keys"].append("c")
    assert stats.pool_keys == ["a|b"]


def main():
    """Run all type tests"""
    print("=" * 60)
    print("DLMM Range Engine Types Tests")
    print("=" * 60)

    tests = [
        test_bin_range,
        test_risk_profile_parse,
        test_intent_amounts,
        test_position_info,
        test_cost_estimate,
        test_orchestration_result,
        test_cache_stats,
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
    success = main()
    sys.exit(0 if success else 1)
