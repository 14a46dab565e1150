"""
Tests for the PositionEngine facade
"""

import asyncio

import pytest
from solders.keypair import Keypair

from dlmm_range_engine import PositionEngine
from dlmm_range_engine.errors import NoSuitableRange, SignerError
from dlmm_range_engine.infra import LocalKeypairBackend, LocalSigner
from dlmm_range_engine.modules import OrchestratorConfig
from dlmm_range_engine.types import PositionIntent, RiskProfile, StrategyType

from fakes import FakeConnector, FakePoolClient, POOL, make_position


def quiet_config() -> OrchestratorConfig:
    return OrchestratorConfig(
        simulate_first=True,
        skip_preflight=False,
        preflight_commitment="confirmed",
        confirmation_timeout=1.0,
        signer_timeout=1.0,
    )


@pytest.fixture
def engine(fake_rpc, connector, wallet):
    return PositionEngine(connector, rpc=fake_rpc, keypair=wallet, orchestrator_config=quiet_config())


class TestRanges:
    """Range resolution through the facade"""

    def test_resolve_ranges(self, engine, connector):
        ranges = asyncio.run(engine.resolve_ranges(POOL, 69, "conservative"))

        assert ranges
        assert all(r.contains(1000) for r in ranges)
        stats = engine.cache_stats()
        assert stats.pool_handles == 1
        assert stats.bin_ranges == 1
        assert stats.bin_range_keys[0].startswith(f"{POOL}|conservative|69|")

    def test_clear_cache(self, engine, connector):
        asyncio.run(engine.resolve_ranges(POOL, 69))
        engine.clear_cache()

        assert engine.cache_stats().to_dict() == {
            "pool_handles": 0,
            "bin_ranges": 0,
            "pool_keys": [],
            "bin_range_keys": [],
        }
        asyncio.run(engine.resolve_ranges(POOL, 69))
        assert connector.calls == 2

    def test_cache_stats_drop_expired_ranges(self, fake_rpc, connector, wallet):
        now = [0.0]
        engine = PositionEngine(
            connector, rpc=fake_rpc, keypair=wallet, range_cache_ttl=120.0, clock=lambda: now[0]
        )
        asyncio.run(engine.resolve_ranges(POOL, 69))
        assert engine.cache_stats().bin_ranges == 1

        now[0] += 121
        stats = engine.cache_stats()
        assert stats.bin_ranges == 0
        assert stats.bin_range_keys == []
        assert stats.pool_handles == 1

    def test_fallback_after_no_ranges(self, engine):
        ranges = asyncio.run(engine.resolve_ranges_or_fallback(POOL, 60, RiskProfile.CONSERVATIVE))

        assert len(ranges) == 1
        assert (ranges[0].min_bin_id, ranges[0].max_bin_id) == (970, 1030)
        assert not ranges[0].is_popular

    def test_fallback_without_known_active_bin_raises(self, engine, connector):
        connector.pool_factory = lambda address, rpc: FakePoolClient(
            address, rpc, active_bin_error=RuntimeError("account not initialized")
        )
        with pytest.raises(NoSuitableRange):
            asyncio.run(engine.resolve_ranges_or_fallback(POOL, 69))

    def test_safe_range_recommendations(self, engine):
        picks = asyncio.run(engine.get_safe_range_recommendations(POOL))

        assert picks.all
        assert picks.conservative.bin_count == max(r.bin_count for r in picks.all)
        for pick in (picks.conservative, picks.balanced, picks.aggressive):
            assert pick in picks.all

    def test_validate_connection(self, engine, connector):
        assert asyncio.run(engine.validate_connection(POOL))

        engine.clear_cache()
        connector.error = RuntimeError("dns failure")
        assert not asyncio.run(engine.validate_connection(POOL))


class TestOperations:
    """Write operations through the facade"""

    def test_requires_signer(self, fake_rpc, connector):
        engine = PositionEngine(connector, rpc=fake_rpc)
        intent = PositionIntent(POOL, "Wallet111", total_x_amount=1)
        ranges = asyncio.run(engine.resolve_ranges(POOL, 69))

        with pytest.raises(SignerError):
            asyncio.run(engine.create_position(intent, ranges[0]))
        with pytest.raises(SignerError):
            engine.pubkey

    def test_create_position(self, engine, fake_rpc, wallet):
        intent = PositionIntent(POOL, engine.pubkey, total_x_amount=100_000_000)
        ranges = asyncio.run(engine.resolve_ranges(POOL, 69))

        result = asyncio.run(engine.create_position(intent, ranges[0]))

        assert result.is_success
        assert engine.pubkey == str(wallet.pubkey())
        assert len(fake_rpc.sent) == 1

    def test_explicit_signer_overrides_default(self, engine, connector):
        other = LocalKeypairBackend(LocalSigner(Keypair()))
        intent = PositionIntent(POOL, other.pubkey, total_x_amount=1_000)
        ranges = asyncio.run(engine.resolve_ranges(POOL, 69))

        result = asyncio.run(engine.create_position(intent, ranges[0], signer=other))

        assert result.is_success
        assert connector.pools[POOL].calls[0][2] == other.pubkey

    def test_one_sided_token_x(self, engine, connector):
        intent = PositionIntent(POOL, engine.pubkey, total_x_amount=5_000, strategy_type=StrategyType.SPOT)

        result = asyncio.run(engine.create_one_sided_position(intent, use_token_x=True))

        assert result.is_success
        _, _, _, total_x, total_y, strategy = connector.pools[POOL].calls[0]
        assert (total_x, total_y) == (5_000, 0)
        assert strategy.min_bin_id >= 1000
        assert strategy.max_bin_id > strategy.min_bin_id

    def test_one_sided_token_y(self, engine, connector):
        intent = PositionIntent(POOL, engine.pubkey, total_x_amount=0, total_y_amount=7_000,
                                strategy_type=StrategyType.CURVE)

        result = asyncio.run(engine.create_one_sided_position(intent, use_token_x=False))

        assert result.is_success
        _, _, _, total_x, total_y, strategy = connector.pools[POOL].calls[0]
        assert (total_x, total_y) == (0, 7_000)
        assert strategy.max_bin_id <= 1000
        assert strategy.strategy_type == StrategyType.CURVE

    def test_remove_and_queries(self, fake_rpc, wallet):
        position = make_position()
        connector = FakeConnector(lambda address, rpc: FakePoolClient(address, rpc, positions=[position]))
        engine = PositionEngine(connector, rpc=fake_rpc, keypair=wallet, orchestrator_config=quiet_config())

        assert asyncio.run(engine.get_user_positions(POOL, engine.pubkey)) == [position]
        assert asyncio.run(engine.get_position_info(POOL, position.address)) is position

        result = asyncio.run(engine.remove_liquidity_from_position(POOL, position.address, percentage=25))
        assert result.is_success
        assert connector.pools[POOL].calls[0][5] == [2500] * 11

    def test_repr(self, engine):
        assert "rpc.test" in repr(engine)
