"""
Range Resolver

Picks bin ranges that most likely reuse bins already initialized on-chain,
without reading every bin. Each risk profile contributes a few window
widths centred on the active bin; inside each window a distance-based
probability model estimates which bins exist. Bins within 3 of the
active bin are always kept, and a per-profile minimum is enforced by
expanding outward from the active bin.

Results are cached per (pool, profile, width, primary endpoint) for a fixed TTL.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..config import config as global_config
from ..errors import NoSuitableRange
from ..infra import RpcClient, TtlCache
from ..infra.cache import Clock
from ..protocols.meteora import MIN_BIN_ID, MAX_BIN_ID, MAX_POSITION_WIDTH
from ..types import ActiveBin, BinRange, RangeResolution, RiskProfile
from .pool_cache import PoolHandleCache, validate_pool_address

logger = logging.getLogger(__name__)

# Bins this close to the active bin are always included
DETERMINISTIC_DISTANCE = 3

# Hard floor for any returned range, independent of profile
MIN_RANGE_BINS = 3

MAX_INCLUSION_PROBABILITY = 0.95
POPULARITY_THRESHOLD = 0.6
DISTANCE_DECAY = 0.05

FALLBACK_WIDTH = 61
FALLBACK_DESCRIPTION = "Safe price range around current market price"


@dataclass(frozen=True)
class RangePattern:
    """Window width centred on the active bin"""
    width: int
    name: str
    popularity: float

    @property
    def is_popular(self) -> bool:
        return self.popularity > POPULARITY_THRESHOLD


@dataclass(frozen=True)
class RiskParameters:
    """
    Per-profile tuning

    Attributes:
        patterns: Candidate windows, widest first
        probability_multiplier: Scales the base inclusion probability
        conservativeness: Scales the distance decay
        min_bins: Minimum bins a returned range must contain
    """
    patterns: Tuple[RangePattern, ...]
    probability_multiplier: float
    conservativeness: float
    min_bins: int


RISK_PARAMETERS: Dict[RiskProfile, RiskParameters] = {
    RiskProfile.CONSERVATIVE: RiskParameters(
        patterns=(
            RangePattern(69, "Conservative Max Range", 0.9),
            RangePattern(68, "Conservative Wide Range", 0.8),
            RangePattern(67, "Conservative Standard Range", 0.7),
        ),
        probability_multiplier=1.2,
        conservativeness=0.7,
        min_bins=6,
    ),
    RiskProfile.MODERATE: RiskParameters(
        patterns=(
            RangePattern(66, "Moderate Wide Range", 0.9),
            RangePattern(65, "Moderate Standard Range", 0.8),
            RangePattern(64, "Moderate Tight Range", 0.7),
        ),
        probability_multiplier=1.0,
        conservativeness=0.5,
        min_bins=4,
    ),
    RiskProfile.AGGRESSIVE: RiskParameters(
        patterns=(
            RangePattern(63, "Aggressive Wide Range", 0.9),
            RangePattern(62, "Aggressive Standard Range", 0.8),
            RangePattern(60, "Aggressive Tight Range", 0.7),
        ),
        probability_multiplier=0.8,
        conservativeness=0.3,
        min_bins=3,
    ),
}

# draw(bin_id, active_bin_id, profile) -> value in [0, 1)
Draw = Callable[[int, int, RiskProfile], float]


def base_probability(distance: int) -> float:
    """Likelihood a bin exists, by distance from the active bin"""
    if distance <= 2:
        return 0.95
    if distance <= 5:
        return 0.8
    if distance <= 10:
        return 0.6
    return 0.4


def inclusion_probability(distance: int, params: RiskParameters) -> float:
    adjusted = (
        base_probability(distance)
        * params.probability_multiplier
        * (1 - distance * params.conservativeness * DISTANCE_DECAY)
    )
    return min(adjusted, MAX_INCLUSION_PROBABILITY)


def inclusion_draw(bin_id: int, active_bin_id: int, profile: RiskProfile) -> float:
    """
    Deterministic stand-in for a uniform random draw

    Same inputs give the same value, so a recomputed range matches the
    one it replaces.
    """
    digest = hashlib.blake2b(
        f"{profile.value}:{active_bin_id}:{bin_id}".encode("utf-8"),
        digest_size=8,
    ).digest()
    return int.from_bytes(digest, "big") / 2 ** 64


def generate_likely_bins(
    active_bin_id: int,
    min_bin_id: int,
    max_bin_id: int,
    profile: RiskProfile,
    draw: Draw = inclusion_draw,
) -> Tuple[int, ...]:
    """
    Estimate which bins of [min_bin_id, max_bin_id] already exist

    Returns:
        Sorted bin IDs
    """
    params = RISK_PARAMETERS[profile]
    bins = set()

    for bin_id in range(min_bin_id, max_bin_id + 1):
        distance = abs(bin_id - active_bin_id)
        if distance <= DETERMINISTIC_DISTANCE:
            bins.add(bin_id)
        elif draw(bin_id, active_bin_id, profile) < inclusion_probability(distance, params):
            bins.add(bin_id)

    if min_bin_id <= active_bin_id <= max_bin_id:
        bins.add(active_bin_id)

    # Expand outward from the active bin, alternating below/above, until
    # the profile floor is met or both sides have left the window
    step = 1
    while len(bins) < params.min_bins:
        below, above = active_bin_id - step, active_bin_id + step
        if below < min_bin_id and above > max_bin_id:
            break
        for candidate in (below, above):
            if min_bin_id <= candidate <= max_bin_id and len(bins) < params.min_bins:
                bins.add(candidate)
        step += 1

    return tuple(sorted(bins))


def build_smart_ranges(
    active_bin_id: int,
    max_range_width: int,
    profile: RiskProfile,
    draw: Draw = inclusion_draw,
) -> List[BinRange]:
    """
    Candidate ranges for one profile, popular first then by bin count

    Patterns wider than max_range_width are skipped; ranges below the
    profile floor are discarded.
    """
    profile = RiskProfile.parse(profile)
    params = RISK_PARAMETERS[profile]
    floor = max(MIN_RANGE_BINS, params.min_bins)
    ranges: List[BinRange] = []

    for pattern in params.patterns:
        if pattern.width > max_range_width:
            logger.debug(f"Skipping {pattern.name}: width {pattern.width} > max {max_range_width}")
            continue

        min_bin_id = max(MIN_BIN_ID, active_bin_id - pattern.width // 2)
        max_bin_id = min(MAX_BIN_ID, min_bin_id + pattern.width - 1)
        bins = generate_likely_bins(active_bin_id, min_bin_id, max_bin_id, profile, draw)

        if len(bins) < floor:
            logger.debug(f"Discarding {pattern.name}: only {len(bins)} bins")
            continue

        ranges.append(BinRange(
            min_bin_id=min_bin_id,
            max_bin_id=max_bin_id,
            existing_bins=bins,
            liquidity_depth=len(bins),
            is_popular=pattern.is_popular,
            description=f"{pattern.name} ({len(bins)} estimated bins)",
        ))

    ranges.sort(key=lambda r: (not r.is_popular, -r.bin_count))
    return ranges


def fallback_range(active_bin_id: int, width: int = FALLBACK_WIDTH) -> BinRange:
    """Conservative default window with every bin included"""
    half = width // 2
    min_bin_id = max(MIN_BIN_ID, active_bin_id - half)
    max_bin_id = min(MAX_BIN_ID, active_bin_id + half)
    bins = tuple(range(min_bin_id, max_bin_id + 1))
    return BinRange(
        min_bin_id=min_bin_id,
        max_bin_id=max_bin_id,
        existing_bins=bins,
        liquidity_depth=len(bins),
        is_popular=False,
        description=FALLBACK_DESCRIPTION,
    )


def validate_existing_bins_only(ranges: Iterable[BinRange]) -> bool:
    """True when at least one range keeps to the hard bin floor"""
    return any(r.bin_count >= MIN_RANGE_BINS for r in ranges)


class RangeResolver:
    """
    Cached range resolution against live pools

    Usage:
        resolver = RangeResolver(pool_cache)
        ranges = await resolver.resolve(pool, rpc, 69, RiskProfile.CONSERVATIVE)
    """

    def __init__(
        self,
        pool_cache: PoolHandleCache,
        ttl: Optional[float] = None,
        clock: Optional[Clock] = None,
        draw: Draw = inclusion_draw,
    ):
        """
        Args:
            pool_cache: Shared pool handle cache
            ttl: Result lifetime in seconds (defaults to RANGE_CACHE_TTL_SECONDS)
            clock: Time source for the TTL (injectable for tests)
            draw: Inclusion draw function
        """
        self._pool_cache = pool_cache
        self._draw = draw
        self._cache: TtlCache[RangeResolution] = TtlCache(
            ttl=ttl if ttl is not None else global_config.range.cache_ttl_seconds,
            clock=clock,
            name="bin_ranges",
        )
        self._last_active: Dict[str, int] = {}

    @staticmethod
    def key(pool_address: str, profile: RiskProfile, max_range_width: int, identity: str) -> str:
        return f"{pool_address}|{profile.value}|{max_range_width}|{identity}"

    async def resolve(
        self,
        pool_address: str,
        rpc: RpcClient,
        max_range_width: Optional[int] = None,
        risk_profile: RiskProfile = RiskProfile.MODERATE,
    ) -> List[BinRange]:
        """
        Resolve candidate ranges

        Raises:
            InvalidPool: Malformed address or pool not found
            RpcError: Pool handle could not be constructed
            NoSuitableRange: Active bin unreadable or every window discarded
        """
        resolution = await self.resolve_with_active_bin(pool_address, rpc, max_range_width, risk_profile)
        return list(resolution.ranges)

    async def resolve_with_active_bin(
        self,
        pool_address: str,
        rpc: RpcClient,
        max_range_width: Optional[int] = None,
        risk_profile: RiskProfile = RiskProfile.MODERATE,
    ) -> RangeResolution:
        profile = RiskProfile.parse(risk_profile)
        if max_range_width is None:
            max_range_width = global_config.range.max_width
        width = min(max_range_width, MAX_POSITION_WIDTH)
        pool_address = validate_pool_address(pool_address)
        key = self.key(pool_address, profile, width, rpc.identity)
        return await self._cache.get_or_load(
            key, lambda: self._compute(pool_address, rpc, width, profile)
        )

    async def _compute(
        self,
        pool_address: str,
        rpc: RpcClient,
        max_range_width: int,
        profile: RiskProfile,
    ) -> RangeResolution:
        active_bin = await self.get_active_bin(pool_address, rpc)
        ranges = build_smart_ranges(active_bin.bin_id, max_range_width, profile, self._draw)
        if not ranges:
            raise NoSuitableRange.no_ranges(pool_address)

        logger.info(
            f"Resolved {len(ranges)} {profile.value} range(s) for {pool_address} "
            f"around active bin {active_bin.bin_id}"
        )
        return RangeResolution(ranges=tuple(ranges), active_bin=active_bin)

    async def get_active_bin(self, pool_address: str, rpc: RpcClient) -> ActiveBin:
        """
        Fresh active bin read; remembers the bin for fallback ranges

        Raises:
            NoSuitableRange: If the read fails
        """
        pool = await self._pool_cache.get(pool_address, rpc)
        try:
            active_bin = await pool.get_active_bin()
        except Exception as e:
            logger.warning(f"Active bin read failed for {pool_address}: {e}")
            raise NoSuitableRange.active_bin_unavailable(pool_address, e) from e

        self._last_active[self._last_active_key(pool_address, rpc.identity)] = active_bin.bin_id
        return active_bin

    @staticmethod
    def _last_active_key(pool_address: str, identity: str) -> str:
        return f"{pool_address}|{identity}"

    def last_active_bin(self, pool_address: str, identity: str) -> Optional[int]:
        """Last active bin seen for the pool, if any"""
        return self._last_active.get(self._last_active_key(pool_address, identity))

    def clear(self):
        self._cache.clear()
        logger.info("Bin range cache cleared")

    def keys(self) -> List[str]:
        return self._cache.keys()

    def __len__(self) -> int:
        return len(self._cache)
