"""
Bin and range type definitions
"""

from dataclasses import dataclass, field
from typing import Tuple, List


@dataclass(frozen=True)
class ActiveBin:
    """
    Snapshot of the pool's active bin

    Attributes:
        bin_id: Active bin ID
        price: Price of the bin as reported by the program client
        x_amount: Token X reserve in the bin (smallest unit)
        y_amount: Token Y reserve in the bin (smallest unit)
    """
    bin_id: int
    price: str = "0"
    x_amount: int = 0
    y_amount: int = 0


@dataclass(frozen=True)
class BinRange:
    """
    Candidate bin window for a position

    existing_bins holds the bins estimated to already exist on-chain,
    sorted ascending and contained in [min_bin_id, max_bin_id].
    """
    min_bin_id: int
    max_bin_id: int
    existing_bins: Tuple[int, ...] = field(default_factory=tuple)
    liquidity_depth: int = 0
    is_popular: bool = False
    description: str = ""

    def __post_init__(self):
        if self.min_bin_id > self.max_bin_id:
            raise ValueError(f"min_bin_id {self.min_bin_id} > max_bin_id {self.max_bin_id}")
        bins = tuple(sorted(set(self.existing_bins)))
        if bins and (bins[0] < self.min_bin_id or bins[-1] > self.max_bin_id):
            raise ValueError(
                f"existing bins [{bins[0]}, {bins[-1]}] outside "
                f"range [{self.min_bin_id}, {self.max_bin_id}]"
            )
        object.__setattr__(self, "existing_bins", bins)

    @property
    def width(self) -> int:
        """Number of bins covered by the window"""
        return self.max_bin_id - self.min_bin_id + 1

    @property
    def bin_count(self) -> int:
        return len(self.existing_bins)

    def contains(self, bin_id: int) -> bool:
        return self.min_bin_id <= bin_id <= self.max_bin_id

    def __str__(self) -> str:
        return f"BinRange([{self.min_bin_id}, {self.max_bin_id}], bins={self.bin_count}, {self.description!r})"


@dataclass(frozen=True)
class RangeResolution:
    """Resolved ranges together with the active bin they were built around"""
    ranges: Tuple[BinRange, ...]
    active_bin: ActiveBin


@dataclass
class RangeRecommendations:
    """Safe range picks for the three risk appetites"""
    conservative: BinRange
    balanced: BinRange
    aggressive: BinRange
    all: List[BinRange] = field(default_factory=list)
