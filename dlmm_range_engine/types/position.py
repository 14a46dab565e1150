"""
Position and intent type definitions
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from .common import RiskProfile, StrategyType, lamports_to_sol


@dataclass(frozen=True)
class StrategyParameters:
    """Bin window and liquidity shape passed to the program client"""
    min_bin_id: int
    max_bin_id: int
    strategy_type: StrategyType = StrategyType.SPOT


@dataclass
class PositionIntent:
    """
    Caller intent to open a new position

    Token X amounts are treated as SOL-denominated for the balance check.

    Attributes:
        pool_address: Pool address (base58)
        user: Wallet address that pays and owns the position
        total_x_amount: Token X amount (smallest unit)
        total_y_amount: Token Y amount; None or 0 lets the engine balance it
        strategy_type: Liquidity shape
        risk_profile: Profile used to resolve ranges
        use_auto_fill: Disable to keep total_y_amount as given
    """
    pool_address: str
    user: str
    total_x_amount: int
    total_y_amount: Optional[int] = None
    strategy_type: StrategyType = StrategyType.SPOT
    risk_profile: RiskProfile = RiskProfile.MODERATE
    use_auto_fill: bool = True

    @property
    def required_sol(self) -> Decimal:
        return lamports_to_sol(self.total_x_amount)

    @property
    def needs_auto_fill(self) -> bool:
        return self.use_auto_fill and not self.total_y_amount


@dataclass
class AddLiquidityRequest:
    """Add liquidity to an existing position"""
    pool_address: str
    user: str
    position: str
    total_x_amount: int
    min_bin_id: int
    max_bin_id: int
    total_y_amount: Optional[int] = None
    strategy_type: StrategyType = StrategyType.SPOT
    use_auto_fill: bool = True

    @property
    def required_sol(self) -> Decimal:
        return lamports_to_sol(self.total_x_amount)

    @property
    def needs_auto_fill(self) -> bool:
        return self.use_auto_fill and not self.total_y_amount


@dataclass
class RemoveLiquidityRequest:
    """
    Remove liquidity from a bin span of an existing position

    bps_to_remove holds one basis-point value per bin in [from_bin_id, to_bin_id].
    """
    pool_address: str
    user: str
    position: str
    from_bin_id: int
    to_bin_id: int
    bps_to_remove: List[int] = field(default_factory=list)
    should_claim_and_close: bool = False


@dataclass
class PositionBin:
    """Liquidity held by a position in one bin"""
    bin_id: int
    x_amount: int = 0
    y_amount: int = 0
    liquidity: int = 0


@dataclass
class PositionInfo:
    """
    Existing position as reported by the program client

    Attributes:
        address: Position account address
        lower_bin_id: Lowest bin covered by the position
        upper_bin_id: Highest bin covered by the position
        bins: Per-bin holdings
        fee_x: Unclaimed token X fees
        fee_y: Unclaimed token Y fees
    """
    address: str
    lower_bin_id: int
    upper_bin_id: int
    bins: List[PositionBin] = field(default_factory=list)
    fee_x: int = 0
    fee_y: int = 0

    @property
    def bin_ids(self) -> List[int]:
        return [b.bin_id for b in self.bins]

    @property
    def total_x_amount(self) -> int:
        return sum(b.x_amount for b in self.bins)

    @property
    def total_y_amount(self) -> int:
        return sum(b.y_amount for b in self.bins)

    @property
    def has_fees(self) -> bool:
        return self.fee_x > 0 or self.fee_y > 0
