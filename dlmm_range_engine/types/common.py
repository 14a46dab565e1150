"""
Common type definitions
"""

from decimal import Decimal
from enum import Enum, IntEnum

LAMPORTS_PER_SOL = 1_000_000_000


def lamports_to_sol(lamports: int) -> Decimal:
    """Convert lamports to SOL without float rounding"""
    return Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)


class RiskProfile(Enum):
    """
    Portfolio risk profile

    Controls range width, the inclusion probability multiplier and the
    minimum number of bins a resolved range must contain.
    """
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"

    @classmethod
    def parse(cls, value) -> "RiskProfile":
        """Accept an enum member or its (case-insensitive) string value"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown risk profile {value!r}, expected one of "
                f"{[p.value for p in cls]}"
            ) from None

    def __str__(self) -> str:
        return self.value


class StrategyType(IntEnum):
    """
    Liquidity shape used to distribute amounts across a range

    SPOT: uniform weight across bins
    CURVE: weight concentrated around the active bin
    BID_ASK: weight increasing away from the active bin
    """
    SPOT = 0
    CURVE = 1
    BID_ASK = 2
