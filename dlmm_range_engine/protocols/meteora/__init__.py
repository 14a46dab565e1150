"""
Meteora DLMM constants and math
"""

from .constants import (
    DLMM_PROGRAM_ID,
    MAX_POSITION_WIDTH,
    MIN_BIN_ID,
    MAX_BIN_ID,
    BASIS_POINT_MAX,
)
from .math import (
    get_price_of_bin,
    to_weight_spot,
    to_weight_curve,
    to_weight_bid_ask,
    auto_fill_y_by_weight,
    auto_fill_y_by_strategy,
)

__all__ = [
    "DLMM_PROGRAM_ID",
    "MAX_POSITION_WIDTH",
    "MIN_BIN_ID",
    "MAX_BIN_ID",
    "BASIS_POINT_MAX",
    "get_price_of_bin",
    "to_weight_spot",
    "to_weight_curve",
    "to_weight_bid_ask",
    "auto_fill_y_by_weight",
    "auto_fill_y_by_strategy",
]
