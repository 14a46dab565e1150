"""
Meteora DLMM Constants
"""

# Meteora DLMM Program ID (mainnet)
DLMM_PROGRAM_ID = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"

# A single position account covers at most this many bins
MAX_POSITION_WIDTH = 70

# Bin ID bounds
MIN_BIN_ID = -443636
MAX_BIN_ID = 443636

BASIS_POINT_MAX = 10_000

# Strategy weight bounds used for Curve / BidAsk distributions
MAX_WEIGHT = 2000
MIN_WEIGHT = 200
