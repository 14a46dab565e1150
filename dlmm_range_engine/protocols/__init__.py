"""
Program client interfaces
"""

from .base import PoolClient, PoolConnector, TxBundle, normalize_transactions

__all__ = [
    "PoolClient",
    "PoolConnector",
    "TxBundle",
    "normalize_transactions",
]
