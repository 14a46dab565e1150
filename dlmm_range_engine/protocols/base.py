"""
Base pool client interface

The on-chain program client bound to one pool and one RPC endpoint.
Write operations return unsigned serialized transactions; the engine
drives them through balance checks, signing and confirmation.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Sequence, Union

from ..types import ActiveBin, PositionInfo, StrategyParameters
from ..infra import RpcClient

# One transaction or an ordered sequence of them
TxBundle = Union[bytes, Sequence[bytes]]


def normalize_transactions(bundle: TxBundle) -> List[bytes]:
    """Flatten a program-client return value into an ordered list"""
    if bundle is None:
        return []
    if isinstance(bundle, (bytes, bytearray)):
        return [bytes(bundle)]
    return [bytes(tx) for tx in bundle]


class PoolClient(ABC):
    """
    Abstract base class for a connected pool handle

    Each client provides:
    - Active bin reads
    - Position queries
    - Unsigned transaction building for LP operations

    Instances are shared through the pool handle cache and must not be
    mutated after construction.
    """

    # Protocol identifier
    name: str = "base"

    def __init__(self, pool_address: str, rpc: RpcClient):
        """
        Args:
            pool_address: Pool address (base58)
            rpc: RPC client the handle was connected through
        """
        self._pool_address = pool_address
        self._rpc = rpc

    @property
    def pool_address(self) -> str:
        return self._pool_address

    @property
    def rpc(self) -> RpcClient:
        return self._rpc

    @property
    @abstractmethod
    def bin_step(self) -> int:
        """Pool bin step in basis points"""
        ...

    # ========== Reads ==========

    @abstractmethod
    async def get_active_bin(self) -> ActiveBin:
        ...

    @abstractmethod
    async def get_position(self, position: str) -> PositionInfo:
        """
        Raises:
            PositionNotFound: If the position does not exist
        """
        ...

    @abstractmethod
    async def get_positions_by_user_and_pool(self, user: str) -> List[PositionInfo]:
        ...

    # ========== Transaction building ==========

    @abstractmethod
    async def initialize_position_and_add_liquidity_by_strategy(
        self,
        *,
        position: str,
        user: str,
        total_x_amount: int,
        total_y_amount: int,
        strategy: StrategyParameters,
    ) -> TxBundle:
        """
        Build transaction(s) creating a position and depositing into it

        The position account must co-sign, so its pubkey is a required signer.
        """
        ...

    @abstractmethod
    async def add_liquidity_by_strategy(
        self,
        *,
        position: str,
        user: str,
        total_x_amount: int,
        total_y_amount: int,
        strategy: StrategyParameters,
    ) -> TxBundle:
        ...

    @abstractmethod
    async def remove_liquidity(
        self,
        *,
        position: str,
        user: str,
        from_bin_id: int,
        to_bin_id: int,
        liquidity_bps_to_remove: List[int],
        should_claim_and_close: bool,
    ) -> TxBundle:
        ...

    @abstractmethod
    async def claim_swap_fee(self, *, owner: str, position: PositionInfo) -> TxBundle:
        ...

    @abstractmethod
    async def claim_all_swap_fee(self, *, owner: str, positions: List[PositionInfo]) -> TxBundle:
        ...

    @abstractmethod
    async def close_position(self, *, owner: str, position: PositionInfo) -> TxBundle:
        ...


# Builds a connected pool handle: connector(pool_address, rpc)
PoolConnector = Callable[[str, RpcClient], Awaitable[PoolClient]]
