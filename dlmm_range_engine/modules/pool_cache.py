"""
Pool Handle Cache

Memoizes one connected pool client per (pool address, endpoint identity).
Handles never expire; they are dropped only by clear().
"""

import logging
from typing import List

from solders.pubkey import Pubkey

from ..errors import EngineError, ErrorCode, InvalidPool, RpcError
from ..infra import RpcClient, TtlCache
from ..protocols import PoolClient, PoolConnector
from ..protocols.meteora import DLMM_PROGRAM_ID

logger = logging.getLogger(__name__)


def validate_pool_address(pool_address: str) -> str:
    """
    Check a pool address is a valid base58 public key

    Raises:
        InvalidPool: If the address is malformed
    """
    if not isinstance(pool_address, str) or not pool_address.strip():
        raise InvalidPool.malformed(pool_address)
    try:
        Pubkey.from_string(pool_address.strip())
    except ValueError as e:
        raise InvalidPool(
            f"Invalid pool address: {pool_address!r}",
            pool_address=pool_address,
            code=ErrorCode.POOL_INVALID_ADDRESS,
            original_error=e,
        ) from e
    return pool_address.strip()


class PoolHandleCache:
    """
    Cache of connected pool clients

    Usage:
        cache = PoolHandleCache(connector)
        pool = await cache.get("PoolAddress...", rpc)
    """

    def __init__(
        self,
        connector: PoolConnector,
        verify_owner: bool = False,
        program_id: str = DLMM_PROGRAM_ID,
    ):
        """
        Args:
            connector: Coroutine building a connected PoolClient
            verify_owner: Read the pool account first and require it to be
                owned by program_id (one extra RPC call per new handle)
            program_id: Expected owner program
        """
        self._connector = connector
        self._verify_owner = verify_owner
        self._program_id = program_id
        self._cache: TtlCache[PoolClient] = TtlCache(ttl=None, name="pool_handles")

    @staticmethod
    def key(pool_address: str, identity: str) -> str:
        return f"{pool_address}|{identity}"

    async def get(self, pool_address: str, rpc: RpcClient) -> PoolClient:
        """
        Get the pool client, connecting on first access

        Raises:
            InvalidPool: Malformed address, missing account or wrong owner
            RpcError: Endpoint unreachable or handle construction failed
        """
        pool_address = validate_pool_address(pool_address)
        key = self.key(pool_address, rpc.identity)
        return await self._cache.get_or_load(key, lambda: self._connect(pool_address, rpc))

    async def _connect(self, pool_address: str, rpc: RpcClient) -> PoolClient:
        logger.info(f"Connecting pool handle {pool_address} via {rpc.endpoint}")

        if self._verify_owner:
            account = await rpc.get_account_info(pool_address)
            if account is None:
                raise InvalidPool.not_found(pool_address)
            if account.get("owner") != self._program_id:
                raise InvalidPool(
                    f"Account {pool_address} is not owned by {self._program_id}",
                    pool_address=pool_address,
                )

        try:
            handle = await self._connector(pool_address, rpc)
        except EngineError:
            raise
        except Exception as e:
            logger.warning(f"Failed to initialize pool {pool_address}: {e}")
            raise RpcError.handle_failed(pool_address, rpc.endpoint, e) from e

        if handle is None:
            raise InvalidPool.not_found(pool_address)

        logger.debug(f"Pool handle ready: {pool_address}")
        return handle

    def clear(self):
        self._cache.clear()
        logger.info("Pool handle cache cleared")

    def keys(self) -> List[str]:
        return self._cache.keys()

    def __len__(self) -> int:
        return len(self._cache)
