"""
Async RPC Client for Solana

Provides the JSON-RPC calls the engine consumes:
- Balance lookup
- Transaction simulation, submission and confirmation polling
- Latest blockhash
- Account reads for program clients

Transport failures are mapped to RpcError and surfaced; the retry count
defaults to a single attempt so retry policy stays with the caller.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import httpx

from ..errors import RpcError, ConfigurationError
from ..config import config as global_config

logger = logging.getLogger(__name__)


@dataclass
class RpcClientConfig:
    """
    RPC client runtime configuration

    Unset values are pulled from the global config (RpcConfig / TxConfig).

    Usage:
        client = RpcClient(endpoint)

        config = RpcClientConfig(timeout_seconds=60, max_retries=3)
        client = RpcClient(endpoint, config=config)
    """
    timeout_seconds: float = None
    max_retries: int = None
    retry_delay_seconds: float = None
    commitment: str = None
    confirmation_poll_interval: float = None

    def __post_init__(self):
        """Apply defaults from global config for any unset values"""
        if self.timeout_seconds is None:
            self.timeout_seconds = global_config.rpc.timeout_seconds
        if self.max_retries is None:
            self.max_retries = global_config.rpc.max_retries
        if self.retry_delay_seconds is None:
            self.retry_delay_seconds = global_config.rpc.retry_delay_seconds
        if self.commitment is None:
            self.commitment = global_config.rpc.commitment
        if self.confirmation_poll_interval is None:
            self.confirmation_poll_interval = global_config.tx.confirmation_poll_interval
        if self.max_retries < 1:
            raise ConfigurationError.invalid("max_retries", "must be at least 1")


@dataclass
class ConfirmationResult:
    """
    Outcome of confirmation polling

    Attributes:
        signature: Transaction signature
        confirmed: Reached confirmed/finalized without error
        error: On-chain error payload (confirmation landed but the transaction failed)
        timed_out: Polling gave up before a final status
        slot: Slot reported with the last status
    """
    signature: str
    confirmed: bool = False
    error: Any = None
    timed_out: bool = False
    slot: Optional[int] = None

    @property
    def is_failed(self) -> bool:
        return self.error is not None


class RpcClient:
    """
    Async Solana RPC client

    Usage:
        async with RpcClient("https://api.mainnet-beta.solana.com") as rpc:
            lamports = await rpc.get_balance("Wallet...")
            result = await rpc.call("getSlot", [])
    """

    def __init__(
        self,
        endpoint: Union[str, List[str]],
        config: Optional[RpcClientConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize RPC client

        Args:
            endpoint: RPC endpoint URL or list of URLs (for fallback)
            config: RPC configuration options
            http_client: Pre-built httpx client (tests, shared pools)
        """
        self._endpoints = [endpoint] if isinstance(endpoint, str) else list(endpoint)
        if not self._endpoints or not all(self._endpoints):
            raise ConfigurationError.missing("RPC endpoint")

        self._config = config or RpcClientConfig()
        self._current_endpoint_idx = 0
        self._client: Optional[httpx.AsyncClient] = http_client
        self._owns_client = http_client is None
        self._request_id = 0

    @property
    def endpoint(self) -> str:
        """Current active endpoint; moves to a fallback URL on rotation"""
        return self._endpoints[self._current_endpoint_idx]

    @property
    def identity(self) -> str:
        """Primary endpoint, used for cache keys; unaffected by rotation"""
        return self._endpoints[0]

    @property
    def commitment(self) -> str:
        """Default commitment level"""
        return self._config.commitment

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout_seconds,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    def _rotate_endpoint(self):
        """Rotate to next endpoint on failure"""
        if len(self._endpoints) > 1:
            self._current_endpoint_idx = (self._current_endpoint_idx + 1) % len(self._endpoints)
            logger.info(f"Rotating to RPC endpoint: {self.endpoint}")

    async def call(
        self,
        method: str,
        params: List[Any],
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Make JSON-RPC call

        Args:
            method: RPC method name
            params: RPC parameters
            timeout: Optional timeout override

        Returns:
            RPC result

        Raises:
            RpcError: On RPC failure
        """
        client = self._get_client()
        self._request_id += 1
        body = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        timeout_val = timeout or self._config.timeout_seconds

        last_error: Optional[RpcError] = None
        endpoints_tried = 0
        max_endpoints = len(self._endpoints)

        while endpoints_tried < max_endpoints:
            for attempt in range(self._config.max_retries):
                try:
                    response = await client.post(self.endpoint, json=body, timeout=timeout_val)

                    if response.status_code == 429:
                        logger.warning(f"Rate limited by {self.endpoint}")
                        last_error = RpcError.rate_limited(self.endpoint)
                    else:
                        response.raise_for_status()
                        result = response.json()

                        if "error" in result:
                            error = result["error"]
                            rpc_error = RpcError(
                                f"RPC error: {error.get('message', error)}",
                                endpoint=self.endpoint,
                            )
                            # Preserve RPC error code in details for debugging
                            rpc_error.details["rpc_error_code"] = error.get("code")
                            rpc_error.details["rpc_error_data"] = error.get("data")
                            raise rpc_error

                        return result.get("result")

                except httpx.TimeoutException:
                    last_error = RpcError.timeout(self.endpoint, timeout_val)
                    logger.warning(f"RPC timeout on {method} (attempt {attempt + 1}): {self.endpoint}")

                except httpx.HTTPStatusError as e:
                    last_error = RpcError(
                        f"HTTP error {e.response.status_code}",
                        endpoint=self.endpoint,
                        original_error=e,
                    )
                    logger.warning(f"RPC HTTP error on {method} (attempt {attempt + 1}): {e}")

                except httpx.RequestError as e:
                    last_error = RpcError.connection_failed(self.endpoint, e)
                    logger.warning(f"RPC connection error on {method} (attempt {attempt + 1}): {e}")

                except ValueError as e:
                    last_error = RpcError(
                        f"Invalid JSON response: {e}",
                        endpoint=self.endpoint,
                        original_error=e,
                    )

                if attempt < self._config.max_retries - 1:
                    await asyncio.sleep(self._config.retry_delay_seconds * (attempt + 1))

            self._rotate_endpoint()
            endpoints_tried += 1

        raise last_error or RpcError("All RPC endpoints failed")

    async def get_account_info(
        self,
        address: str,
        encoding: str = "base64",
        commitment: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Get account information

        Returns:
            Account info or None if not found
        """
        params = [
            address,
            {
                "encoding": encoding,
                "commitment": commitment or self.commitment,
            },
        ]
        result = await self.call("getAccountInfo", params)
        return result.get("value") if result else None

    async def get_latest_blockhash(
        self,
        commitment: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Get latest blockhash

        Returns:
            Dict with blockhash and lastValidBlockHeight
        """
        params = [{"commitment": commitment or self.commitment}]
        result = await self.call("getLatestBlockhash", params)
        return result.get("value", {}) if result else {}

    async def get_balance(
        self,
        address: str,
        commitment: Optional[str] = None,
    ) -> int:
        """
        Get SOL balance in lamports
        """
        params = [address, {"commitment": commitment or self.commitment}]
        result = await self.call("getBalance", params)
        return result.get("value", 0) if result else 0

    async def send_transaction(
        self,
        transaction: bytes,
        skip_preflight: bool = False,
        preflight_commitment: Optional[str] = None,
        max_retries: Optional[int] = None,
    ) -> str:
        """
        Send signed transaction

        Args:
            transaction: Signed transaction bytes
            skip_preflight: Skip preflight simulation
            preflight_commitment: Preflight commitment level
            max_retries: Max send retries performed by the RPC node

        Returns:
            Transaction signature (base58)
        """
        tx_data = base64.b64encode(transaction).decode("ascii")

        params = [
            tx_data,
            {
                "skipPreflight": skip_preflight,
                "preflightCommitment": preflight_commitment or self.commitment,
                "encoding": "base64",
            },
        ]
        if max_retries is not None:
            params[1]["maxRetries"] = max_retries

        return await self.call("sendTransaction", params)

    async def simulate_transaction(
        self,
        transaction: bytes,
        commitment: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Simulate transaction execution

        Signature verification is disabled and the blockhash replaced, so
        unsigned and partially signed transactions can be simulated.

        Returns:
            Simulation value dict with "err" and "logs"
        """
        tx_data = base64.b64encode(transaction).decode("ascii")

        params = [
            tx_data,
            {
                "commitment": commitment or self.commitment,
                "encoding": "base64",
                "sigVerify": False,
                "replaceRecentBlockhash": True,
            },
        ]
        result = await self.call("simulateTransaction", params)
        return result.get("value", {}) if result else {}

    async def confirm_transaction(
        self,
        signature: str,
        commitment: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> ConfirmationResult:
        """
        Poll until the transaction is confirmed, fails on-chain or times out

        Args:
            signature: Transaction signature
            commitment: Commitment level to wait for
            timeout_seconds: Max wait time

        Returns:
            ConfirmationResult
        """
        if timeout_seconds is None:
            timeout_seconds = global_config.tx.confirmation_timeout
        target = commitment or self.commitment
        accepted = ("confirmed", "finalized") if target != "finalized" else ("finalized",)

        start_time = time.monotonic()
        last_status = None

        while time.monotonic() - start_time < timeout_seconds:
            try:
                result = await self.call(
                    "getSignatureStatuses",
                    [[signature], {"searchTransactionHistory": False}],
                )
                statuses = (result or {}).get("value") or []
                status = statuses[0] if statuses else None
                if status:
                    last_status = status
                    if status.get("err"):
                        logger.warning(f"Transaction {signature} failed on-chain: {status.get('err')}")
                        return ConfirmationResult(
                            signature=signature,
                            error=status["err"],
                            slot=status.get("slot"),
                        )
                    if status.get("confirmationStatus") in accepted:
                        return ConfirmationResult(
                            signature=signature,
                            confirmed=True,
                            slot=status.get("slot"),
                        )
            except RpcError as e:
                logger.debug(f"Error checking transaction status: {e}")

            await asyncio.sleep(self._config.confirmation_poll_interval)

        if last_status is None:
            logger.warning(f"Transaction {signature} was never seen on chain (dropped/expired)")
        else:
            logger.warning(
                f"Transaction {signature} timeout. Last status: {last_status.get('confirmationStatus', 'unknown')}"
            )
        return ConfirmationResult(signature=signature, timed_out=True)

    async def close(self):
        """Close HTTP client"""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
