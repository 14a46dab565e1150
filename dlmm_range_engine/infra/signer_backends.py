"""
Signer backend abstraction

Both backends are reduced to one capability record, so the orchestrator
never branches on which kind of wallet is active:

    SignerCapabilities(pubkey, can_sign, native_connection, sign)

- LocalKeypairBackend: keypair held in-process, always ready.
- ManagedSessionBackend: custodial session; ready only with an active
  session, a non-null connection and no signing request in flight.

sign() returns a SignedTransaction. When the backend already submitted the
transaction, raw is None and only the signature is known; otherwise the
orchestrator submits raw itself.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union, runtime_checkable

import httpx

from ..errors import (
    EngineError,
    RpcError,
    SignerError,
    UserRejected,
    UnknownError,
    ConfigurationError,
    classify_error,
)
from ..config import config as global_config
from .rpc import RpcClient
from .solana_signer import LocalSigner, fee_payer_signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedTransaction:
    """Signature plus the signed bytes, or None when the backend already submitted"""
    signature: str
    raw: Optional[bytes] = None

    @property
    def already_submitted(self) -> bool:
        return self.raw is None


@dataclass(frozen=True)
class SignerCapabilities:
    """
    Everything the orchestrator may know about a signer

    Attributes:
        pubkey: Wallet address (base58), None while a session has no wallet yet
        can_sign: Backend readiness at the time the record was taken
        native_connection: RPC client the backend submits through, if it has its own
        sign: Coroutine signing serialized transaction bytes
    """
    pubkey: Optional[str]
    can_sign: bool
    native_connection: Optional[RpcClient]
    sign: Callable[[bytes], Awaitable[SignedTransaction]]


class SignerBackend(ABC):
    """Source of capability records; take a fresh one before every sign"""

    @property
    @abstractmethod
    def pubkey(self) -> str:
        ...

    @abstractmethod
    def capabilities(self) -> SignerCapabilities:
        ...


class LocalKeypairBackend(SignerBackend):
    """
    Backend for a locally held keypair

    Usage:
        backend = LocalKeypairBackend(create_signer())
        caps = backend.capabilities()
        signed = await caps.sign(tx_bytes)
    """

    def __init__(self, signer: LocalSigner, connection: Optional[RpcClient] = None):
        """
        Args:
            signer: Local signer holding the wallet keypair
            connection: Optional RPC client to submit through instead of the engine default
        """
        self._signer = signer
        self._connection = connection

    @property
    def pubkey(self) -> str:
        return self._signer.pubkey

    def capabilities(self) -> SignerCapabilities:
        return SignerCapabilities(
            pubkey=self._signer.pubkey,
            can_sign=True,
            native_connection=self._connection,
            sign=self._sign,
        )

    async def _sign(self, tx_bytes: bytes) -> SignedTransaction:
        signed, signature = self._signer.sign_transaction(tx_bytes)
        logger.debug(f"Locally signed transaction {signature[:16]}...")
        return SignedTransaction(signature=signature, raw=signed)


@runtime_checkable
class ManagedSession(Protocol):
    """
    Custodial signing session

    sign_transaction returns either a signature string (the provider
    submitted the transaction) or signed transaction bytes.
    """

    @property
    def pubkey(self) -> str:
        ...

    @property
    def is_active(self) -> bool:
        ...

    async def sign_transaction(self, tx_bytes: bytes) -> Union[str, bytes]:
        ...


class ManagedSessionBackend(SignerBackend):
    """
    Backend for a managed (custodial) signing session

    Only one signing request may be in flight at a time; while it is,
    can_sign is False.
    """

    def __init__(self, session: ManagedSession, connection: Optional[RpcClient]):
        self._session = session
        self._connection = connection
        self._signing = False

    @property
    def pubkey(self) -> str:
        return self._session.pubkey

    @property
    def is_signing(self) -> bool:
        return self._signing

    def _ready(self) -> bool:
        return self._session.is_active and self._connection is not None and not self._signing

    def capabilities(self) -> SignerCapabilities:
        # A session that never connected has no wallet to report
        try:
            pubkey = self._session.pubkey
        except SignerError:
            pubkey = None
        return SignerCapabilities(
            pubkey=pubkey,
            can_sign=pubkey is not None and self._ready(),
            native_connection=self._connection,
            sign=self._sign,
        )

    async def _sign(self, tx_bytes: bytes) -> SignedTransaction:
        if not self._ready():
            raise SignerError.not_ready()

        self._signing = True
        try:
            result = await self._session.sign_transaction(tx_bytes)
        except EngineError:
            raise
        except Exception as e:
            error = classify_error(e)
            if isinstance(error, UnknownError):
                error = SignerError.failed(str(e), original_error=e)
            raise error from e
        finally:
            self._signing = False

        if isinstance(result, str):
            logger.debug(f"Managed session signed and submitted {result[:16]}...")
            return SignedTransaction(signature=result)

        signature = fee_payer_signature(bytes(result))
        if signature is None:
            raise SignerError.failed("managed session returned an unsigned transaction")
        return SignedTransaction(signature=signature, raw=bytes(result))


class RemoteSession:
    """
    HTTP client for a remote custodial signer

    Endpoints (JSON):
        GET  {base_url}/session  -> {"active": bool, "pubkey": str}
        POST {base_url}/sign     {"transaction": base64, "pubkey": str}
                                 -> {"signature": str} or {"signedTransaction": base64}

    A 4xx response whose body mentions a rejection maps to UserRejected.

    Usage:
        session = RemoteSession.from_config()
        await session.connect()
        backend = ManagedSessionBackend(session, rpc)
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url:
            raise ConfigurationError.missing("REMOTE_SIGNER_URL")
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = timeout_seconds or global_config.signer.timeout_seconds
        self._client = http_client
        self._owns_client = http_client is None
        self._pubkey: Optional[str] = None
        self._active = False

    @classmethod
    def from_config(cls) -> "RemoteSession":
        return cls(
            global_config.signer.remote_signer_url,
            token=global_config.signer.remote_signer_token,
        )

    @property
    def pubkey(self) -> str:
        if self._pubkey is None:
            raise SignerError.not_configured()
        return self._pubkey

    @property
    def is_active(self) -> bool:
        return self._active

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, headers=self._headers())
        return self._client

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = await self._get_client().request(method, url, json=payload, headers=self._headers())
        except httpx.TimeoutException as e:
            raise SignerError.timeout(self._timeout) from e
        except httpx.RequestError as e:
            raise RpcError.connection_failed(self._base_url, e) from e

        if response.status_code in (401, 403):
            self._active = False
            raise SignerError.failed(f"remote signer refused session ({response.status_code})")

        if 400 <= response.status_code < 500:
            text = response.text
            if "reject" in text.lower() or "denied" in text.lower():
                raise UserRejected(f"Remote signer: {text}")
            raise SignerError.failed(f"remote signer error {response.status_code}: {text}")

        if response.status_code >= 500:
            raise RpcError(
                f"Remote signer unavailable ({response.status_code})",
                endpoint=self._base_url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SignerError.failed(f"invalid response from remote signer: {e}", original_error=e) from e

    async def connect(self) -> bool:
        """Open the session; returns whether it is active"""
        data = await self._request("GET", "/session")
        self._pubkey = data.get("pubkey") or self._pubkey
        self._active = bool(data.get("active")) and self._pubkey is not None
        logger.info(f"Remote signer session {'active' if self._active else 'inactive'}: {self._pubkey}")
        return self._active

    async def sign_transaction(self, tx_bytes: bytes) -> Union[str, bytes]:
        payload = {
            "transaction": base64.b64encode(tx_bytes).decode("ascii"),
            "pubkey": self.pubkey,
        }
        try:
            data = await asyncio.wait_for(self._request("POST", "/sign", payload), self._timeout)
        except asyncio.TimeoutError as e:
            raise SignerError.timeout(self._timeout) from e

        if data.get("signature"):
            return data["signature"]
        if data.get("signedTransaction"):
            return base64.b64decode(data["signedTransaction"])
        raise SignerError.failed("remote signer returned neither signature nor signed transaction")

    async def disconnect(self):
        self._active = False
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
