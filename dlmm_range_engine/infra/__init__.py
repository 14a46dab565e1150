"""
Infrastructure layer: RPC, signing, caching and log correlation
"""

from .rpc import RpcClient, RpcClientConfig, ConfirmationResult
from .cache import TtlCache, CacheEntry
from .correlation import CorrelationContext, get_correlation_id, log_with_correlation
from .solana_signer import Signer, LocalSigner, create_signer, partial_sign, sign_slots
from .signer_backends import (
    SignedTransaction,
    SignerCapabilities,
    SignerBackend,
    LocalKeypairBackend,
    ManagedSession,
    ManagedSessionBackend,
    RemoteSession,
)

__all__ = [
    "RpcClient",
    "RpcClientConfig",
    "ConfirmationResult",
    "TtlCache",
    "CacheEntry",
    "CorrelationContext",
    "get_correlation_id",
    "log_with_correlation",
    "Signer",
    "LocalSigner",
    "create_signer",
    "partial_sign",
    "sign_slots",
    "SignedTransaction",
    "SignerCapabilities",
    "SignerBackend",
    "LocalKeypairBackend",
    "ManagedSession",
    "ManagedSessionBackend",
    "RemoteSession",
]
