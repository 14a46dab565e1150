"""
Local key material and transaction signing

Signs serialized VersionedTransactions in place: each keypair fills its
own slot among the required signers and every other slot keeps the
signature it already had. This lets a freshly generated position keypair
co-sign before the wallet signs.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Iterable, List, Optional, Protocol, Tuple, runtime_checkable

import base58
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from ..errors import SignerError, ConfigurationError
from ..config import config as global_config

logger = logging.getLogger(__name__)


@runtime_checkable
class Signer(Protocol):
    """
    Protocol for transaction signers

    Implementations must provide:
    - pubkey: The signer's public key (base58)
    - sign_transaction(): Sign serialized transaction bytes
    """

    @property
    def pubkey(self) -> str:
        """Signer's public key (base58)"""
        ...

    def sign_transaction(self, tx_bytes: bytes) -> Tuple[bytes, str]:
        """
        Sign a transaction

        Args:
            tx_bytes: Serialized transaction (unsigned or partially signed)

        Returns:
            (signed_tx_bytes, signature_base58)
        """
        ...


def _message_bytes(tx: VersionedTransaction) -> bytes:
    """Bytes each signer signs over"""
    message = tx.message
    # MessageV0 signatures cover the 0x80 version prefix as well
    if isinstance(message, MessageV0):
        return bytes([0x80]) + bytes(message)
    return bytes(message)


def _signer_slots(tx: VersionedTransaction) -> List:
    message = tx.message
    num_required = message.header.num_required_signatures
    return list(message.account_keys[:num_required])


def sign_slots(tx_bytes: bytes, keypairs: Iterable[Keypair], require_all: bool = True) -> Tuple[bytes, List[str]]:
    """
    Add signatures for the given keypairs, preserving existing ones

    Args:
        tx_bytes: Serialized VersionedTransaction
        keypairs: Keypairs to sign with
        require_all: Raise if a keypair is not a required signer; when
            False such keypairs are skipped

    Returns:
        (signed_tx_bytes, signatures added in base58, in keypair order)

    Raises:
        SignerError: If the transaction cannot be parsed or a keypair is not a signer
    """
    try:
        tx = VersionedTransaction.from_bytes(tx_bytes)
    except Exception as e:
        raise SignerError.failed(f"cannot parse transaction: {e}", original_error=e) from e

    slots = _signer_slots(tx)
    signatures = list(tx.signatures)
    if len(signatures) < len(slots):
        signatures.extend([Signature.default()] * (len(slots) - len(signatures)))

    message_bytes = _message_bytes(tx)
    added: List[str] = []

    for keypair in keypairs:
        pubkey = keypair.pubkey()
        if pubkey not in slots:
            if require_all:
                raise SignerError.failed(
                    f"{pubkey} is not in the required signers list. "
                    f"Expected signers: {[str(key) for key in slots]}"
                )
            logger.debug(f"Skipping {pubkey}: not a required signer of this transaction")
            continue
        signature = keypair.sign_message(message_bytes)
        signatures[slots.index(pubkey)] = signature
        added.append(str(signature))

    signed_tx = VersionedTransaction.populate(tx.message, signatures)
    return bytes(signed_tx), added


def partial_sign(tx_bytes: bytes, keypairs: Iterable[Keypair]) -> bytes:
    """Co-sign with auxiliary keypairs (e.g. a new position account) where required"""
    signed, added = sign_slots(tx_bytes, keypairs, require_all=False)
    if added:
        logger.debug(f"Partially signed transaction with {len(added)} auxiliary signer(s)")
    return signed


def fee_payer_signature(tx_bytes: bytes) -> Optional[str]:
    """Signature in slot 0, which Solana uses as the transaction id"""
    tx = VersionedTransaction.from_bytes(tx_bytes)
    if not tx.signatures or tx.signatures[0] == Signature.default():
        return None
    return str(tx.signatures[0])


class LocalSigner:
    """
    Local signer using Solana keypair

    Usage:
        keypair = Keypair()  # or load from file
        signer = LocalSigner(keypair)

        signed_tx, sig = signer.sign_transaction(unsigned_tx_bytes)
    """

    def __init__(self, keypair: Keypair):
        self._keypair = keypair

    @property
    def pubkey(self) -> str:
        """Public key as base58 string"""
        return str(self._keypair.pubkey())

    @property
    def keypair(self) -> Keypair:
        return self._keypair

    def sign_transaction(self, tx_bytes: bytes) -> Tuple[bytes, str]:
        """
        Sign versioned transaction in this wallet's signer slot

        Returns:
            (signed_tx_bytes, signature_base58)
        """
        signed, added = sign_slots(tx_bytes, [self._keypair])
        return signed, added[0]

    @classmethod
    def from_bytes(cls, secret_key: bytes) -> "LocalSigner":
        """Create signer from secret key bytes (64 bytes)"""
        return cls(Keypair.from_bytes(secret_key))

    @classmethod
    def from_base58(cls, secret_key: str) -> "LocalSigner":
        """Create signer from base58 secret key"""
        return cls.from_bytes(base58.b58decode(secret_key))

    @classmethod
    def from_file(cls, path: str) -> "LocalSigner":
        """
        Create signer from keypair file

        Supports:
        - JSON array format (Solana CLI): [1,2,3,...]
        - Raw bytes file (64 bytes)
        """
        with open(path, "rb") as f:
            content = f.read()

        try:
            data = json.loads(content.decode("utf-8"))
            if isinstance(data, list):
                return cls.from_bytes(bytes(data))
        except (json.JSONDecodeError, UnicodeDecodeError):
            pass

        if len(content) == 64:
            return cls.from_bytes(content)

        raise ConfigurationError.invalid("keypair_file", f"Cannot parse keypair file: {path}")


def create_signer(
    keypair: Optional[Keypair] = None,
    keypair_path: Optional[str] = None,
) -> LocalSigner:
    """
    Create signer based on configuration

    Priority:
    1. keypair: Use LocalSigner with provided keypair
    2. keypair_path: Load keypair from file
    3. Environment: Check SOLANA_KEYPAIR_PATH env var

    Raises:
        SignerError: If no valid signer configuration found
    """
    if keypair is not None:
        return LocalSigner(keypair)

    if keypair_path is not None:
        return LocalSigner.from_file(keypair_path)

    if global_config.signer.keypair_path and os.path.isfile(global_config.signer.keypair_path):
        return LocalSigner.from_file(global_config.signer.keypair_path)

    raise SignerError.not_configured()
