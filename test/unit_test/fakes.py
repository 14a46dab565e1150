"""
In-memory fakes for the program client and RPC client

Transactions are real unsigned MessageV0 transactions so the signing
path runs against solders exactly as it does in production.
"""

import asyncio
from typing import Dict, List, Optional, Sequence

from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from dlmm_range_engine.errors import PositionNotFound
from dlmm_range_engine.infra import ConfirmationResult
from dlmm_range_engine.infra.solana_signer import fee_payer_signature
from dlmm_range_engine.protocols import PoolClient
from dlmm_range_engine.protocols.meteora import DLMM_PROGRAM_ID
from dlmm_range_engine.types import ActiveBin, PositionBin, PositionInfo

ENDPOINT = "https://rpc.test"
POOL = str(Keypair().pubkey())
LAMPORTS_PER_SOL = 1_000_000_000


def build_unsigned_tx(payer: str, extra_signers: Sequence[str] = (), tag: int = 0) -> bytes:
    """Unsigned transaction with payer in slot 0 and extra_signers as required signers"""
    accounts = [AccountMeta(Pubkey.from_string(key), is_signer=True, is_writable=True) for key in extra_signers]
    instruction = Instruction(Pubkey.from_string(DLMM_PROGRAM_ID), bytes([tag % 256]), accounts)
    message = MessageV0.try_compile(Pubkey.from_string(payer), [instruction], [], Hash.default())
    signatures = [Signature.default()] * message.header.num_required_signatures
    return bytes(VersionedTransaction.populate(message, signatures))


def make_position(address: str = None, lower: int = 995, upper: int = 1005, fee_x: int = 0) -> PositionInfo:
    return PositionInfo(
        address=address or str(Keypair().pubkey()),
        lower_bin_id=lower,
        upper_bin_id=upper,
        bins=[PositionBin(bin_id=b, x_amount=10, y_amount=20, liquidity=100) for b in range(lower, upper + 1)],
        fee_x=fee_x,
    )


class FakePoolClient(PoolClient):
    """Pool client returning canned reads and real unsigned transactions"""

    name = "fake"

    def __init__(
        self,
        pool_address: str,
        rpc,
        active_bin: Optional[ActiveBin] = None,
        bin_step: int = 10,
        positions: Optional[List[PositionInfo]] = None,
        tx_count: int = 1,
        active_bin_error: Optional[Exception] = None,
    ):
        super().__init__(pool_address, rpc)
        self.active_bin = active_bin or ActiveBin(bin_id=1000, price="1.0", x_amount=1_000, y_amount=1_000)
        self._bin_step = bin_step
        self.positions = positions or []
        self.tx_count = tx_count
        self.active_bin_error = active_bin_error
        self.active_bin_reads = 0
        self.calls: List[tuple] = []

    @property
    def bin_step(self) -> int:
        return self._bin_step

    def _txs(self, payer: str, extra_signers: Sequence[str] = ()) -> List[bytes]:
        return [build_unsigned_tx(payer, extra_signers, tag=i) for i in range(self.tx_count)]

    async def get_active_bin(self) -> ActiveBin:
        self.active_bin_reads += 1
        if self.active_bin_error is not None:
            raise self.active_bin_error
        return self.active_bin

    async def get_position(self, position: str) -> PositionInfo:
        for info in self.positions:
            if info.address == position:
                return info
        raise PositionNotFound.not_found(position)

    async def get_positions_by_user_and_pool(self, user: str) -> List[PositionInfo]:
        return list(self.positions)

    async def initialize_position_and_add_liquidity_by_strategy(
        self, *, position, user, total_x_amount, total_y_amount, strategy
    ):
        self.calls.append(("initialize", position, user, total_x_amount, total_y_amount, strategy))
        return self._txs(user, [position])

    async def add_liquidity_by_strategy(self, *, position, user, total_x_amount, total_y_amount, strategy):
        self.calls.append(("add", position, user, total_x_amount, total_y_amount, strategy))
        return self._txs(user)

    async def remove_liquidity(
        self, *, position, user, from_bin_id, to_bin_id, liquidity_bps_to_remove, should_claim_and_close
    ):
        self.calls.append(
            ("remove", position, user, from_bin_id, to_bin_id, list(liquidity_bps_to_remove), should_claim_and_close)
        )
        return self._txs(user)

    async def claim_swap_fee(self, *, owner, position):
        self.calls.append(("claim", owner, position.address))
        return self._txs(owner)[0]

    async def claim_all_swap_fee(self, *, owner, positions):
        self.calls.append(("claim_all", owner, [p.address for p in positions]))
        return self._txs(owner)

    async def close_position(self, *, owner, position):
        self.calls.append(("close", owner, position.address))
        return self._txs(owner)[0]


class FakeConnector:
    """PoolConnector counting constructions; optional delay to overlap callers"""

    def __init__(self, pool_factory=None, delay: float = 0, error: Optional[Exception] = None):
        self.pool_factory = pool_factory or (lambda address, rpc: FakePoolClient(address, rpc))
        self.delay = delay
        self.error = error
        self.calls = 0
        self.pools: Dict[str, FakePoolClient] = {}

    async def __call__(self, pool_address: str, rpc) -> PoolClient:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        pool = self.pool_factory(pool_address, rpc)
        self.pools[pool_address] = pool
        return pool


class FakeRpc:
    """
    RPC client double

    confirm_errors holds one on-chain error payload (or None) per submitted
    transaction, in submission order.
    """

    def __init__(
        self,
        endpoint: str = ENDPOINT,
        balance_lamports: int = 10 * LAMPORTS_PER_SOL,
        balance_error: Optional[Exception] = None,
        simulation: Optional[dict] = None,
        send_error: Optional[Exception] = None,
        confirm_errors: Optional[List] = None,
        confirm_timeouts: bool = False,
    ):
        self.endpoint = endpoint
        self.identity = endpoint
        self.balance_lamports = balance_lamports
        self.balance_error = balance_error
        self.simulation = simulation or {"err": None, "logs": []}
        self.send_error = send_error
        self.confirm_errors = list(confirm_errors or [])
        self.confirm_timeouts = confirm_timeouts
        self.simulated: List[bytes] = []
        self.sent: List[bytes] = []
        self.confirmed: List[str] = []
        self.balance_reads = 0

    async def get_balance(self, address: str) -> int:
        self.balance_reads += 1
        if self.balance_error is not None:
            raise self.balance_error
        return self.balance_lamports

    async def get_account_info(self, address: str, encoding: str = "base64"):
        return {"owner": DLMM_PROGRAM_ID, "lamports": 1, "data": ["", "base64"]}

    async def simulate_transaction(self, transaction: bytes, commitment: str = None) -> dict:
        self.simulated.append(transaction)
        return self.simulation

    async def send_transaction(self, transaction: bytes, skip_preflight: bool = False,
                               preflight_commitment: str = None, max_retries: int = None) -> str:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(transaction)
        return fee_payer_signature(transaction)

    async def confirm_transaction(self, signature: str, commitment: str = None,
                                  timeout_seconds: float = None) -> ConfirmationResult:
        self.confirmed.append(signature)
        if self.confirm_timeouts:
            return ConfirmationResult(signature=signature, timed_out=True)
        error = self.confirm_errors.pop(0) if self.confirm_errors else None
        if error is not None:
            return ConfirmationResult(signature=signature, error=error, slot=1)
        return ConfirmationResult(signature=signature, confirmed=True, slot=1)

    async def close(self):
        pass


class FakeSession:
    """Managed session double; returns a signature (already submitted) or signed bytes"""

    def __init__(self, keypair: Optional[Keypair] = None, active: bool = True,
                 submits: bool = False, error: Optional[Exception] = None, delay: float = 0):
        self.keypair = keypair or Keypair()
        self.active = active
        self.submits = submits
        self.error = error
        self.delay = delay
        self.requests: List[bytes] = []

    @property
    def pubkey(self) -> str:
        return str(self.keypair.pubkey())

    @property
    def is_active(self) -> bool:
        return self.active

    async def sign_transaction(self, tx_bytes: bytes):
        from dlmm_range_engine.infra.solana_signer import sign_slots

        self.requests.append(tx_bytes)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        signed, added = sign_slots(tx_bytes, [self.keypair])
        if self.submits:
            return added[0]
        return signed
