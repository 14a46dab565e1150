"""
Unit tests for error taxonomy, classification and user messages
"""

import asyncio
import unittest
from decimal import Decimal

import httpx

from dlmm_range_engine.errors import (
    ErrorCode,
    EngineError,
    RpcError,
    InvalidPool,
    NoSuitableRange,
    InsufficientFunds,
    PositionNotFound,
    TransactionError,
    SimulationFailed,
    SignerError,
    UserRejected,
    UnknownError,
    ConfigurationError,
    ErrorCategory,
    classify_error,
    categorize,
    user_message,
    describe,
)


class TestErrorCode(unittest.TestCase):
    """Tests for error code grouping"""

    def test_code_groups(self):
        self.assertEqual(ErrorCode.RPC_CONNECTION_FAILED.value, "1001")
        self.assertEqual(ErrorCode.TX_SIMULATION_FAILED.value, "2001")
        self.assertEqual(ErrorCode.NO_SUITABLE_RANGE.value, "4101")
        self.assertEqual(ErrorCode.SIGNER_USER_REJECTED.value, "6005")
        self.assertEqual(ErrorCode.UNKNOWN.value, "8001")

    def test_str_includes_code(self):
        error = EngineError("boom", ErrorCode.UNKNOWN)
        self.assertEqual(str(error), "[8001] boom")


class TestErrorClasses(unittest.TestCase):
    """Tests for error classes and factories"""

    def test_rpc_error_is_recoverable(self):
        error = RpcError.connection_failed("https://rpc.test", Exception("refused"))
        self.assertTrue(error.recoverable)
        self.assertEqual(error.code, ErrorCode.RPC_CONNECTION_FAILED)
        self.assertIn("https://rpc.test", error.message)

    def test_invalid_pool_factories(self):
        self.assertEqual(InvalidPool.malformed("xyz").code, ErrorCode.POOL_INVALID_ADDRESS)
        self.assertEqual(InvalidPool.not_found("xyz").code, ErrorCode.POOL_NOT_FOUND)

    def test_insufficient_funds_shortfall(self):
        error = InsufficientFunds.sol_balance(Decimal("0.092"), Decimal("0.05"))
        self.assertEqual(error.shortfall, Decimal("0.042"))
        self.assertEqual(error.code, ErrorCode.TX_INSUFFICIENT_FUNDS)
        self.assertFalse(error.recoverable)
        self.assertEqual(error.details["shortfall"], "0.042")

    def test_insufficient_funds_from_simulation_keeps_payload(self):
        payload = {"InstructionError": [0, {"Custom": 1}]}
        error = InsufficientFunds.from_simulation(payload, ["insufficient lamports 5, need 10"])
        self.assertEqual(error.details["payload"], payload)
        self.assertEqual(len(error.details["logs"]), 1)

    def test_simulation_failed_is_transaction_error(self):
        payload = {"InstructionError": [1, "InvalidAccountData"]}
        error = SimulationFailed.from_payload(payload, ["log line"])
        self.assertIsInstance(error, TransactionError)
        self.assertEqual(error.payload, payload)
        self.assertEqual(error.logs, ["log line"])
        self.assertEqual(error.code, ErrorCode.TX_SIMULATION_FAILED)

    def test_on_chain_failure_carries_signature(self):
        error = TransactionError.on_chain("sig123", {"err": 1})
        self.assertEqual(error.signature, "sig123")
        self.assertEqual(error.payload, {"err": 1})
        self.assertEqual(error.code, ErrorCode.TX_ON_CHAIN_FAILED)

    def test_user_rejected_is_signer_error(self):
        error = UserRejected()
        self.assertIsInstance(error, SignerError)
        self.assertEqual(error.code, ErrorCode.SIGNER_USER_REJECTED)

    def test_position_not_found(self):
        self.assertIn("Position not found", PositionNotFound.not_found("abc").message)
        self.assertIn("No bins found", PositionNotFound.no_bins("abc").message)

    def test_all_inherit_engine_error(self):
        for error in (
            RpcError("x"),
            InvalidPool("x"),
            NoSuitableRange("x"),
            InsufficientFunds("x"),
            TransactionError("x"),
            SignerError("x"),
            UnknownError("x"),
            ConfigurationError.missing("X"),
        ):
            self.assertIsInstance(error, EngineError)


class TestClassifyError(unittest.TestCase):
    """Tests for classify_error"""

    def test_engine_error_passes_through(self):
        error = InvalidPool.malformed("bad")
        self.assertIs(classify_error(error), error)

    def test_transport_error_is_connection(self):
        error = classify_error(httpx.ConnectError("refused"), endpoint="https://rpc.test")
        self.assertIsInstance(error, RpcError)
        self.assertEqual(error.endpoint, "https://rpc.test")

    def test_timeout_is_connection(self):
        self.assertIsInstance(classify_error(asyncio.TimeoutError()), RpcError)

    def test_user_rejection(self):
        error = classify_error(Exception("User rejected the request."))
        self.assertIsInstance(error, UserRejected)

    def test_insufficient_lamports(self):
        error = classify_error(Exception("Transfer: insufficient lamports 100, need 200"))
        self.assertIsInstance(error, InsufficientFunds)

    def test_simulation_failure(self):
        error = classify_error(Exception("Transaction simulation failed: custom program error 0x1"))
        self.assertIsInstance(error, SimulationFailed)

    def test_network_keyword(self):
        self.assertIsInstance(classify_error(Exception("Network request failed: 503")), RpcError)

    def test_unknown(self):
        error = classify_error(ValueError("something odd"))
        self.assertIsInstance(error, UnknownError)
        self.assertIn("something odd", error.message)


class TestUserMessages(unittest.TestCase):
    """Tests for the error -> message category mapping"""

    def test_categories(self):
        cases = [
            (UserRejected(), ErrorCategory.CANCELLED),
            (InsufficientFunds("x"), ErrorCategory.INSUFFICIENT_FUNDS),
            (SimulationFailed("x"), ErrorCategory.SIMULATION_FAILURE),
            (TransactionError.on_chain("s", {}), ErrorCategory.SIMULATION_FAILURE),
            (RpcError("x"), ErrorCategory.CONNECTION),
            (InvalidPool("x"), ErrorCategory.INVALID_POOL),
            (NoSuitableRange("x"), ErrorCategory.NO_SUITABLE_RANGE),
            (UnknownError("x"), ErrorCategory.UNKNOWN),
            (None, ErrorCategory.UNKNOWN),
        ]
        for error, expected in cases:
            self.assertEqual(categorize(error), expected, repr(error))

    def test_rejection_distinct_from_transport_failure(self):
        self.assertNotEqual(user_message(UserRejected()), user_message(RpcError("x")))
        self.assertIn("cancelled", user_message(UserRejected()))

    def test_describe(self):
        info = describe(InsufficientFunds.sol_balance(Decimal("1"), Decimal("0.5")))
        self.assertEqual(info["code"], "2004")
        self.assertEqual(info["category"], "insufficient_funds")
        self.assertFalse(info["recoverable"])


if __name__ == "__main__":
    unittest.main()
