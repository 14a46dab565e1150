"""
Shared fixtures for unit tests. No test touches the network.
"""

import sys
from pathlib import Path

import pytest

# Add project root and this directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from solders.keypair import Keypair  # noqa: E402

from fakes import FakeConnector, FakeRpc  # noqa: E402


@pytest.fixture
def wallet():
    return Keypair()


@pytest.fixture
def fake_rpc():
    return FakeRpc()


@pytest.fixture
def connector():
    return FakeConnector()
