"""
Pytest fixtures for the pqwallet SDK tests.
"""
import time
from unittest.mock import MagicMock

import pytest

from pqwallet_sdk._rate_limited_log import reset_rate_limit_cache
from pqwallet_sdk.signer import SeedSigner
from pqwallet_sdk.userop import OperationCodec

# Fixed scenario used across the suite
ACCOUNT = "0x1234567890123456789012345678901234567890"
VALIDATOR_MODULE = "0x2345678901234567890123456789012345678901"
CALLER = "0x3456789012345678901234567890123456789012"
DESTINATION = "0x1111111111111111111111111111111111111111"
ENTRY_POINT = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
CHAIN_ID = 412346
TEST_VALUE = 10**15  # 0.001 ETH
TEST_SEED = "0x" + "42" * 32
BUNDLER_URL = "http://localhost:4337"
TX_HASH = "0x" + "ab" * 32

# (0x01 << 176) | (VALIDATOR_MODULE << 16)
MODULE_NONCE_KEY = 0x123456789012345678901234567890123456789010000

# Regression oracle: EntryPoint v0.7 hash of the happy-path operation
# (sequence 0 under MODULE_NONCE_KEY, default gas policy)
HAPPY_PATH_HASH = "0x696a868b61eddbd2371a484da82f123d82d4cfc223e04680c9eb4ec645164546"


class FakeClock:
    """Monotonic clock whose sleep() just advances time."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# Make time.sleep instantaneous so retry backoff doesn't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _fresh_rate_limit_cache():
    reset_rate_limit_cache()
    yield
    reset_rate_limit_cache()


@pytest.fixture
def fake_clock(monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr("pqwallet_sdk.relay.client.time", clock)
    return clock


@pytest.fixture
def nonce_source():
    """Nonce authority stub returning sequence 0 for every key."""
    source = MagicMock()
    source.get_nonce.side_effect = lambda sender, key: key << 64
    return source


@pytest.fixture
def codec(nonce_source):
    return OperationCodec(nonce_source, validator_module=VALIDATOR_MODULE)


@pytest.fixture(scope="module")
def seed_signer():
    signer = SeedSigner()
    signer.configure(TEST_SEED)
    return signer
