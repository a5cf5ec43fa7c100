"""
Shared fixtures for sign-out core tests.
"""

import pytest

from inductlite_core.revocation import InMemoryRevocationStore
from inductlite_core.service import SignOutService
from inductlite_core.signout_token import TokenVerifier

TEST_SECRET = "test-secret-key-for-hmac-signing-32chars"
PHONE = "+64211234567"
T0 = 1_760_000_000_000  # fixed epoch ms
HOUR_MS = 60 * 60 * 1000


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def verifier(clock):
    return TokenVerifier(TEST_SECRET, clock=clock)


@pytest.fixture
def store():
    memory_store = InMemoryRevocationStore()
    memory_store.add_record("rec-1")
    return memory_store


@pytest.fixture
def service(verifier, store):
    return SignOutService(verifier, store)
