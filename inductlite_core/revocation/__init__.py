"""
Revocation
==========
Single-use enforcement for sign-out tokens via stored token hashes.
"""

from .models import SignInRecord, RevocationState, as_utc, utcnow
from .store import RevocationStore, InMemoryRevocationStore, SQLAlchemyRevocationStore

__all__ = [
    # Models
    "SignInRecord",
    "RevocationState",
    "as_utc",
    "utcnow",
    # Stores
    "RevocationStore",
    "InMemoryRevocationStore",
    "SQLAlchemyRevocationStore",
]
