"""
InductLite Core
===============
Self-service sign-out tokens, revocation and origin checks for InductLite
visitor sign-in services.
"""

__version__ = "0.1.0"

# Configuration
from inductlite_core.config import SignOutSettings, load_settings

# Errors
from inductlite_core.errors import (
    InductLiteError,
    ConfigurationError,
    OriginRejectedError,
    RevocationStoreError,
    StoreUnavailableError,
    TokenPersistenceError,
    PublicMessages,
)

# Sign-out tokens
from inductlite_core.signout_token import (
    TokenCodec,
    PhoneBinder,
    TokenVerifier,
    TokenError,
    VerificationResult,
    IssuedToken,
    hash_sign_out_token,
    compare_token_hashes,
)

# Origin checks
from inductlite_core.csrf import (
    OriginGuard,
    OriginGuardMiddleware,
    require_same_origin,
)

# Revocation
from inductlite_core.revocation import (
    RevocationStore,
    InMemoryRevocationStore,
    SQLAlchemyRevocationStore,
    RevocationState,
)

# Orchestration
from inductlite_core.service import SignOutService, SignOutOutcome, SignOutCode

__all__ = [
    "__version__",
    # Config
    "SignOutSettings",
    "load_settings",
    # Errors
    "InductLiteError",
    "ConfigurationError",
    "OriginRejectedError",
    "RevocationStoreError",
    "StoreUnavailableError",
    "TokenPersistenceError",
    "PublicMessages",
    # Tokens
    "TokenCodec",
    "PhoneBinder",
    "TokenVerifier",
    "TokenError",
    "VerificationResult",
    "IssuedToken",
    "hash_sign_out_token",
    "compare_token_hashes",
    # Origin
    "OriginGuard",
    "OriginGuardMiddleware",
    "require_same_origin",
    # Revocation
    "RevocationStore",
    "InMemoryRevocationStore",
    "SQLAlchemyRevocationStore",
    "RevocationState",
    # Service
    "SignOutService",
    "SignOutOutcome",
    "SignOutCode",
]
