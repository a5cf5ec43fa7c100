"""
Sign-Out Tokens
===============
Stateless signed tokens for visitor self-service sign-out.
"""

from .models import (
    TokenError,
    SignOutTokenPayload,
    DecodeResult,
    VerificationResult,
    IssuedToken,
    DEFAULT_TOKEN_TTL_MS,
    PHONE_HASH_LENGTH,
)
from .codec import TokenCodec, b64url_encode, b64url_decode, decode_unverified
from .phone import PhoneBinder, canonicalize_phone, format_e164, digits_only
from .hashing import hash_sign_out_token, compare_token_hashes
from .verifier import TokenVerifier, now_ms

__all__ = [
    # Models
    "TokenError",
    "SignOutTokenPayload",
    "DecodeResult",
    "VerificationResult",
    "IssuedToken",
    "DEFAULT_TOKEN_TTL_MS",
    "PHONE_HASH_LENGTH",
    # Codec
    "TokenCodec",
    "b64url_encode",
    "b64url_decode",
    "decode_unverified",
    # Phone
    "PhoneBinder",
    "canonicalize_phone",
    "format_e164",
    "digits_only",
    # Hashing
    "hash_sign_out_token",
    "compare_token_hashes",
    # Verifier
    "TokenVerifier",
    "now_ms",
]
