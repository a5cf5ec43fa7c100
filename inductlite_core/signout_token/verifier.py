"""
Token Verifier
==============
Issues sign-out tokens and decides whether a sign-out attempt is valid.

Verification order is fixed:
    1. format and signature (a forged payload never reaches later checks)
    2. expiry (an expired token reports EXPIRED whatever phone is supplied)
    3. phone binding
"""

import time
from typing import Callable, Optional

import structlog

from ..config import DEFAULT_PHONE_REGION
from .codec import TokenCodec, decode_unverified
from .hashing import hash_sign_out_token
from .models import (
    DEFAULT_TOKEN_TTL_MS,
    IssuedToken,
    SignOutTokenPayload,
    TokenError,
    VerificationResult,
)
from .phone import PhoneBinder

logger = structlog.get_logger(__name__)


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class TokenVerifier:
    """Single authority for minting and checking self-service sign-out tokens."""

    def __init__(
        self,
        secret: str,
        default_region: str = DEFAULT_PHONE_REGION,
        default_ttl_ms: int = DEFAULT_TOKEN_TTL_MS,
        clock: Callable[[], int] = now_ms,
    ):
        self._secret = secret
        self.codec = TokenCodec(secret)
        self.phone_binder = PhoneBinder(secret, default_region=default_region)
        self.default_ttl_ms = default_ttl_ms
        self.clock = clock

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], int] = now_ms) -> "TokenVerifier":
        return cls(
            settings.secret,
            default_region=settings.default_phone_region,
            default_ttl_ms=settings.token_ttl_ms,
            clock=clock,
        )

    def issue(
        self,
        sign_in_record_id: str,
        phone: str,
        ttl_ms: Optional[int] = None,
    ) -> IssuedToken:
        """
        Mint a token for a sign-in record.

        A negative ``ttl_ms`` produces a token that is already expired.

        Args:
            sign_in_record_id: Record the token signs out
            phone: Visitor phone number the token is bound to
            ttl_ms: Lifetime in milliseconds (default 8 hours)

        Returns:
            IssuedToken with the token string and absolute expiry
        """
        ttl = self.default_ttl_ms if ttl_ms is None else ttl_ms
        expires_at = self.clock() + ttl
        payload = SignOutTokenPayload(
            signInRecordId=sign_in_record_id,
            phoneHash=self.phone_binder.hash_phone(phone),
            expiresAt=expires_at,
        )
        return IssuedToken(token=self.codec.encode(payload), expires_at_ms=expires_at)

    def verify(self, token: str, phone: str) -> VerificationResult:
        """
        Verify a sign-out token against the phone number the visitor entered.

        Never raises for malformed input; failures come back as a tag with no
        payload attached.
        """
        decoded = self.codec.decode(token)
        if not decoded.ok:
            logger.warning("sign_out_token_rejected", reason=decoded.error.value)
            return VerificationResult.failure(decoded.error)

        payload = decoded.payload
        if self.clock() > payload.expiresAt:
            logger.info("sign_out_token_rejected", reason=TokenError.EXPIRED.value)
            return VerificationResult.failure(TokenError.EXPIRED)

        if not self.phone_binder.matches(phone, payload.phoneHash):
            logger.warning("sign_out_token_rejected", reason=TokenError.PHONE_MISMATCH.value)
            return VerificationResult.failure(TokenError.PHONE_MISMATCH)

        return VerificationResult.success(payload.signInRecordId)

    def hash_token(self, token: str) -> str:
        """Revocation hash of a full token."""
        return hash_sign_out_token(self._secret, token)

    def hash_phone(self, phone: str) -> str:
        return self.phone_binder.hash_phone(phone)

    def extract_record_id(self, token: str) -> Optional[str]:
        """Read the record id from a token WITHOUT verifying it."""
        try:
            record_id = decode_unverified(token).get("signInRecordId")
        except ValueError:
            return None
        return record_id if isinstance(record_id, str) else None

    def is_expired(self, token: str) -> bool:
        """Check expiry WITHOUT verifying the signature. Malformed tokens count as expired."""
        try:
            expires_at = decode_unverified(token).get("expiresAt")
        except ValueError:
            return True
        if not isinstance(expires_at, int) or isinstance(expires_at, bool):
            return True
        return self.clock() > expires_at
