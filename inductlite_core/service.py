"""
Sign-Out Service
================
Issues tokens with their revocation hash and performs self-service sign-out.

Flow:
    issue: mint token -> persist hash + expiry against the record
    sign out: verify token -> atomic consume -> diagnose on failure
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
import structlog

from .errors import PublicMessages, RevocationStoreError, StoreUnavailableError, TokenPersistenceError
from .revocation.store import RevocationStore
from .signout_token.hashing import compare_token_hashes
from .signout_token.models import IssuedToken, TokenError
from .signout_token.verifier import TokenVerifier

logger = structlog.get_logger(__name__)
retry_logger = logging.getLogger(__name__)


class SignOutCode(str, Enum):
    """Outcome codes of a self-service sign-out attempt."""
    SIGNED_OUT = "SIGNED_OUT"
    INVALID_LINK = "INVALID_LINK"
    EXPIRED = "EXPIRED"
    PHONE_MISMATCH = "PHONE_MISMATCH"
    ALREADY_SIGNED_OUT = "ALREADY_SIGNED_OUT"
    NOT_FOUND = "NOT_FOUND"


OUTCOME_MESSAGES = {
    SignOutCode.SIGNED_OUT: PublicMessages.SIGNED_OUT,
    SignOutCode.INVALID_LINK: PublicMessages.INVALID_LINK,
    SignOutCode.EXPIRED: PublicMessages.EXPIRED,
    SignOutCode.PHONE_MISMATCH: PublicMessages.PHONE_MISMATCH,
    SignOutCode.ALREADY_SIGNED_OUT: PublicMessages.ALREADY_SIGNED_OUT,
    SignOutCode.NOT_FOUND: PublicMessages.NOT_FOUND,
}

# Format and signature failures are indistinguishable to the public caller
TOKEN_ERROR_CODES = {
    TokenError.INVALID_FORMAT: SignOutCode.INVALID_LINK,
    TokenError.INVALID_SIGNATURE: SignOutCode.INVALID_LINK,
    TokenError.EXPIRED: SignOutCode.EXPIRED,
    TokenError.PHONE_MISMATCH: SignOutCode.PHONE_MISMATCH,
}


@dataclass(frozen=True)
class SignOutOutcome:
    """Result of a sign-out attempt, safe to show to the visitor."""
    code: SignOutCode
    sign_in_record_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.code is SignOutCode.SIGNED_OUT

    @property
    def message(self) -> str:
        return OUTCOME_MESSAGES[self.code]


class SignOutService:
    """Composes the token verifier with a revocation store."""

    def __init__(self, verifier: TokenVerifier, store: RevocationStore):
        self.verifier = verifier
        self.store = store

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.verifier.clock() / 1000, tz=timezone.utc)

    async def issue_for_record(
        self,
        sign_in_record_id: str,
        phone: str,
        ttl_ms: Optional[int] = None,
    ) -> IssuedToken:
        """
        Mint a sign-out token for an existing record and store its hash.

        Must be called after the record exists, since the token embeds its id.

        Raises:
            TokenPersistenceError: The record exists but has no usable
                sign-out path because the hash could not be stored
        """
        issued = self.verifier.issue(sign_in_record_id, phone, ttl_ms=ttl_ms)
        token_hash = self.verifier.hash_token(issued.token)

        try:
            await self.store.persist_issued_token_hash(
                sign_in_record_id, token_hash, issued.expires_at
            )
        except TokenPersistenceError:
            logger.error("sign_out_token_not_persisted", sign_in_record_id=sign_in_record_id)
            raise
        except RevocationStoreError as e:
            logger.error(
                "sign_out_token_not_persisted",
                sign_in_record_id=sign_in_record_id,
                error_type=type(e).__name__,
            )
            raise TokenPersistenceError("Sign-out token hash could not be stored") from e

        logger.info(
            "sign_out_token_issued",
            sign_in_record_id=sign_in_record_id,
            expires_at=issued.expires_at.isoformat(),
        )
        return issued

    @retry(
        retry=retry_if_exception_type(StoreUnavailableError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, max=1),
        before_sleep=before_sleep_log(retry_logger, logging.WARNING),
        reraise=True,
    )
    async def _consume(self, sign_in_record_id: str, token_hash: str, now: datetime) -> bool:
        """Atomic consume, retried only when the store is unreachable."""
        return await self.store.atomic_consume(sign_in_record_id, token_hash, now=now)

    async def sign_out_with_token(
        self,
        token: str,
        phone: str,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> SignOutOutcome:
        """
        Sign a visitor out using their token and phone number.

        Expected failures come back as outcomes. Store failures propagate
        after retries and must be mapped to a generic message by the caller.

        Args:
            token: Sign-out token from the visitor's link
            phone: Phone number the visitor entered
            client_ip: Validated client address, recorded on the outcome event
            user_agent: Client user agent, recorded on the outcome event

        Raises:
            RevocationStoreError: If the store fails or stays unreachable
        """
        log = logger.bind(client_ip=client_ip, user_agent=user_agent)

        verification = self.verifier.verify(token, phone)
        if not verification.valid:
            return SignOutOutcome(TOKEN_ERROR_CODES[verification.error])

        record_id = verification.sign_in_record_id
        token_hash = self.verifier.hash_token(token)
        now = self._now()

        try:
            consumed = await self._consume(record_id, token_hash, now)
        except RevocationStoreError as e:
            log.error(
                "sign_out_consume_failed",
                sign_in_record_id=record_id,
                error_type=type(e).__name__,
            )
            raise

        if consumed:
            log.info("visitor_signed_out", sign_in_record_id=record_id, method="token")
            return SignOutOutcome(SignOutCode.SIGNED_OUT, sign_in_record_id=record_id)

        code = await self.diagnose(record_id, token_hash, now)
        log.info("sign_out_refused", sign_in_record_id=record_id, reason=code.value)
        return SignOutOutcome(code, sign_in_record_id=record_id)

    async def diagnose(self, sign_in_record_id: str, token_hash: str, now: datetime) -> SignOutCode:
        """
        Explain why an atomic consume did not apply. Read-only; never retries
        the sign-out itself.
        """
        state = await self.store.get_state(sign_in_record_id)
        if state is None:
            return SignOutCode.NOT_FOUND
        if state.is_signed_out:
            return SignOutCode.ALREADY_SIGNED_OUT
        if not state.token_hash or not compare_token_hashes(state.token_hash, token_hash):
            return SignOutCode.INVALID_LINK
        if state.is_expired(now):
            return SignOutCode.EXPIRED
        return SignOutCode.INVALID_LINK
