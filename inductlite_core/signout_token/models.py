"""
Sign-Out Token Models
=====================
Payload schema, error tags and result types for self-service sign-out tokens.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

PHONE_HASH_LENGTH = 16
DEFAULT_TOKEN_TTL_MS = 8 * 60 * 60 * 1000  # 8 hours


class TokenError(str, Enum):
    """Closed set of verification failure tags."""
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    EXPIRED = "EXPIRED"
    PHONE_MISMATCH = "PHONE_MISMATCH"


class SignOutTokenPayload(BaseModel):
    """
    Signed token body. Field order is the wire order.

    Exactly three fields; anything missing, extra or mistyped is rejected.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    signInRecordId: StrictStr = Field(min_length=1)
    phoneHash: StrictStr = Field(pattern=r"^[0-9a-f]{16}$")
    expiresAt: StrictInt


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding a token: a payload or an error tag."""
    payload: Optional[SignOutTokenPayload] = None
    error: Optional[TokenError] = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying a sign-out attempt."""
    valid: bool
    sign_in_record_id: Optional[str] = None
    error: Optional[TokenError] = None

    @classmethod
    def success(cls, sign_in_record_id: str) -> "VerificationResult":
        return cls(valid=True, sign_in_record_id=sign_in_record_id)

    @classmethod
    def failure(cls, error: TokenError) -> "VerificationResult":
        return cls(valid=False, error=error)


@dataclass(frozen=True)
class IssuedToken:
    """A freshly minted token and its absolute expiry."""
    token: str
    expires_at_ms: int

    @property
    def expires_at(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at_ms / 1000, tz=timezone.utc)
