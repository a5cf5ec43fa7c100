"""
Revocation Models
=================
The sign-in record columns the sign-out core reads and writes.

The full sign-in record (visitor details, site, tenant) belongs to the host
application; this mapping covers only the revocation lifecycle.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to datetimes read back from databases without timezone support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class SignInRecord(Base):
    """Sign-in row carrying the hash of its currently valid sign-out token."""
    __tablename__ = "sign_in_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sign_in_ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    sign_out_ts: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    signed_out_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # HMAC of the issued token, never the token itself
    sign_out_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    sign_out_token_exp: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


@dataclass(frozen=True)
class RevocationState:
    """Snapshot of a record's revocation columns, for diagnosis only."""
    sign_in_record_id: str
    signed_out_at: Optional[datetime]
    token_hash: Optional[str]
    token_expiry: Optional[datetime]

    @property
    def is_signed_out(self) -> bool:
        return self.signed_out_at is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.token_expiry is None:
            return False
        return (now or utcnow()) > self.token_expiry
