"""
Revocation Store
================
Persistence contract for sign-out token hashes.

The only concurrency guarantee the sign-out flow relies on is
``atomic_consume``: one conditional update that checks every predicate and
performs the state transition together. Implementations must never split it
into a read followed by a write.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import (
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from ..database import create_async_engine, get_session_factory
from ..errors import (
    ConfigurationError,
    RevocationStoreError,
    StoreUnavailableError,
    TokenPersistenceError,
)
from ..signout_token.hashing import compare_token_hashes
from .models import RevocationState, SignInRecord, as_utc, utcnow

logger = structlog.get_logger(__name__)


class RevocationStore(ABC):
    """Holds the hash and expiry of each record's currently valid token."""

    @abstractmethod
    async def persist_issued_token_hash(
        self,
        sign_in_record_id: str,
        token_hash: str,
        expires_at: datetime,
    ) -> None:
        """
        Store the hash of a freshly minted token against its record.

        Raises:
            TokenPersistenceError: If the record does not exist
            StoreUnavailableError: If the store cannot be reached
        """

    @abstractmethod
    async def atomic_consume(
        self,
        sign_in_record_id: str,
        expected_token_hash: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Finalize a record if and only if, in one indivisible step:
        it is not signed out, its stored hash equals ``expected_token_hash``
        and its stored expiry is absent or not yet passed.

        On success the sign-out time is set and the hash and expiry cleared.

        Returns:
            True if this call performed the sign-out
        """

    @abstractmethod
    async def get_state(self, sign_in_record_id: str) -> Optional[RevocationState]:
        """Read a record's revocation columns for diagnosis. Never mutates."""


@dataclass
class _MemoryRecord:
    sign_out_ts: Optional[datetime] = None
    signed_out_by: Optional[str] = None
    sign_out_token: Optional[str] = None
    sign_out_token_exp: Optional[datetime] = None


class InMemoryRevocationStore(RevocationStore):
    """
    Process-local revocation store.

    A single asyncio lock serializes consume attempts. Suitable for tests and
    single-process deployments only.
    """

    def __init__(self):
        self._records: Dict[str, _MemoryRecord] = {}
        self._lock = asyncio.Lock()

    def add_record(self, sign_in_record_id: str) -> None:
        """Register a sign-in record (normally created by the host application)."""
        self._records.setdefault(sign_in_record_id, _MemoryRecord())

    async def persist_issued_token_hash(
        self,
        sign_in_record_id: str,
        token_hash: str,
        expires_at: datetime,
    ) -> None:
        async with self._lock:
            record = self._records.get(sign_in_record_id)
            if record is None:
                raise TokenPersistenceError("Sign-in record not found for token hash")
            record.sign_out_token = token_hash
            record.sign_out_token_exp = expires_at

    async def atomic_consume(
        self,
        sign_in_record_id: str,
        expected_token_hash: str,
        now: Optional[datetime] = None,
    ) -> bool:
        now = now or utcnow()
        async with self._lock:
            record = self._records.get(sign_in_record_id)
            if record is None or record.sign_out_ts is not None:
                return False
            if not record.sign_out_token or not compare_token_hashes(
                record.sign_out_token, expected_token_hash
            ):
                return False
            if record.sign_out_token_exp is not None and record.sign_out_token_exp < now:
                return False

            record.sign_out_ts = now
            record.signed_out_by = None
            record.sign_out_token = None
            record.sign_out_token_exp = None
            return True

    async def get_state(self, sign_in_record_id: str) -> Optional[RevocationState]:
        record = self._records.get(sign_in_record_id)
        if record is None:
            return None
        return RevocationState(
            sign_in_record_id=sign_in_record_id,
            signed_out_at=record.sign_out_ts,
            token_hash=record.sign_out_token,
            token_expiry=record.sign_out_token_exp,
        )


class SQLAlchemyRevocationStore(RevocationStore):
    """Revocation store backed by the ``sign_in_records`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @classmethod
    def from_settings(cls, settings, **engine_kwargs) -> "SQLAlchemyRevocationStore":
        """
        Initialize the database engine from ``DATABASE_URL`` and build a store on it.

        Args:
            settings: SignOutSettings with ``database_url`` set
            **engine_kwargs: Passed to ``create_async_engine``

        Raises:
            ConfigurationError: If no database URL is configured
        """
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL must be configured for the SQL revocation store")
        create_async_engine(settings.database_url, **engine_kwargs)
        return cls(get_session_factory())

    def _map_exception(self, exc: SQLAlchemyError) -> RevocationStoreError:
        """Map SQLAlchemy exceptions to store exceptions without leaking driver text."""
        if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError)):
            return StoreUnavailableError("Revocation store unavailable", details=type(exc).__name__)
        return RevocationStoreError("Revocation store failure", details=type(exc).__name__)

    async def persist_issued_token_hash(
        self,
        sign_in_record_id: str,
        token_hash: str,
        expires_at: datetime,
    ) -> None:
        stmt = (
            update(SignInRecord)
            .where(SignInRecord.id == sign_in_record_id)
            .values(sign_out_token=token_hash, sign_out_token_exp=expires_at)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("token_hash_persist_failed", error_type=type(e).__name__)
            raise self._map_exception(e) from e

        if result.rowcount != 1:
            raise TokenPersistenceError("Sign-in record not found for token hash")

    async def atomic_consume(
        self,
        sign_in_record_id: str,
        expected_token_hash: str,
        now: Optional[datetime] = None,
    ) -> bool:
        now = now or utcnow()
        stmt = (
            update(SignInRecord)
            .where(
                SignInRecord.id == sign_in_record_id,
                SignInRecord.sign_out_ts.is_(None),
                SignInRecord.sign_out_token == expected_token_hash,
                or_(
                    SignInRecord.sign_out_token_exp.is_(None),
                    SignInRecord.sign_out_token_exp >= now,
                ),
            )
            .values(
                sign_out_ts=now,
                signed_out_by=None,
                sign_out_token=None,
                sign_out_token_exp=None,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    result = await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("atomic_consume_failed", error_type=type(e).__name__)
            raise self._map_exception(e) from e

        return result.rowcount == 1

    async def get_state(self, sign_in_record_id: str) -> Optional[RevocationState]:
        stmt = select(
            SignInRecord.sign_out_ts,
            SignInRecord.sign_out_token,
            SignInRecord.sign_out_token_exp,
        ).where(SignInRecord.id == sign_in_record_id)
        try:
            async with self.session_factory() as session:
                row = (await session.execute(stmt)).first()
        except SQLAlchemyError as e:
            logger.error("revocation_state_read_failed", error_type=type(e).__name__)
            raise self._map_exception(e) from e

        if row is None:
            return None
        return RevocationState(
            sign_in_record_id=sign_in_record_id,
            signed_out_at=as_utc(row.sign_out_ts),
            token_hash=row.sign_out_token,
            token_expiry=as_utc(row.sign_out_token_exp),
        )
