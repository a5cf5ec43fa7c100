"""
Tests for Revocation Stores
===========================
Atomic consume semantics for the in-memory and SQLAlchemy stores.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.pool import StaticPool

from inductlite_core.errors import RevocationStoreError, StoreUnavailableError, TokenPersistenceError
from inductlite_core.revocation import (
    InMemoryRevocationStore,
    RevocationState,
    SignInRecord,
    SQLAlchemyRevocationStore,
)
from inductlite_core.signout_token import hash_sign_out_token

from conftest import TEST_SECRET

NOW = datetime(2025, 10, 9, 12, 0, tzinfo=timezone.utc)
EXPIRES = NOW + timedelta(hours=8)
TOKEN_HASH = hash_sign_out_token(TEST_SECRET, "payload.signature")
OTHER_HASH = hash_sign_out_token(TEST_SECRET, "payload.other")


async def build_memory_store():
    store = InMemoryRevocationStore()
    store.add_record("rec-1")
    await store.persist_issued_token_hash("rec-1", TOKEN_HASH, EXPIRES)
    return store


async def build_sql_store():
    from inductlite_core import database

    database.create_async_engine(
        "sqlite+aiosqlite://",
        pool_pre_ping=False,
        poolclass=StaticPool,
    )
    await database.create_tables()

    async with database.get_session() as session:
        session.add(SignInRecord(id="rec-1", sign_in_ts=NOW - timedelta(hours=1)))

    store = SQLAlchemyRevocationStore(database.get_session_factory())
    await store.persist_issued_token_hash("rec-1", TOKEN_HASH, EXPIRES)
    return store


@pytest_asyncio.fixture
async def memory_store():
    return await build_memory_store()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def any_store(request):
    """Run the shared contract against both implementations."""
    from inductlite_core import database

    if request.param == "memory":
        yield await build_memory_store()
        return

    yield await build_sql_store()
    await database.close_engine()


class TestRevocationContract:
    """Behaviour every RevocationStore must share."""

    @pytest.mark.asyncio
    async def test_consume_succeeds_once(self, any_store):
        assert await any_store.atomic_consume("rec-1", TOKEN_HASH, now=NOW) is True
        assert await any_store.atomic_consume("rec-1", TOKEN_HASH, now=NOW) is False

    @pytest.mark.asyncio
    async def test_consume_clears_hash_and_expiry(self, any_store):
        await any_store.atomic_consume("rec-1", TOKEN_HASH, now=NOW)

        state = await any_store.get_state("rec-1")
        assert state.is_signed_out
        assert state.signed_out_at == NOW
        assert state.token_hash is None
        assert state.token_expiry is None

    @pytest.mark.asyncio
    async def test_wrong_hash_does_not_mutate(self, any_store):
        assert await any_store.atomic_consume("rec-1", OTHER_HASH, now=NOW) is False

        state = await any_store.get_state("rec-1")
        assert not state.is_signed_out
        assert state.token_hash == TOKEN_HASH

    @pytest.mark.asyncio
    async def test_expired_hash_is_refused(self, any_store):
        later = EXPIRES + timedelta(seconds=1)

        assert await any_store.atomic_consume("rec-1", TOKEN_HASH, now=later) is False
        state = await any_store.get_state("rec-1")
        assert state.is_expired(later)
        assert not state.is_signed_out

    @pytest.mark.asyncio
    async def test_expiry_instant_still_consumes(self, any_store):
        assert await any_store.atomic_consume("rec-1", TOKEN_HASH, now=EXPIRES) is True

    @pytest.mark.asyncio
    async def test_reissue_revokes_previous_hash(self, any_store):
        await any_store.persist_issued_token_hash("rec-1", OTHER_HASH, EXPIRES)

        assert await any_store.atomic_consume("rec-1", TOKEN_HASH, now=NOW) is False
        assert await any_store.atomic_consume("rec-1", OTHER_HASH, now=NOW) is True

    @pytest.mark.asyncio
    async def test_unknown_record(self, any_store):
        assert await any_store.atomic_consume("missing", TOKEN_HASH, now=NOW) is False
        assert await any_store.get_state("missing") is None

    @pytest.mark.asyncio
    async def test_persist_for_unknown_record_raises(self, any_store):
        with pytest.raises(TokenPersistenceError):
            await any_store.persist_issued_token_hash("missing", TOKEN_HASH, EXPIRES)

    @pytest.mark.asyncio
    async def test_state_round_trips_timezone(self, any_store):
        state = await any_store.get_state("rec-1")

        assert state == RevocationState(
            sign_in_record_id="rec-1",
            signed_out_at=None,
            token_hash=TOKEN_HASH,
            token_expiry=EXPIRES,
        )
        assert state.token_expiry.tzinfo is not None


class TestInMemoryRevocationStore:
    """Tests specific to the process-local store."""

    @pytest.mark.asyncio
    async def test_concurrent_consumes_have_one_winner(self, memory_store):
        results = await asyncio.gather(*[
            memory_store.atomic_consume("rec-1", TOKEN_HASH, now=NOW) for _ in range(20)
        ])

        assert results.count(True) == 1
        assert results.count(False) == 19

    @pytest.mark.asyncio
    async def test_record_without_token_cannot_be_consumed(self):
        store = InMemoryRevocationStore()
        store.add_record("rec-2")

        assert await store.atomic_consume("rec-2", TOKEN_HASH, now=NOW) is False

    @pytest.mark.asyncio
    async def test_add_record_is_idempotent(self, memory_store):
        memory_store.add_record("rec-1")

        state = await memory_store.get_state("rec-1")
        assert state.token_hash == TOKEN_HASH


class TestRevocationState:
    """Tests for the diagnosis snapshot."""

    def test_no_expiry_never_expires(self):
        state = RevocationState("rec-1", None, TOKEN_HASH, None)

        assert state.is_expired(NOW) is False

    def test_expiry_boundary(self):
        state = RevocationState("rec-1", None, TOKEN_HASH, EXPIRES)

        assert state.is_expired(EXPIRES) is False
        assert state.is_expired(EXPIRES + timedelta(microseconds=1)) is True


class BrokenSession:
    """Session whose execute fails with a given SQLAlchemy error."""

    def __init__(self, error):
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def begin(self):
        return self

    async def execute(self, stmt):
        raise self.error


class BrokenFactory:
    def __init__(self, error):
        self.error = error

    def __call__(self):
        return BrokenSession(self.error)


class TestSQLAlchemyErrorMapping:
    """Driver failures surface as store errors without driver text."""

    @pytest.mark.asyncio
    async def test_operational_error_is_unavailable(self):
        error = OperationalError("UPDATE sign_in_records", {}, Exception("password=hunter2"))
        store = SQLAlchemyRevocationStore(BrokenFactory(error))

        with pytest.raises(StoreUnavailableError) as exc_info:
            await store.atomic_consume("rec-1", TOKEN_HASH, now=NOW)

        assert "hunter2" not in str(exc_info.value)
        assert exc_info.value.details == "OperationalError"

    @pytest.mark.asyncio
    async def test_other_errors_are_store_errors(self):
        error = ProgrammingError("SELECT", {}, Exception("syntax"))
        store = SQLAlchemyRevocationStore(BrokenFactory(error))

        with pytest.raises(RevocationStoreError) as exc_info:
            await store.get_state("rec-1")

        assert not isinstance(exc_info.value, StoreUnavailableError)

    @pytest.mark.asyncio
    async def test_persist_failure_is_mapped(self):
        error = OperationalError("UPDATE", {}, Exception("down"))
        store = SQLAlchemyRevocationStore(BrokenFactory(error))

        with pytest.raises(StoreUnavailableError):
            await store.persist_issued_token_hash("rec-1", TOKEN_HASH, EXPIRES)


class TestStoreFromSettings:
    """Building the SQL store from DATABASE_URL."""

    @pytest.mark.asyncio
    async def test_builds_store_on_configured_database(self):
        from inductlite_core import database
        from inductlite_core.config import SignOutSettings

        settings = SignOutSettings(secret="x" * 32, database_url="sqlite+aiosqlite://")
        store = SQLAlchemyRevocationStore.from_settings(
            settings, pool_pre_ping=False, poolclass=StaticPool
        )
        try:
            await database.create_tables()
            assert store.session_factory is database.get_session_factory()
            assert await store.get_state("rec-1") is None
        finally:
            await database.close_engine()

    def test_missing_database_url_is_configuration_error(self):
        from inductlite_core.config import SignOutSettings
        from inductlite_core.errors import ConfigurationError

        with pytest.raises(ConfigurationError):
            SQLAlchemyRevocationStore.from_settings(SignOutSettings(secret="x" * 32))
