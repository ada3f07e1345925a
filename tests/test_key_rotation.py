"""
Tests for the transactional master password change.

A small in-memory stand-in for an asyncpg pool records statements inside
a transaction and only applies them on commit.
"""
import contextlib

import pytest

from lockbox.vault.credential import Credential
from lockbox.vault.envelope import login
from lockbox.vault.errors import AuthenticationFailure, IntegrityFault
from lockbox.vault.key_rotation import change_master_password, load_credential


# --- Fake asyncpg pool ---

class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn
        self.started = False

    async def start(self):
        self.started = True
        self.conn.pending = []

    async def commit(self):
        for op in self.conn.pending:
            self.conn.pool.apply(op)
        self.conn.pool.commits += 1
        self.conn.pending = []

    async def rollback(self):
        self.conn.pool.rollbacks += 1
        self.conn.pending = []


class FakeConnection:
    def __init__(self, pool):
        self.pool = pool
        self.pending = []

    def transaction(self):
        return FakeTransaction(self)

    async def fetchrow(self, sql, user_id):
        row = self.pool.users.get(user_id)
        return dict(row) if row is not None else None

    async def execute(self, sql, *args):
        if self.pool.fail_on and self.pool.fail_on in sql:
            raise RuntimeError("connection lost")
        if "UPDATE auth.users" in sql:
            salt, verifier, wrapped, user_id, expected = args
            if self.pool.concurrent_change:
                self.pool.users[user_id]["master_password_hash"] = "0" * 64
            row = self.pool.users.get(user_id)
            if row is None or row["master_password_hash"] != expected:
                return "UPDATE 0"
            self.pending.append(("update", user_id, {
                "salt": salt,
                "master_password_hash": verifier,
                "encryption_key_encrypted": wrapped,
            }))
            return "UPDATE 1"
        if "DELETE FROM auth.sessions" in sql:
            self.pending.append(("delete_sessions", args[0], None))
            return f"DELETE {len(self.pool.sessions.get(args[0], []))}"
        if "INSERT INTO auth.audit_log" in sql:
            self.pending.append(("audit", args[0], args[1]))
            return "INSERT 0 1"
        raise AssertionError(f"unexpected statement: {sql}")


class FakePool:
    def __init__(self):
        self.users = {}
        self.sessions = {}
        self.audit = []
        self.fail_on = None
        self.concurrent_change = False
        self.commits = 0
        self.rollbacks = 0

    @contextlib.asynccontextmanager
    async def acquire(self):
        yield FakeConnection(self)

    def apply(self, op):
        kind, user_id, data = op
        if kind == "update":
            self.users[user_id].update(data)
        elif kind == "delete_sessions":
            self.sessions.pop(user_id, None)
        elif kind == "audit":
            self.audit.append((user_id, data))


@pytest.fixture
def pool(registration):
    pool = FakePool()
    pool.users["u1"] = registration.credential.to_record()
    pool.sessions["u1"] = ["session-a", "session-b"]
    return pool


# --- Tests ---

class TestLoadCredential:

    @pytest.mark.asyncio
    async def test_load(self, pool, registration):
        assert await load_credential(pool, "u1") == registration.credential

    @pytest.mark.asyncio
    async def test_unknown_user(self, pool):
        assert await load_credential(pool, "missing") is None


class TestChangeMasterPassword:
    """Tests for change_master_password."""

    @pytest.mark.asyncio
    async def test_success(self, pool, registration, config):
        new = await change_master_password(
            pool, "u1", "CorrectHorse123!", "BatteryStaple456?", config,
        )
        stored = Credential.from_record(pool.users["u1"])
        assert stored == new
        assert stored.salt != registration.credential.salt
        assert login("BatteryStaple456?", stored, config).dek == registration.dek
        assert pool.commits == 1
        assert pool.rollbacks == 0

    @pytest.mark.asyncio
    async def test_sessions_revoked_and_audited(self, pool, config):
        await change_master_password(pool, "u1", "CorrectHorse123!", "new-pass", config)
        assert "u1" not in pool.sessions
        assert pool.audit == [("u1", "PASSWORD_CHANGED")]

    @pytest.mark.asyncio
    async def test_wrong_current_password(self, pool, registration, config):
        with pytest.raises(AuthenticationFailure):
            await change_master_password(pool, "u1", "wrong", "new-pass", config)
        assert pool.users["u1"] == registration.credential.to_record()
        assert pool.sessions["u1"] == ["session-a", "session-b"]
        assert pool.commits == 0

    @pytest.mark.asyncio
    async def test_unknown_user(self, pool, config):
        with pytest.raises(AuthenticationFailure):
            await change_master_password(pool, "nobody", "pw", "new", config)

    @pytest.mark.asyncio
    async def test_failure_rolls_back_everything(self, pool, registration, config):
        """A failure after the UPDATE leaves the old credential intact."""
        pool.fail_on = "DELETE FROM auth.sessions"
        with pytest.raises(IntegrityFault):
            await change_master_password(pool, "u1", "CorrectHorse123!", "new-pass", config)
        assert pool.rollbacks == 1
        assert pool.commits == 0
        stored = Credential.from_record(pool.users["u1"])
        assert login("CorrectHorse123!", stored, config).dek == registration.dek
        assert pool.sessions["u1"] == ["session-a", "session-b"]

    @pytest.mark.asyncio
    async def test_concurrent_change_detected(self, pool, config):
        pool.concurrent_change = True
        with pytest.raises(IntegrityFault):
            await change_master_password(pool, "u1", "CorrectHorse123!", "new-pass", config)
        assert pool.rollbacks == 1
        assert pool.commits == 0
        assert pool.audit == []

    @pytest.mark.asyncio
    async def test_repeated_changes_keep_dek(self, pool, registration, config):
        await change_master_password(pool, "u1", "CorrectHorse123!", "second", config)
        await change_master_password(pool, "u1", "second", "third", config)
        stored = Credential.from_record(pool.users["u1"])
        assert login("third", stored, config).dek == registration.dek

