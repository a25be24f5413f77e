from datetime import datetime, timedelta

import pytest

from cyberchat.core.errors import EmailAlreadyRegistered
from cyberchat.database import init_db, make_engine
from cyberchat.models.session import SessionRecord
from cyberchat.services.sessions import MemorySessionStore, SqlSessionStore
from cyberchat.services.store import MemoryCredentialStore, SqlCredentialStore

NOW = datetime(2024, 1, 1, 12, 0, 0)


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def credential_store(request, engine):
    if request.param == "memory":
        return MemoryCredentialStore()
    return SqlCredentialStore(engine)


@pytest.fixture(params=["memory", "sql"])
def session_store(request, engine):
    if request.param == "memory":
        return MemorySessionStore()
    return SqlSessionStore(engine)


def test_create_and_lookup(credential_store):
    account = credential_store.create_account("a@b.com", "hash", username="alice")

    assert account.id
    assert account.verified is False
    assert credential_store.get_account(account.id).email == "a@b.com"
    assert credential_store.get_account_by_email("a@b.com").id == account.id
    assert credential_store.get_account_by_email("A@B.com") is None
    assert credential_store.get_account("missing") is None


def test_duplicate_email_rejected(credential_store):
    credential_store.create_account("a@b.com", "hash")
    with pytest.raises(EmailAlreadyRegistered):
        credential_store.create_account("a@b.com", "hash2")


def test_consume_verification_code(credential_store):
    account = credential_store.create_account("a@b.com", "hash")
    credential_store.set_verification_code(account.id, "ABC123", NOW + timedelta(minutes=10))

    assert credential_store.consume_verification_code("a@b.com", "WRONG1", NOW) is None
    assert credential_store.consume_verification_code("a@b.com", "ABC123", NOW + timedelta(minutes=10)) is None

    verified = credential_store.consume_verification_code("a@b.com", "ABC123", NOW)
    assert verified.verified is True
    assert verified.verification_code is None
    assert verified.verification_expiry is None

    assert credential_store.consume_verification_code("a@b.com", "ABC123", NOW) is None


def test_consume_without_pending_code(credential_store):
    credential_store.create_account("a@b.com", "hash")
    assert credential_store.consume_verification_code("a@b.com", "ABC123", NOW) is None
    assert credential_store.consume_verification_code("x@y.com", "ABC123", NOW) is None


def test_returned_accounts_are_detached_from_store(credential_store):
    account = credential_store.create_account("a@b.com", "hash")
    account.verified = True
    assert credential_store.get_account(account.id).verified is False


def test_turns_are_owned_per_account(credential_store):
    alice = credential_store.create_account("a@b.com", "hash")
    bob = credential_store.create_account("c@d.com", "hash")

    turn = credential_store.save_turn(alice.id, "hi", "hello", ["VPNs"], True)
    credential_store.save_turn(bob.id, "yo", "hey", [])

    alice_turns = credential_store.list_turns(alice.id)
    assert [t.id for t in alice_turns] == [turn.id]
    assert alice_turns[0].suggested_topics == ["VPNs"]
    assert alice_turns[0].is_cyber_security_related is True
    assert alice_turns[0].created_at is not None
    assert [t.message for t in credential_store.list_turns(bob.id)] == ["yo"]
    assert credential_store.list_turns("nobody") == []


def test_session_store_roundtrip(session_store):
    record = SessionRecord(token="tok", account_id="acc", expires_at=NOW + timedelta(hours=1))
    session_store.add(record)

    fetched = session_store.get("tok")
    assert fetched.account_id == "acc"
    assert fetched.expires_at == NOW + timedelta(hours=1)

    session_store.delete("tok")
    session_store.delete("tok")
    assert session_store.get("tok") is None


def test_session_store_purges_expired(session_store):
    session_store.add(SessionRecord(token="old", account_id="a", expires_at=NOW))
    session_store.add(SessionRecord(token="new", account_id="a", expires_at=NOW + timedelta(seconds=1)))

    assert session_store.delete_expired(NOW) == 1
    assert session_store.get("old") is None
    assert session_store.get("new") is not None
