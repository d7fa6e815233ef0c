"""Tests for connection scope and transactions."""

import pytest

from webd2.db.database import Database
from webd2.errors import DatabaseError, NotFoundError, UsageError


def test_requires_transport():
    with pytest.raises(UsageError, match="transport is undefined"):
        Database(None)


def test_exec_opens_and_closes(fake_db, fake_transport):
    assert fake_db.exec("SELECT 1") == []
    assert fake_transport.events == ["open", "execute", "close"]
    assert not fake_transport.is_open


def test_session_shares_one_connection(fake_db, fake_transport):
    with fake_db.session():
        fake_db.exec("SELECT 1")
        with fake_db.session():
            fake_db.exec("SELECT 2")
        assert fake_transport.is_open

    assert fake_transport.events == ["open", "execute", "execute", "close"]
    assert fake_transport.statements == ["SELECT 1", "SELECT 2"]


def test_session_closes_on_error(fake_db, fake_transport):
    with pytest.raises(NotFoundError):
        with fake_db.session():
            raise NotFoundError("nothing")

    assert fake_transport.events == ["open", "close"]


def test_transaction_commits(fake_db, fake_transport):
    with fake_db.transaction() as db:
        assert db.in_transaction
        db.exec("INSERT INTO t (a) VALUES (1)")

    assert not fake_db.in_transaction
    assert fake_transport.events == ["open", "begin", "execute", "commit", "close"]


def test_transaction_rolls_back_and_reraises(fake_db, fake_transport):
    with pytest.raises(ValueError, match="boom"):
        with fake_db.transaction() as db:
            db.exec("INSERT INTO t (a) VALUES (1)")
            raise ValueError("boom")

    assert not fake_db.in_transaction
    assert fake_transport.events == ["open", "begin", "execute", "rollback", "close"]


def test_nested_transaction_is_rejected(fake_db, fake_transport):
    with pytest.raises(UsageError, match="there is an open transaction already"):
        with fake_db.transaction():
            with fake_db.transaction():
                pass

    assert fake_transport.events.count("commit") == 0
    assert fake_transport.events[-2:] == ["rollback", "close"]


def test_driver_errors_are_wrapped(make_fake_db):
    def responder(sql):
        raise RuntimeError("no such table: t")

    db = make_fake_db(responder)
    with pytest.raises(DatabaseError, match="no such table: t") as info:
        db.exec("SELECT * FROM t")

    assert isinstance(info.value.__cause__, RuntimeError)
    assert not db.transport.is_open


def test_own_errors_pass_through(make_fake_db):
    def responder(sql):
        raise UsageError("bad statement")

    with pytest.raises(UsageError, match="bad statement"):
        make_fake_db(responder).exec("SELECT 1")
