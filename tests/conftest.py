"""Pytest configuration and fixtures."""

import pytest

from webd2.core.registry import EntityRegistry
from webd2.db.base import BaseTransport
from webd2.db.database import Database
from webd2.db.duckdb import DuckDBTransport
from webd2.errors import UsageError
from webd2.models import register_models

STAFF_DDL = [
    "CREATE SEQUENCE grp_seq START 1",
    "CREATE TABLE sPepTree ("
    "GrpID INTEGER DEFAULT nextval('grp_seq'), parentid INTEGER, name VARCHAR, hide BOOLEAN DEFAULT false, info VARCHAR"
    ")",
    "CREATE SEQUENCE pers_seq START 1",
    "CREATE TABLE sPersonal ("
    "PersID INTEGER DEFAULT nextval('pers_seq'), name VARCHAR, password VARCHAR, cardcode VARCHAR, "
    "rights VARCHAR, hide BOOLEAN DEFAULT false, GrpID INTEGER"
    ")",
]


class FakeTransport(BaseTransport):
    """Transport that records statements and answers them with canned rows.

    ``responder(sql)`` returns the rows for a statement; without it every
    statement returns no rows.
    """

    def __init__(self, responder=None):
        self.responder = responder
        self.statements = []
        self.events = []
        self._open = False

    def open(self):
        if self._open:
            raise UsageError("there is opened db connection already")
        self._open = True
        self.events.append("open")

    def close(self):
        self._open = False
        self.events.append("close")

    @property
    def is_open(self):
        return self._open

    def execute(self, sql):
        if not self._open:
            raise UsageError("db connection is not opened")
        self.statements.append(sql)
        self.events.append("execute")
        return self.responder(sql) if self.responder else []

    def begin(self):
        self.events.append("begin")

    def commit(self):
        self.events.append("commit")

    def rollback(self):
        self.events.append("rollback")

    @property
    def dialect(self):
        return "duckdb"


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def fake_db(fake_transport):
    return Database(fake_transport)


@pytest.fixture
def make_fake_db():
    """Build a Database over a FakeTransport answering with ``responder``."""

    def _make(responder=None):
        return Database(FakeTransport(responder))

    return _make


@pytest.fixture
def duckdb_db():
    """In-memory DuckDB database with the staff tables created."""
    transport = DuckDBTransport()
    db = Database(transport)
    with db.session():
        for statement in STAFF_DDL:
            db.exec(statement)
    yield db
    transport.dispose()


@pytest.fixture
def staff_registry(duckdb_db):
    """Registry with the bundled entities over the staff tables."""
    return register_models(EntityRegistry(duckdb_db))


@pytest.fixture
def staff_rows(staff_registry):
    """Two groups with users; returns their ids."""
    groups = staff_registry.get_model("userGroup")
    users = staff_registry.get_model("user")

    admins = groups.create({"name": "Admins", "hide": False, "info": "all rights"})
    cooks = groups.create({"name": "Cooks", "hide": False, "info": ""})

    john = users.create({"name": "John", "userGroup": {"id": admins["id"]}})
    ann = users.create({"name": "Ann", "userGroup": {"id": admins["id"]}})
    bob = users.create({"name": "Bob", "userGroup": {"id": cooks["id"]}})

    return {
        "admins": admins["id"],
        "cooks": cooks["id"],
        "john": john["id"],
        "ann": ann["id"],
        "bob": bob["id"],
    }


@pytest.fixture
def staff_db_file(tmp_path):
    """DuckDB file with the staff tables and a few rows."""
    path = tmp_path / "staff.duckdb"
    transport = DuckDBTransport(str(path))
    db = Database(transport)
    with db.session():
        for statement in STAFF_DDL:
            db.exec(statement)
        db.exec("INSERT INTO sPepTree (parentid, name, info) VALUES (1, 'Admins', 'all rights'), (1, 'Cooks', '')")
        db.exec("INSERT INTO sPersonal (name, password, GrpID) VALUES ('John', 'secret', 1), ('Bob', 'pass', 2)")
        db.exec("INSERT INTO sPersonal (name, hide, GrpID) VALUES ('Gone', true, 2)")
    transport.dispose()
    return path
