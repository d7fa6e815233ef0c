"""Connection scope, transactions and error wrapping on top of a transport."""

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from webd2.db.base import BaseTransport
from webd2.errors import DatabaseError, UsageError, Webd2Error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Database:
    """Wrapper every entity gateway executes its SQL through.

    - ``exec`` runs inside the current session, or opens and closes a
      connection just for that statement.
    - ``session`` keeps one connection open for a whole logical operation and
      always closes it on exit.
    - ``transaction`` brackets a session with begin and exactly one of
      commit/rollback.

    Driver failures surface as DatabaseError carrying the driver message.
    Statements are serialized: concurrent callers share one connection.
    """

    def __init__(self, transport: BaseTransport):
        if transport is None:
            raise UsageError("transport is undefined")
        self.transport = transport
        self._lock = threading.RLock()
        self._session_depth = 0
        self._in_transaction = False

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    def _run(self, fn: Callable[..., T], *args: Any) -> T:
        with self._lock:
            try:
                return fn(*args)
            except Webd2Error:
                raise
            except Exception as e:
                raise DatabaseError(str(e)) from e

    @contextmanager
    def session(self) -> Iterator["Database"]:
        """Keep one connection open for the enclosed operations."""
        with self._lock:
            if self._session_depth == 0:
                self._run(self.transport.open)
            self._session_depth += 1
        try:
            yield self
        finally:
            with self._lock:
                self._session_depth -= 1
                if self._session_depth == 0:
                    self._run(self.transport.close)

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """Run the enclosed operations as one unit of work."""
        if self._in_transaction:
            raise UsageError("there is an open transaction already")

        with self.session():
            self._run(self.transport.begin)
            self._in_transaction = True
            try:
                yield self
            except BaseException:
                self._in_transaction = False
                logger.debug("transaction: rollback")
                self._run(self.transport.rollback)
                raise
            self._in_transaction = False
            self._run(self.transport.commit)

    def exec(self, sql: str) -> list[dict[str, Any]]:
        """Execute one statement and return its rows."""
        with self.session():
            return self._run(self.transport.execute, sql)
