"""Shared fixtures: a driver that records statements instead of running them."""

import itertools
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from entity_mapper.driver import Connection, Driver, OnError, OnSuccess, Transaction
from entity_mapper.errors import StatementFailure
from entity_mapper.session import Session


class RecordingTransaction(Transaction):
    """Records statements and completes them immediately, or later when deferred."""

    def __init__(self, deferred: bool = False) -> None:
        self.statements: list[tuple[str, list[Any]]] = []
        self.fail_on: str | None = None
        self.deferred = deferred
        self.pending: list[Callable[[], Any]] = []

    def execute(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        on_success: OnSuccess | None = None,
        on_error: OnError | None = None,
    ) -> None:
        """Record a statement."""
        self.statements.append((sql, list(params or [])))
        if self.fail_on is not None and self.fail_on in sql:
            failure = StatementFailure(sql, params, RuntimeError("store rejected statement"))
            if on_error is None:
                raise failure

            def finish() -> None:
                on_error(failure)

        else:

            def finish() -> None:
                if on_success is not None:
                    on_success([])

        if self.deferred:
            self.pending.append(finish)
        else:
            finish()

    def complete_next(self) -> None:
        """Complete the oldest deferred statement."""
        self.pending.pop(0)()

    @property
    def sql(self) -> list[str]:
        return [sql for sql, _ in self.statements]


class RecordingConnection(Connection):
    """Connection handing out one shared recording transaction."""

    def __init__(self, tx: RecordingTransaction) -> None:
        self.tx = tx
        self.transactions = 0
        self.closed = False

    def transaction(self, fn: Callable[[Transaction], Any]) -> None:
        self.transactions += 1
        fn(self.tx)

    def close(self) -> None:
        self.closed = True


class RecordingDriver(Driver):
    """Mock driver for testing."""

    def __init__(self) -> None:
        self.tx = RecordingTransaction()
        self.connected: list[tuple[str, str, int]] = []

    def connect(self, name: str, description: str, size_bytes: int) -> RecordingConnection:
        self.connected.append((name, description, size_bytes))
        return RecordingConnection(self.tx)


def sequential_ids() -> Callable[[], str]:
    """Id factory producing 32-character ids in a predictable sequence."""
    counter = itertools.count(1)
    return lambda: f"{next(counter):032x}"


@pytest.fixture
def driver() -> RecordingDriver:
    return RecordingDriver()


@pytest.fixture
def session(driver: RecordingDriver) -> Session:
    """Connected session backed by the recording driver."""
    session = Session(driver, id_factory=sequential_ids())
    session.connect("test", "Test database", 1024)
    return session


@pytest.fixture
def tx(driver: RecordingDriver) -> RecordingTransaction:
    return driver.tx
