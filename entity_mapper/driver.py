"""Driver interface for relational stores."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

from entity_mapper.errors import StatementFailure

Row = dict[str, Any]
OnSuccess = Callable[[list[Row]], Any]
OnError = Callable[[StatementFailure], Any]


class Transaction(ABC):
    """A transaction statements are executed in."""

    @abstractmethod
    def execute(
        self,
        sql: str,
        params: Sequence[Any] | None = None,
        on_success: OnSuccess | None = None,
        on_error: OnError | None = None,
    ) -> None:
        """Execute one statement and notify its completion.

        On success ``on_success`` receives the result rows (possibly empty).
        On failure ``on_error`` receives a StatementFailure; without an
        ``on_error`` the failure is raised instead. Once a statement has
        failed the transaction must not commit: every statement it ran is
        rolled back.
        """
        pass


class Connection(ABC):
    """An open connection to a store."""

    @abstractmethod
    def transaction(self, fn: Callable[[Transaction], Any]) -> None:
        """Run ``fn`` inside a new transaction.

        The transaction commits once ``fn`` returns, unless one of its
        statements failed, in which case it is rolled back.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the connection."""
        pass


class Driver(ABC):
    """Abstract base class for store drivers."""

    @abstractmethod
    def connect(self, name: str, description: str, size_bytes: int) -> Connection:
        """Open a connection.

        Args:
            name: Database name
            description: Human-readable description of the database
            size_bytes: Maximum size of the database in bytes
        """
        pass
