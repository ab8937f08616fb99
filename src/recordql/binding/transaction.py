"""
Transaction coordination on a borrowed connection.

A transaction already open on the connection is always joined rather than
nested, so calls compose: an inner ``transaction()`` reuses the outer one
and only the outermost call commits or rolls back. Single writes may still
guard themselves with a SAVEPOINT inside the joined transaction.
"""

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import Connection

from recordql.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TransactionCoordinator:
    """
    Groups calls on one connection into a single database transaction.

    Usage:
        coordinator = TransactionCoordinator(connection)

        def transfer(conn):
            accounts.update({"id": a}, {"balance": 10})
            accounts.update({"id": b}, {"balance": 30})

        coordinator.run(transfer)
    """

    def __init__(self, connection: Connection) -> None:
        """
        Args:
            connection: Borrowed SQLAlchemy connection; never closed here
        """
        self.connection = connection

    @property
    def active(self) -> bool:
        """True while a transaction is open on the connection."""
        return self.connection.in_transaction()

    @contextmanager
    def scope(self, savepoint: bool = False) -> Iterator[Connection]:
        """
        Run a block inside a transaction.

        Joins the open transaction if there is one. Otherwise begins a new
        transaction that commits when the block exits normally and rolls
        back when it raises.

        Args:
            savepoint: When joining, wrap the block in a SAVEPOINT so a
                failure inside it only undoes the block
        """
        if self.connection.in_transaction():
            if not savepoint:
                yield self.connection
                return
            with self.connection.begin_nested():
                yield self.connection
            return
        with self.connection.begin():
            yield self.connection

    def run(self, fn: Callable[[Connection], T]) -> T:
        """
        Execute ``fn`` inside a transaction.

        Args:
            fn: Receives the connection; any exception it raises rolls the
                transaction back and is re-raised

        Returns:
            Whatever ``fn`` returns, after the commit
        """
        if self.connection.in_transaction():
            logger.debug("Joining open transaction")
            return fn(self.connection)

        trans = self.connection.begin()
        try:
            result = fn(self.connection)
        except Exception as e:
            trans.rollback()
            logger.info("Transaction rolled back", error=type(e).__name__)
            raise
        trans.commit()
        logger.debug("Transaction committed")
        return result


def transaction(connection: Connection, fn: Callable[[Connection], T]) -> T:
    """Run ``fn`` in a transaction on ``connection``."""
    return TransactionCoordinator(connection).run(fn)
