"""
Transaction context manager over an adapter.
"""
import logging
from typing import Any

from activerecord.adapters.base import Adapter

logger = logging.getLogger(__name__)

__all__ = ['Transaction', 'transaction']


class Transaction:
    """Context manager for running multiple statements in a transaction.

    Commits on a clean exit and rolls back when the block raises. Nested
    transactions on the same adapter are not supported.

    Examples
        with Transaction(adapter) as tx:
            tx.query('DELETE FROM books WHERE author_id = ?', (1,))
            tx.query('DELETE FROM authors WHERE author_id = ?', (1,))
    """

    def __init__(self, adapter: Adapter) -> None:
        self.adapter = adapter

    def __enter__(self) -> Adapter:
        self.adapter.transaction()
        return self.adapter

    def __exit__(self, exc_type: type | None, value: Exception | None, traceback: Any | None) -> None:
        if exc_type is not None:
            self.adapter.rollback()
        else:
            self.adapter.commit()


def transaction(adapter: Adapter) -> Transaction:
    """Start a transaction block on `adapter`."""
    return Transaction(adapter)
