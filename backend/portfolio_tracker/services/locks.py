# backend/portfolio_tracker/services/locks.py
"""
Per-portfolio mutation locks.

Every read-modify-write of a portfolio's holdings and aggregates runs
under two locks:

1. An in-process threading.Lock keyed by portfolio id. Sync endpoints run
   in FastAPI's threadpool, so two requests for one portfolio can
   otherwise interleave inside a single worker.
2. A SELECT ... FOR UPDATE row lock on the portfolio, which serializes
   writers across worker processes on PostgreSQL. SQLite ignores it.

Locks for different portfolios never block each other.

Usage:
    from portfolio_tracker.services.locks import portfolio_locks

    with portfolio_locks.hold(db, portfolio_id) as portfolio:
        ...  # mutate holdings, then db.commit()
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import select
from sqlalchemy.orm import Session

from portfolio_tracker.models import Portfolio
from portfolio_tracker.services.exceptions import PortfolioNotFoundError

logger = logging.getLogger(__name__)


class PortfolioLockRegistry:
    """
    Thread-safe registry of one lock per portfolio id.

    Locks are created on first use and dropped with discard() once the
    portfolio is deleted.
    """

    def __init__(self) -> None:
        self._locks: dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def get(self, portfolio_id: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(portfolio_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[portfolio_id] = lock
            return lock

    def is_locked(self, portfolio_id: int) -> bool:
        with self._registry_lock:
            lock = self._locks.get(portfolio_id)
        return lock is not None and lock.locked()

    def discard(self, portfolio_id: int) -> bool:
        """
        Forget the lock of a deleted portfolio.

        A lock that is currently held stays registered so its holder and
        any waiters keep sharing it.

        Returns:
            True if an entry was removed
        """
        with self._registry_lock:
            lock = self._locks.get(portfolio_id)
            if lock is None or lock.locked():
                return False
            del self._locks[portfolio_id]
        logger.debug(f"Dropped lock for portfolio {portfolio_id}")
        return True

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    @contextmanager
    def hold(self, db: Session, portfolio_id: int) -> Iterator[Portfolio]:
        """
        Acquire both locks for a portfolio and yield the locked row.

        The row lock is released when the caller commits or rolls back;
        the thread lock when the block exits.

        Raises:
            PortfolioNotFoundError: If the portfolio does not exist
        """
        with self.get(portfolio_id):
            portfolio = lock_portfolio(db, portfolio_id)
            yield portfolio


def lock_portfolio(db: Session, portfolio_id: int) -> Portfolio:
    """
    Load a portfolio with a row-level write lock.

    Raises:
        PortfolioNotFoundError: If the portfolio does not exist
    """
    portfolio = db.scalars(
        select(Portfolio)
        .where(Portfolio.id == portfolio_id)
        .with_for_update()
    ).first()

    if portfolio is None:
        raise PortfolioNotFoundError(portfolio_id)

    logger.debug(f"Acquired row lock on portfolio {portfolio_id}")
    return portfolio


# Process-wide registry shared by every service instance
portfolio_locks = PortfolioLockRegistry()
