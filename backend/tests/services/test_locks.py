# backend/tests/services/test_locks.py
"""
Tests for per-portfolio mutation locks.
"""

import threading

import pytest

from portfolio_tracker.services.exceptions import PortfolioNotFoundError
from portfolio_tracker.services.locks import PortfolioLockRegistry

from tests.conftest import create_portfolio


class TestPortfolioLockRegistry:
    def test_same_id_returns_same_lock(self):
        registry = PortfolioLockRegistry()

        assert registry.get(1) is registry.get(1)

    def test_different_ids_get_different_locks(self):
        registry = PortfolioLockRegistry()

        assert registry.get(1) is not registry.get(2)

    def test_unknown_portfolio_is_not_locked(self):
        assert PortfolioLockRegistry().is_locked(99) is False

    def test_discard_drops_idle_lock(self):
        registry = PortfolioLockRegistry()
        first = registry.get(1)
        registry.get(2)

        assert registry.discard(1) is True

        assert len(registry) == 1
        assert registry.get(1) is not first

    def test_discard_unknown_id(self):
        assert PortfolioLockRegistry().discard(5) is False

    def test_discard_keeps_held_lock(self):
        registry = PortfolioLockRegistry()

        with registry.get(1):
            assert registry.discard(1) is False
            assert registry.is_locked(1)

        assert len(registry) == 1

    def test_hold_yields_portfolio_and_locks(self, db, sample_portfolio):
        registry = PortfolioLockRegistry()

        with registry.hold(db, sample_portfolio.id) as portfolio:
            assert portfolio.id == sample_portfolio.id
            assert registry.is_locked(sample_portfolio.id)

        assert not registry.is_locked(sample_portfolio.id)

    def test_hold_releases_on_error(self, db, sample_portfolio):
        registry = PortfolioLockRegistry()

        with pytest.raises(RuntimeError):
            with registry.hold(db, sample_portfolio.id):
                raise RuntimeError("boom")

        assert not registry.is_locked(sample_portfolio.id)

    def test_hold_missing_portfolio_raises(self, db):
        registry = PortfolioLockRegistry()

        with pytest.raises(PortfolioNotFoundError):
            with registry.hold(db, 12345):
                pass

        assert not registry.is_locked(12345)

    def test_other_portfolios_not_blocked(self, db, sample_user, sample_portfolio):
        registry = PortfolioLockRegistry()
        other = create_portfolio(db, sample_user, name="Other")

        with registry.hold(db, sample_portfolio.id):
            acquired = registry.get(other.id).acquire(blocking=False)
            assert acquired
            registry.get(other.id).release()

    def test_second_writer_waits(self):
        registry = PortfolioLockRegistry()
        order: list[str] = []
        first_inside = threading.Event()

        def first():
            with registry.get(1):
                order.append("first-start")
                first_inside.set()
                # Give the second thread time to block on the lock
                threading.Event().wait(0.05)
                order.append("first-end")

        def second():
            first_inside.wait()
            with registry.get(1):
                order.append("second")

        threads = [threading.Thread(target=first), threading.Thread(target=second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert order == ["first-start", "first-end", "second"]
