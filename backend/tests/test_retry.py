# Overview: Pytest coverage for run_with_retry; lock classification, backoff, rollback.

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from stockpost.errors import ConcurrencyTimeout, ValidationError
from stockpost.services import concurrency
from stockpost.services.concurrency import is_lock_error, run_with_retry


class RecordingSession:
    def __init__(self):
        self.rollbacks = 0

    def rollback(self):
        self.rollbacks += 1


def locked():
    return OperationalError("UPDATE stock_adjustments SET status=?", {}, Exception("database is locked"))


def failing(times, error_factory, result="done"):
    calls = {"count": 0}

    def work():
        calls["count"] += 1
        if calls["count"] <= times:
            raise error_factory()
        return result

    return work, calls


@pytest.fixture
def sleeps(monkeypatch):
    delays = []
    monkeypatch.setattr(concurrency.time, "sleep", delays.append)
    return delays


class TestIsLockError:
    def test_sqlite_busy(self):
        assert is_lock_error(locked())

    def test_postgres_deadlock_sqlstate(self):
        orig = Exception("could not serialize access")
        orig.pgcode = "40P01"
        assert is_lock_error(OperationalError("SELECT 1", {}, orig))

    def test_stale_data(self):
        assert is_lock_error(StaleDataError("version mismatch"))

    def test_other_operational_error(self):
        assert not is_lock_error(OperationalError("SELECT 1", {}, Exception("no such table: stock_lots")))


class TestRunWithRetry:
    def test_exhausted_budget_raises_concurrency_timeout(self, app, sleeps):
        session = RecordingSession()
        work, calls = failing(10, locked)

        with pytest.raises(ConcurrencyTimeout) as excinfo:
            run_with_retry(work, session=session, attempts=3, backoff_base=0.1)

        assert calls["count"] == 3
        assert session.rollbacks == 3
        assert excinfo.value.retryable is True
        assert excinfo.value.http_status == 503
        assert isinstance(excinfo.value.__cause__, OperationalError)
        assert sleeps == [0.1, 0.2]

    def test_succeeds_after_transient_lock(self, app, sleeps, caplog):
        session = RecordingSession()
        work, calls = failing(2, locked, result="approved")

        assert run_with_retry(work, session=session, attempts=3, backoff_base=0.05) == "approved"

        assert calls["count"] == 3
        assert session.rollbacks == 2
        assert sleeps == [0.05, 0.1]
        assert "Lock contention (attempt 1/3)" in caplog.text

    def test_non_lock_operational_error_propagates_unchanged(self, app, sleeps):
        session = RecordingSession()
        error = OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        def work():
            raise error

        with pytest.raises(OperationalError) as excinfo:
            run_with_retry(work, session=session, attempts=3, backoff_base=0.1)

        assert excinfo.value is error
        assert session.rollbacks == 1
        assert sleeps == []

    def test_domain_error_rolls_back_without_retry(self, app, sleeps):
        session = RecordingSession()
        work, calls = failing(1, lambda: ValidationError("bad input"))

        with pytest.raises(ValidationError):
            run_with_retry(work, session=session, attempts=3, backoff_base=0.1)

        assert calls["count"] == 1
        assert session.rollbacks == 1
        assert sleeps == []
