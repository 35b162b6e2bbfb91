"""Unit tests for the scheduler job lock"""

import threading
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from moviegen.db.models.scheduler_lock import SchedulerLock
from moviegen.services.scheduler_lock import acquire, held_lock, release
from tests.conftest import NOW

JOB = "process_movie_scenes"


class TestAcquire:
    """acquire() / release() round trips"""

    def test_acquire_returns_lock_id(self, db):
        lock_id = acquire(db, JOB, 300, now=NOW)
        assert lock_id and lock_id.startswith(JOB)
        row = db.execute(select(SchedulerLock)).scalar_one()
        assert row.lock_id == lock_id

    def test_second_acquire_while_held_fails(self, db):
        assert acquire(db, JOB, 300, now=NOW)
        assert acquire(db, JOB, 300, now=NOW + timedelta(seconds=10)) is None

    def test_other_job_is_independent(self, db):
        assert acquire(db, JOB, 300, now=NOW)
        assert acquire(db, "other_job", 300, now=NOW)

    def test_release_allows_reacquire(self, db):
        lock_id = acquire(db, JOB, 300, now=NOW)
        release(db, JOB, lock_id)
        assert acquire(db, JOB, 300, now=NOW) is not None

    def test_expired_lock_is_taken_over(self, db):
        first = acquire(db, JOB, 60, now=NOW)
        second = acquire(db, JOB, 60, now=NOW + timedelta(seconds=61))
        assert second is not None and second != first

    def test_release_with_stale_id_keeps_new_holder(self, db):
        stale = acquire(db, JOB, 60, now=NOW)
        current = acquire(db, JOB, 60, now=NOW + timedelta(minutes=5))
        release(db, JOB, stale)
        db.expire_all()
        row = db.execute(select(SchedulerLock)).scalar_one()
        assert row.lock_id == current


class TestHeldLock:

    def test_yields_none_when_held_elsewhere(self, db):
        assert acquire(db, JOB, 300, now=NOW)
        with held_lock(db, JOB, 300, now=NOW) as lock_id:
            assert lock_id is None
        # The other holder's row survives.
        assert db.execute(select(SchedulerLock)).scalar_one() is not None

    def test_releases_on_exit(self, db):
        with held_lock(db, JOB, 300, now=NOW) as lock_id:
            assert lock_id
        assert db.execute(select(SchedulerLock)).scalar_one_or_none() is None

    def test_releases_when_body_raises(self, db):
        with pytest.raises(RuntimeError):
            with held_lock(db, JOB, 300, now=NOW):
                raise RuntimeError("pass crashed")
        assert acquire(db, JOB, 300, now=NOW) is not None


class TestConcurrentAcquire:

    def test_only_one_of_many_threads_wins(self, file_engine):
        factory = sessionmaker(bind=file_engine, autoflush=False)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            session = factory()
            try:
                barrier.wait()
                results.append(acquire(session, JOB, 300, now=NOW))
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [r for r in results if r]
        assert len(results) == 8
        assert len(winners) == 1
