"""Exclusive, TTL-bounded lock for periodic jobs.

A lock is a row keyed by job name. Acquire deletes the job's expired row (crash
self-healing) and then inserts; the unique key makes the insert fail while another
holder's row is still live. Release is best-effort: expiry is the real safety net.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from moviegen.db.models.scheduler_lock import SchedulerLock

logger = logging.getLogger(__name__)


def acquire(
    db: Session,
    job_name: str,
    ttl_seconds: int,
    now: Optional[datetime] = None,
) -> Optional[str]:
    """Return a new lock_id, or None if the job is locked by someone else."""
    now = now or datetime.now(timezone.utc)
    lock_id = f"{job_name}-{uuid.uuid4().hex}"

    db.execute(
        delete(SchedulerLock).where(
            SchedulerLock.job_name == job_name,
            SchedulerLock.expires_at < now,
        )
    )
    db.add(
        SchedulerLock(
            job_name=job_name,
            lock_id=lock_id,
            acquired_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Lock %s is held; skipping", job_name)
        return None
    return lock_id


def release(db: Session, job_name: str, lock_id: str) -> None:
    """Delete the lock row only if it is still ours."""
    try:
        db.execute(
            delete(SchedulerLock).where(
                SchedulerLock.job_name == job_name,
                SchedulerLock.lock_id == lock_id,
            )
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Failed to release lock %s (%s); it will expire", job_name, lock_id, exc_info=True)


@contextmanager
def held_lock(
    db: Session,
    job_name: str,
    ttl_seconds: int,
    now: Optional[datetime] = None,
) -> Iterator[Optional[str]]:
    """Yield the lock_id (None when not acquired) and release on exit."""
    lock_id = acquire(db, job_name, ttl_seconds, now=now)
    try:
        yield lock_id
    finally:
        if lock_id:
            release(db, job_name, lock_id)
