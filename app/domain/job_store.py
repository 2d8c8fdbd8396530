"""
Shared persistence helpers for import and export job rows.

Only job executors call ``mutate_job``; request handlers read jobs and may
delete them, nothing else. A job in a terminal state is never mutated again.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.api.schemas.shared import TERMINAL_STATUSES, JobStatus
from app.db.session import get_engine
from app.domain.errors import JobNotFoundError, JobStateError

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")


def insert_job(record: RecordT) -> RecordT:
    with Session(get_engine(), expire_on_commit=False) as db:
        db.add(record)
        db.commit()
        db.refresh(record)
        return record


def fetch_job(model: Type[RecordT], job_id: str) -> Optional[RecordT]:
    with Session(get_engine(), expire_on_commit=False) as db:
        return db.get(model, job_id)


def fetch_jobs(model: Type[Any], *, limit: int = 50, offset: int = 0) -> Tuple[List[Any], int]:
    with Session(get_engine(), expire_on_commit=False) as db:
        stmt = select(model).order_by(model.created_at.desc()).limit(limit).offset(offset)
        jobs = list(db.execute(stmt).scalars())
        total = db.execute(select(func.count()).select_from(model)).scalar() or 0
        return jobs, total


def mutate_job(model: Type[RecordT], job_id: str, change: Callable[[RecordT], None]) -> RecordT:
    """
    Apply ``change`` to a non-terminal job row and commit.

    Raises:
        JobNotFoundError: the job row does not exist (e.g. it was deleted).
        JobStateError: the job has already reached a terminal state.
    """
    with Session(get_engine(), expire_on_commit=False) as db:
        record = db.execute(
            select(model).where(model.id == job_id).with_for_update()
        ).scalar_one_or_none()
        if record is None:
            raise JobNotFoundError(job_id)
        if JobStatus(record.status) in TERMINAL_STATUSES:
            raise JobStateError(f"Job '{job_id}' is {record.status} and can no longer change")
        change(record)
        db.commit()
        db.refresh(record)
        return record


def delete_job(model: Type[Any], job_id: str) -> None:
    """
    Remove a pending or terminal job row.

    Raises:
        JobNotFoundError: no such job.
        JobStateError: the job is still processing.
    """
    with Session(get_engine()) as db:
        record = db.get(model, job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        if record.status == JobStatus.PROCESSING.value:
            raise JobStateError("A job cannot be deleted while it is processing")
        db.delete(record)
        db.commit()
    logger.info("Deleted %s %s", model.__tablename__, job_id)
