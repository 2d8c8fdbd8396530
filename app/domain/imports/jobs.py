"""
Persistent tracking for import jobs.

Request handlers create, read and delete jobs. Status and counter changes
go through the ``mark_*``/``record_*`` functions, which only the import
executor calls.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from app.api.schemas.shared import ColumnMapping, ImportJob, JobStatus
from app.core.config import settings
from app.db.models import ImportJobRecord
from app.domain.entities.registry import EntityType
from app.domain.file_types import FileType
from app.domain.job_store import delete_job, fetch_job, fetch_jobs, insert_job, mutate_job

logger = logging.getLogger(__name__)


def summarize_errors(errors: Sequence[str], error_count: int, limit: int) -> List[str]:
    """Return at most ``limit`` messages plus an "N more errors" line."""
    total = max(error_count, len(errors))
    shown = list(errors[:limit])
    remaining = total - len(shown)
    if remaining > 0:
        shown.append(f"... and {remaining} more error{'s' if remaining != 1 else ''}")
    return shown


def _row_to_job(record: ImportJobRecord) -> ImportJob:
    total = record.total_rows or 0
    if total:
        progress = min(100, int(record.processed_rows * 100 / total))
    else:
        progress = 100 if record.status == JobStatus.COMPLETED.value else 0
    errors = list(record.errors or [])
    return ImportJob(
        id=record.id,
        status=JobStatus(record.status),
        entity_type=record.entity_type,
        file_name=record.file_name,
        file_type=FileType(record.file_type),
        total_rows=total,
        processed_rows=record.processed_rows,
        error_rows=record.error_rows,
        errors=errors,
        error_preview=summarize_errors(errors, record.error_rows, settings.import_error_preview_limit),
        progress=progress,
        update_existing=record.update_existing,
        skip_errors=record.skip_errors,
        created_at=record.created_at,
        completed_at=record.completed_at,
    )


def create_import_job(
    *,
    entity_type: EntityType,
    file_name: str,
    file_type: FileType,
    total_rows: int,
    mappings: Sequence[ColumnMapping],
    update_existing: bool,
    skip_errors: bool,
) -> ImportJob:
    """Persist a new job in ``pending`` status."""
    record = insert_job(
        ImportJobRecord(
            status=JobStatus.PENDING.value,
            entity_type=entity_type.value,
            file_name=file_name,
            file_type=file_type.value,
            total_rows=total_rows,
            processed_rows=0,
            error_rows=0,
            errors=[],
            update_existing=update_existing,
            skip_errors=skip_errors,
            mappings=[mapping.model_dump() for mapping in mappings],
        )
    )
    logger.info(
        "Created import job %s for %s (%s, %d rows)",
        record.id, entity_type.value, file_name, total_rows,
    )
    return _row_to_job(record)


def get_import_job(job_id: str) -> Optional[ImportJob]:
    record = fetch_job(ImportJobRecord, job_id)
    return _row_to_job(record) if record else None


def get_job_mappings(job_id: str) -> List[ColumnMapping]:
    record = fetch_job(ImportJobRecord, job_id)
    if record is None:
        return []
    return [ColumnMapping(**payload) for payload in record.mappings or []]


def list_import_jobs(*, limit: int = 50, offset: int = 0) -> Tuple[List[ImportJob], int]:
    records, total = fetch_jobs(ImportJobRecord, limit=limit, offset=offset)
    return [_row_to_job(record) for record in records], total


def delete_import_job(job_id: str) -> None:
    delete_job(ImportJobRecord, job_id)


# ---------------------------------------------------------------------------
# Executor-side transitions
# ---------------------------------------------------------------------------

def _append_error(record: ImportJobRecord, message: str) -> None:
    errors = list(record.errors or [])
    if len(errors) < settings.import_max_stored_errors:
        errors.append(message)
        record.errors = errors


def mark_import_processing(job_id: str) -> ImportJob:
    def change(record: ImportJobRecord) -> None:
        record.status = JobStatus.PROCESSING.value

    return _row_to_job(mutate_job(ImportJobRecord, job_id, change))


def record_row_processed(job_id: str, *, error_message: Optional[str] = None) -> ImportJob:
    """Count one evaluated row; ``error_message`` marks it as a skipped error row."""
    def change(record: ImportJobRecord) -> None:
        record.processed_rows = record.processed_rows + 1
        if error_message is not None:
            record.error_rows = record.error_rows + 1
            _append_error(record, error_message)

    return _row_to_job(mutate_job(ImportJobRecord, job_id, change))


def complete_import_job(job_id: str) -> ImportJob:
    def change(record: ImportJobRecord) -> None:
        record.status = JobStatus.COMPLETED.value
        record.processed_rows = record.total_rows
        record.completed_at = datetime.now(timezone.utc)

    job = _row_to_job(mutate_job(ImportJobRecord, job_id, change))
    logger.info(
        "Import job %s completed: %d rows, %d errors", job_id, job.processed_rows, job.error_rows
    )
    return job


def fail_import_job(job_id: str, error_message: str, *, row_error: bool = False) -> ImportJob:
    """
    Halt a job. ``row_error`` counts the halting row as an error row; it is
    never counted as processed.
    """
    def change(record: ImportJobRecord) -> None:
        record.status = JobStatus.FAILED.value
        if row_error:
            record.error_rows = record.error_rows + 1
        _append_error(record, error_message)
        record.completed_at = datetime.now(timezone.utc)

    job = _row_to_job(mutate_job(ImportJobRecord, job_id, change))
    logger.warning("Import job %s failed after %d rows: %s", job_id, job.processed_rows, error_message)
    return job
