"""
Persistent tracking for export jobs and access to their artifacts.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from app.api.schemas.shared import ExportJob, JobStatus
from app.db.models import ExportJobRecord
from app.domain.entities.registry import EntityType
from app.domain.errors import JobNotFoundError, JobNotReadyError
from app.domain.file_types import FileType
from app.domain.job_store import delete_job, fetch_job, fetch_jobs, insert_job, mutate_job
from app.integrations.storage import delete_file, read_file

logger = logging.getLogger(__name__)


def download_path(job_id: str) -> str:
    return f"/export-jobs/{job_id}/download"


def _row_to_job(record: ExportJobRecord) -> ExportJob:
    completed = record.status == JobStatus.COMPLETED.value
    return ExportJob(
        id=record.id,
        status=JobStatus(record.status),
        entity_type=record.entity_type,
        file_type=FileType(record.file_type),
        file_name=record.file_name,
        total_rows=record.total_rows or 0,
        filter=record.filter,
        columns=list(record.columns or []),
        created_at=record.created_at,
        completed_at=record.completed_at,
        download_url=record.download_url if completed else None,
        error_message=record.error_message,
    )


def create_export_job(
    *,
    entity_type: EntityType,
    file_type: FileType,
    columns: Sequence[str],
    filter_expression: Optional[str] = None,
) -> ExportJob:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    record = insert_job(
        ExportJobRecord(
            status=JobStatus.PENDING.value,
            entity_type=entity_type.value,
            file_type=file_type.value,
            file_name=f"{entity_type.value}_export_{stamp}.{file_type.value}",
            total_rows=0,
            filter=filter_expression,
            columns=list(columns),
        )
    )
    logger.info("Created export job %s for %s (%s)", record.id, entity_type.value, file_type.value)
    return _row_to_job(record)


def get_export_job(job_id: str) -> Optional[ExportJob]:
    record = fetch_job(ExportJobRecord, job_id)
    return _row_to_job(record) if record else None


def list_export_jobs(*, limit: int = 50, offset: int = 0) -> Tuple[List[ExportJob], int]:
    records, total = fetch_jobs(ExportJobRecord, limit=limit, offset=offset)
    return [_row_to_job(record) for record in records], total


def delete_export_job(job_id: str) -> None:
    """Delete the job row and, when present, its stored artifact."""
    record = fetch_job(ExportJobRecord, job_id)
    storage_path = record.storage_path if record else None
    delete_job(ExportJobRecord, job_id)
    if storage_path:
        delete_file(storage_path)


def get_export_artifact(job_id: str) -> Tuple[ExportJob, bytes]:
    """
    Return the job and the bytes of its artifact.

    Raises:
        JobNotFoundError: no such job.
        JobNotReadyError: the job has not completed yet (or failed).
        StorageDownloadError: the artifact is missing from storage.
    """
    record = fetch_job(ExportJobRecord, job_id)
    if record is None:
        raise JobNotFoundError(job_id)
    if record.status != JobStatus.COMPLETED.value or not record.storage_path:
        raise JobNotReadyError(f"Export job '{job_id}' is {record.status}; the file is not ready")
    return _row_to_job(record), read_file(record.storage_path)


# ---------------------------------------------------------------------------
# Executor-side transitions
# ---------------------------------------------------------------------------

def mark_export_processing(job_id: str) -> ExportJob:
    def change(record: ExportJobRecord) -> None:
        record.status = JobStatus.PROCESSING.value

    return _row_to_job(mutate_job(ExportJobRecord, job_id, change))


def complete_export_job(job_id: str, *, total_rows: int, storage_path: str) -> ExportJob:
    def change(record: ExportJobRecord) -> None:
        record.status = JobStatus.COMPLETED.value
        record.total_rows = total_rows
        record.storage_path = storage_path
        record.download_url = download_path(job_id)
        record.completed_at = datetime.now(timezone.utc)

    job = _row_to_job(mutate_job(ExportJobRecord, job_id, change))
    logger.info("Export job %s completed: %d rows", job_id, total_rows)
    return job


def fail_export_job(job_id: str, error_message: str) -> ExportJob:
    def change(record: ExportJobRecord) -> None:
        record.status = JobStatus.FAILED.value
        record.error_message = error_message
        record.completed_at = datetime.now(timezone.utc)

    job = _row_to_job(mutate_job(ExportJobRecord, job_id, change))
    logger.warning("Export job %s failed: %s", job_id, error_message)
    return job
