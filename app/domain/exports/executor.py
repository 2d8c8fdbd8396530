"""
Background execution of export jobs: read, filter, project, serialize, store.
"""
import io
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from app.core.logging_config import job_log_context
from app.domain.entities.registry import get_entity_definition
from app.domain.entities.store import EntityStore, SqlEntityStore
from app.domain.errors import JobNotFoundError, JobStateError
from app.domain.exports.filters import apply_filters, build_conditions, parse_filter_expression
from app.domain.exports.jobs import (
    complete_export_job,
    fail_export_job,
    get_export_job,
    mark_export_processing,
)
from app.domain.file_types import FileType
from app.integrations.storage import save_file
from app.utils.serialization import make_json_safe

logger = logging.getLogger(__name__)


def project_rows(records: Sequence[Dict[str, Any]], columns: Sequence[str]) -> List[Dict[str, Any]]:
    return [{column: record.get(column) for column in columns} for record in records]


def serialize_rows(rows: List[Dict[str, Any]], columns: Sequence[str], file_type: FileType) -> bytes:
    if file_type == FileType.JSON:
        return json.dumps(make_json_safe(rows), indent=2, ensure_ascii=False).encode("utf-8")

    df = pd.DataFrame(rows, columns=list(columns))
    if file_type == FileType.XLSX:
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Export")
        return buffer.getvalue()
    return df.to_csv(index=False).encode("utf-8")


def run_export_job(job_id: str, *, store: Optional[EntityStore] = None) -> None:
    with job_log_context("export", job_id):
        _run_export_job(job_id, store)


def _run_export_job(job_id: str, store: Optional[EntityStore]) -> None:
    job = get_export_job(job_id)
    if job is None:
        logger.warning("Export job %s no longer exists; nothing to run", job_id)
        return

    try:
        mark_export_processing(job_id)
    except (JobNotFoundError, JobStateError) as exc:
        logger.warning("Export job %s cannot start: %s", job_id, exc)
        return

    store = store or SqlEntityStore()
    try:
        definition = get_entity_definition(job.entity_type)
        conditions = build_conditions(parse_filter_expression(job.filter or ""), definition)
        records = apply_filters(store.list_records(definition.entity_type), conditions)
        rows = project_rows(records, job.columns)
        content = serialize_rows(rows, job.columns, job.file_type)
        storage_path = save_file(content, f"{job_id}/{job.file_name}")
        complete_export_job(job_id, total_rows=len(rows), storage_path=storage_path)
    except Exception as exc:
        logger.exception("Export job %s failed: %s", job_id, exc)
        try:
            fail_export_job(job_id, str(exc))
        except (JobNotFoundError, JobStateError) as state_exc:
            logger.warning("Could not mark export job %s as failed: %s", job_id, state_exc)
