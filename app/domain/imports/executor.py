"""
Background execution of import jobs.

Rows are evaluated strictly in file order, one at a time, and each row's
write commits on its own. A failed job therefore keeps every row committed
before the halt; nothing is rolled back.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Sequence

from app.api.schemas.shared import ColumnMapping
from app.core.logging_config import job_log_context
from app.domain.entities.registry import EntityDefinition, EntityType, get_entity_definition
from app.domain.entities.store import EntityStore, SqlEntityStore, build_natural_key
from app.domain.errors import JobNotFoundError, JobStateError, RowError
from app.domain.imports.jobs import (
    complete_import_job,
    fail_import_job,
    get_import_job,
    get_job_mappings,
    mark_import_processing,
    record_row_processed,
)
from app.domain.imports.mapper import map_record
from app.domain.imports.preview import load_records

logger = logging.getLogger(__name__)

# Imports into the same entity type run one at a time.
_entity_locks: Dict[EntityType, threading.Lock] = {entity_type: threading.Lock() for entity_type in EntityType}


@contextmanager
def serialized_import(entity_type: EntityType) -> Iterator[None]:
    lock = _entity_locks[entity_type]
    if not lock.acquire(blocking=False):
        logger.info("Waiting for another %s import to finish", entity_type.value)
        lock.acquire()
    try:
        yield
    finally:
        lock.release()


def import_row(
    record: Dict[str, Any],
    *,
    row_number: int,
    definition: EntityDefinition,
    mappings: Sequence[ColumnMapping],
    update_existing: bool,
    store: EntityStore,
) -> str:
    """
    Map and upsert one source row.

    Returns:
        "created" or "updated".

    Raises:
        RowError: transform/validation failure, or a duplicate when
            ``update_existing`` is off.
    """
    try:
        payload = map_record(record, mappings, row_number=row_number)
        natural_key = build_natural_key(definition, payload)
        existing = store.find(definition.entity_type, natural_key)
        if existing is None:
            store.create(definition.entity_type, natural_key, payload)
            return "created"
        if not update_existing:
            key_desc = ", ".join(f"{name}={payload.get(name)!r}" for name in definition.natural_key)
            raise RowError(f"Duplicate record ({key_desc}) already exists")
        store.update(definition.entity_type, natural_key, payload)
        return "updated"
    except RowError as exc:
        if exc.row_number is None:
            raise RowError(exc.message, row_number=row_number)
        raise


def _fail_quietly(job_id: str, message: str) -> None:
    try:
        fail_import_job(job_id, message)
    except (JobNotFoundError, JobStateError) as exc:
        logger.warning("Could not mark import job %s as failed: %s", job_id, exc)


def run_import_job(job_id: str, file_content: bytes, *, store: Optional[EntityStore] = None) -> None:
    """Process every row of a pending import job to a terminal state."""
    with job_log_context("import", job_id):
        _run_import_job(job_id, file_content, store)


def _run_import_job(job_id: str, file_content: bytes, store: Optional[EntityStore]) -> None:
    job = get_import_job(job_id)
    if job is None:
        logger.warning("Import job %s no longer exists; nothing to run", job_id)
        return

    definition = get_entity_definition(job.entity_type)
    mappings = get_job_mappings(job_id)
    store = store or SqlEntityStore()

    try:
        mark_import_processing(job_id)
    except (JobNotFoundError, JobStateError) as exc:
        logger.warning("Import job %s cannot start: %s", job_id, exc)
        return

    created = updated = 0
    try:
        with serialized_import(definition.entity_type):
            _, records = load_records(file_content, job.file_type)
            for row_number, record in enumerate(records, start=1):
                try:
                    outcome = import_row(
                        record,
                        row_number=row_number,
                        definition=definition,
                        mappings=mappings,
                        update_existing=job.update_existing,
                        store=store,
                    )
                except RowError as exc:
                    if job.skip_errors:
                        record_row_processed(job_id, error_message=exc.describe())
                        continue
                    fail_import_job(job_id, exc.describe(), row_error=True)
                    return
                if outcome == "created":
                    created += 1
                else:
                    updated += 1
                record_row_processed(job_id)
            complete_import_job(job_id)
            logger.info("Import job %s: %d created, %d updated", job_id, created, updated)
    except Exception as exc:
        logger.exception("Import job %s crashed: %s", job_id, exc)
        _fail_quietly(job_id, f"Import failed: {exc}")
