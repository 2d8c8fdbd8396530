"""
Import job submission and progress tracking.
"""
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from app.api.dependencies import ensure_within_size_limit, get_entity_store, resolve_entity, resolve_file_type
from app.api.schemas.shared import ColumnMapping, DeleteJobResponse, ImportJobListResponse, ImportJobResponse
from app.domain.entities.store import EntityStore
from app.domain.errors import JobNotFoundError, JobStateError, MappingValidationError, PreviewParseError
from app.domain.imports.executor import run_import_job
from app.domain.imports.jobs import create_import_job, delete_import_job, get_import_job, list_import_jobs
from app.domain.imports.mapping_editor import validate_submission
from app.domain.imports.preview import load_records

router = APIRouter(tags=["import-jobs"])

logger = logging.getLogger(__name__)


def parse_mapping_json(mapping_json: str) -> List[ColumnMapping]:
    """Accept either a bare list of mappings or ``{"mappings": [...]}``."""
    try:
        payload = json.loads(mapping_json)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"Invalid mapping JSON: {e}")
    if isinstance(payload, dict):
        payload = payload.get("mappings")
    if not isinstance(payload, list):
        raise HTTPException(status_code=400, detail="Mapping JSON must be a list of column mappings")
    try:
        return [ColumnMapping(**item) for item in payload]
    except (TypeError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid column mapping: {e}")


@router.post("/import-jobs", response_model=ImportJobResponse, status_code=201)
async def create_import_job_endpoint(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    entity_type: str = Form(...),
    mapping_json: str = Form(...),
    file_type: Optional[str] = Form(None),
    update_existing: bool = Form(False),
    skip_errors: bool = Form(False),
    store: EntityStore = Depends(get_entity_store),
):
    """
    Submit an import. The file is parsed up front so malformed content is
    rejected before any job exists; rows are processed in the background.

    Parameters:
    - file: csv, json or xlsx file
    - entity_type: target entity identifier
    - mapping_json: JSON list of column mappings
    - update_existing: update records whose key already exists instead of reporting duplicates
    - skip_errors: record failing rows and continue instead of halting
    """
    definition = resolve_entity(entity_type)
    kind = resolve_file_type(file_type, file.filename)
    mappings = parse_mapping_json(mapping_json)
    try:
        validate_submission(mappings, definition)
    except MappingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    file_content = await file.read()
    file_name = file.filename or f"upload.{kind.value}"
    ensure_within_size_limit(len(file_content), file_name)

    try:
        _, records = load_records(file_content, kind)
    except PreviewParseError as e:
        raise HTTPException(status_code=422, detail=f"Could not parse file: {e}")

    job = create_import_job(
        entity_type=definition.entity_type,
        file_name=file_name,
        file_type=kind,
        total_rows=len(records),
        mappings=mappings,
        update_existing=update_existing,
        skip_errors=skip_errors,
    )
    background_tasks.add_task(run_import_job, job.id, file_content, store=store)
    return ImportJobResponse(success=True, job=job)


@router.get("/import-jobs/{job_id}", response_model=ImportJobResponse)
async def get_import_job_endpoint(job_id: str):
    job = get_import_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return ImportJobResponse(success=True, job=job)


@router.get("/import-jobs", response_model=ImportJobListResponse)
async def list_import_jobs_endpoint(limit: int = 50, offset: int = 0):
    jobs, total = list_import_jobs(limit=limit, offset=offset)
    return ImportJobListResponse(
        success=True,
        jobs=jobs,
        total_count=total,
        limit=limit,
        offset=offset,
    )


@router.delete("/import-jobs/{job_id}", response_model=DeleteJobResponse)
async def delete_import_job_endpoint(job_id: str, confirm: bool = False):
    if not confirm:
        raise HTTPException(status_code=400, detail="Deleting a job requires confirm=true")
    try:
        delete_import_job(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except JobStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return DeleteJobResponse(success=True, message=f"Import job {job_id} deleted")
