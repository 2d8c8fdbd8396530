"""
Export job submission, tracking and artifact download.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from fastapi.responses import Response

from app.api.dependencies import get_entity_store, resolve_entity
from app.api.schemas.shared import (
    DeleteJobResponse,
    ExportJobListResponse,
    ExportJobRequest,
    ExportJobResponse,
)
from app.domain.entities.store import EntityStore
from app.domain.errors import JobNotFoundError, JobNotReadyError, JobStateError
from app.domain.exports.executor import run_export_job
from app.domain.exports.jobs import (
    create_export_job,
    delete_export_job,
    get_export_artifact,
    get_export_job,
    list_export_jobs,
)
from app.domain.file_types import content_type_for
from app.integrations.storage import StorageDownloadError

router = APIRouter(tags=["export-jobs"])

logger = logging.getLogger(__name__)


@router.post("/export-jobs", response_model=ExportJobResponse, status_code=201)
async def create_export_job_endpoint(
    request: ExportJobRequest,
    background_tasks: BackgroundTasks,
    store: EntityStore = Depends(get_entity_store),
):
    definition = resolve_entity(request.entity_type)
    unknown = [column for column in request.columns if column not in definition.field_names]
    if unknown:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown column(s) for {definition.entity_type.value}: {', '.join(unknown)}",
        )

    job = create_export_job(
        entity_type=definition.entity_type,
        file_type=request.file_type,
        columns=request.columns,
        filter_expression=request.filter,
    )
    background_tasks.add_task(run_export_job, job.id, store=store)
    return ExportJobResponse(success=True, job=job)


@router.get("/export-jobs/{job_id}", response_model=ExportJobResponse)
async def get_export_job_endpoint(job_id: str):
    job = get_export_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return ExportJobResponse(success=True, job=job)


@router.get("/export-jobs", response_model=ExportJobListResponse)
async def list_export_jobs_endpoint(limit: int = 50, offset: int = 0):
    jobs, total = list_export_jobs(limit=limit, offset=offset)
    return ExportJobListResponse(
        success=True,
        jobs=jobs,
        total_count=total,
        limit=limit,
        offset=offset,
    )


@router.get("/export-jobs/{job_id}/download")
async def download_export_endpoint(job_id: str):
    """Return the export artifact; 409 until the job has completed."""
    try:
        job, content = get_export_artifact(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except JobNotReadyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageDownloadError as e:
        logger.error("Artifact for export job %s is unavailable: %s", job_id, e)
        raise HTTPException(status_code=410, detail="Export file is no longer available")

    return Response(
        content=content,
        media_type=content_type_for(job.file_type),
        headers={"Content-Disposition": f'attachment; filename="{job.file_name}"'},
    )


@router.delete("/export-jobs/{job_id}", response_model=DeleteJobResponse)
async def delete_export_job_endpoint(job_id: str, confirm: bool = False):
    if not confirm:
        raise HTTPException(status_code=400, detail="Deleting a job requires confirm=true")
    try:
        delete_export_job(job_id)
    except JobNotFoundError:
        raise HTTPException(status_code=404, detail="Job not found")
    except JobStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return DeleteJobResponse(success=True, message=f"Export job {job_id} deleted")
