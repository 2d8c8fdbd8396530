"""
Preview and mapping-inference endpoints for the import flow.
"""
import logging
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from app.api.dependencies import ensure_within_size_limit, resolve_entity, resolve_file_type
from app.api.schemas.shared import AutoMapRequest, AutoMapResponse, ImportPreviewResponse
from app.domain.errors import PreviewParseError, UnsupportedPreviewFormatError
from app.domain.imports.mapper import infer_mappings
from app.domain.imports.preview import build_import_preview

router = APIRouter(tags=["mapping"])

logger = logging.getLogger(__name__)


@router.post("/import-preview", response_model=ImportPreviewResponse)
async def import_preview_endpoint(
    file: UploadFile = File(...),
    entity_type: str = Form(...),
    file_type: Optional[str] = Form(None),
):
    """
    Parse an upload and return its columns, a few sample rows and the
    inferred initial mapping.

    Parameters:
    - file: csv or json file
    - entity_type: target entity identifier
    - file_type: optional; detected from the filename when omitted
    """
    definition = resolve_entity(entity_type)
    kind = resolve_file_type(file_type, file.filename)

    file_content = await file.read()
    ensure_within_size_limit(len(file_content), file.filename or "upload")

    try:
        result = build_import_preview(file_content, kind, definition.entity_type)
    except UnsupportedPreviewFormatError as e:
        raise HTTPException(status_code=415, detail=str(e))
    except PreviewParseError as e:
        logger.info("Preview of '%s' could not be parsed: %s", file.filename, e)
        raise HTTPException(status_code=422, detail=f"Could not parse file: {e}")

    return ImportPreviewResponse(
        success=True,
        entity_type=definition.entity_type.value,
        file_type=kind,
        preview=result.preview,
        mappings=result.mappings,
    )


@router.post("/auto-map", response_model=AutoMapResponse)
async def auto_map_endpoint(request: AutoMapRequest):
    """
    Re-run inference over a partially edited mapping. Columns that are
    already mapped keep their target.
    """
    definition = resolve_entity(request.entity_type)
    mappings = infer_mappings(request.columns, definition.fields, request.mappings or None)
    return AutoMapResponse(success=True, mappings=mappings)
