"""
Enterprise agreement drafts (document -> extracted rates -> review -> save)
and read access to saved agreements.
"""
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from app.api.dependencies import ensure_within_size_limit, get_draft_registry, get_extraction_service
from app.api.schemas.shared import (
    AgreementDraftResponse,
    AgreementFields,
    EnterpriseAgreementListResponse,
    EnterpriseAgreementResponse,
    SaveAgreementResponse,
    UpdateRatesRequest,
)
from app.domain.agreements.extraction import RateExtractionService
from app.domain.agreements.repository import get_agreement, list_agreements
from app.domain.agreements.workflow import DraftRegistry, RateExtractionWorkflow
from app.domain.errors import ExtractionServiceError, WorkflowStateError

router = APIRouter(tags=["agreements"])

logger = logging.getLogger(__name__)


def _get_draft(draft_id: str, registry: DraftRegistry) -> RateExtractionWorkflow:
    workflow = registry.get(draft_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    return workflow


@router.post("/agreement-drafts", response_model=AgreementDraftResponse, status_code=201)
async def create_draft_endpoint(
    registry: DraftRegistry = Depends(get_draft_registry),
    extractor: RateExtractionService = Depends(get_extraction_service),
):
    workflow = registry.create(extractor)
    return AgreementDraftResponse(success=True, draft=workflow.info())


@router.get("/agreement-drafts/{draft_id}", response_model=AgreementDraftResponse)
async def get_draft_endpoint(draft_id: str, registry: DraftRegistry = Depends(get_draft_registry)):
    return AgreementDraftResponse(success=True, draft=_get_draft(draft_id, registry).info())


@router.put("/agreement-drafts/{draft_id}/document", response_model=AgreementDraftResponse)
async def select_document_endpoint(
    draft_id: str,
    file: UploadFile = File(...),
    registry: DraftRegistry = Depends(get_draft_registry),
):
    """Attach the agreement document. Replaces any earlier document and its rates."""
    workflow = _get_draft(draft_id, registry)
    content = await file.read()
    document_name = file.filename or "agreement"
    ensure_within_size_limit(len(content), document_name)
    try:
        workflow.select_document(content, document_name)
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return AgreementDraftResponse(success=True, draft=workflow.info())


@router.post("/agreement-drafts/{draft_id}/extract", response_model=AgreementDraftResponse)
def extract_rates_endpoint(draft_id: str, registry: DraftRegistry = Depends(get_draft_registry)):
    """
    Run rate extraction on the selected document.

    A 502 leaves the draft with its document so extraction can be retried.
    """
    workflow = _get_draft(draft_id, registry)
    try:
        workflow.extract()
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ExtractionServiceError as e:
        raise HTTPException(status_code=502, detail=f"Rate extraction failed: {e}")
    return AgreementDraftResponse(success=True, draft=workflow.info())


@router.put("/agreement-drafts/{draft_id}/rates", response_model=AgreementDraftResponse)
async def update_rates_endpoint(
    draft_id: str,
    request: UpdateRatesRequest,
    registry: DraftRegistry = Depends(get_draft_registry),
):
    workflow = _get_draft(draft_id, registry)
    try:
        workflow.update_rates(request.rates)
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return AgreementDraftResponse(success=True, draft=workflow.info())


@router.post("/agreement-drafts/{draft_id}/save", response_model=SaveAgreementResponse, status_code=201)
def save_draft_endpoint(
    draft_id: str,
    fields: AgreementFields,
    registry: DraftRegistry = Depends(get_draft_registry),
):
    workflow = _get_draft(draft_id, registry)
    try:
        agreement, warnings = workflow.save(fields)
    except WorkflowStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return SaveAgreementResponse(success=True, agreement=agreement, warnings=warnings)


@router.get("/enterprise-agreements", response_model=EnterpriseAgreementListResponse)
def list_agreements_endpoint():
    return EnterpriseAgreementListResponse(success=True, agreements=list_agreements())


@router.get("/enterprise-agreements/{agreement_id}", response_model=EnterpriseAgreementResponse)
def get_agreement_endpoint(agreement_id: str):
    agreement = get_agreement(agreement_id)
    if agreement is None:
        raise HTTPException(status_code=404, detail="Agreement not found")
    return EnterpriseAgreementResponse(success=True, agreement=agreement)
