"""
Enterprise agreement drafts: document upload, rate extraction, review, save.

    NO_DOCUMENT -> DOCUMENT_SELECTED -> EXTRACTING -> RATES_AVAILABLE -> SAVED

A failed extraction returns to DOCUMENT_SELECTED so it can be retried
without re-uploading. Saving from DOCUMENT_SELECTED stores the agreement
with no rates and reports a warning.
"""
import logging
import threading
import uuid
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from app.api.schemas.shared import AgreementDraftInfo, AgreementFields, EnterpriseAgreementInfo, ExtractedPayRate
from app.domain.agreements.extraction import RateExtractionService
from app.domain.agreements.repository import save_agreement_with_rates
from app.domain.errors import ExtractionServiceError, WorkflowStateError

logger = logging.getLogger(__name__)

NO_RATES_WARNING = "Agreement saved without any pay rates"


class WorkflowState(str, Enum):
    NO_DOCUMENT = "no_document"
    DOCUMENT_SELECTED = "document_selected"
    EXTRACTING = "extracting"
    RATES_AVAILABLE = "rates_available"
    SAVED = "saved"


SaveFn = Callable[..., EnterpriseAgreementInfo]


class RateExtractionWorkflow:
    def __init__(
        self,
        extractor: RateExtractionService,
        *,
        draft_id: Optional[str] = None,
        save_fn: SaveFn = save_agreement_with_rates,
    ):
        self.draft_id = draft_id or str(uuid.uuid4())
        self._extractor = extractor
        self._save_fn = save_fn
        self._lock = threading.Lock()
        self.state = WorkflowState.NO_DOCUMENT
        self.document_name: Optional[str] = None
        self._document: Optional[bytes] = None
        self.rates: List[ExtractedPayRate] = []
        self.last_error: Optional[str] = None
        self.agreement_id: Optional[str] = None

    def _require(self, action: str, *allowed: WorkflowState) -> None:
        if self.state not in allowed:
            raise WorkflowStateError(f"Cannot {action} while the draft is {self.state.value}")

    def select_document(self, content: bytes, document_name: str) -> None:
        """Attach a document; any previously extracted rates are discarded."""
        with self._lock:
            self._require(
                "select a document",
                WorkflowState.NO_DOCUMENT,
                WorkflowState.DOCUMENT_SELECTED,
                WorkflowState.RATES_AVAILABLE,
            )
            self._document = content
            self.document_name = document_name
            self.rates = []
            self.last_error = None
            self.state = WorkflowState.DOCUMENT_SELECTED

    def extract(self) -> List[ExtractedPayRate]:
        with self._lock:
            self._require("extract rates", WorkflowState.DOCUMENT_SELECTED, WorkflowState.RATES_AVAILABLE)
            self.state = WorkflowState.EXTRACTING
            self.rates = []
            document, document_name = self._document, self.document_name

        try:
            rates = list(self._extractor.extract_rates(document, document_name))
        except Exception as exc:
            with self._lock:
                self.state = WorkflowState.DOCUMENT_SELECTED
                self.last_error = str(exc)
            logger.warning("Extraction failed for draft %s: %s", self.draft_id, exc)
            if isinstance(exc, ExtractionServiceError):
                raise
            raise ExtractionServiceError(f"Extraction service failed: {exc}") from exc

        with self._lock:
            self.rates = rates
            self.last_error = None
            self.state = WorkflowState.RATES_AVAILABLE
        return list(rates)

    def update_rates(self, rates: Sequence[ExtractedPayRate]) -> None:
        with self._lock:
            self._require("edit rates", WorkflowState.RATES_AVAILABLE)
            self.rates = list(rates)

    def save(self, fields: AgreementFields) -> Tuple[EnterpriseAgreementInfo, List[str]]:
        """
        Persist the agreement with the current rates.

        Returns:
            (EnterpriseAgreementInfo, warnings)
        """
        with self._lock:
            self._require("save", WorkflowState.DOCUMENT_SELECTED, WorkflowState.RATES_AVAILABLE)
            rates = list(self.rates) if self.state == WorkflowState.RATES_AVAILABLE else []
            agreement = self._save_fn(fields, rates, document_name=self.document_name)
            self.agreement_id = agreement.id
            self.state = WorkflowState.SAVED

        warnings = [] if rates else [NO_RATES_WARNING]
        return agreement, warnings

    def info(self) -> AgreementDraftInfo:
        return AgreementDraftInfo(
            draft_id=self.draft_id,
            state=self.state.value,
            document_name=self.document_name,
            rates=list(self.rates),
            last_error=self.last_error,
            agreement_id=self.agreement_id,
        )


class DraftRegistry:
    """In-process store of open agreement drafts."""

    def __init__(self):
        self._drafts: Dict[str, RateExtractionWorkflow] = {}
        self._lock = threading.Lock()

    def create(self, extractor: RateExtractionService) -> RateExtractionWorkflow:
        workflow = RateExtractionWorkflow(extractor)
        with self._lock:
            self._drafts[workflow.draft_id] = workflow
        return workflow

    def get(self, draft_id: str) -> Optional[RateExtractionWorkflow]:
        with self._lock:
            return self._drafts.get(draft_id)

    def clear(self) -> None:
        with self._lock:
            self._drafts.clear()
