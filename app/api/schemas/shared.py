from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.file_types import FileType


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


# ---------------------------------------------------------------------------
# Field registry
# ---------------------------------------------------------------------------

class EntityFieldInfo(BaseModel):
    label: str
    target_field: str
    required: bool = False


class EntityTypeInfo(BaseModel):
    entity_type: str
    label: str
    natural_key: List[str]
    fields: List[EntityFieldInfo] = Field(default_factory=list)


class EntityListResponse(BaseModel):
    success: bool
    entities: List[EntityTypeInfo]


class EntityFieldsResponse(BaseModel):
    success: bool
    entity: EntityTypeInfo


# ---------------------------------------------------------------------------
# Preview and mapping
# ---------------------------------------------------------------------------

class ColumnMapping(BaseModel):
    """Assignment of one source column to a target field (``None`` = skip)."""
    model_config = ConfigDict(frozen=True)

    source_column: str
    target_field: Optional[str] = None
    required: bool = False
    transform: Optional[str] = None

    @field_validator("target_field", "transform")
    @classmethod
    def _normalize_optional(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)

    @property
    def is_mapped(self) -> bool:
        return self.target_field is not None


class ImportPreview(BaseModel):
    columns: List[str]
    sample_rows: List[Dict[str, Any]] = Field(default_factory=list)


class ImportPreviewResponse(BaseModel):
    success: bool
    entity_type: str
    file_type: FileType
    preview: ImportPreview
    mappings: List[ColumnMapping]


class AutoMapRequest(BaseModel):
    entity_type: str
    columns: List[str]
    mappings: List[ColumnMapping] = Field(default_factory=list)


class AutoMapResponse(BaseModel):
    success: bool
    mappings: List[ColumnMapping]


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

class ImportJob(BaseModel):
    id: str
    status: JobStatus
    entity_type: str
    file_name: str
    file_type: FileType
    total_rows: int = 0
    processed_rows: int = 0
    error_rows: int = 0
    errors: List[str] = Field(default_factory=list)
    error_preview: List[str] = Field(default_factory=list)
    progress: int = 0
    update_existing: bool = False
    skip_errors: bool = False
    created_at: datetime
    completed_at: Optional[datetime] = None


class ImportJobResponse(BaseModel):
    success: bool
    job: ImportJob


class ImportJobListResponse(BaseModel):
    success: bool
    jobs: List[ImportJob]
    total_count: int
    limit: int
    offset: int


class ExportJobRequest(BaseModel):
    entity_type: str
    file_type: FileType = FileType.CSV
    columns: List[str]
    filter: Optional[str] = None

    @field_validator("columns")
    @classmethod
    def _columns_not_empty(cls, value: List[str]) -> List[str]:
        cleaned = [column.strip() for column in value if column and column.strip()]
        if not cleaned:
            raise ValueError("Select at least one column to export")
        return cleaned

    @field_validator("filter")
    @classmethod
    def _filter_syntax(cls, value: Optional[str]) -> Optional[str]:
        from app.domain.exports.filters import parse_filter_expression

        value = _blank_to_none(value)
        if value is not None:
            parse_filter_expression(value)
        return value


class ExportJob(BaseModel):
    id: str
    status: JobStatus
    entity_type: str
    file_type: FileType
    file_name: str
    total_rows: int = 0
    filter: Optional[str] = None
    columns: List[str] = Field(default_factory=list)
    created_at: datetime
    completed_at: Optional[datetime] = None
    download_url: Optional[str] = None
    error_message: Optional[str] = None


class ExportJobResponse(BaseModel):
    success: bool
    job: ExportJob


class ExportJobListResponse(BaseModel):
    success: bool
    jobs: List[ExportJob]
    total_count: int
    limit: int
    offset: int


class DeleteJobResponse(BaseModel):
    success: bool
    message: str


# ---------------------------------------------------------------------------
# Enterprise agreements
# ---------------------------------------------------------------------------

class ExtractedPayRate(BaseModel):
    """Candidate pay rate returned by the extraction service or edited by the operator."""
    classification: str
    rate: Decimal = Field(..., ge=0)
    effective_date: date
    notes: Optional[str] = None

    @field_validator("classification")
    @classmethod
    def _classification_present(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("classification is required")
        return value

    @field_validator("notes")
    @classmethod
    def _normalize_notes(cls, value: Optional[str]) -> Optional[str]:
        return _blank_to_none(value)


class AgreementFields(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=50)
    organization: str = Field(..., min_length=1, max_length=200)
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    description: Optional[str] = None

    @field_validator("end_date")
    @classmethod
    def _end_after_start(cls, value: Optional[date], info) -> Optional[date]:
        start = info.data.get("start_date")
        if value is not None and start is not None and value < start:
            raise ValueError("end_date must not be before start_date")
        return value


class AgreementDraftInfo(BaseModel):
    draft_id: str
    state: str
    document_name: Optional[str] = None
    rates: List[ExtractedPayRate] = Field(default_factory=list)
    last_error: Optional[str] = None
    agreement_id: Optional[str] = None


class AgreementDraftResponse(BaseModel):
    success: bool
    draft: AgreementDraftInfo


class UpdateRatesRequest(BaseModel):
    rates: List[ExtractedPayRate]


class SavedPayRate(ExtractedPayRate):
    id: str


class EnterpriseAgreementInfo(BaseModel):
    id: str
    name: str
    code: str
    organization: str
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    description: Optional[str] = None
    document_name: Optional[str] = None
    created_at: datetime
    rates: List[SavedPayRate] = Field(default_factory=list)


class SaveAgreementResponse(BaseModel):
    success: bool
    agreement: EnterpriseAgreementInfo
    warnings: List[str] = Field(default_factory=list)


class EnterpriseAgreementResponse(BaseModel):
    success: bool
    agreement: EnterpriseAgreementInfo


class EnterpriseAgreementListResponse(BaseModel):
    success: bool
    agreements: List[EnterpriseAgreementInfo]
