"""
Exceptions raised by the data exchange pipeline.

Routers translate these into HTTP responses; the job executors catch
``RowError`` per row and record it on the job instead of propagating it.
"""
from typing import Optional


class DataExchangeError(Exception):
    """Base class for pipeline errors."""
    pass


class UnknownEntityTypeError(DataExchangeError):
    """Raised when an entity type identifier is not in the field registry."""

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        super().__init__(f"Unknown entity type '{entity_type}'")


class PreviewParseError(DataExchangeError):
    """File content could not be interpreted into columns and rows."""
    pass


class UnsupportedPreviewFormatError(DataExchangeError):
    """The declared file kind cannot be previewed."""

    def __init__(self, file_type: str):
        self.file_type = file_type
        super().__init__(f"Format '{file_type}' is not supported by preview")


class MappingValidationError(DataExchangeError):
    """The finalized mapping cannot be submitted."""
    pass


class RowError(DataExchangeError):
    """A single source row failed transform, validation or uniqueness checks."""

    def __init__(self, message: str, row_number: Optional[int] = None):
        self.row_number = row_number
        self.message = message
        super().__init__(message)

    def describe(self) -> str:
        if self.row_number is None:
            return self.message
        return f"Row {self.row_number}: {self.message}"


class JobNotFoundError(DataExchangeError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job '{job_id}' not found")


class JobStateError(DataExchangeError):
    """An operation is not valid for the job's current status."""
    pass


class JobNotReadyError(JobStateError):
    """An export artifact was requested before the job completed."""
    pass


class ExtractionServiceError(DataExchangeError):
    """Recoverable failure of the document rate-extraction service."""
    pass


class WorkflowStateError(DataExchangeError):
    """Transition not permitted from the workflow's current state."""
    pass
