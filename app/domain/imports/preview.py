"""
File preview and record loading for imports.

The preview reads a file without committing to any interpretation of its
values: it reports the columns, a few sample rows and the first-pass mapping
so the operator sees both at once.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple, Union

from app.api.schemas.shared import ColumnMapping, ImportPreview
from app.core.config import settings
from app.domain.entities.registry import EntityType, get_entity_definition
from app.domain.errors import UnsupportedPreviewFormatError
from app.domain.file_types import FileType
from app.domain.imports.mapper import infer_mappings
from app.domain.imports.processors.csv_processor import process_csv, process_excel
from app.domain.imports.processors.json_processor import process_json
from app.utils.serialization import make_json_safe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewResult:
    preview: ImportPreview
    mappings: List[ColumnMapping]


def load_records(file_content: bytes, file_type: FileType) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    Parse a whole file into (columns, records), blank rows removed.

    Raises:
        PreviewParseError: if the file cannot be interpreted.
    """
    if file_type == FileType.CSV:
        return process_csv(file_content)
    if file_type == FileType.JSON:
        return process_json(file_content)
    if file_type == FileType.XLSX:
        return process_excel(file_content)
    raise UnsupportedPreviewFormatError(str(file_type))


def build_import_preview(
    file_content: bytes,
    file_type: FileType,
    entity_type: Union[str, EntityType],
) -> PreviewResult:
    """
    Produce the preview and the inferred initial mapping for an upload.

    Only delimited text (csv) and structured text (json) can be previewed.

    Raises:
        UnsupportedPreviewFormatError: for spreadsheet uploads.
        PreviewParseError: for malformed content.
    """
    definition = get_entity_definition(entity_type)
    if file_type not in (FileType.CSV, FileType.JSON):
        raise UnsupportedPreviewFormatError(getattr(file_type, "value", str(file_type)))

    columns, records = load_records(file_content, file_type)
    sample_rows = [make_json_safe(record) for record in records[: settings.preview_sample_rows]]

    mappings = infer_mappings(columns, definition.fields)
    logger.info(
        "Preview for %s: %d columns, %d sample rows, %d auto-mapped",
        definition.entity_type.value,
        len(columns),
        len(sample_rows),
        sum(1 for mapping in mappings if mapping.is_mapped),
    )
    return PreviewResult(
        preview=ImportPreview(columns=columns, sample_rows=sample_rows),
        mappings=mappings,
    )
