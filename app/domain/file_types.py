"""
File kinds accepted for import and produced by export.
"""
from enum import Enum
from typing import Optional


class FileType(str, Enum):
    CSV = "csv"
    JSON = "json"
    XLSX = "xlsx"


CONTENT_TYPES = {
    FileType.CSV: "text/csv",
    FileType.JSON: "application/json",
    FileType.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def content_type_for(file_type: FileType) -> str:
    return CONTENT_TYPES.get(file_type, "application/octet-stream")


def detect_file_type(filename: Optional[str]) -> Optional[FileType]:
    """Infer the file kind from a filename extension; ``None`` when unknown."""
    if not filename:
        return None
    lowered = filename.lower()
    if lowered.endswith(".csv"):
        return FileType.CSV
    if lowered.endswith(".json"):
        return FileType.JSON
    if lowered.endswith((".xlsx", ".xls")):
        return FileType.XLSX
    return None
