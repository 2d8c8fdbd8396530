import io
import logging
from typing import Any, Dict, List, Tuple

import pandas as pd

from app.domain.errors import PreviewParseError

logger = logging.getLogger(__name__)

ParsedTable = Tuple[List[str], List[Dict[str, Any]]]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return not str(value).strip()


def _frame_to_records(df: pd.DataFrame) -> ParsedTable:
    """Strip header whitespace, drop rows without content and return plain dicts."""
    df.columns = [str(col).strip() for col in df.columns]
    columns = list(df.columns)

    records: List[Dict[str, Any]] = []
    for record in df.to_dict("records"):
        if all(_is_blank(value) for value in record.values()):
            continue
        for key, value in record.items():
            if not isinstance(value, str) and pd.isna(value):
                record[key] = None
        records.append(record)
    return columns, records


def process_csv(file_content: bytes) -> ParsedTable:
    """
    Parse a delimited-text file whose first line is the header.

    Every cell is read as text so that transforms decide how values are
    interpreted; leading zeros in codes and phone numbers survive.

    Returns:
        Tuple of (columns, records) with blank rows removed.

    Raises:
        PreviewParseError: if the content cannot be decoded or tokenized.
    """
    try:
        text_content = file_content.decode("utf-8-sig")
        df = pd.read_csv(
            io.StringIO(text_content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except UnicodeDecodeError as e:
        raise PreviewParseError(f"Could not parse CSV file: content is not UTF-8 ({e.reason})")
    except pd.errors.EmptyDataError:
        raise PreviewParseError("Could not parse CSV file: no header row found")
    except pd.errors.ParserError as e:
        raise PreviewParseError(f"Could not parse CSV file: {e}")

    columns, records = _frame_to_records(df)
    if not any(columns):
        raise PreviewParseError("Could not parse CSV file: header row is empty")

    logger.info("Processed CSV with %d rows, columns: %s", len(records), columns)
    return columns, records


def process_excel(file_content: bytes) -> ParsedTable:
    """Parse the first sheet of an xlsx workbook (header on the first row)."""
    try:
        df = pd.read_excel(io.BytesIO(file_content), engine="openpyxl", dtype=object)
    except Exception as e:
        raise PreviewParseError(f"Could not read Excel file: {e}")

    columns, records = _frame_to_records(df)
    logger.info("Processed Excel sheet with %d rows, columns: %s", len(records), columns)
    return columns, records
