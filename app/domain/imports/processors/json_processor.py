import json
from typing import Any, Dict, List, Tuple

from app.domain.errors import PreviewParseError


def process_json(file_content: bytes) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    Parse a structured-text file holding an array of uniform objects.

    Columns are the keys of the first element, in document order.
    """
    try:
        data = json.loads(file_content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise PreviewParseError(f"Could not parse JSON file: {e}")

    if not isinstance(data, list):
        raise PreviewParseError("Could not parse JSON file: expected an array of objects")
    if not data:
        raise PreviewParseError("Could not parse JSON file: the array is empty")
    if not all(isinstance(item, dict) for item in data):
        raise PreviewParseError("Could not parse JSON file: every array element must be an object")

    columns = [str(key).strip() for key in data[0].keys()]
    records = [{str(key).strip(): value for key, value in item.items()} for item in data]
    return columns, records
