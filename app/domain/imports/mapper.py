"""
Column-mapping inference and row mapping.

Inference is deliberately literal: a column maps to a field only when the
normalized column name equals the field's normalized label or key. There is
no fuzzy matching or scoring, so the same header always yields the same
proposal and the operator never has to second-guess a near miss.
"""
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.api.schemas.shared import ColumnMapping
from app.domain.entities.registry import EntityFieldSpec
from app.domain.errors import RowError
from app.domain.imports.transforms import TransformError, apply_transform

logger = logging.getLogger(__name__)

# Fields flagged required when auto-assigned, regardless of entity type.
UNIVERSALLY_REQUIRED_FIELDS = frozenset({"email", "first_name", "last_name", "name", "title", "code"})

_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_name(value: str) -> str:
    """Lower-case and strip spaces, hyphens and underscores."""
    return _SEPARATORS.sub("", (value or "").lower())


def _match_field(column: str, fields: Sequence[EntityFieldSpec]) -> Optional[EntityFieldSpec]:
    normalized = normalize_name(column)
    if not normalized:
        return None
    for field in fields:
        if normalize_name(field.label) == normalized or normalize_name(field.target_field) == normalized:
            return field
    return None


def infer_mappings(
    columns: Iterable[str],
    fields: Sequence[EntityFieldSpec],
    existing: Optional[Sequence[ColumnMapping]] = None,
) -> List[ColumnMapping]:
    """
    Propose one ``ColumnMapping`` per column.

    Columns already mapped in ``existing`` are returned untouched, which makes
    this safe to re-run as "auto-map remaining columns". Registry order breaks
    ties: the first matching field wins.
    """
    current = {mapping.source_column: mapping for mapping in (existing or [])}
    result: List[ColumnMapping] = []

    for column in columns:
        previous = current.get(column)
        if previous is not None and previous.is_mapped:
            result.append(previous)
            continue

        field = _match_field(column, fields)
        transform = previous.transform if previous is not None else None
        if field is None:
            result.append(
                previous
                if previous is not None
                else ColumnMapping(source_column=column)
            )
            continue

        result.append(
            ColumnMapping(
                source_column=column,
                target_field=field.target_field,
                required=field.target_field in UNIVERSALLY_REQUIRED_FIELDS,
                transform=transform,
            )
        )

    mapped = sum(1 for mapping in result if mapping.is_mapped)
    logger.debug("Inferred mappings: %d of %d columns mapped", mapped, len(result))
    return result


def map_record(
    record: Dict[str, Any],
    mappings: Sequence[ColumnMapping],
    *,
    row_number: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build the target-field payload for one source row.

    Each mapped column's transform runs before assignment. A ``required``
    mapping whose (transformed) value is blank fails the row.

    Raises:
        RowError: on transform failure or a missing required value.
    """
    payload: Dict[str, Any] = {}
    for mapping in mappings:
        if not mapping.is_mapped:
            continue
        raw_value = record.get(mapping.source_column)
        try:
            value = apply_transform(raw_value, mapping.transform)
        except TransformError as exc:
            raise RowError(f"Column '{mapping.source_column}': {exc}", row_number=row_number)

        if mapping.required and (value is None or (isinstance(value, str) and not value.strip())):
            raise RowError(
                f"Required field '{mapping.target_field}' is empty (column '{mapping.source_column}')",
                row_number=row_number,
            )
        payload[mapping.target_field] = value
    return payload
