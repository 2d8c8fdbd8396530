"""
Operator-facing mapping state for one import submission.

``MappingEditor`` is the single source of truth the preview table, the
mapping list and the submission all project from. Changing the entity type
always discards every mapping decision and re-runs inference, so a mapping
built for one entity can never leak into another.
"""
import logging
from typing import List, Optional, Sequence, Tuple, Union

from app.api.schemas.shared import ColumnMapping
from app.domain.entities.registry import (
    EntityDefinition,
    EntityType,
    get_entity_definition,
)
from app.domain.errors import MappingValidationError
from app.domain.imports.mapper import infer_mappings

logger = logging.getLogger(__name__)


def validate_mappings(mappings: Sequence[ColumnMapping]) -> None:
    """
    Check the submission invariants for a finalized mapping list.

    Raises:
        MappingValidationError: when no column is mapped, or a column marked
            required has no target field.
    """
    if not any(mapping.is_mapped for mapping in mappings):
        raise MappingValidationError("Map at least one column before starting the import")

    unmapped_required = [m.source_column for m in mappings if m.required and not m.is_mapped]
    if unmapped_required:
        raise MappingValidationError(
            "Required columns must be mapped to a field: " + ", ".join(unmapped_required)
        )


def validate_submission(mappings: Sequence[ColumnMapping], definition: EntityDefinition) -> None:
    """
    ``validate_mappings`` plus the checks that need the target entity:
    every target is a registered field and the natural-key fields are mapped.
    """
    validate_mappings(mappings)

    targets = [m.target_field for m in mappings if m.is_mapped]
    unknown = [t for t in targets if t not in definition.field_names]
    if unknown:
        raise MappingValidationError(
            f"Unknown field(s) for {definition.entity_type.value}: " + ", ".join(unknown)
        )
    missing_key = [name for name in definition.natural_key if name not in targets]
    if missing_key:
        raise MappingValidationError(
            "Key field(s) must be mapped to detect duplicates: " + ", ".join(missing_key)
        )


class MappingEditor:
    def __init__(self, entity_type: Union[str, EntityType], columns: Sequence[str]):
        self._columns: Tuple[str, ...] = tuple(columns)
        self._definition: EntityDefinition = get_entity_definition(entity_type)
        self._mappings: List[ColumnMapping] = infer_mappings(self._columns, self._definition.fields)
        self._confirmed: Optional[Tuple[ColumnMapping, ...]] = None

    @property
    def entity_type(self) -> EntityType:
        return self._definition.entity_type

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    @property
    def mappings(self) -> Tuple[ColumnMapping, ...]:
        return tuple(self._mappings)

    @property
    def is_confirmed(self) -> bool:
        return self._confirmed is not None

    def unmapped_columns(self) -> List[str]:
        return [m.source_column for m in self._mappings if not m.is_mapped]

    def select_entity_type(self, entity_type: Union[str, EntityType]) -> None:
        """Switch entity type, resetting all mapping state."""
        self._definition = get_entity_definition(entity_type)
        self._mappings = infer_mappings(self._columns, self._definition.fields)
        self._confirmed = None
        logger.info("Mapping reset for entity type '%s'", self._definition.entity_type.value)

    def _index(self, source_column: str) -> int:
        for index, mapping in enumerate(self._mappings):
            if mapping.source_column == source_column:
                return index
        raise KeyError(f"Unknown column '{source_column}'")

    def _replace(self, source_column: str, **changes) -> ColumnMapping:
        if self._confirmed is not None:
            raise MappingValidationError("Mapping has already been confirmed for this submission")
        index = self._index(source_column)
        updated = self._mappings[index].model_copy(update=changes)
        self._mappings[index] = updated
        return updated

    def set_target(self, source_column: str, target_field: Optional[str]) -> ColumnMapping:
        """Point a column at a registered field, or at ``None`` to skip it."""
        target_field = (target_field or "").strip() or None
        if target_field is not None and target_field not in self._definition.field_names:
            raise MappingValidationError(
                f"'{target_field}' is not a field of {self._definition.entity_type.value}"
            )
        return self._replace(source_column, target_field=target_field)

    def skip(self, source_column: str) -> ColumnMapping:
        return self.set_target(source_column, None)

    def set_required(self, source_column: str, required: bool) -> ColumnMapping:
        return self._replace(source_column, required=bool(required))

    def set_transform(self, source_column: str, transform: Optional[str]) -> ColumnMapping:
        return self._replace(source_column, transform=(transform or "").strip() or None)

    def auto_map_remaining(self) -> Tuple[ColumnMapping, ...]:
        if self._confirmed is not None:
            raise MappingValidationError("Mapping has already been confirmed for this submission")
        self._mappings = infer_mappings(self._columns, self._definition.fields, self._mappings)
        return self.mappings

    def confirm(self) -> Tuple[ColumnMapping, ...]:
        """Validate and freeze the mapping list for submission."""
        if self._confirmed is None:
            validate_mappings(self._mappings)
            self._confirmed = tuple(self._mappings)
        return self._confirmed
