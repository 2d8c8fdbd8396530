"""
Column selection for exports.

The selection is derived from the entity type: switching entity type
rebuilds it from the registry with every field selected.
"""
from typing import List, Union

from app.domain.entities.registry import EntityType, get_entity_definition


class ColumnSelection:
    def __init__(self, entity_type: Union[str, EntityType]):
        self.select_entity_type(entity_type)

    def select_entity_type(self, entity_type: Union[str, EntityType]) -> None:
        definition = get_entity_definition(entity_type)
        self.entity_type = definition.entity_type
        self._available: List[str] = definition.field_names
        self._selected = set(self._available)

    @property
    def available(self) -> List[str]:
        return list(self._available)

    @property
    def selected(self) -> List[str]:
        """Selected columns in registry order."""
        return [column for column in self._available if column in self._selected]

    @property
    def all_selected(self) -> bool:
        return len(self._selected) == len(self._available)

    def toggle(self, column: str) -> bool:
        """Flip one column; returns its new state."""
        if column not in self._available:
            raise KeyError(f"Unknown column '{column}' for {self.entity_type.value}")
        if column in self._selected:
            self._selected.discard(column)
            return False
        self._selected.add(column)
        return True

    def toggle_all(self) -> None:
        """Deselect everything when all are selected; otherwise select all."""
        if self.all_selected:
            self._selected = set()
        else:
            self._selected = set(self._available)
