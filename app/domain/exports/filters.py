"""
Export filter expressions: comma-separated ``key=value`` pairs.

Syntax is checked when the export is submitted; keys are only resolved
against the entity's fields when the executor runs the job.

Supported keys:
- ``<field>=value``          case-insensitive equality
- ``<field>_after=value``    field value sorts after ``value``
- ``<field>_before=value``   field value sorts before ``value``

Ordering comparisons are textual, which is correct for ISO dates.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from app.domain.entities.registry import EntityDefinition
from app.domain.errors import DataExchangeError


class FilterSyntaxError(ValueError):
    pass


class UnknownFilterFieldError(DataExchangeError):
    pass


@dataclass(frozen=True)
class FilterCondition:
    field: str
    operator: str  # "eq", "after", "before"
    value: str

    def matches(self, record: Dict[str, Any]) -> bool:
        actual = record.get(self.field)
        if actual is None:
            return False
        actual_text = str(actual).strip()
        if self.operator == "after":
            return actual_text > self.value
        if self.operator == "before":
            return actual_text < self.value
        return actual_text.lower() == self.value.lower()


def parse_filter_expression(expression: str) -> List[Tuple[str, str]]:
    """
    Split ``"status=active, trade=Electrical"`` into ordered (key, value) pairs.

    Raises:
        FilterSyntaxError: for a segment without ``=`` or with an empty key.
    """
    pairs: List[Tuple[str, str]] = []
    for segment in expression.split(","):
        segment = segment.strip()
        if not segment:
            continue
        if "=" not in segment:
            raise FilterSyntaxError(f"Filter segment '{segment}' must look like key=value")
        key, value = segment.split("=", 1)
        key = key.strip()
        if not key:
            raise FilterSyntaxError(f"Filter segment '{segment}' is missing a key")
        pairs.append((key, value.strip()))
    return pairs


def build_conditions(pairs: Iterable[Tuple[str, str]], definition: EntityDefinition) -> List[FilterCondition]:
    """
    Resolve filter keys against the entity's registered fields.

    Raises:
        UnknownFilterFieldError: when a key names no registered field.
    """
    fields = set(definition.field_names)
    conditions: List[FilterCondition] = []
    for key, value in pairs:
        if key in fields:
            conditions.append(FilterCondition(key, "eq", value))
            continue
        for suffix, operator in (("_after", "after"), ("_before", "before")):
            base = key[: -len(suffix)]
            if key.endswith(suffix) and base in fields:
                conditions.append(FilterCondition(base, operator, value))
                break
        else:
            raise UnknownFilterFieldError(
                f"Unknown filter field '{key}' for {definition.entity_type.value}"
            )
    return conditions


def apply_filters(records: Sequence[Dict[str, Any]], conditions: Sequence[FilterCondition]) -> List[Dict[str, Any]]:
    return [record for record in records if all(condition.matches(record) for condition in conditions)]
