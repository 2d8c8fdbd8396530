"""
Default upsert target for imported business records.

The pipeline only needs find/create/update by natural key and a full listing
for exports; any persistence engine offering that can stand in for
``SqlEntityStore``. Every write commits on its own so an import job never
holds a transaction open across rows.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models import EntityRecord
from app.db.session import get_engine
from app.domain.entities.registry import EntityDefinition, EntityType
from app.domain.errors import RowError
from app.utils.serialization import make_json_safe

logger = logging.getLogger(__name__)


class EntityStore(Protocol):
    def find(self, entity_type: EntityType, natural_key: str) -> Optional[Dict[str, Any]]: ...

    def create(self, entity_type: EntityType, natural_key: str, data: Dict[str, Any]) -> Dict[str, Any]: ...

    def update(self, entity_type: EntityType, natural_key: str, data: Dict[str, Any]) -> Dict[str, Any]: ...

    def list_records(self, entity_type: EntityType) -> List[Dict[str, Any]]: ...


def build_natural_key(definition: EntityDefinition, data: Dict[str, Any]) -> str:
    """
    Serialize the natural-key fields of ``data`` into a stable lookup key.

    Raises:
        RowError: if any key field is missing or blank.
    """
    parts = []
    missing = []
    for field_name in definition.natural_key:
        value = data.get(field_name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field_name)
            continue
        parts.append(str(value).strip().lower() if isinstance(value, str) else str(value))
    if missing:
        raise RowError(f"Missing value for key field(s): {', '.join(missing)}")
    return json.dumps(parts, separators=(",", ":"))


class SqlEntityStore:
    """``EntityStore`` over the ``entity_records`` table."""

    def __init__(self, engine=None):
        self._engine = engine

    @property
    def engine(self):
        return self._engine or get_engine()

    def _fetch(self, db: Session, entity_type: EntityType, natural_key: str) -> Optional[EntityRecord]:
        stmt = select(EntityRecord).where(
            EntityRecord.entity_type == entity_type.value,
            EntityRecord.natural_key == natural_key,
        )
        return db.execute(stmt).scalar_one_or_none()

    def find(self, entity_type: EntityType, natural_key: str) -> Optional[Dict[str, Any]]:
        with Session(self.engine) as db:
            record = self._fetch(db, entity_type, natural_key)
            return dict(record.data) if record else None

    def create(self, entity_type: EntityType, natural_key: str, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = make_json_safe(data)
        with Session(self.engine) as db:
            db.add(EntityRecord(entity_type=entity_type.value, natural_key=natural_key, data=payload))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise RowError("A record with the same key already exists")
        return payload

    def update(self, entity_type: EntityType, natural_key: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with Session(self.engine) as db:
            record = self._fetch(db, entity_type, natural_key)
            if record is None:
                raise RowError("Record to update no longer exists")
            merged = dict(record.data or {})
            merged.update(make_json_safe(data))
            record.data = merged
            db.commit()
            return merged

    def list_records(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        with Session(self.engine) as db:
            stmt = (
                select(EntityRecord)
                .where(EntityRecord.entity_type == entity_type.value)
                .order_by(EntityRecord.id)
            )
            return [dict(record.data or {}) for record in db.execute(stmt).scalars()]
