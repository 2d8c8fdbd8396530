"""
ORM tables for the data exchange pipeline.

Job rows are the only shared mutable state between the API and the job
executors; entity records are the default upsert target for imports.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.session import Base


def _utcnow() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ImportJobRecord(Base):
    """Persistent state of one import job."""
    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=_new_id)
    status = Column(String(20), nullable=False, default="pending", index=True)
    entity_type = Column(String(64), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(16), nullable=False)
    total_rows = Column(Integer, nullable=False, default=0)
    processed_rows = Column(Integer, nullable=False, default=0)
    error_rows = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=False, default=list)
    update_existing = Column(Boolean, nullable=False, default=False)
    skip_errors = Column(Boolean, nullable=False, default=False)
    mappings = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class ExportJobRecord(Base):
    """Persistent state of one export job and the location of its artifact."""
    __tablename__ = "export_jobs"

    id = Column(String(36), primary_key=True, default=_new_id)
    status = Column(String(20), nullable=False, default="pending", index=True)
    entity_type = Column(String(64), nullable=False, index=True)
    file_type = Column(String(16), nullable=False)
    file_name = Column(String(255), nullable=False)
    total_rows = Column(Integer, nullable=False, default=0)
    filter = Column(Text, nullable=True)
    columns = Column(JSON, nullable=False, default=list)
    storage_path = Column(String(512), nullable=True)
    download_url = Column(String(512), nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)


class EntityRecord(Base):
    """Generic business record keyed by entity type and natural key."""
    __tablename__ = "entity_records"
    __table_args__ = (
        UniqueConstraint("entity_type", "natural_key", name="uq_entity_records_natural_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(64), nullable=False, index=True)
    natural_key = Column(String(512), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


class EnterpriseAgreement(Base):
    __tablename__ = "enterprise_agreements"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=False)
    organization = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=True)
    document_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    rates = relationship(
        "EnterpriseAgreementRate",
        back_populates="agreement",
        cascade="all, delete-orphan",
        order_by="EnterpriseAgreementRate.position",
    )


class EnterpriseAgreementRate(Base):
    __tablename__ = "enterprise_agreement_rates"

    id = Column(String(36), primary_key=True, default=_new_id)
    agreement_id = Column(
        String(36),
        ForeignKey("enterprise_agreements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    classification = Column(String(200), nullable=False)
    rate = Column(Numeric(10, 2), nullable=False)
    effective_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)

    agreement = relationship("EnterpriseAgreement", back_populates="rates")
