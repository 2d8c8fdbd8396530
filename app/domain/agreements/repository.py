"""
Persistence for enterprise agreements and their pay rates.
"""
import logging
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.api.schemas.shared import AgreementFields, EnterpriseAgreementInfo, ExtractedPayRate, SavedPayRate
from app.db.models import EnterpriseAgreement, EnterpriseAgreementRate
from app.db.session import get_engine

logger = logging.getLogger(__name__)


def _to_info(agreement: EnterpriseAgreement) -> EnterpriseAgreementInfo:
    return EnterpriseAgreementInfo(
        id=agreement.id,
        name=agreement.name,
        code=agreement.code,
        organization=agreement.organization,
        start_date=agreement.start_date,
        end_date=agreement.end_date,
        is_active=agreement.is_active,
        description=agreement.description,
        document_name=agreement.document_name,
        created_at=agreement.created_at,
        rates=[
            SavedPayRate(
                id=rate.id,
                classification=rate.classification,
                rate=rate.rate,
                effective_date=rate.effective_date,
                notes=rate.notes,
            )
            for rate in agreement.rates
        ],
    )


def save_agreement_with_rates(
    fields: AgreementFields,
    rates: Sequence[ExtractedPayRate],
    *,
    document_name: Optional[str] = None,
) -> EnterpriseAgreementInfo:
    """
    Insert the agreement and every rate in one transaction.

    Either everything is committed or, on any error, nothing is.
    """
    with Session(get_engine(), expire_on_commit=False) as db:
        agreement = EnterpriseAgreement(
            name=fields.name,
            code=fields.code,
            organization=fields.organization,
            start_date=fields.start_date,
            end_date=fields.end_date,
            is_active=fields.is_active,
            description=fields.description,
            document_name=document_name,
        )
        agreement.rates = [
            EnterpriseAgreementRate(
                position=position,
                classification=rate.classification,
                rate=rate.rate,
                effective_date=rate.effective_date,
                notes=rate.notes,
            )
            for position, rate in enumerate(rates)
        ]
        db.add(agreement)
        try:
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Saving agreement %s rolled back", fields.code)
            raise
        db.refresh(agreement)
        info = _to_info(agreement)

    logger.info("Saved agreement %s (%s) with %d rates", info.id, info.code, len(info.rates))
    return info


def get_agreement(agreement_id: str) -> Optional[EnterpriseAgreementInfo]:
    with Session(get_engine()) as db:
        stmt = (
            select(EnterpriseAgreement)
            .options(selectinload(EnterpriseAgreement.rates))
            .where(EnterpriseAgreement.id == agreement_id)
        )
        agreement = db.execute(stmt).scalar_one_or_none()
        return _to_info(agreement) if agreement else None


def list_agreements() -> List[EnterpriseAgreementInfo]:
    with Session(get_engine()) as db:
        stmt = (
            select(EnterpriseAgreement)
            .options(selectinload(EnterpriseAgreement.rates))
            .order_by(EnterpriseAgreement.created_at.desc())
        )
        return [_to_info(agreement) for agreement in db.execute(stmt).scalars()]
