from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from kirana_store.models.delivery_partner import PARTNER_STATUSES, DeliveryPartner, PartnerAvailabilityLog

logger = logging.getLogger(__name__)


class DuplicatePartnerPhone(ValueError):
    pass


def list_partners(db: Session) -> list[DeliveryPartner]:
    return db.query(DeliveryPartner).order_by(DeliveryPartner.name.asc()).all()


def create_partner(db: Session, *, name: str, phone: str, pin: str | None = None) -> DeliveryPartner:
    partner = DeliveryPartner(name=name, phone=phone, pin=pin)
    try:
        db.add(partner)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicatePartnerPhone(phone) from exc
    db.refresh(partner)
    logger.info("delivery partner registered partner_id=%s", partner.id)
    return partner


def update_partner_status(
    db: Session,
    partner: DeliveryPartner,
    status: str,
    *,
    changed_by: str = "System",
) -> DeliveryPartner:
    if status not in PARTNER_STATUSES:
        raise ValueError(f"Unsupported partner status: {status}")
    try:
        partner.current_status = status
        db.add(PartnerAvailabilityLog(partner_id=partner.id, status_change=status, changed_by=changed_by))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(partner)
    return partner
