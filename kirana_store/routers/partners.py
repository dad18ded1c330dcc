import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kirana_store.core.database import get_db
from kirana_store.models.delivery_partner import DeliveryPartner
from kirana_store.services.partners import DuplicatePartnerPhone, create_partner, list_partners, update_partner_status

router = APIRouter(prefix="/api/partners", tags=["partners"])
logger = logging.getLogger(__name__)


class PartnerCreate(BaseModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=5)
    pin: Optional[str] = None


class PartnerStatusUpdate(BaseModel):
    current_status: str


class PartnerOut(BaseModel):
    id: int
    name: str
    phone: str
    current_status: str
    is_active: bool


def _partner_to_dict(partner: DeliveryPartner) -> dict:
    return {
        "id": partner.id,
        "name": partner.name,
        "phone": partner.phone,
        "current_status": partner.current_status,
        "is_active": partner.is_active,
    }


@router.get("", response_model=List[PartnerOut])
def list_partners_endpoint(db: Session = Depends(get_db)):
    return [_partner_to_dict(partner) for partner in list_partners(db)]


@router.post("", status_code=201)
def register_partner(payload: PartnerCreate, db: Session = Depends(get_db)):
    try:
        partner = create_partner(db, name=payload.name.strip(), phone=payload.phone.strip(), pin=payload.pin)
    except DuplicatePartnerPhone:
        raise HTTPException(status_code=400, detail="Phone number already registered")
    except SQLAlchemyError:
        logger.exception("failed to register partner")
        raise HTTPException(status_code=500, detail="Failed to register partner")
    return {"message": "Partner registered", "partner": _partner_to_dict(partner)}


@router.put("/{partner_id}/status")
def update_status(partner_id: int, payload: PartnerStatusUpdate, db: Session = Depends(get_db)):
    partner = db.query(DeliveryPartner).filter(DeliveryPartner.id == partner_id).first()
    if not partner:
        raise HTTPException(status_code=404, detail="Partner not found")
    try:
        update_partner_status(db, partner, payload.current_status.strip().upper())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except SQLAlchemyError:
        logger.exception("failed to update partner status partner_id=%s", partner_id)
        raise HTTPException(status_code=500, detail="Failed to update status")
    return {"message": "Status updated", "current_status": partner.current_status}
