from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, func

from kirana_store.core.database import Base

PARTNER_STATUSES = {"AVAILABLE", "BUSY", "OFFLINE"}


class DeliveryPartner(Base):
    __tablename__ = "delivery_partners"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    phone = Column(String(30), nullable=False, unique=True)
    pin = Column(String(12), nullable=True)
    current_status = Column(String(20), nullable=False, default="OFFLINE")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class PartnerAvailabilityLog(Base):
    __tablename__ = "partner_availability_logs"

    id = Column(Integer, primary_key=True)
    partner_id = Column(Integer, ForeignKey("delivery_partners.id"), index=True, nullable=False)
    status_change = Column(String(20), nullable=False)
    changed_by = Column(String(60), nullable=False, default="System")
    changed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
