from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from kirana_store.core.database import Base
from kirana_store.fsm.states import ConversationState


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    phone = Column(String(30), nullable=False, unique=True)
    name = Column(String(120), nullable=True)

    # explicit FSM state, written together with the mutation that caused it
    conversation_state = Column(String(32), nullable=False, default=ConversationState.IDLE.value)

    last_active_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    addresses = relationship("CustomerAddress", back_populates="customer", cascade="all, delete-orphan")
    carts = relationship("Cart", back_populates="customer")
    orders = relationship("Order", back_populates="customer")
