from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from kirana_store.core.database import Base

ORDER_PENDING_PAYMENT = "PENDING_PAYMENT"
ORDER_CONFIRMED = "CONFIRMED"
ORDER_PACKED = "PACKED"
ORDER_OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
ORDER_DELIVERED = "DELIVERED"
ORDER_CANCELLED = "CANCELLED"

ORDER_STATUSES = {
    ORDER_PENDING_PAYMENT,
    ORDER_CONFIRMED,
    ORDER_PACKED,
    ORDER_OUT_FOR_DELIVERY,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
}

PAYMENT_UPI = "UPI"
PAYMENT_COD = "COD"
PAYMENT_METHODS = {PAYMENT_UPI, PAYMENT_COD}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    readable_order_id = Column(String(32), unique=True, nullable=True)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), nullable=True)

    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    payment_method = Column(String(20), nullable=True)  # UPI / COD
    delivery_slot = Column(String(60), nullable=True)
    delivery_address_snapshot = Column(Text, nullable=True)

    status = Column(String(30), nullable=False, default=ORDER_PENDING_PAYMENT)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    customer = relationship("Customer", back_populates="orders")
    order_items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    status_logs = relationship(
        "OrderStatusLog",
        back_populates="order",
        order_by="OrderStatusLog.id",
    )
