from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from kirana_store.models.order import ORDER_STATUSES, Order
from kirana_store.models.order_item import OrderItem
from kirana_store.models.order_status_log import OrderStatusLog
from kirana_store.models.product import ProductVariant
from kirana_store.services.cart import format_price, to_money
from kirana_store.services.checkout import initial_status_for, make_readable_order_id, normalize_payment_method

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "System"
ADMIN_ACTOR = "Admin"
RECENT_ORDERS_LIMIT = 50
CUSTOMER_HISTORY_LIMIT = 5


def create_order(
    db: Session,
    *,
    customer_id: int | None,
    items: Iterable[dict[str, Any]],
    payment_method: str,
    total_amount: Decimal | None = None,
    delivery_slot: str | None = None,
    address_snapshot: str | None = None,
) -> Order:
    """Creates an order with its items and initial status log in one transaction."""
    method = normalize_payment_method(payment_method)
    status = initial_status_for(method)
    now = datetime.now(timezone.utc)
    items = list(items)

    computed_total = sum(
        (to_money(item["unit_price"]) * int(item["quantity"]) for item in items),
        Decimal("0"),
    )
    try:
        order = Order(
            customer_id=customer_id,
            total_amount=to_money(total_amount if total_amount is not None else computed_total),
            payment_method=method,
            delivery_slot=delivery_slot,
            delivery_address_snapshot=address_snapshot,
            status=status,
            created_at=now,
            updated_at=now,
        )
        db.add(order)
        db.flush()
        order.readable_order_id = make_readable_order_id(order.id, now)

        for item in items:
            unit_price = to_money(item["unit_price"])
            quantity = int(item["quantity"])
            db.add(
                OrderItem(
                    order_id=order.id,
                    variant_id=item["variant_id"],
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=to_money(unit_price * quantity),
                )
            )
        db.add(OrderStatusLog(order_id=order.id, old_status=None, new_status=status, changed_by=SYSTEM_ACTOR))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("order created via api order_id=%s readable_id=%s", order.id, order.readable_order_id)
    return order


def list_recent_orders(db: Session, limit: int = RECENT_ORDERS_LIMIT) -> list[Order]:
    return db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def list_customer_orders(db: Session, customer_id: int, limit: int = CUSTOMER_HISTORY_LIMIT) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.customer_id == customer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(limit)
        .all()
    )


def get_order(db: Session, order_id: int) -> Order | None:
    return (
        db.query(Order)
        .options(selectinload(Order.order_items).selectinload(OrderItem.variant).selectinload(ProductVariant.product))
        .filter(Order.id == order_id)
        .first()
    )


def update_order_status(db: Session, order: Order, new_status: str, *, changed_by: str | None = None) -> Order:
    if new_status not in ORDER_STATUSES:
        raise ValueError(f"Unsupported order status: {new_status}")

    old_status = order.status
    try:
        order.status = new_status
        order.updated_at = datetime.now(timezone.utc)
        db.add(
            OrderStatusLog(
                order_id=order.id,
                old_status=old_status,
                new_status=new_status,
                changed_by=changed_by or ADMIN_ACTOR,
            )
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(order)
    logger.info("order status updated order_id=%s %s -> %s", order.id, old_status, new_status)
    return order


def build_order_history(orders: list[Order]) -> str:
    if not orders:
        return "You have no orders yet. Tap *View Products* to start shopping."
    rows = ["*Your recent orders*", ""]
    for order in orders:
        label = order.readable_order_id or f"#{order.id}"
        rows.append(f"{label} - {order.status.replace('_', ' ').title()} - {format_price(order.total_amount)}")
    return "\n".join(rows)
