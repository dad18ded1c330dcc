from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from kirana_store.fsm.states import ConversationState
from kirana_store.models.cart import CART_ACTIVE, CART_CONVERTED, Cart
from kirana_store.models.customer import Customer
from kirana_store.models.order import (
    ORDER_CONFIRMED,
    ORDER_PENDING_PAYMENT,
    PAYMENT_COD,
    PAYMENT_METHODS,
    PAYMENT_UPI,
    Order,
)
from kirana_store.models.order_item import OrderItem
from kirana_store.models.order_status_log import OrderStatusLog
from kirana_store.services.addresses import format_address, get_default_address
from kirana_store.services.cart import CartLine, cart_total, format_price, get_active_cart, get_cart_lines, to_money
from kirana_store.services.customers import set_conversation_state

logger = logging.getLogger(__name__)

READABLE_ID_PREFIX = "MK"
BOT_ACTOR = "WhatsApp Bot"


def initial_status_for(payment_method: str) -> str:
    if payment_method == PAYMENT_COD:
        return ORDER_CONFIRMED
    return ORDER_PENDING_PAYMENT


def make_readable_order_id(order_id: int, created_at: datetime) -> str:
    return f"{READABLE_ID_PREFIX}-{created_at:%y%m%d}-{order_id:04d}"


def normalize_payment_method(value: str | None) -> str:
    method = (value or "").strip().upper()
    if method not in PAYMENT_METHODS:
        raise ValueError(f"Unsupported payment method: {value}")
    return method


def payment_label(method: str) -> str:
    if method == PAYMENT_UPI:
        return "UPI"
    return "Cash on Delivery"


def place_order(
    db: Session,
    customer: Customer,
    payment_method: str,
    *,
    now: datetime | None = None,
    actor: str = BOT_ACTOR,
) -> Order | None:
    """Converts the customer's ACTIVE cart into an order in one transaction.

    Returns None without side effects when there is no active cart with
    items, or when another placement already converted the cart.
    """
    method = normalize_payment_method(payment_method)
    now = now or datetime.now(timezone.utc)

    cart = get_active_cart(db, customer.id)
    if cart is None:
        return None

    address = get_default_address(db, customer.id)
    status = initial_status_for(method)

    try:
        flipped = (
            db.query(Cart)
            .filter(Cart.id == cart.id, Cart.status == CART_ACTIVE)
            .update({Cart.status: CART_CONVERTED}, synchronize_session="fetch")
        )
        if flipped != 1:
            db.rollback()
            logger.info("cart already converted cart_id=%s", cart.id)
            return None

        # lines are read while the flip holds the cart row
        lines = get_cart_lines(db, cart)
        if not lines:
            db.rollback()
            return None

        order = Order(
            customer_id=customer.id,
            cart_id=cart.id,
            total_amount=cart_total(lines),
            payment_method=method,
            delivery_address_snapshot=format_address(address) if address else None,
            status=status,
            created_at=now,
            updated_at=now,
        )
        db.add(order)
        db.flush()

        order.readable_order_id = make_readable_order_id(order.id, now)
        for line in lines:
            db.add(
                OrderItem(
                    order_id=order.id,
                    variant_id=line.variant_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.subtotal,
                )
            )
        db.add(
            OrderStatusLog(
                order_id=order.id,
                old_status=None,
                new_status=status,
                changed_by=actor,
                changed_at=now,
            )
        )
        set_conversation_state(db, customer.id, ConversationState.ORDER_CONFIRMED.value)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("order placement failed customer_id=%s cart_id=%s", customer.id, cart.id)
        raise

    db.refresh(order)
    logger.info(
        "order placed order_id=%s readable_id=%s total=%s method=%s",
        order.id,
        order.readable_order_id,
        order.total_amount,
        method,
    )
    return order


def build_order_summary(lines: list[CartLine], *, payment_method: str, address_text: str | None) -> str:
    rows = ["*Order summary*", ""]
    rows.extend(f"{line.quantity}x {line.label} - {format_price(line.subtotal)}" for line in lines)
    rows.append("")
    rows.append(f"*Total: {format_price(cart_total(lines))}*")
    rows.append(f"Payment: {payment_label(payment_method)}")
    if address_text:
        rows.append(f"Deliver to: {address_text}")
    return "\n".join(rows)


def build_order_confirmation(order: Order) -> str:
    total: Decimal = to_money(order.total_amount)
    text = (
        f"✅ Order placed! Your order id is *{order.readable_order_id}*.\n"
        f"Total: {format_price(total)}\n"
        f"Payment: {payment_label(order.payment_method)}"
    )
    if order.payment_method == PAYMENT_UPI:
        text += "\nWe will share the UPI payment details shortly."
    return text
