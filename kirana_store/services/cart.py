from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import text
from sqlalchemy.orm import Session

from kirana_store.core.database import upsert_insert
from kirana_store.models.cart import CART_ACTIVE, Cart, CartItem
from kirana_store.models.product import ProductVariant
from kirana_store.services.customers import set_conversation_state

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_price(value) -> str:
    return f"₹{to_money(value):.2f}"


@dataclass
class CartLine:
    variant_id: int
    product_name: str
    weight_label: str
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    @property
    def label(self) -> str:
        return f"{self.product_name} ({self.weight_label})"


def get_active_cart(db: Session, customer_id: int) -> Cart | None:
    return (
        db.query(Cart)
        .filter(Cart.customer_id == customer_id, Cart.status == CART_ACTIVE)
        .first()
    )


def ensure_active_cart(db: Session, customer_id: int) -> Cart:
    """Returns the ACTIVE cart, creating it if needed. Does not commit."""
    stmt = (
        upsert_insert(db, Cart)
        .values(customer_id=customer_id, status=CART_ACTIVE)
        .on_conflict_do_nothing(
            index_elements=["customer_id"],
            index_where=text("status = 'ACTIVE'"),
        )
    )
    db.execute(stmt)
    cart = get_active_cart(db, customer_id)
    if cart is None:
        raise RuntimeError(f"active cart missing after upsert customer_id={customer_id}")
    return cart


MAX_CART_ATTEMPTS = 3


def _lock_active_cart(db: Session, cart_id: int) -> Cart | None:
    return (
        db.query(Cart)
        .filter(Cart.id == cart_id, Cart.status == CART_ACTIVE)
        .with_for_update()
        .first()
    )


def add_variant_to_cart(
    db: Session,
    customer_id: int,
    variant_id: int,
    *,
    next_state: str | None = None,
) -> CartItem:
    """Adds one unit of the variant to the customer's ACTIVE cart in one transaction.

    When next_state is given the customer's conversation state is written in the
    same commit.
    """
    try:
        for _ in range(MAX_CART_ATTEMPTS):
            cart = ensure_active_cart(db, customer_id)
            if _lock_active_cart(db, cart.id) is not None:
                break
            logger.info("cart converted during add, retrying cart_id=%s", cart.id)
        else:
            raise RuntimeError(f"no active cart for customer_id={customer_id}")
        stmt = upsert_insert(db, CartItem).values(cart_id=cart.id, variant_id=variant_id, quantity=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=["cart_id", "variant_id"],
            set_={"quantity": CartItem.quantity + 1},
        )
        db.execute(stmt)
        if next_state is not None:
            set_conversation_state(db, customer_id, next_state)
        db.commit()
    except Exception:
        db.rollback()
        raise

    item = (
        db.query(CartItem)
        .filter(CartItem.cart_id == cart.id, CartItem.variant_id == variant_id)
        .one()
    )
    db.refresh(item)
    logger.info("cart item upserted cart_id=%s variant_id=%s qty=%s", cart.id, variant_id, item.quantity)
    return item


def get_cart_lines(db: Session, cart: Cart | None) -> list[CartLine]:
    if cart is None:
        return []
    items = (
        db.query(CartItem)
        .filter(CartItem.cart_id == cart.id)
        .order_by(CartItem.id)
        .all()
    )
    lines: list[CartLine] = []
    for item in items:
        variant: ProductVariant | None = item.variant
        if variant is None:
            continue
        lines.append(
            CartLine(
                variant_id=variant.id,
                product_name=variant.product.base_name if variant.product else "Item",
                weight_label=variant.weight_label,
                quantity=int(item.quantity or 0),
                unit_price=to_money(variant.price),
            )
        )
    return lines


def cart_total(lines: list[CartLine]) -> Decimal:
    return to_money(sum((line.subtotal for line in lines), Decimal("0")))


def build_cart_summary(lines: list[CartLine]) -> str:
    rows = [f"{line.quantity}x {line.label} - {format_price(line.subtotal)}" for line in lines]
    rows.append("")
    rows.append(f"*Total: {format_price(cart_total(lines))}*")
    return "\n".join(rows)

