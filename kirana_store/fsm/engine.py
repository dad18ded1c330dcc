from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kirana_store.core.config import WHATSAPP_CATALOG_PRODUCT_ID
from kirana_store.fsm import messages
from kirana_store.fsm.states import ConversationState, parse_state
from kirana_store.models.customer import Customer
from kirana_store.models.order import PAYMENT_COD, PAYMENT_UPI
from kirana_store.services import catalog
from kirana_store.services.addresses import address_from_form, get_default_address, save_default_address
from kirana_store.services.cart import add_variant_to_cart, get_active_cart, get_cart_lines
from kirana_store.services.checkout import place_order
from kirana_store.services.orders import list_customer_orders
from kirana_store.services.session_gate import is_welcome_keyword
from kirana_store.whatsapp.base import InboundEvent, OutboundMessage

logger = logging.getLogger(__name__)

CATALOG_KEYWORD = "catalog"


def _set_state(db: Session, customer: Customer, state: ConversationState) -> None:
    if customer.conversation_state == state.value:
        return
    customer.conversation_state = state.value
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def _parse_id(interaction_id: str, prefix: str) -> int | None:
    if not interaction_id.startswith(prefix):
        return None
    raw = interaction_id[len(prefix):]
    return int(raw) if raw.isascii() and raw.isdigit() else None


def _welcome(db: Session, customer: Customer, *, fallback: bool = False) -> list[OutboundMessage]:
    _set_state(db, customer, ConversationState.IDLE)
    return [messages.welcome_menu(fallback=fallback)]


def _show_categories(db: Session, customer: Customer) -> list[OutboundMessage]:
    _set_state(db, customer, ConversationState.BROWSING_CATEGORIES)
    return [messages.category_list(catalog.list_active_categories(db))]


def _show_products(db: Session, customer: Customer, category_id: int) -> list[OutboundMessage]:
    category = catalog.get_active_category(db, category_id)
    products = catalog.list_active_products(db, category_id) if category else []
    _set_state(db, customer, ConversationState.BROWSING_PRODUCTS)
    return [messages.product_list(category, products)]


def _show_variants(db: Session, customer: Customer, product_id: int) -> list[OutboundMessage]:
    product = catalog.get_active_product(db, product_id)
    variants = catalog.list_available_variants(db, product_id) if product else []
    _set_state(db, customer, ConversationState.SELECTING_VARIANT)
    return [messages.variant_list(product, variants)]


def _add_to_cart(db: Session, customer: Customer, variant_id: int) -> list[OutboundMessage]:
    variant = catalog.get_active_variant(db, variant_id)
    if variant is None:
        return [messages.variant_unavailable()]
    item = add_variant_to_cart(
        db,
        customer.id,
        variant.id,
        next_state=ConversationState.CART_REVIEW.value,
    )
    return [messages.added_to_cart(variant, item.quantity)]


def _view_cart(db: Session, customer: Customer) -> list[OutboundMessage]:
    lines = get_cart_lines(db, get_active_cart(db, customer.id))
    _set_state(db, customer, ConversationState.CART_REVIEW)
    return [messages.cart_view(lines)]


def _checkout(db: Session, customer: Customer) -> list[OutboundMessage]:
    lines = get_cart_lines(db, get_active_cart(db, customer.id))
    if not lines:
        _set_state(db, customer, ConversationState.IDLE)
        return [messages.cart_empty()]

    address = get_default_address(db, customer.id)
    if address is None:
        _set_state(db, customer, ConversationState.AWAITING_ADDRESS)
        return [messages.address_form()]

    _set_state(db, customer, ConversationState.ADDRESS_CONFIRM)
    return [messages.confirm_address(address)]


def _ask_address(db: Session, customer: Customer) -> list[OutboundMessage]:
    _set_state(db, customer, ConversationState.AWAITING_ADDRESS)
    return [messages.address_form()]


def _payment_menu(db: Session, customer: Customer) -> list[OutboundMessage]:
    _set_state(db, customer, ConversationState.PAYMENT_SELECT)
    return [messages.payment_menu()]


def _select_payment(db: Session, customer: Customer, method: str) -> list[OutboundMessage]:
    address = get_default_address(db, customer.id)
    if address is None:
        return _ask_address(db, customer)

    lines = get_cart_lines(db, get_active_cart(db, customer.id))
    if not lines:
        _set_state(db, customer, ConversationState.IDLE)
        return [messages.cart_empty()]

    _set_state(db, customer, ConversationState.ORDER_PLACING)
    return [messages.order_summary(lines, method, address)]


def _place_order(db: Session, customer: Customer, method: str) -> list[OutboundMessage]:
    order = place_order(db, customer, method)
    if order is None:
        logger.info("place order ignored, no active cart customer_id=%s", customer.id)
        return []
    return [messages.order_confirmed(order)]


def _save_text_address(db: Session, customer: Customer, address_text: str) -> list[OutboundMessage]:
    address = save_default_address(
        db,
        customer.id,
        address_text,
        next_state=ConversationState.PAYMENT_SELECT.value,
    )
    return [messages.address_saved(address)]


def _save_form_address(db: Session, customer: Customer, values: dict) -> list[OutboundMessage]:
    address_text, postal_code, details = address_from_form(values)
    if not address_text:
        return _ask_address(db, customer)
    address = save_default_address(
        db,
        customer.id,
        address_text,
        postal_code=postal_code,
        details=details,
        next_state=ConversationState.PAYMENT_SELECT.value,
    )
    return [messages.address_saved(address)]


def _order_history(db: Session, customer: Customer) -> list[OutboundMessage]:
    _set_state(db, customer, ConversationState.IDLE)
    return [messages.order_history(list_customer_orders(db, customer.id))]


def _support(db: Session, customer: Customer) -> list[OutboundMessage]:
    _set_state(db, customer, ConversationState.IDLE)
    return [messages.support()]


def _handle_interaction(db: Session, customer: Customer, interaction_id: str) -> list[OutboundMessage]:
    if interaction_id in (messages.BTN_PRODUCTS, messages.BTN_ADD_MORE):
        return _show_categories(db, customer)
    if interaction_id == messages.BTN_VIEW_CART:
        return _view_cart(db, customer)
    if interaction_id == messages.BTN_CHECKOUT:
        return _checkout(db, customer)
    if interaction_id == messages.BTN_CHANGE_ADDRESS:
        return _ask_address(db, customer)
    if interaction_id in (messages.BTN_CONFIRM_ADDRESS, messages.BTN_PAYMENT):
        return _payment_menu(db, customer)
    if interaction_id == messages.PAY_UPI:
        return _select_payment(db, customer, PAYMENT_UPI)
    if interaction_id == messages.PAY_COD:
        return _select_payment(db, customer, PAYMENT_COD)
    if interaction_id == messages.PLACE_UPI:
        return _place_order(db, customer, PAYMENT_UPI)
    if interaction_id == messages.PLACE_COD:
        return _place_order(db, customer, PAYMENT_COD)
    if interaction_id == messages.BTN_ORDERS:
        return _order_history(db, customer)
    if interaction_id == messages.BTN_SUPPORT:
        return _support(db, customer)

    category_id = _parse_id(interaction_id, messages.CATEGORY_PREFIX)
    if category_id is not None:
        return _show_products(db, customer, category_id)
    product_id = _parse_id(interaction_id, messages.PRODUCT_PREFIX)
    if product_id is not None:
        return _show_variants(db, customer, product_id)
    variant_id = _parse_id(interaction_id, messages.VARIANT_PREFIX)
    if variant_id is not None:
        return _add_to_cart(db, customer, variant_id)

    logger.info("unknown interaction id=%s", interaction_id)
    return _welcome(db, customer, fallback=True)


def _expects_address(db: Session, customer: Customer, state: ConversationState) -> bool:
    if state == ConversationState.AWAITING_ADDRESS:
        return True
    return get_active_cart(db, customer.id) is not None and get_default_address(db, customer.id) is None


def handle_event(
    db: Session,
    customer: Customer,
    event: InboundEvent,
    *,
    is_new_session: bool = False,
) -> list[OutboundMessage]:
    """Advances the customer's conversation and returns the replies to send.

    A new session or a welcome keyword always answers with the welcome menu
    and resets the state to IDLE; the cart and saved addresses are kept.
    """
    state = parse_state(customer.conversation_state)
    text = (event.text or "").strip()

    if is_new_session or (event.kind == "text" and is_welcome_keyword(text)):
        return _welcome(db, customer)

    if event.kind == "address":
        return _save_form_address(db, customer, event.interaction_payload)

    if event.interaction_id:
        return _handle_interaction(db, customer, event.interaction_id)

    if event.kind == "text" and text:
        if text.lower() == CATALOG_KEYWORD and WHATSAPP_CATALOG_PRODUCT_ID:
            _set_state(db, customer, ConversationState.BROWSING_CATEGORIES)
            return [messages.catalog_preview(WHATSAPP_CATALOG_PRODUCT_ID)]
        if _expects_address(db, customer, state):
            return _save_text_address(db, customer, text)

    return _welcome(db, customer, fallback=True)
