from enum import Enum


class ConversationState(str, Enum):
    IDLE = "IDLE"
    BROWSING_CATEGORIES = "BROWSING_CATEGORIES"
    BROWSING_PRODUCTS = "BROWSING_PRODUCTS"
    SELECTING_VARIANT = "SELECTING_VARIANT"
    CART_REVIEW = "CART_REVIEW"
    AWAITING_ADDRESS = "AWAITING_ADDRESS"
    ADDRESS_CONFIRM = "ADDRESS_CONFIRM"
    PAYMENT_SELECT = "PAYMENT_SELECT"
    ORDER_PLACING = "ORDER_PLACING"
    ORDER_CONFIRMED = "ORDER_CONFIRMED"


def parse_state(value: str | None) -> ConversationState:
    try:
        return ConversationState(value or ConversationState.IDLE.value)
    except ValueError:
        return ConversationState.IDLE
