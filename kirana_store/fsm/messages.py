from __future__ import annotations

from kirana_store.core.config import STORE_NAME, SUPPORT_PHONE
from kirana_store.models.customer_address import CustomerAddress
from kirana_store.models.order import Order
from kirana_store.models.product import Product, ProductVariant
from kirana_store.models.product_category import ProductCategory
from kirana_store.services.addresses import format_address
from kirana_store.services.cart import CartLine, build_cart_summary, format_price
from kirana_store.services.checkout import build_order_confirmation, build_order_summary
from kirana_store.services.orders import build_order_history
from kirana_store.whatsapp.base import LIST_MAX_ROWS, OutboundMessage

BTN_PRODUCTS = "btn_products"
BTN_ORDERS = "btn_orders"
BTN_SUPPORT = "btn_support"
BTN_ADD_MORE = "btn_add_more"
BTN_VIEW_CART = "btn_view_cart"
BTN_CHECKOUT = "btn_checkout"
BTN_CONFIRM_ADDRESS = "btn_confirm_address"
BTN_CHANGE_ADDRESS = "btn_change_address"
BTN_PAYMENT = "btn_payment"
PAY_UPI = "pay_upi"
PAY_COD = "pay_cod"
PLACE_UPI = "place_upi"
PLACE_COD = "place_cod"

CATEGORY_PREFIX = "cat_"
PRODUCT_PREFIX = "prod_"
VARIANT_PREFIX = "var_"


def text(body: str) -> OutboundMessage:
    return OutboundMessage(kind="text", payload={"text": body})


def buttons(body: str, options: list[tuple[str, str]], *, header: str | None = None) -> OutboundMessage:
    return OutboundMessage(
        kind="buttons",
        payload={
            "body": body,
            "header": header,
            "buttons": [{"id": button_id, "title": title} for button_id, title in options],
        },
    )


def _list(body: str, header: str, button_text: str, rows: list[dict[str, str]]) -> OutboundMessage:
    return OutboundMessage(
        kind="list",
        payload={
            "header": header,
            "body": body,
            "button_text": button_text,
            "sections": [{"title": header, "rows": rows[:LIST_MAX_ROWS]}],
        },
    )


def welcome_menu(*, fallback: bool = False) -> OutboundMessage:
    if fallback:
        body = "Sorry, I didn't get that. 🙏\nChoose an option below:"
    else:
        body = f"Welcome to *{STORE_NAME}*! 🏪\nChoose an option to start:"
    return buttons(
        body,
        [
            (BTN_PRODUCTS, "🛍️ View Products"),
            (BTN_ORDERS, "📦 My Orders"),
            (BTN_SUPPORT, "📞 Call Shop"),
        ],
    )


def category_list(categories: list[ProductCategory]) -> OutboundMessage:
    if not categories:
        return text("We haven't stocked any products yet. Please check back soon!")
    rows = [{"id": f"{CATEGORY_PREFIX}{category.id}", "title": category.name} for category in categories]
    return _list("What would you like to buy today?", "Categories", "Browse", rows)


def product_list(category: ProductCategory | None, products: list[Product]) -> OutboundMessage:
    if not products:
        return text("No products are available in this category right now.")
    rows = [
        {
            "id": f"{PRODUCT_PREFIX}{product.id}",
            "title": product.base_name,
            "description": product.description or "",
        }
        for product in products
    ]
    header = category.name if category else "Products"
    return _list("Pick a product to see sizes and prices.", header, "View products", rows)


def variant_list(product: Product | None, variants: list[ProductVariant]) -> OutboundMessage:
    if product is None or not variants:
        return text("Sorry, this product is out of stock right now.")
    rows = [
        {
            "id": f"{VARIANT_PREFIX}{variant.id}",
            "title": variant.weight_label,
            "description": format_price(variant.price),
        }
        for variant in variants
    ]
    return _list(f"Choose a size for *{product.base_name}*.", product.base_name, "Choose size", rows)


def variant_unavailable() -> OutboundMessage:
    return text("Sorry, that item is no longer available.")


def added_to_cart(variant: ProductVariant, quantity: int) -> OutboundMessage:
    name = variant.product.base_name if variant.product else "Item"
    return buttons(
        f"✅ Added *{name} ({variant.weight_label})* to your cart.\nQuantity in cart: {quantity}",
        [
            (BTN_ADD_MORE, "Add More"),
            (BTN_VIEW_CART, "View Cart"),
            (BTN_CHECKOUT, "Checkout"),
        ],
    )


def cart_view(lines: list[CartLine]) -> OutboundMessage:
    if not lines:
        return cart_empty()
    return buttons(
        f"🛒 *Your cart*\n\n{build_cart_summary(lines)}",
        [(BTN_CHECKOUT, "Checkout"), (BTN_ADD_MORE, "Add More")],
    )


def cart_empty() -> OutboundMessage:
    return text("Your cart is empty. Tap *View Products* or send *menu* to start shopping.")


def address_form() -> OutboundMessage:
    return OutboundMessage(
        kind="address",
        payload={"body": "Please share your delivery address. You can also type it, including your PIN code."},
    )


def confirm_address(address: CustomerAddress) -> OutboundMessage:
    return buttons(
        f"📍 Deliver to this address?\n\n{format_address(address)}",
        [(BTN_CONFIRM_ADDRESS, "Deliver Here"), (BTN_CHANGE_ADDRESS, "Change Address")],
    )


def address_saved(address: CustomerAddress) -> OutboundMessage:
    return buttons(
        f"✅ Address saved:\n{format_address(address)}",
        [(BTN_PAYMENT, "Proceed to Payment")],
    )


def payment_menu() -> OutboundMessage:
    return buttons(
        "How would you like to pay?",
        [(PAY_UPI, "UPI"), (PAY_COD, "Cash on Delivery")],
    )


def order_summary(lines: list[CartLine], payment_method: str, address: CustomerAddress) -> OutboundMessage:
    place_id = PLACE_UPI if payment_method == "UPI" else PLACE_COD
    body = build_order_summary(lines, payment_method=payment_method, address_text=format_address(address))
    return buttons(body, [(place_id, "Place Order")])


def order_confirmed(order: Order) -> OutboundMessage:
    return text(build_order_confirmation(order))


def order_history(orders: list[Order]) -> OutboundMessage:
    return text(build_order_history(orders))


def support() -> OutboundMessage:
    if SUPPORT_PHONE:
        return text(f"📞 Call us at {SUPPORT_PHONE}. We're happy to help!")
    return text("📞 Reply here with your question and the shop will get back to you.")


def catalog_preview(thumbnail_product_id: str) -> OutboundMessage:
    return OutboundMessage(
        kind="catalog",
        payload={
            "body": f"Browse the full {STORE_NAME} catalog.",
            "thumbnail_product_id": thumbnail_product_id,
        },
    )
