from decimal import Decimal

import pytest

from kirana_store.fsm.states import ConversationState
from kirana_store.models.cart import CART_ACTIVE, Cart, CartItem
from kirana_store.models.customer import Customer
from kirana_store.models.customer_address import CustomerAddress
from kirana_store.services.addresses import (
    address_from_form,
    extract_postal_code,
    get_default_address,
    save_default_address,
)
from kirana_store.services.cart import (
    add_variant_to_cart,
    build_cart_summary,
    cart_total,
    format_price,
    get_active_cart,
    get_cart_lines,
)
from tests.fixtures_data import seed_catalog, seed_customer


def test_adding_same_variant_increments_single_row(db):
    seed_catalog(db)
    customer = seed_customer(db)

    for _ in range(3):
        add_variant_to_cart(db, customer.id, 42)

    items = db.query(CartItem).all()
    assert len(items) == 1
    assert items[0].variant_id == 42
    assert items[0].quantity == 3
    assert db.query(Cart).filter(Cart.status == CART_ACTIVE).count() == 1


def test_add_to_cart_writes_state_in_same_commit(db):
    seed_catalog(db)
    customer = seed_customer(db)

    item = add_variant_to_cart(db, customer.id, 42, next_state=ConversationState.CART_REVIEW.value)

    assert item.quantity == 1
    db.expire_all()
    stored = db.query(Customer).filter(Customer.id == customer.id).one()
    assert stored.conversation_state == ConversationState.CART_REVIEW.value


def test_cart_lines_and_totals_use_decimal_prices(db):
    seed_catalog(db)
    customer = seed_customer(db)
    add_variant_to_cart(db, customer.id, 42)
    add_variant_to_cart(db, customer.id, 42)
    add_variant_to_cart(db, customer.id, 43)

    lines = get_cart_lines(db, get_active_cart(db, customer.id))

    assert [line.subtotal for line in lines] == [Decimal("250.00"), Decimal("65.50")]
    assert cart_total(lines) == Decimal("315.50")
    summary = build_cart_summary(lines)
    assert "2x Toor Dal (1kg) - ₹250.00" in summary
    assert "*Total: ₹315.50*" in summary


def test_format_price_rounds_to_two_places():
    assert format_price(Decimal("99.999")) == "₹100.00"
    assert format_price(None) == "₹0.00"


def test_lines_for_missing_cart_are_empty(db):
    assert get_cart_lines(db, None) == []


def test_save_default_address_keeps_single_default(db):
    customer = seed_customer(db)

    save_default_address(db, customer.id, "Flat 3, Lake View, Pune 411001")
    save_default_address(db, customer.id, "House 9, Sector 4, Noida 201301")
    latest = save_default_address(db, customer.id, "22 Park Street, Kolkata")

    defaults = (
        db.query(CustomerAddress)
        .filter(CustomerAddress.customer_id == customer.id, CustomerAddress.is_default.is_(True))
        .all()
    )
    assert [address.id for address in defaults] == [latest.id]
    assert db.query(CustomerAddress).count() == 3
    assert get_default_address(db, customer.id).address_text == "22 Park Street, Kolkata"


def test_save_default_address_extracts_pin_code(db):
    customer = seed_customer(db)

    address = save_default_address(db, customer.id, "Flat 3, Lake View, Pune 411001")

    assert address.postal_code == "411001"


def test_blank_address_is_rejected(db):
    customer = seed_customer(db)

    with pytest.raises(ValueError):
        save_default_address(db, customer.id, "   ")


def test_extract_postal_code_ignores_longer_numbers():
    assert extract_postal_code("Call 9876543210") is None
    assert extract_postal_code("Pin 560038.") == "560038"


def test_address_form_values_are_flattened():
    text, postal_code, details = address_from_form(
        {
            "name": "Asha",
            "house_number": "12",
            "building_name": "Sunrise Apartments",
            "landmark_area": "Near temple",
            "city": "Bengaluru",
            "state": "Karnataka",
            "in_pin_code": "560038",
        }
    )

    assert text == "12, Sunrise Apartments, Near temple, Bengaluru, Karnataka, 560038"
    assert postal_code == "560038"
    assert details["recipient_name"] == "Asha"
    assert details["landmark"] == "Near temple"
