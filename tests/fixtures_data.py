"""Reusable catalog rows and webhook envelopes for the backend tests."""

import json
from decimal import Decimal

from kirana_store.models.customer import Customer
from kirana_store.models.customer_address import CustomerAddress
from kirana_store.models.product import Product, ProductVariant
from kirana_store.models.product_category import ProductCategory

CUSTOMER_PHONE = "919999900001"
BUSINESS_PHONE_ID = "1234567890"

CATALOG = {
    "category": {"id": 1, "name": "Staples", "sort_order": 1},
    "product": {"id": 7, "base_name": "Toor Dal", "description": "Unpolished arhar dal"},
    "variants": [
        {"id": 42, "weight_label": "1kg", "price": Decimal("125.00"), "stock_quantity": 20},
        {"id": 43, "weight_label": "500g", "price": Decimal("65.50"), "stock_quantity": 0},
    ],
}


def seed_catalog(db) -> None:
    db.add(ProductCategory(is_active=True, **CATALOG["category"]))
    db.add(Product(category_id=CATALOG["category"]["id"], is_active=True, **CATALOG["product"]))
    for variant in CATALOG["variants"]:
        db.add(ProductVariant(product_id=CATALOG["product"]["id"], is_active=True, **variant))
    db.commit()


def seed_customer(db, phone: str = CUSTOMER_PHONE, *, with_address: bool = False) -> Customer:
    customer = Customer(phone=phone, name="Asha")
    db.add(customer)
    db.flush()
    if with_address:
        db.add(
            CustomerAddress(
                customer_id=customer.id,
                address_text="12 MG Road, Indiranagar, Bengaluru 560038",
                postal_code="560038",
                is_default=True,
            )
        )
    db.commit()
    db.refresh(customer)
    return customer


def _envelope(messages: list[dict], *, contact_name: str = "Asha") -> dict:
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_ID",
                "changes": [
                    {
                        "field": "messages",
                        "value": {
                            "messaging_product": "whatsapp",
                            "metadata": {
                                "display_phone_number": "15550001111",
                                "phone_number_id": BUSINESS_PHONE_ID,
                            },
                            "contacts": [{"profile": {"name": contact_name}, "wa_id": CUSTOMER_PHONE}],
                            "messages": messages,
                        },
                    }
                ],
            }
        ],
    }


def text_payload(message_id: str, body: str, *, sender: str = CUSTOMER_PHONE) -> dict:
    return _envelope(
        [{"from": sender, "id": message_id, "timestamp": "1760860800", "type": "text", "text": {"body": body}}]
    )


def button_payload(message_id: str, button_id: str, title: str = "", *, sender: str = CUSTOMER_PHONE) -> dict:
    return _envelope(
        [
            {
                "from": sender,
                "id": message_id,
                "timestamp": "1760860800",
                "type": "interactive",
                "interactive": {"type": "button_reply", "button_reply": {"id": button_id, "title": title}},
            }
        ]
    )


def list_payload(message_id: str, row_id: str, title: str = "", *, sender: str = CUSTOMER_PHONE) -> dict:
    return _envelope(
        [
            {
                "from": sender,
                "id": message_id,
                "timestamp": "1760860800",
                "type": "interactive",
                "interactive": {"type": "list_reply", "list_reply": {"id": row_id, "title": title}},
            }
        ]
    )


def address_form_payload(message_id: str, values: dict, *, sender: str = CUSTOMER_PHONE) -> dict:
    return _envelope(
        [
            {
                "from": sender,
                "id": message_id,
                "timestamp": "1760860800",
                "type": "interactive",
                "interactive": {
                    "type": "nfm_reply",
                    "nfm_reply": {
                        "name": "address_message",
                        "response_json": json.dumps({"values": values}),
                    },
                },
            }
        ]
    )


STATUSES_ONLY_PAYLOAD = {
    "object": "whatsapp_business_account",
    "entry": [
        {
            "id": "WABA_ID",
            "changes": [
                {
                    "field": "messages",
                    "value": {
                        "messaging_product": "whatsapp",
                        "metadata": {"phone_number_id": BUSINESS_PHONE_ID},
                        "statuses": [
                            {"id": "wamid.OUT1", "status": "delivered", "recipient_id": CUSTOMER_PHONE}
                        ],
                    },
                }
            ],
        }
    ],
}
