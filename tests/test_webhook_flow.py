from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from kirana_store.core.database import get_session_factory
from kirana_store.deps import get_session_cache, get_whatsapp_service
from kirana_store.fsm.states import ConversationState
from kirana_store.models.cart import CART_CONVERTED, Cart, CartItem
from kirana_store.models.conversation_log import ConversationLogEntry
from kirana_store.models.customer import Customer
from kirana_store.models.order import ORDER_CONFIRMED, Order
from kirana_store.models.order_status_log import OrderStatusLog
from kirana_store.routers import webhook as webhook_router
from kirana_store.services.conversation import process_webhook_payload
from kirana_store.services.session_cache import InMemorySessionCache
from kirana_store.whatsapp.base import WhatsAppSendError
from kirana_store.whatsapp.mock_provider import MockWhatsAppProvider
from kirana_store.whatsapp.service import WhatsAppService
from tests.fixtures_data import (
    CUSTOMER_PHONE,
    STATUSES_ONLY_PAYLOAD,
    button_payload,
    list_payload,
    seed_catalog,
    seed_customer,
    text_payload,
)

WEBHOOK_URL = "/api/webhook/whatsapp"


@pytest.fixture
def provider():
    return MockWhatsAppProvider()


@pytest.fixture
def client(session_factory, provider):
    app = FastAPI()
    app.include_router(webhook_router.router)
    cache = InMemorySessionCache()
    service = WhatsAppService(provider)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_whatsapp_service] = lambda: service
    app.dependency_overrides[get_session_cache] = lambda: cache
    with TestClient(app) as test_client:
        yield test_client


def _post(client, payload):
    response = client.post(WEBHOOK_URL, json=payload)
    assert response.status_code == 200
    assert response.json() == {"status": "received"}
    return response


def _last_body(provider) -> str:
    sent = provider.messages_to(CUSTOMER_PHONE)[-1]
    if sent["type"] == "text":
        return sent["text"]["body"]
    return sent["interactive"]["body"]["text"]


def test_first_hi_creates_customer_and_sends_welcome(client, provider, db):
    _post(client, text_payload("wamid.1", "hi"))

    customer = db.query(Customer).filter(Customer.phone == CUSTOMER_PHONE).one()
    assert customer.name == "Asha"
    assert customer.conversation_state == ConversationState.IDLE.value
    assert db.query(ConversationLogEntry).count() == 1

    assert len(provider.sent) == 1
    interactive = provider.sent[0]["interactive"]
    assert interactive["type"] == "button"
    assert [b["reply"]["id"] for b in interactive["action"]["buttons"]] == [
        "btn_products",
        "btn_orders",
        "btn_support",
    ]
    assert provider.read_receipts == ["wamid.1"]


def test_view_products_lists_categories(client, provider, db):
    seed_catalog(db)
    _post(client, text_payload("wamid.1", "hi"))

    _post(client, button_payload("wamid.2", "btn_products", "View Products"))

    interactive = provider.sent[-1]["interactive"]
    assert interactive["type"] == "list"
    assert interactive["action"]["sections"][0]["rows"][0]["id"] == "cat_1"
    customer = db.query(Customer).one()
    assert customer.conversation_state == ConversationState.BROWSING_CATEGORIES.value


def test_free_text_address_with_active_cart(client, provider, db):
    seed_catalog(db)
    _post(client, text_payload("wamid.1", "hi"))
    _post(client, list_payload("wamid.2", "var_42", "1kg"))

    _post(client, text_payload("wamid.3", "Flat 3, Lake View, Pune 411001"))

    assert "Address saved" in _last_body(provider)
    customer = db.query(Customer).one()
    assert customer.conversation_state == ConversationState.PAYMENT_SELECT.value


def test_cod_checkout_end_to_end(client, provider, db):
    seed_catalog(db)
    seed_customer(db, with_address=True)
    _post(client, text_payload("wamid.1", "hi"))
    _post(client, list_payload("wamid.2", "var_42", "1kg"))
    _post(client, list_payload("wamid.3", "var_42", "1kg"))
    _post(client, button_payload("wamid.4", "btn_checkout", "Checkout"))
    _post(client, button_payload("wamid.5", "btn_confirm_address", "Deliver Here"))
    _post(client, button_payload("wamid.6", "pay_cod", "Cash on Delivery"))

    _post(client, button_payload("wamid.7", "place_cod", "Place Order"))

    order = db.query(Order).one()
    assert order.status == ORDER_CONFIRMED
    assert float(order.total_amount) == 250.0
    assert db.query(Cart).one().status == CART_CONVERTED
    assert order.readable_order_id in _last_body(provider)
    assert len(provider.read_receipts) == 7


def test_duplicate_delivery_is_processed_once(client, provider, db):
    payload = text_payload("wamid.dup", "hi")

    _post(client, payload)
    _post(client, payload)

    assert db.query(ConversationLogEntry).count() == 1
    assert len(provider.sent) == 1
    assert provider.read_receipts == ["wamid.dup"]


def test_status_callbacks_are_ignored(client, provider, db):
    _post(client, STATUSES_ONLY_PAYLOAD)

    assert provider.sent == []
    assert db.query(ConversationLogEntry).count() == 0


def test_invalid_json_is_acknowledged(client, provider):
    response = client.post(WEBHOOK_URL, content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert response.json() == {"status": "received"}
    assert provider.sent == []


def test_malformed_payload_is_acknowledged(client, provider):
    _post(client, {"hello": "world"})

    assert provider.sent == []


def test_verify_handshake(client, monkeypatch):
    monkeypatch.setattr(webhook_router, "WHATSAPP_VERIFY_TOKEN", "verify-me")

    ok = client.get(
        WEBHOOK_URL,
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"},
    )
    plain = client.get(WEBHOOK_URL, params={"mode": "subscribe", "verify_token": "verify-me", "challenge": "9"})
    wrong = client.get(WEBHOOK_URL, params={"hub.mode": "subscribe", "hub.verify_token": "nope"})
    missing = client.get(WEBHOOK_URL, params={"hub.challenge": "1"})

    assert ok.status_code == 200
    assert ok.text == "12345"
    assert plain.text == "9"
    assert wrong.status_code == 403
    assert missing.status_code == 400


def test_webhook_without_whatsapp_settings_returns_503(session_factory, monkeypatch):
    monkeypatch.setattr("kirana_store.deps.missing_whatsapp_settings", lambda: ["WHATSAPP_ACCESS_TOKEN"])
    app = FastAPI()
    app.include_router(webhook_router.router)
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_session_cache] = lambda: InMemorySessionCache()

    with TestClient(app) as test_client:
        response = test_client.post(WEBHOOK_URL, json=text_payload("wamid.1", "hi"))

    assert response.status_code == 503


class FailingProvider(MockWhatsAppProvider):
    def send_interactive(self, *, to_phone, interactive):
        raise WhatsAppSendError(500, "upstream down")


def test_reply_failure_still_marks_message_read(session_factory, db):
    provider = FailingProvider()

    handled = process_webhook_payload(
        text_payload("wamid.1", "hi"),
        session_factory=session_factory,
        whatsapp=WhatsAppService(provider),
        cache=InMemorySessionCache(),
    )

    assert handled == 1
    assert provider.read_receipts == ["wamid.1"]
    assert db.query(ConversationLogEntry).count() == 1


def test_processing_errors_are_contained(session_factory, provider, db):
    with patch("kirana_store.services.conversation.handle_event", side_effect=RuntimeError("boom")):
        handled = process_webhook_payload(
            text_payload("wamid.1", "hi"),
            session_factory=session_factory,
            whatsapp=WhatsAppService(provider),
            cache=InMemorySessionCache(),
        )

    assert handled == 0
    assert provider.sent == []
    # the inbound row was committed before the failure so a redelivery stays deduplicated
    assert db.query(ConversationLogEntry).count() == 1


def test_redelivered_cart_and_order_taps_mutate_once(client, provider, db):
    seed_catalog(db)
    seed_customer(db, with_address=True)
    add_tap = list_payload("wamid.add", "var_42", "1kg")
    place_tap = button_payload("wamid.place", "place_cod", "Place Order")
    _post(client, text_payload("wamid.1", "hi"))

    _post(client, add_tap)
    _post(client, add_tap)

    items = db.query(CartItem).all()
    assert [(item.variant_id, item.quantity) for item in items] == [(42, 1)]

    _post(client, place_tap)
    _post(client, place_tap)

    assert db.query(Order).count() == 1
    assert db.query(OrderStatusLog).count() == 1
    assert provider.read_receipts == ["wamid.1", "wamid.add", "wamid.place"]
