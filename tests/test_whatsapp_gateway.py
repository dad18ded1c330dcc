import json

import httpx
import pytest

from kirana_store.models.whatsapp_message_log import WhatsAppMessageLog
from kirana_store.whatsapp.base import OutboundMessage, WhatsAppSendError
from kirana_store.whatsapp.cloud_provider import CloudWhatsAppProvider, _backoff_seconds, parse_cloud_webhook
from kirana_store.whatsapp.mock_provider import MockWhatsAppProvider
from kirana_store.whatsapp.service import WhatsAppService
from tests.fixtures_data import (
    STATUSES_ONLY_PAYLOAD,
    address_form_payload,
    button_payload,
    list_payload,
    text_payload,
)


def _provider(handler, sleeps=None) -> CloudWhatsAppProvider:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return CloudWhatsAppProvider(
        phone_number_id="1234567890",
        access_token="secret-token",
        api_version="v17.0",
        client=client,
        sleep=(sleeps.append if sleeps is not None else lambda _s: None),
    )


def test_parse_text_message():
    events = parse_cloud_webhook(text_payload("wamid.1", "  Hi  "))

    assert len(events) == 1
    event = events[0]
    assert event.kind == "text"
    assert event.text == "Hi"
    assert event.sender_id == "919999900001"
    assert event.contact_name == "Asha"
    assert event.phone_number_id == "1234567890"


def test_parse_button_and_list_replies():
    button = parse_cloud_webhook(button_payload("wamid.2", "btn_products", "View Products"))[0]
    row = parse_cloud_webhook(list_payload("wamid.3", "var_42", "1kg"))[0]

    assert (button.kind, button.interaction_id) == ("button", "btn_products")
    assert (row.kind, row.interaction_id, row.interaction_title) == ("list", "var_42", "1kg")


def test_parse_address_form_submission():
    event = parse_cloud_webhook(address_form_payload("wamid.4", {"city": "Pune", "in_pin_code": "411001"}))[0]

    assert event.kind == "address"
    assert event.interaction_payload == {"city": "Pune", "in_pin_code": "411001"}


def test_statuses_and_malformed_shapes_yield_nothing():
    assert parse_cloud_webhook(STATUSES_ONLY_PAYLOAD) == []
    assert parse_cloud_webhook({"entry": [{"changes": [{"value": {"messages": [{"type": "text"}]}}]}]}) == []
    assert parse_cloud_webhook({"entry": ["bad"]}) == []
    assert parse_cloud_webhook([]) == []


def test_send_text_posts_to_graph_api():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.OUT1"}]})

    result = _provider(handler).send_text(to_phone="919999900001", text="hello")

    assert result.status == "sent"
    assert result.provider_message_id == "wamid.OUT1"
    assert captured["url"] == "https://graph.facebook.com/v17.0/1234567890/messages"
    assert captured["auth"] == "Bearer secret-token"
    assert captured["body"]["text"]["body"] == "hello"


def test_mark_as_read_payload():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True})

    _provider(handler).mark_as_read(message_id="wamid.IN1")

    assert captured["body"] == {"messaging_product": "whatsapp", "status": "read", "message_id": "wamid.IN1"}


def test_non_2xx_raises_without_retry_for_client_errors():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(400, json={"error": {"code": 100, "message": "Invalid parameter"}})

    with pytest.raises(WhatsAppSendError) as exc_info:
        _provider(handler).send_text(to_phone="919999900001", text="hello")

    assert exc_info.value.status_code == 400
    assert len(calls) == 1


def test_server_errors_are_retried_with_backoff():
    calls = []
    sleeps = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json={"messages": [{"id": "wamid.OUT2"}]})

    result = _provider(handler, sleeps).send_text(to_phone="919999900001", text="hello")

    assert result.provider_message_id == "wamid.OUT2"
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]


def test_backoff_is_capped():
    assert _backoff_seconds(1) == 1.0
    assert _backoff_seconds(3) == 4.0
    assert _backoff_seconds(10) == 8.0


def test_service_truncates_titles_and_limits_buttons():
    provider = MockWhatsAppProvider()
    service = WhatsAppService(provider)

    service.send_buttons(
        "919999900001",
        "Pick one",
        [{"id": f"b{i}", "title": "A very long button title indeed"} for i in range(5)],
    )

    buttons = provider.sent[0]["interactive"]["action"]["buttons"]
    assert len(buttons) == 3
    assert all(len(button["reply"]["title"]) <= 20 for button in buttons)


def test_service_list_limits_rows_and_lengths():
    provider = MockWhatsAppProvider()
    service = WhatsAppService(provider)
    rows = [{"id": f"prod_{i}", "title": "Premium Basmati Rice Extra Long", "description": "x" * 100} for i in range(12)]

    service.send_list("919999900001", "Choose", [{"title": "Rice", "rows": rows}], header="Rice")

    interactive = provider.sent[0]["interactive"]
    built_rows = interactive["action"]["sections"][0]["rows"]
    assert len(built_rows) == 10
    assert all(len(row["title"]) <= 24 for row in built_rows)
    assert all(len(row["description"]) <= 72 for row in built_rows)
    assert interactive["footer"] == {"text": "Select an option"}


def test_dispatch_records_outbound_log(db):
    provider = MockWhatsAppProvider()
    service = WhatsAppService(provider)

    service.dispatch(db, "919999900001", OutboundMessage(kind="text", payload={"text": "Namaste"}))

    log = db.query(WhatsAppMessageLog).one()
    assert log.direction == "out"
    assert log.status == "sent"
    assert log.message_type == "text"


def test_failed_send_is_logged_and_raised(db):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"code": 190}})

    service = WhatsAppService(_provider(handler))

    with pytest.raises(WhatsAppSendError):
        service.send_text("919999900001", "hello", db=db)

    log = db.query(WhatsAppMessageLog).one()
    assert log.status == "failed"


def test_unknown_outbound_kind_is_rejected():
    service = WhatsAppService(MockWhatsAppProvider())

    with pytest.raises(ValueError):
        service.dispatch(None, "919999900001", OutboundMessage(kind="sticker", payload={}))
