from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable

import httpx

from kirana_store.whatsapp.base import (
    InboundEvent,
    WhatsAppProvider,
    WhatsAppSendError,
    WhatsAppSendResult,
)

logger = logging.getLogger(__name__)

GRAPH_API_BASE_URL = "https://graph.facebook.com"


def _parse_address_reply(interactive: dict[str, Any]) -> dict[str, Any] | None:
    address = interactive.get("address_message")
    if isinstance(address, dict):
        values = address.get("values")
        return values if isinstance(values, dict) else address

    nfm_reply = interactive.get("nfm_reply") or {}
    if nfm_reply.get("name") != "address_message":
        return None
    raw = nfm_reply.get("response_json") or "{}"
    try:
        data = json.loads(raw) if isinstance(raw, str) else raw
    except json.JSONDecodeError:
        logger.warning("address form reply with invalid response_json")
        return None
    if not isinstance(data, dict):
        return None
    values = data.get("values")
    return values if isinstance(values, dict) else data


def _parse_message(
    msg: dict[str, Any],
    *,
    contact_name: str | None,
    phone_number_id: str | None,
) -> InboundEvent | None:
    message_id = msg.get("id")
    from_number = msg.get("from")
    if not message_id or not from_number:
        return None

    msg_type = msg.get("type") or "text"
    event = InboundEvent(
        sender_id=str(from_number),
        message_id=str(message_id),
        kind="other",
        contact_name=contact_name,
        phone_number_id=phone_number_id,
    )

    if msg_type == "text":
        event.kind = "text"
        event.text = (((msg.get("text") or {}).get("body")) or "").strip()
    elif msg_type == "button":
        # quick-reply buttons of template messages
        button = msg.get("button") or {}
        event.kind = "button"
        event.interaction_id = button.get("payload") or button.get("text")
        event.interaction_title = button.get("text")
    elif msg_type == "interactive":
        interactive = msg.get("interactive") or {}
        button_reply = interactive.get("button_reply")
        list_reply = interactive.get("list_reply")
        if isinstance(button_reply, dict):
            event.kind = "button"
            event.interaction_id = button_reply.get("id")
            event.interaction_title = button_reply.get("title")
        elif isinstance(list_reply, dict):
            event.kind = "list"
            event.interaction_id = list_reply.get("id")
            event.interaction_title = list_reply.get("title")
        else:
            values = _parse_address_reply(interactive)
            if values is not None:
                event.kind = "address"
                event.interaction_payload = values
    return event


def parse_cloud_webhook(payload: dict[str, Any]) -> list[InboundEvent]:
    if not isinstance(payload, dict):
        return []

    events: list[InboundEvent] = []
    for entry in payload.get("entry", []) or []:
        if not isinstance(entry, dict):
            continue
        for change in entry.get("changes", []) or []:
            if not isinstance(change, dict):
                continue
            value = change.get("value") or {}
            metadata = value.get("metadata") or {}
            phone_number_id = metadata.get("phone_number_id")

            contacts = value.get("contacts") or []
            contact_name = None
            if contacts and isinstance(contacts[0], dict):
                contact_name = ((contacts[0].get("profile") or {}).get("name")) or None

            # statuses (sent/delivered/read callbacks) are ignored
            for msg in value.get("messages", []) or []:
                if not isinstance(msg, dict):
                    continue
                event = _parse_message(msg, contact_name=contact_name, phone_number_id=phone_number_id)
                if event is not None:
                    events.append(event)
    return events


def _should_retry(status_code: int, body_text: str) -> bool:
    if status_code in (500, 502, 503, 504):
        return True

    # generic transient Cloud API error
    try:
        data = json.loads(body_text or "{}")
        code = ((data.get("error") or {}).get("code"))
        if code == 131000:
            return True
    except (json.JSONDecodeError, AttributeError):
        pass

    return False


def _backoff_seconds(attempt: int) -> float:
    # 1s, 2s, 4s... capped at 8s
    sec = 1.0 * (2 ** max(0, attempt - 1))
    return min(sec, 8.0)


class CloudWhatsAppProvider(WhatsAppProvider):
    MAX_RETRIES = 3

    def __init__(
        self,
        *,
        phone_number_id: str,
        access_token: str,
        api_version: str = "v17.0",
        client: httpx.Client | None = None,
        timeout: float = 20.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not phone_number_id or not access_token:
            raise RuntimeError("Missing WHATSAPP_PHONE_NUMBER_ID or WHATSAPP_ACCESS_TOKEN")
        self.phone_number_id = phone_number_id
        self._access_token = access_token
        self.url = f"{GRAPH_API_BASE_URL}/{api_version}/{phone_number_id}/messages"
        self._client = client
        self._timeout = timeout
        self._sleep = sleep

    def send_text(self, *, to_phone: str, text: str) -> WhatsAppSendResult:
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to_phone,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }
        return self._send(payload)

    def send_interactive(self, *, to_phone: str, interactive: dict[str, Any]) -> WhatsAppSendResult:
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to_phone,
            "type": "interactive",
            "interactive": interactive,
        }
        return self._send(payload)

    def mark_as_read(self, *, message_id: str) -> WhatsAppSendResult:
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
        }
        return self._send(payload)

    def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._access_token}", "Content-Type": "application/json"}
        if self._client is not None:
            return self._client.post(self.url, headers=headers, json=payload, timeout=self._timeout)
        with httpx.Client(timeout=self._timeout) as client:
            return client.post(self.url, headers=headers, json=payload)

    def _send(self, payload: dict[str, Any]) -> WhatsAppSendResult:
        for attempt in range(1, self.MAX_RETRIES + 1):
            try:
                response = self._post(payload)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < self.MAX_RETRIES:
                    logger.warning("WhatsApp transport error attempt=%s error=%s", attempt, exc)
                    self._sleep(_backoff_seconds(attempt))
                    continue
                raise WhatsAppSendError(0, str(exc)) from exc

            body_text = response.text
            if 200 <= response.status_code < 300:
                provider_id = None
                try:
                    data = response.json()
                    provider_id = ((data.get("messages") or [{}])[0].get("id"))
                except (json.JSONDecodeError, AttributeError, IndexError):
                    data = {"raw": body_text}
                return WhatsAppSendResult(status="sent", provider_message_id=provider_id, response_payload=data)

            if _should_retry(response.status_code, body_text) and attempt < self.MAX_RETRIES:
                logger.warning("WhatsApp retryable error attempt=%s status=%s", attempt, response.status_code)
                self._sleep(_backoff_seconds(attempt))
                continue

            raise WhatsAppSendError(response.status_code, body_text)

        raise RuntimeError("Unknown failure sending WhatsApp message")
