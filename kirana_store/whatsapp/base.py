from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol

MAX_REPLY_BUTTONS = 3
BUTTON_TITLE_LIMIT = 20
LIST_HEADER_LIMIT = 60
LIST_BUTTON_TEXT_LIMIT = 20
LIST_ROW_TITLE_LIMIT = 24
LIST_ROW_DESCRIPTION_LIMIT = 72
LIST_MAX_ROWS = 10
BODY_TEXT_LIMIT = 1024


class WhatsAppSendError(RuntimeError):
    def __init__(self, status_code: int, body_text: str):
        super().__init__(f"WhatsApp error {status_code}: {body_text}")
        self.status_code = status_code
        self.body_text = body_text


@dataclass
class WhatsAppSendResult:
    status: str
    provider_message_id: str | None = None
    error: str | None = None
    response_payload: dict[str, Any] | None = None


@dataclass
class InboundEvent:
    """Canonical inbound message extracted from a webhook envelope."""

    sender_id: str
    message_id: str
    kind: str  # text / button / list / address / other
    text: str = ""
    interaction_id: str | None = None
    interaction_title: str | None = None
    interaction_payload: dict[str, Any] = field(default_factory=dict)
    contact_name: str | None = None
    phone_number_id: str | None = None

    def log_content(self) -> str:
        if self.kind == "text":
            return self.text
        if self.kind == "address":
            return safe_json(self.interaction_payload)
        return self.interaction_id or self.text


@dataclass
class OutboundMessage:
    kind: str  # text / buttons / list / address / catalog
    payload: dict[str, Any]


class WhatsAppProvider(Protocol):
    def send_text(self, *, to_phone: str, text: str) -> WhatsAppSendResult:
        ...

    def send_interactive(self, *, to_phone: str, interactive: dict[str, Any]) -> WhatsAppSendResult:
        ...

    def mark_as_read(self, *, message_id: str) -> WhatsAppSendResult:
        ...


def truncate(value: str, limit: int) -> str:
    text = (value or "").strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


SENSITIVE_KEYS = {"access_token", "verify_token", "authorization", "token", "pin"}


def _mask_value(value: Any) -> Any:
    if value is None:
        return None
    text = str(value)
    if len(text) <= 4:
        return "****"
    return f"****{text[-4:]}"


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    def _sanitize(value: Any) -> Any:
        if isinstance(value, dict):
            return {key: _sanitize_value(key, inner) for key, inner in value.items()}
        if isinstance(value, list):
            return [_sanitize(item) for item in value]
        return value

    def _sanitize_value(key: str, value: Any) -> Any:
        if key.lower() in SENSITIVE_KEYS:
            return _mask_value(value)
        return _sanitize(value)

    return _sanitize(payload)


def safe_json(payload: dict[str, Any]) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return "{}"
