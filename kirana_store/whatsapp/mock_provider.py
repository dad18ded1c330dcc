from __future__ import annotations

import logging
import uuid
from typing import Any

from kirana_store.whatsapp.base import WhatsAppProvider, WhatsAppSendResult

logger = logging.getLogger(__name__)


class MockWhatsAppProvider(WhatsAppProvider):
    """Keeps every outbound payload in memory instead of calling the Cloud API."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.read_receipts: list[str] = []

    def send_text(self, *, to_phone: str, text: str) -> WhatsAppSendResult:
        return self._record({"type": "text", "to": to_phone, "text": {"body": text}})

    def send_interactive(self, *, to_phone: str, interactive: dict[str, Any]) -> WhatsAppSendResult:
        return self._record({"type": "interactive", "to": to_phone, "interactive": interactive})

    def mark_as_read(self, *, message_id: str) -> WhatsAppSendResult:
        self.read_receipts.append(message_id)
        return WhatsAppSendResult(status="sent")

    def messages_to(self, phone: str) -> list[dict[str, Any]]:
        return [payload for payload in self.sent if payload.get("to") == phone]

    def reset(self) -> None:
        self.sent.clear()
        self.read_receipts.clear()

    def _record(self, payload: dict[str, Any]) -> WhatsAppSendResult:
        self.sent.append(payload)
        logger.info("WhatsApp mock send: to=%s type=%s", payload.get("to"), payload.get("type"))
        return WhatsAppSendResult(status="sent", provider_message_id=f"mock-{uuid.uuid4().hex[:10]}")
