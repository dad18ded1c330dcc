from __future__ import annotations

import logging
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kirana_store.core.config import (
    META_API_VERSION,
    WHATSAPP_ACCESS_TOKEN,
    WHATSAPP_PHONE_NUMBER_ID,
    WHATSAPP_PROVIDER,
)
from kirana_store.models.whatsapp_message_log import WhatsAppMessageLog
from kirana_store.whatsapp.base import (
    BODY_TEXT_LIMIT,
    BUTTON_TITLE_LIMIT,
    LIST_BUTTON_TEXT_LIMIT,
    LIST_HEADER_LIMIT,
    LIST_MAX_ROWS,
    LIST_ROW_DESCRIPTION_LIMIT,
    LIST_ROW_TITLE_LIMIT,
    MAX_REPLY_BUTTONS,
    OutboundMessage,
    WhatsAppProvider,
    WhatsAppSendError,
    WhatsAppSendResult,
    safe_json,
    sanitize_payload,
    truncate,
)
from kirana_store.whatsapp.cloud_provider import CloudWhatsAppProvider
from kirana_store.whatsapp.mock_provider import MockWhatsAppProvider

logger = logging.getLogger(__name__)

DEFAULT_LIST_FOOTER = "Select an option"


def build_buttons_interactive(
    body: str,
    buttons: Iterable[dict[str, str]],
    *,
    header: str | None = None,
    footer: str | None = None,
) -> dict[str, Any]:
    reply_buttons = [
        {
            "type": "reply",
            "reply": {"id": button["id"], "title": truncate(button["title"], BUTTON_TITLE_LIMIT)},
        }
        for button in list(buttons)[:MAX_REPLY_BUTTONS]
    ]
    interactive: dict[str, Any] = {
        "type": "button",
        "body": {"text": truncate(body, BODY_TEXT_LIMIT)},
        "action": {"buttons": reply_buttons},
    }
    if header:
        interactive["header"] = {"type": "text", "text": truncate(header, LIST_HEADER_LIMIT)}
    if footer:
        interactive["footer"] = {"text": footer}
    return interactive


def build_list_interactive(
    body: str,
    sections: Iterable[dict[str, Any]],
    *,
    header: str | None = None,
    button_text: str = "View options",
    footer: str | None = DEFAULT_LIST_FOOTER,
) -> dict[str, Any]:
    remaining = LIST_MAX_ROWS
    built_sections: list[dict[str, Any]] = []
    for section in sections:
        if remaining <= 0:
            break
        rows = []
        for row in (section.get("rows") or [])[:remaining]:
            item = {"id": row["id"], "title": truncate(row["title"], LIST_ROW_TITLE_LIMIT)}
            if row.get("description"):
                item["description"] = truncate(row["description"], LIST_ROW_DESCRIPTION_LIMIT)
            rows.append(item)
        if not rows:
            continue
        remaining -= len(rows)
        built = {"rows": rows}
        if section.get("title"):
            built["title"] = truncate(section["title"], LIST_ROW_TITLE_LIMIT)
        built_sections.append(built)

    interactive: dict[str, Any] = {
        "type": "list",
        "body": {"text": truncate(body, BODY_TEXT_LIMIT)},
        "action": {"button": truncate(button_text, LIST_BUTTON_TEXT_LIMIT), "sections": built_sections},
    }
    if header:
        interactive["header"] = {"type": "text", "text": truncate(header, LIST_HEADER_LIMIT)}
    if footer:
        interactive["footer"] = {"text": footer}
    return interactive


def build_address_interactive(body: str, *, country: str = "IN") -> dict[str, Any]:
    return {
        "type": "address_message",
        "body": {"text": truncate(body, BODY_TEXT_LIMIT)},
        "action": {"name": "address_message", "parameters": {"country": country}},
    }


def build_catalog_interactive(body: str, *, thumbnail_product_id: str) -> dict[str, Any]:
    return {
        "type": "catalog_message",
        "body": {"text": truncate(body, BODY_TEXT_LIMIT)},
        "action": {
            "name": "catalog_message",
            "parameters": {"thumbnail_product_retailer_id": thumbnail_product_id},
        },
    }


class WhatsAppService:
    """Outbound gateway used by the conversation pipeline.

    Provider failures propagate as WhatsAppSendError. The audit row in
    whatsapp_message_log is written best-effort when a session is given.
    """

    def __init__(self, provider: WhatsAppProvider, *, from_phone: str | None = None) -> None:
        self.provider = provider
        self.from_phone = from_phone

    def send_text(self, to_phone: str, text: str, *, db: Session | None = None) -> WhatsAppSendResult:
        body = truncate(text, 4096)
        return self._deliver(
            db,
            to_phone=to_phone,
            message_type="text",
            payload={"text": body},
            send=lambda: self.provider.send_text(to_phone=to_phone, text=body),
        )

    def send_buttons(
        self,
        to_phone: str,
        body: str,
        buttons: Iterable[dict[str, str]],
        *,
        header: str | None = None,
        footer: str | None = None,
        db: Session | None = None,
    ) -> WhatsAppSendResult:
        interactive = build_buttons_interactive(body, buttons, header=header, footer=footer)
        return self._send_interactive(db, to_phone, interactive)

    def send_list(
        self,
        to_phone: str,
        body: str,
        sections: Iterable[dict[str, Any]],
        *,
        header: str | None = None,
        button_text: str = "View options",
        footer: str | None = DEFAULT_LIST_FOOTER,
        db: Session | None = None,
    ) -> WhatsAppSendResult:
        interactive = build_list_interactive(
            body,
            sections,
            header=header,
            button_text=button_text,
            footer=footer,
        )
        return self._send_interactive(db, to_phone, interactive)

    def send_address_message(self, to_phone: str, body: str, *, db: Session | None = None) -> WhatsAppSendResult:
        return self._send_interactive(db, to_phone, build_address_interactive(body))

    def send_catalog(
        self,
        to_phone: str,
        body: str,
        *,
        thumbnail_product_id: str,
        db: Session | None = None,
    ) -> WhatsAppSendResult:
        interactive = build_catalog_interactive(body, thumbnail_product_id=thumbnail_product_id)
        return self._send_interactive(db, to_phone, interactive)

    def mark_as_read(self, message_id: str) -> WhatsAppSendResult:
        return self.provider.mark_as_read(message_id=message_id)

    def dispatch(self, db: Session | None, to_phone: str, message: OutboundMessage) -> WhatsAppSendResult:
        payload = message.payload
        if message.kind == "text":
            return self.send_text(to_phone, payload["text"], db=db)
        if message.kind == "buttons":
            return self.send_buttons(
                to_phone,
                payload["body"],
                payload["buttons"],
                header=payload.get("header"),
                footer=payload.get("footer"),
                db=db,
            )
        if message.kind == "list":
            return self.send_list(
                to_phone,
                payload["body"],
                payload["sections"],
                header=payload.get("header"),
                button_text=payload.get("button_text", "View options"),
                footer=payload.get("footer", DEFAULT_LIST_FOOTER),
                db=db,
            )
        if message.kind == "address":
            return self.send_address_message(to_phone, payload["body"], db=db)
        if message.kind == "catalog":
            return self.send_catalog(
                to_phone,
                payload["body"],
                thumbnail_product_id=payload["thumbnail_product_id"],
                db=db,
            )
        raise ValueError(f"Unsupported outbound message kind: {message.kind}")

    def _send_interactive(self, db: Session | None, to_phone: str, interactive: dict[str, Any]) -> WhatsAppSendResult:
        return self._deliver(
            db,
            to_phone=to_phone,
            message_type=f"interactive:{interactive['type']}",
            payload={"interactive": interactive},
            send=lambda: self.provider.send_interactive(to_phone=to_phone, interactive=interactive),
        )

    def _deliver(self, db: Session | None, *, to_phone: str, message_type: str, payload: dict[str, Any], send):
        try:
            result = send()
        except WhatsAppSendError as exc:
            self._record(
                db,
                to_phone=to_phone,
                message_type=message_type,
                payload=payload,
                status="failed",
                error=str(exc),
                provider_message_id=None,
            )
            raise
        self._record(
            db,
            to_phone=to_phone,
            message_type=message_type,
            payload=payload,
            status=result.status,
            error=result.error,
            provider_message_id=result.provider_message_id,
        )
        return result

    def _record(
        self,
        db: Session | None,
        *,
        to_phone: str,
        message_type: str,
        payload: dict[str, Any],
        status: str,
        error: str | None,
        provider_message_id: str | None,
    ) -> None:
        if db is None:
            return
        log_entry = WhatsAppMessageLog(
            direction="out",
            to_phone=to_phone,
            from_phone=self.from_phone,
            message_type=message_type,
            payload_json=safe_json(sanitize_payload(payload)),
            status=status,
            error=error,
            provider_message_id=provider_message_id,
        )
        try:
            db.add(log_entry)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.warning("Failed to record outbound WhatsApp message to=%s type=%s", to_phone, message_type)


def build_whatsapp_service() -> WhatsAppService:
    if WHATSAPP_PROVIDER == "mock":
        logger.info("WhatsApp provider: mock")
        return WhatsAppService(MockWhatsAppProvider())
    provider = CloudWhatsAppProvider(
        phone_number_id=WHATSAPP_PHONE_NUMBER_ID,
        access_token=WHATSAPP_ACCESS_TOKEN,
        api_version=META_API_VERSION,
    )
    return WhatsAppService(provider, from_phone=WHATSAPP_PHONE_NUMBER_ID)
