from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from kirana_store.core.request_context import clear_message_context, set_request_context
from kirana_store.fsm.engine import handle_event
from kirana_store.services.customers import get_or_create_customer
from kirana_store.services.session_cache import SessionCache
from kirana_store.services.session_gate import register_inbound
from kirana_store.whatsapp.base import InboundEvent, WhatsAppSendError
from kirana_store.whatsapp.cloud_provider import parse_cloud_webhook
from kirana_store.whatsapp.service import WhatsAppService

logger = logging.getLogger(__name__)


def handle_inbound_event(
    db: Session,
    event: InboundEvent,
    *,
    whatsapp: WhatsAppService,
    cache: SessionCache,
    now: datetime | None = None,
) -> bool:
    """Runs one inbound message through log, classify, mutate, reply and read receipt.

    Returns False when the message was a duplicate delivery.
    """
    decision = register_inbound(db, event, cache=cache, now=now)
    if not decision.accepted:
        return False

    customer = get_or_create_customer(db, event.sender_id, name=event.contact_name, now=now)
    replies = handle_event(db, customer, event, is_new_session=decision.is_new_session)

    for reply in replies:
        try:
            whatsapp.dispatch(db, event.sender_id, reply)
        except WhatsAppSendError as exc:
            logger.error(
                "reply failed sender=%s message_id=%s kind=%s status=%s",
                event.sender_id,
                event.message_id,
                reply.kind,
                exc.status_code,
            )
            break

    try:
        whatsapp.mark_as_read(event.message_id)
    except WhatsAppSendError as exc:
        logger.error(
            "mark as read failed sender=%s message_id=%s status=%s",
            event.sender_id,
            event.message_id,
            exc.status_code,
        )
    return True


def process_webhook_payload(
    payload: Any,
    *,
    session_factory: sessionmaker,
    whatsapp: WhatsAppService,
    cache: SessionCache,
) -> int:
    """Background entry point for one webhook delivery. Never raises."""
    if not isinstance(payload, dict) or "entry" not in payload:
        logger.warning("malformed webhook payload dropped")
        return 0

    events = parse_cloud_webhook(payload)
    if not events:
        logger.debug("webhook without inbound messages ignored")
        return 0

    handled = 0
    for event in events:
        set_request_context(sender_id=event.sender_id, message_id=event.message_id)
        db = session_factory()
        try:
            if handle_inbound_event(db, event, whatsapp=whatsapp, cache=cache):
                handled += 1
        except Exception:
            db.rollback()
            logger.exception(
                "inbound processing failed sender=%s message_id=%s",
                event.sender_id,
                event.message_id,
            )
        finally:
            db.close()
            clear_message_context()
    return handled
