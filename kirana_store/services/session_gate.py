from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kirana_store.core.config import SESSION_WINDOW_HOURS
from kirana_store.core.database import upsert_insert
from kirana_store.models.conversation_log import ConversationLogEntry
from kirana_store.services.session_cache import SessionCache
from kirana_store.whatsapp.base import InboundEvent

logger = logging.getLogger(__name__)

WELCOME_KEYWORDS = frozenset({"hi", "hello", "hey", "start", "menu"})
SESSION_WINDOW = timedelta(hours=SESSION_WINDOW_HOURS)


@dataclass(frozen=True)
class GateDecision:
    accepted: bool
    is_new_session: bool = False


def is_welcome_keyword(text: str | None) -> bool:
    return (text or "").strip().lower() in WELCOME_KEYWORDS


def record_inbound(db: Session, event: InboundEvent, *, received_at: datetime) -> bool:
    """Inserts the conversation-log row. False when the message id was already logged."""
    stmt = (
        upsert_insert(db, ConversationLogEntry)
        .values(
            message_id=event.message_id,
            sender_phone=event.sender_id,
            message_type=event.kind,
            content=event.log_content(),
            received_at=received_at,
        )
        .on_conflict_do_nothing(index_elements=["message_id"])
    )
    try:
        inserted = db.execute(stmt).rowcount == 1
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    return inserted


def has_recent_activity(
    db: Session,
    sender_id: str,
    *,
    exclude_message_id: str,
    since: datetime,
) -> bool:
    row = (
        db.query(ConversationLogEntry.id)
        .filter(
            ConversationLogEntry.sender_phone == sender_id,
            ConversationLogEntry.message_id != exclude_message_id,
            ConversationLogEntry.received_at >= since,
        )
        .first()
    )
    return row is not None


def is_new_session(
    db: Session,
    event: InboundEvent,
    *,
    cache: SessionCache,
    now: datetime,
    window: timedelta = SESSION_WINDOW,
) -> bool:
    last_seen = cache.get(event.sender_id, now=now)
    if last_seen is not None and now - last_seen < window:
        new_session = False
    else:
        new_session = not has_recent_activity(
            db,
            event.sender_id,
            exclude_message_id=event.message_id,
            since=now - window,
        )
    cache.touch(event.sender_id, seen_at=now)
    return new_session


def register_inbound(
    db: Session,
    event: InboundEvent,
    *,
    cache: SessionCache,
    now: datetime | None = None,
    window: timedelta = SESSION_WINDOW,
) -> GateDecision:
    now = now or datetime.now(timezone.utc)
    if not record_inbound(db, event, received_at=now):
        logger.info("duplicate inbound message ignored message_id=%s", event.message_id)
        return GateDecision(accepted=False)

    new_session = is_new_session(db, event, cache=cache, now=now, window=window)
    if new_session:
        logger.info("new conversation session sender=%s", event.sender_id)
    return GateDecision(accepted=True, is_new_session=new_session)
