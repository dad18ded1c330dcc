from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from kirana_store.core.database import upsert_insert
from kirana_store.fsm.states import ConversationState
from kirana_store.models.customer import Customer

logger = logging.getLogger(__name__)


def get_or_create_customer(
    db: Session,
    phone: str,
    *,
    name: str | None = None,
    now: datetime | None = None,
) -> Customer:
    """Upserts the customer by phone and refreshes last_active_at."""
    now = now or datetime.now(timezone.utc)
    stmt = (
        upsert_insert(db, Customer)
        .values(
            phone=phone,
            name=name,
            conversation_state=ConversationState.IDLE.value,
            last_active_at=now,
            created_at=now,
        )
        .on_conflict_do_nothing(index_elements=["phone"])
    )
    result = db.execute(stmt)
    if result.rowcount:
        logger.info("customer created phone=%s", phone)

    customer = db.query(Customer).filter(Customer.phone == phone).one()
    customer.last_active_at = now
    if name and not customer.name:
        customer.name = name
    db.commit()
    return customer


def set_conversation_state(db: Session, customer_id: int, state: str) -> None:
    """Stages the state change; the caller commits it with its own mutation."""
    db.query(Customer).filter(Customer.id == customer_id).update(
        {Customer.conversation_state: state},
        synchronize_session="fetch",
    )
