from __future__ import annotations

import logging
import re
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from kirana_store.models.customer_address import CustomerAddress
from kirana_store.services.customers import set_conversation_state

logger = logging.getLogger(__name__)

_PIN_RE = re.compile(r"(?<!\d)(\d{6})(?!\d)")

STRUCTURED_FIELDS = ("recipient_name", "house_number", "landmark", "city", "state")


def extract_postal_code(text: str | None) -> str | None:
    match = _PIN_RE.search(text or "")
    return match.group(1) if match else None


def get_default_address(db: Session, customer_id: int) -> CustomerAddress | None:
    return (
        db.query(CustomerAddress)
        .filter(CustomerAddress.customer_id == customer_id, CustomerAddress.is_default.is_(True))
        .first()
    )


def save_default_address(
    db: Session,
    customer_id: int,
    address_text: str,
    *,
    postal_code: str | None = None,
    details: dict[str, Any] | None = None,
    next_state: str | None = None,
) -> CustomerAddress:
    """Replaces the customer's default address in one transaction."""
    address_text = (address_text or "").strip()
    if not address_text:
        raise ValueError("address_text is required")

    details = details or {}
    try:
        (
            db.query(CustomerAddress)
            .filter(CustomerAddress.customer_id == customer_id, CustomerAddress.is_default.is_(True))
            .update({CustomerAddress.is_default: False}, synchronize_session="fetch")
        )
        # the partial unique index sees the cleared rows before the insert
        db.flush()

        address = CustomerAddress(
            customer_id=customer_id,
            address_text=address_text,
            postal_code=postal_code or extract_postal_code(address_text),
            is_default=True,
            **{key: _clean(details.get(key)) for key in STRUCTURED_FIELDS},
        )
        db.add(address)
        if next_state is not None:
            set_conversation_state(db, customer_id, next_state)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(address)
    logger.info("default address saved customer_id=%s address_id=%s", customer_id, address.id)
    return address


def address_from_form(values: dict[str, Any]) -> tuple[str, str | None, dict[str, Any]]:
    """Flattens an address-form submission into (text, postal code, details)."""
    details = {
        "recipient_name": values.get("name") or values.get("recipient_name"),
        "house_number": values.get("house_number"),
        "landmark": values.get("landmark_area") or values.get("landmark"),
        "city": values.get("city"),
        "state": values.get("state"),
    }
    postal_code = _clean(values.get("in_pin_code") or values.get("pin_code") or values.get("postal_code"))
    parts = [
        values.get("house_number"),
        values.get("floor_number"),
        values.get("tower_number"),
        values.get("building_name"),
        values.get("address"),
        details["landmark"],
        details["city"],
        details["state"],
        postal_code,
    ]
    text = ", ".join(str(part).strip() for part in parts if part and str(part).strip())
    return text, postal_code, details


def format_address(address: CustomerAddress) -> str:
    if address.recipient_name:
        return f"{address.recipient_name}, {address.address_text}"
    return address.address_text


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
