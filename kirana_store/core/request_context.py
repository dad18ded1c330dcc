from __future__ import annotations

from contextvars import ContextVar


_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("request_id", default=None)
_SENDER_ID_CTX: ContextVar[str | None] = ContextVar("sender_id", default=None)
_MESSAGE_ID_CTX: ContextVar[str | None] = ContextVar("message_id", default=None)


def set_request_context(
    *, request_id: str | None = None, sender_id: str | None = None, message_id: str | None = None
) -> None:
    if request_id is not None:
        _REQUEST_ID_CTX.set(request_id)
    if sender_id is not None:
        _SENDER_ID_CTX.set(sender_id)
    if message_id is not None:
        _MESSAGE_ID_CTX.set(message_id)


def get_request_id() -> str | None:
    return _REQUEST_ID_CTX.get()


def get_sender_id() -> str | None:
    return _SENDER_ID_CTX.get()


def get_message_id() -> str | None:
    return _MESSAGE_ID_CTX.get()


def clear_request_context() -> None:
    _REQUEST_ID_CTX.set(None)
    _SENDER_ID_CTX.set(None)
    _MESSAGE_ID_CTX.set(None)


def clear_message_context() -> None:
    _SENDER_ID_CTX.set(None)
    _MESSAGE_ID_CTX.set(None)
