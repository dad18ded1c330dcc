from __future__ import annotations

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import sessionmaker

from kirana_store.core.config import WHATSAPP_VERIFY_TOKEN
from kirana_store.core.database import get_session_factory
from kirana_store.deps import get_session_cache, get_whatsapp_service
from kirana_store.services.conversation import process_webhook_payload
from kirana_store.services.session_cache import SessionCache
from kirana_store.whatsapp.service import WhatsAppService

router = APIRouter(prefix="/api/webhook", tags=["webhook"])
logger = logging.getLogger(__name__)


def _query_param(request: Request, name: str) -> str | None:
    qp = request.query_params
    return qp.get(f"hub.{name}") or qp.get(name)


@router.get("/whatsapp")
async def verify_whatsapp_webhook(request: Request):
    mode = _query_param(request, "mode")
    token = _query_param(request, "verify_token")
    challenge = _query_param(request, "challenge")

    if not mode or not token:
        raise HTTPException(status_code=400, detail="Missing hub.mode or hub.verify_token")

    if mode == "subscribe" and WHATSAPP_VERIFY_TOKEN and token == WHATSAPP_VERIFY_TOKEN:
        logger.info("webhook verified")
        return PlainTextResponse(challenge or "")

    logger.warning("webhook verification failed mode=%s", mode)
    raise HTTPException(status_code=403, detail="Invalid verify token")


@router.post("/whatsapp")
async def receive_whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    session_factory: sessionmaker = Depends(get_session_factory),
    whatsapp: WhatsAppService = Depends(get_whatsapp_service),
    cache: SessionCache = Depends(get_session_cache),
):
    body = await request.body()
    try:
        payload = json.loads(body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("webhook body is not valid JSON, dropped")
        return {"status": "received"}

    background_tasks.add_task(
        process_webhook_payload,
        payload,
        session_factory=session_factory,
        whatsapp=whatsapp,
        cache=cache,
    )
    return {"status": "received"}
