from __future__ import annotations

import logging
from datetime import timedelta
from functools import lru_cache

from fastapi import HTTPException

from kirana_store.core.config import SESSION_CACHE_MAX_SIZE, SESSION_WINDOW_HOURS, missing_whatsapp_settings
from kirana_store.services.session_cache import InMemorySessionCache, NullSessionCache, SessionCache
from kirana_store.whatsapp.service import WhatsAppService, build_whatsapp_service

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_session_cache() -> SessionCache:
    if SESSION_CACHE_MAX_SIZE <= 0:
        logger.info("session cache disabled, session checks go to the database")
        return NullSessionCache()
    return InMemorySessionCache(
        max_size=SESSION_CACHE_MAX_SIZE,
        ttl=timedelta(hours=SESSION_WINDOW_HOURS),
    )


@lru_cache(maxsize=1)
def _whatsapp_service() -> WhatsAppService:
    return build_whatsapp_service()


def get_whatsapp_service() -> WhatsAppService:
    missing = missing_whatsapp_settings()
    if missing:
        logger.error("webhook reached without WhatsApp configuration missing=%s", ",".join(missing))
        raise HTTPException(status_code=503, detail="WhatsApp integration is not configured")
    return _whatsapp_service()
