import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kirana_store.core.config import ALEMBIC_CONFIG, CORS_ORIGINS, DATABASE_URL, IS_TEST, WEBHOOK_ENABLED
from kirana_store.core.database import Base, engine
from kirana_store.core.logging_setup import configure_logging
from kirana_store.core.startup_checks import (
    ensure_migrations_applied,
    validate_database_environment,
    validate_whatsapp_settings,
)
from kirana_store.middleware.observability import ObservabilityMiddleware
import kirana_store.models  # registers every model before create_all

from kirana_store.routers.categories import router as categories_router
from kirana_store.routers.internal_metrics import router as internal_metrics_router
from kirana_store.routers.orders import router as orders_router
from kirana_store.routers.partners import router as partners_router
from kirana_store.routers.products import router as products_router
from kirana_store.routers.webhook import router as webhook_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(ALEMBIC_CONFIG)
if not ALEMBIC_CONFIG_PATH.is_absolute():
    ALEMBIC_CONFIG_PATH = REPO_ROOT / ALEMBIC_CONFIG_PATH


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Mera Kirana WhatsApp Store API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=CORS_ORIGINS != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        if WEBHOOK_ENABLED and not IS_TEST:
            validate_whatsapp_settings()
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


# Routers
app.include_router(webhook_router)
app.include_router(categories_router)
app.include_router(products_router)
app.include_router(orders_router)
app.include_router(partners_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/api/health")
def api_health():
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}
