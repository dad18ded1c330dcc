import os
from dotenv import load_dotenv

# Loads the .env from the project root
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./kirana_store.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_TEST = ENV_NORMALIZED == "test"
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

STORE_NAME = os.getenv("STORE_NAME", "Mera Kirana").strip() or "Mera Kirana"
SUPPORT_PHONE = os.getenv("SUPPORT_PHONE", "").strip()

# WhatsApp Cloud API
WHATSAPP_PHONE_NUMBER_ID = os.getenv("WHATSAPP_PHONE_NUMBER_ID", os.getenv("WHATSAPP_PHONE_ID", "")).strip()
WHATSAPP_ACCESS_TOKEN = os.getenv("WHATSAPP_ACCESS_TOKEN", "").strip()
WHATSAPP_VERIFY_TOKEN = os.getenv("WHATSAPP_VERIFY_TOKEN", "").strip()
WHATSAPP_PROVIDER = os.getenv("WHATSAPP_PROVIDER", "cloud").strip().lower()
WHATSAPP_CATALOG_PRODUCT_ID = os.getenv("WHATSAPP_CATALOG_PRODUCT_ID", "").strip()
META_API_VERSION = os.getenv("META_API_VERSION", "v17.0")
WEBHOOK_ENABLED = _env_flag("WEBHOOK_ENABLED", "1")

# Conversation sessions
SESSION_WINDOW_HOURS = float(os.getenv("SESSION_WINDOW_HOURS", "24"))
SESSION_CACHE_MAX_SIZE = int(os.getenv("SESSION_CACHE_MAX_SIZE", "10000"))

# Migrations
ALEMBIC_CONFIG = os.getenv("ALEMBIC_CONFIG", "alembic.ini")

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip()]

if not CORS_ORIGINS:
    CORS_ORIGINS = ["*"]


def missing_whatsapp_settings() -> list[str]:
    if WHATSAPP_PROVIDER == "mock":
        return []
    required = {
        "WHATSAPP_PHONE_NUMBER_ID": WHATSAPP_PHONE_NUMBER_ID,
        "WHATSAPP_ACCESS_TOKEN": WHATSAPP_ACCESS_TOKEN,
        "WHATSAPP_VERIFY_TOKEN": WHATSAPP_VERIFY_TOKEN,
    }
    return [name for name, value in required.items() if not value]
