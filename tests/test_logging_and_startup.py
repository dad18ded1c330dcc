import json
import logging

import pytest

from kirana_store import deps
from kirana_store.core import config, startup_checks
from kirana_store.core.logging_setup import JsonFormatter
from kirana_store.core.request_context import clear_request_context, set_request_context
from kirana_store.whatsapp import service as whatsapp_service
from kirana_store.whatsapp.base import sanitize_payload
from kirana_store.whatsapp.mock_provider import MockWhatsAppProvider


def _record(message: str, *args) -> logging.LogRecord:
    return logging.LogRecord("kirana_store.test", logging.INFO, __file__, 1, message, args, None)


def test_json_formatter_includes_message_context():
    set_request_context(sender_id="919999900001", message_id="wamid.1")
    try:
        output = json.loads(JsonFormatter().format(_record("reply sent kind=%s", "buttons")))
    finally:
        clear_request_context()

    assert output["message"] == "reply sent kind=buttons"
    assert output["sender_id"] == "919999900001"
    assert output["message_id"] == "wamid.1"
    assert output["level"] == "INFO"


def test_json_formatter_masks_tokens():
    output = json.loads(JsonFormatter().format(_record("Authorization: Bearer abc.def token=xyz")))

    assert "abc.def" not in output["message"]
    assert "xyz" not in output["message"]


def test_sanitize_payload_masks_sensitive_keys():
    payload = sanitize_payload({"to": "919999900001", "access_token": "EAAGsecret1234", "nested": [{"pin": "1234"}]})

    assert payload["to"] == "919999900001"
    assert payload["access_token"] == "****1234"
    assert payload["nested"][0]["pin"] == "****"


def test_sqlite_is_rejected_in_production(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setenv("ENV", "production")
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./kirana.db")

    with pytest.raises(RuntimeError):
        startup_checks.validate_database_environment()


def test_missing_whatsapp_settings_fail_startup(monkeypatch):
    monkeypatch.setattr(startup_checks, "missing_whatsapp_settings", lambda: ["WHATSAPP_VERIFY_TOKEN"])

    with pytest.raises(startup_checks.WhatsAppConfigError) as exc_info:
        startup_checks.validate_whatsapp_settings()

    assert exc_info.value.missing == ["WHATSAPP_VERIFY_TOKEN"]


def test_mock_provider_needs_no_cloud_credentials(monkeypatch):
    monkeypatch.setattr(config, "WHATSAPP_PHONE_NUMBER_ID", "1234567890")
    monkeypatch.setattr(config, "WHATSAPP_ACCESS_TOKEN", "")
    monkeypatch.setattr(config, "WHATSAPP_VERIFY_TOKEN", "")

    monkeypatch.setattr(config, "WHATSAPP_PROVIDER", "mock")
    assert config.missing_whatsapp_settings() == []

    monkeypatch.setattr(config, "WHATSAPP_PROVIDER", "cloud")
    assert config.missing_whatsapp_settings() == ["WHATSAPP_ACCESS_TOKEN", "WHATSAPP_VERIFY_TOKEN"]


def test_mock_setup_without_tokens_serves_dependency(monkeypatch):
    monkeypatch.setattr(config, "WHATSAPP_PROVIDER", "mock")
    monkeypatch.setattr(config, "WHATSAPP_ACCESS_TOKEN", "")
    monkeypatch.setattr(whatsapp_service, "WHATSAPP_PROVIDER", "mock")
    deps._whatsapp_service.cache_clear()
    try:
        service = deps.get_whatsapp_service()
    finally:
        deps._whatsapp_service.cache_clear()

    assert isinstance(service.provider, MockWhatsAppProvider)
