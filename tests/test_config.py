import json
import logging

from njreap_services.config import Settings, get_schema_info, get_settings, get_supabase_config
from njreap_services.logging_conf import JsonFormatter
from njreap_services.models import JobStatus, ServiceType


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("GOOGLE_CALENDAR_ID", raising=False)
    settings = Settings(_env_file=None)
    assert settings.GOOGLE_CALENDAR_ID == "primary"
    assert settings.BUSINESS_TIMEZONE == "America/New_York"
    assert settings.CONTACT_RATE_LIMIT == 10
    assert settings.CALENDAR_RATE_LIMIT == 20
    assert settings.ENFORCE_STATUS_TRANSITIONS is False


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("CONTACT_RATE_LIMIT", "3")
    monkeypatch.setenv("ENFORCE_STATUS_TRANSITIONS", "true")
    settings = Settings(_env_file=None)
    assert settings.CONTACT_RATE_LIMIT == 3
    assert settings.ENFORCE_STATUS_TRANSITIONS is True


def test_supabase_config_reads_settings(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    get_settings.cache_clear()
    try:
        config = get_supabase_config()
    finally:
        get_settings.cache_clear()
    assert config["url"] == "https://example.supabase.co"
    assert config["service_role_key"] == "service-key"


def test_schema_enums_match_models():
    enums = get_schema_info()["enums"]
    assert enums["job_status"] == [s.value for s in JobStatus]
    assert enums["service_type"] == [s.value for s in ServiceType]
    assert "booking_attempts" in get_schema_info()["tables"]


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("njreap.api", logging.INFO, __file__, 1, "rate_limited", None, None)
    record.evt = "rate_limit"
    record.status_code = 429

    payload = json.loads(JsonFormatter().format(record))

    assert payload["message"] == "rate_limited"
    assert payload["level"] == "INFO"
    assert payload["evt"] == "rate_limit"
    assert payload["status_code"] == 429
