from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "SUPABASE_ANON_KEY"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.cache_ttl == 300.0
    assert settings.retry_max_attempts == 3
    assert settings.retry_base_delay == 1.0
    assert settings.default_page_size == 10
    assert settings.request_timeout is None
    assert settings.has_credentials is False


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co/")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setenv("CACHE_TTL", "60")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.supabase_url == "https://project.supabase.co"
    assert settings.cache_ttl == 60.0
    assert settings.log_level == "DEBUG"
    assert settings.has_credentials is True


def test_service_role_key_wins() -> None:
    settings = Settings(_env_file=None, supabase_url="https://x.supabase.co",
                        supabase_anon_key="anon", supabase_service_role_key="service")
    assert settings.supabase_key == "service"


@pytest.mark.parametrize("overrides", [
    {"supabase_url": "project.supabase.co"},
    {"cache_ttl": 0},
    {"retry_max_attempts": 0},
    {"log_level": "chatty"},
    {"log_format": "xml"},
])
def test_rejects_invalid_values(overrides) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)
