from typing import Iterator

import pytest
from rsvp_admission.config import get_settings, resolve_waitlist_secret, secret_env_chain


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_production_only_reads_primary_secret() -> None:
    env = {"SUPABASE_SERVICE_KEY": "service", "TEST_SUPABASE_SERVICE_KEY": "test"}
    assert secret_env_chain("production") == ["WAITLIST_TOKEN_SECRET"]
    assert resolve_waitlist_secret("production", env) is None
    assert resolve_waitlist_secret("production", {**env, "WAITLIST_TOKEN_SECRET": "primary"}) == "primary"


def test_development_prefers_test_key_over_service_key() -> None:
    env = {"SUPABASE_SERVICE_KEY": "service", "TEST_SUPABASE_SERVICE_KEY": "test"}
    assert resolve_waitlist_secret("development", env) == "test"
    assert resolve_waitlist_secret("development", {"SUPABASE_SERVICE_KEY": "service"}) == "service"


def test_other_environments_skip_test_key() -> None:
    env = {"TEST_SUPABASE_SERVICE_KEY": "test"}
    assert resolve_waitlist_secret("staging", env) is None
    assert resolve_waitlist_secret("staging", {**env, "SUPABASE_SERVICE_KEY": "service"}) == "service"


def test_empty_values_are_skipped() -> None:
    env = {"WAITLIST_TOKEN_SECRET": "", "SUPABASE_SERVICE_KEY": "service"}
    assert resolve_waitlist_secret("development", env) == "service"


def test_get_settings_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("WAITLIST_TOKEN_SECRET", "primary")
    monkeypatch.setenv("LEDGER_MAX_RETRIES", "5")
    monkeypatch.setenv("PAYMENT_TIMEOUT_SECONDS", "2.5")

    settings = get_settings()

    assert settings.is_production
    assert settings.waitlist_token_secret == "primary"
    assert settings.ledger_max_retries == 5
    assert settings.payment_timeout_seconds == 2.5
