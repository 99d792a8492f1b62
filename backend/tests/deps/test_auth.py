from typing import Iterator

import pytest
from rsvp_admission.config import Settings, get_settings
from rsvp_admission.deps import get_current_user_id, get_token_service
from rsvp_admission.domain.errors import ConfigurationError
from fastapi import HTTPException

SECRET = "offer-signing-secret-for-tests-0123456789"


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    get_token_service.cache_clear()
    yield
    get_settings.cache_clear()
    get_token_service.cache_clear()


@pytest.mark.asyncio
async def test_get_current_user_id_accepts_numeric_header() -> None:
    assert await get_current_user_id(x_user_id="42") == 42


@pytest.mark.asyncio
async def test_get_current_user_id_rejects_missing_header() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user_id(x_user_id=None)
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_get_current_user_id_rejects_non_numeric_header() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_user_id(x_user_id="host")
    assert excinfo.value.status_code == 400


def test_get_token_service_uses_configured_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("WAITLIST_TOKEN_SECRET", SECRET)
    monkeypatch.setenv("WAITLIST_OFFER_TTL_HOURS", "12")

    service = get_token_service()

    assert service.ttl.total_seconds() == 12 * 3600
    assert get_token_service() is service


def test_get_token_service_fails_without_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.delenv("WAITLIST_TOKEN_SECRET", raising=False)
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", SECRET)

    with pytest.raises(ConfigurationError):
        get_token_service()


def test_settings_secret_hint_lists_fallbacks() -> None:
    hint = Settings(environment="development").missing_secret_hint()
    assert hint == "WAITLIST_TOKEN_SECRET or TEST_SUPABASE_SERVICE_KEY or SUPABASE_SERVICE_KEY"
