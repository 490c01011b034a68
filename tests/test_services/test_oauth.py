import pytest

from src.auth.oauth import complete_authorization, refresh_access_token, start_authorization
from src.auth.session import XSession
from src.core.config import settings
from src.core.exceptions import TokenShareError, ValidationFailed


@pytest.fixture
def configured(monkeypatch):
    monkeypatch.setattr(settings, "X_CLIENT_ID", "client-id")
    monkeypatch.setattr(settings, "X_CLIENT_SECRET", "client-secret")


@pytest.mark.asyncio
async def test_start_authorization_stores_pkce_state(configured):
    session = XSession()

    url = await start_authorization(session)

    assert url.startswith(settings.X_AUTHORIZE_URL)
    assert session.state and f"state={session.state}" in url
    assert session.code_verifier and session.code_verifier not in url


@pytest.mark.asyncio
async def test_start_authorization_requires_client_keys():
    with pytest.raises(TokenShareError):
        await start_authorization(XSession())


@pytest.mark.asyncio
async def test_callback_state_must_match(configured):
    session = XSession(code_verifier="v" * 64, state="expected")

    with pytest.raises(ValidationFailed):
        await complete_authorization(session, "code", "other")


@pytest.mark.asyncio
async def test_callback_without_verifier_is_expired(configured):
    with pytest.raises(ValidationFailed) as exc_info:
        await complete_authorization(XSession(state="s"), "code", "s")

    assert exc_info.value.message == "Session expired. Please try again."


@pytest.mark.asyncio
async def test_refresh_is_skipped_when_unconfigured():
    assert await refresh_access_token("refresh") is None
