"""X (Twitter) OAuth 2.0 authorization-code flow with PKCE."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from authlib.common.security import generate_token
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client

from src.auth.session import XSession
from src.core.config import settings
from src.core.exceptions import TokenShareError, UpstreamAuthError, ValidationFailed


logger = logging.getLogger(__name__)


def _ensure_configured() -> None:
    if not settings.X_CLIENT_ID or not settings.X_CLIENT_SECRET:
        logger.error("X_CLIENT_ID / X_CLIENT_SECRET not configured")
        raise TokenShareError(
            "X OAuth is not configured. Please check server environment variables."
        )


def _client(**kwargs: Any) -> AsyncOAuth2Client:
    return AsyncOAuth2Client(
        client_id=settings.X_CLIENT_ID,
        client_secret=settings.X_CLIENT_SECRET,
        scope=settings.X_SCOPES,
        redirect_uri=settings.x_redirect_uri,
        code_challenge_method="S256",
        token_endpoint_auth_method="client_secret_basic",
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        **kwargs,
    )


async def start_authorization(session: XSession) -> str:
    """Store a fresh PKCE verifier and state on ``session``; return the authorize URL."""

    _ensure_configured()
    verifier = generate_token(64)
    async with _client() as client:
        url, state = client.create_authorization_url(
            settings.X_AUTHORIZE_URL, code_verifier=verifier
        )
    session.code_verifier = verifier
    session.state = state
    logger.info("Starting X OAuth flow, redirect_uri=%s", settings.x_redirect_uri)
    return url


async def complete_authorization(session: XSession, code: str, state: str) -> XSession:
    """Exchange the callback code for tokens and resolve the connected account."""

    _ensure_configured()
    if not session.state or state != session.state:
        raise ValidationFailed("Invalid state parameter. Session may have expired. Please try again.")
    if not session.code_verifier:
        raise ValidationFailed("Session expired. Please try again.")

    async with _client() as client:
        try:
            token = await client.fetch_token(
                settings.X_TOKEN_URL, code=code, code_verifier=session.code_verifier
            )
        except (OAuthError, httpx.HTTPError, ValueError) as exc:
            logger.warning("X token exchange failed: %s", exc)
            raise UpstreamAuthError("Failed to exchange token") from exc

        user_id = username = None
        try:
            response = await client.get(f"{settings.X_API_BASE}/2/users/me")
            if response.status_code == 200:
                data = response.json().get("data") or {}
                user_id, username = data.get("id"), data.get("username")
        except httpx.HTTPError as exc:
            logger.warning("Could not resolve X account after login: %s", exc)

    session.update_tokens(dict(token))
    session.user_id = user_id
    session.username = username
    session.code_verifier = None
    session.state = None
    logger.info("X account connected: @%s", username)
    return session


async def refresh_access_token(refresh_token: str) -> Optional[Dict[str, Any]]:
    """Return a refreshed token dict, or ``None`` if X refused the refresh."""

    if not settings.X_CLIENT_ID or not settings.X_CLIENT_SECRET:
        return None
    async with _client() as client:
        try:
            token = await client.refresh_token(settings.X_TOKEN_URL, refresh_token=refresh_token)
        except (OAuthError, httpx.HTTPError, ValueError) as exc:
            logger.info("X token refresh failed: %s", exc)
            return None
    return dict(token)
