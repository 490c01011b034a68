"""Publish share posts to X, with either the OAuth session or static keys."""
from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from authlib.integrations.httpx_client import AsyncOAuth1Client

from src.auth.oauth import refresh_access_token
from src.auth.session import XSession
from src.core.config import settings
from src.core.exceptions import (
    DuplicateContentError,
    NotAuthenticated,
    ReconnectRequired,
    TokenShareError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamForbiddenError,
    UpstreamRateLimited,
    ValidationFailed,
)


logger = logging.getLogger(__name__)

_DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")


@dataclass(frozen=True)
class StaticCredentials:
    """User-supplied OAuth 1.0a keys for their own X app."""

    api_key: str
    api_secret: str
    access_token: str
    access_token_secret: str

    def is_complete(self) -> bool:
        return all((self.api_key, self.api_secret, self.access_token, self.access_token_secret))


@dataclass
class PublishResult:
    post_id: str
    post_url: str
    media_attached: bool = False
    session_changed: bool = False


def validate_message(message: Optional[str]) -> str:
    if not message:
        raise ValidationFailed("Message is required")
    if len(message) > settings.POST_MAX_CHARS:
        raise ValidationFailed(f"Message exceeds {settings.POST_MAX_CHARS} characters")
    return message


def decode_image(image_base64: Optional[str]) -> Optional[bytes]:
    if not image_base64:
        return None
    try:
        return base64.b64decode(_DATA_URL_PREFIX.sub("", image_base64), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationFailed("Invalid image data") from exc


def post_url(username: str, post_id: str) -> str:
    return f"{settings.X_POST_URL_BASE}/{username}/status/{post_id}"


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:300]
    if isinstance(body, dict):
        for key in ("detail", "title", "error"):
            if body.get(key):
                return str(body[key])
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get("message") or "")
    return ""


def raise_for_post_error(response: httpx.Response) -> None:
    """Map an X API error response to a domain exception."""

    if response.status_code < 400:
        return
    detail = _error_detail(response)
    logger.warning("X API error %s: %s", response.status_code, detail)
    if "duplicate" in detail.lower():
        raise DuplicateContentError()
    if response.status_code == 401:
        raise UpstreamAuthError("X authentication failed. Please reconnect your account.")
    if response.status_code == 403:
        raise UpstreamForbiddenError(
            "Access denied. Make sure your X app has Read and Write permissions."
        )
    if response.status_code == 429:
        raise UpstreamRateLimited()
    raise UpstreamError(detail or "Failed to post to X. Please try again.")


async def _fetch_username(client: httpx.AsyncClient) -> Optional[str]:
    try:
        response = await client.get(f"{settings.X_API_BASE}/2/users/me")
    except httpx.HTTPError as exc:
        logger.info("Could not look up X username: %s", exc)
        return None
    if response.status_code != 200:
        return None
    return (response.json().get("data") or {}).get("username")


async def _upload_media(client: httpx.AsyncClient, image: bytes) -> str:
    response = await client.post(
        f"{settings.X_UPLOAD_BASE}/1.1/media/upload.json",
        data={
            "media_data": base64.b64encode(image).decode("ascii"),
            "media_category": "tweet_image",
        },
    )
    raise_for_post_error(response)
    return str(response.json()["media_id_string"])


async def _try_upload_media(client: httpx.AsyncClient, image: bytes) -> Optional[str]:
    """Upload failures fall back to a text-only post."""

    try:
        media_id = await _upload_media(client, image)
    except (httpx.HTTPError, KeyError, ValueError, TokenShareError) as exc:
        logger.warning("Media upload failed, posting without image: %s", exc)
        return None
    logger.info("Media uploaded, media_id=%s (%d bytes)", media_id, len(image))
    return media_id


async def _create_post(client: httpx.AsyncClient, message: str, media_id: Optional[str]) -> str:
    payload: Dict[str, Any] = {"text": message}
    if media_id:
        payload["media"] = {"media_ids": [media_id]}
    try:
        response = await client.post(f"{settings.X_API_BASE}/2/tweets", json=payload)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Failed to reach X: {exc}") from exc
    raise_for_post_error(response)
    data = response.json().get("data") or {}
    if not data.get("id"):
        raise UpstreamError("Failed to post tweet")
    return str(data["id"])


def _app_media_client(transport: Optional[httpx.AsyncBaseTransport]) -> AsyncOAuth1Client:
    return AsyncOAuth1Client(
        settings.X_APP_KEY,
        settings.X_APP_SECRET,
        token=settings.X_APP_ACCESS_TOKEN,
        token_secret=settings.X_APP_ACCESS_SECRET,
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        transport=transport,
    )


async def ensure_fresh_session(session: XSession) -> bool:
    """Refresh an expired access token once; return whether the session changed."""

    if not session.access_token:
        raise NotAuthenticated()
    if not session.is_expired():
        return False
    if not session.refresh_token:
        raise ReconnectRequired()
    token = await refresh_access_token(session.refresh_token)
    if not token:
        raise ReconnectRequired()
    session.update_tokens(token)
    logger.info("Refreshed X access token for @%s", session.username)
    return True


async def publish_with_session(
    session: XSession,
    message: str,
    image: Optional[bytes] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PublishResult:
    """Post as the OAuth-connected user.

    The user token cannot upload media, so images go through the app-level
    OAuth 1.0a keys; without them the image is dropped and text is posted.
    """

    message = validate_message(message)
    session_changed = await ensure_fresh_session(session)

    media_id = None
    if image:
        if settings.x_app_credentials_configured:
            async with _app_media_client(transport) as media_client:
                media_id = await _try_upload_media(media_client, image)
        else:
            logger.info(
                "X app OAuth 1.0a credentials not configured, skipping media upload"
            )

    async with httpx.AsyncClient(
        headers={"Authorization": f"Bearer {session.access_token}"},
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        transport=transport,
    ) as client:
        if not session.username:
            session.username = await _fetch_username(client)
            session_changed = session_changed or bool(session.username)
        post_id = await _create_post(client, message, media_id)

    return PublishResult(
        post_id=post_id,
        post_url=post_url(session.username or "user", post_id),
        media_attached=media_id is not None,
        session_changed=session_changed,
    )


async def publish_with_credentials(
    credentials: StaticCredentials,
    message: str,
    image: Optional[bytes] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PublishResult:
    """Post with the user's own OAuth 1.0a app keys."""

    message = validate_message(message)
    if not credentials.is_complete():
        raise ValidationFailed("All X credentials are required")

    async with AsyncOAuth1Client(
        credentials.api_key,
        credentials.api_secret,
        token=credentials.access_token,
        token_secret=credentials.access_token_secret,
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        transport=transport,
    ) as client:
        username = await _fetch_username(client) or "user"
        media_id = await _try_upload_media(client, image) if image else None
        post_id = await _create_post(client, message, media_id)

    return PublishResult(
        post_id=post_id,
        post_url=post_url(username, post_id),
        media_attached=media_id is not None,
    )
