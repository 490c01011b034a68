"""Signed session cookie carrying the X OAuth state for one browser."""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Request, Response

from src.core.config import settings
from src.core.exceptions import NotAuthenticated


logger = logging.getLogger(__name__)


@dataclass
class XSession:
    """Per-browser OAuth context, passed explicitly to the services that need it."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None
    user_id: Optional[str] = None
    username: Optional[str] = None
    code_verifier: Optional[str] = None
    state: Optional[str] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < (now if now is not None else time.time())

    def is_connected(self, now: Optional[float] = None) -> bool:
        return bool(self.access_token and self.expires_at and not self.is_expired(now))

    def update_tokens(self, token: Dict[str, Any]) -> None:
        self.access_token = token["access_token"]
        self.refresh_token = token.get("refresh_token") or self.refresh_token
        expires_at = token.get("expires_at")
        if expires_at is None and token.get("expires_in") is not None:
            expires_at = time.time() + float(token["expires_in"])
        self.expires_at = float(expires_at) if expires_at is not None else None


_FIELDS = {f.name for f in fields(XSession)}


def encode_session(session: XSession) -> str:
    claims = {k: v for k, v in asdict(session).items() if v is not None}
    claims["exp"] = int(time.time()) + settings.SESSION_MAX_AGE_SECONDS
    return jwt.encode(claims, settings.SESSION_SECRET, algorithm=settings.JWT_ALG)


def decode_session(token: Optional[str]) -> XSession:
    """Return the stored session, or an empty one when the cookie is missing or invalid."""

    if not token:
        return XSession()
    try:
        claims = jwt.decode(token, settings.SESSION_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.InvalidTokenError as exc:
        logger.info("Discarding invalid session cookie: %s", exc)
        return XSession()
    return XSession(**{k: v for k, v in claims.items() if k in _FIELDS})


def read_session(request: Request) -> XSession:
    return decode_session(request.cookies.get(settings.SESSION_COOKIE_NAME))


def write_session(response: Response, session: XSession) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        encode_session(session),
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.ENV == "production",
        samesite="lax",
        path="/",
    )


def clear_session(response: Response) -> None:
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")


def require_x_session(session: XSession = Depends(read_session)) -> XSession:
    """Dependency for endpoints that act on behalf of a connected X account."""

    if not session.username or not session.access_token:
        raise NotAuthenticated("You must be connected with X to join the leaderboard")
    return session
