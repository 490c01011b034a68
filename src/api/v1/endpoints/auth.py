"""X account connection endpoints."""
from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, RedirectResponse

from src.auth.oauth import complete_authorization, start_authorization
from src.auth.session import XSession, clear_session, read_session, write_session
from src.core.config import settings
from src.core.exceptions import TokenShareError


router = APIRouter(prefix="/auth", tags=["auth"])


def _app_redirect(**params: str) -> RedirectResponse:
    return RedirectResponse(
        f"{settings.APP_URL}?{urlencode(params)}", status_code=302
    )


@router.get("/x")
async def connect_x(session: XSession = Depends(read_session)):
    url = await start_authorization(session)
    response = RedirectResponse(url, status_code=302)
    write_session(response, session)
    return response


@router.get("/x/callback")
async def connect_x_callback(
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
    session: XSession = Depends(read_session),
):
    if error:
        return _app_redirect(error=error_description or error)
    if not code or not state:
        return _app_redirect(error="Missing code or state parameter")

    try:
        await complete_authorization(session, code, state)
    except TokenShareError as exc:
        response = _app_redirect(error=exc.message)
        session.code_verifier = None
        session.state = None
        write_session(response, session)
        return response

    response = _app_redirect(x_connected="true", username=session.username or "")
    write_session(response, session)
    return response


@router.get("/status")
async def auth_status(session: XSession = Depends(read_session)):
    connected = session.is_connected()
    return {
        "success": True,
        "data": {
            "x_connected": connected,
            "x_username": session.username if connected else None,
        },
    }


@router.post("/logout")
async def logout():
    response = JSONResponse({"success": True, "message": "Logged out"})
    clear_session(response)
    return response
