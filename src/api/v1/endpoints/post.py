"""Publishing the share post to X."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, Response

from src.auth.session import XSession, read_session, write_session
from src.core.exceptions import TokenShareError, ValidationFailed, error_response
from src.schemas.post import PostBody, PostResponse, PostResult
from src.schemas.usage import UsageData
from src.services.limits import check_rate_limit, client_key, ensure_idempotent
from src.services.share_message import render_messages
from src.services.x_publisher import (
    StaticCredentials,
    decode_image,
    publish_with_credentials,
    publish_with_session,
    validate_message,
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/post", tags=["post"])


@router.post("", response_model=PostResponse)
async def create_post(
    body: PostBody,
    request: Request,
    response: Response,
    session: XSession = Depends(read_session),
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
):
    message = validate_message(body.message)
    image = decode_image(body.image_base64)

    caller = client_key(request, session.username if body.use_oauth else None)
    await check_rate_limit(caller, scope="post")
    await ensure_idempotent(caller, idempotency_key)

    if body.use_oauth:
        issued = (session.access_token, session.refresh_token, session.username)
        try:
            result = await publish_with_session(session, message, image)
        except TokenShareError as exc:
            if (session.access_token, session.refresh_token, session.username) == issued:
                raise
            # A rotated refresh token must outlive a failed post
            logger.info("Post failed after session refresh for @%s: %s", session.username, exc.message)
            failed = error_response(exc)
            write_session(failed, session)
            return failed
        if result.session_changed:
            write_session(response, session)
    else:
        if body.credentials is None:
            raise ValidationFailed("All X credentials are required")
        credentials = StaticCredentials(**body.credentials.model_dump())
        result = await publish_with_credentials(credentials, message, image)

    return PostResponse(
        data=PostResult(
            post_id=result.post_id,
            post_url=result.post_url,
            media_attached=result.media_attached,
        )
    )


@router.post("/templates")
async def share_templates(usage: UsageData):
    return {"success": True, "data": render_messages(usage)}
