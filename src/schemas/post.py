"""Request and response bodies for publishing share posts."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class XCredentialsIn(BaseModel):
    """OAuth 1.0a keys of the user's own X developer app."""

    api_key: str = ""
    api_secret: str = ""
    access_token: str = ""
    access_token_secret: str = ""


class PostBody(BaseModel):
    message: str = Field(default="")
    use_oauth: bool = False
    credentials: Optional[XCredentialsIn] = None
    image_base64: Optional[str] = Field(default=None, description="PNG, optionally as a data URL")


class PostResult(BaseModel):
    post_id: str
    post_url: str
    media_attached: bool = False


class PostResponse(BaseModel):
    success: bool = True
    data: PostResult
