"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class AuthorizationStartResponse(BaseModel):
    """Returned to API clients that start the OAuth flow without a redirect."""

    authorization_url: str
    state: str = Field(..., description="Opaque state token to echo on callback.")
    user_id: str


class AuthorizationResult(BaseModel):
    status: str = "connected"
    user_id: str
    project_id: Optional[str] = None


__all__ = ["AuthorizationResult", "AuthorizationStartResponse"]
