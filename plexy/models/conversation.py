"""Request and response models for the HTTP surface."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class ChatRequest(BaseModel):
    """Request model for the chat endpoint."""

    message: str
    conversation_id: str | None = None
    google_token: str | None = None


class ChatResponse(BaseModel):
    """Response model for the chat endpoint."""

    message: str
    conversation_id: str


class ErrorResponse(BaseModel):
    """Structured error body."""

    error: str
    message: str | None = None
    needs_reauth: bool | None = None


class GoogleTokenRequest(BaseModel):
    """Request model for the credential endpoint."""

    action: Literal["get", "store", "refresh"] = "get"
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    scope: str | None = None


class GoogleTokenResponse(BaseModel):
    """Response model for the credential endpoint."""

    access_token: str | None = None
    expires_at: datetime | None = None
    success: bool | None = None
    message: str | None = None


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: datetime
    version: str
