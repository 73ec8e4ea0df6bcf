"""API endpoints for the study assistant service."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from plexy import __version__
from plexy.api.auth import current_user_id
from plexy.models.conversation import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    GoogleTokenRequest,
    GoogleTokenResponse,
    HealthResponse,
)
from plexy.services.conversation import ConversationService, get_conversation_service
from plexy.services.credentials import NO_TOKEN_ERROR, CredentialManager, get_credential_manager
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def error_response(status_code: int, error: str, message: str | None = None, needs_reauth: bool | None = None):
    """JSON error body shared by all endpoints."""
    body = ErrorResponse(error=error, message=message, needs_reauth=needs_reauth)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
    tags=["Chat"],
)
async def chat(
    request: ChatRequest,
    user_id: str = Depends(current_user_id),
    conversation_service: ConversationService = Depends(get_conversation_service),
):
    """Send a message to the assistant and get its answer."""
    try:
        result = await conversation_service.process_message(
            user_id=user_id,
            message=request.message,
            conversation_id=request.conversation_id,
            caller_token=request.google_token,
        )
    except ValueError as e:
        logger.warning(f"Message validation error for user {user_id}: {e}")
        return error_response(400, "Invalid message", str(e))
    except Exception as e:
        logger.error(f"Chat processing error for user {user_id}: {e}", exc_info=True)
        return error_response(500, "Internal server error")

    if result.rate_limited:
        return error_response(429, "Rate limit exceeded", result.message)

    logger.info(f"Answered user {user_id} in {result.conversation_id}: {result.status}, {result.round_trips} trips")
    return ChatResponse(message=result.message, conversation_id=result.conversation_id)


@router.post(
    "/google-token",
    response_model=GoogleTokenResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    tags=["Credentials"],
)
async def google_token(
    request: GoogleTokenRequest,
    user_id: str = Depends(current_user_id),
    credential_manager: CredentialManager = Depends(get_credential_manager),
):
    """Store, fetch or refresh the user's Google access token."""
    if request.action == "store":
        if not request.refresh_token:
            return error_response(400, "No refresh token provided")
        try:
            await credential_manager.store_grant(
                user_id,
                refresh_token=request.refresh_token,
                access_token=request.access_token,
                expires_in=request.expires_in,
                scope=request.scope,
            )
        except Exception as e:
            logger.error(f"Error storing token for user {user_id}: {e}", exc_info=True)
            return error_response(500, "Failed to store token")
        return GoogleTokenResponse(success=True, message="Token stored")

    try:
        if request.action == "refresh":
            status = await credential_manager.force_refresh(user_id)
        else:
            status = await credential_manager.token_status(user_id)
    except Exception as e:
        logger.error(f"Error in google-token for user {user_id}: {e}", exc_info=True)
        return error_response(500, "Internal server error")

    if status.ok:
        return GoogleTokenResponse(access_token=status.access_token, expires_at=status.expires_at)

    if status.needs_reauth:
        status_code = 404 if status.error == NO_TOKEN_ERROR else 401
        return error_response(status_code, status.error or "Token unavailable", status.message, needs_reauth=True)

    return error_response(500, status.error or "Failed to refresh token", status.message)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )
