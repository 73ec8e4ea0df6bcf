"""End-user authentication for the HTTP surface."""

from typing import Protocol

from fastapi import Depends, Header

from plexy.utils.logging import get_logger

logger = get_logger(__name__)


class UserAuthenticator(Protocol):
    """Maps a bearer token to the id of the authenticated end user."""

    async def authenticate(self, bearer_token: str) -> str | None:
        """Return the user id, or None if the token is not valid."""
        ...


class DevUserAuthenticator:
    """Development authenticator: the bearer value is the user id.

    Deployments replace this with their identity provider's verifier.
    """

    async def authenticate(self, bearer_token: str) -> str | None:
        user_id = bearer_token.strip()
        return user_id or None


_authenticator: UserAuthenticator | None = None


def get_authenticator() -> UserAuthenticator:
    """Get or create the process authenticator."""
    global _authenticator
    if _authenticator is None:
        logger.warning("Using development authenticator: bearer tokens are trusted as user ids")
        _authenticator = DevUserAuthenticator()
    return _authenticator


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


class AuthenticationError(Exception):
    """The request carries no usable end-user credentials."""

    def __init__(self, error: str):
        self.error = error
        super().__init__(error)


async def current_user_id(
    authorization: str | None = Header(default=None),
    authenticator: UserAuthenticator = Depends(get_authenticator),
) -> str:
    """FastAPI dependency resolving the calling user.

    Raises:
        AuthenticationError: No bearer token, or the token was not accepted
    """
    token = bearer_token(authorization)
    if token is None:
        raise AuthenticationError("No authorization header")

    user_id = await authenticator.authenticate(token)
    if user_id is None:
        raise AuthenticationError("Invalid user token")
    return user_id
