"""Delegated credential models."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta


@dataclass(frozen=True)
class DelegatedCredential:
    """An OAuth access/refresh token pair held on behalf of one user."""

    user_id: str
    access_token: str | None
    refresh_token: str | None
    expires_at: datetime | None = None
    scope: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def is_expired(self, now: datetime, buffer: timedelta) -> bool:
        """Expired when missing, unknown expiry, or inside the safety buffer."""
        if not self.access_token or self.expires_at is None:
            return True
        return self.expires_at <= now + buffer

    def with_refreshed_token(
        self, access_token: str, expires_at: datetime, refresh_token: str | None = None
    ) -> "DelegatedCredential":
        """Copy with a new access token; refresh token kept unless replaced."""
        return replace(
            self,
            access_token=access_token,
            expires_at=expires_at,
            refresh_token=refresh_token or self.refresh_token,
            updated_at=datetime.now(UTC),
        )


@dataclass
class TokenGrant:
    """A successful response from the token issuer."""

    access_token: str
    expires_in: int = 3600
    refresh_token: str | None = None
    scope: str | None = None


@dataclass
class TokenStatus:
    """Result of a token lookup for the credential endpoint."""

    access_token: str | None = None
    expires_at: datetime | None = None
    needs_reauth: bool = False
    error: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.access_token is not None
