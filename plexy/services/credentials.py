"""Credential lifecycle: hand out valid Google access tokens per user."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from plexy.clients.google_oauth import GoogleTokenIssuer
from plexy.errors import TokenRefreshError, TokenRefreshRejected
from plexy.models.credentials import DelegatedCredential, TokenStatus
from plexy.services.stores import CredentialStore, InMemoryCredentialStore
from plexy.utils.logging import get_logger, redact_token

logger = get_logger(__name__)

NO_TOKEN_ERROR = "No Google token found"
REAUTH_ERROR = "Token refresh failed"
REFRESH_FAILED_ERROR = "Failed to refresh token"


@dataclass
class _CachedToken:
    access_token: str
    expires_at: datetime
    cached_until: datetime


def _not_connected() -> TokenStatus:
    return TokenStatus(needs_reauth=True, error=NO_TOKEN_ERROR, message="Please connect your Google account")


def _reauth_required() -> TokenStatus:
    return TokenStatus(needs_reauth=True, error=REAUTH_ERROR, message="Please reconnect your Google account")


class CredentialManager:
    """Resolves, refreshes and invalidates delegated Google credentials.

    Tokens handed out are valid for at least ``expiry_buffer`` beyond the
    moment of resolution. A rejected refresh grant deletes the stored
    credential so the user is asked to reconnect; any other refresh failure
    leaves the credential in place for a later attempt.

    The store is always consulted first. Freshly refreshed tokens are kept
    for at most ``cache_ttl`` and only stand in for a stored token that is
    stale, which happens when persisting the refresh failed.
    """

    def __init__(
        self,
        store: CredentialStore,
        token_issuer: GoogleTokenIssuer,
        expiry_buffer: timedelta = timedelta(minutes=5),
        cache_ttl: timedelta = timedelta(minutes=5),
    ):
        """Initialize credential manager.

        Args:
            store: Credential persistence
            token_issuer: Client for the OAuth token endpoint
            expiry_buffer: Tokens expiring within this window count as expired
            cache_ttl: Longest time a refreshed token is kept in memory
        """
        self.store = store
        self.token_issuer = token_issuer
        self.expiry_buffer = expiry_buffer
        self.cache_ttl = cache_ttl
        self._cache: dict[str, _CachedToken] = {}

    async def resolve_access_token(self, user_id: str, caller_token: str | None = None) -> str | None:
        """Return a usable access token for the user, or None if not connected.

        Args:
            user_id: Authenticated end user
            caller_token: Token supplied by the client; trusted as-is

        Returns:
            Access token, or None when the user must (re)connect their account
        """
        if caller_token:
            logger.debug(f"Using caller-supplied Google token for user {user_id}")
            return caller_token

        try:
            credential = await self.store.get(user_id)
        except Exception as e:
            logger.error(f"Credential lookup failed for user {user_id}: {e}", exc_info=True)
            return None

        if credential is None:
            logger.info(f"No Google credential stored for user {user_id}")
            self._cache.pop(user_id, None)
            return None

        now = datetime.now(UTC)
        if not credential.is_expired(now, self.expiry_buffer):
            return credential.access_token

        cached = self._cached_token(user_id, now)
        if cached is not None:
            logger.debug(f"Using cached refreshed token for user {user_id}")
            return cached

        refreshed = await self._refresh(credential)
        return refreshed.access_token if refreshed else None

    async def store_grant(
        self,
        user_id: str,
        refresh_token: str,
        access_token: str | None = None,
        expires_in: int | None = None,
        scope: str | None = None,
    ) -> DelegatedCredential:
        """Persist the tokens obtained from an OAuth authorization grant."""
        if not refresh_token:
            raise ValueError("No refresh token provided")

        expires_at = datetime.now(UTC) + timedelta(seconds=expires_in) if expires_in else None
        credential = DelegatedCredential(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            scope=scope,
        )
        await self.store.upsert(credential)
        self._cache.pop(user_id, None)

        logger.info(f"Stored Google credential for user {user_id}")
        return credential

    async def token_status(self, user_id: str) -> TokenStatus:
        """Current valid token and its expiry, refreshing if needed."""
        credential = await self.store.get(user_id)
        if credential is None:
            return _not_connected()

        if not credential.is_expired(datetime.now(UTC), self.expiry_buffer):
            return TokenStatus(access_token=credential.access_token, expires_at=credential.expires_at)

        return await self._refresh_status(credential)

    async def force_refresh(self, user_id: str) -> TokenStatus:
        """Refresh the user's access token regardless of its expiry."""
        credential = await self.store.get(user_id)
        if credential is None:
            return _not_connected()

        return await self._refresh_status(credential)

    def invalidate(self, user_id: str) -> None:
        """Forget any cached token for the user."""
        self._cache.pop(user_id, None)

    async def _refresh_status(self, credential: DelegatedCredential) -> TokenStatus:
        try:
            refreshed = await self._refresh(credential, raise_errors=True)
        except TokenRefreshRejected:
            return _reauth_required()
        except TokenRefreshError as e:
            return TokenStatus(error=REFRESH_FAILED_ERROR, message=str(e))

        if refreshed is None:
            return _reauth_required()
        return TokenStatus(access_token=refreshed.access_token, expires_at=refreshed.expires_at)

    async def _refresh(
        self, credential: DelegatedCredential, raise_errors: bool = False
    ) -> DelegatedCredential | None:
        """Exchange the refresh token once; persist or discard the outcome."""
        user_id = credential.user_id
        self._cache.pop(user_id, None)

        if not credential.refresh_token:
            logger.warning(f"Credential for user {user_id} has no refresh token, cannot refresh")
            return None

        logger.info(f"Refreshing Google access token for user {user_id}")
        try:
            grant = await self.token_issuer.refresh(credential.refresh_token)
        except TokenRefreshRejected as e:
            logger.warning(f"Refresh grant rejected for user {user_id} ({e.status_code}), deleting credential")
            try:
                await self.store.delete(user_id)
            except Exception as delete_error:
                logger.error(f"Failed to delete rejected credential for user {user_id}: {delete_error}")
            if raise_errors:
                raise
            return None
        except TokenRefreshError as e:
            logger.error(f"Token refresh failed for user {user_id}: {e}")
            if raise_errors:
                raise
            return None

        refreshed = credential.with_refreshed_token(
            access_token=grant.access_token,
            expires_at=datetime.now(UTC) + timedelta(seconds=grant.expires_in),
            refresh_token=grant.refresh_token,
        )

        try:
            await self.store.update(refreshed)
        except Exception as e:
            # Served from memory until the store holds a fresh token again
            logger.error(f"Failed to persist refreshed token for user {user_id}: {e}")
            self._remember(refreshed)

        logger.info(f"Refreshed token for user {user_id}: {redact_token(refreshed.access_token)}")
        return refreshed

    def _cached_token(self, user_id: str, now: datetime) -> str | None:
        self._prune(now)
        cached = self._cache.get(user_id)
        return cached.access_token if cached else None

    def _prune(self, now: datetime) -> None:
        """Drop entries past their TTL or inside the expiry buffer."""
        stale = [
            user_id
            for user_id, cached in self._cache.items()
            if cached.cached_until <= now or cached.expires_at <= now + self.expiry_buffer
        ]
        for user_id in stale:
            del self._cache[user_id]

    def _remember(self, credential: DelegatedCredential) -> None:
        now = datetime.now(UTC)
        self._prune(now)
        if credential.access_token and credential.expires_at:
            self._cache[credential.user_id] = _CachedToken(
                credential.access_token, credential.expires_at, cached_until=now + self.cache_ttl
            )


_credential_manager: CredentialManager | None = None


def get_credential_manager() -> CredentialManager:
    """Get or create the process credential manager."""
    global _credential_manager
    if _credential_manager is None:
        from plexy.config import get_settings

        settings = get_settings()
        _credential_manager = CredentialManager(
            store=InMemoryCredentialStore(),
            token_issuer=GoogleTokenIssuer(
                client_id=settings.google_client_id,
                client_secret=settings.google_client_secret,
                timeout=settings.http_timeout,
            ),
            expiry_buffer=timedelta(seconds=settings.token_expiry_buffer_seconds),
        )
    return _credential_manager
