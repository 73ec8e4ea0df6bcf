"""Google OAuth token issuer client."""

import httpx

from plexy.config import GOOGLE_TOKEN_URL
from plexy.errors import TokenRefreshError, TokenRefreshRejected
from plexy.models.credentials import TokenGrant
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

# Statuses Google uses for invalid_grant / invalid_client on the token endpoint
REJECTED_STATUSES = frozenset({400, 401})


class GoogleTokenIssuer:
    """Exchanges refresh tokens for access tokens."""

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        token_url: str = GOOGLE_TOKEN_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the issuer client.

        Args:
            client_id: OAuth client id
            client_secret: OAuth client secret
            token_url: Token endpoint
            http_client: Optional shared client (tests inject a mock transport)
            timeout: Request timeout when no client is injected
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.timeout = timeout
        self._http_client = http_client

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Perform a single ``grant_type=refresh_token`` exchange.

        Raises:
            TokenRefreshRejected: The issuer rejected the grant (terminal)
            TokenRefreshError: Any other failure (transient)
        """
        if not self.client_id or not self.client_secret:
            raise TokenRefreshError("Google OAuth client credentials are not configured")

        form = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        try:
            response = await self._post(form)
        except httpx.HTTPError as e:
            logger.error(f"Token issuer request failed: {e}")
            raise TokenRefreshError(f"Token issuer unreachable: {e}") from e

        if response.status_code in REJECTED_STATUSES:
            logger.warning(f"Token issuer rejected refresh grant: {response.status_code}")
            raise TokenRefreshRejected(response.status_code, response.text)

        if not response.is_success:
            logger.error(f"Token issuer error: {response.status_code} - {response.text[:200]}")
            raise TokenRefreshError(f"Token refresh failed: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise TokenRefreshError("Token issuer returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise TokenRefreshError(f"Token issuer returned {type(data).__name__}, expected an object")

        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise TokenRefreshError("Token issuer response has no access_token")

        try:
            expires_in = int(data.get("expires_in") or 3600)
        except (TypeError, ValueError) as e:
            raise TokenRefreshError(f"Token issuer returned an invalid expires_in: {data.get('expires_in')!r}") from e

        return TokenGrant(
            access_token=access_token,
            expires_in=expires_in,
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
        )

    async def _post(self, form: dict[str, str]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(self.token_url, data=form)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.token_url, data=form)
