"""Application settings loaded from the environment."""

import os
from dataclasses import dataclass
from functools import lru_cache

CLASSROOM_API_URL = "https://classroom.googleapis.com/v1"
DRIVE_API_URL = "https://www.googleapis.com/drive/v3"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"


@dataclass
class Settings:
    """Runtime settings for the assistant backend."""

    anthropic_api_key: str | None = None
    model: str = "claude-3-5-sonnet-20241022"

    google_client_id: str | None = None
    google_client_secret: str | None = None

    history_limit: int = 50
    max_round_trips: int = 5
    http_timeout: float = 30.0

    # Tokens expiring inside this window are treated as already expired
    token_expiry_buffer_seconds: int = 300

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            model=os.getenv("PLEXY_MODEL", cls.model),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
            history_limit=int(os.getenv("PLEXY_HISTORY_LIMIT", str(cls.history_limit))),
            max_round_trips=int(os.getenv("PLEXY_MAX_ROUND_TRIPS", str(cls.max_round_trips))),
            http_timeout=float(os.getenv("PLEXY_HTTP_TIMEOUT", str(cls.http_timeout))),
            token_expiry_buffer_seconds=int(
                os.getenv("PLEXY_TOKEN_EXPIRY_BUFFER_SECONDS", str(cls.token_expiry_buffer_seconds))
            ),
        )


@lru_cache
def get_settings() -> Settings:
    """Get the process settings (read once)."""
    return Settings.from_env()
