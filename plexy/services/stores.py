"""Persistence collaborators: conversation log and credential store.

Both are interfaces the core consumes. The in-memory implementations back
local development and tests; production deployments plug in a database.
"""

from collections import defaultdict
from dataclasses import replace
from datetime import UTC, datetime
from typing import Protocol

from plexy.models.credentials import DelegatedCredential
from plexy.models.messages import Message
from plexy.utils.logging import get_logger

logger = get_logger(__name__)


class ConversationStore(Protocol):
    """Append-only message log keyed by (user, conversation)."""

    async def append(self, user_id: str, conversation_id: str, message: Message) -> None:
        """Append a message to the end of a conversation."""
        ...

    async def history(self, user_id: str, conversation_id: str, limit: int = 50) -> list[Message]:
        """Return the most recent ``limit`` messages in creation order."""
        ...


class CredentialStore(Protocol):
    """Single-record-per-user credential table."""

    async def get(self, user_id: str) -> DelegatedCredential | None:
        """Load the credential for a user, if any."""
        ...

    async def upsert(self, credential: DelegatedCredential) -> None:
        """Insert or replace the user's credential."""
        ...

    async def update(self, credential: DelegatedCredential) -> bool:
        """Overwrite an existing credential. Returns False if there is none."""
        ...

    async def delete(self, user_id: str) -> bool:
        """Delete the user's credential. Returns False if there was none."""
        ...


class InMemoryConversationStore:
    """Conversation log held in process memory."""

    def __init__(self):
        self._conversations: dict[tuple[str, str], list[Message]] = defaultdict(list)

    async def append(self, user_id: str, conversation_id: str, message: Message) -> None:
        self._conversations[(user_id, conversation_id)].append(message)

    async def history(self, user_id: str, conversation_id: str, limit: int = 50) -> list[Message]:
        messages = self._conversations.get((user_id, conversation_id), [])
        return list(messages[-limit:]) if limit > 0 else []

    def conversation_count(self) -> int:
        return len(self._conversations)


class InMemoryCredentialStore:
    """Credential table held in process memory."""

    def __init__(self, credentials: list[DelegatedCredential] | None = None):
        self._credentials: dict[str, DelegatedCredential] = {}
        for credential in credentials or []:
            self._credentials[credential.user_id] = credential

    async def get(self, user_id: str) -> DelegatedCredential | None:
        return self._credentials.get(user_id)

    async def upsert(self, credential: DelegatedCredential) -> None:
        existing = self._credentials.get(credential.user_id)
        if existing:
            credential = replace(credential, created_at=existing.created_at, updated_at=datetime.now(UTC))
        self._credentials[credential.user_id] = credential

    async def update(self, credential: DelegatedCredential) -> bool:
        if credential.user_id not in self._credentials:
            logger.warning(f"Credential update for user {credential.user_id} skipped, no stored credential")
            return False
        self._credentials[credential.user_id] = credential
        return True

    async def delete(self, user_id: str) -> bool:
        return self._credentials.pop(user_id, None) is not None
