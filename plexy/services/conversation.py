"""Conversation service: one user message in, one assistant answer out."""

import re
from dataclasses import dataclass

from cuid2 import cuid_wrapper

from plexy.clients.anthropic import ModelClient, get_anthropic_client
from plexy.models.messages import Message
from plexy.orchestration.turn import DEFAULT_MAX_ROUND_TRIPS, TurnRunner
from plexy.services.credentials import CredentialManager, get_credential_manager
from plexy.services.stores import ConversationStore, InMemoryConversationStore
from plexy.tools.registry import ToolExecutor, get_tool_executor
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

cuid = cuid_wrapper()

# Control characters other than tab, newline and carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")


def sanitize_text(text: str) -> str:
    """Strip characters conversation stores cannot hold."""
    if not text:
        return ""
    return _CONTROL_CHARS.sub("", text)


@dataclass
class TurnResult:
    """Answer for one user message."""

    message: str
    conversation_id: str
    status: str = "ok"
    round_trips: int = 0

    @property
    def rate_limited(self) -> bool:
        return self.status == "rate_limited"


class ConversationService:
    """Persists the conversation and runs each turn against the model and tools."""

    def __init__(
        self,
        conversation_store: ConversationStore,
        credential_manager: CredentialManager,
        model: ModelClient,
        executor: ToolExecutor,
        history_limit: int = 50,
        max_round_trips: int = DEFAULT_MAX_ROUND_TRIPS,
    ):
        """Initialize conversation service.

        Args:
            conversation_store: Message log
            credential_manager: Resolves the user's Google token once per turn
            model: Language model client
            executor: Tool executor
            history_limit: Most recent messages sent to the model
            max_round_trips: Model-to-tools round-trips allowed per turn
        """
        self.conversation_store = conversation_store
        self.credential_manager = credential_manager
        self.model = model
        self.history_limit = history_limit
        self.runner = TurnRunner(model, executor, max_round_trips=max_round_trips)

        logger.info(
            f"ConversationService initialized (history limit {history_limit}, max round-trips {max_round_trips})"
        )

    async def process_message(
        self,
        user_id: str,
        message: str,
        conversation_id: str | None = None,
        caller_token: str | None = None,
    ) -> TurnResult:
        """Process a user message and return the assistant's answer.

        Args:
            user_id: Authenticated end user
            message: User's message
            conversation_id: Existing conversation, or None to start one
            caller_token: Google access token supplied by the client, if any

        Returns:
            Final answer (or fallback text) with the conversation id and turn status

        Raises:
            ValueError: If the message is empty or exceeds the token limit
        """
        text = sanitize_text(message)
        if not text.strip():
            raise ValueError("Message cannot be empty")
        self._validate_message_tokens(text)

        conversation_id = conversation_id or cuid()
        logger.info(f"Processing message for user {user_id} in conversation {conversation_id}")

        await self.conversation_store.append(user_id, conversation_id, Message.user(text))
        history = await self.conversation_store.history(user_id, conversation_id, limit=self.history_limit)

        access_token = await self.credential_manager.resolve_access_token(user_id, caller_token)
        logger.info(f"Google token {'available' if access_token else 'not available'} for user {user_id}")

        outcome = await self.runner.run(history, access_token)

        if outcome.rate_limited:
            logger.warning(f"Rate limited turn for conversation {conversation_id} not persisted")
        else:
            try:
                await self.conversation_store.append(user_id, conversation_id, Message.assistant(outcome.text))
            except Exception as e:
                # The answer is still returned even if saving it fails
                logger.error(f"Failed to save assistant message for {conversation_id}: {e}", exc_info=True)

        return TurnResult(
            message=outcome.text,
            conversation_id=conversation_id,
            status=outcome.status,
            round_trips=outcome.round_trips,
        )

    def _validate_message_tokens(self, message: str) -> None:
        """Validate message doesn't exceed token limits.

        Raises:
            ValueError: If message exceeds token limit
        """
        try:
            self.model.validate_message_tokens(message)
        except ValueError as e:
            logger.warning(f"Rejected oversized message: {e}")
            raise ValueError("Your message is too long. Please shorten it and try again.") from e


_conversation_service: ConversationService | None = None


def get_conversation_service() -> ConversationService:
    """Get or create the process conversation service."""
    global _conversation_service
    if _conversation_service is None:
        from plexy.config import get_settings

        settings = get_settings()
        _conversation_service = ConversationService(
            conversation_store=InMemoryConversationStore(),
            credential_manager=get_credential_manager(),
            model=get_anthropic_client(),
            executor=get_tool_executor(),
            history_limit=settings.history_limit,
            max_round_trips=settings.max_round_trips,
        )
    return _conversation_service
