"""Drives one conversational turn through the state machine."""

from dataclasses import dataclass, field

from plexy.clients.anthropic import ModelClient
from plexy.models.messages import Message, TurnHistory
from plexy.orchestration.edges import ModelReplied, transition
from plexy.orchestration.nodes import call_model, execute_tools
from plexy.orchestration.prompts import get_system_prompt
from plexy.orchestration.state import Aborted, AbortReason, AwaitingModel, Done, ExecutingTools, TurnState
from plexy.tools.registry import ToolExecutor
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ROUND_TRIPS = 5


@dataclass
class TurnOutcome:
    """How a turn ended and the history it produced."""

    text: str
    status: str
    round_trips: int
    history: TurnHistory
    transitions: list[str] = field(default_factory=list)

    @property
    def rate_limited(self) -> bool:
        return self.status == AbortReason.RATE_LIMITED


class TurnRunner:
    """Runs the model/tool loop for a single user message."""

    def __init__(self, model: ModelClient, executor: ToolExecutor, max_round_trips: int = DEFAULT_MAX_ROUND_TRIPS):
        """Initialize turn runner.

        Args:
            model: Language model client
            executor: Tool executor shared by every call in the turn
            max_round_trips: Model-to-tools round-trips allowed before giving up
        """
        if max_round_trips < 1:
            raise ValueError("max_round_trips must be at least 1")
        self.model = model
        self.executor = executor
        self.max_round_trips = max_round_trips

    async def run(self, history: list[Message], access_token: str | None) -> TurnOutcome:
        """Run the turn to completion, fallback or cap.

        Args:
            history: Conversation so far, ending with the user's message
            access_token: Google access token resolved once for the whole turn

        Returns:
            Final text, status and the extended history
        """
        turn_history = TurnHistory(history)
        system_prompt = get_system_prompt(google_connected=access_token is not None)
        tools = self.executor.get_llm_tools()

        state: TurnState = AwaitingModel()
        transitions: list[str] = [type(state).__name__]

        while True:
            match state:
                case AwaitingModel():
                    event = await call_model(self.model, system_prompt, turn_history.messages, tools)
                    if isinstance(event, ModelReplied):
                        turn_history.append(event.message)
                case ExecutingTools(calls=calls):
                    event = await execute_tools(self.executor, calls, access_token)
                    for result in event.results:
                        turn_history.append(result)
                case Done(text=text, round_trip=n):
                    logger.info(f"Turn completed in {n + 1} model call(s)")
                    return TurnOutcome(text, "ok", n, turn_history, transitions)
                case Aborted(reason=reason, text=text, round_trip=n):
                    logger.warning(f"Turn aborted: {reason} after {n} round-trip(s)")
                    return TurnOutcome(text, str(reason), n, turn_history, transitions)

            state = transition(state, event, self.max_round_trips)
            transitions.append(type(state).__name__)
