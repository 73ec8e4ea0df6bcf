"""Transition logic for the turn state machine."""

from dataclasses import dataclass

from plexy.models.messages import Message
from plexy.orchestration.state import (
    Aborted,
    AbortReason,
    AwaitingModel,
    Done,
    ExecutingTools,
    TurnState,
)
from plexy.utils.logging import get_logger

logger = get_logger(__name__)

MAX_ROUND_TRIPS_MESSAGE = (
    "I apologize, but I encountered an issue processing your request. The system may have reached "
    "the maximum number of tool calls. Please try rephrasing your question or try again."
)
MODEL_ERROR_MESSAGE = "I apologize, but I encountered an error while processing your request. Please try again."
RATE_LIMITED_MESSAGE = "The assistant is receiving too many requests right now. Please try again in a moment."


@dataclass(frozen=True)
class ModelReplied:
    message: Message


@dataclass(frozen=True)
class ModelFailed:
    error: Exception
    rate_limited: bool = False


@dataclass(frozen=True)
class ToolsExecuted:
    results: tuple[Message, ...]


TurnEvent = ModelReplied | ModelFailed | ToolsExecuted


class InvalidTransition(Exception):
    """An event arrived that the current state cannot accept."""


def transition(state: TurnState, event: TurnEvent, max_round_trips: int) -> TurnState:
    """Compute the next state. Pure: no I/O, no history mutation.

    The round-trip counter advances only when a batch of tool results has been
    appended, so the model sees every result it asked for before the cap is
    checked.
    """
    match state, event:
        case AwaitingModel(round_trip=n), ModelReplied(message=message):
            if message.tool_calls:
                return ExecutingTools(round_trip=n, calls=tuple(message.tool_calls))
            return Done(text=message.content, round_trip=n)

        case AwaitingModel(round_trip=n), ModelFailed(rate_limited=True):
            return Aborted(AbortReason.RATE_LIMITED, RATE_LIMITED_MESSAGE, round_trip=n)

        case AwaitingModel(round_trip=n), ModelFailed():
            return Aborted(AbortReason.MODEL_ERROR, MODEL_ERROR_MESSAGE, round_trip=n)

        case ExecutingTools(round_trip=n), ToolsExecuted():
            completed = n + 1
            if completed >= max_round_trips:
                logger.warning(f"Turn reached max round-trips ({max_round_trips})")
                return Aborted(AbortReason.MAX_ROUND_TRIPS, MAX_ROUND_TRIPS_MESSAGE, round_trip=completed)
            return AwaitingModel(round_trip=completed)

    raise InvalidTransition(f"No transition from {type(state).__name__} on {type(event).__name__}")
