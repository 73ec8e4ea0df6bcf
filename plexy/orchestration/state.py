"""States of a single conversational turn."""

from dataclasses import dataclass
from enum import StrEnum

from plexy.models.messages import ToolCallRequest


class AbortReason(StrEnum):
    MAX_ROUND_TRIPS = "max_round_trips"
    RATE_LIMITED = "rate_limited"
    MODEL_ERROR = "model_error"


@dataclass(frozen=True)
class AwaitingModel:
    """The history is ready to be sent to the model.

    ``round_trip`` counts completed model-to-tools round-trips so far.
    """

    round_trip: int = 0


@dataclass(frozen=True)
class ExecutingTools:
    """The model asked for tools; their results have not been appended yet."""

    round_trip: int
    calls: tuple[ToolCallRequest, ...]


@dataclass(frozen=True)
class Done:
    """The model produced its final answer."""

    text: str
    round_trip: int = 0


@dataclass(frozen=True)
class Aborted:
    """The turn ended without a model answer; ``text`` is the fallback shown instead."""

    reason: AbortReason
    text: str
    round_trip: int = 0


TurnState = AwaitingModel | ExecutingTools | Done | Aborted
