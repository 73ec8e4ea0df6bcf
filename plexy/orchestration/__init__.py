"""Turn orchestration: an explicit state machine over model and tool steps."""

from plexy.orchestration.turn import TurnOutcome, TurnRunner

__all__ = ["TurnOutcome", "TurnRunner"]
