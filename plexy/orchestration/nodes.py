"""Side-effecting steps of a turn: calling the model and running tools."""

import json

from plexy.clients.anthropic import ModelClient
from plexy.errors import ModelRateLimitError
from plexy.models.llm import LLMToolDefinition
from plexy.models.messages import Message, ToolCallRequest
from plexy.orchestration.edges import ModelFailed, ModelReplied, ToolsExecuted
from plexy.tools.registry import ToolExecutor
from plexy.utils.logging import get_logger

logger = get_logger(__name__)


async def call_model(
    model: ModelClient,
    system_prompt: str,
    history: list[Message],
    tools: list[LLMToolDefinition],
) -> ModelReplied | ModelFailed:
    """Send the history to the model and report what happened.

    Every failure becomes a ``ModelFailed`` event; rate limiting is flagged
    so the turn can surface it distinctly.
    """
    logger.debug(f"Calling model with {len(history)} messages and {len(tools)} tools")
    try:
        reply = await model.complete(system_prompt, history, tools)
    except ModelRateLimitError as e:
        logger.warning(f"Model rate limited: {e}")
        return ModelFailed(error=e, rate_limited=True)
    except Exception as e:
        logger.error(f"Model call failed: {e}", exc_info=True)
        return ModelFailed(error=e)

    if reply.message.tool_calls:
        names = [call.name for call in reply.message.tool_calls]
        logger.info(f"Model requested {len(names)} tool(s): {names}")
    return ModelReplied(message=reply.message)


async def execute_tools(
    executor: ToolExecutor, calls: tuple[ToolCallRequest, ...], access_token: str | None
) -> ToolsExecuted:
    """Run the requested calls one at a time, in request order.

    Each call yields exactly one tool message carrying its call id, whether
    the tool succeeded or returned a structured error.
    """
    results: list[Message] = []
    for call in calls:
        args = call.parsed_arguments()
        logger.info(f"Executing tool: {call.name}")

        result = await executor.execute(call.name, args, access_token)
        results.append(Message.tool_result(call.id, json.dumps(result, default=str)))

    return ToolsExecuted(results=tuple(results))
