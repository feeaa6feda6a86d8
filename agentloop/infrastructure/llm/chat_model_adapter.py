from typing import Any, Dict, List, Optional, Sequence
import asyncio

import structlog
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage

from agentloop.domain.context.memory.transcript import message_text
from agentloop.domain.errors import InvalidModelResponse, ProviderError
from agentloop.domain.model.model_adapter import ModelAdapter
from agentloop.domain.models.agent_state import (
    AgentResponse,
    FinalAnswer,
    HandoffRequest,
    ToolCall,
    ToolCallRequest,
)
from agentloop.domain.tool.schema import ObjectParameter, StringParameter
from agentloop.domain.tool.tool_registry import Tool
from agentloop.infrastructure.config.settings import RuntimeSettings, get_settings

logger = structlog.get_logger(__name__)

HANDOFF_TOOL_NAME = "handoff_to_agent"

RETRYABLE_STATUS_CODES = {408, 429}
RETRYABLE_ERROR_NAMES = {
    "RateLimitError",
    "APIConnectionError",
    "APITimeoutError",
    "InternalServerError",
    "ServiceUnavailableError",
    "OverloadedError",
}


def handoff_function_spec(targets: Sequence[str]) -> Dict[str, Any]:
    """Function declaration the model calls to hand control to another agent"""

    parameters = ObjectParameter(
        properties={
            "agent_name": StringParameter(
                description="Agent that should take over the conversation",
                enum=list(targets),
            ),
            "reason": StringParameter(description="Why the other agent is better placed"),
        },
        required=["agent_name"],
    )
    return {
        "type": "function",
        "function": {
            "name": HANDOFF_TOOL_NAME,
            "description": "Transfer control of the conversation to another agent.",
            "parameters": parameters.to_json_schema(),
        },
    }


def is_retryable(error: BaseException) -> bool:
    """Rate limits, server errors and transient network failures are retryable"""

    if isinstance(error, ProviderError):
        return error.retryable

    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(getattr(error, "response", None), "status_code", None)
    if isinstance(status, int):
        return status in RETRYABLE_STATUS_CODES or status >= 500

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True
    return type(error).__name__ in RETRYABLE_ERROR_NAMES


class ChatModelAdapter(ModelAdapter):
    """Model adapter over any LangChain chat model that supports tool calling"""

    def __init__(
        self,
        model: BaseChatModel,
        settings: Optional[RuntimeSettings] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        backoff_max_seconds: Optional[float] = None,
    ):
        settings = settings or get_settings()
        self.model = model
        self.max_retries = settings.provider_max_retries if max_retries is None else max_retries
        self.backoff_seconds = settings.provider_backoff_seconds if backoff_seconds is None else backoff_seconds
        self.backoff_max_seconds = (
            settings.provider_backoff_max_seconds if backoff_max_seconds is None else backoff_max_seconds
        )

    async def complete(
        self,
        context_entries: List[BaseMessage],
        available_tools: List[Tool],
        directive: str,
        handoff_targets: Sequence[str] = (),
    ) -> AgentResponse:
        messages: List[BaseMessage] = []
        if directive:
            messages.append(SystemMessage(content=directive))
        messages.extend(context_entries)

        specs = [tool.to_function_spec() for tool in available_tools]
        if handoff_targets:
            specs.append(handoff_function_spec(handoff_targets))
        runnable = self.model.bind_tools(specs) if specs else self.model

        response = await self._invoke_with_retry(runnable, messages)
        return self.parse_response(response)

    async def _invoke_with_retry(self, runnable, messages: List[BaseMessage]) -> BaseMessage:
        attempt = 0
        while True:
            try:
                return await runnable.ainvoke(messages)
            except Exception as e:
                if not is_retryable(e):
                    raise ProviderError(f"Provider call failed: {type(e).__name__}: {e}", retryable=False, cause=e) from e
                if attempt >= self.max_retries:
                    raise ProviderError(
                        f"Provider call failed after {attempt + 1} attempts: {type(e).__name__}: {e}",
                        retryable=True,
                        cause=e,
                    ) from e

                delay = min(self.backoff_max_seconds, self.backoff_seconds * (2 ** attempt))
                attempt += 1
                logger.warning("Retrying provider call", attempt=attempt, delay=delay, error=str(e))
                await asyncio.sleep(delay)

    @staticmethod
    def parse_response(message: BaseMessage) -> AgentResponse:
        """Map a chat model reply onto tool calls, a handoff or a final answer"""

        if not isinstance(message, AIMessage):
            raise InvalidModelResponse(f"Expected an AI message, got {type(message).__name__}")
        if message.invalid_tool_calls:
            names = [call.get("name") for call in message.invalid_tool_calls]
            raise InvalidModelResponse(f"Model produced malformed tool calls: {names}")

        calls = message.tool_calls
        if calls:
            handoffs = [call for call in calls if call["name"] == HANDOFF_TOOL_NAME]
            if handoffs:
                if len(calls) > 1:
                    raise InvalidModelResponse("A handoff must be the only tool call in a response")
                args = handoffs[0].get("args") or {}
                target = args.get("agent_name")
                if not isinstance(target, str) or not target:
                    raise InvalidModelResponse("Handoff is missing agent_name")
                return HandoffRequest(target=target, reason=args.get("reason"))

            return ToolCallRequest(
                calls=[_to_tool_call(call) for call in calls],
                content=message_text(message),
            )

        text = message_text(message).strip()
        if not text:
            raise InvalidModelResponse("Model returned neither tool calls nor content")
        return FinalAnswer(content=text)


def _to_tool_call(call: Dict[str, Any]) -> ToolCall:
    fields: Dict[str, Any] = {"name": call["name"], "arguments": call.get("args") or {}}
    # Some providers omit call ids; generate one so results can be paired
    if call.get("id"):
        fields["id"] = call["id"]
    return ToolCall(**fields)
