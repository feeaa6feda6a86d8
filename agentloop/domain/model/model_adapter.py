from abc import ABC, abstractmethod
from typing import Any, List, Sequence

from langchain_core.messages import BaseMessage
from pydantic import TypeAdapter, ValidationError

from agentloop.domain.errors import InvalidModelResponse
from agentloop.domain.models.agent_state import AgentResponse
from agentloop.domain.tool.tool_registry import Tool

_response_adapter = TypeAdapter(AgentResponse)


class ModelAdapter(ABC):
    """Boundary to a language model provider.

    Implementations own request shaping, auth and retry of retryable
    provider errors. They raise ``ProviderError`` once a failure is final and
    ``InvalidModelResponse`` when the output fits none of the response shapes.
    Implementations must be safe to share between concurrent runs.
    """

    @abstractmethod
    async def complete(
        self,
        context_entries: List[BaseMessage],
        available_tools: List[Tool],
        directive: str,
        handoff_targets: Sequence[str] = (),
    ) -> AgentResponse:
        pass


def parse_agent_response(value: Any) -> AgentResponse:
    """Coerce adapter output into the closed response union"""

    try:
        return _response_adapter.validate_python(value)
    except ValidationError as e:
        raise InvalidModelResponse(f"Unrecognized model response: {e.errors()[0]['msg']}") from e
