from collections import deque
from typing import Any, Callable, Iterable, List, Sequence, Union
import asyncio
import inspect

from langchain_core.messages import BaseMessage
from pydantic import BaseModel, Field, SerializeAsAny

from agentloop.domain.errors import ProviderError
from agentloop.domain.model.model_adapter import ModelAdapter
from agentloop.domain.models.agent_state import AgentResponse
from agentloop.domain.tool.tool_registry import Tool


class ModelCall(BaseModel):
    """What the adapter was asked on one invocation"""
    context_entries: List[SerializeAsAny[BaseMessage]] = Field(default_factory=list)
    tool_names: List[str] = Field(default_factory=list)
    directive: str = ""
    handoff_targets: List[str] = Field(default_factory=list)


ScriptStep = Union[AgentResponse, dict, BaseException, Callable[[ModelCall], Any]]


class ScriptedModelAdapter(ModelAdapter):
    """Replays canned responses in order.

    A step may be a response, a dict in response shape, an exception to raise
    or a callable receiving the ``ModelCall``. Every invocation is recorded in
    ``calls``. Running out of steps raises a non-retryable ``ProviderError``.
    """

    def __init__(self, responses: Iterable[ScriptStep] = (), delay: float = 0.0):
        self._responses = deque(responses)
        self.delay = delay
        self.calls: List[ModelCall] = []

    def add_response(self, response: ScriptStep):
        self._responses.append(response)

    @property
    def remaining(self) -> int:
        return len(self._responses)

    async def complete(
        self,
        context_entries: List[BaseMessage],
        available_tools: List[Tool],
        directive: str,
        handoff_targets: Sequence[str] = (),
    ) -> AgentResponse:
        call = ModelCall(
            context_entries=list(context_entries),
            tool_names=[tool.name for tool in available_tools],
            directive=directive,
            handoff_targets=list(handoff_targets),
        )
        self.calls.append(call)

        if not self._responses:
            raise ProviderError("Scripted model has no responses left")
        step = self._responses.popleft()

        if self.delay:
            await asyncio.sleep(self.delay)

        if isinstance(step, BaseException):
            raise step
        if callable(step):
            step = step(call)
            if inspect.isawaitable(step):
                step = await step
        return step
