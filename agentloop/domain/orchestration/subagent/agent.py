from typing import Iterable, List, Optional, Sequence, Union

import structlog

from agentloop.domain.context.memory.conversation_memory import ConversationMemory
from agentloop.domain.context.scratchpad import Scratchpad
from agentloop.domain.model.model_adapter import ModelAdapter, parse_agent_response
from agentloop.domain.models.agent_state import AgentResponse
from agentloop.domain.tool.tool_registry import Tool, ToolRegistry
from .base_subagent import BaseSubAgent

logger = structlog.get_logger(__name__)


class Agent(BaseSubAgent):
    """Agent that reasons through a model adapter"""

    def __init__(
        self,
        name: str,
        model: ModelAdapter,
        directive: str = "",
        tools: Union[ToolRegistry, Iterable[Tool]] = (),
        description: str = "",
        handoffs: Optional[Iterable[str]] = None,
    ):
        super().__init__(name, description=description, tools=tools)
        self.model = model
        self.directive = directive
        # None allows handing off to every other agent
        self.handoffs = list(handoffs) if handoffs is not None else None

    def handoff_targets(self, agents: Sequence[str]) -> List[str]:
        targets = super().handoff_targets(agents)
        if self.handoffs is None:
            return targets
        return [name for name in targets if name in self.handoffs]

    def render_directive(self, scratchpad: Scratchpad) -> str:
        """Directive plus the run's intermediate results"""

        if not len(scratchpad):
            return self.directive
        notes = scratchpad.render()
        if not self.directive:
            return f"Scratchpad:\n{notes}"
        return f"{self.directive}\n\nScratchpad:\n{notes}"

    async def step(self, memory: ConversationMemory, scratchpad: Scratchpad, agents: Sequence[str]) -> AgentResponse:
        context = await memory.assemble_context()
        directive = self.render_directive(scratchpad)

        logger.debug(
            "Invoking model",
            agent_name=self.name,
            context_entries=len(context),
            tools=self.tools.names(),
        )
        response = await self.model.complete(
            context,
            self.tools.list_tools(),
            directive,
            self.handoff_targets(agents),
        )
        self.update_activity()
        return parse_agent_response(response)
