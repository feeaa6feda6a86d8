from abc import ABC, abstractmethod
from typing import Dict, Any, Iterable, List, Sequence, Union
from datetime import datetime

from agentloop.domain.context.memory.conversation_memory import ConversationMemory
from agentloop.domain.context.scratchpad import Scratchpad
from agentloop.domain.models.agent_state import AgentResponse
from agentloop.domain.tool.tool_registry import Tool, ToolRegistry


class BaseSubAgent(ABC):
    """Base class for agents the orchestrator can hand control to"""
    
    def __init__(self, name: str, description: str = "", tools: Union[ToolRegistry, Iterable[Tool]] = ()):
        if not name:
            raise ValueError("Agent name must not be empty")
        self.name = name
        self.description = description
        self.tools = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools)
        self.created_at = datetime.utcnow()
        self.last_active = datetime.utcnow()
        
    @abstractmethod
    async def step(self, memory: ConversationMemory, scratchpad: Scratchpad, agents: Sequence[str]) -> AgentResponse:
        """Produce exactly one tool call request, handoff or final answer.

        Must not mutate ``memory`` or ``scratchpad``.
        """
        pass
        
    def handoff_targets(self, agents: Sequence[str]) -> List[str]:
        """Agents this one may hand control to"""
        return [name for name in agents if name != self.name]
        
    def update_activity(self):
        """Update last activity timestamp"""
        self.last_active = datetime.utcnow()
        
    def get_info(self) -> Dict[str, Any]:
        """Get agent information"""
        return {
            "name": self.name,
            "description": self.description,
            "tools": self.tools.names(),
            "created_at": self.created_at.isoformat(),
            "last_active": self.last_active.isoformat()
        }
