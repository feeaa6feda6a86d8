"""Agent execution runtime: tool-calling loop, bounded memory and agent handoffs."""

from agentloop.version import __version__
from agentloop.domain.context.memory.adapters import (
    ChatModelSummarizer,
    ContextAdapter,
    RetrievalAdapter,
    SummarizingAdapter,
    TranscriptSummarizer,
)
from agentloop.domain.context.memory.conversation_memory import ConversationMemory
from agentloop.domain.context.memory.long_term_memory_store import LongTermMemoryStore
from agentloop.domain.context.scratchpad import Scratchpad
from agentloop.domain.errors import (
    AgentLoopError,
    Cancelled,
    DuplicateAgentName,
    DuplicateToolName,
    ErrorKind,
    InvalidModelResponse,
    ProviderError,
    SchemaValidationError,
    StepLimitExceeded,
    ToolBatchTimeout,
    ToolExecutionError,
    ToolNotFound,
    UnknownAgent,
)
from agentloop.domain.model.model_adapter import ModelAdapter
from agentloop.domain.models.agent_state import (
    FinalAnswer,
    HandoffRequest,
    RunResult,
    RunStatus,
    ToolCall,
    ToolCallRequest,
    ToolResult,
)
from agentloop.domain.orchestration.core.main_agent import AgentOrchestrator
from agentloop.domain.orchestration.subagent.agent import Agent
from agentloop.domain.orchestration.subagent.base_subagent import BaseSubAgent
from agentloop.domain.tool.schema import parameters_from_dict
from agentloop.domain.tool.tool_registry import Tool, ToolRegistry
from agentloop.infrastructure.config.settings import RuntimeSettings, get_settings
from agentloop.infrastructure.llm.chat_model_adapter import ChatModelAdapter
from agentloop.infrastructure.llm.scripted_adapter import ScriptedModelAdapter

__all__ = [
    "__version__",
    "Agent",
    "AgentLoopError",
    "AgentOrchestrator",
    "BaseSubAgent",
    "Cancelled",
    "ChatModelAdapter",
    "ChatModelSummarizer",
    "ContextAdapter",
    "ConversationMemory",
    "DuplicateAgentName",
    "DuplicateToolName",
    "ErrorKind",
    "FinalAnswer",
    "HandoffRequest",
    "InvalidModelResponse",
    "LongTermMemoryStore",
    "ModelAdapter",
    "ProviderError",
    "RetrievalAdapter",
    "RunResult",
    "RunStatus",
    "RuntimeSettings",
    "SchemaValidationError",
    "Scratchpad",
    "ScriptedModelAdapter",
    "StepLimitExceeded",
    "SummarizingAdapter",
    "Tool",
    "ToolBatchTimeout",
    "ToolCall",
    "ToolCallRequest",
    "ToolExecutionError",
    "ToolNotFound",
    "ToolRegistry",
    "ToolResult",
    "TranscriptSummarizer",
    "UnknownAgent",
    "get_settings",
    "parameters_from_dict",
]
