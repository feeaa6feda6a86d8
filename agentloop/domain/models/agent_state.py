from typing import Dict, Any, List, Optional, Literal, Union, Annotated
from pydantic import BaseModel, Field, SerializeAsAny, model_validator
from datetime import datetime
from enum import Enum
import json
import uuid

from langchain_core.messages import BaseMessage

from agentloop.domain.errors import ErrorKind


class RunStatus(str, Enum):
    """Run lifecycle status"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ToolCall(BaseModel):
    """A single tool invocation requested by the model"""
    id: str = Field(default_factory=lambda: f"call_{uuid.uuid4().hex[:12]}")
    name: str = Field(description="Name of the tool to invoke")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Raw, unvalidated arguments")


class ToolCallRequest(BaseModel):
    """Model asks for one or more tool calls before continuing"""
    kind: Literal["tool_calls"] = "tool_calls"
    calls: List[ToolCall] = Field(min_length=1)
    content: str = Field(default="", description="Any text the model emitted alongside the calls")


class HandoffRequest(BaseModel):
    """Model hands control to another agent"""
    kind: Literal["handoff"] = "handoff"
    target: str = Field(description="Name of the agent to receive control")
    reason: Optional[str] = None


class FinalAnswer(BaseModel):
    """Terminal content for the run"""
    kind: Literal["final_answer"] = "final_answer"
    content: str


AgentResponse = Annotated[
    Union[ToolCallRequest, HandoffRequest, FinalAnswer],
    Field(discriminator="kind"),
]


class ToolError(BaseModel):
    """Why a tool call did not produce a result"""
    kind: Literal["tool_not_found", "schema_validation", "tool_execution"]
    message: str
    field: Optional[str] = Field(None, description="Offending argument path for schema errors")
    timed_out: bool = False


class ToolResult(BaseModel):
    """Outcome of one tool call, successful or not"""
    call_id: str
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    success: bool
    output: Any = None
    error: Optional[ToolError] = None
    duration_ms: Optional[float] = None

    @property
    def timed_out(self) -> bool:
        return self.error is not None and self.error.timed_out

    def to_content(self) -> str:
        """Render the result as tool message content"""

        if not self.success:
            error = self.error
            return f"Error ({error.kind}): {error.message}" if error else "Error: tool call failed"
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, default=str)


class ScratchpadEntry(BaseModel):
    """An ephemeral artifact produced during the current run"""
    kind: Literal["tool_result", "transition"]
    agent_name: str
    content: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class MemoryBlock(BaseModel):
    """A compacted segment of older conversation history"""
    content: str
    token_count: int = Field(ge=0)
    start_index: int = Field(ge=0, description="First folded message index")
    end_index: int = Field(ge=0, description="One past the last folded message index")
    created_at: datetime = Field(default_factory=datetime.utcnow)


class MemorySnapshot(BaseModel):
    """Serializable view of a conversation memory"""
    messages: List[SerializeAsAny[BaseMessage]] = Field(default_factory=list)
    token_limit: int
    short_term_token_limit_ratio: float
    memory_blocks: List[MemoryBlock] = Field(default_factory=list)
    memory_cursor: int = 0
    adapters: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class OrchestrationState(BaseModel):
    """Whose turn it is, and which agents exist"""
    current_agent_name: str
    agents: List[str] = Field(min_length=1)
    next_agent_name: Optional[str] = None
    status: RunStatus = Field(default=RunStatus.RUNNING)
    step_count: int = 0
    agent_chain_trace: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _current_agent_is_known(self) -> "OrchestrationState":
        if self.current_agent_name not in self.agents:
            raise ValueError(f"current_agent_name '{self.current_agent_name}' is not in agents")
        return self

    def request_handoff(self, target: str):
        if target not in self.agents:
            raise ValueError(f"'{target}' is not in agents")
        self.next_agent_name = target

    def complete_handoff(self) -> str:
        """Give control to ``next_agent_name`` and clear it"""
        if self.next_agent_name is None:
            raise ValueError("No handoff pending")
        self.current_agent_name = self.next_agent_name
        self.next_agent_name = None
        return self.current_agent_name


class RunFailure(BaseModel):
    """Why a run ended in the failed state"""
    kind: ErrorKind
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class RunStateSnapshot(BaseModel):
    """Full run state handed back to the caller"""
    memory: MemorySnapshot
    scratchpad: List[ScratchpadEntry] = Field(default_factory=list)
    current_agent_name: str
    agents: List[str]
    next_agent_name: Optional[str] = None
    step_count: int = 0
    agent_chain_trace: List[str] = Field(default_factory=list)


class RunResult(BaseModel):
    """Terminal outcome of a run"""
    run_id: str
    status: RunStatus
    final_answer: Optional[FinalAnswer] = None
    failure: Optional[RunFailure] = None
    state: RunStateSnapshot

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED
