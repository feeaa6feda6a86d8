from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field
from datetime import datetime

from langchain_core.messages import messages_to_dict

from agentloop.domain.models.agent_state import RunResult, RunStatus


class RunRequest(BaseModel):
    """Start a run with a user message"""
    message: str = Field(min_length=1)
    entry_agent: Optional[str] = Field(None, description="Defaults to the orchestrator's entry agent")


class FailurePayload(BaseModel):
    """Terminal failure details"""
    kind: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ScratchpadItem(BaseModel):
    """One scratchpad entry as returned to clients"""
    kind: str
    agent_name: str
    content: str
    timestamp: datetime


class RunResponse(BaseModel):
    """Run outcome with the state snapshot"""
    run_id: str
    status: RunStatus
    final_answer: Optional[str] = None
    failure: Optional[FailurePayload] = None
    current_agent_name: str
    agents: List[str]
    step_count: int
    agent_chain_trace: List[str] = Field(default_factory=list)
    scratchpad: List[ScratchpadItem] = Field(default_factory=list)
    messages: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: RunResult) -> "RunResponse":
        state = result.state
        failure = None
        if result.failure:
            failure = FailurePayload(
                kind=result.failure.kind.value,
                message=result.failure.message,
                details=result.failure.details,
            )
        return cls(
            run_id=result.run_id,
            status=result.status,
            final_answer=result.final_answer.content if result.final_answer else None,
            failure=failure,
            current_agent_name=state.current_agent_name,
            agents=state.agents,
            step_count=state.step_count,
            agent_chain_trace=state.agent_chain_trace,
            scratchpad=[
                ScratchpadItem(
                    kind=entry.kind,
                    agent_name=entry.agent_name,
                    content=entry.content,
                    timestamp=entry.timestamp,
                )
                for entry in state.scratchpad
            ],
            messages=messages_to_dict(state.memory.messages),
        )
