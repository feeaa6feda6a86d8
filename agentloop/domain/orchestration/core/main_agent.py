from typing import TypedDict, List, Dict, Any, Optional, Literal, Callable, Sequence
from langgraph.graph import StateGraph, END
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage
from pydantic import BaseModel, ConfigDict
import asyncio
import structlog
import time
import uuid

from agentloop.domain.context.memory.conversation_memory import ConversationMemory
from agentloop.domain.context.scratchpad import Scratchpad
from agentloop.domain.errors import (
    AgentLoopError,
    Cancelled,
    DuplicateAgentName,
    InvalidModelResponse,
    ProviderError,
    StepLimitExceeded,
    ToolBatchTimeout,
    UnknownAgent,
)
from agentloop.domain.models.agent_state import (
    FinalAnswer,
    HandoffRequest,
    OrchestrationState,
    RunFailure,
    RunResult,
    RunStateSnapshot,
    RunStatus,
    ToolCallRequest,
    ToolResult,
)
from agentloop.domain.orchestration.subagent.base_subagent import BaseSubAgent
from agentloop.domain.tool.tool_executor import ToolExecutor
from agentloop.infrastructure.config.settings import RuntimeSettings, get_settings
from agentloop.infrastructure.observability.langfuse_tracing import traced
from agentloop.infrastructure.observability.logging import metrics, run_logger

logger = structlog.get_logger(__name__)


class RunContext(BaseModel):
    """Per-run limits and signals"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str
    max_steps: int
    model_timeout: float
    cancel_event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


class WorkflowState(TypedDict):
    """State for the workflow graph"""
    memory: ConversationMemory
    scratchpad: Scratchpad
    orchestration: OrchestrationState
    run: RunContext
    pending: Optional[Any]
    final_answer: Optional[FinalAnswer]
    failure: Optional[RunFailure]


class AgentOrchestrator:
    """Drives the step loop across one or more agents using LangGraph.

    The orchestrator owns memory, scratchpad and orchestration state for the
    duration of a run. Agents only return requests; every mutation is
    committed here.
    """

    def __init__(
        self,
        agents: Sequence[BaseSubAgent],
        entry_agent_name: Optional[str] = None,
        settings: Optional[RuntimeSettings] = None,
        max_steps: Optional[int] = None,
        memory_factory: Optional[Callable[[], ConversationMemory]] = None,
        tool_executor: Optional[ToolExecutor] = None,
    ):
        if not agents:
            raise ValueError("At least one agent is required")

        self.settings = settings or get_settings()
        self.agents: Dict[str, BaseSubAgent] = {}
        for agent in agents:
            if agent.name in self.agents:
                raise DuplicateAgentName(agent.name)
            # Agents are immutable once orchestrated
            agent.tools.freeze()
            self.agents[agent.name] = agent

        self.entry_agent_name = entry_agent_name or agents[0].name
        if self.entry_agent_name not in self.agents:
            raise UnknownAgent(self.entry_agent_name)

        self.max_steps = max_steps or self.settings.max_steps
        if self.max_steps <= 0:
            raise ValueError("max_steps must be positive")
        self.memory_factory = memory_factory or self._default_memory
        self.tool_executor = tool_executor or ToolExecutor(default_timeout=self.settings.tool_timeout_seconds)
        self.workflow = self._create_workflow()

    @property
    def agent_names(self) -> List[str]:
        return list(self.agents)

    def get_agent(self, name: str) -> BaseSubAgent:
        agent = self.agents.get(name)
        if agent is None:
            raise UnknownAgent(name)
        return agent

    def _default_memory(self) -> ConversationMemory:
        return ConversationMemory(
            token_limit=self.settings.token_limit,
            short_term_token_limit_ratio=self.settings.short_term_token_limit_ratio,
        )

    def _create_workflow(self):
        """Create the agent step graph"""

        workflow = StateGraph(WorkflowState)

        workflow.add_node("agent_step", self.agent_step_node)
        workflow.add_node("tool_dispatch", self.tool_dispatch_node)
        workflow.add_node("handoff", self.handoff_node)
        workflow.add_node("finalize", self.finalize_node)
        workflow.add_node("error_handler", self.error_handler_node)

        workflow.set_entry_point("agent_step")

        workflow.add_conditional_edges(
            "agent_step",
            self.route_agent_response,
            {
                "tool_calls": "tool_dispatch",
                "handoff": "handoff",
                "final_answer": "finalize",
                "error": "error_handler",
            }
        )
        workflow.add_conditional_edges(
            "tool_dispatch",
            self.route_after_commit,
            {"continue": "agent_step", "error": "error_handler"}
        )
        workflow.add_conditional_edges(
            "handoff",
            self.route_after_commit,
            {"continue": "agent_step", "error": "error_handler"}
        )
        workflow.add_edge("finalize", END)
        workflow.add_edge("error_handler", END)

        return workflow.compile()

    @traced("agent_run")
    async def run(
        self,
        initial_message: str,
        entry_agent_name: Optional[str] = None,
        memory: Optional[ConversationMemory] = None,
        cancel_event: Optional[asyncio.Event] = None,
        run_id: Optional[str] = None,
    ) -> RunResult:
        """Run agents on a user message until a final answer or a failure.

        ``memory`` may carry history from an earlier run; a fresh scratchpad
        is always used. Structural failures are reported on the returned
        result together with the state at failure time.
        """

        if not initial_message or not initial_message.strip():
            raise ValueError("initial_message must not be empty")

        entry = entry_agent_name or self.entry_agent_name
        if entry not in self.agents:
            raise UnknownAgent(entry)

        run_id = run_id or f"run_{uuid.uuid4().hex[:12]}"
        memory = memory if memory is not None else self.memory_factory()
        memory.append(HumanMessage(content=initial_message))

        initial_state: WorkflowState = {
            "memory": memory,
            "scratchpad": Scratchpad(),
            "orchestration": OrchestrationState(current_agent_name=entry, agents=self.agent_names),
            "run": RunContext(
                run_id=run_id,
                max_steps=self.max_steps,
                model_timeout=self.settings.model_timeout_seconds,
                cancel_event=cancel_event,
            ),
            "pending": None,
            "final_answer": None,
            "failure": None,
        }

        with structlog.contextvars.bound_contextvars(run_id=run_id):
            logger.info("Starting run", entry_agent=entry, agents=self.agent_names, max_steps=self.max_steps)
            started = time.perf_counter()
            # Every step visits at most two nodes, so the step guard fires first
            final_state = await self.workflow.ainvoke(
                initial_state,
                config={"recursion_limit": self.max_steps * 2 + 10},
            )

            result = self._build_result(final_state)
            metrics.record_latency("run", (time.perf_counter() - started) * 1000)
            metrics.increment_counter("runs", tags={"status": result.status.value})
            logger.info(
                "Run finished",
                status=result.status.value,
                steps=result.state.step_count,
                failure=result.failure.kind.value if result.failure else None,
            )
            return result

    async def agent_step_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Ask the current agent for its next move"""

        run = state["run"]
        orchestration = state["orchestration"]
        memory = state["memory"]

        if run.cancelled:
            return self._fail(Cancelled())
        if orchestration.step_count >= run.max_steps:
            return self._fail(StepLimitExceeded(run.max_steps))

        if memory.needs_compaction():
            # Summarizing is a model call and shares the model timeout
            block = await memory.compact(summarize_timeout=run.model_timeout)
            if block is not None:
                run_logger.log_context_update(
                    run.run_id, "memory", "compact",
                    {"memory_cursor": memory.memory_cursor, "block_tokens": block.token_count},
                )
            if run.cancelled:
                return self._fail(Cancelled())

        agent = self.agents[orchestration.current_agent_name]
        orchestration.step_count += 1
        orchestration.agent_chain_trace.append(agent.name)

        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._invoke_agent(agent, memory, state["scratchpad"], orchestration.agents),
                timeout=run.model_timeout,
            )
        except asyncio.TimeoutError:
            return self._fail(ProviderError(
                f"Model invocation for agent '{agent.name}' timed out after {run.model_timeout}s",
                retryable=True,
            ))
        except (InvalidModelResponse, ProviderError) as e:
            return self._fail(e)
        except Exception as e:
            logger.exception("Model adapter failed", agent_name=agent.name)
            return self._fail(ProviderError(f"{type(e).__name__}: {e}", retryable=False, cause=e))

        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_latency("agent_step", duration_ms, {"agent": agent.name})
        run_logger.log_agent_step(
            run.run_id, agent.name, orchestration.step_count,
            response_kind=response.kind, duration_ms=duration_ms,
        )
        return {"pending": response, "orchestration": orchestration}

    @traced("agent_step")
    async def _invoke_agent(self, agent: BaseSubAgent, memory: ConversationMemory, scratchpad: Scratchpad, agents: List[str]):
        with structlog.contextvars.bound_contextvars(agent_name=agent.name):
            return await agent.step(memory, scratchpad, agents)

    async def tool_dispatch_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Dispatch the requested tool calls and commit results in request order"""

        request: ToolCallRequest = state["pending"]
        run = state["run"]
        orchestration = state["orchestration"]
        agent = self.agents[orchestration.current_agent_name]

        results = await self._dispatch_tools(agent, request)

        # Nothing from an in-flight batch is committed once cancelled
        if run.cancelled:
            return self._fail(Cancelled())
        if all(result.timed_out for result in results):
            return self._fail(ToolBatchTimeout([result.tool_name for result in results]))

        memory = state["memory"]
        scratchpad = state["scratchpad"]
        memory.append(AIMessage(
            content=request.content,
            tool_calls=[
                {"name": call.name, "args": call.arguments, "id": call.id}
                for call in request.calls
            ],
        ))
        for result in results:
            memory.append(ToolMessage(
                content=result.to_content(),
                tool_call_id=result.call_id,
                name=result.tool_name,
                status="success" if result.success else "error",
            ))
            scratchpad.record_tool_result(agent.name, result)
            run_logger.log_tool_execution(
                result.tool_name,
                run.run_id,
                input_data=result.arguments,
                output_data=result.to_content() if result.success else None,
                duration_ms=result.duration_ms,
                success=result.success,
                error=result.error.message if result.error else None,
            )
            if result.duration_ms is not None:
                metrics.record_latency("tool", result.duration_ms, {"tool": result.tool_name})

        return {"pending": None, "memory": memory, "scratchpad": scratchpad}

    @traced("tool_batch")
    async def _dispatch_tools(self, agent: BaseSubAgent, request: ToolCallRequest) -> List[ToolResult]:
        return await self.tool_executor.execute_batch(agent.tools, request.calls)

    async def handoff_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Transfer control to the requested agent"""

        request: HandoffRequest = state["pending"]
        orchestration = state["orchestration"]

        if request.target not in orchestration.agents:
            return self._fail(UnknownAgent(request.target))

        from_agent = orchestration.current_agent_name
        if request.target not in self.agents[from_agent].handoff_targets(orchestration.agents):
            return self._fail(InvalidModelResponse(
                f"Agent '{from_agent}' may not hand off to '{request.target}'"
            ))
        orchestration.request_handoff(request.target)
        state["scratchpad"].record_transition(from_agent, request.target, request.reason)
        orchestration.complete_handoff()

        run_logger.log_workflow_transition(
            state["run"].run_id,
            from_node=from_agent,
            to_node=request.target,
            condition="handoff",
            state_summary={"step": orchestration.step_count},
        )
        return {"pending": None, "orchestration": orchestration}

    async def finalize_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Commit the final answer and complete the run"""

        answer: FinalAnswer = state["pending"]
        orchestration = state["orchestration"]

        state["memory"].append(AIMessage(content=answer.content))
        orchestration.status = RunStatus.COMPLETED
        return {"pending": None, "final_answer": answer, "orchestration": orchestration}

    async def error_handler_node(self, state: WorkflowState) -> Dict[str, Any]:
        """Mark the run failed"""

        failure = state["failure"]
        orchestration = state["orchestration"]
        orchestration.status = RunStatus.FAILED

        logger.error(
            "Run failed",
            kind=failure.kind.value,
            error=failure.message,
            agent_name=orchestration.current_agent_name,
            step=orchestration.step_count,
        )
        return {"orchestration": orchestration}

    def route_agent_response(self, state: WorkflowState) -> Literal["tool_calls", "handoff", "final_answer", "error"]:
        """Route on the kind of response the agent produced"""

        if state.get("failure"):
            return "error"
        return state["pending"].kind

    def route_after_commit(self, state: WorkflowState) -> Literal["continue", "error"]:
        return "error" if state.get("failure") else "continue"

    @staticmethod
    def _fail(error: AgentLoopError) -> Dict[str, Any]:
        details: Dict[str, Any] = {}
        if isinstance(error, UnknownAgent):
            details["agent_name"] = error.agent_name
        elif isinstance(error, StepLimitExceeded):
            details["max_steps"] = error.max_steps
        elif isinstance(error, ProviderError):
            details["retryable"] = error.retryable
        elif isinstance(error, ToolBatchTimeout):
            details["tool_names"] = error.tool_names

        return {
            "pending": None,
            "failure": RunFailure(kind=error.kind, message=str(error), details=details),
        }

    def _build_result(self, state: Dict[str, Any]) -> RunResult:
        orchestration: OrchestrationState = state["orchestration"]
        return RunResult(
            run_id=state["run"].run_id,
            status=orchestration.status,
            final_answer=state.get("final_answer"),
            failure=state.get("failure"),
            state=RunStateSnapshot(
                memory=state["memory"].snapshot(),
                scratchpad=list(state["scratchpad"].entries),
                current_agent_name=orchestration.current_agent_name,
                agents=list(orchestration.agents),
                next_agent_name=orchestration.next_agent_name,
                step_count=orchestration.step_count,
                agent_chain_trace=list(orchestration.agent_chain_trace),
            ),
        )
