from typing import Optional
from enum import Enum


class ErrorKind(str, Enum):
    """Terminal failure kinds recorded on a failed run"""
    UNKNOWN_AGENT = "unknown_agent"
    INVALID_MODEL_RESPONSE = "invalid_model_response"
    STEP_LIMIT_EXCEEDED = "step_limit_exceeded"
    PROVIDER_ERROR = "provider_error"
    CANCELLED = "cancelled"
    TOOL_BATCH_TIMEOUT = "tool_batch_timeout"


class AgentLoopError(Exception):
    """Base class for all runtime errors"""
    
    kind: Optional[ErrorKind] = None


class DuplicateToolName(AgentLoopError, ValueError):
    """A tool with the same name is already registered"""
    
    def __init__(self, tool_name: str):
        super().__init__(f"Tool '{tool_name}' is already registered")
        self.tool_name = tool_name


class DuplicateAgentName(AgentLoopError, ValueError):
    """Two agents share a name"""
    
    def __init__(self, agent_name: str):
        super().__init__(f"Agent '{agent_name}' is already registered")
        self.agent_name = agent_name


class ToolNotFound(AgentLoopError, LookupError):
    """No tool with the requested name in the agent's registry"""
    
    def __init__(self, tool_name: str):
        super().__init__(f"Tool '{tool_name}' is not registered")
        self.tool_name = tool_name


class SchemaValidationError(AgentLoopError, ValueError):
    """Tool arguments do not match the declared parameter schema"""
    
    def __init__(self, field: str, message: str):
        location = field or "<arguments>"
        super().__init__(f"{location}: {message}")
        self.field = field
        self.message = message


class ToolExecutionError(AgentLoopError):
    """A tool's execute capability failed or timed out.

    Never raised across the orchestration boundary; it is carried on a
    ToolResult so the model can react to it.
    """
    
    def __init__(self, tool_name: str, cause: Optional[BaseException] = None, timed_out: bool = False):
        if timed_out:
            detail = "timed out"
        else:
            detail = f"{type(cause).__name__}: {cause}" if cause is not None else "failed"
        super().__init__(f"Tool '{tool_name}' {detail}")
        self.tool_name = tool_name
        self.cause = cause
        self.timed_out = timed_out


class InvalidModelResponse(AgentLoopError):
    """Model output could not be parsed into a tool call, handoff or final answer"""
    
    kind = ErrorKind.INVALID_MODEL_RESPONSE


class UnknownAgent(AgentLoopError, LookupError):
    """Handoff or entry target is not a known agent"""
    
    kind = ErrorKind.UNKNOWN_AGENT
    
    def __init__(self, agent_name: str):
        super().__init__(f"Unknown agent '{agent_name}'")
        self.agent_name = agent_name


class StepLimitExceeded(AgentLoopError):
    """The run used up its step budget without a final answer"""
    
    kind = ErrorKind.STEP_LIMIT_EXCEEDED
    
    def __init__(self, max_steps: int):
        super().__init__(f"Run exceeded the step limit of {max_steps}")
        self.max_steps = max_steps


class ProviderError(AgentLoopError):
    """Model provider failure.

    ``retryable`` marks rate limits and transient network errors. A retryable
    error that reaches the orchestrator has already exhausted the adapter's
    retries.
    """
    
    kind = ErrorKind.PROVIDER_ERROR
    
    def __init__(self, message: str, retryable: bool = False, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.retryable = retryable
        self.cause = cause


class Cancelled(AgentLoopError):
    """The run was cancelled by an external signal"""
    
    kind = ErrorKind.CANCELLED
    
    def __init__(self, message: str = "Run cancelled"):
        super().__init__(message)


class ToolBatchTimeout(AgentLoopError):
    """Every tool call in a batch timed out"""
    
    kind = ErrorKind.TOOL_BATCH_TIMEOUT
    
    def __init__(self, tool_names):
        names = ", ".join(tool_names)
        super().__init__(f"Every tool call in the batch timed out: {names}")
        self.tool_names = list(tool_names)
