from typing import Dict, List, Any, Optional, Callable, Iterable, Union
import asyncio
import inspect
import time

import structlog
from pydantic import BaseModel, Field, field_validator

from agentloop.domain.errors import DuplicateToolName, ToolNotFound, ToolExecutionError
from agentloop.domain.models.agent_state import ToolError, ToolResult
from .schema import ObjectParameter, parameters_from_dict, parse_parameter
from .tool_validator import ToolParameterValidator

logger = structlog.get_logger(__name__)


class Tool(BaseModel):
    """A callable capability the model can request"""
    name: str = Field(pattern=r"^[A-Za-z0-9_-]{1,64}$", description="Unique within an agent's registry")
    description: str = ""
    parameters: ObjectParameter = Field(default_factory=ObjectParameter)
    execute: Callable[..., Any] = Field(exclude=True, description="Called with validated arguments as keywords")
    timeout: Optional[float] = Field(None, gt=0, description="Overrides the executor's default timeout")

    @field_validator("parameters", mode="before")
    @classmethod
    def _parse_parameters(cls, value: Any) -> Any:
        if isinstance(value, dict):
            if value.get("type") == "object":
                return parse_parameter(value)
            return parameters_from_dict(value)
        return value

    def to_function_spec(self) -> Dict[str, Any]:
        """OpenAI-style function declaration used for provider tool binding"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.to_json_schema(),
            },
        }


class ToolRegistry:
    """Registry for the tools owned by one agent"""

    def __init__(self, tools: Iterable[Tool] = ()):
        self.tools: Dict[str, Tool] = {}
        self._frozen = False
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> Tool:
        """Register a new tool"""

        if self._frozen:
            raise RuntimeError(f"Cannot register '{tool.name}': registry is frozen")
        if tool.name in self.tools:
            raise DuplicateToolName(tool.name)

        self.tools[tool.name] = tool
        return tool

    def freeze(self):
        """Reject further registrations; the registry becomes read-only"""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Tool:
        """Get a tool by name"""

        tool = self.tools.get(name)
        if tool is None:
            raise ToolNotFound(name)
        return tool

    def list_tools(self) -> List[Tool]:
        return list(self.tools.values())

    def names(self) -> List[str]:
        return list(self.tools)

    def __contains__(self, name: str) -> bool:
        return name in self.tools

    def __len__(self) -> int:
        return len(self.tools)

    async def invoke(
        self,
        name: str,
        raw_arguments: Union[Dict[str, Any], str, None],
        call_id: str = "",
    ) -> ToolResult:
        """Validate arguments and run a tool.

        Lookup and validation failures raise ``ToolNotFound`` and
        ``SchemaValidationError``. A failure inside ``execute`` is captured
        and returned as an unsuccessful ``ToolResult``.
        """

        tool = self.get(name)
        arguments = ToolParameterValidator.validate_tool_call(tool.parameters, raw_arguments)

        started = time.perf_counter()
        try:
            output = await _call_execute(tool.execute, arguments)
        except Exception as e:
            error = ToolExecutionError(tool.name, cause=e)
            logger.warning("Tool execution failed", tool_name=tool.name, call_id=call_id, error=str(error))
            return ToolResult(
                call_id=call_id,
                tool_name=tool.name,
                arguments=arguments,
                success=False,
                error=ToolError(kind="tool_execution", message=str(error)),
                duration_ms=(time.perf_counter() - started) * 1000,
            )

        return ToolResult(
            call_id=call_id,
            tool_name=tool.name,
            arguments=arguments,
            success=True,
            output=output,
            duration_ms=(time.perf_counter() - started) * 1000,
        )


async def _call_execute(execute: Callable[..., Any], arguments: Dict[str, Any]) -> Any:
    if inspect.iscoroutinefunction(execute):
        return await execute(**arguments)

    result = await asyncio.to_thread(execute, **arguments)
    if inspect.isawaitable(result):
        result = await result
    return result
