# Concurrent batch dispatch with per-call timeouts
from typing import List, Optional
import asyncio
import time

import structlog

from agentloop.domain.errors import SchemaValidationError, ToolExecutionError, ToolNotFound
from agentloop.domain.models.agent_state import ToolCall, ToolError, ToolResult
from .tool_registry import ToolRegistry

logger = structlog.get_logger(__name__)


class ToolExecutor:
    """Dispatches the tool calls of one model step"""

    def __init__(self, default_timeout: Optional[float] = 30.0):
        self.default_timeout = default_timeout

    async def execute_batch(self, registry: ToolRegistry, calls: List[ToolCall]) -> List[ToolResult]:
        """Run every call concurrently; results come back in request order"""

        results = await asyncio.gather(
            *(self.execute_tool(registry, call) for call in calls)
        )
        return list(results)

    async def execute_tool(self, registry: ToolRegistry, call: ToolCall) -> ToolResult:
        """Run one call, turning every tool-level failure into a result"""

        timeout = self._timeout_for(registry, call.name)
        started = time.perf_counter()

        try:
            return await asyncio.wait_for(
                registry.invoke(call.name, call.arguments, call_id=call.id),
                timeout=timeout,
            )
        except ToolNotFound as e:
            return self._error_result(call, "tool_not_found", str(e), started)
        except SchemaValidationError as e:
            return self._error_result(call, "schema_validation", str(e), started, field=e.field)
        except asyncio.TimeoutError:
            error = ToolExecutionError(call.name, timed_out=True)
            logger.warning("Tool call timed out", tool_name=call.name, call_id=call.id, timeout=timeout)
            return self._error_result(call, "tool_execution", f"{error} after {timeout}s", started, timed_out=True)

    def _timeout_for(self, registry: ToolRegistry, name: str) -> Optional[float]:
        if name in registry:
            tool = registry.get(name)
            if tool.timeout is not None:
                return tool.timeout
        return self.default_timeout

    @staticmethod
    def _error_result(
        call: ToolCall,
        kind: str,
        message: str,
        started: float,
        field: Optional[str] = None,
        timed_out: bool = False,
    ) -> ToolResult:
        return ToolResult(
            call_id=call.id,
            tool_name=call.name,
            arguments=call.arguments,
            success=False,
            error=ToolError(kind=kind, message=message, field=field, timed_out=timed_out),
            duration_ms=(time.perf_counter() - started) * 1000,
        )
