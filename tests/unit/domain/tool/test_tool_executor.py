"""Unit tests for ToolExecutor."""

import asyncio

import pytest

from agentloop.domain.models.agent_state import ToolCall
from agentloop.domain.tool.tool_executor import ToolExecutor
from agentloop.domain.tool.tool_registry import Tool, ToolRegistry


def _sleeper(name: str, delay: float, completed: list) -> Tool:
    async def execute():
        await asyncio.sleep(delay)
        completed.append(name)
        return name

    return Tool(name=name, execute=execute)


@pytest.mark.asyncio
async def test_results_follow_request_order_not_completion_order() -> None:
    completed: list = []
    registry = ToolRegistry([
        _sleeper("slow", 0.15, completed),
        _sleeper("fast", 0.0, completed),
        _sleeper("medium", 0.05, completed),
    ])
    calls = [ToolCall(name="slow"), ToolCall(name="fast"), ToolCall(name="medium")]

    results = await ToolExecutor().execute_batch(registry, calls)

    assert completed == ["fast", "medium", "slow"]
    assert [r.tool_name for r in results] == ["slow", "fast", "medium"]
    assert [r.call_id for r in results] == [c.id for c in calls]


@pytest.mark.asyncio
async def test_calls_in_a_batch_run_concurrently() -> None:
    completed: list = []
    registry = ToolRegistry([_sleeper(f"t{i}", 0.1, completed) for i in range(5)])
    calls = [ToolCall(name=f"t{i}") for i in range(5)]

    loop = asyncio.get_running_loop()
    started = loop.time()
    await ToolExecutor().execute_batch(registry, calls)

    assert loop.time() - started < 0.4


@pytest.mark.asyncio
async def test_timeout_becomes_tool_execution_error() -> None:
    registry = ToolRegistry([_sleeper("slow", 1.0, [])])

    results = await ToolExecutor(default_timeout=0.05).execute_batch(registry, [ToolCall(name="slow")])

    assert results[0].success is False
    assert results[0].timed_out is True
    assert results[0].error.kind == "tool_execution"


@pytest.mark.asyncio
async def test_per_tool_timeout_overrides_default() -> None:
    async def slow():
        await asyncio.sleep(0.5)

    registry = ToolRegistry([Tool(name="slow", execute=slow, timeout=0.05)])

    results = await ToolExecutor(default_timeout=10).execute_batch(registry, [ToolCall(name="slow")])

    assert results[0].timed_out is True


@pytest.mark.asyncio
async def test_lookup_and_validation_failures_become_results(math_tools) -> None:
    registry = ToolRegistry(math_tools)
    calls = [
        ToolCall(name="multiplyNumbers", arguments={"a": 1, "b": 2}),
        ToolCall(name="sumNumbers", arguments={"a": 1}),
        ToolCall(name="sumNumbers", arguments={"a": 1, "b": 2}),
    ]

    results = await ToolExecutor().execute_batch(registry, calls)

    assert results[0].error.kind == "tool_not_found"
    assert results[1].error.kind == "schema_validation"
    assert results[1].error.field == "b"
    assert results[2].success is True
    assert results[2].output == 3
