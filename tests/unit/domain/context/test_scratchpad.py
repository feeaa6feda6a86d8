"""Tests for the per-run scratchpad."""

from agentloop.domain.context.scratchpad import Scratchpad
from agentloop.domain.models.agent_state import ToolError, ToolResult


def test_records_tool_results_in_order():
    pad = Scratchpad()
    pad.record_tool_result("math", ToolResult(call_id="c1", tool_name="sumNumbers", arguments={"a": 5, "b": 5}, success=True, output=10))
    pad.record_tool_result("math", ToolResult(
        call_id="c2",
        tool_name="divideNumbers",
        arguments={"a": 1, "b": 0},
        success=False,
        error=ToolError(kind="tool_execution", message="division by zero"),
    ))

    assert [e.data["call_id"] for e in pad.tool_results()] == ["c1", "c2"]
    assert pad.entries[0].content == "sumNumbers(a=5, b=5) -> 10"
    assert pad.entries[1].content.endswith("Error (tool_execution): division by zero")
    assert pad.entries[1].data["error"]["kind"] == "tool_execution"


def test_records_transitions():
    pad = Scratchpad()
    entry = pad.record_transition("triage", "math", "needs arithmetic")

    assert entry.kind == "transition"
    assert entry.content == "Handoff from triage to math: needs arithmetic"
    assert pad.tool_results() == []


def test_render_and_clear():
    pad = Scratchpad()
    pad.record_transition("triage", "math")

    assert pad.render() == "[triage] Handoff from triage to math"
    pad.clear()
    assert len(pad) == 0
    assert pad.render() == ""
