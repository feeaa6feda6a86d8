from typing import Any, Dict, List, Optional

from agentloop.domain.models.agent_state import ScratchpadEntry, ToolResult


class Scratchpad:
    """Ephemeral working memory for a single run.

    Holds tool outputs and agent transitions produced during the run. A new
    scratchpad is created for every run and nothing here is folded into
    long-term memory.
    """

    def __init__(self):
        self.entries: List[ScratchpadEntry] = []

    def record_tool_result(self, agent_name: str, result: ToolResult) -> ScratchpadEntry:
        entry = ScratchpadEntry(
            kind="tool_result",
            agent_name=agent_name,
            content=f"{result.tool_name}({_format_arguments(result.arguments)}) -> {result.to_content()}",
            data={
                "call_id": result.call_id,
                "tool_name": result.tool_name,
                "arguments": result.arguments,
                "success": result.success,
                "output": result.output,
                "error": result.error.model_dump() if result.error else None,
            },
        )
        self.entries.append(entry)
        return entry

    def record_transition(self, from_agent: str, to_agent: str, reason: Optional[str] = None) -> ScratchpadEntry:
        content = f"Handoff from {from_agent} to {to_agent}"
        if reason:
            content += f": {reason}"
        entry = ScratchpadEntry(
            kind="transition",
            agent_name=from_agent,
            content=content,
            data={"from": from_agent, "to": to_agent, "reason": reason},
        )
        self.entries.append(entry)
        return entry

    def tool_results(self) -> List[ScratchpadEntry]:
        return [entry for entry in self.entries if entry.kind == "tool_result"]

    def render(self) -> str:
        """Prompt text listing the run's intermediate results in order"""
        return "\n".join(f"[{entry.agent_name}] {entry.content}" for entry in self.entries)

    def clear(self):
        self.entries.clear()

    def __len__(self) -> int:
        return len(self.entries)


def _format_arguments(arguments: Dict[str, Any]) -> str:
    return ", ".join(f"{key}={value!r}" for key, value in arguments.items())
