from typing import Iterable

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage


def message_text(message: BaseMessage) -> str:
    """Plain text of a message whose content may be a list of parts"""

    content = message.content
    if isinstance(content, str):
        return content

    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


def render_transcript(messages: Iterable[BaseMessage]) -> str:
    """One "role: content" line per message, tool calls included"""

    lines = []
    for message in messages:
        text = message_text(message).strip()
        if isinstance(message, ToolMessage):
            lines.append(f"tool[{message.name or message.tool_call_id}]: {text}")
            continue
        if isinstance(message, AIMessage) and message.tool_calls:
            calls = ", ".join(f"{call['name']}({call['args']})" for call in message.tool_calls)
            text = f"{text} [calls: {calls}]" if text else f"[calls: {calls}]"
        lines.append(f"{message.type}: {text}")
    return "\n".join(lines)
