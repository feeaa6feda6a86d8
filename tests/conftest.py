"""Shared test fixtures for the agentloop test suite."""

import pytest

from agentloop.domain.context.memory.transcript import message_text
from agentloop.domain.tool.tool_registry import Tool
from agentloop.infrastructure.config.settings import RuntimeSettings


def _word_count(message) -> int:
    return max(1, len(message_text(message).split()))


@pytest.fixture
def word_counter():
    """Deterministic token counter: one token per word, at least one per message."""
    return _word_count


@pytest.fixture
def settings() -> RuntimeSettings:
    return RuntimeSettings(
        max_steps=10,
        model_timeout_seconds=5,
        tool_timeout_seconds=2,
        token_limit=4000,
        provider_backoff_seconds=0,
    )


@pytest.fixture
def math_tools() -> list[Tool]:
    def sum_numbers(a, b):
        return a + b

    def divide_numbers(a, b):
        return a / b

    number_pair = {
        "a": {"type": "number", "required": True},
        "b": {"type": "number", "required": True},
    }
    return [
        Tool(name="sumNumbers", description="Add two numbers", parameters=number_pair, execute=sum_numbers),
        Tool(name="divideNumbers", description="Divide a by b", parameters=number_pair, execute=divide_numbers),
    ]
