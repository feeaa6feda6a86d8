"""Tests for ConversationMemory: budget, compaction and adapters."""

import asyncio

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage

from agentloop.domain.context.memory.adapters import ContextAdapter, SummarizingAdapter
from agentloop.domain.context.memory.conversation_memory import BLOCK_PREFIX, ConversationMemory


def words(count: int, word: str = "word") -> str:
    return " ".join([word] * count)


class TagAdapter(ContextAdapter):
    def __init__(self, tag: str, seen: list):
        self.tag = tag
        self.seen = seen

    async def apply(self, entries):
        self.seen.append(self.tag)
        return entries + [SystemMessage(content=self.tag)]


class BrokenAdapter(ContextAdapter):
    async def apply(self, entries):
        raise RuntimeError("index unavailable")


class FixedSummarizer(SummarizingAdapter):
    def __init__(self, summary: str):
        self.summary = summary
        self.calls = []

    async def summarize(self, entries):
        self.calls.append(list(entries))
        return self.summary


class FailingSummarizer(SummarizingAdapter):
    async def summarize(self, entries):
        raise RuntimeError("model offline")


class SlowSummarizer(SummarizingAdapter):
    async def summarize(self, entries):
        await asyncio.sleep(3600)
        return "never"


@pytest.fixture
def memory(word_counter):
    return ConversationMemory(token_limit=20, short_term_token_limit_ratio=0.5, token_counter=word_counter)


def fill(memory, count: int, size: int = 3):
    for i in range(count):
        memory.append(HumanMessage(content=words(size, f"m{i}")))


class TestBudget:
    def test_limits_split_by_ratio(self, memory):
        assert memory.short_term_token_limit == 10
        assert memory.long_term_token_limit == 10

    @pytest.mark.asyncio
    async def test_context_never_exceeds_token_limit(self, memory):
        fill(memory, 10)

        context = await memory.assemble_context()

        assert memory.count_tokens(context) <= memory.token_limit
        assert [m.content for m in context] == [words(3, f"m{i}") for i in (7, 8, 9)]

    @pytest.mark.asyncio
    async def test_assembly_is_idempotent_and_does_not_mutate(self, memory):
        fill(memory, 6)
        before = list(memory.messages)

        first = await memory.assemble_context()
        second = await memory.assemble_context()

        assert first == second
        assert memory.messages == before
        assert memory.memory_cursor == 0

    @pytest.mark.asyncio
    async def test_window_never_starts_with_tool_message(self, memory):
        memory.append(HumanMessage(content=words(8)))
        memory.append(AIMessage(
            content=words(9, "thinking"),
            tool_calls=[{"name": "sumNumbers", "args": {"a": 1, "b": 2}, "id": "call_1"}],
        ))
        memory.append(ToolMessage(content="3", tool_call_id="call_1", name="sumNumbers"))
        memory.append(AIMessage(content="The sum is three"))

        context = await memory.assemble_context()

        assert context
        assert not isinstance(context[0], ToolMessage)
        assert context[-1].content == "The sum is three"
        assert any(isinstance(m, ToolMessage) for m in context)
        assert memory.count_tokens(context) <= memory.token_limit


class TestCompaction:
    @pytest.mark.asyncio
    async def test_nothing_to_compact_when_tail_fits(self, memory):
        fill(memory, 2)

        assert memory.needs_compaction() is False
        assert await memory.compact() is None
        assert memory.memory_cursor == 0

    @pytest.mark.asyncio
    async def test_compact_folds_oldest_messages_into_block(self, memory):
        fill(memory, 10)
        assert memory.needs_compaction() is True

        block = await memory.compact()

        assert block is not None
        assert (block.start_index, block.end_index) == (0, 7)
        assert memory.memory_cursor == 7
        assert memory.needs_compaction() is False
        assert block.token_count <= memory.long_term_token_limit
        assert len(memory.messages) == 10

    @pytest.mark.asyncio
    async def test_block_is_rendered_before_recent_messages(self, memory):
        fill(memory, 10)
        await memory.compact()

        context = await memory.assemble_context()

        assert isinstance(context[0], SystemMessage)
        assert context[0].content.startswith(BLOCK_PREFIX)
        assert [m.content for m in context[1:]] == [words(3, f"m{i}") for i in (7, 8, 9)]
        assert memory.count_tokens(context) <= memory.token_limit

    @pytest.mark.asyncio
    async def test_cursor_only_moves_forward(self, memory):
        cursors = []
        for i in range(12):
            memory.append(HumanMessage(content=words(3, f"m{i}")))
            if memory.needs_compaction():
                await memory.compact()
            cursors.append(memory.memory_cursor)

        assert cursors == sorted(cursors)
        assert cursors[-1] > 0
        for previous, block in zip(memory.memory_blocks, memory.memory_blocks[1:]):
            assert block.start_index == previous.end_index

    @pytest.mark.asyncio
    async def test_newest_message_is_never_folded(self, memory):
        memory.append(HumanMessage(content=words(3)))
        memory.append(HumanMessage(content=words(30, "long")))

        await memory.compact()

        assert memory.memory_cursor == 1

    @pytest.mark.asyncio
    async def test_compaction_does_not_split_tool_call_from_result(self, memory):
        memory.append(HumanMessage(content=words(8)))
        memory.append(AIMessage(
            content=words(9, "thinking"),
            tool_calls=[{"name": "sumNumbers", "args": {"a": 1, "b": 2}, "id": "call_1"}],
        ))
        memory.append(ToolMessage(content="3", tool_call_id="call_1", name="sumNumbers"))
        memory.append(AIMessage(content="The sum is three"))

        await memory.compact()

        assert memory.memory_cursor == 1
        assert memory.messages[memory.memory_cursor].tool_calls[0]["id"] == "call_1"

    @pytest.mark.asyncio
    async def test_newest_tool_result_stays_with_its_call(self, memory):
        memory.append(HumanMessage(content="hi"))
        memory.append(AIMessage(
            content="",
            tool_calls=[{"name": "lookup", "args": {}, "id": "call_1"}],
        ))
        memory.append(ToolMessage(content=words(10, "result"), tool_call_id="call_1", name="lookup"))

        await memory.compact()
        context = await memory.assemble_context()

        assert memory.memory_cursor == 1
        assert [type(m) for m in context] == [SystemMessage, AIMessage, ToolMessage]
        assert context[0].content == BLOCK_PREFIX + "human: hi"
        assert context[-1].content == words(10, "result")
        assert memory.count_tokens(context) <= memory.token_limit

    @pytest.mark.asyncio
    async def test_lone_call_with_results_is_not_folded(self, memory):
        memory.append(AIMessage(
            content="",
            tool_calls=[{"name": "lookup", "args": {}, "id": "call_1"}],
        ))
        memory.append(ToolMessage(content=words(12), tool_call_id="call_1", name="lookup"))

        assert await memory.compact() is None
        assert memory.memory_cursor == 0

    @pytest.mark.asyncio
    async def test_first_summarizing_adapter_produces_block(self, memory):
        summarizer = FixedSummarizer("user counted to ten")
        memory.register_adapter("summary", summarizer)
        fill(memory, 10)

        block = await memory.compact()

        assert block.content == "user counted to ten"
        assert len(summarizer.calls[0]) == 7

    @pytest.mark.asyncio
    async def test_summarizer_failure_falls_back_to_transcript(self, memory):
        memory.register_adapter("summary", FailingSummarizer())
        fill(memory, 10)

        block = await memory.compact()

        assert block.content.startswith("human: m0")
        assert any("model offline" in warning for warning in memory.warnings)

    @pytest.mark.asyncio
    async def test_long_block_is_truncated_to_long_term_budget(self, memory):
        memory.register_adapter("summary", FixedSummarizer(words(50, "detail")))
        fill(memory, 10)

        block = await memory.compact()

        assert block.content.endswith("...")
        assert block.token_count <= memory.long_term_token_limit


    @pytest.mark.asyncio
    async def test_slow_summarizer_is_abandoned_after_timeout(self, memory):
        memory.register_adapter("summary", SlowSummarizer())
        fill(memory, 10)

        block = await asyncio.wait_for(memory.compact(summarize_timeout=0.05), timeout=5)

        assert block.content.startswith("human: m0")
        assert any("timed out" in warning for warning in memory.warnings)


class TestAdapters:
    @pytest.mark.asyncio
    async def test_adapters_run_in_registration_order(self, memory):
        seen = []
        memory.register_adapter("first", TagAdapter("first", seen))
        memory.register_adapter("second", TagAdapter("second", seen))
        fill(memory, 1)

        context = await memory.assemble_context()

        assert seen == ["first", "second"]
        assert [m.content for m in context[-2:]] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_failing_adapter_is_skipped_with_warning(self, memory):
        seen = []
        memory.register_adapter("broken", BrokenAdapter())
        memory.register_adapter("tag", TagAdapter("tag", seen))
        fill(memory, 1)

        context = await memory.assemble_context()

        assert seen == ["tag"]
        assert context[-1].content == "tag"
        assert len(memory.warnings) == 1
        assert "broken" in memory.warnings[0]

    @pytest.mark.asyncio
    async def test_adapter_output_is_trimmed_to_budget(self, memory):
        class Flood(ContextAdapter):
            async def apply(self, entries):
                return [SystemMessage(content=words(15, "noise"))] + entries

        memory.register_adapter("flood", Flood())
        fill(memory, 3)

        context = await memory.assemble_context()

        assert memory.count_tokens(context) <= memory.token_limit

    def test_duplicate_adapter_name_rejected(self, memory):
        memory.register_adapter("tag", TagAdapter("tag", []))

        with pytest.raises(ValueError):
            memory.register_adapter("tag", TagAdapter("tag", []))


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_snapshot_round_trip(self, memory, word_counter):
        fill(memory, 10)
        await memory.compact()
        memory.register_adapter("tag", TagAdapter("tag", []))

        snapshot = memory.snapshot()
        restored = ConversationMemory.from_snapshot(snapshot, token_counter=word_counter)

        assert snapshot.adapters == ["tag"]
        assert restored.messages == memory.messages
        assert restored.memory_cursor == memory.memory_cursor
        assert restored.memory_blocks == memory.memory_blocks
        assert restored.adapters == {}


class TestValidation:
    @pytest.mark.parametrize("kwargs", [
        {"token_limit": 0},
        {"short_term_token_limit_ratio": 0},
        {"short_term_token_limit_ratio": 1.5},
        {"memory_cursor": 1},
    ])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            ConversationMemory(**kwargs)

    def test_append_rejects_non_messages(self, memory):
        with pytest.raises(TypeError):
            memory.append("hello")
