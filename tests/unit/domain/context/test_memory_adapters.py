"""Tests for long-term memory and the bundled context adapters."""

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from agentloop.domain.context.memory.adapters import ChatModelSummarizer, RetrievalAdapter, TranscriptSummarizer
from agentloop.domain.context.memory.long_term_memory_store import LongTermMemoryStore


class TestLongTermMemoryStore:
    @pytest.mark.asyncio
    async def test_add_assigns_sequential_ids(self):
        store = LongTermMemoryStore()

        assert await store.add("first fact") == "mem_0"
        assert await store.add("second fact", {"source": "user"}) == "mem_1"
        assert store.entries[1]["metadata"] == {"source": "user"}

    @pytest.mark.asyncio
    async def test_search_returns_relevant_entries_best_first(self):
        store = LongTermMemoryStore()
        await store.add("the office is in berlin")
        await store.add("preferred units are metric")
        await store.add("nothing related here")

        results = await store.search("which units are preferred", limit=5)

        assert [r["content"] for r in results][0] == "preferred units are metric"
        assert all(r["score"] > 0 for r in results)
        assert "nothing related here" not in [r["content"] for r in results]

    @pytest.mark.asyncio
    async def test_oldest_entries_are_evicted(self):
        store = LongTermMemoryStore(max_entries=2)
        for i in range(3):
            await store.add(f"fact {i}")

        assert [e["content"] for e in store.entries] == ["fact 1", "fact 2"]

    @pytest.mark.asyncio
    async def test_clear(self):
        store = LongTermMemoryStore()
        await store.add("fact")
        await store.clear()

        assert await store.search("fact") == []


class TestRetrievalAdapter:
    @pytest.mark.asyncio
    async def test_injects_relevant_memories_before_context(self):
        store = LongTermMemoryStore()
        await store.add("preferred units are metric")
        entries = [HumanMessage(content="what units are preferred")]

        result = await RetrievalAdapter(store).apply(entries)

        assert isinstance(result[0], SystemMessage)
        assert "- preferred units are metric" in result[0].content
        assert result[1:] == entries

    @pytest.mark.asyncio
    async def test_leaves_context_alone_without_matches(self):
        store = LongTermMemoryStore()
        await store.add("preferred units are metric")
        entries = [HumanMessage(content="weather in paris")]

        assert await RetrievalAdapter(store).apply(entries) == entries

    @pytest.mark.asyncio
    async def test_no_user_message_means_no_query(self):
        store = LongTermMemoryStore()
        await store.add("anything")
        entries = [AIMessage(content="anything")]

        assert await RetrievalAdapter(store).apply(entries) == entries


class TestSummarizers:
    @pytest.mark.asyncio
    async def test_transcript_summarizer_renders_roles(self):
        summary = await TranscriptSummarizer().summarize([
            HumanMessage(content="add 5 and 5"),
            AIMessage(content="", tool_calls=[{"name": "sumNumbers", "args": {"a": 5, "b": 5}, "id": "c1"}]),
        ])

        assert summary.splitlines()[0] == "human: add 5 and 5"
        assert "sumNumbers" in summary.splitlines()[1]

    @pytest.mark.asyncio
    async def test_chat_model_summarizer_returns_model_text(self):
        model = GenericFakeChatModel(messages=iter([AIMessage(content="User asked for a sum.")]))

        summary = await ChatModelSummarizer(model).summarize([HumanMessage(content="add 5 and 5")])

        assert summary == "User asked for a sum."

    @pytest.mark.asyncio
    async def test_transcript_summarizer_leaves_context_unchanged(self):
        entries = [HumanMessage(content="hi")]

        assert await TranscriptSummarizer().apply(entries) == entries
