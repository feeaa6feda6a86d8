from abc import ABC, abstractmethod
from typing import List

import structlog
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from .long_term_memory_store import LongTermMemoryStore
from .transcript import message_text, render_transcript

logger = structlog.get_logger(__name__)


class ContextAdapter(ABC):
    """Transform applied to the assembled context before a model call"""

    @abstractmethod
    async def apply(self, entries: List[BaseMessage]) -> List[BaseMessage]:
        """Return the (possibly modified) context entries"""
        pass


class SummarizingAdapter(ContextAdapter):
    """Adapter able to fold older messages into a memory block"""

    async def apply(self, entries: List[BaseMessage]) -> List[BaseMessage]:
        return entries

    @abstractmethod
    async def summarize(self, entries: List[BaseMessage]) -> str:
        pass


class TranscriptSummarizer(SummarizingAdapter):
    """Deterministic summarizer: the folded transcript itself"""

    async def summarize(self, entries: List[BaseMessage]) -> str:
        return render_transcript(entries)


DEFAULT_SUMMARY_INSTRUCTIONS = (
    "Summarize the following conversation excerpt for later reference. "
    "Keep facts, decisions, tool results and open questions. Be concise."
)


class ChatModelSummarizer(SummarizingAdapter):
    """Summarizes folded messages through a chat model"""

    def __init__(self, model: BaseChatModel, instructions: str = DEFAULT_SUMMARY_INSTRUCTIONS):
        self.model = model
        self.instructions = instructions

    async def summarize(self, entries: List[BaseMessage]) -> str:
        response = await self.model.ainvoke([
            SystemMessage(content=self.instructions),
            HumanMessage(content=render_transcript(entries)),
        ])
        summary = message_text(response).strip()
        if not summary:
            raise ValueError("Summarizer returned an empty summary")
        return summary


class RetrievalAdapter(ContextAdapter):
    """Injects long-term memories relevant to the latest user message"""

    def __init__(self, store: LongTermMemoryStore, limit: int = 3, min_score: float = 0.2):
        self.store = store
        self.limit = limit
        self.min_score = min_score

    async def apply(self, entries: List[BaseMessage]) -> List[BaseMessage]:
        query = next(
            (message_text(m) for m in reversed(entries) if isinstance(m, HumanMessage)),
            "",
        )
        if not query.strip():
            return entries

        matches = await self.store.search(query, limit=self.limit)
        matches = [m for m in matches if m["score"] >= self.min_score]
        if not matches:
            return entries

        logger.debug("Injecting long-term memories", count=len(matches))
        lines = "\n".join(f"- {m['content']}" for m in matches)
        return [SystemMessage(content=f"Relevant long-term memory:\n{lines}")] + list(entries)
