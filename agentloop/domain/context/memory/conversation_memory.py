import asyncio
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog
from langchain_core.messages import BaseMessage, SystemMessage, ToolMessage
from langchain_core.messages.utils import count_tokens_approximately

from agentloop.domain.models.agent_state import MemoryBlock, MemorySnapshot
from .adapters import ContextAdapter, SummarizingAdapter, TranscriptSummarizer

logger = structlog.get_logger(__name__)

TokenCounter = Callable[[BaseMessage], int]

BLOCK_PREFIX = "Summary of earlier conversation:\n"


def approximate_token_count(message: BaseMessage) -> int:
    return count_tokens_approximately([message])


class ConversationMemory:
    """Ordered transcript kept under a token budget.

    The most recent entries are sent verbatim within
    ``token_limit * short_term_token_limit_ratio``. Older entries are folded
    into ``memory_blocks`` by ``compact`` and fill the rest of the budget.
    ``memory_cursor`` marks how many messages have been folded.
    """

    def __init__(
        self,
        token_limit: int = 8000,
        short_term_token_limit_ratio: float = 0.7,
        token_counter: Optional[TokenCounter] = None,
        messages: Optional[Iterable[BaseMessage]] = None,
        memory_blocks: Optional[Iterable[MemoryBlock]] = None,
        memory_cursor: int = 0,
    ):
        if token_limit <= 0:
            raise ValueError("token_limit must be positive")
        if not 0 < short_term_token_limit_ratio <= 1:
            raise ValueError("short_term_token_limit_ratio must be in (0, 1]")

        self.token_limit = token_limit
        self.short_term_token_limit_ratio = short_term_token_limit_ratio
        self.token_counter: TokenCounter = token_counter or approximate_token_count
        self.messages: List[BaseMessage] = list(messages or [])
        self.memory_blocks: List[MemoryBlock] = list(memory_blocks or [])
        self.adapters: Dict[str, ContextAdapter] = {}
        self.warnings: List[str] = []

        if not 0 <= memory_cursor <= len(self.messages):
            raise ValueError("memory_cursor must be within the message list")
        self._memory_cursor = memory_cursor

    @property
    def memory_cursor(self) -> int:
        return self._memory_cursor

    @property
    def short_term_token_limit(self) -> int:
        return int(self.token_limit * self.short_term_token_limit_ratio)

    @property
    def long_term_token_limit(self) -> int:
        return self.token_limit - self.short_term_token_limit

    def register_adapter(self, name: str, adapter: ContextAdapter):
        """Adapters run in registration order when assembling context"""

        if name in self.adapters:
            raise ValueError(f"Adapter '{name}' is already registered")
        self.adapters[name] = adapter

    def append(self, entry: BaseMessage):
        if not isinstance(entry, BaseMessage):
            raise TypeError(f"Memory entries must be messages, got {type(entry).__name__}")
        self.messages.append(entry)

    def count_tokens(self, entries: Iterable[BaseMessage]) -> int:
        return sum(self.token_counter(entry) for entry in entries)

    def needs_compaction(self) -> bool:
        """True when the un-compacted tail no longer fits the short-term budget"""
        return self.count_tokens(self.messages[self._memory_cursor:]) > self.short_term_token_limit

    async def assemble_context(self) -> List[BaseMessage]:
        """Entries to send to the model, never costing more than ``token_limit``"""

        window, used = self._short_term_window()
        context = self._block_messages(self.token_limit - used) + window

        for name, adapter in self.adapters.items():
            try:
                context = list(await adapter.apply(list(context)))
            except Exception as e:
                self._warn(f"Adapter '{name}' failed and was skipped: {type(e).__name__}: {e}")

        return self._fit_to_budget(context)

    async def compact(self, summarize_timeout: Optional[float] = None) -> Optional[MemoryBlock]:
        """Fold the oldest un-compacted messages into a new memory block.

        Folds just enough messages for the remaining tail to fit the
        short-term budget. The newest message always stays verbatim and a
        tool call is never separated from its results. A summarizer that
        fails or exceeds ``summarize_timeout`` is replaced by the transcript.
        """

        pending = self.messages[self._memory_cursor:]
        if len(pending) < 2:
            return None

        costs = [self.token_counter(message) for message in pending]
        tail_cost = sum(costs)
        fold = 0
        while fold < len(pending) - 1 and tail_cost > self.short_term_token_limit:
            tail_cost -= costs[fold]
            fold += 1
        # Keep a tool call together with its results in the tail
        while fold > 0 and isinstance(pending[fold], ToolMessage):
            fold -= 1
        if fold == 0:
            return None

        folded = pending[:fold]
        summary = await self._summarize(folded, summarize_timeout)
        content = self._truncate_block(summary)

        block = MemoryBlock(
            content=content,
            token_count=self.token_counter(self._render_block(content)),
            start_index=self._memory_cursor,
            end_index=self._memory_cursor + fold,
        )
        self.memory_blocks.append(block)
        self._memory_cursor += fold

        logger.info(
            "Compacted memory",
            folded_messages=fold,
            memory_cursor=self._memory_cursor,
            block_tokens=block.token_count,
        )
        return block

    def snapshot(self) -> MemorySnapshot:
        return MemorySnapshot(
            messages=list(self.messages),
            token_limit=self.token_limit,
            short_term_token_limit_ratio=self.short_term_token_limit_ratio,
            memory_blocks=[block.model_copy() for block in self.memory_blocks],
            memory_cursor=self._memory_cursor,
            adapters=list(self.adapters),
            warnings=list(self.warnings),
        )

    @classmethod
    def from_snapshot(cls, snapshot: MemorySnapshot, token_counter: Optional[TokenCounter] = None) -> "ConversationMemory":
        """Rebuild memory from a snapshot; adapters must be registered again"""
        return cls(
            token_limit=snapshot.token_limit,
            short_term_token_limit_ratio=snapshot.short_term_token_limit_ratio,
            token_counter=token_counter,
            messages=snapshot.messages,
            memory_blocks=snapshot.memory_blocks,
            memory_cursor=snapshot.memory_cursor,
        )

    def _short_term_window(self) -> Tuple[List[BaseMessage], int]:
        window: List[BaseMessage] = []
        used = 0
        for message in reversed(self.messages[self._memory_cursor:]):
            cost = self.token_counter(message)
            if used + cost > self.short_term_token_limit:
                break
            window.append(message)
            used += cost
        window.reverse()

        if window and isinstance(window[0], ToolMessage):
            start = len(self.messages) - len(window)
            issuer = start - 1
            while issuer >= self._memory_cursor and isinstance(self.messages[issuer], ToolMessage):
                issuer -= 1
            if issuer >= self._memory_cursor:
                # The issuing call may spill past the short-term share, never past token_limit
                call = self.messages[issuer:start]
                cost = self.count_tokens(call)
                if used + cost <= self.token_limit:
                    return call + window, used + cost

        while window and isinstance(window[0], ToolMessage):
            used -= self.token_counter(window.pop(0))
        return window, used

    def _block_messages(self, budget: int) -> List[BaseMessage]:
        rendered: List[BaseMessage] = []
        used = 0
        for block in reversed(self.memory_blocks):
            message = self._render_block(block.content)
            cost = self.token_counter(message)
            if used + cost > budget:
                break
            rendered.append(message)
            used += cost
        rendered.reverse()
        return rendered

    def _fit_to_budget(self, context: List[BaseMessage]) -> List[BaseMessage]:
        costs = [self.token_counter(message) for message in context]
        total = sum(costs)
        start = 0
        while start < len(context) and (total > self.token_limit or isinstance(context[start], ToolMessage)):
            total -= costs[start]
            start += 1
        return context[start:]

    async def _summarize(self, folded: List[BaseMessage], timeout: Optional[float] = None) -> str:
        summarizer = next(
            ((name, adapter) for name, adapter in self.adapters.items() if isinstance(adapter, SummarizingAdapter)),
            None,
        )
        if summarizer is not None:
            name, adapter = summarizer
            try:
                return await asyncio.wait_for(adapter.summarize(folded), timeout=timeout)
            except asyncio.TimeoutError:
                self._warn(f"Summarizer '{name}' timed out after {timeout}s, using transcript")
            except Exception as e:
                self._warn(f"Summarizer '{name}' failed, using transcript: {type(e).__name__}: {e}")
        return await TranscriptSummarizer().summarize(folded)

    @staticmethod
    def _render_block(content: str) -> BaseMessage:
        return SystemMessage(content=BLOCK_PREFIX + content)

    def _truncate_block(self, content: str) -> str:
        budget = self.long_term_token_limit
        if self.token_counter(self._render_block(content)) <= budget:
            return content

        # Longest prefix whose rendered block fits the long-term budget
        low, high = 0, len(content)
        while low < high:
            mid = (low + high + 1) // 2
            if self.token_counter(self._render_block(content[:mid] + "...")) <= budget:
                low = mid
            else:
                high = mid - 1
        return content[:low] + "..." if low else ""

    def _warn(self, message: str):
        self.warnings.append(message)
        logger.warning("Memory warning", detail=message)
