"""
MemoryManager — tiered per-agent memory.

- Short-term: FIFO of Messages capped at max_short_term_size. Evicting an
  "important" message (keyword heuristic) copies it to long-term first;
  anything else is dropped for good.
- Long-term: append-only list of MemoryEntry, searched by case-insensitive
  substring and ranked by stored relevance (top 5).
- Entity graph: flat list of EntityRelation, scanned linearly.

The full state is written to the cache collaborator under
`agent-memory-<agent_id>` (24h TTL) after every mutation; init() restores
it. Persistence is best-effort: a failed write is logged, not raised.

Usage:
    memory = MemoryManager("agent-1", cache=cache)
    await memory.init()
    await memory.add_message(Message(role="user", content="Remember the plan"))
    hits = memory.search_long_term("plan")
"""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from crytonix.cache import CacheBackend
from crytonix.llm.types import Message

logger = logging.getLogger(__name__)

MEMORY_TTL_SECONDS = 86400
DEFAULT_SHORT_TERM_SIZE = 50
SEARCH_LIMIT = 5
MIN_MESSAGES_TO_SUMMARIZE = 5

IMPORTANT_KEYWORDS = (
    "important",
    "remember",
    "note",
    "key",
    "critical",
    "decision",
    "agreed",
    "plan",
)

SUMMARY_INSTRUCTION = (
    "Summarize the following conversation concisely, focusing on key points and decisions."
)


@dataclass
class MemoryEntry:
    """One long-term record. Content is never edited after creation."""

    content: str
    source: str = "conversation"
    timestamp: float = field(default_factory=time.time)
    relevance: Optional[float] = None
    embedding: Optional[list[float]] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "embedding": self.embedding,
            "metadata": {
                "source": self.source,
                "timestamp": self.timestamp,
                "relevance": self.relevance,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MemoryEntry":
        metadata = data.get("metadata") or {}
        return cls(
            id=data.get("id") or str(uuid.uuid4()),
            content=data.get("content", ""),
            embedding=data.get("embedding"),
            source=metadata.get("source", "conversation"),
            timestamp=metadata.get("timestamp", time.time()),
            relevance=metadata.get("relevance"),
        )


@dataclass
class EntityRelation:
    """Directed edge source -[relation]-> target. Duplicates are allowed."""

    source: str
    relation: str
    target: str
    confidence: float = 1.0

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "relation": self.relation,
            "target": self.target,
            "confidence": self.confidence,
        }


def is_important(message: Message) -> bool:
    if not message.content:
        return False
    content = message.content.lower()
    return any(keyword in content for keyword in IMPORTANT_KEYWORDS)


class MemoryManager:
    """Short-term ring, long-term store, and entity graph for one agent."""

    def __init__(
        self,
        agent_id: str,
        cache: Optional[CacheBackend] = None,
        max_short_term_size: int = DEFAULT_SHORT_TERM_SIZE,
    ):
        self.agent_id = agent_id
        self.max_short_term_size = max_short_term_size
        self._cache = cache
        self._short_term: deque[Message] = deque()
        self._long_term: list[MemoryEntry] = []
        self._entity_graph: list[EntityRelation] = []

    @property
    def cache_key(self) -> str:
        return f"agent-memory-{self.agent_id}"

    # --- Short-term ---

    async def add_message(self, message: Message) -> None:
        """Append a message, evicting (and maybe promoting) the oldest past the cap."""
        self._short_term.append(message)

        while len(self._short_term) > self.max_short_term_size:
            evicted = self._short_term.popleft()
            if is_important(evicted):
                self._long_term.append(MemoryEntry(content=evicted.content or ""))
                logger.debug("memory_promoted", extra={"agent_id": self.agent_id})

        await self._persist()

    def get_recent_messages(self, count: int = 10) -> list[Message]:
        if count <= 0:
            return []
        return list(self._short_term)[-count:]

    def get_all_messages(self) -> list[Message]:
        return list(self._short_term)

    async def clear_short_term(self) -> None:
        self._short_term.clear()
        await self._persist()

    # --- Long-term ---

    async def add_to_long_term(self, entry: MemoryEntry) -> None:
        self._long_term.append(entry)
        await self._persist()

    def search_long_term(self, query: str) -> list[MemoryEntry]:
        needle = query.lower()
        hits = [e for e in self._long_term if needle in e.content.lower()]
        hits.sort(key=lambda e: e.relevance or 0.0, reverse=True)
        return hits[:SEARCH_LIMIT]

    async def summarize_conversation(
        self,
        generate: Callable[[list[Message]], Awaitable[str]],
    ) -> str:
        """
        Compress the short-term window into one long-term summary entry.

        `generate` receives a two-message prompt and returns the summary
        text. Returns "" when there are fewer than 5 messages or the call
        fails.
        """
        if len(self._short_term) < MIN_MESSAGES_TO_SUMMARIZE:
            return ""

        transcript = "\n".join(f"{m.role}: {m.content}" for m in self._short_term)
        try:
            summary = await generate([
                Message(role="system", content=SUMMARY_INSTRUCTION),
                Message(role="user", content=transcript),
            ])
        except Exception as e:
            logger.error("memory_summary_failed", extra={"agent_id": self.agent_id, "error": str(e)[:200]})
            return ""

        await self.add_to_long_term(MemoryEntry(content=summary, source="summary", relevance=1.0))
        return summary

    # --- Entity graph ---

    async def add_entity_relation(self, relation: EntityRelation) -> None:
        self._entity_graph.append(relation)
        await self._persist()

    def get_related_entities(self, entity: str) -> list[EntityRelation]:
        return [r for r in self._entity_graph if r.source == entity or r.target == entity]

    # --- State ---

    def get_state(self) -> dict[str, Any]:
        return {
            "short_term": [m.to_dict() for m in self._short_term],
            "long_term": [e.to_dict() for e in self._long_term],
            "entity_graph": [r.to_dict() for r in self._entity_graph],
        }

    async def set_state(self, state: dict[str, Any]) -> None:
        self._load(state)
        await self._persist()

    def _load(self, state: dict[str, Any]) -> None:
        self._short_term = deque(Message.from_dict(m) for m in state.get("short_term") or [])
        self._long_term = [MemoryEntry.from_dict(e) for e in state.get("long_term") or []]
        self._entity_graph = [EntityRelation(**r) for r in state.get("entity_graph") or []]

    async def init(self) -> None:
        """Restore state from the cache, if any was saved."""
        if self._cache is None:
            return
        cached = await self._cache.get(self.cache_key)
        if cached:
            self._load(cached)
            logger.debug("memory_restored", extra={"agent_id": self.agent_id, **self.get_stats()})

    async def _persist(self) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(self.cache_key, self.get_state(), MEMORY_TTL_SECONDS)
        except Exception as e:
            logger.warning("memory_persist_failed", extra={"agent_id": self.agent_id, "error": str(e)[:200]})

    def get_stats(self) -> dict[str, int]:
        return {
            "short_term_count": len(self._short_term),
            "long_term_count": len(self._long_term),
            "entity_count": len(self._entity_graph),
        }
