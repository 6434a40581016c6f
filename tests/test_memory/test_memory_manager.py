"""
Tests for MemoryManager — eviction/promotion, search, entity graph,
summaries, and cache persistence.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from crytonix.cache import InMemoryCache
from crytonix.llm.types import Message
from crytonix.memory.manager import (
    EntityRelation,
    MemoryEntry,
    MemoryManager,
    is_important,
)


def _msg(content: str, role: str = "user") -> Message:
    return Message(role=role, content=content)


# ─── Short-term ──────────────────────────────────────────────


class TestShortTerm:

    @pytest.mark.asyncio
    async def test_eviction_keeps_cap(self):
        memory = MemoryManager("a1", max_short_term_size=3)
        for i in range(5):
            await memory.add_message(_msg(f"message {i}"))

        contents = [m.content for m in memory.get_all_messages()]
        assert contents == ["message 2", "message 3", "message 4"]

    @pytest.mark.asyncio
    async def test_evicted_important_message_is_promoted(self):
        memory = MemoryManager("a1", max_short_term_size=2)
        await memory.add_message(_msg("We reached a decision on pricing"))
        await memory.add_message(_msg("ok"))

        before = memory.get_stats()["long_term_count"]
        await memory.add_message(_msg("next"))

        assert len(memory.get_all_messages()) == 2
        assert memory.get_stats()["long_term_count"] == before + 1
        assert memory.search_long_term("decision")[0].content == "We reached a decision on pricing"

    @pytest.mark.asyncio
    async def test_evicted_plain_message_is_dropped(self):
        memory = MemoryManager("a1", max_short_term_size=2)
        await memory.add_message(_msg("hello there"))
        await memory.add_message(_msg("ok"))
        await memory.add_message(_msg("next"))

        assert memory.get_stats()["long_term_count"] == 0

    @pytest.mark.asyncio
    async def test_recent_messages(self):
        memory = MemoryManager("a1")
        for i in range(15):
            await memory.add_message(_msg(str(i)))

        recent = memory.get_recent_messages()
        assert len(recent) == 10
        assert recent[-1].content == "14"
        assert memory.get_recent_messages(0) == []

    @pytest.mark.asyncio
    async def test_clear_short_term(self):
        memory = MemoryManager("a1")
        await memory.add_message(_msg("x"))
        await memory.clear_short_term()
        assert memory.get_all_messages() == []

    @pytest.mark.parametrize("content,expected", [
        ("Please REMEMBER this", True),
        ("the plan is simple", True),
        ("hello world", False),
        ("", False),
    ])
    def test_is_important(self, content, expected):
        assert is_important(_msg(content)) is expected


# ─── Long-term ───────────────────────────────────────────────


class TestLongTerm:

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_and_ranked(self):
        memory = MemoryManager("a1")
        await memory.add_to_long_term(MemoryEntry(content="Paris is in France", relevance=0.2))
        await memory.add_to_long_term(MemoryEntry(content="paris trip plan", relevance=0.9))
        await memory.add_to_long_term(MemoryEntry(content="Berlin"))

        hits = memory.search_long_term("PARIS")

        assert [h.content for h in hits] == ["paris trip plan", "Paris is in France"]

    @pytest.mark.asyncio
    async def test_search_returns_at_most_five(self):
        memory = MemoryManager("a1")
        for i in range(8):
            await memory.add_to_long_term(MemoryEntry(content=f"fact {i}"))
        assert len(memory.search_long_term("fact")) == 5

    @pytest.mark.asyncio
    async def test_summarize_needs_five_messages(self):
        memory = MemoryManager("a1")
        generate = AsyncMock(return_value="summary")
        for i in range(4):
            await memory.add_message(_msg(str(i)))

        assert await memory.summarize_conversation(generate) == ""
        generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_summarize_stores_summary(self):
        memory = MemoryManager("a1")
        generate = AsyncMock(return_value="They agreed on Tuesday.")
        for i in range(5):
            await memory.add_message(_msg(f"turn {i}"))

        summary = await memory.summarize_conversation(generate)

        assert summary == "They agreed on Tuesday."
        prompt = generate.await_args.args[0]
        assert prompt[0].role == "system"
        assert "turn 4" in prompt[1].content
        entry = memory.search_long_term("tuesday")[0]
        assert entry.source == "summary"
        assert entry.relevance == 1.0

    @pytest.mark.asyncio
    async def test_summarize_failure_returns_empty(self):
        memory = MemoryManager("a1")
        for i in range(5):
            await memory.add_message(_msg(str(i)))

        result = await memory.summarize_conversation(AsyncMock(side_effect=RuntimeError("llm down")))

        assert result == ""
        assert memory.get_stats()["long_term_count"] == 0


# ─── Entity graph ────────────────────────────────────────────


class TestEntityGraph:

    @pytest.mark.asyncio
    async def test_related_matches_source_or_target(self):
        memory = MemoryManager("a1")
        await memory.add_entity_relation(EntityRelation("Alice", "works_at", "Acme"))
        await memory.add_entity_relation(EntityRelation("Bob", "knows", "Alice", confidence=0.4))
        await memory.add_entity_relation(EntityRelation("Bob", "lives_in", "Oslo"))

        related = memory.get_related_entities("Alice")

        assert [(r.source, r.target) for r in related] == [("Alice", "Acme"), ("Bob", "Alice")]

    def test_confidence_must_be_in_unit_range(self):
        with pytest.raises(ValueError):
            EntityRelation("a", "r", "b", confidence=1.5)


# ─── Persistence ─────────────────────────────────────────────


class TestPersistence:

    @pytest.mark.asyncio
    async def test_state_survives_through_cache(self):
        cache = InMemoryCache()
        memory = MemoryManager("a1", cache=cache)
        await memory.add_message(_msg("hello"))
        await memory.add_to_long_term(MemoryEntry(content="fact", relevance=0.5))
        await memory.add_entity_relation(EntityRelation("x", "is", "y"))

        restored = MemoryManager("a1", cache=cache)
        await restored.init()

        assert restored.get_stats() == {"short_term_count": 1, "long_term_count": 1, "entity_count": 1}
        assert restored.get_all_messages()[0].content == "hello"
        assert restored.search_long_term("fact")[0].relevance == 0.5

    @pytest.mark.asyncio
    async def test_cache_key_per_agent(self):
        cache = InMemoryCache()
        await MemoryManager("a1", cache=cache).add_message(_msg("mine"))

        other = MemoryManager("a2", cache=cache)
        await other.init()
        assert other.get_all_messages() == []
        assert await cache.get("agent-memory-a1") is not None

    @pytest.mark.asyncio
    async def test_persist_failure_is_not_raised(self):
        cache = AsyncMock()
        cache.set.side_effect = ConnectionError("redis down")
        memory = MemoryManager("a1", cache=cache)

        await memory.add_message(_msg("still works"))

        assert memory.get_all_messages()[0].content == "still works"

    @pytest.mark.asyncio
    async def test_set_state_replaces_everything(self):
        memory = MemoryManager("a1")
        await memory.add_message(_msg("old"))

        await memory.set_state({
            "short_term": [{"role": "assistant", "content": "new"}],
            "long_term": [{"content": "kept", "metadata": {"source": "import", "relevance": 0.7}}],
            "entity_graph": [],
        })

        assert [m.content for m in memory.get_all_messages()] == ["new"]
        assert memory.search_long_term("kept")[0].source == "import"
