"""
Unit tests for context assembly and ranked search.
"""

import pytest

from tiered_memory.memory.retriever import (
    LONG_TERM_HEADER,
    NO_CONTEXT,
    SHORT_TERM_HEADER,
    MemoryRetriever,
    clamp_limit
)
from tiered_memory.memory.store import TieredMemoryStore
from tiered_memory.models.schemas import MemoryClassification

from tests.helpers import make_candidate, make_settings


class TestGetContext:

    def test_nothing_stored(self, retriever):
        assert retriever.get_context("user123") == NO_CONTEXT
        assert retriever.get_context("user123", "Austin") == NO_CONTEXT

    def test_short_term_always_included(self, store, retriever, sample_candidates):
        store.write_candidates("user123", "chat-1", sample_candidates)

        context = retriever.get_context("user123")

        assert context.startswith(SHORT_TERM_HEADER)
        assert "• My name is Sam, I live in Austin" in context
        assert "• The release deadline is Friday" in context
        assert "weather" not in context
        assert LONG_TERM_HEADER not in context

    def test_query_adds_long_term_block(self, store, retriever, sample_candidates):
        store.write_candidates("user123", "chat-1", sample_candidates)

        context = retriever.get_context("user123", "weather")

        short_block, long_block = context.split("\n\n")
        assert short_block.startswith(SHORT_TERM_HEADER)
        assert long_block == f"{LONG_TERM_HEADER}\n• We chatted about the weather"

    def test_blank_query_is_ignored(self, store, retriever, sample_candidates):
        store.write_candidates("user123", "chat-1", sample_candidates)
        assert LONG_TERM_HEADER not in retriever.get_context("user123", "   ")

    def test_long_term_only(self, store, retriever):
        store.write_candidates("user123", "chat-1", [make_candidate("Tacos on Tuesday")])
        assert retriever.get_context("user123", "tacos") == f"{LONG_TERM_HEADER}\n• Tacos on Tuesday"

    def test_context_limit(self, store, retriever):
        for index in range(5):
            store.write_candidates("user123", f"chat-{index}", [make_candidate(f"Tea note number {index}")])

        context = retriever.get_context("user123", "tea", limit=2)
        assert context.count("•") == 2

    def test_short_term_limit(self, database):
        settings = make_settings(short_term_context_limit=2)
        store = TieredMemoryStore(database, settings)
        for index in range(4):
            store.write_candidates(
                "user123",
                f"chat-{index}",
                [make_candidate(f"I like colour {index}", MemoryClassification.CONSCIOUS_INFO, is_conscious=True)]
            )

        context = MemoryRetriever(store, settings).get_context("user123")
        assert context.count("•") == 2


class TestSearch:

    def test_ranked_results(self, store, retriever, sample_candidates):
        store.write_candidates("user123", "chat-1", sample_candidates)

        results = retriever.search("user123", "Austin")

        assert len(results) == 1
        assert results[0].search_score > 0
        assert 0.0 < results[0].composite_score <= 1.0
        assert results[0].recency_score == pytest.approx(1.0, abs=1e-3)

    def test_limit_is_clamped(self, store, retriever):
        for index in range(5):
            store.write_candidates("user123", f"chat-{index}", [make_candidate(f"Tea note number {index}")])

        assert len(retriever.search("user123", "tea", limit=3)) == 3
        assert len(retriever.search("user123", "tea", limit=0)) == 5
        assert len(retriever.search("user123", "tea", limit=1000)) == 5


class TestClampLimit:

    @pytest.mark.parametrize("limit, expected", [
        (None, 10),
        (0, 10),
        (-4, 10),
        (5, 5),
        (999, 50),
        ("7", 7),
        ("abc", 10),
    ])
    def test_clamp(self, limit, expected):
        assert clamp_limit(limit, 10, 50) == expected
