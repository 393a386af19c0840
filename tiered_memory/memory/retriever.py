"""
Memory retrieval for prompt context and explicit search.

Context assembly concatenates two labeled text blocks: the always-on
short-term memories and, for a non-empty query, the long-term lexical hits.
Search runs one lexical query and ranks the hits by composite score.
"""

import logging
from datetime import datetime
from typing import List, Optional

from tiered_memory.core.config import Settings
from tiered_memory.memory.ranking import rank_results
from tiered_memory.memory.store import TieredMemoryStore
from tiered_memory.models.schemas import RankedResult

logger = logging.getLogger(__name__)

SHORT_TERM_HEADER = "User Context (Always Remember):"
LONG_TERM_HEADER = "Relevant Past Memories:"
NO_CONTEXT = "No prior context available."


def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    """Coerce a requested limit into [1, maximum], using default when unset."""
    try:
        value = int(limit) if limit is not None else default
    except (TypeError, ValueError):
        value = default
    if value <= 0:
        value = default
    return max(1, min(maximum, value))


def _bullet_block(header: str, summaries: List[str]) -> str:
    return header + "\n" + "\n".join(f"• {summary}" for summary in summaries)


class MemoryRetriever:
    """
    Reads both tiers for context assembly and ranked search.
    """

    def __init__(self, store: TieredMemoryStore, settings: Settings):
        """
        Initialize memory retriever.

        Args:
            store: Tiered memory store
            settings: Application settings
        """
        self.store = store
        self.settings = settings

    def get_context(self, user_id: str, query: str = "", limit: Optional[int] = None) -> str:
        """
        Assemble prompt context for a user.

        Short-term memories are included regardless of the query. Long-term
        memories are added only for a non-empty query. The two blocks are
        joined as plain text, not merged into one ranking.

        Args:
            user_id: User identifier
            query: Optional plain-text query
            limit: Long-term hits to include (clamped to [1, max_context_limit])

        Returns:
            str: Labeled context blocks, or a placeholder when there is nothing

        Example:
            >>> print(retriever.get_context("user123", "Austin"))
            User Context (Always Remember):
            • My name is Sam, I live in Austin Nice to meet you, Sam
            <BLANKLINE>
            Relevant Past Memories:
            • My name is Sam, I live in Austin Nice to meet you, Sam
        """
        parts = []

        short_term = self.store.list_short_term(user_id, self.settings.short_term_context_limit)
        if short_term:
            parts.append(_bullet_block(SHORT_TERM_HEADER, [entry.summary for entry in short_term]))

        trimmed = (query or "").strip()
        if trimmed:
            limit = clamp_limit(limit, self.settings.default_context_limit, self.settings.max_context_limit)
            relevant = self.store.search_long_term(user_id, trimmed, limit)
            if relevant:
                parts.append(_bullet_block(LONG_TERM_HEADER, [hit.summary for hit in relevant]))

        logger.debug(
            f"Context for user {user_id}: {len(short_term)} short-term, "
            f"{'query' if trimmed else 'no query'}"
        )
        context = "\n\n".join(parts).strip()
        return context or NO_CONTEXT

    def search(
        self,
        user_id: str,
        query: str,
        limit: Optional[int] = None,
        boost: float = 0.0,
        now: Optional[datetime] = None
    ) -> List[RankedResult]:
        """
        Ranked lexical search over the long-term archive.

        Args:
            user_id: User identifier
            query: Non-empty plain-text query
            limit: Maximum results (clamped to [1, max_search_limit])
            boost: Extra bonus added to every composite score
            now: Reference time for recency

        Returns:
            List[RankedResult]: Results ordered by composite score
        """
        limit = clamp_limit(limit, self.settings.default_search_limit, self.settings.max_search_limit)
        hits = self.store.search_long_term(user_id, query.strip(), limit)
        return rank_results(hits, now=now, boost=boost)
