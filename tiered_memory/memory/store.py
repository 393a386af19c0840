"""
Two-tier memory storage.

Every candidate memory is written to the long-term archive; conscious or
highly important ones are mirrored into the short-term tier that is always
included in context. Long-term rows are searchable with lexical full-text
relevance: PostgreSQL's ts_rank where available, an in-process scorer with
the same all-terms-must-match semantics elsewhere.
"""

import logging
import re
import uuid
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Set

from sqlalchemy import delete, func, literal_column, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tiered_memory.core.config import Settings
from tiered_memory.core.database import Database, utcnow
from tiered_memory.core.exceptions import PersistenceError
from tiered_memory.memory.deduplicator import detect_duplicates
from tiered_memory.models.memory import (
    ChatTurn,
    LongTermMemory,
    ShortTermMemory,
    tsvector_of
)
from tiered_memory.models.schemas import (
    CandidateMemory,
    MemoryClassification,
    MemoryStats,
    RankedResult
)

logger = logging.getLogger(__name__)

# Namespace for deterministic memory ids: uuid5(namespace, "<chat_id>:<index>")
MEMORY_ID_NAMESPACE = uuid.UUID("6f1c9a52-8d4e-4b7a-9c3e-2a5d7e0f4b18")

_TERM_SPLIT = re.compile(r"\W+")

# Terms PostgreSQL's english configuration drops from plainto_tsquery
QUERY_STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "but", "by", "for", "if", "in",
    "into", "is", "it", "no", "not", "of", "on", "or", "such", "that", "the",
    "their", "then", "there", "these", "they", "this", "to", "was", "will",
    "with", "i", "me", "my", "we", "our", "you", "your",
})


def query_terms(query: str) -> List[str]:
    """Distinct case-folded query terms, stop words removed."""
    seen = {}
    for term in _TERM_SPLIT.split(query.lower()):
        if term and term not in QUERY_STOP_WORDS:
            seen[term] = None
    return list(seen)


def lexical_relevance(document: str, query: str) -> float:
    """
    Plain-text relevance of a document for a query.

    A document matches only when it contains every query term. The score
    grows with the number of term occurrences and stays in (0, 1).

    Args:
        document: Indexed text (searchable text plus summary)
        query: Plain-text query

    Returns:
        float: 0 for no match, otherwise hits / (hits + 1)
    """
    terms = query_terms(query)
    if not terms:
        return 0.0
    counts = Counter(token for token in _TERM_SPLIT.split(document.lower()) if token)
    if any(counts[term] == 0 for term in terms):
        return 0.0
    hits = sum(counts[term] for term in terms)
    return hits / (hits + 1.0)


class TieredMemoryStore:
    """
    Long-term archive and short-term context tier over one database.
    """

    def __init__(self, database: Database, settings: Settings):
        """
        Initialize the store.

        Args:
            database: Connected database handle
            settings: Application settings
        """
        self.database = database
        self.settings = settings

    # ================================
    # Write path
    # ================================

    @staticmethod
    def memory_id_for(chat_id: str, index: int) -> str:
        """Deterministic memory id so a retried job rewrites the same rows."""
        return str(uuid.uuid5(MEMORY_ID_NAMESPACE, f"{chat_id}:{index}"))

    def should_promote(self, candidate: CandidateMemory) -> bool:
        """Mirror into short-term iff conscious or importance above the threshold."""
        return candidate.is_conscious or candidate.importance_score > self.settings.promotion_threshold

    def write_candidates(
        self,
        user_id: str,
        chat_id: str,
        candidates: Sequence[CandidateMemory]
    ) -> List[str]:
        """
        Store candidates in the long-term archive and promote where the rule says so.

        Each candidate's long-term row and short-term mirror commit together.
        Rows that already exist are left untouched, so re-running a job is safe.

        Args:
            user_id: Owning user
            chat_id: Source turn
            candidates: Validated candidate memories

        Returns:
            List[str]: Memory ids of all candidates, written now or earlier

        Raises:
            PersistenceError: If a write fails for a reason other than an existing row
        """
        memory_ids = []
        for index, candidate in enumerate(candidates):
            memory_id = self.memory_id_for(chat_id, index)
            try:
                with self.database.transaction() as db:
                    self._write_one(db, memory_id, user_id, chat_id, candidate)
            except PersistenceError as e:
                if isinstance(e.__cause__, IntegrityError):
                    logger.info(f"Memory {memory_id} already stored by a concurrent write")
                else:
                    raise
            memory_ids.append(memory_id)

        logger.info(f"Stored {len(memory_ids)} memories for user {user_id} from chat {chat_id}")
        return memory_ids

    def _write_one(
        self,
        db: Session,
        memory_id: str,
        user_id: str,
        chat_id: str,
        candidate: CandidateMemory
    ) -> None:
        now = utcnow()

        if db.get(LongTermMemory, memory_id) is None:
            duplicate_of = None
            if self.settings.enable_duplicate_linking:
                duplicate_of = self._find_duplicate(db, user_id, memory_id, candidate.summary)

            db.add(LongTermMemory(
                memory_id=memory_id,
                user_id=user_id,
                chat_id=chat_id,
                content=candidate.content,
                summary=candidate.summary,
                searchable_text=candidate.searchable_text,
                importance_score=candidate.importance_score,
                classification=candidate.classification.value,
                entities=[entity.model_dump() for entity in candidate.entities],
                keywords=list(candidate.keywords),
                is_user_context=candidate.classification == MemoryClassification.CONSCIOUS_INFO,
                duplicate_of=duplicate_of,
                created_at=now,
                updated_at=now
            ))

        if self.should_promote(candidate) and db.get(ShortTermMemory, memory_id) is None:
            expires_at, is_permanent = self._short_term_expiry(candidate, now)
            db.add(ShortTermMemory(
                memory_id=memory_id,
                user_id=user_id,
                session_id=self.settings.default_session_id,
                content=candidate.content,
                summary=candidate.summary,
                searchable_text=candidate.searchable_text,
                importance_score=candidate.importance_score,
                expires_at=expires_at,
                is_permanent=is_permanent,
                created_at=now
            ))
            logger.debug(f"Promoted memory {memory_id} to short-term")

    def _short_term_expiry(self, candidate: CandidateMemory, now: datetime):
        """(expires_at, is_permanent) for a promoted memory."""
        ttl_hours = self.settings.short_term_ttl_hours
        if ttl_hours is None or candidate.is_conscious:
            return None, True
        return now + timedelta(hours=ttl_hours), False

    def _find_duplicate(
        self,
        db: Session,
        user_id: str,
        memory_id: str,
        summary: str
    ) -> Optional[str]:
        rows = db.execute(
            select(LongTermMemory.memory_id, LongTermMemory.summary)
            .where(LongTermMemory.user_id == user_id, LongTermMemory.memory_id != memory_id)
            .order_by(LongTermMemory.created_at.desc())
            .limit(self.settings.duplicate_scan_limit)
        ).all()

        check = detect_duplicates(
            summary,
            [row.summary for row in rows],
            threshold=self.settings.duplicate_threshold
        )
        if not check.is_duplicate:
            return None

        match = next(row.memory_id for row in rows if row.summary == check.duplicate_of)
        logger.info(
            f"Memory {memory_id} duplicates {match} (similarity {check.similarity:.2f}); linking"
        )
        return match

    # ================================
    # Maintenance
    # ================================

    def cleanup_expired(self, user_id: Optional[str] = None, now: Optional[datetime] = None) -> List[str]:
        """
        Delete expired, non-permanent short-term entries.

        Args:
            user_id: Restrict the sweep to one user
            now: Reference time

        Returns:
            List[str]: Ids of deleted entries
        """
        now = now or utcnow()
        conditions = [
            ShortTermMemory.is_permanent.is_(False),
            ShortTermMemory.expires_at.is_not(None),
            ShortTermMemory.expires_at < now,
        ]
        if user_id is not None:
            conditions.append(ShortTermMemory.user_id == user_id)

        with self.database.transaction() as db:
            expired_ids = list(db.scalars(select(ShortTermMemory.memory_id).where(*conditions)))
            if expired_ids:
                db.execute(delete(ShortTermMemory).where(ShortTermMemory.memory_id.in_(expired_ids)))

        if expired_ids:
            logger.info(f"Removed {len(expired_ids)} expired short-term memories")
        return expired_ids

    # ================================
    # Read path
    # ================================

    def list_short_term(self, user_id: str, limit: int) -> List[ShortTermMemory]:
        """
        Short-term entries for a user, most important and newest first.

        Entries past their expiry are skipped even before the sweep runs.
        """
        now = utcnow()
        with self.database.session() as db:
            rows = db.scalars(
                select(ShortTermMemory)
                .where(ShortTermMemory.user_id == user_id)
                .where(
                    ShortTermMemory.is_permanent.is_(True)
                    | ShortTermMemory.expires_at.is_(None)
                    | (ShortTermMemory.expires_at >= now)
                )
                .order_by(ShortTermMemory.importance_score.desc(), ShortTermMemory.created_at.desc())
                .limit(limit)
            )
            return list(rows)

    def list_recent(self, user_id: str, limit: int) -> List[LongTermMemory]:
        """Long-term memories for a user, newest first."""
        with self.database.session() as db:
            rows = db.scalars(
                select(LongTermMemory)
                .where(LongTermMemory.user_id == user_id)
                .order_by(LongTermMemory.created_at.desc())
                .limit(limit)
            )
            return list(rows)

    def get_memory(self, memory_id: str) -> Optional[LongTermMemory]:
        with self.database.session() as db:
            return db.get(LongTermMemory, memory_id)

    def get_short_term(self, memory_id: str) -> Optional[ShortTermMemory]:
        with self.database.session() as db:
            return db.get(ShortTermMemory, memory_id)

    def short_term_ids(self, user_id: str, memory_ids: Iterable[str]) -> Set[str]:
        """Subset of memory_ids that have a short-term mirror."""
        memory_ids = list(memory_ids)
        if not memory_ids:
            return set()
        with self.database.session() as db:
            return set(db.scalars(
                select(ShortTermMemory.memory_id)
                .where(ShortTermMemory.user_id == user_id, ShortTermMemory.memory_id.in_(memory_ids))
            ))

    def search_long_term(self, user_id: str, query: str, limit: int) -> List[RankedResult]:
        """
        Lexical full-text search over a user's long-term archive.

        Results are ordered by relevance, then importance, then recency, and
        carry search_score plus tier flags; ranking scores are left at 0.

        Args:
            user_id: Owning user
            query: Plain-text query
            limit: Maximum number of hits

        Returns:
            List[RankedResult]: Matching memories, unranked
        """
        if self.database.dialect_name == "postgresql":
            hits = self._search_postgresql(user_id, query, limit)
        else:
            hits = self._search_in_process(user_id, query, limit)

        mirrored = self.short_term_ids(user_id, [row.memory_id for row, _ in hits])
        return [self._to_result(row, score, row.memory_id in mirrored) for row, score in hits]

    def _search_postgresql(self, user_id: str, query: str, limit: int):
        table = LongTermMemory.__table__
        tsquery = func.plainto_tsquery(literal_column("'english'"), query)
        rank = func.ts_rank(tsvector_of(table), tsquery).label("rank")

        with self.database.session() as db:
            rows = db.execute(
                select(LongTermMemory, rank)
                .where(LongTermMemory.user_id == user_id)
                .where(tsvector_of(table).op("@@")(tsquery))
                .order_by(
                    rank.desc(),
                    LongTermMemory.importance_score.desc(),
                    LongTermMemory.created_at.desc()
                )
                .limit(limit)
            ).all()
            return [(row[0], float(row[1] or 0.0)) for row in rows]

    def _search_in_process(self, user_id: str, query: str, limit: int):
        with self.database.session() as db:
            rows = db.scalars(select(LongTermMemory).where(LongTermMemory.user_id == user_id)).all()

        hits = []
        for row in rows:
            score = lexical_relevance(f"{row.searchable_text} {row.summary}", query)
            if score > 0:
                hits.append((row, score))

        hits.sort(key=lambda hit: (-hit[1], -hit[0].importance_score, -hit[0].created_at.timestamp()))
        return hits[:limit]

    @staticmethod
    def _to_result(row: LongTermMemory, search_score: float, is_short_term: bool) -> RankedResult:
        return RankedResult(
            memory_id=row.memory_id,
            user_id=row.user_id,
            content=row.content,
            summary=row.summary,
            searchable_text=row.searchable_text,
            importance_score=row.importance_score,
            classification=row.classification,
            entities=row.entities or [],
            keywords=row.keywords or [],
            created_at=row.created_at,
            search_score=search_score,
            is_short_term=is_short_term,
            is_user_context=bool(row.is_user_context)
        )

    # ================================
    # Stats
    # ================================

    def get_stats(self, user_id: str) -> MemoryStats:
        """Counts across the turn log and both tiers plus average importance."""
        with self.database.session() as db:
            total_chats = db.scalar(
                select(func.count()).select_from(ChatTurn).where(ChatTurn.user_id == user_id)
            )
            total_long_term, avg_importance = db.execute(
                select(func.count(), func.coalesce(func.avg(LongTermMemory.importance_score), 0.0))
                .where(LongTermMemory.user_id == user_id)
            ).one()
            total_short_term = db.scalar(
                select(func.count()).select_from(ShortTermMemory).where(ShortTermMemory.user_id == user_id)
            )

        return MemoryStats(
            total_chats=total_chats or 0,
            total_long_term=total_long_term or 0,
            total_short_term=total_short_term or 0,
            avg_importance=float(avg_importance or 0.0)
        )
