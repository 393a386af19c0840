"""
Core memory service.

The retrieval API surface: records turns, assembles context and runs ranked
searches, coordinating the store, retriever, extractor and background
worker pool over one explicit database handle.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import select

from tiered_memory.core.config import Settings
from tiered_memory.core.database import Database, utcnow
from tiered_memory.memory.deduplicator import DuplicateCheck, detect_duplicates
from tiered_memory.memory.extractor import MemoryExtractor
from tiered_memory.memory.retriever import MemoryRetriever, clamp_limit
from tiered_memory.memory.store import TieredMemoryStore
from tiered_memory.models.memory import ChatTurn, LongTermMemory
from tiered_memory.models.schemas import (
    CleanupResponse,
    ConversationTurn,
    JobStatus,
    MemoryRecordResponse,
    MemoryStats,
    RankedResult,
    ShortTermEntryResponse
)
from tiered_memory.services.worker import ExtractionJobQueue, ExtractionWorkerPool
from tiered_memory.utils.security import (
    validate_search_query,
    validate_turn_text,
    validate_user_id
)

logger = logging.getLogger(__name__)


class MemoryService:
    """
    High-level memory operations.

    start() launches the extraction workers; stop() cancels them. Reads and
    writes raise ConfigurationError while the database is not connected.
    """

    def __init__(
        self,
        database: Database,
        settings: Settings,
        extractor: Optional[MemoryExtractor] = None
    ):
        """
        Initialize memory service with all components.

        Args:
            database: Database handle
            settings: Application settings
            extractor: Memory extractor; built from settings when omitted
        """
        self.database = database
        self.settings = settings
        self.store = TieredMemoryStore(database, settings)
        self.retriever = MemoryRetriever(self.store, settings)
        self.extractor = extractor or MemoryExtractor(settings)
        self.jobs = ExtractionJobQueue(database)
        self.worker_pool = ExtractionWorkerPool(
            self.jobs,
            self.extractor,
            self.store,
            workers=settings.extraction_workers
        )

    async def start(self) -> None:
        await self.worker_pool.start()

    async def stop(self) -> None:
        await self.worker_pool.stop()

    async def record_turn(self, turn: ConversationTurn) -> str:
        """
        Durably record a turn and schedule its memory extraction.

        The turn and its extraction job commit in one transaction before
        this returns; extraction then runs in the background and its outcome
        is never reported back.

        Args:
            turn: Conversation turn (chat_id is assigned here)

        Returns:
            str: chat_id of the recorded turn

        Raises:
            ValidationError: If user id or user input is missing or invalid
            ConfigurationError: If the database is not connected
            PersistenceError: If the write fails; retry the whole call

        Example:
            >>> chat_id = await service.record_turn(ConversationTurn(
            ...     user_input="My name is Sam, I live in Austin",
            ...     ai_output="Nice to meet you, Sam",
            ...     user_id="user123"
            ... ))
        """
        user_id = validate_user_id(turn.user_id)
        max_length = self.settings.max_text_length
        user_input = validate_turn_text(turn.user_input, "userInput", max_length)
        ai_output = validate_turn_text(turn.ai_output, "aiOutput", max_length, required=False)
        context = validate_turn_text(turn.context, "context", max_length, required=False) or None

        chat_id = str(uuid.uuid4())

        with self.database.transaction() as db:
            db.add(ChatTurn(
                chat_id=chat_id,
                user_id=user_id,
                session_id=self.settings.default_session_id,
                user_input=user_input,
                ai_output=ai_output,
                model=turn.model or "unknown",
                context=context,
                metadata_=dict(turn.metadata or {}),
                created_at=utcnow()
            ))
            self.jobs.enqueue(db, chat_id, user_id)

        logger.info(f"Recorded chat {chat_id} for user {user_id}")
        self.worker_pool.submit(chat_id)
        return chat_id

    def get_context(self, user_id: str, query: str = "", limit: Optional[int] = None) -> str:
        """
        Context text blocks for prompt augmentation.

        Raises:
            ValidationError: If user_id is invalid
            ConfigurationError: If the database is not connected
        """
        user_id = validate_user_id(user_id)
        return self.retriever.get_context(user_id, query or "", limit)

    def search(
        self,
        user_id: str,
        query: str,
        limit: Optional[int] = None,
        boost: float = 0.0
    ) -> List[RankedResult]:
        """
        Ranked lexical search over the user's long-term memories.

        Raises:
            ValidationError: If user_id or query is missing
            ConfigurationError: If the database is not connected
        """
        user_id = validate_user_id(user_id)
        query = validate_search_query(query)
        results = self.retriever.search(user_id, query, limit, boost=boost)
        logger.info(f"Search for user {user_id} returned {len(results)} results")
        return results

    def get_stats(self, user_id: str) -> MemoryStats:
        return self.store.get_stats(validate_user_id(user_id))

    def list_recent(self, user_id: str, limit: Optional[int] = None) -> List[MemoryRecordResponse]:
        """Newest long-term memories for a user."""
        user_id = validate_user_id(user_id)
        limit = clamp_limit(limit, 20, self.settings.recent_memories_limit)
        return [MemoryRecordResponse.model_validate(row) for row in self.store.list_recent(user_id, limit)]

    def list_short_term(self, user_id: str, limit: Optional[int] = None) -> List[ShortTermEntryResponse]:
        """Short-term entries for a user, as included in context."""
        user_id = validate_user_id(user_id)
        limit = clamp_limit(limit, self.settings.short_term_context_limit, self.settings.max_search_limit)
        return [
            ShortTermEntryResponse.model_validate(row)
            for row in self.store.list_short_term(user_id, limit)
        ]

    def cleanup_expired(self, user_id: Optional[str] = None) -> CleanupResponse:
        """Run the short-term expiry sweep, optionally for one user."""
        if user_id is not None:
            user_id = validate_user_id(user_id)
        deleted = self.store.cleanup_expired(user_id)
        return CleanupResponse(deleted=deleted, total_deleted=len(deleted))

    def check_duplicate(self, user_id: str, summary: str) -> DuplicateCheck:
        """
        Check a summary against the user's recent long-term summaries.

        Args:
            user_id: User identifier
            summary: Summary to check

        Returns:
            DuplicateCheck: Matched prior summary and similarity, if any
        """
        user_id = validate_user_id(user_id)
        with self.database.session() as db:
            summaries = list(db.scalars(
                select(LongTermMemory.summary)
                .where(LongTermMemory.user_id == user_id)
                .order_by(LongTermMemory.created_at.desc())
                .limit(self.settings.duplicate_scan_limit)
            ))
        return detect_duplicates(summary, summaries, threshold=self.settings.duplicate_threshold)

    def get_job_status(self, chat_id: str) -> Optional[JobStatus]:
        return self.jobs.get_status(chat_id)

    def health(self) -> dict:
        """Component health for the health endpoint."""
        return {
            "database": self.database.check_connection(),
            "extraction_model": self.extractor.completion_fn is not None,
            "workers": self.worker_pool.is_running
        }
