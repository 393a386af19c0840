"""
SQLAlchemy models for memory storage.

Defines the turn log, the long-term archive, the short-term context tier and
the extraction job queue, with indexes and PostgreSQL full-text indexes.
"""

from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime, JSON, Index, func,
    literal_column
)

from tiered_memory.core.database import Base, utcnow


def search_document(table):
    """Text indexed for lexical search: searchable text plus summary."""
    return func.coalesce(table.c.searchable_text, "") + " " + func.coalesce(table.c.summary, "")


def tsvector_of(table):
    """PostgreSQL tsvector over the search document."""
    return func.to_tsvector(literal_column("'english'"), search_document(table))


class ChatTurn(Base):
    """
    Raw conversation turn, written synchronously by record_turn.

    Attributes:
        chat_id: Unique turn identifier (also the extraction job id)
        user_id: Owning user
        session_id: Conversation session
        user_input: User message
        ai_output: Assistant reply
        model: Model that produced the reply
        context: Optional extraction context
        metadata_: Caller metadata
        created_at: Record timestamp
    """

    __tablename__ = "chat_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(String(64), unique=True, nullable=False)
    user_id = Column(String(255), nullable=False)
    session_id = Column(String(255), nullable=False, default="default")
    user_input = Column(Text, nullable=False)
    ai_output = Column(Text, nullable=False, default="")
    model = Column(String(100), nullable=False, default="unknown")
    context = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_chat_user", "user_id"),
        Index("idx_chat_session", "session_id"),
        Index("idx_chat_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ChatTurn(chat_id='{self.chat_id}', user_id='{self.user_id}')>"


class LongTermMemory(Base):
    """
    Long-term archive row: every extracted memory lands here.

    Attributes:
        memory_id: Writer-generated id, shared with any short-term mirror
        user_id: Owning user
        chat_id: Source turn
        content: Full memory text
        summary: Short human-readable summary
        searchable_text: Case-folded text used for lexical search
        importance_score: Importance in [0, 0.99]
        classification: Memory classification label
        entities: List of {type, value}
        keywords: Up to 25 keywords
        is_user_context: Self-descriptive (conscious-info) memory
        duplicate_of: Earlier memory with a near-identical summary
    """

    __tablename__ = "long_term_memory"

    memory_id = Column(String(64), primary_key=True)
    user_id = Column(String(255), nullable=False)
    chat_id = Column(String(64), nullable=True)
    content = Column(Text, nullable=False)
    summary = Column(Text, nullable=False)
    searchable_text = Column(Text, nullable=False)
    importance_score = Column(Float, nullable=False, default=0.6)
    classification = Column(String(50), nullable=False, default="conversational")
    entities = Column(JSON, nullable=False, default=list)
    keywords = Column(JSON, nullable=False, default=list)
    is_user_context = Column(Boolean, nullable=False, default=False)
    duplicate_of = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_long_user", "user_id"),
        Index("idx_long_importance", "importance_score"),
        Index("idx_long_classification", "classification"),
        Index("idx_long_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<LongTermMemory(memory_id='{self.memory_id}', classification='{self.classification}')>"


class ShortTermMemory(Base):
    """
    Short-term context row, created only by promotion and never updated.

    Attributes:
        memory_id: Same id as the promoted long-term memory
        session_id: Session the entry is bound to
        expires_at: Expiry, or None for no expiry
        is_permanent: Permanent entries survive the expiry sweep
    """

    __tablename__ = "short_term_memory"

    memory_id = Column(String(64), primary_key=True)
    user_id = Column(String(255), nullable=False)
    session_id = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    summary = Column(Text, nullable=False)
    searchable_text = Column(Text, nullable=False)
    importance_score = Column(Float, nullable=False, default=0.8)
    expires_at = Column(DateTime, nullable=True)
    is_permanent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_short_user", "user_id"),
        Index("idx_short_expires", "expires_at"),
        Index("idx_short_importance", "importance_score"),
    )

    def __repr__(self) -> str:
        return f"<ShortTermMemory(memory_id='{self.memory_id}', user_id='{self.user_id}')>"


class ExtractionJob(Base):
    """
    Durable extraction job, keyed by the turn it extracts from.

    Attributes:
        job_id: chat_id of the source turn
        status: pending, running, done or failed
        attempts: Times a worker picked the job up
        last_error: Error text of the last failed attempt
    """

    __tablename__ = "extraction_jobs"

    job_id = Column(String(64), primary_key=True)
    user_id = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_job_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<ExtractionJob(job_id='{self.job_id}', status='{self.status}')>"


# GIN full-text indexes exist only on PostgreSQL
Index(
    "idx_long_search",
    tsvector_of(LongTermMemory.__table__),
    postgresql_using="gin"
).ddl_if(dialect="postgresql")

Index(
    "idx_short_search",
    tsvector_of(ShortTermMemory.__table__),
    postgresql_using="gin"
).ddl_if(dialect="postgresql")
