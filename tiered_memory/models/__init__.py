"""Database models and schemas for the memory pipeline."""

from .memory import ChatTurn, LongTermMemory, ShortTermMemory, ExtractionJob
from .schemas import (
    MemoryClassification,
    ImportanceLevel,
    JobStatus,
    Entity,
    ConversationTurn,
    CandidateMemory,
    ExtractionResult,
    MemoryRecordResponse,
    ShortTermEntryResponse,
    RankedResult,
    RecordTurnRequest,
    RecordTurnResponse,
    ContextResponse,
    SearchResponse,
    MemoryStats,
    CleanupResponse,
    APIResponse,
    HealthResponse
)

__all__ = [
    # SQLAlchemy models
    "ChatTurn",
    "LongTermMemory",
    "ShortTermMemory",
    "ExtractionJob",
    # Pydantic schemas
    "MemoryClassification",
    "ImportanceLevel",
    "JobStatus",
    "Entity",
    "ConversationTurn",
    "CandidateMemory",
    "ExtractionResult",
    "MemoryRecordResponse",
    "ShortTermEntryResponse",
    "RankedResult",
    "RecordTurnRequest",
    "RecordTurnResponse",
    "ContextResponse",
    "SearchResponse",
    "MemoryStats",
    "CleanupResponse",
    "APIResponse",
    "HealthResponse"
]
