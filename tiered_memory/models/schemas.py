"""
Pydantic schemas for memory data and API request/response validation.

Defines the transient pipeline types (turns, candidates, ranked results)
and the API envelope with proper validation and examples.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tiered_memory.core.database import utcnow

SUMMARY_MAX_LENGTH = 180
MAX_KEYWORDS = 25


class MemoryClassification(str, Enum):
    """
    Enumeration of memory classifications.

    - conscious-info: Self-descriptive statements (name, age, job, home, likes)
    - essential: Urgent or deadline-bound information
    - contextual: Ongoing work and current projects
    - conversational: Anything else
    - reference: Citations, docs and snippets
    - personal: Life events, family and friends
    """
    CONSCIOUS_INFO = "conscious-info"
    ESSENTIAL = "essential"
    CONTEXTUAL = "contextual"
    CONVERSATIONAL = "conversational"
    REFERENCE = "reference"
    PERSONAL = "personal"


class ImportanceLevel(str, Enum):
    """Informational importance labels derived from a score."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class JobStatus(str, Enum):
    """Lifecycle of a background extraction job."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class Entity(BaseModel):
    """A typed entity mention, e.g. {"type": "person", "value": "Sam"}."""
    type: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)


class ConversationTurn(BaseModel):
    """
    One recorded conversation turn.

    Immutable once recorded; chat_id is assigned by the service.
    """
    model_config = ConfigDict(frozen=True)

    user_input: str = Field(..., description="What the user said")
    ai_output: str = Field(default="", description="What the assistant replied")
    user_id: str = Field(..., description="User identifier")
    chat_id: Optional[str] = Field(None, description="Unique turn identifier")
    model: str = Field(default="unknown", description="Model that produced ai_output")
    context: Optional[str] = Field(None, description="Optional extra context for extraction")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Caller metadata")


class CandidateMemory(BaseModel):
    """
    A validated memory derived from one turn, ready to be stored.
    """
    content: str = Field(..., min_length=1)
    summary: str = Field(..., max_length=SUMMARY_MAX_LENGTH)
    searchable_text: str
    classification: MemoryClassification
    importance_score: float = Field(..., ge=0.0, le=1.0)
    entities: List[Entity] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list, max_length=MAX_KEYWORDS)
    is_conscious: bool = False

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "content": "My name is Sam, I live in Austin",
                "summary": "My name is Sam, I live in Austin",
                "searchable_text": "my name is sam, i live in austin",
                "classification": "conscious-info",
                "importance_score": 0.6,
                "entities": [{"type": "person", "value": "My"}, {"type": "person", "value": "Sam"}],
                "keywords": ["name", "live", "austin"],
                "is_conscious": True
            }
        }
    )


class ExtractionResult(BaseModel):
    """Extractor output; always present, possibly empty."""
    memories: List[CandidateMemory] = Field(default_factory=list)


class MemoryRecordResponse(BaseModel):
    """
    Long-term memory as returned to clients.
    """
    model_config = ConfigDict(from_attributes=True)

    memory_id: str
    user_id: str
    chat_id: Optional[str] = None
    content: str
    summary: str
    searchable_text: str
    importance_score: float
    classification: MemoryClassification
    entities: List[Entity] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    is_user_context: bool = False
    duplicate_of: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ShortTermEntryResponse(BaseModel):
    """
    Short-term (always-in-context) memory as returned to clients.
    """
    model_config = ConfigDict(from_attributes=True)

    memory_id: str
    user_id: str
    session_id: str
    content: str
    summary: str
    searchable_text: str
    importance_score: float
    expires_at: Optional[datetime] = None
    is_permanent: bool
    created_at: datetime


class RankedResult(BaseModel):
    """
    A long-term search hit with its derived ranking scores.
    """
    memory_id: str
    user_id: str
    content: str
    summary: str
    searchable_text: str
    importance_score: float
    classification: MemoryClassification
    entities: List[Entity] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    search_score: float = 0.0
    recency_score: float = 0.0
    composite_score: float = 0.0
    is_short_term: bool = False
    is_user_context: bool = False


class RecordTurnRequest(BaseModel):
    """
    Schema for recording a conversation turn.
    """
    user_id: str = Field(..., description="User identifier")
    user_input: str = Field(..., description="What the user said")
    ai_output: str = Field(default="", description="What the assistant replied")
    model: str = Field(default="unknown", description="Model that produced ai_output")
    context: Optional[str] = Field(None, description="Optional extraction context")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("user_input")
    @classmethod
    def validate_user_input(cls, v):
        """Validate user input is not empty."""
        if not v.strip():
            raise ValueError("user_input is required")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "user_id": "user123",
                "user_input": "My name is Sam, I live in Austin",
                "ai_output": "Nice to meet you, Sam",
                "model": "gpt-4o"
            }
        }
    )


class RecordTurnResponse(BaseModel):
    """Acknowledges a durably recorded turn."""
    chat_id: str
    status: JobStatus = JobStatus.PENDING


class ContextResponse(BaseModel):
    """Context text blocks for prompt augmentation."""
    context: str


class SearchResponse(BaseModel):
    """
    Ranked search results and search metadata.
    """
    results: List[RankedResult]
    total_found: int = Field(..., ge=0)
    query: str
    search_time_ms: float = Field(..., ge=0)


class MemoryStats(BaseModel):
    """Per-user counts across the turn log and both tiers."""
    total_chats: int = 0
    total_long_term: int = 0
    total_short_term: int = 0
    avg_importance: float = 0.0


class CleanupResponse(BaseModel):
    """Result of the short-term expiry sweep."""
    deleted: List[str] = Field(default_factory=list)
    total_deleted: int = 0


class APIResponse(BaseModel):
    """
    Standard API response wrapper.

    Provides consistent response format across all endpoints.
    """
    success: bool = Field(..., description="Whether request was successful")
    data: Optional[Union[Dict[str, Any], List[Any], str, int, float]] = Field(
        None,
        description="Response data"
    )
    error: Optional[str] = Field(None, description="Error message if failed")
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="Response timestamp"
    )


class HealthResponse(BaseModel):
    """
    Schema for health check response.

    Provides status of all system components.
    """
    status: str = Field(..., description="Overall system status")
    components: Dict[str, bool] = Field(..., description="Component health status")
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="Health check timestamp"
    )
    version: str = Field(..., description="API version")
