"""
Memory API endpoints.

Thin REST routes over the memory service: record turns, assemble context,
search, inspect both tiers and run maintenance. Every route answers with
the APIResponse envelope.
"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from tiered_memory.api.dependencies import get_memory_service
from tiered_memory.core.database import utcnow
from tiered_memory.core.exceptions import (
    ConfigurationError,
    MemoryPipelineError,
    PersistenceError,
    ValidationError
)
from tiered_memory.models.schemas import (
    APIResponse,
    ContextResponse,
    ConversationTurn,
    HealthResponse,
    JobStatus,
    RecordTurnRequest,
    RecordTurnResponse,
    SearchResponse
)
from tiered_memory.services.memory_service import MemoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/memory", tags=["memory"])


def create_api_response(success: bool, data=None, error: str = None) -> APIResponse:
    """
    Create standardized API response.

    Args:
        success: Whether operation was successful
        data: Response data
        error: Error message if failed

    Returns:
        APIResponse: Standardized response
    """
    return APIResponse(
        success=success,
        data=data,
        error=error,
        timestamp=utcnow()
    )


def raise_for_error(error: MemoryPipelineError, action: str) -> None:
    """
    Translate a pipeline error into the matching HTTP error.

    ValidationError maps to 400, ConfigurationError to 503 and
    PersistenceError (or anything else) to 500.
    """
    if isinstance(error, ValidationError):
        logger.warning(f"Invalid request ({action}): {error}")
        raise HTTPException(status_code=400, detail=str(error))
    if isinstance(error, ConfigurationError):
        logger.error(f"{action} unavailable: {error}")
        raise HTTPException(status_code=503, detail=str(error))
    if isinstance(error, PersistenceError):
        logger.error(f"{action} failed in storage: {error}")
        raise HTTPException(status_code=500, detail=f"{action} failed")
    logger.error(f"{action} failed: {error}")
    raise HTTPException(status_code=500, detail=f"{action} failed")


@router.post("/record", response_model=APIResponse)
async def record_turn(
    request: RecordTurnRequest,
    service: MemoryService = Depends(get_memory_service)
):
    """
    Record a conversation turn.

    The turn is stored durably before the response is sent; memory
    extraction runs in the background.

    Example:
        POST /memory/record
        {
            "user_id": "user123",
            "user_input": "My name is Sam, I live in Austin",
            "ai_output": "Nice to meet you, Sam"
        }

        Response:
        {
            "success": true,
            "data": {"chat_id": "1b4e28ba-...", "status": "pending"}
        }
    """
    try:
        chat_id = await service.record_turn(ConversationTurn(
            user_input=request.user_input,
            ai_output=request.ai_output,
            user_id=request.user_id,
            model=request.model,
            context=request.context,
            metadata=request.metadata
        ))
        return create_api_response(
            success=True,
            data=RecordTurnResponse(chat_id=chat_id).model_dump(mode="json")
        )
    except MemoryPipelineError as e:
        raise_for_error(e, "Recording turn")


@router.get("/context", response_model=APIResponse)
async def get_context(
    user_id: str = Query(..., description="User identifier"),
    query: str = Query(default="", description="Optional query for long-term recall"),
    limit: Optional[int] = Query(default=None, description="Long-term memories to include"),
    service: MemoryService = Depends(get_memory_service)
):
    """
    Context text for prompt augmentation.

    Example:
        GET /memory/context?user_id=user123&query=Austin
    """
    try:
        context = service.get_context(user_id, query, limit)
        return create_api_response(success=True, data=ContextResponse(context=context).model_dump())
    except MemoryPipelineError as e:
        raise_for_error(e, "Context retrieval")


@router.get("/search", response_model=APIResponse)
async def search_memories(
    user_id: str = Query(..., description="User identifier"),
    query: str = Query(default="", description="Search query"),
    limit: Optional[int] = Query(default=None, description="Maximum number of results"),
    boost: float = Query(default=0.0, ge=0.0, le=1.0, description="Bonus added to every score"),
    service: MemoryService = Depends(get_memory_service)
):
    """
    Ranked lexical search over a user's long-term memories.

    Example:
        GET /memory/search?user_id=user123&query=Austin&limit=5

        Response:
        {
            "success": true,
            "data": {
                "results": [...],
                "total_found": 1,
                "query": "Austin",
                "search_time_ms": 3.1
            }
        }
    """
    try:
        start_time = time.time()
        results = service.search(user_id, query, limit, boost=boost)
        response = SearchResponse(
            results=results,
            total_found=len(results),
            query=query,
            search_time_ms=(time.time() - start_time) * 1000
        )
        return create_api_response(success=True, data=response.model_dump(mode="json"))
    except MemoryPipelineError as e:
        raise_for_error(e, "Memory search")


@router.get("/stats/{user_id}", response_model=APIResponse)
async def get_user_stats(
    user_id: str,
    service: MemoryService = Depends(get_memory_service)
):
    """Counts across the turn log and both memory tiers."""
    try:
        stats = service.get_stats(user_id)
        return create_api_response(success=True, data=stats.model_dump())
    except MemoryPipelineError as e:
        raise_for_error(e, "Statistics retrieval")


@router.get("/recent/{user_id}", response_model=APIResponse)
async def get_recent_memories(
    user_id: str,
    limit: Optional[int] = Query(default=None, ge=1, description="Maximum number of memories"),
    service: MemoryService = Depends(get_memory_service)
):
    """
    Newest long-term memories for a user.

    Example:
        GET /memory/recent/user123?limit=10
    """
    try:
        memories = service.list_recent(user_id, limit)
        return create_api_response(
            success=True,
            data={
                "memories": [memory.model_dump(mode="json") for memory in memories],
                "total_returned": len(memories)
            }
        )
    except MemoryPipelineError as e:
        raise_for_error(e, "Memory retrieval")


@router.get("/short-term/{user_id}", response_model=APIResponse)
async def get_short_term_memories(
    user_id: str,
    limit: Optional[int] = Query(default=None, ge=1, description="Maximum number of entries"),
    service: MemoryService = Depends(get_memory_service)
):
    """Short-term entries that are always included in context."""
    try:
        entries = service.list_short_term(user_id, limit)
        return create_api_response(
            success=True,
            data={
                "memories": [entry.model_dump(mode="json") for entry in entries],
                "total_returned": len(entries)
            }
        )
    except MemoryPipelineError as e:
        raise_for_error(e, "Short-term retrieval")


@router.get("/jobs/{chat_id}", response_model=APIResponse)
async def get_job_status(
    chat_id: str,
    service: MemoryService = Depends(get_memory_service)
):
    """Extraction job status of a recorded turn."""
    try:
        status = service.get_job_status(chat_id)
    except MemoryPipelineError as e:
        raise_for_error(e, "Job lookup")

    if status is None:
        raise HTTPException(status_code=404, detail=f"No extraction job for chat {chat_id}")
    return create_api_response(success=True, data={"chat_id": chat_id, "status": JobStatus(status).value})


@router.post("/maintenance/cleanup", response_model=APIResponse)
async def cleanup_expired(
    user_id: Optional[str] = Query(default=None, description="Restrict the sweep to one user"),
    service: MemoryService = Depends(get_memory_service)
):
    """
    Delete expired short-term entries.

    Example:
        POST /memory/maintenance/cleanup?user_id=user123
    """
    try:
        result = service.cleanup_expired(user_id)
        return create_api_response(success=True, data=result.model_dump())
    except MemoryPipelineError as e:
        raise_for_error(e, "Cleanup")


@router.get("/health", response_model=HealthResponse)
async def health_check(
    service: MemoryService = Depends(get_memory_service)
):
    """
    Health check endpoint.

    "degraded" means storage works but no extraction model is configured,
    so memories come from the heuristic fallback.

    Example:
        GET /memory/health

        Response:
        {
            "status": "healthy",
            "components": {
                "database": true,
                "extraction_model": true,
                "workers": true
            },
            "timestamp": "2024-01-01T12:00:00Z",
            "version": "1.0.0"
        }
    """
    components = service.health()

    if all(components.values()):
        overall_status = "healthy"
    elif components["database"] and components["workers"]:
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    return HealthResponse(
        status=overall_status,
        components=components,
        timestamp=utcnow(),
        version=service.settings.api_version
    )
