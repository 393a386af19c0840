"""
FastAPI dependencies for dependency injection.

The memory service is created by the application lifespan and kept on
app.state; routes receive it through get_memory_service.
"""

import logging

from fastapi import HTTPException, Request

from tiered_memory.services.memory_service import MemoryService

logger = logging.getLogger(__name__)


def get_memory_service(request: Request) -> MemoryService:
    """
    Get the memory service of the running application.

    Returns:
        MemoryService: Service bound to the application's database

    Raises:
        HTTPException: 503 while the service is not initialized

    Example:
        >>> @router.get("/test")
        >>> async def test(service: MemoryService = Depends(get_memory_service)):
        ...     return service.get_stats("user123")
    """
    service = getattr(request.app.state, "memory_service", None)
    if service is None:
        logger.error("Memory service requested before startup completed")
        raise HTTPException(status_code=503, detail="Memory service not initialized")
    return service
