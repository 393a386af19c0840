"""Business logic services."""

from .memory_service import MemoryService
from .worker import ExtractionJobQueue, ExtractionWorkerPool

__all__ = ["MemoryService", "ExtractionJobQueue", "ExtractionWorkerPool"]
