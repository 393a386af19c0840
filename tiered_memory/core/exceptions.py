"""
Exception hierarchy for the memory pipeline.

Configuration, persistence and validation errors are surfaced to callers;
external model errors are recovered locally by the heuristic fallback.
"""


class MemoryPipelineError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ConfigurationError(MemoryPipelineError):
    """No storage configured or reachable."""
    pass


class PersistenceError(MemoryPipelineError):
    """A storage read or write failed."""
    pass


class ValidationError(MemoryPipelineError):
    """Missing or invalid request input."""
    pass


class TransientExternalError(MemoryPipelineError):
    """External model call failed or returned an unusable response."""
    pass


class RateLimitError(TransientExternalError):
    """Model API rate limit hit."""
    pass


class APIQuotaError(TransientExternalError):
    """Model API quota exhausted."""
    pass
