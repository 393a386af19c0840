"""Core application components."""

from .config import Settings, settings, get_settings
from .database import Base, Database
from .exceptions import (
    MemoryPipelineError,
    ConfigurationError,
    PersistenceError,
    ValidationError,
    TransientExternalError,
    RateLimitError,
    APIQuotaError
)

__all__ = [
    "Settings",
    "settings",
    "get_settings",
    "Base",
    "Database",
    "MemoryPipelineError",
    "ConfigurationError",
    "PersistenceError",
    "ValidationError",
    "TransientExternalError",
    "RateLimitError",
    "APIQuotaError"
]
