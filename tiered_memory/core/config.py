"""
Configuration management using Pydantic Settings.

Handles environment variables, validation, and application settings
with proper type checking and default values.
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables or a .env file.
    Nothing is required at import time: a missing database URL surfaces as a
    ConfigurationError when the database is connected, and a missing Gemini
    key disables the model path so extraction runs on heuristics only.
    """

    # ================================
    # LLM API Configuration
    # ================================
    gemini_api_key: Optional[str] = Field(default=None, description="Google Gemini API key")
    gemini_model: str = Field(default="gemini-1.5-flash", description="Gemini model name")
    gemini_max_retries: int = Field(default=3, description="Gemini API max retries on rate limits")
    gemini_timeout: float = Field(default=30.0, description="Gemini request timeout in seconds")
    gemini_temperature: float = Field(default=0.2, description="Sampling temperature for extraction")
    rate_limit_per_minute: int = Field(default=15, description="Model requests allowed per minute")

    # ================================
    # Database Configuration
    # ================================
    database_url: Optional[str] = Field(default=None, description="SQLAlchemy database URL")

    # Connection pool settings (ignored by SQLite)
    db_pool_size: int = Field(default=20, description="Database connection pool size")
    db_max_overflow: int = Field(default=40, description="Database max overflow connections")
    db_pool_timeout: int = Field(default=30, description="Database pool timeout")
    db_pool_recycle: int = Field(default=3600, description="Database pool recycle time")

    # ================================
    # Memory Pipeline Configuration
    # ================================
    extraction_workers: int = Field(default=2, description="Concurrent extraction workers")
    default_session_id: str = Field(default="default", description="Session bound to promoted memories")
    promotion_threshold: float = Field(
        default=0.85,
        description="Importance above which a memory is mirrored into short-term"
    )
    short_term_ttl_hours: Optional[float] = Field(
        default=None,
        description="Expiry for importance-only promotions; unset keeps them permanent"
    )

    short_term_context_limit: int = Field(default=10, description="Short-term entries in context")
    default_context_limit: int = Field(default=6, description="Default long-term hits in context")
    max_context_limit: int = Field(default=20, description="Maximum long-term hits in context")
    default_search_limit: int = Field(default=10, description="Default search result count")
    max_search_limit: int = Field(default=50, description="Maximum search result count")
    recent_memories_limit: int = Field(default=200, description="Maximum recent memories listed")

    enable_duplicate_linking: bool = Field(
        default=True,
        description="Cross-link new memories to earlier near-identical summaries"
    )
    duplicate_threshold: float = Field(default=0.90, description="Jaccard similarity for duplicates")
    duplicate_scan_limit: int = Field(default=50, description="Recent summaries checked for duplicates")

    max_text_length: int = Field(default=10000, description="Maximum characters per turn field")

    # ================================
    # Application Configuration
    # ================================
    log_level: str = Field(default="INFO", description="Logging level")
    api_title: str = Field(default="Tiered Memory API", description="FastAPI application title")
    api_description: str = Field(
        default="Conversational memory extraction, tiering and ranked retrieval",
        description="API description"
    )
    api_version: str = Field(default="1.0.0", description="API version")
    debug: bool = Field(default=False, description="Debug mode")

    # CORS settings
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:8080",
        description="Comma-separated list of allowed CORS origins"
    )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


def get_settings() -> Settings:
    """
    Get application settings.

    Returns:
        Settings: Validated application settings

    Example:
        >>> settings = get_settings()
        >>> print(settings.gemini_model)
        gemini-1.5-flash
    """
    return Settings()


# Default settings instance for entry points; components take settings explicitly
settings = get_settings()
