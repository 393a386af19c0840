"""
Main FastAPI application.

Entry point for the Tiered Memory API with database lifecycle, background
extraction workers, middleware, error handling and logging configuration.
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tiered_memory.api.endpoints import memory
from tiered_memory.core.config import Settings, settings as default_settings
from tiered_memory.core.database import Database, utcnow
from tiered_memory.services.memory_service import MemoryService

# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler('memory_pipeline.log')
    ]
)

logger = logging.getLogger(__name__)


def _error_body(error: str) -> dict:
    return {
        "success": False,
        "data": None,
        "error": error,
        "timestamp": utcnow().isoformat()
    }


def create_app(settings: Optional[Settings] = None, service: Optional[MemoryService] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings; the module default when omitted
        service: Pre-built memory service on a connected database. When
            omitted, startup connects to settings.database_url and owns the
            database for the application's lifetime.

    Returns:
        FastAPI: Configured application
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Connects the database, creates the schema and starts the extraction
        workers; on shutdown stops the workers and closes owned connections.
        """
        logger.info("Starting Tiered Memory API")

        database = None
        memory_service = service
        try:
            if memory_service is None:
                database = Database(settings)
                database.connect()
                database.init_schema()
                memory_service = MemoryService(database, settings)

            await memory_service.start()
            app.state.memory_service = memory_service
            logger.info(f"Tiered Memory API started successfully on {settings.api_version}")

        except Exception as e:
            logger.error(f"Failed to start application: {e}")
            if database is not None:
                database.close()
            raise

        yield

        logger.info("Shutting down Tiered Memory API")
        app.state.memory_service = None
        await memory_service.stop()
        if database is not None:
            database.close()

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        debug=settings.debug
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every request with its processing time."""
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.3f}s"
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Consistent envelope for HTTP errors."""
        logger.warning(f"HTTP {exc.status_code}: {exc.detail} - {request.url}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies and parameters are client errors (400)."""
        messages = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        logger.warning(f"Invalid request: {messages} - {request.url}")
        return JSONResponse(status_code=400, content=_error_body(messages))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Unexpected errors are logged and answered with 500."""
        logger.error(f"Unhandled exception: {exc} - {request.url}", exc_info=True)
        return JSONResponse(status_code=500, content=_error_body("Internal server error"))

    app.include_router(memory.router, prefix="/api/v1")

    @app.get("/")
    async def root():
        """API information and main endpoints."""
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "description": settings.api_description,
            "status": "running",
            "endpoints": {
                "docs": "/docs",
                "health": "/api/v1/memory/health",
                "record": "/api/v1/memory/record",
                "context": "/api/v1/memory/context",
                "search": "/api/v1/memory/search"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Tiered Memory API server")

    uvicorn.run(
        "tiered_memory.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.debug,
        log_level=default_settings.log_level.lower()
    )
