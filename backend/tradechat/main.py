"""
FastAPI application entry point for the TradeChat backend.
Stateless: all provider configuration comes from the environment.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .agent.providers.resolver import get_provider_resolver
from .api.chat import router as chat_router
from .api.health import router as health_router
from .api.llm_models import router as llm_models_router
from .core.config import get_settings
from .core.exceptions import AppError

# Set the root logger level to INFO so we can see detailed logs
logging.basicConfig(level=logging.INFO)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: report provider status, close clients on shutdown."""
    settings = get_settings()
    resolver = get_provider_resolver()

    logger.info(
        "Starting TradeChat backend",
        environment=settings.environment,
        configured_providers=resolver.get_configured_providers(),
    )

    try:
        yield
    finally:
        await resolver.close()
        logger.info("Provider clients closed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="TradeChat API",
        description="Multi-provider AI chat for trading analytics",
        version="0.1.0",
        docs_url="/docs" if settings.environment == "development" else None,
        redoc_url="/redoc" if settings.environment == "development" else None,
        lifespan=lifespan,
    )

    # CORS middleware for frontend communication
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Global exception handler for custom app errors
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """
        Handle all custom AppError exceptions with proper HTTP status codes.

        Validation and unknown-model errors are raised before a stream opens,
        so they reach the client as regular JSON errors.
        """
        error_dict = exc.to_dict()

        # Log error with full context
        logger.error(
            "Application error occurred",
            path=request.url.path,
            method=request.method,
            **error_dict,
        )

        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error_type": exc.error_type},
        )

    # Include routers
    app.include_router(health_router, prefix="/api", tags=["health"])
    app.include_router(chat_router)  # SSE chat streaming
    app.include_router(llm_models_router)  # LLM model selection and pricing

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint for basic connectivity check."""
        return {
            "message": "TradeChat API",
            "version": "0.1.0",
            "environment": settings.environment,
        }

    return app


# Create app instance
app = create_app()

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "tradechat.main:app",
        host="0.0.0.0",  # nosec B104 - Required for Docker container
        port=8000,
        reload=settings.environment == "development",
        log_config=None,  # Use structlog configuration
    )
