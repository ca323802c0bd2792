"""Character Memory FastAPI application."""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import logfire
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from character_memory.api import dependencies
from character_memory.api.endpoints import core, ingestion, memory
from character_memory.bootstrap import create_services
from character_memory.core.config import settings
from character_memory.core.handlers import register_error_handlers
from character_memory.core.logging import get_logger, setup_logging

# Configure Logfire and logging; pass token from environment if available
logfire.configure(service_name=settings.service_name, token=os.getenv("LOGFIRE_TOKEN"), send_to_logfire="if-token-present")
setup_logging(level="DEBUG" if settings.debug else "INFO")
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Application lifecycle manager."""
    logger.info("Starting Character Memory application", backend=settings.memory_backend)

    try:
        async with create_services(settings) as services:
            # Set global dependencies for API endpoints
            dependencies.ingestion_service = services.ingestion
            dependencies.retrieval_service = services.retrieval
            logger.info(
                f"Using {type(services.embeddings).__name__} with "
                f"{services.embeddings.get_model_dimensions()} dimensions"
            )
            logger.info("Character Memory application started successfully")

            yield  # Application is running

    except Exception as e:
        logger.error(f"Failed to start Character Memory: {e}", exc_info=True)
        raise

    finally:
        dependencies.ingestion_service = None
        dependencies.retrieval_service = None
        logger.info("Character Memory shutdown complete")


# Create FastAPI app with lifespan management
app = FastAPI(
    title="Character Memory API",
    description="Biography ingestion and per-turn memory retrieval for dialogue characters",
    version="0.1.0",
    lifespan=lifespan,
)

# Enable FastAPI instrumentation for request tracing
logfire.instrument_fastapi(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Mount API routers
app.include_router(ingestion.router, prefix="/api/v1/characters", tags=["ingestion"])
app.include_router(memory.router, prefix="/api/v1/characters", tags=["memory"])
app.include_router(core.router)


if __name__ == "__main__":
    """Development server entry point."""
    logger.info("Starting Character Memory development server...")

    uvicorn.run("character_memory.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info", access_log=True)
