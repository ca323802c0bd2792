"""Core API endpoints for the character memory service."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from character_memory.api.dependencies import get_ingestion_service, get_retrieval_service
from character_memory.core.logging import get_logger
from character_memory.domain.models import HealthStatus
from character_memory.services import CharacterIngestionService, RetrievalService

logger = get_logger(__name__)

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with application status."""
    return {
        "message": "Character Memory API",
        "version": "0.1.0",
        "status": "running",
    }


@router.get("/health", response_model=HealthStatus, operation_id="health")
async def health_check(
    ingestion: CharacterIngestionService = Depends(get_ingestion_service),
    retrieval: RetrievalService = Depends(get_retrieval_service),
) -> JSONResponse:
    """Health of both services; 503 when any component is down."""
    status = HealthStatus.combine(await ingestion.health_check(), await retrieval.health_check())
    if not status.healthy:
        logger.warning("Health check failed", detail=status.detail)
    return JSONResponse(status_code=200 if status.healthy else 503, content=status.model_dump())
