"""API dependencies."""

from fastapi import HTTPException

from character_memory.services import CharacterIngestionService, RetrievalService

# These will be set by the main.py lifespan
ingestion_service: CharacterIngestionService | None = None
retrieval_service: RetrievalService | None = None


def get_ingestion_service() -> CharacterIngestionService:
    """Get the process-wide ingestion service."""
    if ingestion_service is None:
        raise HTTPException(status_code=503, detail="Ingestion service not initialized")
    return ingestion_service


def get_retrieval_service() -> RetrievalService:
    """Get the process-wide retrieval service."""
    if retrieval_service is None:
        raise HTTPException(status_code=503, detail="Retrieval service not initialized")
    return retrieval_service
