"""Character ingestion endpoints."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from character_memory.api.dependencies import get_ingestion_service
from character_memory.core.decorators import with_error_handling
from character_memory.core.logging import get_logger
from character_memory.domain.models import IngestionOutcome, IngestionResult, IngestionStatus
from character_memory.services import CharacterIngestionService

logger = get_logger(__name__)
router = APIRouter()


class IngestAllResponse(BaseModel):
    """Response model for a batch ingestion run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    outcomes: list[IngestionOutcome]
    succeeded: int
    failed: int


@router.post("/ingest-all", response_model=IngestAllResponse, operation_id="ingest_all_characters")
@with_error_handling(reraise=True)
async def ingest_all_characters(
    service: CharacterIngestionService = Depends(get_ingestion_service),
) -> IngestAllResponse:
    """Re-ingest every known character."""
    outcomes = await service.ingest_all_characters()
    succeeded = sum(1 for outcome in outcomes if outcome.success)
    return IngestAllResponse(outcomes=outcomes, succeeded=succeeded, failed=len(outcomes) - succeeded)


@router.post("/{character_id}/ingest", response_model=IngestionResult, operation_id="ingest_character")
@with_error_handling(reraise=True)
async def ingest_character(
    character_id: str,
    service: CharacterIngestionService = Depends(get_ingestion_service),
) -> IngestionResult:
    """Rebuild one character's biography, persona and biography memories."""
    logger.info("Ingesting character", character_id=character_id)
    return await service.ingest(character_id)


@router.get("/{character_id}/ingestion-status", response_model=IngestionStatus, operation_id="ingestion_status")
@with_error_handling(reraise=True)
async def get_ingestion_status(
    character_id: str,
    service: CharacterIngestionService = Depends(get_ingestion_service),
) -> IngestionStatus:
    return await service.get_ingestion_status(character_id)
