"""Memory retrieval and write-back endpoints."""

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from character_memory.api.dependencies import get_retrieval_service
from character_memory.core.decorators import with_error_handling
from character_memory.core.logging import get_logger
from character_memory.domain.models import (
    MemoryMetadata,
    MemoryStats,
    RetrievalContext,
    RetrievalOverrides,
    RetrievedMemory,
)
from character_memory.services import RetrievalService

logger = get_logger(__name__)
router = APIRouter()


class ContextRequest(RetrievalOverrides):
    """Request model for a conversation turn; retrieval overrides ride along."""

    user_message: str


class SearchRequest(RetrievalOverrides):
    """Request model for searching memories."""

    query: str


class SearchResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    memories: list[RetrievedMemory]
    count: int


class RecordMemoryRequest(BaseModel):
    """Request model for writing back a conversation memory."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    content: str
    metadata: MemoryMetadata | None = None


class RecordMemoryResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    memory_id: str | None
    stored: bool
    message: str


class PruneRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    max_memories: int | None = Field(default=None, gt=0)
    older_than_days: int | None = Field(default=None, ge=0)


class PruneResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    deleted: int


def _overrides(request: RetrievalOverrides) -> RetrievalOverrides:
    return RetrievalOverrides.model_validate(request.model_dump(include=set(RetrievalOverrides.model_fields)))


@router.post("/{character_id}/context", response_model=RetrievalContext, operation_id="get_context")
@with_error_handling(reraise=True)
async def get_context(
    character_id: str,
    request: ContextRequest,
    service: RetrievalService = Depends(get_retrieval_service),
) -> RetrievalContext:
    """Persona summary plus the memories most relevant to the user's message."""
    return await service.get_context(character_id, request.user_message, _overrides(request))


@router.post(
    "/{character_id}/memories",
    response_model=RecordMemoryResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="record_memory",
)
@with_error_handling(reraise=True)
async def record_memory(
    character_id: str,
    request: RecordMemoryRequest,
    response: Response,
    service: RetrievalService = Depends(get_retrieval_service),
) -> RecordMemoryResponse:
    """Store one conversation memory and prune the character's memory set."""
    logger.info("Recording conversation memory", character_id=character_id, content_length=len(request.content))

    chunk = await service.record_conversation_memory(character_id, request.content, request.metadata)
    if chunk is None:
        response.status_code = status.HTTP_202_ACCEPTED
        return RecordMemoryResponse(memory_id=None, stored=False, message="Memory was not stored")
    return RecordMemoryResponse(memory_id=str(chunk.id), stored=True, message="Memory stored successfully")


@router.post("/{character_id}/memories/search", response_model=SearchResponse, operation_id="search_memories")
@with_error_handling(reraise=True)
async def search_memories(
    character_id: str,
    request: SearchRequest,
    service: RetrievalService = Depends(get_retrieval_service),
) -> SearchResponse:
    memories = await service.search_memories(character_id, request.query, _overrides(request))
    return SearchResponse(memories=memories, count=len(memories))


@router.get("/{character_id}/memories/stats", response_model=MemoryStats, operation_id="memory_stats")
@with_error_handling(reraise=True)
async def get_memory_stats(
    character_id: str,
    service: RetrievalService = Depends(get_retrieval_service),
) -> MemoryStats:
    return await service.get_memory_stats(character_id)


@router.post("/{character_id}/memories/prune", response_model=PruneResponse, operation_id="prune_memories")
@with_error_handling(reraise=True)
async def prune_memories(
    character_id: str,
    request: PruneRequest,
    service: RetrievalService = Depends(get_retrieval_service),
) -> PruneResponse:
    """Enforce the memory cap, optionally sweeping stale low-value memories."""
    deleted = await service.prune_memories(character_id, request.max_memories, request.older_than_days)
    return PruneResponse(deleted=deleted)
