from collections.abc import Awaitable, Callable

from character_memory.core.base import ApplicationError
from character_memory.core.logging import get_logger
from character_memory.domain.models import HealthStatus
from character_memory.domain.services import EmbeddingService

logger = get_logger(__name__)


async def probe(name: str, check: Callable[[], Awaitable[bool]]) -> bool:
    """Run one health probe; application errors count as unhealthy."""
    try:
        return bool(await check())
    except ApplicationError as e:
        logger.warning(f"Health probe '{name}' failed", error=e.message, error_code=e.code.value)
        return False


async def collect_health(
    embeddings: EmbeddingService,
    probes: dict[str, Callable[[], Awaitable[bool]]],
) -> HealthStatus:
    """Combine the embedding provider's status with additional named probes."""
    embedding_status = await embeddings.health_check()
    components = {name: await probe(name, check) for name, check in probes.items()}
    return HealthStatus.combine(embedding_status, HealthStatus.from_components(components))
