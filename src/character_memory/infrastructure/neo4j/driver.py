"""Neo4j driver and connection management.

This module provides an async-first Neo4j driver resource provider and a
small executor that runs managed transactions with per-attempt timeouts,
bounded retries and a circuit breaker.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, Literal, LiteralString, TypeVar

from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncManagedTransaction, Record
from neo4j.exceptions import (
    DriverError,
    Neo4jError,
    ServiceUnavailable,
    SessionExpired,
    TransientError,
)

from character_memory.core.base import ApplicationError, DatabaseErrorDetails
from character_memory.core.circuit_breaker import CircuitBreaker, RetryWithCircuitBreaker
from character_memory.core.config import Settings
from character_memory.core.decorators import with_session
from character_memory.core.errors import StoreError, TimeoutError
from character_memory.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

AccessMode = Literal["read", "write"]
TransactionWork = Callable[..., Awaitable[T]]

SCHEMA_STATEMENTS: tuple[LiteralString, ...] = (
    "CREATE CONSTRAINT character_id IF NOT EXISTS FOR (c:Character) REQUIRE c.id IS UNIQUE",
    "CREATE CONSTRAINT character_memory_id IF NOT EXISTS FOR (m:CharacterMemory) REQUIRE m.id IS UNIQUE",
    "CREATE INDEX character_memory_owner IF NOT EXISTS FOR (m:CharacterMemory) ON (m.character_id, m.memory_type)",
)


@asynccontextmanager
async def create_neo4j_driver(
    settings: Settings,
    max_connection_pool_size: int = 50,
    max_connection_lifetime: int = 3600,
) -> AsyncGenerator[AsyncDriver]:
    """Create a Neo4j driver with proper resource management.

    Args:
        settings: Connection descriptor source
        max_connection_pool_size: Maximum size of the connection pool
        max_connection_lifetime: Maximum lifetime of connections in seconds

    Yields:
        AsyncDriver: Connected Neo4j driver
    """
    logger.info(
        "Creating Neo4j driver",
        uri=settings.neo4j_uri,
        pool_size=max_connection_pool_size,
        connection_lifetime=max_connection_lifetime,
    )

    driver = AsyncGraphDatabase.driver(
        settings.neo4j_uri,
        auth=(settings.neo4j_user, settings.neo4j_password.get_secret_value()),
        max_connection_pool_size=max_connection_pool_size,
        max_connection_lifetime=max_connection_lifetime,
    )

    try:
        await driver.verify_connectivity()
        logger.info("Neo4j connection established")
        yield driver
    finally:
        await driver.close()
        logger.info("Neo4j driver closed")


async def ensure_schema(driver: AsyncDriver, database: str | None = None) -> None:
    """Create the constraints and indexes the memory store relies on."""
    async with driver.session(database=database) as session:
        for statement in SCHEMA_STATEMENTS:
            result = await session.run(statement)
            await result.consume()
    logger.info("Neo4j schema ensured", statements=len(SCHEMA_STATEMENTS))


async def fetch_all(tx: AsyncManagedTransaction, query: LiteralString, params: dict[str, Any]) -> list[Record]:
    result = await tx.run(query, params)
    return [record async for record in result]


async def fetch_single(tx: AsyncManagedTransaction, query: LiteralString, params: dict[str, Any]) -> Record | None:
    result = await tx.run(query, params)
    return await result.single(strict=False)


class Neo4jExecutor:
    """Runs managed transactions against one database.

    Connection loss and transient cluster errors are retried with backoff;
    anything still failing afterwards surfaces as ``StoreError``.
    """

    def __init__(
        self,
        driver: AsyncDriver,
        database: str | None = None,
        timeout: float = 2.0,
        max_retries: int = 3,
        initial_delay: float = 0.25,
        backoff_factor: float = 2.0,
        max_delay: float = 4.0,
    ) -> None:
        self.driver = driver
        self.database = database
        self._circuit_breaker: CircuitBreaker = CircuitBreaker(
            name="neo4j",
            failure_threshold=5,
            recovery_timeout=30.0,
            expected_exception_types=(TimeoutError, StoreError),
        )
        self._retry_handler = RetryWithCircuitBreaker(
            circuit_breaker=self._circuit_breaker,
            max_retries=max_retries,
            initial_delay=initial_delay,
            backoff_factor=backoff_factor,
            max_delay=max_delay,
            attempt_timeout=timeout,
            retryable_exceptions=(TimeoutError,),
        )

    @classmethod
    def from_settings(cls, driver: AsyncDriver, settings: Settings) -> "Neo4jExecutor":
        return cls(
            driver,
            timeout=settings.store_timeout_seconds,
            max_retries=settings.max_retries,
            initial_delay=settings.retry_initial_delay,
            backoff_factor=settings.retry_backoff_factor,
            max_delay=settings.retry_max_delay,
        )

    def _details(self, mode: AccessMode, operation: str, status_code: int | None = None) -> DatabaseErrorDetails:
        return DatabaseErrorDetails(
            source="Neo4jExecutor",
            operation=operation,
            service_name="Neo4j",
            status_code=status_code,
            query_type=mode,
        )

    @with_session()
    async def _execute(self, session: Any, mode: AccessMode, work: TransactionWork[T], *args: Any) -> T:
        operation = getattr(work, "__name__", "transaction")
        try:
            if mode == "write":
                return await session.execute_write(work, *args)
            return await session.execute_read(work, *args)
        except (ServiceUnavailable, SessionExpired, TransientError) as e:
            raise TimeoutError(
                message=f"Neo4j temporarily unavailable: {e}",
                details=self._details(mode, operation, status_code=503),
            ) from e
        except (Neo4jError, DriverError) as e:
            raise StoreError(
                message=f"Neo4j {mode} failed: {e}",
                details=self._details(mode, operation),
            ) from e

    async def _run(self, mode: AccessMode, work: TransactionWork[T], *args: Any) -> T:
        try:
            return await self._retry_handler.call_async(self._execute, mode, work, *args)
        except StoreError:
            raise
        except ApplicationError as e:
            raise StoreError(
                message=f"Memory store unavailable: {e.message}",
                details=self._details(mode, getattr(work, "__name__", "transaction"), status_code=503),
            ) from e

    async def read(self, work: TransactionWork[T], *args: Any) -> T:
        return await self._run("read", work, *args)

    async def write(self, work: TransactionWork[T], *args: Any) -> T:
        return await self._run("write", work, *args)

    async def ping(self) -> bool:
        if self._circuit_breaker.is_open:
            return False
        try:
            record = await self.read(fetch_single, "RETURN 1 AS ok", {})
        except StoreError as e:
            logger.warning("Neo4j ping failed", error=e.message)
            return False
        return record is not None
