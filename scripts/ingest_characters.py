#!/usr/bin/env python3
"""Re-ingest characters into the memory store.

Rebuilds each character's full biography, core persona summary and
biography memories. Pass character ids, or ``--all`` for every character
the repository knows.
"""

import argparse
import asyncio
import os
import sys

import logfire

from character_memory.bootstrap import create_services
from character_memory.core.base import ApplicationError
from character_memory.core.config import settings
from character_memory.core.logging import get_logger, setup_logging
from character_memory.domain.models import IngestionOutcome

logfire.configure(service_name="character-memory-ingest", token=os.getenv("LOGFIRE_TOKEN"), send_to_logfire="if-token-present")
setup_logging()
logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("character_ids", nargs="*", help="Characters to ingest")
    parser.add_argument("--all", action="store_true", help="Ingest every known character")
    parser.add_argument("--offline", action="store_true", help="Use offline hashing embeddings")
    args = parser.parse_args(argv)
    if args.all == bool(args.character_ids):
        parser.error("pass either character ids or --all")
    return args


def print_outcome(outcome: IngestionOutcome) -> None:
    if outcome.result is not None:
        result = outcome.result
        status = "ok" if result.success else "FAILED"
        print(
            f"{outcome.character_id}: {status} "
            f"chunks={result.chunks_created} dropped={result.embeddings_failed} "
            f"persona={'yes' if result.persona_generated else 'no'}"
        )
        for error in result.errors:
            print(f"  - {error}")
    else:
        print(f"{outcome.character_id}: FAILED {outcome.error}")


async def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    async with create_services(settings, offline=args.offline) as services:
        if args.all:
            outcomes = await services.ingestion.ingest_all_characters()
        else:
            outcomes = []
            for character_id in args.character_ids:
                try:
                    result = await services.ingestion.ingest(character_id)
                    outcomes.append(IngestionOutcome(character_id=character_id, result=result))
                except ApplicationError as e:
                    outcomes.append(IngestionOutcome(character_id=character_id, error=e.message))

    for outcome in outcomes:
        print_outcome(outcome)

    failed = sum(1 for outcome in outcomes if not outcome.success)
    logger.info(f"Ingested {len(outcomes) - failed} of {len(outcomes)} characters")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
