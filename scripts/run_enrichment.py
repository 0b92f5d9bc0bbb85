"""
Script to run one enrichment pass over every stale cadastral object
"""

import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import async_session_maker, engine
from core.logging import setup_logging
from ingestion.clients.registry_client import RegistryClient
from ingestion.dispatcher import CallerRunsDispatcher
from ingestion.orchestrator import EnrichmentOrchestrator

logger = logging.getLogger(__name__)


async def run_enrichment():
    """Refresh every object that is NEW or not updated today"""
    try:
        async with RegistryClient() as registry_client:
            orchestrator = EnrichmentOrchestrator(
                async_session_maker,
                registry_client,
                CallerRunsDispatcher(settings.ENRICHMENT_POOL_SIZE)
            )
            result = await orchestrator.run_pending()

        logger.info(
            f"Enrichment completed: dispatched={result['dispatched']}, "
            f"success={result['SUCCESS']}, not_found={result['NOT FOUND']}, "
            f"error={result['ERROR']}, skipped={result['skipped']}"
        )

    except Exception as e:
        logger.error(f"Enrichment pipeline error: {str(e)}")
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(run_enrichment())
