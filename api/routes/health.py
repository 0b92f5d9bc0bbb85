"""
Health check endpoint with database and enrichment pool status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from api.dependencies import get_db, get_orchestrator
from ingestion.orchestrator import EnrichmentOrchestrator
from schemas.api import HealthCheckResponse, DispatcherInfo
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Enrichment pool size and tasks in flight
    """
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    dispatcher = orchestrator.dispatcher

    # Status is derived from database_connected by the response validator
    return HealthCheckResponse(
        database_connected=db_connected,
        dispatcher=DispatcherInfo(
            pool_size=dispatcher.pool_size,
            in_flight=dispatcher.in_flight
        )
    )
