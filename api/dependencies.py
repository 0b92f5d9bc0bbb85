"""
FastAPI dependencies
"""

from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import get_session
from ingestion.orchestrator import EnrichmentOrchestrator


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session for the duration of one request"""
    async for session in get_session():
        yield session


def get_orchestrator(request: Request) -> EnrichmentOrchestrator:
    """Orchestrator built at startup and shared by every request"""
    return request.app.state.orchestrator
