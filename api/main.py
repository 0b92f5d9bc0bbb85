"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import cadastral, health, stats
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.database import async_session_maker
from core.logging import setup_logging
from ingestion.clients.registry_client import RegistryClient
from ingestion.dispatcher import CallerRunsDispatcher
from ingestion.orchestrator import EnrichmentOrchestrator
from ingestion.scheduler import EnrichmentScheduler
import logging

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Cadastral Importer API",
    description="Ingests cadastral numbers and enriches them from the real-estate registry",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Include routers
app.include_router(cadastral.router)
app.include_router(health.router)
app.include_router(stats.router)


@app.on_event("startup")
async def startup_event():
    """Build the enrichment pipeline and start the scheduler"""
    logger.info("Starting Cadastral Importer API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    registry_client = RegistryClient()
    app.state.registry_client = registry_client
    app.state.orchestrator = EnrichmentOrchestrator(
        async_session_maker,
        registry_client,
        CallerRunsDispatcher(settings.ENRICHMENT_POOL_SIZE)
    )

    app.state.scheduler = None
    if settings.ENRICHMENT_SCHEDULER_ENABLED:
        app.state.scheduler = EnrichmentScheduler(app.state.orchestrator)
        app.state.scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Cadastral Importer API")
    if app.state.scheduler is not None:
        app.state.scheduler.stop()
    await app.state.registry_client.close()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Cadastral Importer API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "load": "/loadCadastralNumbers",
            "update": "/updateCadastralInfo",
            "stats": "/stats"
        }
    }
