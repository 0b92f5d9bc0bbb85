"""
Cadastral ingestion and enrichment pipeline.

Modules:
    parser: Cadastral identifier parsing
    dispatcher: Bounded worker pool with caller-runs backpressure
    orchestrator: Batch ingestion and per-object enrichment
    scheduler: APScheduler integration for periodic enrichment runs

Subpackages:
    clients: Real-estate registry HTTP client
    transformers: Registry response normalization
    loaders: Hierarchical store with idempotent upserts
    exporters: GeoJSON export of enriched objects

Architecture:
    1. Ingest - Parse uploaded identifiers and upsert region, area, quarter
       and object, one transaction per identifier
    2. Select - Pick objects that are NEW or not refreshed today
    3. Enrich - Fetch each object from the registry through the pool and
       record SUCCESS, NOT FOUND or ERROR in its own transaction

    A failure on one identifier or object never stops its siblings.

Usage:
    from ingestion.orchestrator import EnrichmentOrchestrator
    from ingestion.clients.registry_client import RegistryClient
    from ingestion.dispatcher import CallerRunsDispatcher

    orchestrator = EnrichmentOrchestrator(
        async_session_maker,
        RegistryClient(),
        CallerRunsDispatcher(pool_size=2)
    )
    await orchestrator.ingest_lines(["16:50:11:413"])
    result = await orchestrator.run_pending()
"""

__all__ = [
    "parse_cadastral_number",
    "CallerRunsDispatcher",
    "EnrichmentOrchestrator",
    "EnrichmentScheduler",
    "RegistryClient",
    "RegistryNormalizer",
    "CadastralRepository",
    "GeoJSONExporter",
]
