"""
Cadastral ingestion and enrichment trigger endpoints
"""

import uuid
from fastapi import APIRouter, BackgroundTasks, Depends, File, Request, UploadFile
from api.dependencies import get_orchestrator
from ingestion.orchestrator import EnrichmentOrchestrator
from schemas.api import AcceptedResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Cadastral"])


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or f"req_{uuid.uuid4().hex[:12]}"


@router.post("/loadCadastralNumbers", response_model=AcceptedResponse)
async def load_cadastral_numbers(
    request: Request,
    file: UploadFile = File(..., description="Plain-text file, one cadastral number per line"),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator)
):
    """
    Ingest an uploaded list of cadastral numbers.

    Every line is parsed and stored on its own; malformed lines are logged
    and skipped. The response is always a success, whatever the individual
    lines did.
    """
    request_id = _request_id(request)
    logger.info(f"[{request_id}] POST /loadCadastralNumbers ({file.filename})")

    content = await file.read()
    lines = content.decode("utf-8", errors="replace").splitlines()
    summary = await orchestrator.ingest_lines(lines)

    logger.info(
        f"[{request_id}] Ingested {summary.lines_ingested} of {summary.lines_received} lines "
        f"({summary.lines_failed} failed)"
    )
    return AcceptedResponse(request_id=request_id)


@router.post("/updateCadastralInfo", response_model=AcceptedResponse)
async def update_cadastral_info(
    request: Request,
    background_tasks: BackgroundTasks,
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator)
):
    """
    Start an enrichment pass over every object that is NEW or not refreshed today.

    Returns as soon as the stale objects are selected; fetching runs in the
    background through the bounded pool.
    """
    request_id = _request_id(request)
    logger.info(f"[{request_id}] POST /updateCadastralInfo")

    pending = await orchestrator.list_pending()
    background_tasks.add_task(orchestrator.dispatch, pending)

    return AcceptedResponse(request_id=request_id, objects_scheduled=len(pending))
