"""
Cadastral statistics endpoint
"""
from datetime import date
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db
from ingestion.loaders.cadastral_repository import CadastralRepository
from models.cadastral import Region, Area, Quarter, CadastralObject
from schemas.api import StatsResponse
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)):
    """
    Get cadastral statistics.

    Returns:
    - Row counts for region, area, quarter and object
    - Object counts per load status
    - Objects whose update date is today
    """
    request_id = f"req_{uuid.uuid4().hex[:12]}"

    logger.info(f"[{request_id}] GET /stats")

    repository = CadastralRepository(db)

    total_objects = await repository.count_rows(CadastralObject)
    by_status = await repository.count_by_status()

    logger.info(f"[{request_id}] Stats: {total_objects} objects")

    return StatsResponse(
        total_regions=await repository.count_rows(Region),
        total_areas=await repository.count_rows(Area),
        total_quarters=await repository.count_rows(Quarter),
        total_objects=total_objects,
        objects_by_status={status.value: count for status, count in by_status.items()},
        objects_updated_today=await repository.count_updated_on(date.today()),
        request_id=request_id
    )
