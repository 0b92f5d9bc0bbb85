"""
Pydantic schemas for cadastral identifiers and registry enrichment
"""

from decimal import Decimal
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


class CadastralNumber(BaseModel):
    """
    Parsed four-part cadastral identifier.

    Rendered back as ``region:area:quarter:object`` when used as the registry
    query. Leading zeros of the original text are not preserved.
    """

    region_code: int = Field(..., ge=0)
    area_code: int = Field(..., ge=0)
    quarter_code: int = Field(..., ge=0)
    object_code: int = Field(..., ge=0)

    def __str__(self) -> str:
        return f"{self.region_code}:{self.area_code}:{self.quarter_code}:{self.object_code}"

    class Config:
        frozen = True


class EnrichmentRecord(BaseModel):
    """
    Flat view of one registry response.

    ``None`` means the field was absent (or JSON null) in the response; an
    empty string is kept as an empty string.
    """

    raw_payload: Dict[str, Any]

    area: Optional[float] = None
    cost_value: Optional[Decimal] = None

    permitted_use_established_by_document: Optional[str] = None
    right_type: Optional[str] = None
    status: Optional[str] = None

    land_record_type: Optional[str] = None
    land_record_subtype: Optional[str] = None
    land_record_category_type: Optional[str] = None

    def column_values(self) -> Dict[str, Any]:
        """Values keyed by object table column"""
        return {
            "data": self.raw_payload,
            "area": self.area,
            "cost_value": self.cost_value,
            "permitted_use_established_by_document": self.permitted_use_established_by_document,
            "right_type": self.right_type,
            "status": self.status,
            "land_record_type": self.land_record_type,
            "land_record_subtype": self.land_record_subtype,
            "land_record_category_type": self.land_record_category_type,
        }


class IngestionSummary(BaseModel):
    """Per-batch ingestion counts (logged, not returned to the uploader)"""

    lines_received: int = 0
    lines_ingested: int = 0
    lines_failed: int = 0
    lines_skipped: int = 0
