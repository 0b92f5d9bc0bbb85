"""
Pydantic schemas for data validation and serialization.

Schemas:
    cadastral: CadastralNumber (parsed identifier), EnrichmentRecord
        (flattened registry response) and IngestionSummary
    api: API endpoint response models

Usage:
    from schemas.cadastral import CadastralNumber, EnrichmentRecord
    from schemas.api import HealthCheckResponse, StatsResponse

Example:
    number = CadastralNumber(region_code=16, area_code=50, quarter_code=11102, object_code=413)
    assert str(number) == "16:50:11102:413"
"""

__all__ = [
    "CadastralNumber",
    "EnrichmentRecord",
    "IngestionSummary",
    "AcceptedResponse",
    "HealthCheckResponse",
    "StatsResponse",
]
