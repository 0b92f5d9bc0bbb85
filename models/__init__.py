"""
SQLAlchemy ORM models for database tables.

This package defines the cadastral hierarchy using SQLAlchemy ORM models:

Models:
    base: Base declarative class, the JSON payload type and the LoadStatus enum
    cadastral: Region, Area, Quarter and CadastralObject tables

Database Schema:
    region(code) ← area(region_code) ← quarter(area_code) ← object(quarter_code)

    Codes are unique per table, not per parent. The object table carries
    the load status, the date of the last enrichment attempt, the raw
    registry response (JSONB on PostgreSQL) and the extracted attributes.

Usage:
    from models.cadastral import Region, Area, Quarter, CadastralObject
    from models.base import LoadStatus

Relationships:
    - Region → Area (one-to-many)
    - Area → Quarter (one-to-many)
    - Quarter → CadastralObject (one-to-many)
"""

__all__ = [
    "Base",
    "LoadStatus",
    "Region",
    "Area",
    "Quarter",
    "CadastralObject",
]
