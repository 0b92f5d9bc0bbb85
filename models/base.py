from sqlalchemy import JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONPayload = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


# ============================================================================
# ENUMS
# ============================================================================

class LoadStatus(str, enum.Enum):
    """Enrichment status of a cadastral object"""
    NEW = "NEW"
    SUCCESS = "SUCCESS"
    NOT_FOUND = "NOT FOUND"
    ERROR = "ERROR"
