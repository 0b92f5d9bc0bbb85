from sqlalchemy import (
    Column, SmallInteger, BigInteger, Date, Enum, Float, Numeric,
    Text, ForeignKey, Index
)
from sqlalchemy.orm import relationship
from models.base import Base, JSONPayload, LoadStatus

# Codes are globally unique per table and assigned by the cadastre, never generated here.


class Region(Base):
    """Top-level administrative unit (first part of a cadastral number)."""
    __tablename__ = "region"

    code = Column(SmallInteger, primary_key=True, autoincrement=False)

    areas = relationship("Area", back_populates="region")


class Area(Base):
    """Cadastral area, belongs to exactly one region."""
    __tablename__ = "area"

    code = Column(SmallInteger, primary_key=True, autoincrement=False)
    region_code = Column(SmallInteger, ForeignKey("region.code"), nullable=False, index=True)

    region = relationship("Region", back_populates="areas")
    quarters = relationship("Quarter", back_populates="area")


class Quarter(Base):
    """Cadastral quarter, belongs to exactly one area."""
    __tablename__ = "quarter"

    code = Column(BigInteger, primary_key=True, autoincrement=False)
    area_code = Column(SmallInteger, ForeignKey("area.code"), nullable=False, index=True)

    area = relationship("Area", back_populates="quarters")
    objects = relationship("CadastralObject", back_populates="quarter")


class CadastralObject(Base):
    """
    Cadastral parcel with its registry enrichment.

    Lifecycle:
    - Inserted with load_status NEW by batch ingestion
    - Re-selected while NEW or not updated today
    - update_date records the last attempt, not the last success
    """
    __tablename__ = "object"

    code = Column(BigInteger, primary_key=True, autoincrement=False)
    quarter_code = Column(BigInteger, ForeignKey("quarter.code"), nullable=False, index=True)

    # Load tracking
    load_status = Column(
        Enum(
            LoadStatus,
            name="object_status",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=LoadStatus.NEW,
    )
    update_date = Column(Date, nullable=True)

    # Full registry response
    data = Column(JSONPayload, nullable=True)

    # Enrichment
    area = Column(Float, nullable=True)
    cost_value = Column(Numeric(20, 2), nullable=True)

    permitted_use_established_by_document = Column(Text, nullable=True)
    right_type = Column(Text, nullable=True)
    status = Column(Text, nullable=True)

    land_record_type = Column(Text, nullable=True)
    land_record_subtype = Column(Text, nullable=True)
    land_record_category_type = Column(Text, nullable=True)

    quarter = relationship("Quarter", back_populates="objects")

    __table_args__ = (
        Index("idx_object_status_date", "load_status", "update_date"),
    )
