"""
Export enriched cadastral objects to a GeoPackage file.

A GeoPackage is an SQLite database with a few registry tables
(``gpkg_spatial_ref_sys``, ``gpkg_contents``, ``gpkg_geometry_columns``) and
one feature table whose geometry column holds GeoPackage binary blobs: a
small header with the SRS id and envelope followed by little-endian WKB.

Geometry is written as the registry delivers it, in Web Mercator
(EPSG:3857); nothing is reprojected.
"""

import struct
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import shapely
from shapely.errors import GEOSException
from shapely.geometry import shape
from sqlalchemy import (
    Column, Integer, SmallInteger, Float, Date, Text, LargeBinary,
    ForeignKey, MetaData, PrimaryKeyConstraint, Table, create_engine, insert, update
)
from sqlalchemy.dialects.sqlite import DATETIME
from sqlalchemy.ext.asyncio import async_sessionmaker
from ingestion.exporters.geojson_exporter import GEOMETRY_DEPTH, object_properties
from ingestion.loaders.cadastral_repository import CadastralRepository
from ingestion.transformers.registry_normalizer import lookup
from models.cadastral import CadastralObject
import logging

logger = logging.getLogger(__name__)

WEB_MERCATOR_SRS_ID = 3857
WGS84_SRS_ID = 4326
FEATURE_TABLE = "cadastral_objects"
GEOMETRY_COLUMN = "geometry"

# 'GPKG' and version 1.3.0, as PRAGMA values
GPKG_APPLICATION_ID = 0x47504B47
GPKG_USER_VERSION = 10300

# Header flags: little-endian byte order, envelope [minx, maxx, miny, maxy]
GPKG_HEADER_FLAGS = 0b0000_0011
GPKG_HEADER = struct.Struct("<2sBBi4d")

metadata = MetaData()

spatial_ref_sys = Table(
    "gpkg_spatial_ref_sys", metadata,
    Column("srs_name", Text, nullable=False),
    Column("srs_id", Integer, primary_key=True, autoincrement=False),
    Column("organization", Text, nullable=False),
    Column("organization_coordsys_id", Integer, nullable=False),
    Column("definition", Text, nullable=False),
    Column("description", Text),
)

contents = Table(
    "gpkg_contents", metadata,
    Column("table_name", Text, primary_key=True),
    Column("data_type", Text, nullable=False),
    Column("identifier", Text, unique=True),
    Column("description", Text),
    Column(
        "last_change",
        DATETIME(storage_format="%(year)04d-%(month)02d-%(day)02dT%(hour)02d:%(minute)02d:%(second)02dZ"),
        nullable=False
    ),
    Column("min_x", Float),
    Column("min_y", Float),
    Column("max_x", Float),
    Column("max_y", Float),
    Column("srs_id", Integer, ForeignKey("gpkg_spatial_ref_sys.srs_id")),
)

geometry_columns = Table(
    "gpkg_geometry_columns", metadata,
    Column("table_name", Text, ForeignKey("gpkg_contents.table_name"), nullable=False),
    Column("column_name", Text, nullable=False),
    Column("geometry_type_name", Text, nullable=False),
    Column("srs_id", Integer, ForeignKey("gpkg_spatial_ref_sys.srs_id"), nullable=False),
    Column("z", SmallInteger, nullable=False),
    Column("m", SmallInteger, nullable=False),
    PrimaryKeyConstraint("table_name", "column_name"),
)

cadastral_objects = Table(
    FEATURE_TABLE, metadata,
    Column("code", Integer, primary_key=True, autoincrement=False),
    Column("quarter_code", Integer, nullable=False),
    Column("load_status", Text),
    Column("update_date", Date),
    Column("area", Float),
    Column("cost_value", Float),
    Column("permitted_use_established_by_document", Text),
    Column("right_type", Text),
    Column("status", Text),
    Column("land_record_type", Text),
    Column("land_record_subtype", Text),
    Column("land_record_category_type", Text),
    Column(GEOMETRY_COLUMN, LargeBinary, nullable=False),
)

SPATIAL_REFERENCE_SYSTEMS = [
    {
        "srs_name": "WGS 84 / Pseudo-Mercator",
        "srs_id": WEB_MERCATOR_SRS_ID,
        "organization": "EPSG",
        "organization_coordsys_id": WEB_MERCATOR_SRS_ID,
        "definition": (
            'PROJCS["WGS 84 / Pseudo-Mercator",GEOGCS["WGS 84",DATUM["WGS_1984",'
            'SPHEROID["WGS 84",6378137,298.257223563,AUTHORITY["EPSG","7030"]],AUTHORITY["EPSG","6326"]],'
            'PRIMEM["Greenwich",0,AUTHORITY["EPSG","8901"]],'
            'UNIT["degree",0.0174532925199433,AUTHORITY["EPSG","9122"]],AUTHORITY["EPSG","4326"]],'
            'PROJECTION["Mercator_1SP"],PARAMETER["central_meridian",0],PARAMETER["scale_factor",1],'
            'PARAMETER["false_easting",0],PARAMETER["false_northing",0],'
            'UNIT["metre",1,AUTHORITY["EPSG","9001"]],AXIS["X",EAST],AXIS["Y",NORTH],'
            'EXTENSION["PROJ4","+proj=merc +a=6378137 +b=6378137 +lat_ts=0.0 +lon_0=0.0 +x_0=0.0 '
            '+y_0=0 +k=1.0 +units=m +nadgrids=@null +wktext +no_defs"],AUTHORITY["EPSG","3857"]]'
        ),
        "description": "Popular Visualisation CRS / Mercator",
    },
    {
        "srs_name": "WGS 84",
        "srs_id": WGS84_SRS_ID,
        "organization": "EPSG",
        "organization_coordsys_id": WGS84_SRS_ID,
        "definition": (
            'GEOGCS["WGS 84",DATUM["WGS_1984",'
            'SPHEROID["WGS 84",6378137,298.257223563,AUTHORITY["EPSG","7030"]],AUTHORITY["EPSG","6326"]],'
            'PRIMEM["Greenwich",0,AUTHORITY["EPSG","8901"]],'
            'UNIT["degree",0.0174532925199433,AUTHORITY["EPSG","9122"]],AUTHORITY["EPSG","4326"]]'
        ),
        "description": "WGS 84",
    },
]

Envelope = Tuple[float, float, float, float]


def geometry_to_gpkg(geometry: Any, srs_id: int = WEB_MERCATOR_SRS_ID) -> Tuple[bytes, Envelope]:
    """
    Encode a GeoJSON geometry as a GeoPackage binary blob.

    Returns the blob and the geometry's (minx, miny, maxx, maxy) bounds.
    Raises ValueError for unsupported types, malformed coordinates or an
    empty geometry.
    """
    if not isinstance(geometry, dict) or "coordinates" not in geometry:
        raise ValueError("No coordinates in geometry")
    if geometry.get("type") not in GEOMETRY_DEPTH:
        raise ValueError(f"Unsupported geometry type: {geometry.get('type')}")

    try:
        geom = shape(geometry)
    except (TypeError, IndexError, GEOSException) as e:
        raise ValueError(f"Malformed {geometry['type']} coordinates: {e}") from e
    if geom.is_empty:
        raise ValueError("Geometry is empty")

    minx, miny, maxx, maxy = geom.bounds
    header = GPKG_HEADER.pack(b"GP", 0, GPKG_HEADER_FLAGS, srs_id, minx, maxx, miny, maxy)
    wkb = shapely.to_wkb(geom, output_dimension=2, byte_order=1)
    return header + wkb, (minx, miny, maxx, maxy)


def _extend(envelope: Optional[Envelope], bounds: Envelope) -> Envelope:
    if envelope is None:
        return bounds
    return (
        min(envelope[0], bounds[0]),
        min(envelope[1], bounds[1]),
        max(envelope[2], bounds[2]),
        max(envelope[3], bounds[3]),
    )


def build_row(obj: CadastralObject) -> Optional[Tuple[Dict[str, Any], Envelope]]:
    """Feature table row for one stored object, or None when it has no usable geometry"""
    features = lookup(obj.data, ("data", "features"))
    if not isinstance(features, list) or not features or not isinstance(features[0], dict):
        logger.warning(f"No features in stored payload for object {obj.code}")
        return None

    try:
        blob, bounds = geometry_to_gpkg(features[0].get("geometry"))
    except ValueError as e:
        logger.warning(f"Failed to convert geometry for object {obj.code}: {e}")
        return None

    row = object_properties(obj)
    row["update_date"] = obj.update_date
    row[GEOMETRY_COLUMN] = blob
    return row, bounds


class GeoPackageExporter:
    """
    Write SUCCESS objects to a single-layer GeoPackage.

    An existing file at the output path is replaced.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def export(self, output_file: str) -> int:
        """
        Export and return the number of features written.
        """
        async with self.session_factory() as session:
            objects = await CadastralRepository(session).list_enriched_objects()
        logger.info(f"Found {len(objects)} enriched objects to export")

        output = Path(output_file)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.unlink(missing_ok=True)

        engine = create_engine(f"sqlite:///{output}")
        try:
            metadata.create_all(engine)
            with engine.begin() as conn:
                conn.exec_driver_sql(f"PRAGMA application_id = {GPKG_APPLICATION_ID}")
                conn.exec_driver_sql(f"PRAGMA user_version = {GPKG_USER_VERSION}")
                self._register_layer(conn)

                count = 0
                envelope: Optional[Envelope] = None
                for processed, obj in enumerate(objects, start=1):
                    built = build_row(obj)
                    if built is not None:
                        row, bounds = built
                        conn.execute(insert(cadastral_objects).values(**row))
                        envelope = _extend(envelope, bounds)
                        count += 1
                    if processed % 100 == 0:
                        logger.info(f"Processed {processed} objects...")

                if envelope is not None:
                    conn.execute(
                        update(contents)
                        .where(contents.c.table_name == FEATURE_TABLE)
                        .values(min_x=envelope[0], min_y=envelope[1], max_x=envelope[2], max_y=envelope[3])
                    )
        finally:
            engine.dispose()

        logger.info(f"Total exported: {count} features to {output}")
        return count

    def _register_layer(self, conn):
        conn.execute(insert(spatial_ref_sys), SPATIAL_REFERENCE_SYSTEMS)
        conn.execute(
            insert(contents).values(
                table_name=FEATURE_TABLE,
                data_type="features",
                identifier="Cadastral Objects",
                description="Cadastral objects enriched from the registry",
                last_change=datetime.now(timezone.utc).replace(tzinfo=None),
                srs_id=WEB_MERCATOR_SRS_ID,
            )
        )
        conn.execute(
            insert(geometry_columns).values(
                table_name=FEATURE_TABLE,
                column_name=GEOMETRY_COLUMN,
                # Registry objects mix polygons, multipolygons and points
                geometry_type_name="GEOMETRY",
                srs_id=WEB_MERCATOR_SRS_ID,
                z=0,
                m=0,
            )
        )
