"""
Export enriched cadastral objects as GeoJSON.

The registry returns each object as a GeoJSON feature in Web Mercator
(EPSG:3857). The exporter takes that feature from the stored payload,
reprojects its geometry to WGS84 (EPSG:4326, the only CRS GeoJSON allows)
and replaces its properties with the stored columns.
"""

import copy
import json
import math
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import async_sessionmaker
from ingestion.loaders.cadastral_repository import CadastralRepository
from ingestion.transformers.registry_normalizer import lookup
from models.cadastral import CadastralObject
import logging

logger = logging.getLogger(__name__)

EARTH_HALF_CIRCUMFERENCE = 20037508.34

# Nesting depth of positions inside "coordinates" per geometry type
GEOMETRY_DEPTH = {
    "Point": 0,
    "LineString": 1,
    "Polygon": 2,
    "MultiPolygon": 3,
}

INVALID_FILENAME_CHARS = '/\\:*?"<>| '


def web_mercator_to_wgs84(x: float, y: float) -> List[float]:
    lon = x / EARTH_HALF_CIRCUMFERENCE * 180.0
    lat = y / EARTH_HALF_CIRCUMFERENCE * 180.0
    lat = 180.0 / math.pi * (2.0 * math.atan(math.exp(lat * math.pi / 180.0)) - math.pi / 2.0)
    return [lon, lat]


def _convert_positions(coordinates: Any, depth: int) -> Any:
    if not isinstance(coordinates, list):
        raise ValueError(f"Expected a coordinate array, got {type(coordinates).__name__}")
    if depth == 0:
        if len(coordinates) < 2:
            raise ValueError("Position needs at least two coordinates")
        return web_mercator_to_wgs84(float(coordinates[0]), float(coordinates[1]))
    return [_convert_positions(item, depth - 1) for item in coordinates]


def convert_geometry_to_wgs84(geometry: Any) -> Dict[str, Any]:
    """
    Reproject a Point, LineString, Polygon or MultiPolygon in place.

    Any ``crs`` member is dropped. Raises ValueError for other geometry
    types or malformed coordinates.
    """
    if not isinstance(geometry, dict):
        raise ValueError("Geometry is not an object")
    if "coordinates" not in geometry:
        raise ValueError("No coordinates in geometry")

    geometry_type = geometry.get("type")
    if geometry_type not in GEOMETRY_DEPTH:
        raise ValueError(f"Unsupported geometry type: {geometry_type}")

    geometry["coordinates"] = _convert_positions(geometry["coordinates"], GEOMETRY_DEPTH[geometry_type])
    geometry.pop("crs", None)
    return geometry


def sanitize_filename(name: str) -> str:
    for char in INVALID_FILENAME_CHARS:
        name = name.replace(char, "_")
    name = name.strip()
    return name or "unknown"


def group_value(properties: Dict[str, Any], property_name: str) -> str:
    if property_name not in properties:
        return "unknown"
    value = properties[property_name]
    if value is None:
        return "null"
    if isinstance(value, float):
        return f"{value:.0f}"
    return str(value) or "unknown"


def object_properties(obj: CadastralObject) -> Dict[str, Any]:
    """Stored columns as GeoJSON properties"""
    return {
        "code": obj.code,
        "quarter_code": obj.quarter_code,
        "load_status": obj.load_status.value if obj.load_status else None,
        "update_date": obj.update_date.isoformat() if obj.update_date else None,
        "area": obj.area,
        "cost_value": float(obj.cost_value) if obj.cost_value is not None else None,
        "permitted_use_established_by_document": obj.permitted_use_established_by_document,
        "right_type": obj.right_type,
        "status": obj.status,
        "land_record_type": obj.land_record_type,
        "land_record_subtype": obj.land_record_subtype,
        "land_record_category_type": obj.land_record_category_type,
    }


def build_feature(obj: CadastralObject) -> Optional[Dict[str, Any]]:
    """
    Turn one stored object into a WGS84 GeoJSON feature.

    Returns None (and logs why) when the payload has no usable feature.
    """
    features = lookup(obj.data, ("data", "features"))
    if not isinstance(features, list) or not features or not isinstance(features[0], dict):
        logger.warning(f"No features in stored payload for object {obj.code}")
        return None

    feature = copy.deepcopy(features[0])
    try:
        convert_geometry_to_wgs84(feature.get("geometry"))
    except (ValueError, TypeError) as e:
        logger.warning(f"Failed to convert geometry for object {obj.code}: {e}")
        return None

    properties = object_properties(obj)
    existing = feature.get("properties")
    if isinstance(existing, dict):
        for key, value in existing.items():
            properties.setdefault(key, value)
    feature["properties"] = properties
    return feature


def _feature_collection(features: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "FeatureCollection", "features": features}


def _write_json(path: Path, document: Dict[str, Any]):
    with path.open("w", encoding="utf-8") as fh:
        json.dump(document, fh, ensure_ascii=False, indent=2)


class GeoJSONExporter:
    """
    Write SUCCESS objects to GeoJSON.

    Without ``group_by`` a single FeatureCollection is written to
    ``output_file``. With ``group_by`` one file per distinct property value
    is written to a directory derived from ``output_file``, named
    ``<base>_<property>_<value>.geojson``. Values that sanitize to the same
    file name share one file.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def collect_features(self) -> List[Dict[str, Any]]:
        async with self.session_factory() as session:
            objects = await CadastralRepository(session).list_enriched_objects()

        features = []
        for processed, obj in enumerate(objects, start=1):
            feature = build_feature(obj)
            if feature is not None:
                features.append(feature)
            if processed % 100 == 0:
                logger.info(f"Processed {processed} objects...")

        logger.info(f"Built {len(features)} features from {len(objects)} enriched objects")
        return features

    async def export(self, output_file: str, group_by: Optional[str] = None) -> List[Path]:
        """
        Export and return the paths written.
        """
        features = await self.collect_features()
        output = Path(output_file)

        if not group_by:
            output.parent.mkdir(parents=True, exist_ok=True)
            _write_json(output, _feature_collection(features))
            logger.info(f"Total exported: {len(features)} features to {output}")
            return [output]

        groups: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for feature in features:
            groups[sanitize_filename(group_value(feature["properties"], group_by))].append(feature)

        if output.suffix:
            base_name = output.stem
            output_dir = output.parent if output.parent != Path(".") else Path(output.stem)
        else:
            base_name = "cadastral"
            output_dir = output
        output_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for value, group in sorted(groups.items()):
            path = output_dir / f"{base_name}_{group_by}_{value}.geojson"
            _write_json(path, _feature_collection(group))
            logger.info(f"  Created: {path} ({len(group)} features)")
            written.append(path)

        logger.info(
            f"Total exported: {len(features)} features in {len(written)} files in directory: {output_dir}"
        )
        return written
