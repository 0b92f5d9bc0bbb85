"""
Export enriched cadastral objects to GeoJSON (WGS84) or GeoPackage (EPSG:3857)

Usage:
    python scripts/export_geojson.py --output cadastral.geojson
    python scripts/export_geojson.py --output exports/cadastral.geojson --group-by land_record_type
    python scripts/export_geojson.py --format gpkg --output cadastral.gpkg
"""

import argparse
import asyncio
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.database import async_session_maker, engine
from core.logging import setup_logging
from ingestion.exporters.geojson_exporter import GeoJSONExporter
from ingestion.exporters.geopackage_exporter import GeoPackageExporter

logger = logging.getLogger(__name__)

DEFAULT_OUTPUTS = {
    "geojson": "cadastral.geojson",
    "gpkg": "cadastral.gpkg",
}


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Export enriched cadastral objects to GeoJSON or GeoPackage")
    parser.add_argument(
        "--format",
        dest="output_format",
        choices=sorted(DEFAULT_OUTPUTS),
        default="geojson",
        help="Output format (default: geojson)"
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Output file, or the base for per-group files when --group-by is set "
             "(default: cadastral.geojson or cadastral.gpkg)"
    )
    parser.add_argument(
        "--group-by",
        dest="group_by",
        default=None,
        help="Property to split a GeoJSON export by (e.g. land_record_type, quarter_code)"
    )
    args = parser.parse_args(argv)
    if args.group_by and args.output_format != "geojson":
        parser.error("--group-by is only supported for GeoJSON output")
    if args.output is None:
        args.output = DEFAULT_OUTPUTS[args.output_format]
    return args


async def export(output: str, group_by=None, output_format: str = "geojson"):
    try:
        if output_format == "gpkg":
            count = await GeoPackageExporter(async_session_maker).export(output)
            logger.info(f"Export finished: {count} features written to {output}")
        else:
            paths = await GeoJSONExporter(async_session_maker).export(output, group_by=group_by)
            logger.info(f"Export finished: {len(paths)} file(s) written")
    except Exception as e:
        logger.error(f"Export failed: {str(e)}")
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    args = parse_args()
    asyncio.run(export(args.output, args.group_by, args.output_format))
