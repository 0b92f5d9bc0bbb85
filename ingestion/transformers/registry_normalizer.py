"""
Transform the registry's nested JSON response into a flat EnrichmentRecord
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Sequence, Union
from schemas.cadastral import EnrichmentRecord
from core.exceptions import RegistryResponseError
import logging

logger = logging.getLogger(__name__)

OPTIONS_PATH = ("data", "features", 0, "properties", "options")

# First candidate with a non-zero value wins
AREA_CANDIDATES = ("area", "declared_area", "specified_area")

TEXT_FIELDS = (
    "permitted_use_established_by_document",
    "right_type",
    "status",
    "land_record_type",
    "land_record_subtype",
    "land_record_category_type",
)


def lookup(node: Any, path: Sequence[Union[str, int]]) -> Optional[Any]:
    """
    Follow ``path`` through nested dicts/lists.

    Returns None as soon as a step is missing, has the wrong container type
    or holds JSON null.
    """
    current = node
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or step >= len(current):
                return None
            current = current[step]
        else:
            if not isinstance(current, dict):
                return None
            current = current.get(step)
        if current is None:
            return None
    return current


class RegistryNormalizer:
    """
    Normalize a registry search response.

    Handles:
    - Required nesting check (data.features[0].properties.options)
    - Area fallback chain
    - Numeric parsing without implicit zero defaults
    - Text fields kept verbatim (absent stays None, "" stays "")
    """

    def normalize(self, payload: Any, cadastral_number: Optional[str] = None) -> EnrichmentRecord:
        if not isinstance(payload, dict):
            raise RegistryResponseError(
                "Registry response is not a JSON object",
                context={"cadastral_number": cadastral_number, "payload_type": type(payload).__name__}
            )

        options = lookup(payload, OPTIONS_PATH)
        if not isinstance(options, dict):
            raise RegistryResponseError(
                "Registry response has no feature options",
                context={
                    "cadastral_number": cadastral_number,
                    "missing_path": "data.features[0].properties.options"
                }
            )

        return EnrichmentRecord(
            raw_payload=payload,
            area=self.extract_area(options),
            cost_value=self._parse_decimal(options.get("cost_value")),
            **{field: self._parse_text(options.get(field)) for field in TEXT_FIELDS}
        )

    def extract_area(self, options: Dict[str, Any]) -> Optional[float]:
        """
        Walk AREA_CANDIDATES in order and return the first non-zero value.

        When none is non-zero the last candidate is returned as parsed,
        which may be 0 or None.
        """
        value = None
        for field in AREA_CANDIDATES:
            value = self._parse_float(options.get(field))
            if value:
                return value
        return value

    @staticmethod
    def _parse_float(value: Any) -> Optional[float]:
        """Safely parse float value"""
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            return float(value)
        except (ValueError, TypeError):
            logger.debug(f"Ignoring non-numeric value {value!r}")
            return None

    @staticmethod
    def _parse_decimal(value: Any) -> Optional[Decimal]:
        if value is None or value == "" or isinstance(value, bool):
            return None
        try:
            # str() keeps float values from dragging binary noise into the Decimal
            return Decimal(str(value))
        except (InvalidOperation, ValueError):
            logger.debug(f"Ignoring non-numeric value {value!r}")
            return None

    @staticmethod
    def _parse_text(value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return str(value)


def normalize_registry_response(payload: Any, cadastral_number: Optional[str] = None) -> EnrichmentRecord:
    """Module-level shortcut around RegistryNormalizer"""
    return RegistryNormalizer().normalize(payload, cadastral_number)
