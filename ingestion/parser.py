"""
Cadastral identifier parsing
"""

from schemas.cadastral import CadastralNumber
from core.exceptions import MalformedIdentifierError

DELIMITER = ":"
FIELD_COUNT = 4


def parse_cadastral_number(text: str) -> CadastralNumber:
    """
    Parse ``region:area:quarter:object`` into its four numeric codes.

    Surrounding whitespace is ignored. Each field must be a non-negative
    decimal integer literal; leading zeros are accepted.

    Raises:
        MalformedIdentifierError: wrong field count or a non-numeric field
    """
    stripped = text.strip()
    fields = stripped.split(DELIMITER)

    if len(fields) != FIELD_COUNT:
        raise MalformedIdentifierError(
            f"Invalid cadastral number: {stripped!r}",
            context={"identifier": stripped, "field_count": len(fields)}
        )

    codes = []
    for index, field in enumerate(fields):
        # str.isdigit() accepts superscripts and other non-ASCII digits
        if not (field.isascii() and field.isdigit()):
            raise MalformedIdentifierError(
                f"Invalid cadastral number: {stripped!r}",
                context={"identifier": stripped, "field_index": index, "field_value": field}
            )
        codes.append(int(field))

    return CadastralNumber(
        region_code=codes[0],
        area_code=codes[1],
        quarter_code=codes[2],
        object_code=codes[3],
    )
