"""
Unit tests for cadastral identifier parsing
"""

import pytest
from ingestion.parser import parse_cadastral_number
from core.exceptions import MalformedIdentifierError


class TestParseCadastralNumber:
    """Test identifier parsing"""

    def test_parse_valid_identifier(self):
        number = parse_cadastral_number("16:50:11:413")

        assert number.region_code == 16
        assert number.area_code == 50
        assert number.quarter_code == 11
        assert number.object_code == 413

    def test_surrounding_whitespace_is_ignored(self):
        number = parse_cadastral_number("  16:50:11:413 \r\n")
        assert str(number) == "16:50:11:413"

    def test_leading_zeros_are_dropped_on_render(self):
        """Codes are integers, so the query form loses leading zeros"""
        number = parse_cadastral_number("16:50:0110101:0413")

        assert number.quarter_code == 110101
        assert number.object_code == 413
        assert str(number) == "16:50:110101:413"

    def test_large_object_code(self):
        number = parse_cadastral_number("77:1:123456789:9876543210")
        assert number.object_code == 9876543210

    @pytest.mark.parametrize("text", [
        "16:50:11",
        "16:50:11:413:1",
        "",
        "   ",
        "16-50-11-413",
    ])
    def test_wrong_field_count(self, text):
        with pytest.raises(MalformedIdentifierError) as exc_info:
            parse_cadastral_number(text)
        assert "field_count" in exc_info.value.context

    @pytest.mark.parametrize("text", [
        "16:50:abc:413",
        "16:50:11:",
        "16:50:-11:413",
        "16:50:1 1:413",
        "16:50:11:4.5",
        "16:50:11:²",
    ])
    def test_non_numeric_field(self, text):
        with pytest.raises(MalformedIdentifierError) as exc_info:
            parse_cadastral_number(text)
        assert "field_index" in exc_info.value.context

    def test_error_message_names_identifier(self):
        with pytest.raises(MalformedIdentifierError) as exc_info:
            parse_cadastral_number("garbage")
        assert "garbage" in exc_info.value.message
        assert exc_info.value.to_dict()["error_type"] == "MalformedIdentifierError"
