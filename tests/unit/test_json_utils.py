"""
Unit tests for src/common/json_utils.py

Tests robust JSON parsing for model outputs including:
- Valid JSON parsing
- Markdown code block extraction
- Objects embedded in prose
- Single quote and trailing comma repair
- Error handling for invalid inputs
"""

import pytest
from src.common.json_utils import parse_llm_json


# ===== TESTS: Valid JSON Parsing =====

class TestValidJsonParsing:
    """Tests for parsing valid, well-formed JSON."""

    def test_parses_simple_json(self):
        """Should parse simple valid JSON."""
        assert parse_llm_json('{"intent": "AFFIRM"}') == {"intent": "AFFIRM"}

    def test_parses_nested_json(self):
        """Should parse nested JSON structures."""
        result = parse_llm_json('{"experience": [{"company": "DHL", "role": "Picker"}], "confidence": 80}')
        assert result["experience"][0]["company"] == "DHL"
        assert result["confidence"] == 80

    def test_preserves_unicode(self):
        result = parse_llm_json('{"city": "București"}')
        assert result["city"] == "București"


# ===== TESTS: Wrapped Responses =====

class TestWrappedResponses:
    """Tests for responses that wrap the object in extra text."""

    def test_strips_markdown_fence(self):
        """Should remove ```json fences."""
        assert parse_llm_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_strips_bare_fence(self):
        assert parse_llm_json('```\n{"a": 1}\n```') == {"a": 1}

    def test_extracts_object_from_prose(self):
        """Should find the object inside surrounding text."""
        text = 'Here is the profile:\n{"education": "Liceu"}\nLet me know if you need more.'
        assert parse_llm_json(text) == {"education": "Liceu"}

    def test_single_object_in_list(self):
        """A single object wrapped in brackets is unwrapped."""
        assert parse_llm_json('[{"a": 1}]') == {"a": 1}


# ===== TESTS: Repair =====

class TestRepair:
    """Tests for json-repair fallback."""

    def test_single_quotes(self):
        assert parse_llm_json("{'intent': 'REFUSE'}") == {"intent": "REFUSE"}

    def test_trailing_comma(self):
        assert parse_llm_json('{"skills": ["EPT", "VCA"],}') == {"skills": ["EPT", "VCA"]}


# ===== TESTS: Error Handling =====

class TestErrors:
    """Tests for inputs with no recoverable object."""

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input(self, text):
        with pytest.raises(ValueError, match="Empty input"):
            parse_llm_json(text)

    def test_no_object(self):
        with pytest.raises(ValueError, match="No JSON object"):
            parse_llm_json("I cannot help with that.")

    def test_array_is_rejected(self):
        with pytest.raises(ValueError):
            parse_llm_json("[1, 2, 3]")
