"""
Tests for structured-output extraction.
"""

from __future__ import annotations

import pytest

from iopulse.exceptions import ExtractionError
from iopulse.llm.extraction import extract_json


class TestObjectExtraction:
    """Tests for object-shaped extraction."""

    def test_direct_parse(self) -> None:
        assert extract_json('  {"risk_tolerance": "low"}  ', "object") == {"risk_tolerance": "low"}

    def test_object_in_prose(self) -> None:
        text = 'Here is the profile:\n```json\n{"risk_tolerance": "high", "x": 1}\n```\nDone.'
        assert extract_json(text, "object", discriminator="risk_tolerance") == {
            "risk_tolerance": "high",
            "x": 1,
        }

    def test_smallest_block_with_discriminator(self) -> None:
        """Test the smallest object holding the key wins over its wrapper."""
        text = (
            'Thinking... {"analysis": {"recommendation": "Swap ETH for SOL and hold for 2 weeks", '
            '"explanation": "SOL wins"}, "notes": "draft"}'
        )
        result = extract_json(text, "object", discriminator="recommendation")

        assert result == {
            "recommendation": "Swap ETH for SOL and hold for 2 weeks",
            "explanation": "SOL wins",
        }

    def test_skips_objects_without_discriminator(self) -> None:
        text = 'Scratch: {"step": 1} Final: {"recommendation": "r", "explanation": "e"}'
        assert extract_json(text, "object", discriminator="recommendation")["recommendation"] == "r"

    def test_direct_parse_without_discriminator_falls_through(self) -> None:
        """Test a whole-string object lacking the key is not accepted."""
        with pytest.raises(ExtractionError):
            extract_json('{"other": 1}', "object", discriminator="recommendation")

    def test_reasoning_trace_with_braces(self) -> None:
        text = (
            "<think>The set {BTC, ETH} looks strong; maybe {risk} is low</think>\n"
            '{"current_holding_symbol": "ETH", "risk_tolerance": "medium"}'
        )
        result = extract_json(text, "object", discriminator="risk_tolerance")
        assert result["current_holding_symbol"] == "ETH"


class TestArrayExtraction:
    """Tests for array-shaped extraction."""

    def test_direct_parse(self) -> None:
        assert extract_json('["BTC", "ETH"]', "array") == ["BTC", "ETH"]

    def test_largest_array_wins(self) -> None:
        text = 'I considered ["BTC"] first. Final list: ["BTC", "ETH", "SOL"]'
        assert extract_json(text, "array") == ["BTC", "ETH", "SOL"]

    def test_outer_array_of_objects(self) -> None:
        text = (
            "Results:\n"
            '[{"symbol": "BTC", "qualitative_score": 9, "tags": ["l1"]}, '
            '{"symbol": "ETH", "qualitative_score": 8}]'
        )
        result = extract_json(text, "array")

        assert [item["symbol"] for item in result] == ["BTC", "ETH"]

    def test_object_not_accepted_for_array(self) -> None:
        with pytest.raises(ExtractionError):
            extract_json('{"coins": 1}', "array")


class TestExtractionFailure:
    """Tests for the failure path."""

    def test_error_carries_snippet(self) -> None:
        text = "I cannot help with that. " * 20

        with pytest.raises(ExtractionError) as exc_info:
            extract_json(text, "object", discriminator="recommendation")

        assert exc_info.value.snippet == text[:200]
        assert exc_info.value.shape == "object"

    @pytest.mark.parametrize("text", ["", "   ", "[unclosed", "{broken: json"])
    def test_unparseable(self, text: str) -> None:
        with pytest.raises(ExtractionError):
            extract_json(text, "array" if text.startswith("[") else "object")

    def test_idempotent(self) -> None:
        text = 'prefix ["SOL", "AVAX"] suffix [1]'
        assert extract_json(text, "array") == extract_json(text, "array")
