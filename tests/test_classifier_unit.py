"""Unit tests for keyword classification."""

import pytest

from models import COMPLAINT_CATEGORIES, URGENCY_LEVELS
from utils.classifier import (
    FALLBACK_CONFIDENCE,
    URGENT_KEYWORDS,
    classify,
    detect_category,
    detect_urgency,
    unavailable_result,
)


class TestDetectCategory:
    """Ordered keyword rules."""

    def test_pothole_is_road_issue(self):
        assert classify("Big pothole near the bus stop")["category"] == "Road Issues"

    def test_first_matching_rule_wins(self):
        # "water" matches before "garbage" in rule order.
        assert detect_category("garbage floating in water") == "Water Supply"

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("sewage overflowing", "Sanitation"),
            ("metro service suspended", "Public Transport"),
            ("loud noise at night", "Noise Pollution"),
            ("trash not collected", "Waste Management"),
            ("crime in the area", "Public Safety"),
            ("hospital has no beds", "Healthcare"),
            ("college gate locked", "Education"),
        ],
    )
    def test_keyword_table(self, text, expected):
        assert detect_category(text) == expected

    def test_unmatched_text_is_other(self):
        assert detect_category("nothing relevant here") == "Other"

    def test_matching_is_case_insensitive(self):
        assert classify("POTHOLE")["category"] == "Road Issues"


class TestDetectUrgency:
    def test_high_keyword_wins_over_low(self):
        assert detect_urgency("urgent maintenance needed") == "high"

    def test_low_keyword(self):
        assert detect_urgency("a suggestion for the park") == "low"

    def test_default_is_medium(self):
        assert detect_urgency("please look at this") == "medium"


class TestClassify:
    @pytest.mark.parametrize("description", ["", None, "x", "broken pipe leak", "garden upgrade"])
    def test_result_always_within_enums(self, description):
        result = classify(description)

        assert result["category"] in COMPLAINT_CATEGORIES
        assert result["urgency"] in URGENCY_LEVELS
        assert result["confidence"] == FALLBACK_CONFIDENCE

    def test_caption_names_category(self):
        result = classify("Dangerous pothole on the road")

        assert result == {
            "caption": "Complaint about road issues",
            "category": "Road Issues",
            "urgency": "high",
            "confidence": 0.6,
        }

    @pytest.mark.parametrize("keyword", URGENT_KEYWORDS)
    def test_urgent_text_without_category_keyword(self, keyword):
        result = classify(f"{keyword.upper()}: something bad happened here")

        assert result == {
            "caption": "Complaint about other",
            "category": "Other",
            "urgency": "high",
            "confidence": 0.6,
        }

    def test_unavailable_result(self):
        assert unavailable_result() == {
            "caption": "Image analysis unavailable",
            "category": "Other",
            "urgency": "medium",
            "confidence": 0,
        }
