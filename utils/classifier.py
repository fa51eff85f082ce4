"""Keyword classification used when the ML service cannot classify a complaint."""
from typing import Dict, Tuple

FALLBACK_CONFIDENCE = 0.6
DEFAULT_CATEGORY = "Other"

# Ordered: the first rule with a matching keyword wins.
CATEGORY_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("road", "pothole", "street"), "Road Issues"),
    (("water", "supply", "pipe"), "Water Supply"),
    (("electric", "power", "light"), "Electricity"),
    (("sanitation", "sewage", "drain"), "Sanitation"),
    (("street light",), "Street Lighting"),
    (("transport", "bus", "metro"), "Public Transport"),
    (("park", "garden", "recreation"), "Parks & Recreation"),
    (("noise", "sound"), "Noise Pollution"),
    (("air", "pollution", "smoke"), "Air Pollution"),
    (("waste", "garbage", "trash"), "Waste Management"),
    (("traffic", "congestion"), "Traffic Management"),
    (("safety", "security", "crime"), "Public Safety"),
    (("health", "hospital", "medical"), "Healthcare"),
    (("school", "education", "college"), "Education"),
)

URGENT_KEYWORDS: Tuple[str, ...] = (
    "emergency",
    "urgent",
    "critical",
    "dangerous",
    "broken",
    "damaged",
    "leak",
    "fire",
    "accident",
)

LOW_URGENCY_KEYWORDS: Tuple[str, ...] = (
    "suggestion",
    "improvement",
    "maintenance",
    "upgrade",
    "beautification",
)


def _contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


def detect_category(text: str) -> str:
    for keywords, category in CATEGORY_RULES:
        if _contains_any(text, keywords):
            return category
    return DEFAULT_CATEGORY


def detect_urgency(text: str) -> str:
    if _contains_any(text, URGENT_KEYWORDS):
        return "high"
    if _contains_any(text, LOW_URGENCY_KEYWORDS):
        return "low"
    return "medium"


def classify(description: str | None) -> Dict[str, object]:
    text = (description or "").lower()
    category = detect_category(text)
    return {
        "caption": f"Complaint about {category.lower()}",
        "category": category,
        "urgency": detect_urgency(text),
        "confidence": FALLBACK_CONFIDENCE,
    }


def unavailable_result() -> Dict[str, object]:
    """Result recorded when the classification step itself failed."""
    return {
        "caption": "Image analysis unavailable",
        "category": DEFAULT_CATEGORY,
        "urgency": "medium",
        "confidence": 0,
    }
