"""Client for the external image-classification service."""
import os
from typing import Any, Dict

import requests
from flask import current_app

from models import COMPLAINT_CATEGORIES, URGENCY_LEVELS
from utils.classifier import classify
from utils.errors import UpstreamUnavailable

DEFAULT_CAPTION = "No caption generated"
DEFAULT_CONFIDENCE = 0.5
HEALTH_TIMEOUT = 5
STATS_TIMEOUT = 10


def _normalize_category(value: Any) -> str:
    if not value:
        return "Other"
    text = str(value).strip()
    for category in COMPLAINT_CATEGORIES:
        if category.lower() == text.lower():
            return category
    return "Other"


def _normalize_urgency(value: Any) -> str:
    if not value:
        return "medium"
    normalized = str(value).strip().lower()
    if normalized in URGENCY_LEVELS:
        return normalized
    return "medium"


def _coerce_confidence(value: Any) -> float:
    if value is None or value == "":
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    return min(max(confidence, 0.0), 1.0)


def normalize_result(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Fill defaults and clamp the service payload onto the complaint enums."""
    caption = str(payload.get("caption") or "").strip()
    return {
        "caption": caption or DEFAULT_CAPTION,
        "category": _normalize_category(payload.get("category")),
        "urgency": _normalize_urgency(payload.get("urgency")),
        "confidence": _coerce_confidence(payload.get("confidence")),
    }


class ClassifierClient:
    """Built once per process from configuration; holds no request state."""

    def __init__(self, base_url: str, timeout: float = 30.0, session: requests.Session | None = None) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "ClassifierClient":
        return cls(config.get("ML_API_URL", ""), timeout=float(config.get("ML_API_TIMEOUT", 30)))

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def analyze(self, image_path: str, description: str) -> Dict[str, Any]:
        if not self.base_url:
            raise UpstreamUnavailable("ML_API_URL is not configured")

        current_app.logger.info(
            "Dispatching image classification",
            extra={"endpoint": self._url("/analyze"), "image": os.path.basename(image_path)},
        )
        with open(image_path, "rb") as image:
            try:
                response = self.session.post(
                    self._url("/analyze"),
                    files={"image": (os.path.basename(image_path), image)},
                    data={"description": description},
                    timeout=self.timeout,
                )
            except requests.RequestException as exc:
                raise UpstreamUnavailable(f"Classification request failed: {exc}") from exc

        if response.status_code != 200:
            raise UpstreamUnavailable(f"Classification service returned HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable("Classification service returned non-JSON output") from exc
        if not isinstance(payload, dict):
            raise UpstreamUnavailable("Classification service returned an unexpected payload")
        return normalize_result(payload)

    def _get_json(self, path: str, timeout: float) -> Dict[str, Any] | None:
        if not self.base_url:
            return None
        try:
            response = self.session.get(self._url(path), timeout=timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError):
            current_app.logger.warning("Classification service %s unavailable", path, exc_info=True)
            return None

    def health(self) -> Dict[str, Any] | None:
        return self._get_json("/health", HEALTH_TIMEOUT)

    def stats(self) -> Dict[str, Any] | None:
        return self._get_json("/stats", STATS_TIMEOUT)


def get_classifier() -> ClassifierClient:
    return current_app.extensions["classifier"]


def classify_submission(client: ClassifierClient, image_path: str, description: str) -> Dict[str, Any]:
    """Classify through the service, degrading to keyword matching when it fails."""
    try:
        return client.analyze(image_path, description)
    except UpstreamUnavailable as exc:
        current_app.logger.warning("ML classification unavailable, using keyword fallback", extra={"error": str(exc)})
        return classify(description)
