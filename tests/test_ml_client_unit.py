"""Unit tests for the classification service client."""

from unittest.mock import MagicMock

import pytest
import requests

from utils.errors import UpstreamUnavailable
from utils.ml_client import ClassifierClient, classify_submission, normalize_result


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"not-really-a-png")
    return str(path)


def _response(status_code=200, payload=None, json_error=False):
    response = MagicMock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


class TestNormalizeResult:
    def test_missing_fields_get_defaults(self):
        assert normalize_result({}) == {
            "caption": "No caption generated",
            "category": "Other",
            "urgency": "medium",
            "confidence": 0.5,
        }

    def test_out_of_enum_values_are_normalized(self):
        result = normalize_result({"caption": "x", "category": "Volcano", "urgency": "apocalyptic", "confidence": 7})

        assert result["category"] == "Other"
        assert result["urgency"] == "medium"
        assert result["confidence"] == 1.0

    def test_category_match_ignores_case(self):
        assert normalize_result({"category": "water supply", "urgency": "HIGH"})["category"] == "Water Supply"
        assert normalize_result({"urgency": "HIGH"})["urgency"] == "high"


class TestClassifierClient:
    def test_from_config(self):
        client = ClassifierClient.from_config({"ML_API_URL": "http://ml:5000/", "ML_API_TIMEOUT": 12})

        assert client.base_url == "http://ml:5000"
        assert client.timeout == 12.0

    def test_analyze_posts_multipart(self, app, image_file):
        session = MagicMock()
        session.post.return_value = _response(
            payload={"caption": "Pothole", "category": "Road Issues", "urgency": "high", "confidence": 0.9}
        )
        client = ClassifierClient("http://ml:5000", timeout=30, session=session)

        with app.app_context():
            result = client.analyze(image_file, "pothole")

        assert result["category"] == "Road Issues"
        args, kwargs = session.post.call_args
        assert args[0] == "http://ml:5000/analyze"
        assert kwargs["data"] == {"description": "pothole"}
        assert kwargs["timeout"] == 30
        assert "image" in kwargs["files"]

    @pytest.mark.parametrize(
        "response",
        [
            _response(status_code=500, payload={}),
            _response(json_error=True),
            _response(payload=["not", "a", "dict"]),
        ],
    )
    def test_unusable_responses_raise_upstream_unavailable(self, app, image_file, response):
        session = MagicMock()
        session.post.return_value = response
        client = ClassifierClient("http://ml:5000", session=session)

        with app.app_context(), pytest.raises(UpstreamUnavailable):
            client.analyze(image_file, "text")

    def test_transport_error_raises_upstream_unavailable(self, app, image_file):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        client = ClassifierClient("http://ml:5000", session=session)

        with app.app_context(), pytest.raises(UpstreamUnavailable):
            client.analyze(image_file, "text")

    def test_unreadable_image_is_not_an_upstream_failure(self, app, tmp_path):
        client = ClassifierClient("http://ml:5000", session=MagicMock())

        with app.app_context(), pytest.raises(OSError):
            client.analyze(str(tmp_path / "missing.png"), "text")

    def test_health_returns_none_on_failure(self, app):
        session = MagicMock()
        session.get.side_effect = requests.Timeout("slow")
        client = ClassifierClient("http://ml:5000", session=session)

        with app.app_context():
            assert client.health() is None
            assert client.stats() is None


class TestClassifySubmission:
    def test_falls_back_to_keywords(self, app, image_file):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        client = ClassifierClient("http://ml:5000", session=session)

        with app.app_context():
            result = classify_submission(client, image_file, "Water pipe leak on my street")

        assert result["confidence"] == 0.6
        assert result["urgency"] == "high"
        assert result["category"] == "Road Issues"

    def test_uses_service_result_when_available(self, app, image_file):
        session = MagicMock()
        session.post.return_value = _response(payload={"caption": "c", "category": "Healthcare", "urgency": "low", "confidence": 0.8})
        client = ClassifierClient("http://ml:5000", session=session)

        with app.app_context():
            result = classify_submission(client, image_file, "anything")

        assert result == {"caption": "c", "category": "Healthcare", "urgency": "low", "confidence": 0.8}
