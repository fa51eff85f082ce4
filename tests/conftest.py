"""Pytest configuration and fixtures for the complaint API.

The application runs on in-memory SQLite with temporary upload and log
directories. Outbound email and the ML service are replaced by recording
fakes installed in ``app.extensions``.
"""

import io
from typing import Any, Callable

import pytest
from PIL import Image

from app import create_app
from utils.email_service import EmailDeliveryError

PASSWORD = "secret123"
STAFF_SECRET = "staff-secret"


class FakeMailer:
    """Records messages instead of talking SMTP."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = False

    def send(self, subject, text_body, html_body, recipients, sender=None):
        if self.fail:
            raise EmailDeliveryError("SMTP unavailable")
        self.sent.append({"subject": subject, "text": text_body, "html": html_body, "to": list(recipients)})


class FakeClassifier:
    """Scripted stand-in for the image-classification service."""

    def __init__(self) -> None:
        self.result: dict[str, Any] = {
            "caption": "A large pothole in the road",
            "category": "Road Issues",
            "urgency": "high",
            "confidence": 0.92,
        }
        self.error: Exception | None = None
        self.calls: list[tuple[str, str]] = []
        self.health_payload: dict[str, Any] | None = {"status": "healthy"}
        self.stats_payload: dict[str, Any] | None = {"processed": 42}

    def analyze(self, image_path, description):
        self.calls.append((image_path, description))
        if self.error is not None:
            raise self.error
        return dict(self.result)

    def health(self):
        return self.health_payload

    def stats(self):
        return self.stats_payload


# -----------------------------------------------------------------------------
# Application
# -----------------------------------------------------------------------------


@pytest.fixture
def app(tmp_path):
    app = create_app(
        "testing",
        config_overrides={
            "UPLOAD_FOLDER": str(tmp_path / "uploads"),
            "LOG_DIR": str(tmp_path / "logs"),
        },
    )
    app.extensions["mailer"] = FakeMailer()
    app.extensions["classifier"] = FakeClassifier()
    yield app
    with app.app_context():
        from extensions import db

        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mailer(app) -> FakeMailer:
    return app.extensions["mailer"]


@pytest.fixture
def classifier(app) -> FakeClassifier:
    return app.extensions["classifier"]


@pytest.fixture
def fixed_otp(monkeypatch) -> str:
    """Make issued passcodes predictable."""
    monkeypatch.setattr("utils.security.generate_otp", lambda length=6: "123456")
    return "123456"


# -----------------------------------------------------------------------------
# Accounts
# -----------------------------------------------------------------------------


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def signup(client, name: str, email: str, password: str = PASSWORD, **extra):
    payload = {"name": name, "email": email, "password": password, **extra}
    return client.post("/api/auth/signup", json=payload)


def make_account(client, name: str, email: str, **extra) -> dict[str, Any]:
    response = signup(client, name, email, **extra)
    assert response.status_code == 201, response.get_json()
    body = response.get_json()
    return {"token": body["token"], "user": body["user"], "headers": auth_headers(body["token"])}


@pytest.fixture
def citizen(client):
    return make_account(client, "Asha Citizen", "asha@example.com")


@pytest.fixture
def other_citizen(client):
    return make_account(client, "Ravi Neighbour", "ravi@example.com")


@pytest.fixture
def staff(client):
    return make_account(client, "Sam Staff", "staff@example.com", secret=STAFF_SECRET, department="Roads")


@pytest.fixture
def admin(client):
    return make_account(client, "Ada Admin", "admin@example.com", secret=STAFF_SECRET)


# -----------------------------------------------------------------------------
# Complaints
# -----------------------------------------------------------------------------


def png_bytes(color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def submit_complaint(client) -> Callable[..., Any]:
    """Post a multipart complaint for the given account."""

    def _submit(account, description="There is a huge pothole on Main road", location="Main Road, Ward 4", **extra):
        data = {
            "photo": (io.BytesIO(png_bytes()), "pothole.png"),
            "description": description,
            "location": location,
            **extra,
        }
        return client.post(
            "/api/complaints",
            data=data,
            headers=account["headers"],
            content_type="multipart/form-data",
        )

    return _submit


@pytest.fixture
def complaint(submit_complaint, citizen) -> dict[str, Any]:
    response = submit_complaint(citizen)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["complaint"]
