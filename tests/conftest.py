"""Shared fixtures: in-memory store, fake classifier and recording notifier."""

import os

os.environ.setdefault("USE_MOCK_DB", "true")

from typing import List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.errors import VerificationUnavailableError  # noqa: E402
from app.models.report import MLPrediction  # noqa: E402
from app.models.user import RequestUser, UserRole  # noqa: E402
from app.services.lifecycle_engine import ReportLifecycleEngine  # noqa: E402
from app.services.ml_verification import VerificationClient  # noqa: E402
from app.services.notification_service import ReportStatusEvent  # noqa: E402
from app.services.persistence import InMemoryReportStore  # noqa: E402

THRESHOLD = 0.70
ML_TYPES = ["Pothole", "Broken Street Light", "Garbage Overflow", "Drainage Overflow"]
IMAGE_URL = "https://storage.example.com/reports/before.jpg"
DONE_URL = "https://storage.example.com/reports/after.jpg"


class FakeClassifier(VerificationClient):
    """Returns a fixed prediction, or raises when unavailable or error is set."""

    def __init__(self, prediction: Optional[MLPrediction] = None, unavailable: bool = False):
        self.prediction = prediction
        self.unavailable = unavailable
        self.error: Optional[Exception] = None
        self.calls: List[str] = []

    def get_model_info(self) -> dict:
        return {"name": "fake"}

    def get_timeout_seconds(self) -> float:
        return 1.0

    def verify_image(self, image_url: str) -> Optional[MLPrediction]:
        self.calls.append(image_url)
        if self.unavailable:
            raise VerificationUnavailableError("Classifier timed out after 1.0s")
        if self.error is not None:
            raise self.error
        return self.prediction

    def predict(self, predicted_class: str, confidence: float) -> None:
        self.prediction = MLPrediction(predicted_class=predicted_class, confidence=confidence)


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: List[ReportStatusEvent] = []

    def publish(self, event: ReportStatusEvent):
        if self.fail:
            raise RuntimeError("notification backend exploded")
        self.events.append(event)
        return None


ADMIN = RequestUser(id="admin-1", email="admin@ripple.test", role=UserRole.ADMIN, block_id=None)
SUPERVISOR = RequestUser(id="sup-1", email="sup1@ripple.test", role=UserRole.SUPERVISOR, block_id="B1")
OTHER_SUPERVISOR = RequestUser(id="sup-2", email="sup2@ripple.test", role=UserRole.SUPERVISOR, block_id="B2")


@pytest.fixture
def store() -> InMemoryReportStore:
    s = InMemoryReportStore()
    for user in (ADMIN, SUPERVISOR, OTHER_SUPERVISOR):
        s.save_user(user.id, {"email": user.email, "role": user.role.value, "block_id": user.block_id})
    return s


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def engine(store, classifier, notifier) -> ReportLifecycleEngine:
    return ReportLifecycleEngine(
        store=store,
        verification_client=classifier,
        notifier=notifier,
        confidence_threshold=THRESHOLD,
        ml_supported_issue_types=ML_TYPES,
    )


def submit(engine: ReportLifecycleEngine, issue_type: str = "Pothole", block_id: str = "B1", user_id: str = "resident-1"):
    return engine.submit_report(issue_type=issue_type, block_id=block_id, image_url=IMAGE_URL, user_id=user_id)


def advance_to_worker(engine: ReportLifecycleEngine, issue_type: str = "Pothole", block_id: str = "B1") -> str:
    """Submit, triage and assign a worker; returns the report id."""
    report_id = submit(engine, issue_type, block_id).id
    engine.start_triage(ADMIN, report_id, "2 days")
    engine.assign_worker(SUPERVISOR, report_id, "Ravi")
    return report_id


@pytest.fixture
def api_user():
    """Mutable holder for the actor the API tests authenticate as."""
    return {"user": ADMIN, "uid": "resident-1"}


@pytest.fixture
def client(engine, store, api_user):
    from app.main import app
    from app.services.lifecycle_engine import get_lifecycle_engine
    from app.services.persistence import get_report_store
    from app.utils.auth import get_authenticated_uid, get_current_user

    app.dependency_overrides[get_lifecycle_engine] = lambda: engine
    app.dependency_overrides[get_report_store] = lambda: store
    app.dependency_overrides[get_current_user] = lambda: api_user["user"]
    app.dependency_overrides[get_authenticated_uid] = lambda: api_user["uid"]
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
