import os
import tempfile

# Settings and the engine are created at import time: point them at SQLite first.
_TEST_DIR = tempfile.mkdtemp(prefix="jobpilot-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/jobpilot.db"
os.environ["IDENTITY_JWT_SECRET"] = "test-jwt-secret"
os.environ["IDENTITY_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["SERVER_URL"] = "http://testserver"
os.environ.pop("SMTP_HOST", None)

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from jobpilot.core.auth import create_access_token  # noqa: E402
from jobpilot.core.cache import data_cache  # noqa: E402
from jobpilot.db.postgres import drop_db, init_db  # noqa: E402
from jobpilot.main import app  # noqa: E402
from jobpilot.services import email_service, file_storage, llm_client  # noqa: E402
from jobpilot.services import job_listing_service, organization_service, user_service  # noqa: E402
from jobpilot.services.events import EventWorker, get_event_worker  # noqa: E402

ALL_EMPLOYER_PERMISSIONS = [
    "org:job_listings:create",
    "org:job_listings:update",
    "org:job_listings:delete",
    "org:job_listings:change_status",
    "org:job_listing_applications:change_stage",
    "org:job_listing_applications:change_rating",
]


class FakeLLMClient:
    def __init__(self) -> None:
        self.matching_ids: Optional[List[str]] = None
        self.summary = "## Summary\nPython developer"
        self.rating = 4
        self.calls: list = []

    def get_matching_job_listings(self, prompt, job_listings, max_number_of_jobs=None):
        self.calls.append(("match", prompt, [listing["id"] for listing in job_listings]))
        ids = self.matching_ids if self.matching_ids is not None else [listing["id"] for listing in job_listings]
        return ids[:max_number_of_jobs] if max_number_of_jobs else ids

    def summarize_resume(self, resume_text):
        self.calls.append(("summarize", resume_text))
        return self.summary

    def rate_application(self, job_listing, resume_summary, cover_letter=None):
        self.calls.append(("rate", job_listing["id"], resume_summary, cover_letter))
        return self.rating


class RecordingEmailService(email_service.EmailService):
    def __init__(self) -> None:
        super().__init__()
        self.sent: list = []

    def send(self, to, subject, html_body, text_body):
        self.sent.append({"to": to, "subject": subject, "html": html_body, "text": text_body})
        return True


class InMemoryFileStore:
    def __init__(self) -> None:
        self.files: dict = {}
        self._next = 0

    def put(self, user_id, filename, content, content_type=None):
        self._next += 1
        key = f"file-{self._next}"
        self.files[key] = (filename, content, content_type)
        return key

    def get(self, file_key):
        return self.files.get(file_key)

    def delete(self, file_key):
        self.files.pop(file_key, None)


@pytest.fixture(autouse=True)
def reset_database():
    drop_db()
    init_db()
    data_cache.clear()
    yield
    data_cache.clear()


@pytest.fixture(autouse=True)
def fake_llm(monkeypatch):
    fake = FakeLLMClient()
    monkeypatch.setattr(llm_client, "_llm_client", fake)
    return fake


@pytest.fixture(autouse=True)
def fake_email(monkeypatch):
    fake = RecordingEmailService()
    monkeypatch.setattr(email_service, "_email_service", fake)
    return fake


@pytest.fixture(autouse=True)
def file_store(monkeypatch):
    store = InMemoryFileStore()
    monkeypatch.setattr(file_storage, "_file_store", store)
    return store


@pytest.fixture
def worker():
    worker = EventWorker()
    app.dependency_overrides[get_event_worker] = lambda: worker
    yield worker
    app.dependency_overrides.pop(get_event_worker, None)


@pytest.fixture
def client(worker):
    return TestClient(app)


def auth_headers(user_id: str, org_id: str = None, permissions=(), features=()) -> dict:
    claims = {"sub": user_id, "org_permissions": list(permissions), "features": list(features)}
    if org_id:
        claims["org_id"] = org_id
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


def employer_auth(org_id: str = "org_1", user_id: str = "user_employer", features=("post_3_job_listings",)) -> dict:
    return {
        "user_id": user_id,
        "org_id": org_id,
        "permissions": list(ALL_EMPLOYER_PERMISSIONS),
        "features": list(features),
    }


def make_user(user_id: str = "user_seeker", name: str = "Jane Seeker", email: str = None) -> str:
    user_service.upsert_user(user_id, name, email or f"{user_id}@example.com")
    return user_id


def make_organization(org_id: str = "org_1", name: str = "Acme Corp") -> str:
    organization_service.upsert_organization(org_id, name)
    return org_id


def listing_data(**overrides) -> dict:
    data = {
        "title": "Backend Engineer",
        "description": "Build APIs in **Python**.",
        "experience_level": "mid-level",
        "location_requirement": "remote",
        "type": "full-time",
        "wage": 120000,
        "wage_interval": "yearly",
        "state_abbreviation": None,
        "city": None,
    }
    data.update(overrides)
    return data


def make_listing(org_id: str = "org_1", status: str = "draft", posted_at: datetime = None,
                 is_featured: bool = False, **overrides) -> dict:
    listing = job_listing_service.insert_job_listing(org_id, listing_data(**overrides))
    changes = {}
    if status != "draft":
        changes["status"] = status
        changes["posted_at"] = posted_at or datetime.now(timezone.utc)
    if is_featured:
        changes["is_featured"] = True
    if changes:
        listing = job_listing_service.update_job_listing_db(listing["id"], changes)
    return listing


def days_ago(days: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)
