from urllib.parse import quote

import pytest

from conftest import auth_headers, make_listing, make_organization, make_user
from jobpilot.core.config import get_settings
from jobpilot.services import user_service
from jobpilot.services.application_service import insert_job_listing_application
from jobpilot.services.events import RESUME_UPLOADED
from jobpilot.services.user_service import (
    create_ai_summary_of_uploaded_resume,
    get_user_resume,
    resume_uploaded_event,
    store_user_resume,
)

pytestmark = pytest.mark.integration

SEEKER = auth_headers("user_seeker")
RESUME_TEXT = b"Jane Seeker\nSenior Python developer\nFastAPI, PostgreSQL"


def upload(client, content=RESUME_TEXT, filename="resume.txt", headers=SEEKER):
    return client.post(
        "/api/users/me/resume",
        files={"file": (filename, content, "text/plain")},
        headers=headers,
    )


# ============================================================
# NOTIFICATION SETTINGS
# ============================================================

def test_notification_settings_default_to_disabled(client) -> None:
    make_user()
    response = client.get("/api/users/me/notification-settings", headers=SEEKER)

    assert response.status_code == 200
    assert response.json() == {"user_id": "user_seeker", "new_job_email_notifications": False, "ai_prompt": None}


def test_update_notification_settings(client) -> None:
    make_user()
    response = client.put(
        "/api/users/me/notification-settings",
        json={"new_job_email_notifications": True, "ai_prompt": "Remote Python jobs only"},
        headers=SEEKER,
    )
    assert response.status_code == 200
    assert response.json()["ai_prompt"] == "Remote Python jobs only"

    response = client.put(
        "/api/users/me/notification-settings",
        json={"new_job_email_notifications": True, "ai_prompt": "  "},
        headers=SEEKER,
    )
    assert response.json()["ai_prompt"] is None
    assert client.get("/api/users/me/notification-settings", headers=SEEKER).json()[
        "new_job_email_notifications"
    ] is True


def test_insert_default_settings_keeps_existing(client) -> None:
    make_user()
    user_service.update_user_notification_settings("user_seeker", True, "Data jobs")
    user_service.insert_user_notification_settings("user_seeker")

    assert user_service.get_user_notification_settings("user_seeker")["ai_prompt"] == "Data jobs"


# ============================================================
# RESUMES
# ============================================================

def test_resume_not_found_before_upload(client) -> None:
    make_user()
    assert client.get("/api/users/me/resume", headers=SEEKER).status_code == 404


def test_upload_resume_stores_file_and_queues_summary(client, worker, file_store) -> None:
    make_user()
    response = upload(client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["filename"] == "resume.txt"
    assert body["resume_file_url"] == "http://testserver/api/users/user_seeker/resume/file"

    assert list(file_store.files.values()) == [("resume.txt", RESUME_TEXT, "text/plain")]
    event = worker.queue.get_nowait()
    assert event.name == RESUME_UPLOADED
    assert event.data == {"user_id": "user_seeker"}

    resume = client.get("/api/users/me/resume", headers=SEEKER).json()
    assert resume["ai_summary"] is None


def test_reupload_replaces_old_file_and_resets_summary(client, file_store) -> None:
    make_user()
    upload(client)
    user_service.update_user_resume_summary("user_seeker", "Old summary")

    upload(client, content=b"New resume", filename="cv.txt")

    assert list(file_store.files) == ["file-2"]
    resume = get_user_resume("user_seeker")
    assert resume["resume_file_key"] == "file-2"
    assert resume["ai_summary"] is None


def test_upload_rejects_unsupported_type(client, file_store) -> None:
    make_user()
    response = upload(client, content=b"MZ...", filename="resume.exe")

    assert response.status_code == 400
    assert "Unsupported file type" in response.json()["detail"]
    assert file_store.files == {}


def test_upload_rejects_empty_file(client) -> None:
    make_user()
    assert upload(client, content=b"").status_code == 400


def test_upload_rejects_oversized_file(client, monkeypatch) -> None:
    make_user()
    monkeypatch.setattr(get_settings(), "max_resume_size_mb", 1)

    response = upload(client, content=b"x" * (1024 * 1024 + 1))
    assert response.status_code == 413


def test_owner_can_download_resume(client) -> None:
    make_user()
    upload(client)

    response = client.get("/api/users/user_seeker/resume/file", headers=SEEKER)
    assert response.status_code == 200
    assert response.content == RESUME_TEXT
    assert 'filename="resume.txt"' in response.headers["content-disposition"]


def test_download_resume_with_non_ascii_filename(client) -> None:
    make_user()
    upload(client, filename="Иванов_CV.txt")

    response = client.get("/api/users/user_seeker/resume/file", headers=SEEKER)
    assert response.status_code == 200
    assert response.content == RESUME_TEXT
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"_CV.txt\"; filename*=UTF-8''" + quote("Иванов_CV.txt")
    )


def test_employer_downloads_only_resumes_of_applicants(client) -> None:
    make_user()
    make_organization()
    upload(client)
    employer = auth_headers("user_employer", org_id="org_1")

    assert client.get("/api/users/user_seeker/resume/file", headers=employer).status_code == 403

    listing = make_listing(status="published")
    insert_job_listing_application(listing["id"], "user_seeker", None)
    assert client.get("/api/users/user_seeker/resume/file", headers=employer).status_code == 200


def test_stranger_cannot_download_resume(client) -> None:
    make_user()
    upload(client)
    response = client.get("/api/users/user_seeker/resume/file", headers=auth_headers("user_other"))
    assert response.status_code == 403


def test_download_missing_resume_is_not_found(client) -> None:
    make_user()
    assert client.get("/api/users/user_seeker/resume/file", headers=SEEKER).status_code == 404


# ============================================================
# BACKGROUND: AI SUMMARY
# ============================================================

async def test_summary_handler_saves_llm_summary(worker, fake_llm) -> None:
    make_user()
    store_user_resume("user_seeker", "resume.txt", RESUME_TEXT, "text/plain")

    await create_ai_summary_of_uploaded_resume(resume_uploaded_event("user_seeker"), worker)

    assert get_user_resume("user_seeker")["ai_summary"] == fake_llm.summary
    kind, resume_text = fake_llm.calls[0]
    assert kind == "summarize"
    assert "Senior Python developer" in resume_text


async def test_summary_handler_skips_without_resume(worker, fake_llm) -> None:
    make_user()
    await create_ai_summary_of_uploaded_resume(resume_uploaded_event("user_seeker"), worker)
    assert fake_llm.calls == []


async def test_summary_handler_skips_blank_text(worker, fake_llm) -> None:
    make_user()
    store_user_resume("user_seeker", "resume.txt", b"   \n ", "text/plain")

    await create_ai_summary_of_uploaded_resume(resume_uploaded_event("user_seeker"), worker)

    assert get_user_resume("user_seeker")["ai_summary"] is None
    assert fake_llm.calls == []


def test_delete_user_removes_dependent_rows() -> None:
    make_user()
    store_user_resume("user_seeker", "resume.txt", RESUME_TEXT, "text/plain")
    user_service.update_user_notification_settings("user_seeker", True, None)

    user_service.delete_user("user_seeker")

    assert user_service.get_user("user_seeker") is None
    assert get_user_resume("user_seeker") is None
    assert user_service.get_user_notification_settings("user_seeker")["new_job_email_notifications"] is False


def test_delete_user_removes_stored_resume_file(file_store) -> None:
    make_user()
    make_user("user_other", "Other Seeker")
    store_user_resume("user_seeker", "resume.txt", RESUME_TEXT, "text/plain")
    store_user_resume("user_other", "other.txt", b"Other", "text/plain")

    user_service.delete_user("user_seeker")

    assert list(file_store.files.values()) == [("other.txt", b"Other", "text/plain")]


def test_delete_user_without_resume_leaves_files_alone(file_store) -> None:
    make_user()
    make_user("user_other", "Other Seeker")
    store_user_resume("user_other", "other.txt", b"Other", "text/plain")

    user_service.delete_user("user_seeker")

    assert len(file_store.files) == 1
