import pytest

from jobpilot.services import email_service
from jobpilot.services.email_service import EmailService, group_applications, rating_stars

pytestmark = pytest.mark.unit

LISTING = {
    "id": "job-1",
    "title": "Backend <Engineer>",
    "organization_name": "Acme",
    "wage": 50,
    "wage_interval": "hourly",
    "state_abbreviation": "NY",
    "city": "New York",
    "is_featured": True,
    "location_requirement": "onsite",
    "experience_level": "senior",
    "type": "contract",
}


def test_rating_stars() -> None:
    assert rating_stars(3) == "★★★☆☆"
    assert rating_stars(None) == "Unrated"
    assert rating_stars(0) == "Unrated"


def test_group_applications_nests_by_organization_and_listing() -> None:
    def app(org, job, user):
        return {
            "organization_id": org, "organization_name": org.upper(),
            "job_listing_id": job, "job_listing_title": job.title(),
            "user_name": user, "rating": None,
        }

    grouped = group_applications([
        app("org_b", "designer", "u1"),
        app("org_a", "engineer", "u2"),
        app("org_b", "designer", "u3"),
        app("org_b", "writer", "u4"),
    ])

    assert [org["name"] for org in grouped] == ["ORG_B", "ORG_A"]
    assert [job["title"] for job in grouped[0]["job_listings"]] == ["Designer", "Writer"]
    assert [a["user_name"] for a in grouped[0]["job_listings"][0]["applications"]] == ["u1", "u3"]


def test_daily_job_listings_render_without_featured_badge() -> None:
    html, text = EmailService().render_daily_job_listings("Jane", [LISTING])

    assert "New Job Listings!" in html
    assert "Hi Jane!" in text
    assert "$50 per hour | New York, NY | Onsite | Contract | Senior" in text
    assert "Featured" not in text
    assert "http://testserver/job-listings/job-1" in text


def test_html_is_escaped() -> None:
    html, text = EmailService().render_daily_job_listings("Jane", [LISTING])

    assert "Backend &lt;Engineer&gt;" in html
    assert "Backend <Engineer>" in text


def test_daily_applications_render() -> None:
    applications = [{
        "organization_id": "org_1",
        "organization_name": "Acme",
        "job_listing_id": "job-1",
        "job_listing_title": "Backend Engineer",
        "user_name": "Sam",
        "rating": None,
    }]
    html, text = EmailService().render_daily_applications("Erin", applications)

    assert "New Applications!" in html
    assert "Sam: Unrated" in text
    assert "Acme" in html


def test_send_skipped_without_smtp_host(monkeypatch, caplog) -> None:
    monkeypatch.setattr(email_service.settings, "smtp_host", None)

    assert EmailService().send("jane@example.com", "Hi", "<p>Hi</p>", "Hi") is False


def test_send_uses_smtp(monkeypatch) -> None:
    sent = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            self.host, self.port = host, port
            self.tls = False

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            self.tls = True

        def login(self, user, password):
            self.credentials = (user, password)

        def sendmail(self, sender, recipients, message):
            sent.append((self, sender, recipients, message))

    monkeypatch.setattr(email_service.settings, "smtp_host", "smtp.example.com")
    monkeypatch.setattr(email_service.settings, "smtp_port", 587)
    monkeypatch.setattr(email_service.settings, "smtp_user", "mailer")
    monkeypatch.setattr(email_service.settings, "smtp_password", "secret")
    monkeypatch.setattr(email_service.smtplib, "SMTP", FakeSMTP)

    assert EmailService().send("jane@example.com", "Your Daily Job Listings", "<p>Hi</p>", "Hi") is True

    server, sender, recipients, message = sent[0]
    assert server.host == "smtp.example.com"
    assert server.tls is True
    assert server.credentials == ("mailer", "secret")
    assert recipients == ["jane@example.com"]
    assert "Subject: Your Daily Job Listings" in message
