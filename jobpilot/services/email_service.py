"""
Email Service

Daily digest emails rendered from Jinja2 templates (HTML + plain text) and
delivered over SMTP. When no SMTP host is configured the message is logged
and skipped, so local runs never need a mail server.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from jobpilot.core.config import get_settings
from jobpilot.utils.formatters import job_listing_badges

logger = logging.getLogger(__name__)

settings = get_settings()

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

DAILY_JOB_LISTINGS_SUBJECT = "Your Daily Job Listings"
DAILY_APPLICATIONS_SUBJECT = "Your Daily Job Listings Applications"


def rating_stars(rating: Optional[int]) -> str:
    if rating is None or rating < 1 or rating > 5:
        return "Unrated"
    return "★" * rating + "☆" * (5 - rating)


def _build_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["rating_stars"] = rating_stars
    return env


def group_applications(applications: List[dict]) -> List[dict]:
    """Nest applications as organizations -> job listings -> applications, keeping first-seen order."""
    organizations = {}
    for application in applications:
        organization = organizations.setdefault(application["organization_id"], {
            "name": application["organization_name"],
            "job_listings": {},
        })
        job_listing = organization["job_listings"].setdefault(application["job_listing_id"], {
            "title": application["job_listing_title"],
            "applications": [],
        })
        job_listing["applications"].append(application)

    return [
        {"name": organization["name"], "job_listings": list(organization["job_listings"].values())}
        for organization in organizations.values()
    ]


class EmailService:
    def __init__(self):
        self.env = _build_environment()

    def render(self, template_name: str, **context) -> tuple:
        """Return ``(html, text)`` for a template pair."""
        html = self.env.get_template(f"{template_name}.html").render(**context)
        text = self.env.get_template(f"{template_name}.txt").render(**context)
        return html, text

    def render_daily_job_listings(self, user_name: str, job_listings: List[dict]) -> tuple:
        listings = []
        for listing in job_listings:
            # The digest shows its own highlight; no "Featured" badge
            listings.append({**listing, "badges": job_listing_badges({**listing, "is_featured": False})})
        return self.render(
            "daily_job_listings",
            user_name=user_name,
            job_listings=listings,
            server_url=settings.server_url.rstrip("/"),
        )

    def render_daily_applications(self, user_name: str, applications: List[dict]) -> tuple:
        return self.render(
            "daily_applications",
            user_name=user_name,
            organizations=group_applications(applications),
        )

    def send_daily_job_listings(self, to: str, user_name: str, job_listings: List[dict]) -> bool:
        html, text = self.render_daily_job_listings(user_name, job_listings)
        return self.send(to, DAILY_JOB_LISTINGS_SUBJECT, html, text)

    def send_daily_applications(self, to: str, user_name: str, applications: List[dict]) -> bool:
        html, text = self.render_daily_applications(user_name, applications)
        return self.send(to, DAILY_APPLICATIONS_SUBJECT, html, text)

    def send(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send one email. Returns False when SMTP is not configured."""
        if not settings.smtp_host:
            logger.info("SMTP not configured, skipping email %r to %s", subject, to)
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.email_from
        msg["To"] = to
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        if settings.smtp_port == 465:
            server = smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=30)
        else:
            server = smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30)

        with server:
            if settings.smtp_use_tls and settings.smtp_port != 465:
                server.starttls()
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(msg["From"], [to], msg.as_string())

        logger.info("Sent email %r to %s", subject, to)
        return True


# Singleton instance
_email_service: EmailService = None


def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
