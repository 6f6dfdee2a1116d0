"""
Email templates rendered with Jinja2 from ./email_templates.

Autoescaping is on, so user-supplied values are always HTML-escaped; the
plain-text alternative is derived from the rendered HTML.
"""

from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from registration_api.models.domain.notification_domain import NotificationMessage
from registration_api.models.domain.registration_domain import ContactMessage, IntakeRecord

TEMPLATE_DIR = Path(__file__).resolve().parent / "email_templates"

CONFIRMATION_SUBJECT = "Registration Confirmation - MSME Clinic"
NEW_REGISTRATION_SUBJECT = "New Registration Alert - MSME Clinic"
STATUS_UPDATE_SUBJECT = "Registration Status Update - MSME Clinic"
CONTACT_SUBJECT = "New Contact Form Submission - MSME Clinic"

STATUS_MESSAGES = {
    "confirmed": "Congratulations! Your registration has been confirmed.",
    "rejected": "Unfortunately, your registration has been rejected.",
    "pending": "Your registration is still under review.",
}
DEFAULT_STATUS_MESSAGE = "Your registration status has been updated."


def _when(value: datetime) -> str:
    return value.strftime("%d %b %Y, %H:%M UTC")


_env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
    undefined=StrictUndefined,
)
_env.filters["when"] = _when


def render(template_name: str, **context) -> str:
    return _env.get_template(template_name).render(**context)


def registration_confirmation(record: IntakeRecord, event_name: str) -> NotificationMessage:
    html = render("registration_confirmation.html", record=record, event_name=event_name)
    return NotificationMessage(
        to=record.email, subject=CONFIRMATION_SUBJECT, html=html, kind="registration_confirmation"
    )


def new_registration_alert(record: IntakeRecord, admin_email: str, event_name: str) -> NotificationMessage:
    html = render("new_registration_alert.html", record=record, event_name=event_name)
    return NotificationMessage(
        to=admin_email, subject=NEW_REGISTRATION_SUBJECT, html=html, kind="new_registration_alert"
    )


def status_update(record: IntakeRecord, status: str) -> NotificationMessage:
    html = render(
        "status_update.html",
        record=record,
        status=status,
        status_message=STATUS_MESSAGES.get(status, DEFAULT_STATUS_MESSAGE),
        event_name=None,
    )
    return NotificationMessage(to=record.email, subject=STATUS_UPDATE_SUBJECT, html=html, kind="status_update")


def contact_alert(contact: ContactMessage, admin_email: str, event_name: str) -> NotificationMessage:
    html = render("contact_alert.html", contact=contact, event_name=event_name)
    return NotificationMessage(to=admin_email, subject=CONTACT_SUBJECT, html=html, kind="contact_alert")
