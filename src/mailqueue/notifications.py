"""Form-submission notifications rendered from Jinja2 templates."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

import jinja2

from .models import ensure_utc
from .messages import EnqueueRequest

_STATUS_CLASSES = {
    "green": "status-green",
    "yellow": "status-yellow",
    "red": "status-red",
}


@dataclass
class DocumentSummary:
    document_type: str
    file_name: str
    verification_status: str
    status_color: Optional[str] = None
    confidence_score: Optional[float] = None
    uploaded_at: Optional[datetime] = None

    @property
    def status_class(self) -> str:
        return _STATUS_CLASSES.get((self.status_color or "").lower(), "")


@dataclass
class FormSubmission:
    """Everything the recruiter notification needs about a submitted form."""

    form_id: str
    recruiter_email: str
    first_name: str
    last_name: str
    email: str
    submitted_at: Optional[datetime] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    documents: list[DocumentSummary] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


def _utc_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return ensure_utc(value).strftime("%Y-%m-%d %H:%M:%S")


def _build_environment() -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.PackageLoader("mailqueue", "templates"),
        autoescape=jinja2.select_autoescape(
            enabled_extensions=("html", "xml", "jinja2"), default_for_string=True
        ),
        undefined=jinja2.StrictUndefined,
    )
    env.filters["utc_timestamp"] = _utc_timestamp
    return env


_environment: Optional[jinja2.Environment] = None


def get_environment() -> jinja2.Environment:
    global _environment
    if _environment is None:
        _environment = _build_environment()
    return _environment


def render_form_submission_body(submission: FormSubmission) -> str:
    template = get_environment().get_template("form_submission.html.jinja2")
    return template.render(
        submitted_at=submission.submitted_at,
        first_name=submission.first_name,
        last_name=submission.last_name,
        email=submission.email,
        phone=submission.phone,
        address=submission.address,
        date_of_birth=submission.date_of_birth,
        documents=submission.documents,
    )


def build_form_submission_request(submission: FormSubmission) -> EnqueueRequest:
    """Queue request notifying the recruiter that a candidate submitted a form."""
    if not submission.recruiter_email:
        raise ValueError(f"Form {submission.form_id} has no recruiter email")
    return EnqueueRequest(
        to_address=submission.recruiter_email,
        subject=f"New Form Submission - {submission.full_name}",
        body=render_form_submission_body(submission),
        is_html=True,
    )


__all__ = [
    "DocumentSummary",
    "FormSubmission",
    "build_form_submission_request",
    "render_form_submission_body",
]
