"""Reminder email formatting."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from om_reminders.scheduling.recurrence import describe_rule
from om_reminders.scheduling.types import Schedule

FOOTER = "This is an automated reminder from the O&M Reminder System."


@dataclass
class ReminderMessage:
    to: str
    subject: str
    text: str
    html: str


def format_deadline(deadline: datetime, tz: ZoneInfo) -> str:
    """e.g. 'Friday, October 16, 2026, 05:00 PM'."""
    return deadline.astimezone(tz).strftime("%A, %B %d, %Y, %I:%M %p")


def format_reminder(schedule: Schedule, deadline: datetime, tz: ZoneInfo) -> ReminderMessage:
    """Build subject, plain-text body and HTML alternative for one reminder."""
    when = format_deadline(deadline, tz)
    rule_label = describe_rule(schedule.recurrence)
    name = schedule.assignee.name or "there"

    text_parts = [f"Hello {name},", "", f"REMINDER: {schedule.title} is due on {when}.", ""]
    if schedule.description:
        text_parts.extend([schedule.description, ""])
    text_parts.extend([
        f"Deadline: {when}",
        f"Schedule: {rule_label}",
        f"Assigned to: {schedule.assignee.name}",
        "",
        "---",
        FOOTER,
    ])

    description_html = f"<p>{_html_escape(schedule.description)}</p>" if schedule.description else ""
    html = (
        "<html><body>"
        f"<h2>Hello {_html_escape(name)},</h2>"
        f"<p>We would like to remind you that <strong>{_html_escape(schedule.title)}</strong> is due on "
        f"{_html_escape(when)}. Please give this task your timely attention.</p>"
        f"{description_html}"
        f"<p><strong>Schedule:</strong> {_html_escape(rule_label)}<br>"
        f"<strong>Deadline:</strong> {_html_escape(when)}</p>"
        f"<p style=\"font-size:12px;color:#4B5563\">{FOOTER}</p>"
        "</body></html>"
    )

    return ReminderMessage(
        to=schedule.assignee.email,
        subject=f"Reminder: {schedule.title}",
        text="\n".join(text_parts),
        html=html,
    )


def _html_escape(s: str) -> str:
    """Escape special HTML characters in text and attribute values."""
    return (
        s.replace("&", "&amp;").replace('"', "&quot;").replace("'", "&#x27;")
        .replace("<", "&lt;").replace(">", "&gt;")
    )
