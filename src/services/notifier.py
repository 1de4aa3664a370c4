"""Outbound notifications sent when a request changes state."""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Any, Mapping, Optional

from flask import Flask, current_app

NOTIFICATION_KINDS = ("approved", "rejected", "cancelled", "promoted")

_SUBJECTS = {
    "approved": "Your {entity_type} request has been approved",
    "rejected": "Your {entity_type} request has been rejected",
    "cancelled": "Your {entity_type} request has been cancelled",
    "promoted": "You've been promoted from the waitlist!",
}

_BODIES = {
    "approved": "<h2>Request Approved</h2><p>Your request for <strong>{label}</strong> has been approved.</p>",
    "rejected": "<h2>Request Rejected</h2><p>Your request for <strong>{label}</strong> has been rejected.</p>",
    "cancelled": "<h2>Request Cancelled</h2><p>Your request for <strong>{label}</strong> has been cancelled.</p>",
    "promoted": (
        "<h2>Waitlist Promotion</h2><p>Your request for <strong>{label}</strong> ({entity_type}) "
        "has been promoted from the waitlist and is now approved.</p>"
    ),
}


class EmailNotifier:
    """Send notification emails over SMTP using the ``MAIL_*`` settings."""

    def __init__(self, config: Mapping[str, Any]) -> None:
        self.server = config.get("MAIL_SERVER")
        self.port = config.get("MAIL_PORT", 587)
        self.use_tls = config.get("MAIL_USE_TLS", True)
        self.username = config.get("MAIL_USERNAME")
        self.password = config.get("MAIL_PASSWORD")
        self.sender = config.get("MAIL_SENDER")
        self.timeout = config.get("MAIL_TIMEOUT", 10)

    def build_message(self, kind: str, recipient_email: str, entity_label: str, entity_type: str) -> EmailMessage:
        if kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification kind '{kind}'")
        message = EmailMessage()
        message["Subject"] = _SUBJECTS[kind].format(entity_type=entity_type)
        message["From"] = self.sender or self.username
        message["To"] = recipient_email
        message.set_content(f"Your request for {entity_label} is now {kind}.")
        message.add_alternative(
            _BODIES[kind].format(label=entity_label, entity_type=entity_type)
            + "<p>College Resource Portal</p>",
            subtype="html",
        )
        return message

    def notify(self, kind: str, recipient_email: str, entity_label: str, entity_type: str = "Request") -> None:
        message = self.build_message(kind, recipient_email, entity_label, entity_type)
        if not self.username or not self.password:
            current_app.logger.warning("Mail skipped to %s: %s", recipient_email, message["Subject"])
            return
        with smtplib.SMTP(self.server, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            smtp.login(self.username, self.password)
            smtp.send_message(message)
        current_app.logger.info("Mail sent to %s: %s", recipient_email, message["Subject"])


def init_app(app: Flask, notifier: Optional[Any] = None) -> None:
    """Attach the notifier used by the workflows to the application."""

    app.extensions["notifier"] = notifier or EmailNotifier(app.config)


def send_notification(
    kind: str,
    recipient_email: Optional[str],
    entity_label: str,
    entity_type: str = "Request",
) -> None:
    """Fire a notification; failures are logged and never reach the caller."""

    if not recipient_email:
        return
    notifier = current_app.extensions.get("notifier")
    if notifier is None:
        return
    try:
        notifier.notify(kind, recipient_email, entity_label, entity_type=entity_type)
    except Exception:  # pylint: disable=broad-except
        current_app.logger.exception("Failed to send %s notification to %s", kind, recipient_email)
