"""
Run summary email, sent through the Gmail API.
"""

import logging
from base64 import urlsafe_b64encode
from email.mime.text import MIMEText
from typing import Optional, Sequence

from gtm_admin_audit.admin_audit import FlaggedRow
from gtm_admin_audit.config import AuditConfig

logger = logging.getLogger("gtm_admin_audit.notifier")

SUBJECT_PREFIX = "GTM Admin Audit"


class NotificationError(Exception):
    """Raised when the summary email cannot be sent."""


def flagged_phrase(count: int) -> str:
    """0 -> "0 flagged accounts", 1 -> "1 flagged account"."""
    noun = "account" if count == 1 else "accounts"
    return f"{count} flagged {noun}"


def build_subject(count: int) -> str:
    return f"{SUBJECT_PREFIX}: {flagged_phrase(count)}"


def build_body(
    rows: Sequence[FlaggedRow],
    audit_config: AuditConfig,
    sheet_url: Optional[str],
) -> str:
    lines = [
        f"The GTM admin audit found {flagged_phrase(len(rows))}.",
        "",
        "An account is flagged when it has exactly "
        f"{audit_config.min_admins} admin(s) or more than {audit_config.max_admins} admins.",
        "",
    ]
    if sheet_url:
        lines.append(f"Spreadsheet report: {sheet_url}")
    else:
        lines.append(f"No spreadsheet was written. Execution log: {audit_config.log_url}")
    if rows:
        lines.append("")
        lines.append("Flagged accounts:")
        for row in rows:
            lines.append(f"  - {row.account_name} ({row.account_id}): {row.admin_count} admin(s)")
    return "\n".join(lines) + "\n"


def send_email(gmail_service, recipients: Sequence[str], subject: str, body: str) -> dict:
    message = MIMEText(body)
    message["to"] = ", ".join(recipients)
    message["subject"] = subject
    raw = urlsafe_b64encode(message.as_bytes()).decode()
    return gmail_service.users().messages().send(userId="me", body={"raw": raw}).execute()


def send_summary(
    gmail_service,
    rows: Sequence[FlaggedRow],
    audit_config: AuditConfig,
    sheet_url: Optional[str],
) -> None:
    """Send the one summary email of the run. Failure is fatal."""
    subject = build_subject(len(rows))
    body = build_body(rows, audit_config, sheet_url)
    try:
        send_email(gmail_service, audit_config.email_recipients, subject, body)
    except Exception as e:
        logger.error("Failed to send summary email to %s: %s", ", ".join(audit_config.email_recipients), e)
        raise NotificationError(f"Failed to send summary email: {e}") from e
    logger.info("Summary email sent to %s: %s", ", ".join(audit_config.email_recipients), subject)
