import base64
from email import message_from_bytes

import pytest

from gtm_admin_audit.admin_audit import FlaggedRow
from gtm_admin_audit.notifier import (
    NotificationError,
    build_body,
    build_subject,
    flagged_phrase,
    send_summary,
)
from gtm_admin_audit.tag_manager import Account

from conftest import FakeGmail


def _decode(sent_body):
    return message_from_bytes(base64.urlsafe_b64decode(sent_body["raw"]))


@pytest.mark.parametrize(
    "count,phrase",
    [(0, "0 flagged accounts"), (1, "1 flagged account"), (2, "2 flagged accounts")],
)
def test_flagged_phrase(count, phrase):
    assert flagged_phrase(count) == phrase
    assert build_subject(count).endswith(phrase)


def test_body_with_sheet_link(audit_config):
    rows = [FlaggedRow.for_account(Account("9", "Nine"), 4)]
    body = build_body(rows, audit_config, "https://sheet.example/abc")
    assert "1 flagged account." in body
    assert "exactly 1 admin(s) or more than 3 admins" in body
    assert "https://sheet.example/abc" in body
    assert "https://logs.example/run" not in body
    assert "Nine (9): 4 admin(s)" in body


def test_body_without_sheet_links_log(audit_config):
    body = build_body([], audit_config, None)
    assert "0 flagged accounts" in body
    assert "https://logs.example/run" in body
    assert "Flagged accounts:" not in body


def test_send_summary_builds_message(audit_config):
    gmail = FakeGmail()
    send_summary(gmail, [], audit_config, None)
    assert len(gmail.sent) == 1
    msg = _decode(gmail.sent[0])
    assert msg["to"] == "ops@example.com, sec@example.com"
    assert msg["subject"] == "GTM Admin Audit: 0 flagged accounts"


def test_send_failure_raises(audit_config):
    gmail = FakeGmail(error=RuntimeError("smtp down"))
    with pytest.raises(NotificationError):
        send_summary(gmail, [], audit_config, None)
