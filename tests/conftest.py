"""Fake discovery services mirroring the service.resource().method(...).execute() call shape."""

import pytest

from gtm_admin_audit.config import AuditConfig
from gtm_admin_audit.google_auth import AuditServices


class FakeRequest:
    def __init__(self, result=None, error=None, on_execute=None):
        self._result = result
        self._error = error
        self._on_execute = on_execute

    def execute(self):
        if self._on_execute:
            self._on_execute()
        if self._error is not None:
            raise self._error
        return self._result


class FakeTagManager:
    """accounts: list of API account dicts; permissions: accountId -> list of records or an exception."""

    def __init__(self, accounts, permissions=None, accounts_error=None, page_size=None):
        self.account_items = accounts
        self.permissions = permissions or {}
        self.accounts_error = accounts_error
        self.page_size = page_size
        self.permission_calls = []

    def _page(self, items, key, token):
        if not self.page_size:
            return {key: list(items)}
        start = int(token or 0)
        end = start + self.page_size
        page = {key: list(items[start:end])}
        if end < len(items):
            page["nextPageToken"] = str(end)
        return page

    def accounts(self):
        return self

    def user_permissions(self):
        return _UserPermissions(self)

    def list(self, pageToken=None):
        if self.accounts_error is not None:
            return FakeRequest(error=self.accounts_error)
        return FakeRequest(self._page(self.account_items, "account", pageToken))


class _UserPermissions:
    def __init__(self, tm):
        self.tm = tm

    def list(self, parent, pageToken=None):
        account_id = parent.split("/", 1)[1]
        self.tm.permission_calls.append(account_id)
        records = self.tm.permissions.get(account_id, [])
        if isinstance(records, Exception):
            return FakeRequest(error=records)
        return FakeRequest(self.tm._page(records, "userPermission", pageToken))


class FakeSheets:
    def __init__(self, titles=None, get_error=None, update_error=None, url="https://sheet.example/abc"):
        self.titles = list(titles or ["Sheet1"])
        self.get_error = get_error
        self.update_error = update_error
        self.url = url
        self.batch_bodies = []
        self.value_updates = []
        self._next_sheet_id = 100

    def spreadsheets(self):
        return self

    def values(self):
        return _Values(self)

    def get(self, spreadsheetId, fields=None):
        if self.get_error is not None:
            return FakeRequest(error=self.get_error)
        return FakeRequest({
            "spreadsheetId": spreadsheetId,
            "spreadsheetUrl": self.url,
            "sheets": [{"properties": {"sheetId": i, "title": t}} for i, t in enumerate(self.titles)],
        })

    def batchUpdate(self, spreadsheetId, body):
        self.batch_bodies.append(body)
        replies = []
        for req in body["requests"]:
            if "addSheet" in req:
                title = req["addSheet"]["properties"]["title"]
                if title in self.titles:
                    return FakeRequest(error=RuntimeError(f"A sheet with the name {title} already exists"))
                self.titles.append(title)
                self._next_sheet_id += 1
                replies.append({"addSheet": {"properties": {"sheetId": self._next_sheet_id, "title": title}}})
            else:
                replies.append({})
        return FakeRequest({"replies": replies})


class _Values:
    def __init__(self, sheets):
        self.sheets = sheets

    def update(self, spreadsheetId, range, valueInputOption, body):
        if self.sheets.update_error is not None:
            return FakeRequest(error=self.sheets.update_error)
        self.sheets.value_updates.append({"range": range, "valueInputOption": valueInputOption, "values": body["values"]})
        return FakeRequest({"updatedRange": range})


class FakeGmail:
    def __init__(self, error=None):
        self.error = error
        self.sent = []

    def users(self):
        return self

    def messages(self):
        return self

    def send(self, userId, body):
        if self.error is not None:
            return FakeRequest(error=self.error)
        self.sent.append(body)
        return FakeRequest({"id": "msg-1"})


def permission(role):
    return {"emailAddress": f"{role}@example.com", "accountAccess": {"permission": role}}


def admins(n, others=0):
    return [permission("admin") for _ in range(n)] + [permission("user") for _ in range(others)]


@pytest.fixture
def audit_config():
    return AuditConfig(
        delay_ms=2100,
        min_admins=1,
        max_admins=3,
        sheet_id="sheet-123",
        email_recipients=("ops@example.com", "sec@example.com"),
        time_zone="UTC",
        execution_log_url="https://logs.example/run",
    )


@pytest.fixture
def make_services():
    def _make(tagmanager, sheets=None, gmail=None):
        return AuditServices(tagmanager=tagmanager, sheets=sheets or FakeSheets(), gmail=gmail or FakeGmail())
    return _make
