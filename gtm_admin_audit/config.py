"""
Configuration for the GTM admin audit.
Every setting below can be overridden through environment variables; values are
fixed for the lifetime of a run and handed to the pipeline as an AuditConfig.
Do not commit credentials.json or token.json to version control.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Directory containing this config
BASE_DIR = Path(__file__).resolve().parent

# --- OAuth & Google APIs ---
GOOGLE_CREDENTIALS_PATH = os.environ.get("GOOGLE_CREDENTIALS_PATH") or str(BASE_DIR / "credentials.json")
GOOGLE_TOKEN_PATH = os.environ.get("GOOGLE_TOKEN_PATH") or str(BASE_DIR / "token.json")

# Service account key (used with --auth service). Domain-wide delegation needs a user to
# impersonate, since Gmail cannot send as the service account itself.
GOOGLE_SERVICE_ACCOUNT_FILE = os.environ.get("GOOGLE_SERVICE_ACCOUNT_FILE") or str(BASE_DIR / "service_account.json")
GOOGLE_DELEGATED_USER = os.environ.get("GOOGLE_DELEGATED_USER") or ""

# OAuth scopes. After adding a new scope, delete token.json and re-run so the app re-authorizes with the new scope.
SCOPES = [
    "https://www.googleapis.com/auth/tagmanager.readonly",
    "https://www.googleapis.com/auth/tagmanager.manage.users",
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/gmail.send",
]

# --- Audit thresholds ---
# Pause between per-account permission calls (Tag Manager quota).
DEFAULT_DELAY_MS = 2100
DEFAULT_MIN_ADMINS = 1
DEFAULT_MAX_ADMINS = 3

# --- Reporting ---
# Empty SHEET_ID disables the spreadsheet export.
DEFAULT_SHEET_ID = ""
DEFAULT_EMAIL_RECIPIENTS = ""
DEFAULT_TIME_ZONE = "UTC"
# Link used in the email when no sheet was written. Falls back to the local log file.
DEFAULT_EXECUTION_LOG_URL = ""
LOG_FILE = os.environ.get("GTM_AUDIT_LOG_FILE") or "gtm_admin_audit.log"

GTM_ADMIN_URL = "https://tagmanager.google.com/#/admin/?accountId={account_id}"
SPREADSHEET_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit"


class ConfigError(ValueError):
    """Raised when a setting is missing or out of range."""


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def parse_recipients(value: str) -> Tuple[str, ...]:
    """Split a comma-separated address list, dropping blanks."""
    return tuple(e.strip() for e in (value or "").split(",") if e.strip())


@dataclass(frozen=True)
class AuditConfig:
    """Immutable run configuration passed into the pipeline."""
    email_recipients: Tuple[str, ...]
    delay_ms: int = DEFAULT_DELAY_MS
    min_admins: int = DEFAULT_MIN_ADMINS
    max_admins: int = DEFAULT_MAX_ADMINS
    sheet_id: Optional[str] = None
    time_zone: str = DEFAULT_TIME_ZONE
    execution_log_url: str = DEFAULT_EXECUTION_LOG_URL

    def __post_init__(self):
        if self.delay_ms < 0:
            raise ConfigError(f"delay_ms must be >= 0, got {self.delay_ms}")
        if self.min_admins < 0:
            raise ConfigError(f"min_admins must be >= 0, got {self.min_admins}")
        if self.max_admins < self.min_admins:
            raise ConfigError(
                f"max_admins ({self.max_admins}) must be >= min_admins ({self.min_admins})"
            )
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigError(f"Unknown time zone: {self.time_zone!r}")
        if not self.email_recipients:
            raise ConfigError("At least one email recipient is required (GTM_AUDIT_EMAIL_RECIPIENTS)")

    @property
    def export_enabled(self) -> bool:
        return bool(self.sheet_id)

    @property
    def log_url(self) -> str:
        """Execution log link for the email when no sheet was written."""
        return self.execution_log_url or Path(LOG_FILE).resolve().as_uri()

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AuditConfig":
        """Build the config from GTM_AUDIT_* environment variables."""
        if env is None:
            env = os.environ
        sheet_id = (env.get("GTM_AUDIT_SHEET_ID") or DEFAULT_SHEET_ID).strip()
        return cls(
            delay_ms=_int_setting(env, "GTM_AUDIT_DELAY_MS", DEFAULT_DELAY_MS),
            min_admins=_int_setting(env, "GTM_AUDIT_MIN_ADMINS", DEFAULT_MIN_ADMINS),
            max_admins=_int_setting(env, "GTM_AUDIT_MAX_ADMINS", DEFAULT_MAX_ADMINS),
            sheet_id=sheet_id or None,
            email_recipients=parse_recipients(
                env.get("GTM_AUDIT_EMAIL_RECIPIENTS") or DEFAULT_EMAIL_RECIPIENTS
            ),
            time_zone=(env.get("GTM_AUDIT_TIME_ZONE") or DEFAULT_TIME_ZONE).strip(),
            execution_log_url=(env.get("GTM_AUDIT_EXECUTION_LOG_URL") or DEFAULT_EXECUTION_LOG_URL).strip(),
        )
