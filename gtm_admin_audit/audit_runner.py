#!/usr/bin/env python3
"""
GTM Admin Audit.

Workflow:
1. Authenticate (OAuth installed-app token or service account).
2. List every GTM account visible to the credentials.
3. For each account, list user permissions and count "admin" entries,
   pausing GTM_AUDIT_DELAY_MS between accounts.
4. Flag accounts with exactly MIN_ADMINS admins or more than MAX_ADMINS.
5. Write flagged accounts to a new timestamped tab of GTM_AUDIT_SHEET_ID (if set).
6. Email a summary to GTM_AUDIT_EMAIL_RECIPIENTS.

Usage:
  python -m gtm_admin_audit
  gtm-admin-audit --auth service --log-level DEBUG

Thresholds, sheet and recipients are read from the environment (see config.py).
"""

import argparse
import logging
import sys
import time
from datetime import datetime
from typing import Callable, Optional

from gtm_admin_audit import config
from gtm_admin_audit.admin_audit import AuditOutcome, audit_accounts
from gtm_admin_audit.config import AuditConfig, ConfigError
from gtm_admin_audit.google_auth import (
    AuditServices,
    build_services,
    get_credentials,
    get_service_account_credentials,
)
from gtm_admin_audit.notifier import send_summary
from gtm_admin_audit.sheet_exporter import export_flagged_rows
from gtm_admin_audit.tag_manager import Account, list_accounts

logger = logging.getLogger("gtm_admin_audit")


class AccountAuditError(Exception):
    """Raised when one account's permissions could not be read; the run is aborted."""

    def __init__(self, account: Account, cause: BaseException):
        self.account = account
        self.cause = cause
        super().__init__(f"Audit aborted at account {account}: {cause}")


def run_audit(
    audit_config: AuditConfig,
    services: AuditServices,
    sleep: Callable[[float], None] = time.sleep,
    now: Optional[datetime] = None,
) -> AuditOutcome:
    """Run the whole pipeline once: enumerate, audit, export, notify."""
    logger.info(
        "Starting GTM admin audit (min_admins=%d, max_admins=%d, delay=%dms)",
        audit_config.min_admins, audit_config.max_admins, audit_config.delay_ms,
    )
    try:
        accounts = list_accounts(services.tagmanager)
    except Exception as e:
        logger.error("Could not list GTM accounts: %s", e)
        raise

    outcome = audit_accounts(services.tagmanager, accounts, audit_config, sleep=sleep)
    if not outcome.ok:
        raise AccountAuditError(outcome.failed_account, outcome.error) from outcome.error

    logger.info(
        "Audited %d account(s); %d flagged", outcome.accounts_audited, len(outcome.rows)
    )
    sheet_url = export_flagged_rows(
        services.sheets,
        audit_config.sheet_id,
        outcome.rows,
        time_zone=audit_config.time_zone,
        now=now,
    )
    send_summary(services.gmail, outcome.rows, audit_config, sheet_url)
    logger.info("GTM admin audit complete.")
    return outcome


def configure_logging(level: str = "INFO", log_file: str = config.LOG_FILE) -> None:
    """Log to stderr and append to the execution log file."""
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    root = logging.getLogger("gtm_admin_audit")
    root.setLevel(level.upper())
    for old in list(root.handlers):
        root.removeHandler(old)
        old.close()
    for handler in (logging.StreamHandler(sys.stderr), logging.FileHandler(log_file, encoding="utf-8")):
        handler.setFormatter(formatter)
        root.addHandler(handler)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Audit admin counts of all accessible Google Tag Manager accounts."
    )
    parser.add_argument(
        "--auth",
        choices=["oauth", "service"],
        default="oauth",
        help="oauth (installed-app flow, token.json) or service (service account key). Default: oauth",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Execution log verbosity (default: INFO)",
    )
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    try:
        audit_config = AuditConfig.from_env()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        creds = get_service_account_credentials() if args.auth == "service" else get_credentials()
    except (FileNotFoundError, ConfigError) as e:
        print(e, file=sys.stderr)
        return 1

    run_audit(audit_config, build_services(creds))
    return 0


if __name__ == "__main__":
    sys.exit(main())
