"""
Admin counting and flagging for GTM accounts.

Accounts are visited one at a time with a fixed pause between permission calls.
The batch is all-or-nothing: the first account whose permissions cannot be read
ends the audit with a failed outcome carrying that account and the error.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from gtm_admin_audit import config
from gtm_admin_audit.config import AuditConfig
from gtm_admin_audit.tag_manager import Account, list_user_permissions

logger = logging.getLogger("gtm_admin_audit.admin_audit")

ADMIN_PERMISSION = "admin"


def count_admins(permissions: Iterable[Dict]) -> int:
    """Number of records whose accountAccess.permission is exactly "admin"."""
    return sum(
        1 for p in permissions
        if ((p or {}).get("accountAccess") or {}).get("permission") == ADMIN_PERMISSION
    )


def is_flagged(admin_count: int, min_admins: int, max_admins: int) -> bool:
    """Too few (exactly min_admins) or too many (above max_admins).

    Zero admins is not flagged when min_admins is 1.
    """
    return admin_count == min_admins or admin_count > max_admins


def admin_link_formula(account_id: str) -> str:
    url = config.GTM_ADMIN_URL.format(account_id=account_id)
    return f'=HYPERLINK("{url}", "Open admin")'


@dataclass(frozen=True)
class FlaggedRow:
    account_name: str
    account_id: str
    admin_count: int
    admin_link_formula: str

    @classmethod
    def for_account(cls, account: Account, admin_count: int) -> "FlaggedRow":
        return cls(
            account_name=account.name,
            account_id=account.account_id,
            admin_count=admin_count,
            admin_link_formula=admin_link_formula(account.account_id),
        )

    def as_sheet_row(self) -> List:
        return [self.account_name, self.account_id, self.admin_count, self.admin_link_formula]


@dataclass
class AuditOutcome:
    """Result of auditing a batch: flagged rows, or the error that stopped it."""
    rows: List[FlaggedRow] = field(default_factory=list)
    accounts_audited: int = 0
    error: Optional[BaseException] = None
    failed_account: Optional[Account] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def audit_accounts(
    service,
    accounts: Sequence[Account],
    audit_config: AuditConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> AuditOutcome:
    """Count admins per account in enumeration order and collect flagged rows."""
    outcome = AuditOutcome()
    total = len(accounts)
    for index, account in enumerate(accounts):
        logger.info("Processing account %d/%d: %s", index + 1, total, account)
        try:
            permissions = list_user_permissions(service, account)
        except Exception as e:
            logger.error("Error auditing account %s: %s", account, e)
            outcome.error = e
            outcome.failed_account = account
            return outcome

        admin_count = count_admins(permissions)
        outcome.accounts_audited += 1
        logger.info("Account %s has %d admin(s)", account, admin_count)

        if is_flagged(admin_count, audit_config.min_admins, audit_config.max_admins):
            logger.info("Account %s qualifies (admin count %d)", account, admin_count)
            outcome.rows.append(FlaggedRow.for_account(account, admin_count))
        else:
            logger.info("Account %s does not qualify", account)

        if index < total - 1 and audit_config.delay_ms > 0:
            sleep(audit_config.delay_ms / 1000.0)

    return outcome
