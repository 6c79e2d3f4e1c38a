"""
Tag Manager API v2 reads: accessible accounts and per-account user permissions.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from googleapiclient.errors import HttpError

logger = logging.getLogger("gtm_admin_audit.tag_manager")


class TagManagerError(Exception):
    """Raised when a Tag Manager listing call fails."""

    def __init__(self, message: str, account: Optional["Account"] = None):
        self.account = account
        super().__init__(message)


@dataclass(frozen=True)
class Account:
    account_id: str
    name: str

    @classmethod
    def from_api(cls, item: Dict) -> "Account":
        return cls(account_id=str(item.get("accountId") or ""), name=item.get("name") or "")

    def __str__(self) -> str:
        return f"{self.name} ({self.account_id})"


def _list_all(request_factory, key: str) -> List[Dict]:
    """Follow nextPageToken until exhausted; return the concatenated items under key."""
    items: List[Dict] = []
    next_page_token = None

    while True:
        response = request_factory(next_page_token).execute()
        items.extend(response.get(key, []))
        next_page_token = response.get("nextPageToken")
        if not next_page_token:
            break

    return items


def list_accounts(service) -> List[Account]:
    """Return all GTM accounts visible to the current credentials, in API order."""
    try:
        raw = _list_all(lambda token: service.accounts().list(pageToken=token), "account")
    except HttpError as e:
        raise TagManagerError(f"Failed to list GTM accounts: {e}") from e
    accounts = [Account.from_api(item) for item in raw]
    logger.info("Found %d GTM account(s)", len(accounts))
    return accounts


def list_user_permissions(service, account: Account) -> List[Dict]:
    """Return the user permission records of one account."""
    parent = f"accounts/{account.account_id}"
    try:
        return _list_all(
            lambda token: service.accounts().user_permissions().list(parent=parent, pageToken=token),
            "userPermission",
        )
    except HttpError as e:
        raise TagManagerError(f"Failed to list user permissions for {account}: {e}", account=account) from e
