"""
Google credentials and API service construction.

Two modes:
  oauth   - installed-app OAuth flow; the token is cached in token.json and refreshed.
  service - service account key, optionally impersonating GOOGLE_DELEGATED_USER
            (required for Gmail sending through domain-wide delegation).
"""

import logging
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Suppress Python EOL and urllib3/OpenSSL warnings from google-auth and dependencies
warnings.filterwarnings("ignore", category=FutureWarning, module="google.auth")
warnings.filterwarnings("ignore", category=FutureWarning, module="google.oauth2")
warnings.filterwarnings("ignore", category=FutureWarning, module="google.api_core")
warnings.filterwarnings("ignore", category=UserWarning, module="urllib3")

from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from gtm_admin_audit import config

logger = logging.getLogger("gtm_admin_audit.google_auth")


def get_credentials():
    """Obtain OAuth 2.0 credentials, using stored token if valid."""
    creds = None
    token_path = Path(config.GOOGLE_TOKEN_PATH)
    creds_path = Path(config.GOOGLE_CREDENTIALS_PATH)

    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), config.SCOPES)

    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            logger.info("Refreshing stored OAuth token")
            creds.refresh(Request())
        else:
            if not creds_path.exists():
                raise FileNotFoundError(
                    f"Credentials file not found: {creds_path}. "
                    "Download OAuth client credentials from Google Cloud Console and save as credentials.json."
                )
            flow = InstalledAppFlow.from_client_secrets_file(str(creds_path), config.SCOPES)
            creds = flow.run_local_server(port=0)
        with open(token_path, "w") as f:
            f.write(creds.to_json())
    return creds


def get_service_account_credentials():
    """Load service account credentials delegated to GOOGLE_DELEGATED_USER (Gmail sends as userId="me")."""
    if not config.GOOGLE_DELEGATED_USER:
        raise config.ConfigError(
            "GOOGLE_DELEGATED_USER is required with --auth service (Gmail sends as the delegated user)"
        )
    key_path = Path(config.GOOGLE_SERVICE_ACCOUNT_FILE)
    if not key_path.exists():
        raise FileNotFoundError(f"Service account key not found: {key_path}")
    creds = service_account.Credentials.from_service_account_file(str(key_path), scopes=config.SCOPES)
    return creds.with_subject(config.GOOGLE_DELEGATED_USER)


@dataclass(frozen=True)
class AuditServices:
    """Discovery services used by one audit run."""
    tagmanager: Any
    sheets: Any
    gmail: Any


def build_services(creds) -> AuditServices:
    return AuditServices(
        tagmanager=build("tagmanager", "v2", credentials=creds, cache_discovery=False),
        sheets=build("sheets", "v4", credentials=creds, cache_discovery=False),
        gmail=build("gmail", "v1", credentials=creds, cache_discovery=False),
    )
