import pytest

from gtm_admin_audit.config import ConfigError
from gtm_admin_audit.google_auth import get_service_account_credentials


def test_service_account_requires_delegated_user(monkeypatch, tmp_path):
    key = tmp_path / "service_account.json"
    key.write_text("{}", encoding="utf-8")
    monkeypatch.setattr("gtm_admin_audit.config.GOOGLE_SERVICE_ACCOUNT_FILE", str(key))
    monkeypatch.setattr("gtm_admin_audit.config.GOOGLE_DELEGATED_USER", "")
    with pytest.raises(ConfigError):
        get_service_account_credentials()


def test_service_account_key_must_exist(monkeypatch, tmp_path):
    monkeypatch.setattr("gtm_admin_audit.config.GOOGLE_SERVICE_ACCOUNT_FILE", str(tmp_path / "missing.json"))
    monkeypatch.setattr("gtm_admin_audit.config.GOOGLE_DELEGATED_USER", "auditor@example.com")
    with pytest.raises(FileNotFoundError):
        get_service_account_credentials()
