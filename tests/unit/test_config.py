"""ABOUTME: Unit tests for subdash configuration module
ABOUTME: Tests environment variable parsing for the auth policy, provider settings and keys"""

import base64
import logging
from pathlib import Path
from typing import ClassVar

import pytest

from subdash.config import (
    InvalidConfig,
    ProviderCfg,
    get_allowed_emails,
    get_auth_policy,
    get_log_level,
    get_max_concurrent_sessions,
    get_storage_path,
    get_totp_encryption_key,
    to_bool,
)


class TestToBool:
    test_values: ClassVar = [
        ("true", True),
        ("True", True),
        ("false", False),
        ("1", True),
        ("0", False),
        ("yes", True),
        ("no", False),
        ("on", True),
        ("off", False),
        ("", False),
        (None, False),
        ("  true  ", True),  # Test whitespace handling
    ]

    @pytest.mark.parametrize("bool_str,expected", test_values)
    def test_to_bool(self, bool_str: str, expected: bool) -> None:
        assert to_bool(bool_str) == expected

    def test_invalid_value(self):
        with pytest.raises(ValueError, match="DB_ECHO=maybe"):
            to_bool("maybe", context_str="DB_ECHO=")


class TestAuthPolicyConfig:
    def test_allowed_emails_parsed_and_lowercased(self, temp_env_vars):
        temp_env_vars(ALLOWED_EMAILS=" Admin@Example.com, ops@example.com ,,")

        assert get_allowed_emails() == frozenset({"admin@example.com", "ops@example.com"})

    def test_no_allowed_emails(self, clear_env_vars):
        clear_env_vars("ALLOWED_EMAILS")

        assert get_allowed_emails() == frozenset()
        assert not get_auth_policy().permits("admin@example.com")

    def test_default_session_ceiling(self, clear_env_vars):
        clear_env_vars("MAX_CONCURRENT_SESSIONS")

        assert get_max_concurrent_sessions() == 3

    def test_custom_session_ceiling(self, temp_env_vars):
        temp_env_vars(MAX_CONCURRENT_SESSIONS="5", ALLOWED_EMAILS="admin@example.com")

        policy = get_auth_policy()

        assert policy.max_concurrent_sessions == 5
        assert policy.permits("admin@example.com")

    @pytest.mark.parametrize("value", ["zero", "0", "-1"])
    def test_invalid_session_ceiling(self, temp_env_vars, value):
        temp_env_vars(MAX_CONCURRENT_SESSIONS=value)

        with pytest.raises(InvalidConfig, match="MAX_CONCURRENT_SESSIONS"):
            get_max_concurrent_sessions()


class TestProviderCfg:
    def test_defaults(self, clear_env_vars):
        clear_env_vars("MFA_ISSUER", "MFA_CHALLENGE_TTL_SECONDS", "SESSION_TTL_HOURS")

        cfg = ProviderCfg.from_env()

        assert cfg.mfa_issuer == "Subdash"
        assert cfg.challenge_ttl_seconds == 300
        assert cfg.session_ttl_hours == 24

    def test_from_env(self, temp_env_vars):
        temp_env_vars(MFA_ISSUER="Acme Billing", MFA_CHALLENGE_TTL_SECONDS="60", SESSION_TTL_HOURS="8")

        cfg = ProviderCfg.from_env()

        assert cfg.mfa_issuer == "Acme Billing"
        assert cfg.challenge_ttl_seconds == 60
        assert cfg.session_ttl_hours == 8


class TestTotpEncryptionKey:
    def test_missing_key(self, clear_env_vars):
        clear_env_vars("TOTP_ENCRYPTION_KEY")

        with pytest.raises(ValueError, match="TOTP_ENCRYPTION_KEY environment variable must be set"):
            get_totp_encryption_key()

    def test_key_not_base64(self, temp_env_vars):
        temp_env_vars(TOTP_ENCRYPTION_KEY="not base64!")

        with pytest.raises(ValueError, match="valid base64"):
            get_totp_encryption_key()

    def test_key_wrong_length(self, temp_env_vars):
        temp_env_vars(TOTP_ENCRYPTION_KEY=base64.b64encode(b"short").decode())

        with pytest.raises(ValueError, match="32 bytes"):
            get_totp_encryption_key()

    def test_valid_key(self, totp_encryption_key):
        assert get_totp_encryption_key() == base64.b64decode(totp_encryption_key)


class TestMiscConfig:
    def test_log_level(self, temp_env_vars):
        temp_env_vars(LOG_LEVEL="debug")

        assert get_log_level() == logging.DEBUG

    def test_unknown_log_level(self, temp_env_vars):
        temp_env_vars(LOG_LEVEL="chatty")

        with pytest.raises(InvalidConfig):
            get_log_level()

    def test_storage_path_under_state_dir(self, temp_env_vars, tmp_path):
        temp_env_vars(SUBDASH_STATE_DIR=str(tmp_path))

        assert get_storage_path() == Path(tmp_path) / "storage.json"
