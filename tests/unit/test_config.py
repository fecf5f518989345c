"""Unit tests for environment configuration and key source wiring."""

import logging

import pytest

from hdrivault.config import VaultConfig, build_key_source
from hdrivault.core.exceptions import KeyUnavailableError
from hdrivault.security.kdf import APPLICATION_SALT
from hdrivault.security.keysource import (
    ChainedKeySource,
    EnvironmentKeySource,
    KeyringKeySource,
    PassphraseKeySource,
)


ENV_VARS = (
    "HDRIVAULT_APP_KEY",
    "HDRIVAULT_PASSPHRASE",
    "HDRIVAULT_KEY_SALT",
    "HDRIVAULT_USE_KEYRING",
    "HDRIVAULT_KEYRING_SERVICE",
    "HDRIVAULT_KEYRING_ACCOUNT",
    "HDRIVAULT_LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    config = VaultConfig.from_env()
    assert config == VaultConfig()
    assert config.passphrase is None
    assert config.key_salt == APPLICATION_SALT
    assert config.use_keyring is True
    assert config.log_level == logging.INFO


def test_reads_environment(clean_env):
    clean_env.setenv("HDRIVAULT_PASSPHRASE", "open sesame")
    clean_env.setenv("HDRIVAULT_KEY_SALT", "00112233445566778899aabbccddeeff")
    clean_env.setenv("HDRIVAULT_USE_KEYRING", "off")
    clean_env.setenv("HDRIVAULT_KEYRING_SERVICE", "svc")
    clean_env.setenv("HDRIVAULT_KEYRING_ACCOUNT", "acct")
    clean_env.setenv("HDRIVAULT_LOG_LEVEL", "debug")

    config = VaultConfig.from_env()
    assert config.passphrase == "open sesame"
    assert config.key_salt == bytes.fromhex("00112233445566778899aabbccddeeff")
    assert config.use_keyring is False
    assert (config.keyring_service, config.keyring_account) == ("svc", "acct")
    assert config.log_level == logging.DEBUG


def test_invalid_salt_is_reported(clean_env):
    clean_env.setenv("HDRIVAULT_KEY_SALT", "not-hex")
    with pytest.raises(KeyUnavailableError, match="salt"):
        VaultConfig.from_env()


def test_unknown_log_level_falls_back(clean_env):
    clean_env.setenv("HDRIVAULT_LOG_LEVEL", "chatty")
    assert VaultConfig.from_env().log_level == logging.INFO


def test_key_source_order():
    source = build_key_source(VaultConfig(passphrase="pw"))
    assert isinstance(source, ChainedKeySource)
    kinds = [type(s) for s in source.sources]
    assert kinds == [EnvironmentKeySource, PassphraseKeySource, KeyringKeySource]


def test_key_source_without_optional_sources():
    source = build_key_source(VaultConfig(use_keyring=False))
    assert [type(s) for s in source.sources] == [EnvironmentKeySource]
