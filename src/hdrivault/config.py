"""Runtime configuration, read from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .security.kdf import APPLICATION_SALT, salt_from_hex
from .security.keysource import (
    ChainedKeySource,
    EnvironmentKeySource,
    KeyringKeySource,
    KeySource,
    PassphraseKeySource,
)
from .security.keystore import DEFAULT_ACCOUNT, DEFAULT_SERVICE


_FALSY = {"0", "false", "no", "off"}


@dataclass
class VaultConfig:
    """Where the application key comes from and how loud the logs are."""

    key_env_var: str = "HDRIVAULT_APP_KEY"
    passphrase: Optional[str] = None
    key_salt: bytes = APPLICATION_SALT
    use_keyring: bool = True
    keyring_service: str = DEFAULT_SERVICE
    keyring_account: str = DEFAULT_ACCOUNT
    log_level: int = logging.INFO

    @classmethod
    def from_env(cls) -> "VaultConfig":
        salt_hex = os.getenv("HDRIVAULT_KEY_SALT")
        level_name = os.getenv("HDRIVAULT_LOG_LEVEL", "INFO").upper()
        level = logging.getLevelName(level_name)
        return cls(
            passphrase=os.getenv("HDRIVAULT_PASSPHRASE") or None,
            key_salt=salt_from_hex(salt_hex) if salt_hex else APPLICATION_SALT,
            use_keyring=os.getenv("HDRIVAULT_USE_KEYRING", "1").strip().lower() not in _FALSY,
            keyring_service=os.getenv("HDRIVAULT_KEYRING_SERVICE", DEFAULT_SERVICE),
            keyring_account=os.getenv("HDRIVAULT_KEYRING_ACCOUNT", DEFAULT_ACCOUNT),
            log_level=level if isinstance(level, int) else logging.INFO,
        )


def build_key_source(config: VaultConfig) -> KeySource:
    # explicit key first, then passphrase, then the OS keystore
    sources = [EnvironmentKeySource(config.key_env_var)]
    if config.passphrase:
        sources.append(PassphraseKeySource(config.passphrase, salt=config.key_salt))
    if config.use_keyring:
        sources.append(KeyringKeySource(config.keyring_service, config.keyring_account))
    return ChainedKeySource(*sources)
