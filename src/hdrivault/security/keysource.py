"""Pluggable origins for the application key material.

A key source only answers "what are the raw key bytes?". It never caches or
imports anything; :mod:`hdrivault.security.key_manager` does that once per
process. Sources return ``None`` when they have nothing to offer so they can
be chained, and raise :class:`KeyUnavailableError` when they are configured
but broken.
"""
from __future__ import annotations

import base64
import os
from typing import Optional

from ..core.exceptions import KeyUnavailableError
from .kdf import APPLICATION_SALT, derive_application_key
from .keystore import DEFAULT_ACCOUNT, DEFAULT_SERVICE, load_key


class KeySource:
    """Base class for key material providers."""

    name = "abstract"

    def load_key_material(self) -> Optional[bytes]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class StaticKeySource(KeySource):
    """Key bytes handed over directly by the embedding application."""

    name = "static"

    def __init__(self, secret: bytes):
        self._secret = bytes(secret)

    def load_key_material(self) -> Optional[bytes]:
        return self._secret


class EnvironmentKeySource(KeySource):
    """Base64 key read from an environment variable."""

    name = "environment"

    def __init__(self, variable: str = "HDRIVAULT_APP_KEY"):
        self.variable = variable

    def load_key_material(self) -> Optional[bytes]:
        value = os.getenv(self.variable)
        if not value:
            return None
        try:
            return base64.b64decode(value.strip(), validate=True)
        except ValueError as e:
            # binascii.Error, or non-ASCII text
            raise KeyUnavailableError(f"{self.variable} is not valid base64") from e

    def __repr__(self) -> str:
        return f"EnvironmentKeySource(variable={self.variable!r})"


class KeyringKeySource(KeySource):
    """Key stored in the OS keystore (see :mod:`hdrivault.security.keystore`)."""

    name = "keyring"

    def __init__(self, service: str = DEFAULT_SERVICE, account: str = DEFAULT_ACCOUNT):
        self.service = service
        self.account = account

    def load_key_material(self) -> Optional[bytes]:
        return load_key(self.service, self.account)

    def __repr__(self) -> str:
        return f"KeyringKeySource(service={self.service!r}, account={self.account!r})"


class PassphraseKeySource(KeySource):
    """Key stretched from a passphrase with Argon2id."""

    name = "passphrase"

    def __init__(self, passphrase: bytes | str, salt: bytes = APPLICATION_SALT, **kdf_params):
        if isinstance(passphrase, str):
            passphrase = passphrase.encode("utf-8")
        self._passphrase = passphrase
        self.salt = salt
        self.kdf_params = kdf_params

    def load_key_material(self) -> Optional[bytes]:
        if not self._passphrase:
            return None
        return derive_application_key(self._passphrase, self.salt, **self.kdf_params)


class ChainedKeySource(KeySource):
    """Ask each source in turn; the first one that yields material wins."""

    name = "chain"

    def __init__(self, *sources: KeySource):
        self.sources = list(sources)

    def load_key_material(self) -> Optional[bytes]:
        for source in self.sources:
            material = source.load_key_material()
            if material is not None:
                return material
        return None

    def __repr__(self) -> str:
        inner = ", ".join(repr(s) for s in self.sources)
        return f"ChainedKeySource({inner})"
