"""Process-wide application key (KEK) management.

The application key only ever wraps per-asset data keys. Lifetime of the
default manager:

- created lazily on first use, from :meth:`VaultConfig.from_env`
  unless :func:`configure_key_source` installed a source before that
- the imported key lives for the rest of the process
- the key is never written anywhere; :class:`ApplicationKey` exposes no raw
  bytes and refuses to be pickled

Building the key is single-flight: concurrent first calls from threads or
asyncio tasks (which reach it through ``asyncio.to_thread``) construct exactly
one :class:`ApplicationKey`.
"""
from __future__ import annotations

import asyncio
import logging
import os
import threading
from typing import Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core.exceptions import KeyUnavailableError
from .keysource import KeySource


logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12


def _wipe(buf: bytearray) -> None:
    # best-effort overwrite of transient key material
    for i in range(len(buf)):
        buf[i] = 0


def _check_provider() -> None:
    try:
        os.urandom(1)
    except NotImplementedError as e:
        raise KeyUnavailableError("no secure random source available") from e


class ApplicationKey:
    """Opaque AES-256-GCM key handle. Only usable for wrapping data keys."""

    __slots__ = ("_aead",)

    def __init__(self, aead: AESGCM):
        self._aead = aead

    @classmethod
    def import_raw(cls, material: bytes) -> "ApplicationKey":
        if len(material) != KEY_SIZE:
            raise KeyUnavailableError(
                f"application key must be {KEY_SIZE} bytes, got {len(material)}"
            )
        buf = bytearray(material)
        try:
            # AESGCM keeps a reference to its key object; hand it an immutable copy
            return cls(AESGCM(bytes(buf)))
        except UnsupportedAlgorithm as e:
            raise KeyUnavailableError("AES-GCM is not supported by the crypto provider") from e
        finally:
            _wipe(buf)

    def wrap(self, nonce: bytes, data_key: bytearray) -> bytes:
        return self._aead.encrypt(nonce, data_key, None)

    def unwrap(self, nonce: bytes, wrapped: bytes) -> bytes:
        return self._aead.decrypt(nonce, wrapped, None)

    def __repr__(self) -> str:
        return "<ApplicationKey>"

    def __reduce__(self):
        raise TypeError("ApplicationKey cannot be serialized")


class KeyManager:
    """Builds the application key from a key source once and caches it."""

    def __init__(self, source: KeySource):
        self.source = source
        self._key: Optional[ApplicationKey] = None
        self._lock = threading.Lock()

    @property
    def has_key(self) -> bool:
        return self._key is not None

    def get_application_key(self) -> ApplicationKey:
        key = self._key
        if key is not None:
            return key
        with self._lock:
            if self._key is None:
                self._key = self._build()
            return self._key

    def _build(self) -> ApplicationKey:
        _check_provider()
        material = self.source.load_key_material()
        if material is None:
            raise KeyUnavailableError(f"no application key available from {self.source!r}")
        key = ApplicationKey.import_raw(material)
        logger.info("application key loaded from %s source", self.source.name)
        return key


_default_manager: Optional[KeyManager] = None
_default_lock = threading.Lock()


def get_key_manager() -> KeyManager:
    """Return the process-wide manager, creating it from the environment on first use."""
    global _default_manager
    with _default_lock:
        if _default_manager is None:
            from ..config import VaultConfig, build_key_source

            _default_manager = KeyManager(build_key_source(VaultConfig.from_env()))
        return _default_manager


def configure_key_source(source: KeySource) -> KeyManager:
    """Install ``source`` for the process-wide manager. Must happen before the key is first used."""
    global _default_manager
    with _default_lock:
        if _default_manager is not None and _default_manager.has_key:
            raise RuntimeError("application key already in use; reset_key_manager() first")
        _default_manager = KeyManager(source)
        return _default_manager


def reset_key_manager() -> None:
    """Forget the process-wide manager and its cached key (tests, re-keying tools)."""
    global _default_manager
    with _default_lock:
        _default_manager = None


async def get_application_key() -> ApplicationKey:
    return await asyncio.to_thread(get_key_manager().get_application_key)
