"""Unit tests for application key sources."""

import base64
import os
from unittest.mock import patch

import pytest

from hdrivault.core.exceptions import KeyUnavailableError
from hdrivault.security.keysource import (
    ChainedKeySource,
    EnvironmentKeySource,
    KeyringKeySource,
    KeySource,
    PassphraseKeySource,
    StaticKeySource,
)


class _Empty(KeySource):
    name = "empty"

    def load_key_material(self):
        return None


def test_static_source_returns_secret():
    secret = os.urandom(32)
    assert StaticKeySource(secret).load_key_material() == secret


def test_static_source_repr_hides_secret():
    secret = b"\xde\xad" * 16
    assert secret.hex() not in repr(StaticKeySource(secret))


def test_environment_source_decodes_base64(monkeypatch):
    key = os.urandom(32)
    monkeypatch.setenv("TEST_APP_KEY", base64.b64encode(key).decode("ascii"))
    assert EnvironmentKeySource("TEST_APP_KEY").load_key_material() == key


def test_environment_source_unset_returns_none(monkeypatch):
    monkeypatch.delenv("TEST_APP_KEY", raising=False)
    assert EnvironmentKeySource("TEST_APP_KEY").load_key_material() is None


def test_environment_source_invalid_base64_raises(monkeypatch):
    monkeypatch.setenv("TEST_APP_KEY", "***")
    with pytest.raises(KeyUnavailableError, match="TEST_APP_KEY"):
        EnvironmentKeySource("TEST_APP_KEY").load_key_material()


def test_environment_source_non_ascii_raises(monkeypatch):
    monkeypatch.setenv("TEST_APP_KEY", "clé")
    with pytest.raises(KeyUnavailableError, match="TEST_APP_KEY"):
        EnvironmentKeySource("TEST_APP_KEY").load_key_material()


def test_keyring_source_delegates_to_keystore():
    with patch("hdrivault.security.keysource.load_key", return_value=b"k" * 32) as mock_load:
        source = KeyringKeySource("svc", "acct")
        assert source.load_key_material() == b"k" * 32
    mock_load.assert_called_once_with("svc", "acct")


def test_passphrase_source_derives_stable_key():
    params = {"time_cost": 1, "memory_cost": 8, "parallelism": 1}
    a = PassphraseKeySource("open sesame", **params).load_key_material()
    b = PassphraseKeySource(b"open sesame", **params).load_key_material()
    assert a == b
    assert len(a) == 32


def test_passphrase_source_empty_returns_none():
    assert PassphraseKeySource("").load_key_material() is None


def test_chain_returns_first_material():
    first = StaticKeySource(b"a" * 32)
    second = StaticKeySource(b"b" * 32)
    assert ChainedKeySource(_Empty(), first, second).load_key_material() == b"a" * 32


def test_chain_stops_before_later_sources():
    with patch("hdrivault.security.keysource.load_key") as mock_load:
        chain = ChainedKeySource(StaticKeySource(b"a" * 32), KeyringKeySource())
        chain.load_key_material()
    mock_load.assert_not_called()


def test_chain_of_empty_sources_returns_none():
    assert ChainedKeySource(_Empty(), _Empty()).load_key_material() is None
