"""Security helpers: application key management and envelope encryption for HDRIVault.

This package provides:
- pluggable sources for the application key (static, environment, OS keyring, Argon2id passphrase)
- a process-wide, single-flight cache of the imported application key
- per-asset data keys wrapped under the application key (AES-256-GCM envelope)
"""

from .kdf import generate_salt, derive_application_key
from .keysource import (
    KeySource,
    StaticKeySource,
    EnvironmentKeySource,
    KeyringKeySource,
    PassphraseKeySource,
    ChainedKeySource,
)
from .key_manager import (
    ApplicationKey,
    KeyManager,
    get_key_manager,
    configure_key_source,
    reset_key_manager,
    get_application_key,
)
from .envelope import EncryptedPacket, EnvelopeCipher, encrypt_payload, decrypt_payload
from .keystore import save_key, load_key, delete_key

__all__ = [
    "generate_salt",
    "derive_application_key",
    "KeySource",
    "StaticKeySource",
    "EnvironmentKeySource",
    "KeyringKeySource",
    "PassphraseKeySource",
    "ChainedKeySource",
    "ApplicationKey",
    "KeyManager",
    "get_key_manager",
    "configure_key_source",
    "reset_key_manager",
    "get_application_key",
    "EncryptedPacket",
    "EnvelopeCipher",
    "encrypt_payload",
    "decrypt_payload",
    "save_key",
    "load_key",
    "delete_key",
]
