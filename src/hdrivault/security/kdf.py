import os

from argon2.low_level import Type, hash_secret_raw

from ..core.exceptions import KeyUnavailableError


# fixed salt for passphrase-derived application keys; override with HDRIVAULT_KEY_SALT
APPLICATION_SALT = b"hdrivault-kek-v1"
MIN_SALT_LENGTH = 8


def generate_salt(length: int = 16) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def salt_from_hex(text: str) -> bytes:
    """Parse a configured salt given as hex text."""
    try:
        salt = bytes.fromhex(text.strip())
    except ValueError:
        raise KeyUnavailableError("key salt is not valid hex") from None
    # Argon2 refuses shorter salts
    if len(salt) < MIN_SALT_LENGTH:
        raise KeyUnavailableError(f"key salt must be at least {MIN_SALT_LENGTH} bytes, got {len(salt)}")
    return salt


def derive_application_key(
    passphrase: bytes,
    salt: bytes = APPLICATION_SALT,
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 1,
    key_len: int = 32,
) -> bytes:
    """
    Stretch a passphrase into raw application key bytes using Argon2id.
    The same passphrase and salt always give the same key, so projects
    saved on one machine open on another configured with that passphrase.
    """
    if isinstance(passphrase, str):
        passphrase = passphrase.encode("utf-8")

    return hash_secret_raw(
        secret=passphrase,
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=key_len,
        type=Type.ID,
    )
