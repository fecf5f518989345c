"""OS keystore integration for storing the application key via keyring.

The key is kept base64-encoded under a service/account pair. Whether the
keyring backend is actually hardware-backed depends on the platform; use
assess_keyring_backend() before trusting it with a production key.
"""
import base64
from typing import Optional

try:
    import keyring
    from keyring.errors import KeyringError, PasswordDeleteError
except ImportError:
    keyring = None

from ..core.exceptions import KeyUnavailableError


DEFAULT_SERVICE = "hdrivault"
DEFAULT_ACCOUNT = "application-key"


def _require_keyring():
    if keyring is None:
        raise KeyUnavailableError("keyring package is not available; install keyring to use the OS keystore")


def save_key(key_bytes: bytes, service: str = DEFAULT_SERVICE, account: str = DEFAULT_ACCOUNT) -> None:
    """Store key_bytes in the OS keystore under (service, account)."""
    _require_keyring()
    secret = base64.b64encode(key_bytes).decode("ascii")
    keyring.set_password(service, account, secret)


# modules of keyring's own platform backends that encrypt at rest
_SECURE_MODULES = (
    "keyring.backends.macOS",
    "keyring.backends.Windows",
    "keyring.backends.SecretService",
    "keyring.backends.libsecret",
    "keyring.backends.kwallet",
)
# backends that store nothing, or refuse every call
_UNUSABLE_MODULES = ("keyring.backends.fail", "keyring.backends.null")
# keyrings.alt ships the plaintext and file-based backends
_INSECURE_MODULES = ("keyrings.alt",)


def _effective_backend(backend):
    # ChainerBackend writes to the first (highest priority) backend that accepts the value
    chained = getattr(backend, "backends", None)
    if isinstance(chained, (list, tuple)):
        return chained[0] if chained else None
    return backend


def assess_keyring_backend() -> tuple[bool, str]:
    """
    Return (is_secure, message) for the backend that would receive the application key.

    Only keyring's own platform backends count as acceptable; anything from
    keyrings.alt or with a plaintext store is refused.
    """
    if keyring is None:
        return False, "keyring package is not installed"

    try:
        backend = _effective_backend(keyring.get_keyring())
    except KeyringError as e:
        return False, f"failed to get keyring backend: {e}"
    if backend is None:
        return False, "no usable keyring backend: the backend chain is empty"

    cls = type(backend)
    label = f"{cls.__module__}.{cls.__name__}"
    priority = getattr(backend, "priority", None)

    if cls.__module__.startswith(_UNUSABLE_MODULES):
        return False, f"no usable keyring backend: {label}"
    if cls.__module__.startswith(_INSECURE_MODULES) or "Plaintext" in cls.__name__:
        return False, f"insecure backend detected: {label} is a file or plaintext store"
    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={label})"
    if cls.__module__.startswith(_SECURE_MODULES):
        return True, f"backend looks acceptable: {label}"
    return True, f"unknown backend {label}, treat with caution (priority={priority})"


def load_key(service: str = DEFAULT_SERVICE, account: str = DEFAULT_ACCOUNT) -> Optional[bytes]:
    """Load the stored key; None when nothing is stored or the entry is not base64."""
    _require_keyring()
    try:
        secret = keyring.get_password(service, account)
    except KeyringError as e:
        raise KeyUnavailableError(f"keyring lookup failed: {e}") from e
    if secret is None:
        return None
    try:
        return base64.b64decode(secret, validate=True)
    except ValueError:
        # binascii.Error, or non-ASCII text
        return None


def delete_key(service: str = DEFAULT_SERVICE, account: str = DEFAULT_ACCOUNT) -> None:
    """Remove the key from the OS keystore; a missing entry is not an error."""
    _require_keyring()
    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        pass
