"""Small helper to build an HDRIVault context for the command line."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from hdrivault.config import VaultConfig, build_key_source
from hdrivault.project.migrator import ProjectLoader
from hdrivault.project.serializer import ProjectSerializer
from hdrivault.security.envelope import EnvelopeCipher
from hdrivault.security.key_manager import KeyManager, configure_key_source, get_key_manager


@dataclass
class AppContext:
    """Container for runtime objects the commands need."""

    config: VaultConfig
    key_manager: KeyManager
    loader: ProjectLoader
    serializer: ProjectSerializer


def build_context(config: Optional[VaultConfig] = None) -> AppContext:
    """
    Wire config -> key manager -> cipher -> loader/serializer.

    Without an explicit config the process-wide key manager is used as-is
    (it reads the environment on first use). With one, its key source is
    installed as the process-wide source, so the application key is still
    built once per process.
    """
    if config is None:
        config = VaultConfig.from_env()
        manager = get_key_manager()
    else:
        manager = configure_key_source(build_key_source(config))

    cipher = EnvelopeCipher(manager)
    return AppContext(
        config=config,
        key_manager=manager,
        loader=ProjectLoader(cipher),
        serializer=ProjectSerializer(cipher),
    )
