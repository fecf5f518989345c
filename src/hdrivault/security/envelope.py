"""Envelope encryption for project assets.

Every payload gets its own 256-bit data key (DEK). The payload is sealed
with AES-256-GCM under the DEK, and the DEK itself is sealed under the
application key (KEK) from :mod:`hdrivault.security.key_manager`. Both nonces
are 96-bit and random per packet. The packet carries everything as base64
text so it can live inside the JSON project document:

- ``data``       AES-GCM ciphertext (with tag) of the payload
- ``iv``         content nonce
- ``wrappedKey`` AES-GCM ciphertext (with tag) of the raw DEK
- ``keyIv``      key-wrap nonce

Decryption has a single failure mode, :class:`DecryptionError`, whatever
stage went wrong.
"""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..core import codec
from ..core.exceptions import CodecError, DecryptionError, InvalidFormatError
from .key_manager import KEY_SIZE, NONCE_SIZE, KeyManager, _wipe, get_key_manager


DECRYPTION_FAILED = "Decryption failed. The project key may not match or the data is corrupted."


@dataclass(frozen=True)
class EncryptedPacket:
    ciphertext: str
    nonce_for_content: str
    wrapped_data_key: str
    nonce_for_key_wrap: str

    def to_document(self) -> Dict[str, str]:
        return {
            "data": self.ciphertext,
            "iv": self.nonce_for_content,
            "wrappedKey": self.wrapped_data_key,
            "keyIv": self.nonce_for_key_wrap,
        }

    @classmethod
    def from_document(cls, entry: Dict[str, Any]) -> "EncryptedPacket":
        values = []
        for field_name in ("data", "iv", "wrappedKey", "keyIv"):
            value = entry.get(field_name)
            if not isinstance(value, str):
                raise InvalidFormatError(f"encrypted asset field {field_name!r} must be a string")
            values.append(value)
        return cls(*values)


class EnvelopeCipher:
    """Encrypts and decrypts payloads with per-payload data keys."""

    def __init__(self, key_manager: Optional[KeyManager] = None):
        self._key_manager = key_manager

    @property
    def key_manager(self) -> KeyManager:
        return self._key_manager or get_key_manager()

    def encrypt_bytes(self, data: bytes) -> EncryptedPacket:
        kek = self.key_manager.get_application_key()

        dek = bytearray(AESGCM.generate_key(bit_length=KEY_SIZE * 8))
        try:
            nonce = os.urandom(NONCE_SIZE)
            ciphertext = AESGCM(dek).encrypt(nonce, data, None)

            key_nonce = os.urandom(NONCE_SIZE)
            wrapped = kek.wrap(key_nonce, dek)
        finally:
            _wipe(dek)

        return EncryptedPacket(
            ciphertext=codec.encode(ciphertext),
            nonce_for_content=codec.encode(nonce),
            wrapped_data_key=codec.encode(wrapped),
            nonce_for_key_wrap=codec.encode(key_nonce),
        )

    def decrypt_packet(self, packet: EncryptedPacket) -> bytes:
        # key problems are not decryption problems; let KeyUnavailableError through
        kek = self.key_manager.get_application_key()

        try:
            key_nonce = codec.decode(packet.nonce_for_key_wrap)
            wrapped = codec.decode(packet.wrapped_data_key)
            nonce = codec.decode(packet.nonce_for_content)
            ciphertext = codec.decode(packet.ciphertext)

            dek = bytearray(kek.unwrap(key_nonce, wrapped))
            try:
                if len(dek) != KEY_SIZE:
                    raise ValueError("unexpected data key size")
                return AESGCM(dek).decrypt(nonce, ciphertext, None)
            finally:
                _wipe(dek)
        except (InvalidTag, CodecError, ValueError):
            # one message, no cause: which stage failed stays hidden
            raise DecryptionError(DECRYPTION_FAILED) from None

    async def encrypt_payload(self, data: bytes) -> EncryptedPacket:
        return await asyncio.to_thread(self.encrypt_bytes, data)

    async def decrypt_payload(self, packet: EncryptedPacket) -> bytes:
        return await asyncio.to_thread(self.decrypt_packet, packet)


async def encrypt_payload(data: bytes) -> EncryptedPacket:
    return await EnvelopeCipher().encrypt_payload(data)


async def decrypt_payload(packet: EncryptedPacket) -> bytes:
    return await EnvelopeCipher().decrypt_payload(packet)
