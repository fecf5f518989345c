""" Byte <-> text helpers for the JSON project container. """

import base64
import binascii
from typing import Tuple

from .exceptions import CodecError


DEFAULT_CONTENT_TYPE = "application/octet-stream"
DATA_URL_PREFIX = "data:"
DATA_URL_MARKER = ";base64,"


def encode(data: bytes) -> str:
    """Return the padded base64 text for ``data``."""
    return base64.b64encode(bytes(data)).decode("ascii")


def decode(text: str) -> bytes:
    """Decode padded base64 text, rejecting anything outside the alphabet."""
    if not isinstance(text, str):
        raise CodecError(f"expected base64 text, got {type(text).__name__}")
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise CodecError(f"invalid base64 text: {e}") from e


def encoded_length(size: int) -> int:
    # 4 output characters per started group of 3 input bytes
    return ((size + 2) // 3) * 4


def parse_data_url(text: str) -> Tuple[str, bytes]:
    """
    Split a legacy ``data:<mime>;base64,<payload>`` value into (content_type, bytes).

    Projects saved before encryption was introduced store every asset this way.
    New documents never use it.
    """
    if not isinstance(text, str) or not text.startswith(DATA_URL_PREFIX):
        raise CodecError("not a data URL")
    header, marker, payload = text.partition(DATA_URL_MARKER)
    if not marker:
        raise CodecError("data URL is not base64 encoded")
    content_type = header[len(DATA_URL_PREFIX):] or DEFAULT_CONTENT_TYPE
    return content_type, decode(payload)
