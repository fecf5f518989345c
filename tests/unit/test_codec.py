"""Unit tests for the byte/text codec."""

import base64
import os

import pytest

from hdrivault.core import codec
from hdrivault.core.exceptions import CodecError


@pytest.mark.parametrize("size", [0, 1, 2, 3, 4, 5, 1023, 1024, 65537])
def test_roundtrip_and_length(size):
    data = os.urandom(size)
    text = codec.encode(data)

    assert codec.decode(text) == data
    assert len(text) == codec.encoded_length(size)
    assert len(text) % 4 == 0


def test_encoded_length_padding_rules():
    assert codec.encoded_length(0) == 0
    assert codec.encoded_length(1) == 4
    assert codec.encoded_length(3) == 4
    assert codec.encoded_length(4) == 8


def test_encode_accepts_bytearray_and_memoryview():
    assert codec.encode(bytearray(b"abc")) == "YWJj"
    assert codec.encode(memoryview(b"abc")) == "YWJj"


def test_decode_rejects_garbage():
    with pytest.raises(CodecError):
        codec.decode("not base64 at all!")


def test_decode_rejects_missing_padding():
    with pytest.raises(CodecError):
        codec.decode("YWI")


def test_decode_rejects_non_ascii_and_non_str():
    with pytest.raises(CodecError):
        codec.decode("YWJjé")
    with pytest.raises(CodecError):
        codec.decode(b"YWJj")


def test_codec_error_is_value_error():
    with pytest.raises(ValueError):
        codec.decode("%%%%")


def test_parse_data_url():
    payload = b"#?RADIANCE\nFORMAT=32-bit_rle_rgbe\n"
    url = "data:image/vnd.radiance;base64," + base64.b64encode(payload).decode("ascii")

    content_type, data = codec.parse_data_url(url)

    assert content_type == "image/vnd.radiance"
    assert data == payload


def test_parse_data_url_without_content_type():
    content_type, data = codec.parse_data_url("data:;base64,YWJj")
    assert content_type == codec.DEFAULT_CONTENT_TYPE
    assert data == b"abc"


@pytest.mark.parametrize("value", ["YWJj", "data:text/plain,abc", "data:text/plain;base64,@@@@", 42])
def test_parse_data_url_rejects_invalid(value):
    with pytest.raises(CodecError):
        codec.parse_data_url(value)
