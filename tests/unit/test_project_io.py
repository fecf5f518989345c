"""
Unit tests for saving and loading project and preset files.
"""

import os
from unittest.mock import patch

import pytest

from hdrivault.core.exceptions import ParseError, SerializationError
from hdrivault.core.models import AssetRecord, NormalizedProject
from hdrivault.project.io import (
    load_preset_file,
    load_project_file,
    save_preset_file,
    save_project_file,
    write_text_atomic,
)
from hdrivault.project.presets import builtin_preset
from hdrivault.security.envelope import EnvelopeCipher
from hdrivault.security.key_manager import KeyManager
from hdrivault.security.keysource import StaticKeySource


@pytest.fixture
def cipher():
    return EnvelopeCipher(KeyManager(StaticKeySource(os.urandom(32))))


# ==============================================================================
# Tests: atomic writes
# ==============================================================================

def test_write_text_atomic_creates_parents(tmp_path):
    target = tmp_path / "nested" / "dir" / "scene.hdriv"
    write_text_atomic(target, "{}")
    assert target.read_text(encoding="utf-8") == "{}"
    assert os.listdir(target.parent) == ["scene.hdriv"]


def test_write_text_atomic_replaces_existing(tmp_path):
    target = tmp_path / "scene.hdriv"
    target.write_text("old", encoding="utf-8")
    write_text_atomic(target, "new")
    assert target.read_text(encoding="utf-8") == "new"


def test_failed_replace_leaves_original_and_no_temp(tmp_path):
    target = tmp_path / "scene.hdriv"
    target.write_text("old", encoding="utf-8")

    with patch("hdrivault.project.io.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            write_text_atomic(target, "new")

    assert target.read_text(encoding="utf-8") == "old"
    assert os.listdir(tmp_path) == ["scene.hdriv"]


# ==============================================================================
# Tests: project files
# ==============================================================================

def test_save_then_load_project(cipher, tmp_path):
    project = NormalizedProject(
        hdris=[AssetRecord(name="sky", data=b"hdr-bytes", content_type="image/vnd.radiance")],
        selected_hdri="sky",
    )
    path = save_project_file(tmp_path / "scene.hdriv", project, cipher)

    result = load_project_file(path, cipher)
    assert result.version == "1.7"
    assert result.warnings == []
    assert result.project.get_hdri("sky").data == b"hdr-bytes"
    assert result.project.selected_hdri == "sky"


def test_failed_save_writes_nothing(cipher, tmp_path):
    project = NormalizedProject(hdris=[AssetRecord(name="ok", data=b"1"), AssetRecord(name="lost")])
    target = tmp_path / "scene.hdriv"

    with pytest.raises(SerializationError):
        save_project_file(target, project, cipher)

    assert not target.exists()
    assert os.listdir(tmp_path) == []


def test_failed_save_keeps_previous_file(cipher, tmp_path):
    target = tmp_path / "scene.hdriv"
    save_project_file(target, NormalizedProject(), cipher)
    before = target.read_text(encoding="utf-8")

    with pytest.raises(SerializationError):
        save_project_file(target, NormalizedProject(hdris=[AssetRecord(name="lost")]), cipher)

    assert target.read_text(encoding="utf-8") == before


# ==============================================================================
# Tests: preset files
# ==============================================================================

def test_save_then_load_preset(tmp_path):
    preset = builtin_preset("SkinTone")
    path = save_preset_file(tmp_path / "skin.hdrip", preset)
    assert load_preset_file(path) == preset


# ==============================================================================
# Tests: undecodable files
# ==============================================================================

def test_project_file_not_utf8_is_a_parse_error(cipher, tmp_path):
    path = tmp_path / "scene.hdriv"
    path.write_bytes(b"\xff\xfe{}")

    with pytest.raises(ParseError, match="UTF-8"):
        load_project_file(path, cipher)


def test_preset_file_not_utf8_is_a_parse_error(tmp_path):
    path = tmp_path / "look.hdrip"
    path.write_bytes(b'{"version": "1.0", "name": "\xe9"}')

    with pytest.raises(ParseError):
        load_preset_file(path)
