"""
Unit tests for the schema-1.7 project serializer.
"""

import asyncio
import json
import os
from unittest.mock import patch

import pytest

from hdrivault.core.exceptions import SerializationError
from hdrivault.core.models import (
    AssetRecord,
    CustomPreset,
    LightAnnotation,
    NormalizedProject,
)
from hdrivault.project.serializer import ProjectSerializer, serialize_project, settings_to_document
from hdrivault.security.envelope import EncryptedPacket, EnvelopeCipher
from hdrivault.security.key_manager import KeyManager
from hdrivault.security.keysource import StaticKeySource


@pytest.fixture
def cipher():
    return EnvelopeCipher(KeyManager(StaticKeySource(os.urandom(32))))


def _project(*hdris, **kwargs):
    return NormalizedProject(hdris=list(hdris), **kwargs)


def _serialize(project, cipher):
    return asyncio.run(ProjectSerializer(cipher).serialize(project))


# ==============================================================================
# Tests: document shape
# ==============================================================================

def test_writes_current_version_with_all_settings(cipher):
    doc = _serialize(_project(), cipher)

    assert doc["version"] == "1.7"
    assert set(doc["settings"]) == {
        "rotation", "exposure", "blur", "selectedHdriName", "toneMapping", "preset",
        "spheresVisible", "groundVisible", "shadowsVisible", "colorCheckerVisible",
        "colorCheckerRows", "shadowIntensity",
    }
    assert doc["hdris"] == []
    assert "loadedPreset" not in doc
    # every texture slot is present, empty ones as null
    assert doc["materials"]["floor"]["texture"] is None
    for key in ("glass", "matte", "chrome", "plastic"):
        assert doc["materials"][key]["roughnessTexture"] is None


def test_settings_document_values():
    project = _project(selected_hdri="sky")
    project.settings.rotation = 45.0
    project.settings.visibility.color_checker_rows = [1, 3]

    settings = settings_to_document(project)
    assert settings["rotation"] == 45.0
    assert settings["selectedHdriName"] == "sky"
    assert settings["colorCheckerRows"] == [1, 3]
    assert settings["toneMapping"] == "ACES Filmic"


def test_hdri_entry_is_envelope_encrypted(cipher):
    payload = os.urandom(512)
    hdri = AssetRecord(
        name="studio",
        data=payload,
        content_type="image/vnd.radiance",
        lights=[LightAnnotation(u=0.5, v=0.25, intensity=2.0, label="key")],
    )
    entry = _serialize(_project(hdri), cipher)["hdris"][0]

    assert entry["name"] == "studio"
    assert entry["encrypted"] is True
    assert entry["mimeType"] == "image/vnd.radiance"
    assert "scheme" not in entry
    assert entry["lights"] == [{"u": 0.5, "v": 0.25, "intensity": 2.0, "color": "#ffffff", "label": "key"}]
    # the plaintext never appears in the document
    assert payload.hex() not in json.dumps(entry)
    assert cipher.decrypt_packet(EncryptedPacket.from_document(entry)) == payload


def test_texture_entries_land_in_their_slots(cipher):
    project = _project()
    project.materials.floor.texture = AssetRecord(name="tiles", data=b"floor", content_type="image/png")
    project.materials.chrome.roughness_texture = AssetRecord(name="brushed", data=b"chrome", content_type="image/png")

    materials = _serialize(project, cipher)["materials"]

    assert materials["floor"]["texture"]["name"] == "tiles"
    assert "lights" not in materials["floor"]["texture"]
    assert materials["chrome"]["roughnessTexture"]["name"] == "brushed"
    assert materials["matte"]["roughnessTexture"] is None
    packet = EncryptedPacket.from_document(materials["chrome"]["roughnessTexture"])
    assert cipher.decrypt_packet(packet) == b"chrome"


def test_loaded_preset_is_embedded(cipher):
    preset = CustomPreset(name="Mine")
    preset.materials.glass.ior = 1.33
    doc = _serialize(_project(custom_preset=preset), cipher)

    assert doc["loadedPreset"]["name"] == "Mine"
    assert doc["loadedPreset"]["data"]["version"] == "1.0"
    assert doc["loadedPreset"]["data"]["materials"]["glass"]["ior"] == 1.33


def test_asset_read_from_source_path(cipher, tmp_path):
    source = tmp_path / "sky.hdr"
    source.write_bytes(b"#?RADIANCE\n")
    hdri = AssetRecord(name="sky", source=source, content_type="image/vnd.radiance")

    entry = _serialize(_project(hdri), cipher)["hdris"][0]
    assert cipher.decrypt_packet(EncryptedPacket.from_document(entry)) == b"#?RADIANCE\n"


def test_dumps_is_json(cipher):
    text = asyncio.run(ProjectSerializer(cipher).dumps(_project(AssetRecord(name="a", data=b"x"))))
    assert json.loads(text)["hdris"][0]["name"] == "a"


def test_module_level_helper(cipher):
    doc = asyncio.run(serialize_project(_project(), cipher))
    assert doc["version"] == "1.7"


# ==============================================================================
# Tests: failure is all-or-nothing
# ==============================================================================

def test_asset_without_data_or_source_fails(cipher):
    project = _project(AssetRecord(name="ok", data=b"1"), AssetRecord(name="empty"))
    with pytest.raises(SerializationError, match="empty"):
        _serialize(project, cipher)


def test_unreadable_source_fails(cipher, tmp_path):
    hdri = AssetRecord(name="missing", source=tmp_path / "nope.hdr")
    with pytest.raises(SerializationError, match="missing"):
        _serialize(_project(hdri), cipher)


def test_encryption_failure_produces_no_document(cipher):
    project = _project(AssetRecord(name="a", data=b"1"), AssetRecord(name="b", data=b"2"))
    real = cipher.encrypt_bytes

    def flaky(data):
        if data == b"2":
            raise RuntimeError("boom")
        return real(data)

    with patch.object(cipher, "encrypt_bytes", side_effect=flaky):
        with pytest.raises(RuntimeError, match="boom"):
            _serialize(project, cipher)
