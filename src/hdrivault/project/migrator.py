"""
Project loader / migrator

Turns any stored project document (schema 1.0 through 1.7) into one
:class:`NormalizedProject`.

Loading happens in two passes:

1. ``parse``: structural. The version tag picks exactly one extractor from
   ``EXTRACTORS``; each extractor builds on its predecessor and adds the
   fields its version introduced, leaving the documented defaults for
   everything else. Any structural problem aborts the whole load.
2. ``load``: assets. Every stored hdri and texture is decrypted (envelope
   packets) or decoded (legacy data URLs) concurrently. A bad asset becomes
   an :class:`AssetWarning` and is left out; its siblings are unaffected.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from ..core import codec
from ..core.exceptions import (
    CodecError,
    DecryptionError,
    InvalidFormatError,
    ParseError,
    UnsupportedLegacySchemeError,
)
from ..core.models import (
    ALL_CHECKER_ROWS,
    DEFAULT_TONE_MAPPING,
    TONE_MAPPINGS,
    AssetRecord,
    AssetWarning,
    CustomPreset,
    LightAnnotation,
    LoadResult,
    MaterialSettings,
    NormalizedProject,
    SceneSettings,
    SurfaceMaterial,
    WarningKind,
)
from ..security.envelope import EncryptedPacket, EnvelopeCipher
from . import fields
from .presets import normalize_preset_name, preset_from_document
from .schema import ENVELOPE_SCHEME, SchemaVersion, parse_version, reject_newer_fields


logger = logging.getLogger(__name__)

# tone mapping names written by early builds of the viewer
LEGACY_TONE_MAPPINGS = {"Linear": "None", "None (sRGB)": "None"}


@dataclass
class StoredAsset:
    """An asset exactly as the document stores it, before decoding."""

    name: str
    payload: Union[EncryptedPacket, str, None]
    encrypted: bool
    schema_origin: SchemaVersion
    scheme: Optional[str] = None
    content_type: Optional[str] = None
    lights: List[LightAnnotation] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
    # why the payload could not be read; the asset is skipped, not the document
    defect: Optional[str] = None


@dataclass
class ParsedDocument:
    version: SchemaVersion
    settings: SceneSettings = field(default_factory=SceneSettings)
    materials: MaterialSettings = field(default_factory=MaterialSettings)
    hdris: List[StoredAsset] = field(default_factory=list)
    textures: Dict[str, StoredAsset] = field(default_factory=dict)
    selected_hdri: Optional[str] = None
    custom_preset: Optional[CustomPreset] = None


# ------------------------------------------------------------------
# Structural helpers
# ------------------------------------------------------------------

def normalize_tone_mapping(value: Any) -> str:
    if value is None:
        return DEFAULT_TONE_MAPPING
    if not isinstance(value, str):
        raise InvalidFormatError(f"settings.toneMapping must be a string, got {type(value).__name__}")
    value = LEGACY_TONE_MAPPINGS.get(value, value)
    return value if value in TONE_MAPPINGS else DEFAULT_TONE_MAPPING


def _stored_asset(entry: Any, where: str, version: SchemaVersion) -> StoredAsset:
    if not isinstance(entry, dict):
        raise InvalidFormatError(f"{where} must be an object")
    reject_newer_fields("asset", entry, version)

    name = entry.get("name")
    if not isinstance(name, str):
        raise InvalidFormatError(f"{where}.name must be a string")

    encrypted = fields.boolean(entry, "encrypted", False, where)
    if not encrypted:
        data = entry.get("data")
        defect = None if isinstance(data, str) else f"{where}.data must be a string"
        return StoredAsset(
            name=name, payload=data if defect is None else None, encrypted=False,
            schema_origin=version, raw=entry, defect=defect,
        )

    scheme = fields.optional_text(entry, "scheme", where)
    payload: Optional[EncryptedPacket] = None
    defect = None
    if scheme in (None, ENVELOPE_SCHEME) and "wrappedKey" in entry and "keyIv" in entry:
        scheme = ENVELOPE_SCHEME
        try:
            payload = EncryptedPacket.from_document(entry)
        except InvalidFormatError as e:
            defect = f"{where}: {e}"
    return StoredAsset(
        name=name, payload=payload, encrypted=True, schema_origin=version, scheme=scheme,
        raw=entry, defect=defect,
    )


def _texture(raw: Dict[str, Any], key: str, slot: str, version: SchemaVersion) -> Optional[StoredAsset]:
    entry = raw.get(key)
    if entry is None:
        return None
    return _stored_asset(entry, slot, version)


def _surface(raw: Dict[str, Any], default: SurfaceMaterial, where: str) -> None:
    default.color = fields.text(raw, "color", default.color, where)
    default.roughness = fields.number(raw, "roughness", default.roughness, where)
    default.metalness = fields.number(raw, "metalness", default.metalness, where)


def _light(entry: Any, where: str) -> LightAnnotation:
    if not isinstance(entry, dict):
        raise InvalidFormatError(f"{where} must be an object")
    for key in ("u", "v"):
        if key not in entry:
            raise InvalidFormatError(f"{where} is missing {key!r}")
    return LightAnnotation(
        u=fields.number(entry, "u", 0.0, where),
        v=fields.number(entry, "v", 0.0, where),
        intensity=fields.number(entry, "intensity", 1.0, where),
        color=fields.text(entry, "color", "#ffffff", where),
        label=fields.optional_text(entry, "label", where),
    )


def _materials_raw(doc: Dict[str, Any]) -> Dict[str, Any]:
    return fields.section(doc, "materials", "document")


# ------------------------------------------------------------------
# Version extractors
# ------------------------------------------------------------------

def _extract_v1_0(doc: Dict[str, Any], version: SchemaVersion) -> ParsedDocument:
    reject_newer_fields("document", doc, version)
    raw = fields.section(doc, "settings", "document", required=True)
    reject_newer_fields("settings", raw, version)

    hdris = doc.get("hdris")
    if hdris is None:
        raise InvalidFormatError("document is missing the required 'hdris' list")
    if not isinstance(hdris, list):
        raise InvalidFormatError("document.hdris must be a list")

    parsed = ParsedDocument(version=version)
    s = parsed.settings
    s.rotation = fields.number(raw, "rotation", s.rotation, "settings")
    s.exposure = fields.number(raw, "exposure", s.exposure, "settings")
    s.blur = fields.number(raw, "blur", s.blur, "settings")
    s.tone_mapping = normalize_tone_mapping(raw.get("toneMapping"))
    parsed.selected_hdri = fields.optional_text(raw, "selectedHdriName", "settings")

    for index, entry in enumerate(hdris):
        where = f"hdris[{index}]"
        if isinstance(entry, dict):
            reject_newer_fields("hdri", entry, version)
        parsed.hdris.append(_stored_asset(entry, where, version))
    return parsed


def _extract_v1_1(doc: Dict[str, Any], version: SchemaVersion) -> ParsedDocument:
    parsed = _extract_v1_0(doc, version)
    raw = doc["settings"]
    vis = parsed.settings.visibility
    vis.spheres = fields.boolean(raw, "spheresVisible", vis.spheres, "settings")
    vis.ground = fields.boolean(raw, "groundVisible", vis.ground, "settings")
    vis.shadows = fields.boolean(raw, "shadowsVisible", vis.shadows, "settings")
    vis.color_checker = fields.boolean(raw, "colorCheckerVisible", vis.color_checker, "settings")

    materials = _materials_raw(doc)
    m = parsed.materials
    floor = fields.section(materials, "floor", "materials")
    m.floor.tiling = fields.number(floor, "tiling", m.floor.tiling, "floor")
    texture = _texture(floor, "texture", "floor.texture", version)
    if texture is not None:
        parsed.textures["floor.texture"] = texture

    glass = fields.section(materials, "glass", "materials")
    reject_newer_fields("glass", glass, version)
    m.glass.roughness = fields.number(glass, "roughness", m.glass.roughness, "glass")
    m.glass.ior = fields.number(glass, "ior", m.glass.ior, "glass")

    for key in ("matte", "chrome", "plastic"):
        raw_surface = fields.section(materials, key, "materials")
        reject_newer_fields(key, raw_surface, version)
        _surface(raw_surface, getattr(m, key), key)

    chrome_texture = _texture(fields.section(materials, "chrome", "materials"), "roughnessTexture",
                              "chrome.roughnessTexture", version)
    if chrome_texture is not None:
        parsed.textures["chrome.roughnessTexture"] = chrome_texture
    return parsed


def _extract_v1_2(doc: Dict[str, Any], version: SchemaVersion) -> ParsedDocument:
    parsed = _extract_v1_1(doc, version)
    materials = _materials_raw(doc)
    for key in ("glass", "matte", "plastic"):
        slot = f"{key}.roughnessTexture"
        texture = _texture(fields.section(materials, key, "materials"), "roughnessTexture", slot, version)
        if texture is not None:
            parsed.textures[slot] = texture
    return parsed


def _extract_v1_3(doc: Dict[str, Any], version: SchemaVersion) -> ParsedDocument:
    parsed = _extract_v1_2(doc, version)
    glass = fields.section(_materials_raw(doc), "glass", "materials")
    g = parsed.materials.glass
    g.color = fields.text(glass, "color", g.color, "glass")
    g.transmission = fields.number(glass, "transmission", g.transmission, "glass")
    parsed.settings.preset = normalize_preset_name(
        fields.optional_text(doc["settings"], "preset", "settings")
    )
    return parsed


def _extract_v1_4(doc: Dict[str, Any], version: SchemaVersion) -> ParsedDocument:
    parsed = _extract_v1_3(doc, version)
    for index, stored in enumerate(parsed.hdris):
        lights = stored.raw.get("lights", [])
        if not isinstance(lights, list):
            raise InvalidFormatError(f"hdris[{index}].lights must be a list")
        stored.lights = [_light(e, f"hdris[{index}].lights[{i}]") for i, e in enumerate(lights)]
    return parsed


def _extract_v1_5(doc: Dict[str, Any], version: SchemaVersion) -> ParsedDocument:
    parsed = _extract_v1_4(doc, version)
    vis = parsed.settings.visibility
    vis.color_checker_rows = fields.checker_rows(
        doc["settings"], "colorCheckerRows", list(ALL_CHECKER_ROWS), "settings"
    )
    loaded = doc.get("loadedPreset")
    if loaded is not None:
        if not isinstance(loaded, dict):
            raise InvalidFormatError("document.loadedPreset must be an object or null")
        name = fields.text(loaded, "name", "Custom", "loadedPreset")
        parsed.custom_preset = preset_from_document(loaded.get("data"), name=name)
    return parsed


def _extract_v1_6(doc: Dict[str, Any], version: SchemaVersion) -> ParsedDocument:
    parsed = _extract_v1_5(doc, version)
    s = parsed.settings
    s.shadow_intensity = fields.number(doc["settings"], "shadowIntensity", s.shadow_intensity, "settings")
    return parsed


def _extract_v1_7(doc: Dict[str, Any], version: SchemaVersion) -> ParsedDocument:
    parsed = _extract_v1_6(doc, version)
    for stored in [*parsed.hdris, *parsed.textures.values()]:
        stored.content_type = fields.optional_text(stored.raw, "mimeType", stored.name)
    return parsed


EXTRACTORS: Dict[SchemaVersion, Callable[[Dict[str, Any], SchemaVersion], ParsedDocument]] = {
    SchemaVersion.V1_0: _extract_v1_0,
    SchemaVersion.V1_1: _extract_v1_1,
    SchemaVersion.V1_2: _extract_v1_2,
    SchemaVersion.V1_3: _extract_v1_3,
    SchemaVersion.V1_4: _extract_v1_4,
    SchemaVersion.V1_5: _extract_v1_5,
    SchemaVersion.V1_6: _extract_v1_6,
    SchemaVersion.V1_7: _extract_v1_7,
}

_unhandled = set(SchemaVersion) - set(EXTRACTORS)
if _unhandled:
    raise RuntimeError(f"no extractor for schema versions: {sorted(v.value for v in _unhandled)}")


# ------------------------------------------------------------------
# Loader
# ------------------------------------------------------------------

class ProjectLoader:
    """Parses and migrates project documents of every supported version."""

    def __init__(self, cipher: Optional[EnvelopeCipher] = None):
        self.cipher = cipher or EnvelopeCipher()

    def parse(self, raw_text: Union[str, bytes]) -> ParsedDocument:
        if isinstance(raw_text, (bytes, bytearray)):
            try:
                raw_text = raw_text.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ParseError(f"project file is not valid UTF-8: {e}") from e
        try:
            doc = json.loads(raw_text)
        except ValueError as e:
            raise ParseError(f"project file is not valid JSON: {e}") from e
        if not isinstance(doc, dict):
            raise ParseError("project file must contain a JSON object")

        version = parse_version(doc.get("version"))
        return EXTRACTORS[version](doc, version)

    async def _resolve(self, stored: StoredAsset) -> Tuple[Optional[AssetRecord], Optional[AssetWarning]]:
        try:
            if stored.defect is not None:
                raise CodecError(stored.defect)
            if stored.encrypted and not isinstance(stored.payload, EncryptedPacket):
                raise UnsupportedLegacySchemeError(
                    f"asset {stored.name!r} uses encryption scheme {stored.scheme or 'unknown'!r}"
                )
            if isinstance(stored.payload, EncryptedPacket):
                data = await self.cipher.decrypt_payload(stored.payload)
                content_type = stored.content_type or codec.DEFAULT_CONTENT_TYPE
            else:
                content_type, data = codec.parse_data_url(stored.payload)
        except DecryptionError:
            kind = WarningKind.KEY_MISMATCH
        except UnsupportedLegacySchemeError:
            kind = WarningKind.UNSUPPORTED_SCHEME
        except CodecError:
            kind = WarningKind.MALFORMED_DATA
        else:
            record = AssetRecord(
                name=stored.name,
                data=data,
                content_type=content_type,
                lights=list(stored.lights),
                encrypted=stored.encrypted,
                schema_origin=stored.schema_origin.value,
            )
            return record, None

        warning = AssetWarning.of(stored.name, kind)
        logger.warning("%s (%s)", warning.message, stored.name)
        return None, warning

    async def load(self, raw_text: Union[str, bytes]) -> LoadResult:
        parsed = self.parse(raw_text)

        slots = list(parsed.textures.items())
        pending = [*parsed.hdris, *(stored for _, stored in slots)]
        outcomes = await asyncio.gather(*(self._resolve(stored) for stored in pending))

        warnings = [w for _, w in outcomes if w is not None]
        hdri_outcomes = outcomes[: len(parsed.hdris)]
        texture_outcomes = dict(zip((slot for slot, _ in slots), (r for r, _ in outcomes[len(parsed.hdris):])))

        materials = parsed.materials
        for slot, owner, attr in materials.texture_slots():
            setattr(owner, attr, texture_outcomes.get(slot))

        hdris = [record for record, _ in hdri_outcomes if record is not None]
        selected = parsed.selected_hdri
        if selected is not None and selected not in {h.name for h in hdris}:
            logger.info("selected hdri %r is not available after load; clearing selection", selected)
            selected = None

        project = NormalizedProject(
            settings=parsed.settings,
            materials=materials,
            hdris=hdris,
            selected_hdri=selected,
            custom_preset=parsed.custom_preset,
        )
        logger.info(
            "loaded project v%s: %d hdri(s), %d warning(s)",
            parsed.version.value, len(hdris), len(warnings),
        )
        return LoadResult(project=project, warnings=warnings, version=parsed.version.value)


async def load_project(raw_text: Union[str, bytes], cipher: Optional[EnvelopeCipher] = None) -> LoadResult:
    return await ProjectLoader(cipher).load(raw_text)
