"""
Material/visibility presets

Holds the viewer's four built-in presets and the sibling preset file format:
plain JSON, version "1.0", parameters only (no textures, no encryption).
The same shape is embedded as ``loadedPreset.data`` in project documents
from version 1.5 on.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Union

from ..core.exceptions import InvalidFormatError, ParseError
from ..core.models import (
    DEFAULT_PRESET,
    CustomPreset,
    FloorMaterial,
    GlassMaterial,
    MaterialSettings,
    SurfaceMaterial,
    Visibility,
)
from . import fields
from .schema import PRESET_FILE_VERSION


class PresetName(str, Enum):
    SHV = "SHV"
    POLYHAVEN = "Polyhaven"
    GRAYSCALE = "Grayscale"
    SKIN_TONE = "SkinTone"


PRESET_NAMES = tuple(p.value for p in PresetName)


def normalize_preset_name(value: Optional[str]) -> str:
    # unknown names fall back to the default look rather than failing the load
    return value if value in PRESET_NAMES else DEFAULT_PRESET


def _uniform(colors: Sequence[str], roughness: float, metalness: float, glass_ior: float) -> MaterialSettings:
    # every sphere opaque with the same finish, colored from the ramp
    return MaterialSettings(
        glass=GlassMaterial(color=colors[0], roughness=roughness, ior=glass_ior, transmission=0.0),
        matte=SurfaceMaterial(color=colors[1], roughness=roughness, metalness=metalness),
        chrome=SurfaceMaterial(color=colors[2], roughness=roughness, metalness=metalness),
        plastic=SurfaceMaterial(color=colors[3], roughness=roughness, metalness=metalness),
    )


def builtin_preset(name: str) -> CustomPreset:
    """Return a fresh copy of a built-in preset; raises ValueError for unknown names."""
    preset = PresetName(name)
    if preset is PresetName.SHV:
        materials = MaterialSettings()
        materials.plastic.color = "#353535"
        return CustomPreset(preset.value, materials, Visibility())
    if preset is PresetName.POLYHAVEN:
        return CustomPreset(preset.value, MaterialSettings(), Visibility(color_checker=False))
    if preset is PresetName.GRAYSCALE:
        # sRGB approximations of 9%, 18%, 36%, 72% linear gray
        materials = _uniform(["#525252", "#757575", "#A3A3A3", "#DBDBDB"], 0.30, 0.05, 1.5)
        return CustomPreset(preset.value, materials, Visibility(ground=False, color_checker_rows=[3]))
    materials = _uniform(["#F2D5B8", "#E0A98E", "#9E6E55", "#6E4A36"], 0.5, 0.0, 1.4)
    return CustomPreset(preset.value, materials, Visibility(color_checker=False))


def materials_to_document(materials: MaterialSettings) -> Dict[str, Any]:
    """Material parameters in document shape, without texture entries."""
    surfaces = {
        key: {"color": m.color, "roughness": m.roughness, "metalness": m.metalness}
        for key, m in (("matte", materials.matte), ("chrome", materials.chrome), ("plastic", materials.plastic))
    }
    return {
        "floor": {"tiling": materials.floor.tiling},
        "glass": {
            "color": materials.glass.color,
            "roughness": materials.glass.roughness,
            "ior": materials.glass.ior,
            "transmission": materials.glass.transmission,
        },
        **surfaces,
    }


def visibility_to_document(visibility: Visibility) -> Dict[str, Any]:
    return {
        "spheres": visibility.spheres,
        "ground": visibility.ground,
        "shadows": visibility.shadows,
        "colorChecker": visibility.color_checker,
        "colorCheckerRows": list(visibility.color_checker_rows),
    }


def preset_to_document(preset: CustomPreset) -> Dict[str, Any]:
    return {
        "version": PRESET_FILE_VERSION,
        "name": preset.name,
        "materials": materials_to_document(preset.materials),
        "visibility": visibility_to_document(preset.visibility),
    }


def _surface(raw: Dict[str, Any], default: SurfaceMaterial, where: str) -> SurfaceMaterial:
    return SurfaceMaterial(
        color=fields.text(raw, "color", default.color, where),
        roughness=fields.number(raw, "roughness", default.roughness, where),
        metalness=fields.number(raw, "metalness", default.metalness, where),
    )


def _materials_from_document(raw: Dict[str, Any]) -> MaterialSettings:
    defaults = MaterialSettings()
    floor = fields.section(raw, "floor", "materials")
    glass = fields.section(raw, "glass", "materials")
    return MaterialSettings(
        floor=FloorMaterial(tiling=fields.number(floor, "tiling", defaults.floor.tiling, "floor")),
        glass=GlassMaterial(
            color=fields.text(glass, "color", defaults.glass.color, "glass"),
            roughness=fields.number(glass, "roughness", defaults.glass.roughness, "glass"),
            ior=fields.number(glass, "ior", defaults.glass.ior, "glass"),
            transmission=fields.number(glass, "transmission", defaults.glass.transmission, "glass"),
        ),
        matte=_surface(fields.section(raw, "matte", "materials"), defaults.matte, "matte"),
        chrome=_surface(fields.section(raw, "chrome", "materials"), defaults.chrome, "chrome"),
        plastic=_surface(fields.section(raw, "plastic", "materials"), defaults.plastic, "plastic"),
    )


def _visibility_from_document(raw: Dict[str, Any]) -> Visibility:
    defaults = Visibility()
    return Visibility(
        spheres=fields.boolean(raw, "spheres", defaults.spheres, "visibility"),
        ground=fields.boolean(raw, "ground", defaults.ground, "visibility"),
        shadows=fields.boolean(raw, "shadows", defaults.shadows, "visibility"),
        color_checker=fields.boolean(raw, "colorChecker", defaults.color_checker, "visibility"),
        color_checker_rows=fields.checker_rows(raw, "colorCheckerRows", defaults.color_checker_rows, "visibility"),
    )


def preset_from_document(data: Any, name: Optional[str] = None) -> CustomPreset:
    """Build a preset from its document form; ``name`` overrides the stored name."""
    if not isinstance(data, dict):
        raise InvalidFormatError("preset must be a JSON object")
    version = data.get("version")
    if version != PRESET_FILE_VERSION:
        raise InvalidFormatError(f"unsupported preset version: {version!r}")
    stored_name = fields.text(data, "name", "Custom", "preset")
    return CustomPreset(
        name=name or stored_name,
        materials=_materials_from_document(fields.section(data, "materials", "preset")),
        visibility=_visibility_from_document(fields.section(data, "visibility", "preset")),
    )


def dumps_preset(preset: CustomPreset) -> str:
    return json.dumps(preset_to_document(preset), indent=2)


def loads_preset(raw_text: Union[str, bytes]) -> CustomPreset:
    try:
        if isinstance(raw_text, (bytes, bytearray)):
            raw_text = raw_text.decode("utf-8")
        data = json.loads(raw_text)
    except ValueError as e:
        # UnicodeDecodeError included
        raise ParseError(f"preset file is not valid JSON: {e}") from e
    return preset_from_document(data)
