"""
Base data models for projects, assets and load outcomes

These are the plain structures exchanged with the rendering/UI layer.
Defaults match the viewer's out-of-the-box scene, which is also what the
migrator fills in for fields an older document version does not carry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .codec import DEFAULT_CONTENT_TYPE


HDR_CONTENT_TYPE = "image/vnd.radiance"

TONE_MAPPINGS = ("ACES Filmic", "Reinhard", "Cineon", "None")
DEFAULT_TONE_MAPPING = "ACES Filmic"
DEFAULT_PRESET = "SHV"
ALL_CHECKER_ROWS = (0, 1, 2, 3)


@dataclass
class LightAnnotation:
    # a light marked on the equirectangular image, u/v normalized to [0, 1]
    u: float
    v: float
    intensity: float = 1.0
    color: str = "#ffffff"
    label: Optional[str] = None


@dataclass
class AssetRecord:
    """One binary asset (HDRI or texture) in decoded form."""

    name: str
    data: Optional[bytes] = None
    content_type: str = DEFAULT_CONTENT_TYPE
    lights: List[LightAnnotation] = field(default_factory=list)
    encrypted: bool = False
    schema_origin: Optional[str] = None
    source: Optional[Path] = None

    def read_bytes(self) -> bytes:
        """Return the asset bytes, reading ``source`` when nothing is cached."""
        if self.data is not None:
            return self.data
        if self.source is None:
            raise ValueError(f"asset {self.name!r} has neither data nor a source path")
        return Path(self.source).read_bytes()


@dataclass
class Visibility:
    spheres: bool = True
    ground: bool = True
    shadows: bool = True
    color_checker: bool = True
    color_checker_rows: List[int] = field(default_factory=lambda: list(ALL_CHECKER_ROWS))


@dataclass
class SceneSettings:
    rotation: float = 0.0
    exposure: float = 1.0
    blur: float = 0.0
    tone_mapping: str = DEFAULT_TONE_MAPPING
    preset: str = DEFAULT_PRESET
    shadow_intensity: float = 1.0
    visibility: Visibility = field(default_factory=Visibility)


@dataclass
class FloorMaterial:
    tiling: float = 40.0
    texture: Optional[AssetRecord] = None


@dataclass
class GlassMaterial:
    color: str = "#ffffff"
    roughness: float = 0.0
    ior: float = 1.5
    transmission: float = 1.0
    roughness_texture: Optional[AssetRecord] = None


@dataclass
class SurfaceMaterial:
    color: str = "#ffffff"
    roughness: float = 1.0
    metalness: float = 0.0
    roughness_texture: Optional[AssetRecord] = None


def _chrome() -> SurfaceMaterial:
    return SurfaceMaterial(color="#ffffff", roughness=0.0, metalness=1.0)


def _plastic() -> SurfaceMaterial:
    return SurfaceMaterial(color="#00bcd4", roughness=0.1, metalness=0.05)


@dataclass
class MaterialSettings:
    floor: FloorMaterial = field(default_factory=FloorMaterial)
    glass: GlassMaterial = field(default_factory=GlassMaterial)
    matte: SurfaceMaterial = field(default_factory=SurfaceMaterial)
    chrome: SurfaceMaterial = field(default_factory=_chrome)
    plastic: SurfaceMaterial = field(default_factory=_plastic)

    def texture_slots(self):
        """Yield (slot, owner, attribute) for every texture-capable field, in document order."""
        yield "floor.texture", self.floor, "texture"
        yield "glass.roughnessTexture", self.glass, "roughness_texture"
        yield "matte.roughnessTexture", self.matte, "roughness_texture"
        yield "chrome.roughnessTexture", self.chrome, "roughness_texture"
        yield "plastic.roughnessTexture", self.plastic, "roughness_texture"


@dataclass
class CustomPreset:
    """A named material/visibility preset; textures are never part of a preset."""

    name: str
    materials: MaterialSettings = field(default_factory=MaterialSettings)
    visibility: Visibility = field(default_factory=Visibility)


@dataclass
class NormalizedProject:
    """The single in-memory shape every document version migrates into."""

    settings: SceneSettings = field(default_factory=SceneSettings)
    materials: MaterialSettings = field(default_factory=MaterialSettings)
    hdris: List[AssetRecord] = field(default_factory=list)
    selected_hdri: Optional[str] = None
    custom_preset: Optional[CustomPreset] = None

    def hdri_names(self) -> List[str]:
        return [h.name for h in self.hdris]

    def get_hdri(self, name: str) -> Optional[AssetRecord]:
        for hdri in self.hdris:
            if hdri.name == name:
                return hdri
        return None


class WarningKind(Enum):
    KEY_MISMATCH = "key_mismatch"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    MALFORMED_DATA = "malformed_data"


WARNING_MESSAGES = {
    WarningKind.KEY_MISMATCH: "asset skipped: key mismatch or corruption",
    WarningKind.UNSUPPORTED_SCHEME: "asset skipped: unsupported legacy encryption",
    WarningKind.MALFORMED_DATA: "asset skipped: malformed asset data",
}


@dataclass(frozen=True)
class AssetWarning:
    asset_name: str
    kind: WarningKind
    message: str

    @classmethod
    def of(cls, asset_name: str, kind: WarningKind) -> "AssetWarning":
        return cls(asset_name=asset_name, kind=kind, message=WARNING_MESSAGES[kind])


@dataclass
class LoadResult:
    project: NormalizedProject
    warnings: List[AssetWarning] = field(default_factory=list)
    # schema version the document was stored in
    version: Optional[str] = None
