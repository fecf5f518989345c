"""
Project document schema versions

The version tag is authoritative: it selects the parse path in
:mod:`hdrivault.project.migrator`. Each version only adds fields, so the
table below records where every optional field first appeared. A document
that carries a field newer than its declared version does not match its tag
and is rejected.
"""

from enum import Enum
from typing import Any, Dict, Tuple

from ..core.exceptions import InvalidFormatError


class SchemaVersion(str, Enum):
    V1_0 = "1.0"
    V1_1 = "1.1"
    V1_2 = "1.2"
    V1_3 = "1.3"
    V1_4 = "1.4"
    V1_5 = "1.5"
    V1_6 = "1.6"
    V1_7 = "1.7"

    @property
    def ordinal(self) -> int:
        return _ORDER.index(self)

    def at_least(self, other: "SchemaVersion") -> bool:
        return self.ordinal >= other.ordinal


_ORDER = list(SchemaVersion)

CURRENT_VERSION = SchemaVersion.V1_7
PRESET_FILE_VERSION = "1.0"

# only scheme understood for encrypted assets; absent scheme on a 1.7 packet means this one
ENVELOPE_SCHEME = "envelope-aes-256-gcm"


# (section, field) -> version that introduced it
FIELD_INTRODUCED: Dict[Tuple[str, str], SchemaVersion] = {
    ("document", "materials"): SchemaVersion.V1_1,
    ("document", "loadedPreset"): SchemaVersion.V1_5,
    ("settings", "spheresVisible"): SchemaVersion.V1_1,
    ("settings", "groundVisible"): SchemaVersion.V1_1,
    ("settings", "shadowsVisible"): SchemaVersion.V1_1,
    ("settings", "colorCheckerVisible"): SchemaVersion.V1_1,
    ("settings", "preset"): SchemaVersion.V1_3,
    ("settings", "colorCheckerRows"): SchemaVersion.V1_5,
    ("settings", "shadowIntensity"): SchemaVersion.V1_6,
    ("glass", "roughnessTexture"): SchemaVersion.V1_2,
    ("matte", "roughnessTexture"): SchemaVersion.V1_2,
    ("plastic", "roughnessTexture"): SchemaVersion.V1_2,
    ("glass", "color"): SchemaVersion.V1_3,
    ("glass", "transmission"): SchemaVersion.V1_3,
    ("hdri", "lights"): SchemaVersion.V1_4,
    ("asset", "encrypted"): SchemaVersion.V1_6,
    ("asset", "iv"): SchemaVersion.V1_6,
    ("asset", "scheme"): SchemaVersion.V1_6,
    ("asset", "wrappedKey"): SchemaVersion.V1_7,
    ("asset", "keyIv"): SchemaVersion.V1_7,
    ("asset", "mimeType"): SchemaVersion.V1_7,
}


def parse_version(value: Any) -> SchemaVersion:
    if value is None:
        raise InvalidFormatError("project file has no version")
    try:
        return SchemaVersion(value)
    except ValueError:
        raise InvalidFormatError(f"unsupported project version: {value!r}") from None


def reject_newer_fields(section: str, data: Dict[str, Any], version: SchemaVersion) -> None:
    """Raise if ``data`` carries a field that ``version`` cannot have."""
    for key in data:
        introduced = FIELD_INTRODUCED.get((section, key))
        if introduced is not None and not version.at_least(introduced):
            raise InvalidFormatError(
                f"{section}.{key} requires version {introduced.value}, document declares {version.value}"
            )
