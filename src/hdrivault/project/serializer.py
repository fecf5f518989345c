"""
Project serializer

Always writes the newest schema (1.7). Every hdri and material texture is
envelope-encrypted; the per-asset encryptions run concurrently and the
document is only assembled once all of them succeeded.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from ..core.exceptions import SerializationError
from ..core.models import AssetRecord, LightAnnotation, NormalizedProject
from ..security.envelope import EnvelopeCipher
from .presets import materials_to_document, preset_to_document
from .schema import CURRENT_VERSION


logger = logging.getLogger(__name__)


def _light_to_document(light: LightAnnotation) -> Dict[str, Any]:
    return {
        "u": light.u,
        "v": light.v,
        "intensity": light.intensity,
        "color": light.color,
        "label": light.label,
    }


def settings_to_document(project: NormalizedProject) -> Dict[str, Any]:
    s = project.settings
    vis = s.visibility
    return {
        "rotation": s.rotation,
        "exposure": s.exposure,
        "blur": s.blur,
        "selectedHdriName": project.selected_hdri,
        "toneMapping": s.tone_mapping,
        "preset": s.preset,
        "spheresVisible": vis.spheres,
        "groundVisible": vis.ground,
        "shadowsVisible": vis.shadows,
        "colorCheckerVisible": vis.color_checker,
        "colorCheckerRows": list(vis.color_checker_rows),
        "shadowIntensity": s.shadow_intensity,
    }


class ProjectSerializer:
    """Builds schema-1.7 documents from a NormalizedProject."""

    def __init__(self, cipher: Optional[EnvelopeCipher] = None):
        self.cipher = cipher or EnvelopeCipher()

    async def _asset_bytes(self, asset: AssetRecord) -> bytes:
        if asset.data is not None:
            return asset.data
        if asset.source is None:
            raise SerializationError(f"asset {asset.name!r} has no data to save")
        try:
            return await asyncio.to_thread(asset.read_bytes)
        except OSError as e:
            raise SerializationError(f"cannot read asset {asset.name!r} from {asset.source}: {e}") from e

    async def encrypt_asset(self, asset: AssetRecord) -> Dict[str, Any]:
        """Encrypt one asset into its 1.7 entry (without hdri-only fields)."""
        data = await self._asset_bytes(asset)
        packet = await self.cipher.encrypt_payload(data)
        entry: Dict[str, Any] = {"name": asset.name}
        entry.update(packet.to_document())
        entry["encrypted"] = True
        entry["mimeType"] = asset.content_type
        return entry

    async def _hdri_entry(self, asset: AssetRecord) -> Dict[str, Any]:
        entry = await self.encrypt_asset(asset)
        entry["lights"] = [_light_to_document(light) for light in asset.lights]
        return entry

    async def serialize(self, project: NormalizedProject) -> Dict[str, Any]:
        slots = [
            (slot, getattr(owner, attr))
            for slot, owner, attr in project.materials.texture_slots()
            if getattr(owner, attr) is not None
        ]

        # fan out every encryption, join all-or-nothing
        results = await asyncio.gather(
            *(self._hdri_entry(h) for h in project.hdris),
            *(self.encrypt_asset(texture) for _, texture in slots),
        )
        hdri_entries = list(results[: len(project.hdris)])
        texture_entries = dict(zip((slot for slot, _ in slots), results[len(project.hdris):]))

        materials = materials_to_document(project.materials)
        for slot, _, _ in project.materials.texture_slots():
            section, key = slot.split(".")
            materials[section][key] = texture_entries.get(slot)

        doc: Dict[str, Any] = {
            "version": CURRENT_VERSION.value,
            "settings": settings_to_document(project),
            "materials": materials,
            "hdris": hdri_entries,
        }
        if project.custom_preset is not None:
            doc["loadedPreset"] = {
                "name": project.custom_preset.name,
                "data": preset_to_document(project.custom_preset),
            }
        logger.info("serialized project: %d hdri(s), %d texture(s)", len(hdri_entries), len(texture_entries))
        return doc

    async def dumps(self, project: NormalizedProject) -> str:
        return json.dumps(await self.serialize(project))


async def serialize_project(project: NormalizedProject, cipher: Optional[EnvelopeCipher] = None) -> Dict[str, Any]:
    return await ProjectSerializer(cipher).serialize(project)
