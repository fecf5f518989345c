"""
Project and preset files on disk

Saves are atomic: the document is fully built (every asset encrypted) before
anything touches the filesystem, then written to a temporary file next to the
destination and moved into place.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..core.models import CustomPreset, LoadResult, NormalizedProject
from ..security.envelope import EnvelopeCipher
from .migrator import ProjectLoader
from .presets import dumps_preset, loads_preset
from .serializer import ProjectSerializer


PROJECT_SUFFIX = ".hdriv"
PRESET_SUFFIX = ".hdrip"

PathLike = Union[str, Path]


def write_text_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


async def asave_project_file(
    path: PathLike, project: NormalizedProject, cipher: Optional[EnvelopeCipher] = None
) -> Path:
    path = Path(path).expanduser()
    text = await ProjectSerializer(cipher).dumps(project)
    await asyncio.to_thread(write_text_atomic, path, text)
    return path


async def aload_project_file(path: PathLike, cipher: Optional[EnvelopeCipher] = None) -> LoadResult:
    path = Path(path).expanduser()
    # the loader decodes, so bad UTF-8 surfaces as ParseError
    raw = await asyncio.to_thread(path.read_bytes)
    return await ProjectLoader(cipher).load(raw)


def save_project_file(path: PathLike, project: NormalizedProject, cipher: Optional[EnvelopeCipher] = None) -> Path:
    """Blocking wrapper around :func:`asave_project_file` for callers without an event loop."""
    return asyncio.run(asave_project_file(path, project, cipher))


def load_project_file(path: PathLike, cipher: Optional[EnvelopeCipher] = None) -> LoadResult:
    """Blocking wrapper around :func:`aload_project_file` for callers without an event loop."""
    return asyncio.run(aload_project_file(path, cipher))


def save_preset_file(path: PathLike, preset: CustomPreset) -> Path:
    path = Path(path).expanduser()
    write_text_atomic(path, dumps_preset(preset))
    return path


def load_preset_file(path: PathLike) -> CustomPreset:
    return loads_preset(Path(path).expanduser().read_bytes())
