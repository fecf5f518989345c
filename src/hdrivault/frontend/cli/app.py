"""
HDRIVault command line.

    hdrivault inspect scene.hdriv
    hdrivault migrate old.hdriv new.hdriv
    hdrivault keygen --store
    hdrivault preset Grayscale grayscale.hdrip
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from hdrivault.core.exceptions import HdriVaultError
from hdrivault.core.models import LoadResult
from hdrivault.project.io import save_preset_file, write_text_atomic
from hdrivault.project.presets import PRESET_NAMES, builtin_preset
from hdrivault.security.kdf import generate_salt
from hdrivault.security.key_manager import KEY_SIZE
from hdrivault.security.keystore import assess_keyring_backend, save_key

from .context import AppContext, build_context
from .logging_config import configure_logging


def _human_size(size: float) -> str:
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def _load(ctx: AppContext, path: Path) -> LoadResult:
    return asyncio.run(ctx.loader.load(path.read_bytes()))


def _print_warnings(result: LoadResult) -> None:
    for warning in result.warnings:
        print(f"warning: {warning.asset_name}: {warning.message}", file=sys.stderr)


def cmd_inspect(args: argparse.Namespace, ctx: AppContext) -> int:
    result = _load(ctx, Path(args.file))
    project = result.project
    s = project.settings
    print(f"version: {result.version}")
    print(f"rotation={s.rotation} exposure={s.exposure} blur={s.blur} tone mapping={s.tone_mapping}")
    print(f"preset: {s.preset}  selected: {project.selected_hdri or '-'}")
    print(f"hdris ({len(project.hdris)}):")
    for hdri in project.hdris:
        lock = "encrypted" if hdri.encrypted else "plain"
        print(f"  {hdri.name}  {_human_size(len(hdri.data or b''))}  {hdri.content_type}  "
              f"{lock}  lights={len(hdri.lights)}")
    for slot, owner, attr in project.materials.texture_slots():
        texture = getattr(owner, attr)
        if texture is not None:
            print(f"  texture {slot}: {texture.name} {_human_size(len(texture.data or b''))}")
    if project.custom_preset is not None:
        print(f"custom preset: {project.custom_preset.name}")
    _print_warnings(result)
    return 0


def cmd_migrate(args: argparse.Namespace, ctx: AppContext) -> int:
    result = _load(ctx, Path(args.source))
    _print_warnings(result)
    if result.warnings and args.strict:
        print("refusing to write a project with skipped assets (--strict)", file=sys.stderr)
        return 1
    text = asyncio.run(ctx.serializer.dumps(result.project))
    write_text_atomic(Path(args.dest).expanduser(), text)
    print(f"migrated {args.source} (v{result.version}) -> {args.dest}")
    return 0


def cmd_keygen(args: argparse.Namespace, ctx: AppContext) -> int:
    if args.salt:
        # for HDRIVAULT_KEY_SALT, used with HDRIVAULT_PASSPHRASE
        print(generate_salt().hex())
        return 0
    key = os.urandom(KEY_SIZE)
    if not args.store:
        print(base64.b64encode(key).decode("ascii"))
        return 0
    secure, msg = assess_keyring_backend()
    if not secure and not args.force:
        print(f"refusing to store the application key: {msg}; pass --force to override", file=sys.stderr)
        return 1
    save_key(key, ctx.config.keyring_service, ctx.config.keyring_account)
    print(f"application key stored in keyring ({ctx.config.keyring_service}/{ctx.config.keyring_account})")
    return 0


def cmd_preset(args: argparse.Namespace, ctx: AppContext) -> int:
    path = save_preset_file(args.dest, builtin_preset(args.name))
    print(f"wrote preset {args.name} to {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hdrivault", description="Encrypted HDRI project files")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("inspect", help="show what a project file contains")
    p.add_argument("file")
    p.set_defaults(func=cmd_inspect)

    p = sub.add_parser("migrate", help="load any project version and save it as the current version")
    p.add_argument("source")
    p.add_argument("dest")
    p.add_argument("--strict", action="store_true", help="fail instead of dropping unreadable assets")
    p.set_defaults(func=cmd_migrate)

    p = sub.add_parser("keygen", help="generate a new application key")
    p.add_argument("--store", action="store_true", help="store in the OS keyring instead of printing")
    p.add_argument("--force", action="store_true", help="store even on an insecure keyring backend")
    p.add_argument("--salt", action="store_true", help="print a new passphrase salt (hex) instead of a key")
    p.set_defaults(func=cmd_keygen)

    p = sub.add_parser("preset", help="write a built-in preset file")
    p.add_argument("name", choices=PRESET_NAMES)
    p.add_argument("dest")
    p.set_defaults(func=cmd_preset)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        ctx = build_context()
        configure_logging(logging.DEBUG if args.verbose else ctx.config.log_level)
        return args.func(args, ctx)
    except (HdriVaultError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
