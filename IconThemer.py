#!/usr/bin/env python3
"""
IconThemer.py — command-line front end

Commands:
    theme INPUT     theme one image or every image in a folder
    packs           list installed packs (active one marked with *)
    use NAME        make NAME the active pack ("android" = system icons)
    current         print the active pack's label

Each themed icon is the pack's direct override for the identifier when there is
one, otherwise the input image composited with the pack's layers.
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import ThemeLog
from IconBackends import BACKEND_NAMES, IconDecodeError, get_backend
from IconCompose import IconResolver
from IconPack import DRAWABLE_EXTS, IconPackCatalog
from PackStore import DEFAULT_ICON_PACK, PackStore, list_packs, load_pack, load_pack_folder
from ThemeLog import THEMER_ROOT, LogFn

__all__ = [
    "DEFAULT_OUTPUT_DIR",
    "find_images",
    "theme_one",
    "theme_many",
    "main",
]

DEFAULT_OUTPUT_DIR = THEMER_ROOT / "Themed"


# =========================
# Small utilities
# =========================

def _is_image_file(p: Path) -> bool:
    return p.is_file() and p.suffix.lower() in DRAWABLE_EXTS


def find_images(folder: Path, recursive: bool = True) -> List[Path]:
    """Supported images under folder, sorted."""
    folder = Path(folder)
    if not folder.exists():
        return []
    found = folder.rglob("*") if recursive else folder.iterdir()
    return sorted(p for p in found if _is_image_file(p))


def _resolve_output_target(outdir_or_file: Path, *, src: Path) -> Tuple[Path, Path]:
    """
    - directory: out_path = outdir/<stem>.png
    - path ending in ".png": explicit output file
    """
    p = Path(outdir_or_file)
    if p.suffix.lower() == ".png":
        return p.parent, p
    return p, p / f"{src.stem}.png"


_QT_APP = None


def _ensure_qt_app() -> None:
    global _QT_APP
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6 import QtGui

    if QtGui.QGuiApplication.instance() is None:
        _QT_APP = QtGui.QGuiApplication([])


# =========================
# Theming
# =========================

def theme_one(
    src: Path,
    outdir: Path,
    resolver: IconResolver,
    *,
    backend,
    identifier: Optional[str] = None,
    label: Optional[str] = None,
    overwrite: bool = True,
    logfn: LogFn = None,
) -> Tuple[bool, str]:
    """
    Theme one image file into outdir.

    Returns: (ok, message)
    """
    src = Path(src)
    if not src.is_file():
        return False, f"ERR: Source does not exist: {src}"

    out_dir, out_path = _resolve_output_target(Path(outdir), src=src)
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return False, f"ERR: Cannot create output directory {out_dir}: {e}"

    if out_path.exists() and not overwrite:
        return True, f"SKIP: {src.name} -> {out_path.name} (exists)"

    try:
        icon = backend.load(src)
    except IconDecodeError as e:
        return False, f"ERR: {e}"

    ident = identifier or src.stem
    themed = resolver.resolve(ident, icon, label if label is not None else src.stem)
    if themed is None:
        return False, f"ERR: No icon for {ident}"

    try:
        backend.save(themed, out_path)
    except (OSError, ValueError) as e:
        return False, f"ERR: Failed to write {out_path}: {e}"

    msg = f"OK: {src.name} -> {out_path.name} (id={ident})"
    if logfn:
        logfn(msg)
    return True, msg


def theme_many(
    images: Iterable[Path],
    outdir: Path,
    resolver: IconResolver,
    *,
    backend,
    overwrite: bool = True,
    logfn: LogFn = None,
) -> Tuple[int, int, int]:
    """
    Theme several images; identifier and label are each file's stem.
    Outputs are flat, so two sources with the same stem share one output file
    (the later one wins, or is skipped with overwrite=False); this is logged.

    Returns: (scanned, themed, errors)
    """
    scanned = 0
    themed = 0
    errors = 0
    claimed: dict[Path, Path] = {}

    for img in images:
        img = Path(img)
        if not _is_image_file(img):
            continue

        _, out_path = _resolve_output_target(Path(outdir), src=img)
        prev = claimed.get(out_path)
        if prev is not None and logfn:
            logfn(f"WARN: {img} and {prev} both map to {out_path.name}")
        claimed[out_path] = img

        scanned += 1
        ok, msg = theme_one(img, outdir, resolver, backend=backend, overwrite=overwrite, logfn=logfn)
        if ok:
            if msg.startswith("OK:"):
                themed += 1
        else:
            errors += 1
            if logfn:
                logfn(msg)

    return scanned, themed, errors


# =========================
# CLI
# =========================

def _pick_catalog(ns: argparse.Namespace, store: PackStore, backend, logfn: LogFn) -> Optional[IconPackCatalog]:
    if ns.pack_dir:
        return load_pack_folder(Path(ns.pack_dir), backend, logfn)
    if ns.pack:
        return load_pack(ns.pack, backend, store.packs_dir, logfn)
    return store.load_current(backend, logfn)


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="icon-themer", description="Apply an icon pack to app icons")
    ap.add_argument("--packs-dir", default="", help="Folder holding installed packs (default: IconThemer/Packs)")
    ap.add_argument("--log-file", default="", help="Log file (default: IconThemer/Logs/themer.log)")
    sub = ap.add_subparsers(dest="command", required=True)

    th = sub.add_parser("theme", help="Theme an image or a folder of images")
    th.add_argument("input", help="Image file or folder")
    th.add_argument("--pack", default="", help="Installed pack name (default: the active pack)")
    th.add_argument("--pack-dir", default="", help="Use the pack in this folder")
    th.add_argument("--out", default=str(DEFAULT_OUTPUT_DIR), help="Output directory or .png file")
    th.add_argument("--id", default="", help="App identifier (single file only; default: file stem)")
    th.add_argument("--label", default=None, help="Display label (single file only; default: file stem)")
    th.add_argument("--backend", default="pillow", choices=list(BACKEND_NAMES), help="Drawing backend")
    th.add_argument("--no-recursive", dest="recursive", action="store_false", help="Do not descend into subfolders")
    th.add_argument("--no-overwrite", dest="overwrite", action="store_false", help="Skip existing outputs")
    th.set_defaults(recursive=True, overwrite=True)

    sub.add_parser("packs", help="List installed packs")

    use = sub.add_parser("use", help="Select the active pack")
    use.add_argument("name", help=f"Pack name, or {DEFAULT_ICON_PACK!r} for system icons")

    sub.add_parser("current", help="Print the active pack")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = _build_parser().parse_args(argv)

    file_log = ThemeLog.file_logger(Path(ns.log_file) if ns.log_file else None)
    logfn = ThemeLog.tee(print, file_log)
    store = PackStore(packs_dir=Path(ns.packs_dir) if ns.packs_dir else None)

    if ns.command == "packs":
        current = store.get_current()
        for name in list_packs(store.packs_dir):
            print(f"{'*' if name == current else ' '} {name}")
        return 0

    if ns.command == "use":
        name = ns.name.strip()
        if name != DEFAULT_ICON_PACK and name not in list_packs(store.packs_dir):
            logfn(f"ERR: Unknown icon pack: {name}")
            return 1
        store.set_current(name)
        logfn(f"Active icon pack: {store.get_current_label('System icons')}")
        return 0

    if ns.command == "current":
        print(store.get_current_label("System icons"))
        return 0

    # theme
    backend = get_backend(ns.backend)
    if backend.name == "qt":
        _ensure_qt_app()

    catalog = _pick_catalog(ns, store, backend, file_log)
    if catalog is None:
        logfn("ERR: No icon pack selected (system icons are active). Use --pack or 'use NAME'.")
        return 1
    if not catalog.usable:
        logfn(f"ERR: Icon pack {catalog.pack!r} could not be opened.")
        return 1

    resolver = IconResolver(catalog, backend)
    src = Path(ns.input)
    outdir = Path(ns.out)

    if src.is_file():
        ok, msg = theme_one(
            src,
            outdir,
            resolver,
            backend=backend,
            identifier=ns.id or None,
            label=ns.label,
            overwrite=bool(ns.overwrite),
            logfn=logfn,
        )
        if not ok:
            logfn(msg)
        elif msg.startswith("SKIP:"):
            print(msg)
        return 0 if ok else 2

    if not src.is_dir():
        logfn(f"ERR: Input not found: {src}")
        return 1

    scanned, themed, errors = theme_many(
        find_images(src, recursive=bool(ns.recursive)),
        outdir,
        resolver,
        backend=backend,
        overwrite=bool(ns.overwrite),
        logfn=logfn,
    )
    logfn(f"Done. scanned={scanned} themed={themed} errors={errors} pack={catalog.pack}")
    return 0 if errors == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
