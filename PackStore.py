from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PySide6 import QtCore

from IconBackends import PILLOW
from IconPack import IconPackCatalog, PackNotFoundError, open_catalog, open_folder_pack
from ThemeLog import THEMER_ROOT, LogFn

APP_ORG = "IconThemer"
APP_NAME = "IconThemer"

PACKS_DIR = THEMER_ROOT / "Packs"
MANIFEST_NAME = "iconpack.json"

DEFAULT_ICON_PACK = "android"


@dataclass(frozen=True)
class StateKeys:
    icon_pack: str = "launcher_icon_pack"


@dataclass(frozen=True)
class PackManifest:
    """
    iconpack.json, stored next to the pack's drawables:

        {"label": "Pastel", "resources": {"iconmask": "mask", ...}, "backgrounds": ["back1", "back2"]}
    """
    name: str
    label: str
    resources: Dict[str, str] = field(default_factory=dict)
    backgrounds: Tuple[str, ...] = ()


def read_manifest(folder: Path) -> PackManifest:
    folder = Path(folder)
    path = folder / MANIFEST_NAME
    if not path.is_file():
        raise PackNotFoundError(f"No {MANIFEST_NAME} in {folder}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise PackNotFoundError(f"Unreadable {path}: {e}") from e
    if not isinstance(raw, dict):
        raise PackNotFoundError(f"{path}: expected a JSON object")

    resources = raw.get("resources") or {}
    backgrounds = raw.get("backgrounds") or []
    if not isinstance(resources, dict) or not isinstance(backgrounds, list):
        raise PackNotFoundError(f"{path}: 'resources' must be an object and 'backgrounds' a list")

    return PackManifest(
        name=folder.name,
        label=str(raw.get("label") or folder.name),
        resources={str(k): str(v) for k, v in resources.items() if v is not None},
        backgrounds=tuple(str(b) for b in backgrounds if b),
    )


def list_packs(packs_dir: Path | None = None) -> List[str]:
    """Folder names under packs_dir that carry a manifest, sorted."""
    root = Path(packs_dir or PACKS_DIR)
    if not root.is_dir():
        return []
    return sorted(p.name for p in root.iterdir() if p.is_dir() and (p / MANIFEST_NAME).is_file())


def load_pack_folder(folder: Path, backend=PILLOW, logfn: LogFn = None) -> IconPackCatalog:
    """Catalog for a pack folder. A missing folder or manifest yields an empty catalog."""
    folder = Path(folder)
    try:
        manifest = read_manifest(folder)
    except PackNotFoundError as e:
        if logfn:
            logfn(f"[PACK][ERR] {e}")
        return IconPackCatalog.empty(folder.name)

    return open_catalog(
        manifest.name,
        manifest.resources,
        manifest.backgrounds,
        opener=lambda _name: open_folder_pack(folder, backend),
        logfn=logfn,
    )


def load_pack(name: str, backend=PILLOW, packs_dir: Path | None = None, logfn: LogFn = None) -> IconPackCatalog:
    return load_pack_folder(Path(packs_dir or PACKS_DIR) / name, backend, logfn)


class PackStore:
    """Which icon pack is active, persisted with QSettings."""

    def __init__(
        self,
        org: str = APP_ORG,
        app: str = APP_NAME,
        packs_dir: Path | None = None,
        settings: QtCore.QSettings | None = None,
    ):
        self.settings = settings if settings is not None else QtCore.QSettings(org, app)
        self.k = StateKeys()
        self.packs_dir = Path(packs_dir or PACKS_DIR)

    def get_current(self) -> str:
        return str(self.settings.value(self.k.icon_pack, DEFAULT_ICON_PACK) or DEFAULT_ICON_PACK)

    def set_current(self, name: str) -> None:
        self.settings.setValue(self.k.icon_pack, (name or "").strip() or DEFAULT_ICON_PACK)
        self.settings.sync()

    def is_using_system_icons(self) -> bool:
        return self.get_current() == DEFAULT_ICON_PACK

    def get_current_label(self, default_label: str) -> str:
        name = self.get_current()
        if name == DEFAULT_ICON_PACK:
            return default_label
        try:
            return read_manifest(self.packs_dir / name).label
        except PackNotFoundError:
            return default_label

    def load_current(self, backend=PILLOW, logfn: LogFn = None) -> Optional[IconPackCatalog]:
        """Catalog of the active pack, or None while system icons are in use."""
        if self.is_using_system_icons():
            return None
        return load_pack(self.get_current(), backend, self.packs_dir, logfn)
