#!/usr/bin/env python3
"""IconPack.py — loaded icon-pack catalog (no UI)

Responsibilities
- Hold one pack's resource map (logical name -> drawable name) and its
  background layer names
- Resolve the reserved layers (mask, upon, backgrounds, scale) exactly once
- Look up direct per-app overrides and pick a background layer for a label

Resource access goes through a ResourceProvider scoped to the pack; this module
does not know how a pack is stored. Every miss is modelled as None, never as an
exception, and load never fails: a broken layer is simply absent.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from IconBackends import PILLOW, IconDecodeError
from ThemeLog import LogFn

__all__ = [
    "ICON_MASK_TAG",
    "ICON_UPON_TAG",
    "ICON_SCALE_TAG",
    "DEFAULT_SCALE",
    "DRAWABLE_EXTS",
    "PackNotFoundError",
    "ResourceProvider",
    "MemoryResources",
    "FolderResources",
    "open_folder_pack",
    "IconPackCatalog",
    "load_catalog",
    "open_catalog",
    "parse_scale",
    "string_hash",
    "component_key",
]

ICON_MASK_TAG = "iconmask"
ICON_UPON_TAG = "iconupon"
ICON_SCALE_TAG = "iconscale"

DEFAULT_SCALE = 1.0

_DECIMAL_RE = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")

DRAWABLE_EXTS: set[str] = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".tiff", ".tif", ".svg"}


class PackNotFoundError(LookupError):
    """The pack's resource namespace cannot be opened."""


# =========================
# Resource providers
# =========================

class ResourceProvider(Protocol):
    def resolve_resource_id(self, name: str) -> int:
        """Id of the named drawable, or 0 when the pack has no such drawable."""
        ...

    def decode_drawable(self, res_id: int) -> Any:
        """Decoded image for an id. Raises IconDecodeError on failure."""
        ...


class MemoryResources:
    """Drawables that are already decoded, keyed by name."""

    def __init__(self, images: Mapping[str, Any]):
        self._names: List[str] = list(images)
        self._images: List[Any] = [images[n] for n in self._names]
        self._ids: Dict[str, int] = {n: i + 1 for i, n in enumerate(self._names)}

    def resolve_resource_id(self, name: str) -> int:
        return self._ids.get(name, 0)

    def decode_drawable(self, res_id: int) -> Any:
        if not 0 < res_id <= len(self._images):
            raise IconDecodeError(f"No drawable with id {res_id}")
        image = self._images[res_id - 1]
        if image is None:
            raise IconDecodeError(f"Drawable {self._names[res_id - 1]!r} has no image")
        return image


class FolderResources:
    """
    Drawables stored as image files in one folder.
    A drawable's name is the file stem; ids are 1..N in sorted filename order.
    If two files share a stem (icon.png, icon.webp) the first in sort order wins.
    """

    def __init__(self, folder: Path, backend=PILLOW):
        self.folder = Path(folder)
        self.backend = backend
        self._paths: List[Path] = []
        self._ids: Dict[str, int] = {}
        for p in sorted(self.folder.iterdir()):
            if not (p.is_file() and p.suffix.lower() in DRAWABLE_EXTS):
                continue
            if p.stem in self._ids:
                continue
            self._paths.append(p)
            self._ids[p.stem] = len(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def resolve_resource_id(self, name: str) -> int:
        return self._ids.get(name, 0)

    def decode_drawable(self, res_id: int) -> Any:
        if not 0 < res_id <= len(self._paths):
            raise IconDecodeError(f"No drawable with id {res_id} in {self.folder}")
        return self.backend.load(self._paths[res_id - 1])


def open_folder_pack(folder: Path, backend=PILLOW) -> FolderResources:
    folder = Path(folder)
    if not folder.is_dir():
        raise PackNotFoundError(f"Icon pack folder not found: {folder}")
    try:
        return FolderResources(folder, backend)
    except OSError as e:
        raise PackNotFoundError(f"Cannot read icon pack folder {folder}: {e}") from e


# =========================
# Small utilities
# =========================

def parse_scale(text: Optional[str], default: float = DEFAULT_SCALE) -> float:
    """
    Parse the "iconscale" value. Accepts "0.8", " 0.8 ", "0.8f".
    Only ASCII decimal text is read (no "1_0", no non-Latin digits).
    Anything unparseable, non-finite or <= 0 yields `default`.
    """
    if text is None:
        return default
    s = str(text).strip()
    if s[-1:] in ("f", "F", "d", "D"):
        s = s[:-1]
    if not _DECIMAL_RE.fullmatch(s):
        return default
    try:
        value = float(s)
    except ValueError:
        return default
    if not math.isfinite(value) or value <= 0:
        return default
    return value


def string_hash(text: Optional[str]) -> int:
    """
    Stable 32-bit textual hash: h = 31*h + c over UTF-16 code units.
    Unlike hash(), the result does not change between interpreter runs.
    """
    h = 0
    data = str(text or "").encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        h = (31 * h + (data[i] | (data[i + 1] << 8))) & 0xFFFFFFFF
    return h


def component_key(package: str, activity: str) -> str:
    """Flattened "package/activity" identifier; ".Main" is expanded to "package.Main"."""
    if activity.startswith("."):
        activity = package + activity
    return f"{package}/{activity}"


# =========================
# Catalog
# =========================

@dataclass(frozen=True)
class IconPackCatalog:
    pack: str
    resource_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    background_names: Tuple[str, ...] = ()
    background_images: Tuple[Any, ...] = ()
    mask_image: Any = None
    upon_image: Any = None
    scale_factor: float = DEFAULT_SCALE
    resources: Optional[ResourceProvider] = field(default=None, repr=False, compare=False)
    logfn: LogFn = field(default=None, repr=False, compare=False)

    @classmethod
    def empty(cls, pack: str = "") -> "IconPackCatalog":
        return cls(pack=pack)

    @property
    def usable(self) -> bool:
        return self.resources is not None

    def lookup_direct(self, name: str) -> Any:
        """Pack drawable mapped to exactly `name`, or None."""
        return _decode_named(self.resources, self.resource_map.get(name), self.logfn)

    def select_background(self, label: Optional[str]) -> Any:
        """
        Deterministic background for a display label.
        Indexes the resolved list, so dropped entries shift later ones.
        """
        backs = self.background_images
        if not backs:
            return None
        if len(backs) == 1:
            return backs[0]
        idx = (string_hash(label) & 0x7FFFFFFF) % len(backs)
        if not 0 <= idx < len(backs):
            return backs[0]
        return backs[idx]


def _decode_named(resources: Optional[ResourceProvider], res_name: Optional[str], logfn: LogFn = None) -> Any:
    if resources is None or not res_name:
        return None
    res_id = resources.resolve_resource_id(res_name)
    if res_id == 0:
        return None
    try:
        return resources.decode_drawable(res_id)
    except Exception as e:
        if logfn:
            logfn(f"[PACK] drawable {res_name!r} not usable: {e}")
        return None


def load_catalog(
    resource_map: Mapping[str, str],
    background_names: Sequence[str],
    *,
    resources: Optional[ResourceProvider],
    pack: str = "",
    logfn: LogFn = None,
) -> IconPackCatalog:
    """
    Build the catalog for one pack.

    resources=None means the pack's namespace could not be opened: the result is
    an empty, unusable catalog. Layers that fail to resolve are left out.
    """
    if resources is None:
        return IconPackCatalog.empty(pack)

    res_map = MappingProxyType(dict(resource_map))
    names = tuple(background_names)

    mask = _decode_named(resources, res_map.get(ICON_MASK_TAG), logfn)
    upon = _decode_named(resources, res_map.get(ICON_UPON_TAG), logfn)

    backs: List[Any] = []
    for back_name in names:
        back = _decode_named(resources, back_name, logfn)
        if back is not None:
            backs.append(back)

    raw_scale = res_map.get(ICON_SCALE_TAG)
    scale = parse_scale(raw_scale)
    if raw_scale is not None and scale == DEFAULT_SCALE and logfn:
        logfn(f"[PACK] {pack or 'pack'}: iconscale {raw_scale!r} -> {scale}")

    if logfn:
        logfn(
            f"[PACK] loaded {pack or 'pack'}: entries={len(res_map)} "
            f"backgrounds={len(backs)}/{len(names)} mask={'yes' if mask is not None else 'no'} "
            f"upon={'yes' if upon is not None else 'no'} scale={scale}"
        )

    return IconPackCatalog(
        pack=pack,
        resource_map=res_map,
        background_names=names,
        background_images=tuple(backs),
        mask_image=mask,
        upon_image=upon,
        scale_factor=scale,
        resources=resources,
        logfn=logfn,
    )


def open_catalog(
    pack: str,
    resource_map: Mapping[str, str],
    background_names: Iterable[str],
    *,
    opener: Callable[[str], ResourceProvider],
    logfn: LogFn = None,
) -> IconPackCatalog:
    """Open the pack's namespace with `opener` and load it; never raises PackNotFoundError."""
    try:
        resources = opener(pack)
    except PackNotFoundError as e:
        if logfn:
            logfn(f"[PACK][ERR] {e}")
        return IconPackCatalog.empty(pack)
    return load_catalog(resource_map, list(background_names), resources=resources, pack=pack, logfn=logfn)
