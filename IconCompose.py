#!/usr/bin/env python3
"""IconCompose.py — themed icon resolution and compositing (no UI)

Resolution order for one app:
1) a drawable the pack maps to the app identifier, used verbatim
2) otherwise the app's own icon, composited with the pack's layers
3) otherwise None; the caller keeps its own fallback

Compositing order is fixed:
    scaled source -> mask (erase) -> background (behind) -> upon (on top)
"""

from __future__ import annotations

from typing import Any, Optional

from IconBackends import PILLOW, BlendMode
from IconPack import IconPackCatalog, component_key

__all__ = [
    "Compositor",
    "IconResolver",
    "resolve_icon",
]


def _trunc_half(n: int) -> int:
    # integer division rounding toward zero, also for negative margins
    return int(n / 2)


class Compositor:
    def __init__(self, catalog: IconPackCatalog, backend=PILLOW):
        self.catalog = catalog
        self.backend = backend

    def compose(self, identifier: str, source_icon: Any, label: Optional[str]) -> Any:
        """
        Build a themed bitmap the same size as `source_icon`.

        `identifier` is accepted for symmetry with the resolver; layer choice
        depends only on the catalog and `label`.
        """
        be = self.backend
        cat = self.catalog

        src = be.bitmap(source_icon)
        width, height = be.size(src)

        back = cat.select_background(label)
        scale = cat.scale_factor
        if back is None and cat.mask_image is None and cat.upon_image is None:
            scale = 1.0

        canvas = be.blank(width, height)

        scaled_w = max(1, int(width * scale))
        scaled_h = max(1, int(height * scale))
        if scaled_w != width or scaled_h != height:
            canvas = be.draw(
                canvas,
                be.scaled(src, scaled_w, scaled_h),
                _trunc_half(width - scaled_w),
                _trunc_half(height - scaled_h),
                BlendMode.SOURCE,
            )
        else:
            canvas = be.draw(canvas, src, 0, 0, BlendMode.SOURCE)

        if cat.mask_image is not None:
            canvas = be.draw(canvas, be.scaled(cat.mask_image, width, height), 0, 0, BlendMode.DESTINATION_OUT)
        if back is not None:
            canvas = be.draw(canvas, be.scaled(back, width, height), 0, 0, BlendMode.DESTINATION_OVER)
        if cat.upon_image is not None:
            canvas = be.draw(canvas, be.scaled(cat.upon_image, width, height), 0, 0, BlendMode.SOURCE_OVER)

        return canvas


class IconResolver:
    def __init__(self, catalog: IconPackCatalog, backend=PILLOW):
        self.catalog = catalog
        self.compositor = Compositor(catalog, backend)

    def resolve(self, identifier: str, fallback_icon: Any = None, label: Optional[str] = None) -> Any:
        """Direct override, else composited fallback, else None."""
        direct = self.catalog.lookup_direct(identifier)
        if direct is not None:
            return direct
        if fallback_icon is None:
            return None
        return self.compositor.compose(identifier, fallback_icon, label)

    def resolve_component(self, package: str, activity: str, fallback_icon: Any = None, label: Optional[str] = None) -> Any:
        return self.resolve(component_key(package, activity), fallback_icon, label)

    def resolve_package(self, package: str, fallback_icon: Any = None, label: Optional[str] = None) -> Any:
        return self.resolve(package, fallback_icon, label)


def resolve_icon(
    catalog: IconPackCatalog,
    identifier: str,
    fallback_icon: Any = None,
    label: Optional[str] = None,
    *,
    backend=PILLOW,
) -> Any:
    return IconResolver(catalog, backend).resolve(identifier, fallback_icon, label)
