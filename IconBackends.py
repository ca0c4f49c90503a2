#!/usr/bin/env python3
"""IconBackends.py — decoded-image backends for IconThemer (no UI)

The compositor never touches pixels directly. It only asks a backend to:
- make a blank transparent canvas
- turn an icon into a pixel-addressable bitmap
- report an image's size
- smooth-resize an image
- draw one image onto a canvas with a blend mode
- load / save files

Two backends ship:
- PillowBackend: RGBA PIL images (default; no Qt needed)
- QtBackend: premultiplied ARGB32 QImages painted with QPainter composition modes
"""

from __future__ import annotations

import sys
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, Optional, Tuple

from PIL import Image, ImageChops, UnidentifiedImageError

__all__ = [
    "BlendMode",
    "IconDecodeError",
    "PillowBackend",
    "QtBackend",
    "PILLOW",
    "get_backend",
    "BACKEND_NAMES",
]


class IconDecodeError(RuntimeError):
    """A drawable exists but could not be decoded into an image."""


class BlendMode(Enum):
    SOURCE = "source"                      # copy, replaces canvas pixels
    SOURCE_OVER = "source-over"            # normal alpha blending, on top
    DESTINATION_OUT = "destination-out"    # overlay alpha erases the canvas
    DESTINATION_OVER = "destination-over"  # overlay goes behind the canvas


# =========================
# CairoSVG import handling
# =========================

def _try_import_cairosvg() -> Tuple[Optional[object], Optional[str]]:
    """
    Returns (cairosvg_module_or_None, error_message_or_None).
    """
    try:
        import cairosvg  # type: ignore
        return cairosvg, None
    except Exception as e:
        msg = (
            "SVG drawables require 'cairosvg' in the same Python environment.\n"
            f"Running Python: {sys.executable}\n"
            f"Import error: {type(e).__name__}: {e}\n"
            "Fix: pip install 'icon-themer[svg]'"
        )
        return None, msg


def _rasterize_svg_to_rgba(svg_path: Path) -> Image.Image:
    cairosvg, err = _try_import_cairosvg()
    if cairosvg is None:
        raise IconDecodeError(err or "CairoSVG not available")
    png_bytes = cairosvg.svg2png(url=str(svg_path))
    return Image.open(BytesIO(png_bytes)).convert("RGBA")


def _load_image_any(path: Path) -> Image.Image:
    """
    Load raster images with Pillow, SVG via CairoSVG.
    Every failure surfaces as IconDecodeError.
    """
    path = Path(path)
    try:
        if path.suffix.lower() == ".svg":
            return _rasterize_svg_to_rgba(path)
        with Image.open(path) as im:
            return im.convert("RGBA")
    except IconDecodeError:
        raise
    except UnidentifiedImageError as e:
        raise IconDecodeError(f"Unrecognized image file {path.name}: {e}") from e
    except Exception as e:
        raise IconDecodeError(f"Failed to open {path.name}: {e}") from e


# =========================
# Pillow
# =========================

class PillowBackend:
    name = "pillow"

    def blank(self, width: int, height: int) -> Image.Image:
        return Image.new("RGBA", (width, height), (0, 0, 0, 0))

    def bitmap(self, image: Any) -> Image.Image:
        if not isinstance(image, Image.Image):
            raise TypeError(f"PillowBackend cannot draw {type(image).__name__}")
        if image.mode != "RGBA":
            return image.convert("RGBA")
        return image

    def size(self, image: Image.Image) -> Tuple[int, int]:
        return image.size

    def scaled(self, image: Image.Image, width: int, height: int) -> Image.Image:
        return self.bitmap(image).resize((width, height), Image.LANCZOS)

    def draw(
        self,
        canvas: Image.Image,
        image: Image.Image,
        x: int = 0,
        y: int = 0,
        mode: BlendMode = BlendMode.SOURCE_OVER,
    ) -> Image.Image:
        """
        Draw `image` with its top-left at (x, y); parts outside the canvas are clipped.
        Returns the resulting canvas (SOURCE edits in place, other modes return a new image).
        """
        image = self.bitmap(image)
        if mode is BlendMode.SOURCE:
            canvas.paste(image, (x, y))
            return canvas

        layer = self.blank(*canvas.size)
        layer.paste(image, (x, y))

        if mode is BlendMode.SOURCE_OVER:
            return Image.alpha_composite(canvas, layer)
        if mode is BlendMode.DESTINATION_OVER:
            return Image.alpha_composite(layer, canvas)
        if mode is BlendMode.DESTINATION_OUT:
            keep = ImageChops.invert(layer.getchannel("A"))
            out = canvas.copy()
            out.putalpha(ImageChops.multiply(canvas.getchannel("A"), keep))
            return out
        raise ValueError(f"Unsupported blend mode: {mode}")

    def load(self, path: Path) -> Image.Image:
        return _load_image_any(Path(path))

    def save(self, image: Image.Image, path: Path) -> None:
        self.bitmap(image).save(Path(path), format="PNG")


# =========================
# Qt
# =========================

class QtBackend:
    name = "qt"

    def __init__(self) -> None:
        from PySide6 import QtCore, QtGui

        self._QtCore = QtCore
        self._QtGui = QtGui
        self._format = QtGui.QImage.Format.Format_ARGB32_Premultiplied
        modes = QtGui.QPainter.CompositionMode
        self._modes = {
            BlendMode.SOURCE: modes.CompositionMode_Source,
            BlendMode.SOURCE_OVER: modes.CompositionMode_SourceOver,
            BlendMode.DESTINATION_OUT: modes.CompositionMode_DestinationOut,
            BlendMode.DESTINATION_OVER: modes.CompositionMode_DestinationOver,
        }

    def from_pil(self, im: Image.Image):
        im = im.convert("RGBA")
        w, h = im.size
        data = im.tobytes()
        qimg = self._QtGui.QImage(data, w, h, 4 * w, self._QtGui.QImage.Format.Format_RGBA8888)
        # convertToFormat detaches from `data`
        return qimg.convertToFormat(self._format)

    def blank(self, width: int, height: int):
        img = self._QtGui.QImage(width, height, self._format)
        img.fill(self._QtCore.Qt.GlobalColor.transparent)
        return img

    def bitmap(self, image: Any):
        QtGui = self._QtGui
        if isinstance(image, Image.Image):
            return self.from_pil(image)
        if isinstance(image, QtGui.QPixmap):
            image = image.toImage()
        if isinstance(image, QtGui.QImage):
            if image.format() != self._format:
                return image.convertToFormat(self._format)
            return image
        raise TypeError(f"QtBackend cannot draw {type(image).__name__}")

    def size(self, image) -> Tuple[int, int]:
        return image.width(), image.height()

    def scaled(self, image, width: int, height: int):
        Qt = self._QtCore.Qt
        return self.bitmap(image).scaled(
            width,
            height,
            Qt.AspectRatioMode.IgnoreAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )

    def draw(self, canvas, image, x: int = 0, y: int = 0, mode: BlendMode = BlendMode.SOURCE_OVER):
        """Paint in place on `canvas` and return it."""
        QtGui = self._QtGui
        painter = QtGui.QPainter(canvas)
        try:
            painter.setRenderHint(QtGui.QPainter.RenderHint.SmoothPixmapTransform, True)
            painter.setCompositionMode(self._modes[mode])
            painter.drawImage(self._QtCore.QPoint(x, y), self.bitmap(image))
        finally:
            painter.end()
        return canvas

    def load(self, path: Path):
        return self.from_pil(_load_image_any(Path(path)))

    def save(self, image, path: Path) -> None:
        if not self.bitmap(image).save(str(path), "PNG"):
            raise OSError(f"Failed to write PNG {path}")


PILLOW = PillowBackend()

BACKEND_NAMES = ("pillow", "qt")


def get_backend(name: str = "pillow"):
    key = (name or "pillow").strip().lower()
    if key == "pillow":
        return PILLOW
    if key == "qt":
        return QtBackend()
    raise ValueError(f"Unknown backend {name!r} (choose from {', '.join(BACKEND_NAMES)})")
