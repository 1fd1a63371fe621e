"""Pillow-backed image source and sink."""

from pathlib import Path

import numpy as np
from PIL import Image

from srtile.image import ImageBuffer


# Formats without an alpha channel are written as RGB.
_RGB_ONLY_SUFFIXES = {".jpg", ".jpeg", ".bmp"}


def read_image(fp: str | Path) -> ImageBuffer:
    """Read any Pillow-readable image as an RGBA buffer."""
    path = Path(fp).expanduser().resolve()
    assert path.exists(), f"image does not exist: {path}"
    with Image.open(path) as img:
        rgba = img.convert("RGBA")
        return ImageBuffer(np.asarray(rgba, dtype=np.uint8))


def write_image(fp: str | Path, image: ImageBuffer, jpeg_quality: int = 95) -> Path:
    """Write an RGBA buffer and return the output path."""
    path = Path(fp).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    out = Image.fromarray(image.pixels)
    suffix = path.suffix.lower()
    if suffix in _RGB_ONLY_SUFFIXES:
        out = out.convert("RGB")
    if suffix in {".jpg", ".jpeg"}:
        out.save(path, quality=max(1, min(100, int(jpeg_quality))))
    elif not suffix:
        out.save(path, format="PNG")
    else:
        out.save(path)
    return path
