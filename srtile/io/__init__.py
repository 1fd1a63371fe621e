"""Image I/O for upscaling workflows."""

from srtile.io.pillow_io import read_image, write_image

__all__ = ["read_image", "write_image"]
