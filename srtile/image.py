"""Packed-RGBA image buffers used as tiling source and destination."""

import numpy as np


def pack_rgba(arr: np.ndarray) -> np.ndarray:
    """Pack a (h, w, 4) uint8 RGBA array into (h, w) uint32 0xAARRGGBB pixels."""
    arr = np.asarray(arr)
    assert arr.ndim == 3 and arr.shape[-1] == 4, f"RGBA array must have shape (h, w, 4); got {arr.shape}"
    assert arr.dtype == np.uint8, f"RGBA array must be uint8; got {arr.dtype}"
    px = arr.astype(np.uint32)
    return (px[..., 3] << 24) | (px[..., 0] << 16) | (px[..., 1] << 8) | px[..., 2]


def unpack_rgba(packed: np.ndarray) -> np.ndarray:
    """Unpack (h, w) uint32 0xAARRGGBB pixels into a (h, w, 4) uint8 RGBA array."""
    packed = np.asarray(packed)
    assert packed.ndim == 2, f"packed pixels must be 2D; got {packed.shape}"
    packed = packed.astype(np.uint32, copy=False)
    out = np.empty(packed.shape + (4,), dtype=np.uint8)
    out[..., 0] = (packed >> 16) & 0xFF
    out[..., 1] = (packed >> 8) & 0xFF
    out[..., 2] = packed & 0xFF
    out[..., 3] = (packed >> 24) & 0xFF
    return out


class ImageBuffer:
    """Rectangular RGBA pixel grid with explicit width and height."""

    def __init__(self, pixels: np.ndarray):
        pixels = np.asarray(pixels)
        assert pixels.ndim == 3 and pixels.shape[-1] == 4, (
            f"image buffer must have shape (height, width, 4); got {pixels.shape}"
        )
        assert pixels.dtype == np.uint8, f"image buffer must be uint8; got {pixels.dtype}"
        self.pixels = np.ascontiguousarray(pixels)

    @classmethod
    def zeros(cls, width: int, height: int) -> "ImageBuffer":
        """Allocate a zero-initialized buffer."""
        assert width > 0 and height > 0, f"buffer size must be positive; got {(width, height)}"
        return cls(np.zeros((int(height), int(width), 4), dtype=np.uint8))

    @classmethod
    def from_packed(cls, packed: np.ndarray) -> "ImageBuffer":
        return cls(unpack_rgba(packed))

    def to_packed(self) -> np.ndarray:
        return pack_rgba(self.pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    def _check_bounds(self, x: int, y: int, w: int, h: int) -> None:
        if x < 0 or y < 0 or x + w > self.width or y + h > self.height:
            raise ValueError(
                f"block {w}x{h} at ({x}, {y}) exceeds buffer bounds {self.width}x{self.height}"
            )

    def read_block(self, x: int, y: int, w: int, h: int) -> np.ndarray:
        """Return a copy of the w x h block whose top-left corner is (x, y)."""
        self._check_bounds(x, y, w, h)
        return self.pixels[y : y + h, x : x + w].copy()

    def write_block(self, x: int, y: int, block: np.ndarray) -> None:
        """Write an RGBA block in place with its top-left corner at (x, y)."""
        block = np.asarray(block)
        assert block.ndim == 3 and block.shape[-1] == 4, f"block must have shape (h, w, 4); got {block.shape}"
        h, w = int(block.shape[0]), int(block.shape[1])
        self._check_bounds(x, y, w, h)
        self.pixels[y : y + h, x : x + w] = block

    def __repr__(self) -> str:
        return f"ImageBuffer({self.width}x{self.height})"
