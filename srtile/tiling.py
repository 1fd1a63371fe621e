"""Tile planning for fixed-size model windows over arbitrary-size images."""

import math
from dataclasses import dataclass
from typing import Iterator

from srtile.errors import InvalidDimensions


def build_tile_starts(total_size: int, tile_size: int) -> list[int]:
    """Build back-shifted tile starts covering [0, total_size) with full-size tiles."""
    assert tile_size > 0, f"tile_size must be > 0; got {tile_size}"
    assert total_size >= tile_size, f"total_size must be >= tile_size; got {total_size} < {tile_size}"
    count = int(math.ceil(total_size / tile_size))
    # The trailing tile shifts back inside the image instead of being padded.
    return [tile_size * i for i in range(count - 1)] + [total_size - tile_size]


@dataclass(frozen=True)
class TilePlan:
    """Column/row grid of tile origins in source coordinates."""

    source_width: int
    source_height: int
    tile_width: int
    tile_height: int
    upscale_factor: int
    columns: int
    rows: int

    def origin(self, col: int, row: int) -> tuple[int, int]:
        """Return the (x, y) source origin of one tile."""
        assert 0 <= col < self.columns, f"col must be in [0, {self.columns}); got {col}"
        assert 0 <= row < self.rows, f"row must be in [0, {self.rows}); got {row}"
        x = self.source_width - self.tile_width if col == self.columns - 1 else self.tile_width * col
        y = self.source_height - self.tile_height if row == self.rows - 1 else self.tile_height * row
        return (x, y)

    def destination_origin(self, col: int, row: int) -> tuple[int, int]:
        """Return the (x, y) destination origin of one upscaled tile."""
        x, y = self.origin(col, row)
        return (self.upscale_factor * x, self.upscale_factor * y)

    def write_region(self, col: int, row: int) -> tuple[int, int, int, int, int, int]:
        """
        Return the destination region one upscaled tile owns.

        Returns (dst_x, dst_y, crop_x, crop_y, width, height): write
        ``tile[crop_y:crop_y + height, crop_x:crop_x + width]`` at (dst_x, dst_y).
        Shifted edge tiles skip the part already written by their neighbour,
        so destination regions partition the output exactly. Pixels in an
        overlap band therefore come from the earlier tile, not the shifted one.
        """
        ox, oy = self.destination_origin(col, row)
        dst_x = self.tile_width * col * self.upscale_factor
        dst_y = self.tile_height * row * self.upscale_factor
        out_w, out_h = self.output_size
        tile_out_w, tile_out_h = self.output_tile_size
        return (
            dst_x,
            dst_y,
            dst_x - ox,
            dst_y - oy,
            min(tile_out_w, out_w - dst_x),
            min(tile_out_h, out_h - dst_y),
        )

    def iter_origins(self) -> Iterator[tuple[int, int, int, int]]:
        """Yield (col, row, x, y) in column-major order."""
        for col in range(self.columns):
            for row in range(self.rows):
                x, y = self.origin(col, row)
                yield col, row, x, y

    @property
    def x_starts(self) -> list[int]:
        return build_tile_starts(self.source_width, self.tile_width)

    @property
    def y_starts(self) -> list[int]:
        return build_tile_starts(self.source_height, self.tile_height)

    @property
    def tile_count(self) -> int:
        return self.columns * self.rows

    @property
    def output_tile_size(self) -> tuple[int, int]:
        """Return the upscaled (width, height) of one tile."""
        return (self.tile_width * self.upscale_factor, self.tile_height * self.upscale_factor)

    @property
    def output_size(self) -> tuple[int, int]:
        """Return the destination (width, height)."""
        return (self.source_width * self.upscale_factor, self.source_height * self.upscale_factor)

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly summary including every origin."""
        return {
            "source_size": [self.source_width, self.source_height],
            "tile_size": [self.tile_width, self.tile_height],
            "upscale_factor": self.upscale_factor,
            "columns": self.columns,
            "rows": self.rows,
            "x_starts": self.x_starts,
            "y_starts": self.y_starts,
            "output_size": list(self.output_size),
            "origins": [[x, y] for _, _, x, y in self.iter_origins()],
        }


def plan_tiles(
    source_width: int,
    source_height: int,
    tile_width: int,
    tile_height: int,
    upscale_factor: int,
) -> TilePlan:
    """
    Plan the minimal set of full-size tiles covering a source image.

    Parameters
    ----------
    source_width, source_height:
        Source image size in pixels.
    tile_width, tile_height:
        Fixed model input size in pixels.
    upscale_factor:
        Integer ratio between model output and input tile edges.

    Returns
    -------
    TilePlan
        Plan with ``ceil(source/tile)`` columns and rows; the last column and
        row are shifted inward so every tile lies inside the image.
    """
    assert tile_width > 0 and tile_height > 0, f"tile size must be positive; got {(tile_width, tile_height)}"
    assert upscale_factor > 0, f"upscale_factor must be > 0; got {upscale_factor}"
    if source_width < tile_width or source_height < tile_height:
        raise InvalidDimensions((source_width, source_height), (tile_width, tile_height))

    return TilePlan(
        source_width=int(source_width),
        source_height=int(source_height),
        tile_width=int(tile_width),
        tile_height=int(tile_height),
        upscale_factor=int(upscale_factor),
        columns=int(math.ceil(source_width / tile_width)),
        rows=int(math.ceil(source_height / tile_height)),
    )
