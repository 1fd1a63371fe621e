"""Error taxonomy for tiled upscaling runs."""


class SrtileError(Exception):
    """Base class for srtile runtime errors."""


class InvalidDimensions(SrtileError, ValueError):
    """Source image is smaller than one model tile."""

    def __init__(self, source_size: tuple[int, int], tile_size: tuple[int, int]):
        self.source_size = tuple(source_size)
        self.tile_size = tuple(tile_size)
        super().__init__(
            f"source image {self.source_size[0]}x{self.source_size[1]} is smaller than "
            f"one tile {self.tile_size[0]}x{self.tile_size[1]}"
        )


class EngineInitFailed(SrtileError):
    """Inference engine construction returned no usable handle."""


class InferenceFailed(SrtileError):
    """One tile inference call failed; the run was aborted."""

    def __init__(self, message: str, *, tile_index: int | None = None, origin: tuple[int, int] | None = None):
        self.tile_index = tile_index
        self.origin = origin
        super().__init__(message)


class RunCancelled(SrtileError):
    """Run stopped between tiles by a cancellation request."""
