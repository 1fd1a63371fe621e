"""Inference engine interfaces for srtile."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import numpy as np


@dataclass(frozen=True)
class TileContract:
    """Fixed tile geometry accepted and produced by one engine handle."""

    tile_height: int
    tile_width: int
    upscale_factor: int
    hardware_mode: str

    @property
    def output_height(self) -> int:
        return self.tile_height * self.upscale_factor

    @property
    def output_width(self) -> int:
        return self.tile_width * self.upscale_factor


class EngineBase(ABC):
    """Abstract interface for fixed-tile super-resolution engines."""

    contract: TileContract | None = None

    @abstractmethod
    def load(self) -> None:
        """Load model resources into memory."""

    @abstractmethod
    def run_tile(self, tile_rgba: np.ndarray) -> np.ndarray:
        """Upscale one (tile_height, tile_width, 4) uint8 RGBA tile."""

    @abstractmethod
    def close(self) -> None:
        """Release engine resources; calling twice is a no-op."""

    @abstractmethod
    def model_path(self) -> Path | None:
        """Return the model path used by this engine, if loaded from disk."""
