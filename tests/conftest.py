"""Pytest fixtures for srtile tests."""

import json, logging, pathlib

import numpy as np
import pytest

from srtile.engine.base import EngineBase, TileContract
from srtile.errors import InferenceFailed
from srtile.image import ImageBuffer


def coordinate_image(width: int, height: int) -> ImageBuffer:
    """Build an RGBA image whose pixels encode their own (x, y) position."""
    ys, xs = np.mgrid[0:height, 0:width]
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[..., 0] = xs & 0xFF
    pixels[..., 1] = ys & 0xFF
    pixels[..., 2] = (xs >> 8) | ((ys >> 8) << 4)
    pixels[..., 3] = 255
    return ImageBuffer(pixels)


def decode_origin(tile: np.ndarray) -> tuple[int, int]:
    """Recover the source (x, y) of a tile cut from `coordinate_image`."""
    r, g, b = (int(v) for v in tile[0, 0, :3])
    return (r | ((b & 0x0F) << 8), g | ((b >> 4) << 8))


class FakeEngine(EngineBase):
    """Deterministic nearest-neighbour engine recording every call."""

    def __init__(
        self,
        tile_width: int = 50,
        tile_height: int = 50,
        upscale_factor: int = 4,
        hardware_mode: str = "default",
        fail_on_call: int | None = None,
    ):
        self.contract = TileContract(
            tile_height=tile_height,
            tile_width=tile_width,
            upscale_factor=upscale_factor,
            hardware_mode=hardware_mode,
        )
        self.fail_on_call = fail_on_call
        self.calls: list[tuple[int, int]] = []
        self.close_count = 0

    def load(self) -> None:
        """No-op load for fake engine."""

    def run_tile(self, tile_rgba: np.ndarray) -> np.ndarray:
        self.calls.append(decode_origin(tile_rgba))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise InferenceFailed(f"fake failure on call {len(self.calls)}")
        f = self.contract.upscale_factor
        return np.repeat(np.repeat(tile_rgba, f, axis=0), f, axis=1)

    def close(self) -> None:
        self.close_count += 1

    def model_path(self):
        return None


class FakeEngineFactory:
    """Engine factory recording construction order against live handles."""

    def __init__(self, **engine_kwargs):
        self.engine_kwargs = engine_kwargs
        self.engines: list[FakeEngine] = []
        self.live_at_construction: list[int] = []

    def __call__(self, *, model_bytes: bytes, hardware_mode, logger=None) -> FakeEngine:
        self.live_at_construction.append(sum(1 for e in self.engines if e.close_count == 0))
        engine = FakeEngine(hardware_mode=hardware_mode.value, **self.engine_kwargs)
        self.engines.append(engine)
        return engine


def build_resize_model(fp: pathlib.Path, tile: int, scale: int) -> pathlib.Path:
    """Write a fixed-size NCHW nearest-neighbour upscale model."""
    onnx = pytest.importorskip("onnx")
    from onnx import TensorProto, helper

    scales = helper.make_tensor("scales", TensorProto.FLOAT, [4], [1.0, 1.0, float(scale), float(scale)])
    node = helper.make_node("Resize", ["input", "", "scales"], ["output"], mode="nearest")
    graph = helper.make_graph(
        [node],
        "resize_sr",
        [helper.make_tensor_value_info("input", TensorProto.FLOAT, [1, 3, tile, tile])],
        [helper.make_tensor_value_info("output", TensorProto.FLOAT, [1, 3, tile * scale, tile * scale])],
        initializer=[scales],
    )
    model = helper.make_model(graph, opset_imports=[helper.make_opsetid("", 13)])
    model.ir_version = 8
    onnx.checker.check_model(model)
    fp.parent.mkdir(parents=True, exist_ok=True)
    fp.write_bytes(model.SerializeToString())
    return fp


#===============================================================================
# pytest custom config------------
#===============================================================================


def pytest_runtest_teardown(item, nextitem):
    """Custom teardown message."""
    test_name = item.name
    print(f"\n{'='*20} Test completed: {test_name} {'='*20}\n\n\n")


def pytest_report_header(config):
    """Show pytest invocation arguments in the test header."""
    return f"pytest arguments: {' '.join(config.invocation_params.args)}"


# -------------------
# ----- Fixtures -----
# -------------------
@pytest.fixture(scope="session")
def logger():
    """Simple logger fixture for the function under test."""
    log = logging.getLogger("pytest")
    log.setLevel(logging.DEBUG)
    # keep handlers minimal to avoid duplicate logs across runs
    if not log.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter("%(levelname)s:%(name)s:%(message)s")
        handler.setFormatter(formatter)
        log.addHandler(handler)
    return log


@pytest.fixture(scope="function")
def source_120x80() -> ImageBuffer:
    """Coordinate-encoded source matching the reference 120x80 scenario."""
    return coordinate_image(120, 80)


@pytest.fixture(scope="function")
def fake_engine_factory() -> FakeEngineFactory:
    """Factory producing 50x50 / 4x fake engines."""
    return FakeEngineFactory()


@pytest.fixture(scope="function")
def model_bytes() -> bytes:
    """Opaque model payload for lifecycle tests with fake engines."""
    return b"srtile-test-model"


@pytest.fixture(scope="function")
def resize_model_fp(tmp_path: pathlib.Path) -> pathlib.Path:
    """Write a 10x10 / 2x ONNX model plus its config sidecar."""
    model_fp = build_resize_model(tmp_path / "models" / "resize_x2.onnx", tile=10, scale=2)
    model_fp.with_suffix(".json").write_text(
        json.dumps({"tile_width": 10, "tile_height": 10, "upscale_factor": 2}), encoding="utf-8"
    )
    return model_fp
