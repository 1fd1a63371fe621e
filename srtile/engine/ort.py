"""ONNX Runtime engine implementation for srtile."""

import logging, time
from pathlib import Path
from typing import Any

import numpy as np
import onnxruntime as ort

from srtile.engine.base import EngineBase, TileContract
from srtile.engine.providers import HardwareMode, resolve_providers
from srtile.errors import EngineInitFailed, InferenceFailed


class EngineORT(EngineBase):
    """ONNX Runtime session bound to one hardware mode and one fixed tile size."""

    def __init__(
        self,
        model_fp: str | Path | None = None,
        *,
        model_bytes: bytes | None = None,
        hardware_mode: HardwareMode | str = HardwareMode.DEFAULT,
        providers: tuple[str, ...] | None = None,
        logger=None,
    ):
        """Initialize and load an ORT session from a model path or in-memory bytes."""
        assert (model_fp is None) != (model_bytes is None), "provide exactly one of model_fp or model_bytes"
        self._model_fp = Path(model_fp).expanduser().resolve() if model_fp is not None else None
        if self._model_fp is not None:
            assert self._model_fp.exists(), f"model file does not exist: {self._model_fp}"
        self._model_bytes = model_bytes
        self.hardware_mode = HardwareMode.parse(hardware_mode)
        self.providers = tuple(providers) if providers else tuple(resolve_providers(self.hardware_mode))
        self.log = logger or logging.getLogger(__name__)
        self.session: ort.InferenceSession | None = None
        self.contract: TileContract | None = None
        self._input_name: str | None = None
        self._output_name: str | None = None
        self._channels_last = True
        self.load()

    def model_path(self) -> Path | None:
        """Return the model path used by this engine."""
        return self._model_fp

    def load(self) -> None:
        """Create the session and resolve the tile contract."""
        source = self._model_fp.as_posix() if self._model_fp is not None else self._model_bytes
        self.log.debug(f"loading ORT session with providers={list(self.providers)}")
        try:
            self.session = ort.InferenceSession(source, providers=list(self.providers))
        except Exception as err:
            raise EngineInitFailed(
                f"failed to create ORT session for hardware mode '{self.hardware_mode.value}': {err}"
            ) from err
        self.contract = self._resolve_contract()
        self.log.info(
            f"loaded ORT model with providers={self.session.get_providers()}, "
            f"tile={self.contract.tile_width}x{self.contract.tile_height}, scale={self.contract.upscale_factor}"
        )

    def close(self) -> None:
        """Drop the session; repeated calls are no-ops."""
        if self.session is None:
            return
        self.log.debug("releasing ORT session")
        self.session = None

    def _resolve_layout(self, dims: list[Any], tensor_name: str) -> tuple[int, int, bool]:
        """Resolve (height, width, channels_last) from a rank-4 RGB image tensor shape."""
        if len(dims) != 4:
            raise EngineInitFailed(f"{tensor_name} must be rank-4; got {dims}")
        if dims[3] == 3:
            h, w, channels_last = dims[1], dims[2], True
        elif dims[1] == 3:
            h, w, channels_last = dims[2], dims[3], False
        else:
            raise EngineInitFailed(f"{tensor_name} must carry 3 colour channels in NHWC or NCHW; got {dims}")
        if not (isinstance(h, int) and h > 0 and isinstance(w, int) and w > 0):
            raise EngineInitFailed(f"{tensor_name} spatial dims must be fixed ints; got {dims}")
        return h, w, channels_last

    def _resolve_contract(self) -> TileContract:
        """Extract tensor names and fixed tile geometry from ORT metadata."""
        assert self.session is not None, "session must be loaded before resolving contract"
        inputs = list(self.session.get_inputs())
        outputs = list(self.session.get_outputs())
        if len(inputs) != 1 or not outputs:
            raise EngineInitFailed(f"model must have one input and at least one output; got {len(inputs)} inputs")

        in_h, in_w, in_last = self._resolve_layout(list(inputs[0].shape), inputs[0].name)
        out_h, out_w, out_last = self._resolve_layout(list(outputs[0].shape), outputs[0].name)
        if in_last != out_last:
            raise EngineInitFailed("model input and output must share the same channel layout")
        if out_h % in_h or out_w % in_w or out_h // in_h != out_w // in_w:
            raise EngineInitFailed(
                f"output {out_w}x{out_h} is not an integer upscale of input {in_w}x{in_h}"
            )

        self._input_name = inputs[0].name
        self._output_name = outputs[0].name
        self._channels_last = in_last
        return TileContract(
            tile_height=in_h,
            tile_width=in_w,
            upscale_factor=out_h // in_h,
            hardware_mode=self.hardware_mode.value,
        )

    def run_tile(self, tile_rgba: np.ndarray) -> np.ndarray:
        """Run one tile from RGBA uint8 to upscaled RGBA uint8 with opaque alpha."""
        if self.session is None:
            raise InferenceFailed("engine session is closed")
        contract = self.contract
        assert contract is not None, "model contract must be available before inference"
        tile = np.asarray(tile_rgba)
        assert tile.shape == (contract.tile_height, contract.tile_width, 4), (
            f"tile shape {tile.shape} != expected {(contract.tile_height, contract.tile_width, 4)}"
        )
        start = time.perf_counter()

        # RGB channels as float 0..255, batched in the model's layout.
        rgb = tile[..., :3].astype(np.float32)
        feed = rgb[np.newaxis] if self._channels_last else rgb.transpose(2, 0, 1)[np.newaxis]
        try:
            outputs = self.session.run([self._output_name], {self._input_name: np.ascontiguousarray(feed)})
        except Exception as err:
            raise InferenceFailed(f"ORT session run failed: {err}") from err

        pred = np.asarray(outputs[0])[0]
        if not self._channels_last:
            pred = pred.transpose(1, 2, 0)
        if pred.shape != (contract.output_height, contract.output_width, 3):
            raise InferenceFailed(
                f"prediction shape {pred.shape} != expected {(contract.output_height, contract.output_width, 3)}"
            )
        if not np.isfinite(pred).all():
            raise InferenceFailed("prediction contains non-finite values")

        out = np.empty((contract.output_height, contract.output_width, 4), dtype=np.uint8)
        out[..., :3] = np.clip(np.rint(pred), 0, 255).astype(np.uint8)
        out[..., 3] = 255
        self.log.debug(f"run_tile complete in {time.perf_counter() - start:.3f}s")
        return out
