"""Inference handle lifecycle: one live engine, rebuilt when the hardware mode changes."""

import logging, threading
from enum import Enum
from pathlib import Path
from typing import Callable

from srtile.checksums import assert_sha256
from srtile.engine.base import EngineBase
from srtile.engine.providers import HardwareMode
from srtile.errors import EngineInitFailed


class HandleState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    REINITIALIZING = "reinitializing"
    DESTROYED = "destroyed"


EngineFactory = Callable[..., EngineBase]


def _default_engine_factory(*, model_bytes: bytes, hardware_mode: HardwareMode, logger=None) -> EngineBase:
    from srtile.engine.ort import EngineORT

    return EngineORT(model_bytes=model_bytes, hardware_mode=hardware_mode, logger=logger)


class EngineLifecycle:
    """
    Own exactly one engine handle and enforce its state transitions.

    Transitions
    -----------
    UNINITIALIZED -> READY:
        first `acquire`; builds a handle for the requested hardware mode.
    READY -> READY:
        `acquire` with the live handle's mode reuses it.
    READY -> REINITIALIZING -> READY:
        `acquire` with another mode destroys the old handle before building
        the new one.
    any -> DESTROYED:
        `destroy`; repeated calls are no-ops.

    A failed build leaves the manager UNINITIALIZED with no live handle.
    """

    def __init__(
        self,
        model_fp: str | Path | None = None,
        *,
        model_bytes: bytes | None = None,
        expected_sha256: str | None = None,
        engine_factory: EngineFactory | None = None,
        logger=None,
    ):
        assert (model_fp is None) != (model_bytes is None), "provide exactly one of model_fp or model_bytes"
        self.model_fp = Path(model_fp).expanduser().resolve() if model_fp is not None else None
        if self.model_fp is not None:
            assert self.model_fp.exists(), f"model file does not exist: {self.model_fp}"
        self._model_bytes = model_bytes
        self.expected_sha256 = expected_sha256
        self.engine_factory = engine_factory or _default_engine_factory
        self.log = logger or logging.getLogger(__name__)

        self.state = HandleState.UNINITIALIZED
        self.hardware_mode: HardwareMode | None = None
        self._engine: EngineBase | None = None
        self._lock = threading.RLock()
        self.init_count = 0
        self.destroy_count = 0
        self.reinit_count = 0

    @property
    def live_handles(self) -> int:
        return 0 if self._engine is None else 1

    def model_bytes(self) -> bytes:
        """Read model bytes once, verifying the checksum when one is configured."""
        if self._model_bytes is None:
            if self.expected_sha256:
                assert_sha256(self.model_fp, self.expected_sha256)
            self.log.debug(f"reading model bytes from\n    {self.model_fp}")
            self._model_bytes = self.model_fp.read_bytes()
        return self._model_bytes

    def acquire(self, hardware_mode: HardwareMode | str | bool) -> EngineBase:
        """Return a READY engine bound to `hardware_mode`, building or rebuilding as needed."""
        mode = HardwareMode.parse(hardware_mode)
        with self._lock:
            if self.state is HandleState.DESTROYED:
                raise RuntimeError("engine lifecycle is destroyed; create a new one")

            if self.state is HandleState.READY:
                if mode is self.hardware_mode:
                    return self._engine
                # The hardware back-end cannot change on a live handle.
                self.log.info(f"hardware mode changed {self.hardware_mode.value} -> {mode.value}; reinitializing")
                self.state = HandleState.REINITIALIZING
                self.reinit_count += 1
                self._release()

            self._engine = self._build(mode)
            self.hardware_mode = mode
            self.state = HandleState.READY
            return self._engine

    def _build(self, mode: HardwareMode) -> EngineBase:
        try:
            engine = self.engine_factory(model_bytes=self.model_bytes(), hardware_mode=mode, logger=self.log)
        except EngineInitFailed:
            self._mark_uninitialized()
            raise
        except Exception as err:
            self._mark_uninitialized()
            raise EngineInitFailed(f"engine construction failed for hardware mode '{mode.value}': {err}") from err
        if engine is None or getattr(engine, "contract", None) is None:
            self._mark_uninitialized()
            raise EngineInitFailed(f"engine construction returned no valid handle for hardware mode '{mode.value}'")
        self.init_count += 1
        model_source = engine.model_path() or self.model_fp or "in-memory model bytes"
        self.log.debug(f"engine handle ready for hardware mode '{mode.value}' from\n    {model_source}")
        return engine

    def _mark_uninitialized(self) -> None:
        self.state = HandleState.UNINITIALIZED
        self.hardware_mode = None
        self._engine = None

    def _release(self) -> None:
        engine, self._engine = self._engine, None
        if engine is not None:
            engine.close()
            self.destroy_count += 1

    def destroy(self) -> None:
        """Destroy the live handle; repeated calls are no-ops."""
        with self._lock:
            if self.state is HandleState.DESTROYED:
                return
            self._release()
            self.hardware_mode = None
            self.state = HandleState.DESTROYED
            self.log.debug("engine lifecycle destroyed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()
        return False
