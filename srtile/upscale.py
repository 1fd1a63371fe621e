"""Upscaling entrypoints: a dedicated tiling worker and a file-to-file pass."""

import logging, threading, time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from srtile.config import resolve_upscale_config
from srtile.engine.lifecycle import EngineFactory, EngineLifecycle
from srtile.engine.providers import HardwareMode
from srtile.executor import TilingExecutor
from srtile.image import ImageBuffer
from srtile.io import read_image, write_image
from srtile.progress import LoggingObserver, Observer, ProgressDispatcher, TqdmObserver
from srtile.tiling import TilePlan, plan_tiles


class Upscaler:
    """
    Run tiled upscales on one dedicated worker thread.

    The worker owns every call into the engine handle, so handle use is
    serialized and a hardware-mode change never swaps the handle under a
    running plan. The caller's thread stays free to cancel or query.
    """

    def __init__(
        self,
        model_fp: str | Path | None = None,
        *,
        model_bytes: bytes | None = None,
        config: dict[str, object] | None = None,
        engine_factory: EngineFactory | None = None,
        progress_flush_timeout_s: float = 2.0,
        logger=None,
    ):
        self.log = logger or logging.getLogger(__name__)
        self.config = config if config is not None else resolve_upscale_config(model_fp, logger=self.log)
        self.lifecycle = EngineLifecycle(
            model_fp,
            model_bytes=model_bytes,
            expected_sha256=self.config.get("sha256"),
            engine_factory=engine_factory,
            logger=self.log,
        )
        self.executor = TilingExecutor(logger=self.log)
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="srtile-worker")
        self._closed = False
        self.progress_flush_timeout_s = progress_flush_timeout_s

    def plan(self, source: ImageBuffer) -> TilePlan:
        """Plan tiles for `source` with the configured tile geometry."""
        return plan_tiles(
            source.width,
            source.height,
            int(self.config["tile_width"]),
            int(self.config["tile_height"]),
            int(self.config["upscale_factor"]),
        )

    def submit(
        self,
        source: ImageBuffer,
        *,
        hardware_mode: HardwareMode | str | bool | None = None,
        observer: Observer | None = None,
        cancel_event: threading.Event | None = None,
    ) -> "Future[ImageBuffer]":
        """Queue one run and return a future for the destination buffer."""
        assert not self._closed, "upscaler is closed"
        mode = HardwareMode.parse(self.config["hardware_mode"] if hardware_mode is None else hardware_mode)
        # Planning on the caller thread rejects undersized images before any work.
        plan = self.plan(source)
        return self._pool.submit(self._run, source, plan, mode, observer, cancel_event)

    def _run(
        self,
        source: ImageBuffer,
        plan: TilePlan,
        mode: HardwareMode,
        observer: Observer | None,
        cancel_event: threading.Event | None,
    ) -> ImageBuffer:
        engine = self.lifecycle.acquire(mode)
        dispatcher = ProgressDispatcher(observer, maxsize=int(self.config["progress_queue_size"]), logger=self.log)
        try:
            return self.executor.run(source, plan, engine, dispatcher, cancel_event=cancel_event)
        finally:
            # Bounded wait; undelivered events keep draining on the daemon thread.
            dispatcher.close(timeout=self.progress_flush_timeout_s)

    def run(self, source: ImageBuffer, **kwargs) -> ImageBuffer:
        """Run one upscale and block until it finishes."""
        return self.submit(source, **kwargs).result()

    def close(self) -> None:
        """Stop the worker, then destroy the engine handle."""
        if self._closed:
            return
        self._closed = True
        self._pool.shutdown(wait=True)
        self.lifecycle.destroy()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def _resolve_default_output_path(in_fp: str | Path) -> Path:
    """Resolve default output in cwd from input filename."""
    in_path = Path(in_fp).expanduser()
    suffix = in_path.suffix or ".png"
    return (Path.cwd() / f"{in_path.stem}_sr{suffix}").resolve()


def upscale_file(
    model_fp: str | Path,
    in_fp: str | Path,
    out_fp: str | Path | None = None,
    *,
    hardware_mode: HardwareMode | str | None = None,
    tile_size: int | None = None,
    config_fp: str | Path | None = None,
    model_sha256: str | None = None,
    show_progress: bool = True,
    logger=None,
) -> dict[str, object]:
    """
    Upscale one image file and write the result.

    Parameters
    ----------
    model_fp:
        Path to the fixed-tile ONNX model.
    in_fp:
        Input image path (any Pillow-readable format).
    out_fp:
        Output image path. Defaults to ``./<input stem>_sr<suffix>``.
    hardware_mode:
        ``default`` (CPU) or ``accelerated``.
    tile_size:
        Optional square tile override; must match the model input.
    config_fp:
        Optional JSON run configuration.
    model_sha256:
        Optional expected model digest.
    show_progress:
        Render column progress with tqdm; otherwise log progress messages.
    logger:
        Optional logger instance.

    Returns
    -------
    dict
        Output path and run diagnostics.
    """
    start = time.perf_counter()
    log = logger or logging.getLogger(__name__)
    model_path = Path(model_fp).expanduser().resolve()
    in_path = Path(in_fp).expanduser().resolve()
    assert model_path.exists(), f"model file does not exist: {model_path}"
    assert in_path.exists(), f"input image does not exist: {in_path}"
    out_path = Path(out_fp).expanduser().resolve() if out_fp is not None else _resolve_default_output_path(in_path)

    config = resolve_upscale_config(
        model_path,
        tile_size=tile_size,
        hardware_mode=hardware_mode,
        config_fp=config_fp,
        logger=log,
    )
    if model_sha256:
        config["sha256"] = model_sha256
    log.info(
        f"starting upscale with model\n    {model_path}\n"
        f"input\n    {in_path}\n"
        f"output\n    {out_path}"
    )

    source = read_image(in_path)
    observer = TqdmObserver() if show_progress else LoggingObserver(logger=log)
    with Upscaler(model_path, config=config, logger=log) as upscaler:
        plan = upscaler.plan(source)
        result = upscaler.run(source, observer=observer)
        written_fp = write_image(out_path, result)

    runtime_s = time.perf_counter() - start
    log.info(f"finished upscale in {runtime_s:.3f}s; wrote output to\n    {written_fp}")
    return {
        "output_fp": str(written_fp),
        "runtime_s": float(runtime_s),
        "hardware_mode": str(config["hardware_mode"]),
        "columns": plan.columns,
        "rows": plan.rows,
        "tile_count": plan.tile_count,
        "tile_size": [plan.tile_width, plan.tile_height],
        "upscale_factor": plan.upscale_factor,
        "input_size": list(source.size),
        "output_size": list(result.size),
    }
