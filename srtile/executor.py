"""Tile-by-tile execution of a plan through one engine handle."""

import logging, threading, time

import numpy as np

from srtile.engine.base import EngineBase
from srtile.errors import InferenceFailed, RunCancelled
from srtile.image import ImageBuffer
from srtile.progress import Observer, ProgressEvent, RunComplete, estimate_remaining_ms
from srtile.tiling import TilePlan


class TilingExecutor:
    """Walk a tile plan in column-major order and stitch upscaled tiles."""

    def __init__(self, logger=None):
        self.log = logger or logging.getLogger(__name__)

    def _check_inputs(self, source: ImageBuffer, plan: TilePlan, engine: EngineBase) -> None:
        if source.size != (plan.source_width, plan.source_height):
            raise ValueError(
                f"plan was built for {plan.source_width}x{plan.source_height} but source is {source.width}x{source.height}"
            )
        contract = engine.contract
        assert contract is not None, "engine has no tile contract; was it loaded?"
        expected = (plan.tile_height, plan.tile_width, plan.upscale_factor)
        got = (contract.tile_height, contract.tile_width, contract.upscale_factor)
        if got != expected:
            raise ValueError(
                f"plan tile geometry (h, w, scale)={expected} does not match engine contract {got}"
            )

    def run(
        self,
        source: ImageBuffer,
        plan: TilePlan,
        engine: EngineBase,
        progress_sink: Observer | None = None,
        *,
        destination: ImageBuffer | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ImageBuffer:
        """
        Upscale `source` tile by tile and return the destination buffer.

        Parameters
        ----------
        source:
            Source buffer; read only.
        plan:
            Tile plan built for the source size and engine tile geometry.
        engine:
            Loaded engine handle borrowed for the duration of the run.
        progress_sink:
            Callable receiving a ProgressEvent before each column after the
            first and a RunComplete after the last tile.
        destination:
            Optional pre-allocated zero buffer of the output size.
        cancel_event:
            Optional event checked between tiles.

        Returns
        -------
        ImageBuffer
            The fully written destination. On InferenceFailed or RunCancelled
            nothing is returned and the destination holds partial content only.
        """
        log = self.log
        self._check_inputs(source, plan, engine)
        out_w, out_h = plan.output_size
        if destination is None:
            destination = ImageBuffer.zeros(out_w, out_h)
        assert destination.size == (out_w, out_h), f"destination size {destination.size} != {(out_w, out_h)}"
        emit = progress_sink or (lambda event: None)
        tile_out_w, tile_out_h = plan.output_tile_size

        log.info(
            f"tiling {source.width}x{source.height} into {plan.columns}x{plan.rows} tiles "
            f"of {plan.tile_width}x{plan.tile_height}, scale={plan.upscale_factor}"
        )
        start = time.perf_counter()
        tile_index = 0
        for col in range(plan.columns):
            if col > 0:
                elapsed_ms = (time.perf_counter() - start) * 1000.0
                emit(
                    ProgressEvent(
                        columns_done=col,
                        columns_total=plan.columns,
                        elapsed_ms=elapsed_ms,
                        estimated_remaining_ms=estimate_remaining_ms(elapsed_ms, col, plan.columns),
                    )
                )

            for row in range(plan.rows):
                if cancel_event is not None and cancel_event.is_set():
                    log.info(f"run cancelled before tile {tile_index} of {plan.tile_count}")
                    raise RunCancelled(f"run cancelled after {tile_index} of {plan.tile_count} tiles")

                x, y = plan.origin(col, row)
                tile = source.read_block(x, y, plan.tile_width, plan.tile_height)
                try:
                    pred = engine.run_tile(tile)
                except InferenceFailed as err:
                    err.tile_index, err.origin = tile_index, (x, y)
                    log.error(f"inference failed on tile {tile_index} at ({x}, {y}); aborting run")
                    raise
                if pred is None or np.shape(pred) != (tile_out_h, tile_out_w, 4):
                    log.error(f"inference returned an invalid tile {tile_index} at ({x}, {y}); aborting run")
                    raise InferenceFailed(
                        f"engine returned shape {None if pred is None else np.shape(pred)} "
                        f"for tile {tile_index}; expected {(tile_out_h, tile_out_w, 4)}",
                        tile_index=tile_index,
                        origin=(x, y),
                    )

                dx, dy, cx, cy, w, h = plan.write_region(col, row)
                destination.write_block(dx, dy, pred[cy : cy + h, cx : cx + w])
                log.debug(f"tile {tile_index} col={col} row={row} src=({x}, {y}) dst=({dx}, {dy}) crop=({cx}, {cy})")
                tile_index += 1

        total_ms = (time.perf_counter() - start) * 1000.0
        emit(RunComplete(total_elapsed_ms=total_ms, columns_total=plan.columns, tiles_total=tile_index))
        log.info(f"finished {tile_index} tiles in {total_ms / 1000.0:.3f}s")
        return destination
