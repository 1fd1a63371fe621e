"""Command line interface for srtile operations."""

import argparse, json, logging
from pathlib import Path

from srtile.config import DEFAULT_CONFIG
from srtile.engine import HardwareMode, get_onnxruntime_info, get_pillow_info
from srtile.tiling import plan_tiles
from srtile.upscale import upscale_file


log = logging.getLogger(__name__)


def _resolve_log_level(args: argparse.Namespace) -> int:
    """Resolve effective logging level from explicit level or verbosity flags."""
    if args.log_level is not None:
        return getattr(logging, args.log_level)

    # Start from INFO, then apply -v and -q offsets with DEBUG/ERROR clamp.
    level = logging.INFO - (10 * int(args.verbose)) + (10 * int(args.quiet))
    return max(logging.DEBUG, min(logging.ERROR, level))


def _configure_logging(args: argparse.Namespace) -> None:
    """Configure stdlib logging using Python default handler routing."""
    effective_level = _resolve_log_level(args)
    root_logger = logging.getLogger()
    root_logger.setLevel(effective_level)
    if not root_logger.handlers:
        logging.basicConfig(level=effective_level)


def main_cli(args: argparse.Namespace) -> int:
    """Run the CLI command selected by parsed arguments."""
    if args.command == "upscale":
        result = upscale_file(
            args.model_path,
            args.in_fp,
            args.out,
            hardware_mode=args.hardware_mode,
            tile_size=args.tile_size,
            config_fp=args.config,
            model_sha256=args.model_sha256,
            show_progress=not args.no_progress,
            logger=log,
        )
        print(result["output_fp"])
        return 0

    if args.command == "plan":
        plan = plan_tiles(args.width, args.height, args.tile_width, args.tile_height, args.upscale_factor)
        print(json.dumps(plan.to_dict(), indent=2))
        return 0

    if args.command == "doctor":
        ort_info = get_onnxruntime_info()
        pillow_info = get_pillow_info()
        print(f"onnxruntime_installed={ort_info['installed']}")
        print(f"onnxruntime_version={ort_info['version']}")
        print(f"onnxruntime_available_providers={','.join(ort_info['available_providers'])}")
        print(f"onnxruntime_accelerated_available={ort_info['accelerated_available']}")
        print(f"pillow_installed={pillow_info['installed']}")
        print(f"pillow_version={pillow_info['version']}")
        return 0

    raise ValueError(f"unsupported command path: {args.command}")


def main(argv: list[str] | None = None) -> int:
    """Run the srtile CLI and return an exit code."""
    args = _parse_arguments(argv)
    _configure_logging(args)
    try:
        return main_cli(args)
    except Exception as err:
        log.error(f"{err}")
        log.debug("unhandled CLI exception", exc_info=True)
        return 1


def _parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for srtile."""
    parser = argparse.ArgumentParser(prog="srtile", description="Tiled super-resolution upscaling.")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (repeatable).",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease logging verbosity (repeatable).",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default=None,
        help="Explicit log level override.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    upscale_parser = subparsers.add_parser("upscale", help="Upscale one image file.")
    upscale_parser.add_argument("--in", dest="in_fp", type=Path, required=True, help="Input image path.")
    upscale_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output image path. Defaults to ./<input_stem>_sr with input extension.",
    )
    upscale_parser.add_argument("--model-path", type=Path, required=True, help="Fixed-tile ONNX model path.")
    upscale_parser.add_argument(
        "--hardware-mode",
        choices=[mode.value for mode in HardwareMode],
        default=None,
        help="Execution hardware for the engine handle (default: from config, else 'default').",
    )
    upscale_parser.add_argument(
        "--tile-size",
        type=int,
        default=None,
        help="Square tile size override (must match the model input size).",
    )
    upscale_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional JSON run configuration.",
    )
    upscale_parser.add_argument(
        "--model-sha256",
        default=None,
        help="Expected SHA256 of the model file.",
    )
    upscale_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Log progress messages instead of drawing a progress bar.",
    )

    plan_parser = subparsers.add_parser("plan", help="Print the tile plan for an image size as JSON.")
    plan_parser.add_argument("--width", type=int, required=True, help="Source width in pixels.")
    plan_parser.add_argument("--height", type=int, required=True, help="Source height in pixels.")
    plan_parser.add_argument("--tile-width", type=int, default=DEFAULT_CONFIG["tile_width"])
    plan_parser.add_argument("--tile-height", type=int, default=DEFAULT_CONFIG["tile_height"])
    plan_parser.add_argument("--upscale-factor", type=int, default=DEFAULT_CONFIG["upscale_factor"])

    subparsers.add_parser("doctor", help="Report runtime dependency diagnostics.")
    return parser.parse_args(argv)


if __name__ == "__main__":
    raise SystemExit(main())
