"""Run configuration resolution for srtile upscaling."""

import json
import logging
from pathlib import Path

from srtile.engine.providers import HardwareMode


DEFAULT_CONFIG = {
    "tile_width": 50,
    "tile_height": 50,
    "upscale_factor": 4,
    "hardware_mode": HardwareMode.DEFAULT.value,
    "progress_queue_size": 64,
    "sha256": None,
}
_INT_KEYS = ("tile_width", "tile_height", "upscale_factor", "progress_queue_size")


def _read_json_config(fp: Path) -> dict:
    payload = json.loads(fp.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"config must be a JSON object: {fp}")
    unknown = sorted(set(payload) - set(DEFAULT_CONFIG))
    if unknown:
        raise ValueError(f"unsupported config keys {unknown} in {fp}")
    return payload


def load_model_config(model_fp: str | Path, logger=None) -> dict | None:
    """Load the `<model stem>.json` sidecar next to a model file, if present."""
    log = logger or logging.getLogger(__name__)
    model_path = Path(model_fp).expanduser().resolve()
    sidecar_fp = model_path.with_suffix(".json")
    if not sidecar_fp.exists():
        log.debug(f"no model config sidecar at\n    {sidecar_fp}")
        return None
    log.debug(f"loading model config sidecar from\n    {sidecar_fp}")
    return _read_json_config(sidecar_fp)


def resolve_upscale_config(
    model_fp: str | Path | None = None,
    *,
    tile_size: int | None = None,
    upscale_factor: int | None = None,
    hardware_mode: HardwareMode | str | None = None,
    config_fp: str | Path | None = None,
    logger=None,
) -> dict[str, object]:
    """
    Resolve run settings.

    Precedence, lowest first: built-in defaults, the model sidecar JSON,
    an explicit JSON config file, then keyword overrides.
    """
    log = logger or logging.getLogger(__name__)
    configured = {}

    if model_fp is not None:
        sidecar = load_model_config(model_fp, logger=log)
        if sidecar:
            configured.update({k: v for k, v in sidecar.items() if v is not None})
    if config_fp is not None:
        config_path = Path(config_fp).expanduser().resolve()
        assert config_path.exists(), f"config file does not exist: {config_path}"
        configured.update({k: v for k, v in _read_json_config(config_path).items() if v is not None})
    resolved = {**DEFAULT_CONFIG, **configured}

    overrides = {}
    if tile_size is not None:
        overrides["tile_width"] = overrides["tile_height"] = int(tile_size)
    if upscale_factor is not None:
        overrides["upscale_factor"] = int(upscale_factor)
    if hardware_mode is not None:
        overrides["hardware_mode"] = HardwareMode.parse(hardware_mode).value
    for key, value in overrides.items():
        if key in configured and configured[key] != value:
            log.warning(f"override {key}={value!r} replaces configured value {configured[key]!r}")
    resolved.update(overrides)

    for key in _INT_KEYS:
        value = resolved[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not float(value).is_integer():
            raise ValueError(f"config '{key}' must be an integer; got {value!r}")
        resolved[key] = int(value)
        if resolved[key] <= 0:
            raise ValueError(f"config '{key}' must be > 0; got {resolved[key]}")
    resolved["hardware_mode"] = HardwareMode.parse(resolved["hardware_mode"]).value

    log.debug(
        f"resolved upscale config: tile={resolved['tile_width']}x{resolved['tile_height']}, "
        f"upscale_factor={resolved['upscale_factor']}, hardware_mode={resolved['hardware_mode']}, "
        f"progress_queue_size={resolved['progress_queue_size']}"
    )
    return resolved
