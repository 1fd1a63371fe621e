"""Engine package exports."""

from srtile.engine.base import EngineBase, TileContract
from srtile.engine.lifecycle import EngineLifecycle, HandleState
from srtile.engine.providers import HardwareMode, get_onnxruntime_info, get_pillow_info, resolve_providers


__all__ = [
    "EngineBase",
    "EngineLifecycle",
    "HandleState",
    "HardwareMode",
    "TileContract",
    "get_onnxruntime_info",
    "get_pillow_info",
    "resolve_providers",
]
