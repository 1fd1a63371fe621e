"""Hardware mode resolution and execution provider diagnostics."""

import importlib.metadata as md
from enum import Enum

from srtile.errors import EngineInitFailed


# Preference order when an accelerated session is requested.
ACCELERATED_PROVIDERS = (
    "CUDAExecutionProvider",
    "ROCMExecutionProvider",
    "DmlExecutionProvider",
    "CoreMLExecutionProvider",
    "NnapiExecutionProvider",
    "OpenVINOExecutionProvider",
)
CPU_PROVIDER = "CPUExecutionProvider"


class HardwareMode(str, Enum):
    """Execution hardware an engine handle is bound to."""

    DEFAULT = "default"
    ACCELERATED = "accelerated"

    @classmethod
    def parse(cls, value: "HardwareMode | str | bool") -> "HardwareMode":
        """Accept an enum, its string value, or a use-accelerator flag."""
        if isinstance(value, HardwareMode):
            return value
        if isinstance(value, bool):
            return cls.ACCELERATED if value else cls.DEFAULT
        key = str(value).strip().lower()
        for mode in cls:
            if mode.value == key:
                return mode
        raise ValueError(f"unsupported hardware mode '{value}'; expected one of {[m.value for m in cls]}")


def resolve_providers(
    hardware_mode: HardwareMode | str,
    available_providers: list[str] | None = None,
) -> list[str]:
    """Return the ORT provider list for a hardware mode."""
    mode = HardwareMode.parse(hardware_mode)
    if mode is HardwareMode.DEFAULT:
        return [CPU_PROVIDER]

    if available_providers is None:
        import onnxruntime as ort

        available_providers = list(ort.get_available_providers())
    for provider in ACCELERATED_PROVIDERS:
        if provider in available_providers:
            return [provider, CPU_PROVIDER]
    raise EngineInitFailed(
        f"no accelerated execution provider available; found {available_providers}. "
        f"retry with hardware mode '{HardwareMode.DEFAULT.value}'."
    )


def get_onnxruntime_info() -> dict[str, object]:
    """Return ORT installation and provider diagnostics."""
    import onnxruntime as ort

    available = list(ort.get_available_providers())
    return {
        "installed": True,
        "version": md.version("onnxruntime"),
        "available_providers": available,
        "accelerated_available": any(p in available for p in ACCELERATED_PROVIDERS),
    }


def get_pillow_info() -> dict[str, object]:
    """Return Pillow installation diagnostics."""
    try:
        version = md.version("Pillow")
    except md.PackageNotFoundError:
        return {
            "installed": False,
            "version": None,
        }
    return {
        "installed": True,
        "version": version,
    }
