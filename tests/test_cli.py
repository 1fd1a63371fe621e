"""Tests for srtile CLI behavior."""

import json
import os
from pathlib import Path

import numpy as np
import pytest

from conftest import coordinate_image
from srtile.cli import _parse_arguments, _resolve_log_level, main
from srtile.upscale import _resolve_default_output_path


@pytest.mark.unit
def test_plan_command_prints_reference_plan(capsys):
    """Ensure the plan command prints the column-major origins as JSON."""
    exit_code = main(["plan", "--width", "120", "--height", "80"])
    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["columns"] == 3 and payload["rows"] == 2
    assert payload["origins"] == [[0, 0], [0, 30], [50, 0], [50, 30], [70, 0], [70, 30]]


@pytest.mark.unit
def test_plan_command_too_small_returns_error():
    """Ensure undersized plans exit non-zero."""
    assert main(["plan", "--width", "10", "--height", "80"]) == 1


@pytest.mark.unit
@pytest.mark.parametrize(
    "argv, expected",
    [
        pytest.param(["doctor"], 20, id="default_info"),
        pytest.param(["-v", "doctor"], 10, id="verbose_debug"),
        pytest.param(["-qq", "doctor"], 40, id="quiet_error"),
        pytest.param(["--log-level", "WARNING", "doctor"], 30, id="explicit_level"),
    ],
)
def test_resolve_log_level(argv, expected):
    """Ensure verbosity flags map onto logging levels."""
    assert _resolve_log_level(_parse_arguments(argv)) == expected


@pytest.mark.unit
def test_default_output_path_uses_cwd_and_input_stem(tmp_path: Path):
    """Ensure default output path is generated in cwd with _sr suffix."""
    cwd = os.getcwd()
    try:
        os.chdir(tmp_path)
        output_fp = _resolve_default_output_path(Path("/data/photo.jpg"))
    finally:
        os.chdir(cwd)
    assert output_fp == (tmp_path / "photo_sr.jpg").resolve()


@pytest.mark.e2e
def test_main_upscale_writes_image(resize_model_fp, tmp_path, capsys):
    """Ensure the upscale command writes an image at the upscaled size."""
    pytest.importorskip("onnxruntime")
    from PIL import Image

    in_fp = tmp_path / "input.png"
    Image.fromarray(coordinate_image(31, 17).pixels).save(in_fp)
    out_fp = tmp_path / "output.png"

    exit_code = main(
        ["upscale", "--in", str(in_fp), "--out", str(out_fp), "--model-path", str(resize_model_fp), "--no-progress"]
    )
    assert exit_code == 0
    assert capsys.readouterr().out.strip() == str(out_fp.resolve())
    with Image.open(out_fp) as img:
        assert img.size == (62, 34)
        pixels = np.asarray(img.convert("RGBA"))
    assert (pixels[..., 3] == 255).all()


@pytest.mark.e2e
def test_main_doctor_reports_providers(capsys):
    """Ensure doctor prints dependency diagnostics."""
    pytest.importorskip("onnxruntime")
    assert main(["doctor"]) == 0
    out = capsys.readouterr().out
    assert "onnxruntime_available_providers=" in out
    assert "pillow_installed=True" in out
