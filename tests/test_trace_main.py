"""Test trace_main() callable API and the epitrace CLI.

Validates the end-to-end pipeline:
    - trace_main() returns the documented keys and writes the image
    - Runs are deterministic (same trace digest, same bytes)
    - Fatal errors exit with status 1, name the failed phase and write nothing
    - --manifest writes a YAML summary; --config and overrides are applied
    - argparse rejects missing required arguments with status 2

Synthetic input:
    - One epicycle: 2π rad/s, radius 10, initial angle 0 (a full circle in
      one second at 500 samples/second)

Run:
    pytest tests/test_trace_main.py -v
"""

import hashlib

import numpy as np
import pytest
import yaml
from PIL import Image

from epitrace.errors import InputParseError
from epitrace.scripts import trace
from epitrace.utils import hashing, logging_config, validators


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def clean_logging():
    yield
    logging_config.reset_logging()
    logging_config.pop_context()


@pytest.fixture
def circle_csv(tmp_path):
    path = tmp_path / "circle.csv"
    path.write_text("6.283185307179586,10,0\n", encoding="utf-8")
    return path


@pytest.fixture
def small_config():
    return validators.apply_overrides(
        validators.TraceConfigV1(),
        sampling={"sample_count": 500},
        canvas={"size_px": 64},
    )


# ============================================================================
# trace_main()
# ============================================================================

def test_trace_main_return_dict(circle_csv, tmp_path, small_config):
    out = tmp_path / "circle.png"

    result = trace.trace_main(circle_csv, out, small_config)

    assert set(result) == {
        "output_path", "point_count", "bbox", "scale",
        "drawn_pixels", "trace_sha256", "input_sha256",
    }
    assert result["output_path"] == str(out)
    assert result["point_count"] == 499
    assert result["scale"] == 1
    assert len(result["trace_sha256"]) == 64
    assert set(result["bbox"]) == {"min", "max"}
    assert out.exists()


def test_trace_main_image_contents(circle_csv, tmp_path, small_config):
    out = tmp_path / "circle.png"
    result = trace.trace_main(circle_csv, out, small_config)

    with Image.open(out) as img:
        assert img.size == (64, 64)
        assert img.mode == "RGB"
        pixels = np.asarray(img)

    white = np.all(pixels == 255, axis=-1)
    black = np.all(pixels == 0, axis=-1)
    assert int(white.sum()) == result["drawn_pixels"]
    assert np.all(white | black)
    # Circle of radius ~10 fits in a ~21 px square at the top-left corner
    ys, xs = np.nonzero(white)
    assert ys.max() <= 20 and xs.max() <= 20
    assert ys.min() == 0 and xs.min() == 0


def test_trace_main_deterministic(circle_csv, tmp_path, small_config):
    a = trace.trace_main(circle_csv, tmp_path / "a.png", small_config)
    b = trace.trace_main(circle_csv, tmp_path / "b.png", small_config)

    assert a["trace_sha256"] == b["trace_sha256"]
    assert a["input_sha256"] == b["input_sha256"]
    assert (tmp_path / "a.png").read_bytes() == (tmp_path / "b.png").read_bytes()


def test_trace_main_default_config(circle_csv, tmp_path):
    result = trace.trace_main(circle_csv, tmp_path / "default.png")

    assert result["point_count"] == 9999
    with Image.open(tmp_path / "default.png") as img:
        assert img.size == (1000, 1000)


def test_trace_main_input_digest_from_parsed_bytes(circle_csv, tmp_path, small_config, monkeypatch):
    """The input digest comes from the single read used for parsing."""
    def no_second_read(path, *args, **kwargs):
        raise AssertionError(f"input re-read for hashing: {path}")

    monkeypatch.setattr(hashing, "sha256_file", no_second_read)

    result = trace.trace_main(circle_csv, tmp_path / "d.png", small_config)

    assert result["input_sha256"] == hashlib.sha256(circle_csv.read_bytes()).hexdigest()


def test_trace_main_include_initial_sample(circle_csv, tmp_path, small_config):
    cfg = validators.apply_overrides(small_config, sampling={"include_initial_sample": True})
    result = trace.trace_main(circle_csv, tmp_path / "t0.png", cfg)

    assert result["point_count"] == 500
    assert result["bbox"]["max"][0] == 10


def test_trace_main_parse_error_writes_nothing(tmp_path, small_config):
    bad = tmp_path / "bad.csv"
    bad.write_text("1,2,3\n1,2\n", encoding="utf-8")
    out = tmp_path / "out.png"

    with pytest.raises(InputParseError):
        trace.trace_main(bad, out, small_config)
    assert not out.exists()


def test_trace_main_empty_input_draws_origin(tmp_path, small_config):
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")

    result = trace.trace_main(empty, tmp_path / "empty.png", small_config)

    # No epicycles: every sample is the origin, one pixel drawn at (0, 0)
    assert result["drawn_pixels"] == 1
    assert result["bbox"] == {"min": [0, 0], "max": [0, 0]}


def test_trace_main_manifest(circle_csv, tmp_path, small_config):
    manifest_path = tmp_path / "run" / "manifest.yaml"
    result = trace.trace_main(circle_csv, tmp_path / "m.png", small_config, manifest_path=manifest_path)

    with open(manifest_path, encoding="utf-8") as f:
        manifest = yaml.safe_load(f)

    assert manifest["schema"] == "trace_manifest.v1"
    assert manifest["epicycle_count"] == 1
    assert manifest["trace_sha256"] == result["trace_sha256"]
    assert manifest["config"]["schema"] == "trace.v1"
    assert manifest["config"]["sampling"]["sample_count"] == 500
    assert manifest["config"]["canvas"]["size_px"] == 64


# ============================================================================
# CLI
# ============================================================================

def test_cli_success(circle_csv, tmp_path, capsys):
    out = tmp_path / "cli.png"

    code = trace.main([
        "-i", str(circle_csv), "-o", str(out),
        "--sample-count", "500", "--canvas-size", "32",
    ])

    assert code == 0
    with Image.open(out) as img:
        assert img.size == (32, 32)
    assert "Trace complete" in capsys.readouterr().err


def test_cli_parse_error(tmp_path, capsys):
    bad = tmp_path / "bad.csv"
    bad.write_text("1,2\n", encoding="utf-8")
    out = tmp_path / "out.png"

    code = trace.main(["--input", str(bad), "--output", str(out)])

    assert code == 1
    assert not out.exists()
    err = capsys.readouterr().err
    assert "parse phase" in err
    assert "line 1" in err


def test_cli_missing_input(tmp_path, capsys):
    code = trace.main(["-i", str(tmp_path / "absent.csv"), "-o", str(tmp_path / "x.png")])

    assert code == 1
    assert "input phase" in capsys.readouterr().err


def test_cli_unsupported_extension(circle_csv, tmp_path, capsys):
    code = trace.main([
        "-i", str(circle_csv), "-o", str(tmp_path / "x.notanimage"), "--sample-count", "50",
    ])

    assert code == 1
    assert "output phase" in capsys.readouterr().err
    assert [p.name for p in tmp_path.iterdir()] == ["circle.csv"]


def test_cli_bad_config(circle_csv, tmp_path, capsys):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("canvas:\n  size_px: 0\n", encoding="utf-8")

    code = trace.main(["-i", str(circle_csv), "-o", str(tmp_path / "x.png"), "-c", str(cfg)])

    assert code == 1
    assert "config phase" in capsys.readouterr().err
    assert not (tmp_path / "x.png").exists()


def test_cli_unwritable_log_file(circle_csv, tmp_path, capsys):
    """A log path under a regular file fails cleanly with exit 1."""
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    out = tmp_path / "x.png"

    code = trace.main([
        "-i", str(circle_csv), "-o", str(out), "--log-file", str(blocker / "trace.log"),
    ])

    assert code == 1
    err = capsys.readouterr().err
    assert "config phase" in err
    assert "Cannot open log file" in err
    assert not out.exists()


def test_cli_missing_config_file(circle_csv, tmp_path):
    code = trace.main([
        "-i", str(circle_csv), "-o", str(tmp_path / "x.png"), "-c", str(tmp_path / "none.yaml"),
    ])
    assert code == 1


def test_cli_config_file_and_override(circle_csv, tmp_path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        "schema: trace.v1\n"
        "sampling:\n  sample_count: 200\n"
        "canvas:\n  size_px: 48\n  foreground_rgb: [255, 0, 0]\n",
        encoding="utf-8",
    )
    out = tmp_path / "red.png"

    code = trace.main(["-i", str(circle_csv), "-o", str(out), "-c", str(cfg), "--canvas-size", "40"])

    assert code == 0
    with Image.open(out) as img:
        assert img.size == (40, 40)
        pixels = np.asarray(img)
    assert np.any(np.all(pixels == (255, 0, 0), axis=-1))


def test_cli_manifest_and_log_file(circle_csv, tmp_path):
    manifest = tmp_path / "manifest.yaml"
    log_file = tmp_path / "logs" / "trace.jsonl"

    code = trace.main([
        "-i", str(circle_csv), "-o", str(tmp_path / "x.png"), "--sample-count", "100",
        "--manifest", str(manifest), "--log-file", str(log_file), "--json-logs",
    ])

    assert code == 0
    assert manifest.exists()
    lines = log_file.read_text(encoding="utf-8").strip().splitlines()
    assert any('"app": "trace"' in line for line in lines)
    assert any('"input": "circle.csv"' in line for line in lines)


def test_cli_requires_input_and_output(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        trace.main(["-o", str(tmp_path / "x.png")])
    assert exc_info.value.code == 2

    with pytest.raises(SystemExit) as exc_info:
        trace.main(["-i", "rows.csv"])
    assert exc_info.value.code == 2


def test_cli_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        trace.main(["--version"])
    assert exc_info.value.code == 0
    assert "epitrace" in capsys.readouterr().out
