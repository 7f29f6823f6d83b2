#!/usr/bin/env python3
"""Trace script: epicycle table → sampled points → rasterized image.

Runs the full pipeline:
    1. Read epicycles from a headerless CSV (speed rad/s, radius, angle rad)
    2. Sample the vector sum over discrete time (Sampler)
    3. Normalize and scale the points into a square canvas (Rasterizer)
    4. Save the canvas (extension selects the encoding, e.g. .png)
    5. Optionally write a YAML run manifest (digests, bbox, scale)

Callable API:
    - trace_main(input_path, output_path, config) → dict
      Returns: {output_path, point_count, bbox, scale, drawn_pixels,
                trace_sha256, input_sha256}

CLI:
    python -m epitrace.scripts.trace -i epicycles.csv -o trace.png
    python -m epitrace.scripts.trace -i epicycles.csv -o trace.png \\
        --config configs/trace_v1.yaml --sample-count 500 --canvas-size 256
    epitrace -i epicycles.csv -o trace.png --manifest trace_manifest.yaml

Exit codes:
    0: Image written
    1: Fatal error (input, parse, sampling, rasterization, output, config);
       the log names the failed phase
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from epitrace import __version__
from epitrace.data_pipeline.epicycle_io import load_epicycle_table
from epitrace.errors import ConfigError, OutputWriteError, TraceError
from epitrace.tracer.rasterizer import rasterize, save_canvas
from epitrace.tracer.sampler import sample
from epitrace.utils import fs, validators
from epitrace.utils.logging_config import (
    install_excepthook,
    pop_context,
    push_context,
    reset_logging,
    setup_logging,
)

logger = logging.getLogger(__name__)


def trace_main(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    config: Optional[validators.TraceConfigV1] = None,
    manifest_path: Optional[Union[str, Path]] = None,
) -> Dict[str, Any]:
    """Run the trace pipeline end to end.

    Parameters
    ----------
    input_path : str or Path
        Headerless CSV of epicycles
    output_path : str or Path
        Image path; the extension selects the encoding
    config : TraceConfigV1, optional
        Run configuration; defaults to ``TraceConfigV1()``
    manifest_path : str or Path, optional
        Where to write a YAML summary of the run

    Returns
    -------
    dict
        output_path, point_count, bbox ({min, max}), scale, drawn_pixels,
        trace_sha256, input_sha256

    Raises
    ------
    TraceError
        Any fatal pipeline error; nothing is written when it happens before
        the save step
    """
    cfg = config or validators.TraceConfigV1()
    input_path = Path(input_path)
    output_path = Path(output_path)

    table = load_epicycle_table(input_path)
    epicycles = table.epicycles
    input_sha256 = table.sha256

    trace = sample(
        epicycles,
        cfg.sampling.sample_count,
        cfg.sampling.samples_per_second,
        include_initial_sample=cfg.sampling.include_initial_sample,
        dtype=cfg.sampling.dtype,
    )
    trace_sha256 = trace.digest()
    logger.info(
        "Sampled %d points (bbox min=%s max=%s, sha256=%s)",
        len(trace), trace.bbox.min, trace.bbox.max, trace_sha256[:12],
    )

    canvas = rasterize(
        trace.points,
        trace.bbox,
        cfg.canvas.size_px,
        foreground=cfg.canvas.foreground_rgb,
        background=cfg.canvas.background_rgb,
    )
    save_canvas(canvas, output_path)

    result = {
        'output_path': str(output_path),
        'point_count': len(trace),
        'bbox': trace.bbox.as_dict(),
        'scale': canvas.scale,
        'drawn_pixels': canvas.drawn_pixels,
        'trace_sha256': trace_sha256,
        'input_sha256': input_sha256,
    }

    if manifest_path is not None:
        manifest = {
            'schema': 'trace_manifest.v1',
            'epitrace_version': __version__,
            'input_path': str(input_path),
            'epicycle_count': len(epicycles),
            'config': cfg.model_dump(mode='json', by_alias=True),
            **result,
        }
        try:
            fs.atomic_yaml_dump(manifest, manifest_path)
        except RuntimeError as e:
            raise OutputWriteError(str(e)) from e
        logger.info("Manifest written to %s", manifest_path)

    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="epitrace",
        description="Draw the curve traced by a sum of rotating vectors (epicycles)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Input rows: angular_speed_rad_s,radius,initial_angle_rad (no header)",
    )
    parser.add_argument(
        "--input",
        "-i",
        type=str,
        required=True,
        help="Path to the epicycle CSV file",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        required=True,
        help="Output image path (extension selects format, e.g. .png)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Trace config (trace.v1 YAML); built-in defaults when omitted",
    )
    parser.add_argument(
        "--samples-per-second",
        type=float,
        help="Override sampling.samples_per_second (default 500.0)",
    )
    parser.add_argument(
        "--sample-count",
        type=int,
        help="Override sampling.sample_count (default 10000)",
    )
    parser.add_argument(
        "--canvas-size",
        type=int,
        help="Override canvas.size_px (default 1000)",
    )
    parser.add_argument(
        "--include-initial-sample",
        action="store_true",
        default=None,
        help="Also sample t=0 (skipped by default)",
    )
    parser.add_argument(
        "--manifest",
        type=str,
        help="Write a YAML run manifest (digests, bbox, scale) to this path",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console/file log level",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also log to this file",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Write the log file as JSON lines",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def load_config(args: argparse.Namespace) -> validators.TraceConfigV1:
    """Resolve the run configuration: YAML file (or defaults) + CLI overrides."""
    if args.config:
        try:
            cfg = validators.load_trace_config(args.config)
        except FileNotFoundError as e:
            raise ConfigError(str(e)) from e
    else:
        cfg = validators.TraceConfigV1()

    return validators.apply_overrides(
        cfg,
        sampling={
            'samples_per_second': args.samples_per_second,
            'sample_count': args.sample_count,
            'include_initial_sample': args.include_initial_sample,
        },
        canvas={'size_px': args.canvas_size},
    )


def configure_logging(args: argparse.Namespace) -> None:
    """Install CLI logging; an unusable --log-file is a config error.

    On failure the console handler is still installed so the error is
    reported like any other fatal one.
    """
    options = {"log_level": args.log_level, "quiet_libs": ["PIL"], "context": {"app": "trace"}}
    try:
        setup_logging(log_file=args.log_file, json=args.json_logs, **options)
    except OSError as e:
        setup_logging(**options)
        raise ConfigError(f"Cannot open log file {args.log_file}: {e}") from e


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        configure_logging(args)
        install_excepthook()
        cfg = load_config(args)
        push_context(input=Path(args.input).name)
        result = trace_main(args.input, args.output, cfg, manifest_path=args.manifest)
        logger.info(
            "Trace complete: %s (%d points, scale=%d, %d px drawn)",
            result['output_path'], result['point_count'], result['scale'], result['drawn_pixels'],
        )
        return 0
    except TraceError as e:
        logger.error("Trace failed during %s phase: %s", e.phase, e)
        return 1
    finally:
        pop_context(keys=["input"])
        reset_logging()


if __name__ == "__main__":
    sys.exit(main())
