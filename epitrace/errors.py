"""Fatal error taxonomy for the trace pipeline.

Every failure that aborts a run derives from :class:`TraceError` and carries
the ``phase`` in which it happened, so the CLI can report which stage failed.
Caller contract violations (bad argument values) raise ``ValueError`` instead.
"""

from __future__ import annotations


class TraceError(Exception):
    """Base class for fatal pipeline errors."""

    phase = "trace"


class ConfigError(TraceError):
    """Raised when the run configuration fails validation."""

    phase = "config"


class InputOpenError(TraceError):
    """Raised when the epicycle file is missing or unreadable."""

    phase = "input"


class InputParseError(TraceError):
    """Raised when a row cannot be parsed into three numeric fields."""

    phase = "parse"

    def __init__(self, message: str, *, line_no: int | None = None) -> None:
        super().__init__(message)
        self.line_no = line_no


class SamplingError(TraceError):
    """Raised when the epicycle sum cannot be converted to integer points."""

    phase = "sampling"


class RasterizationError(TraceError):
    """Raised when a point maps outside the canvas (internal inconsistency)."""

    phase = "rasterization"


class OutputWriteError(TraceError):
    """Raised when the canvas cannot be encoded or written."""

    phase = "output"


__all__ = [
    "TraceError",
    "ConfigError",
    "InputOpenError",
    "InputParseError",
    "SamplingError",
    "RasterizationError",
    "OutputWriteError",
]
