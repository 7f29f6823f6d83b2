"""Epicycle sampler: vector sum of rotating vectors over discrete time.

For each time step ``t`` the tip of the epicycle chain is

    Σ_e  r_e · (cos θ_e(t), sin θ_e(t)),   θ_e(t) = φ_e + ω_e · t / samples_per_second

evaluated in the working dtype and truncated toward zero to an integer point.

Invariants:
    - Steps run over ``1 .. sample_count - 1``; ``t = 0`` is only sampled when
      ``include_initial_sample=True``
    - Epicycles are summed in input order (float addition is not associative,
      reordering changes results at ULP level)
    - Default dtype is float32, the precision the reference traces were
      produced with
    - Output is deterministic: same inputs → byte-identical points

Usage:
    from epitrace.tracer.sampler import Epicycle, sample

    trace = sample([Epicycle(2 * math.pi, 10.0, 0.0)], 500, 500.0)
    trace.points  # (499, 2) int64
    trace.bbox    # BoundingBox(min_x=-10, ...)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from epitrace.errors import SamplingError
from epitrace.utils import hashing
from epitrace.utils.geometry import BoundingBox, truncate_to_int, vector_from_angle_and_length

logger = logging.getLogger(__name__)

DEFAULT_SAMPLES_PER_SECOND = 500.0
DEFAULT_SAMPLE_COUNT = 10000


@dataclass(frozen=True)
class Epicycle:
    """One rotating vector of the chain.

    ``radius`` is not validated: zero contributes nothing and a negative
    value points the vector the opposite way. ``initial_angle`` is taken as
    is, without normalization.
    """

    angular_speed: float  # rad/s, signed
    radius: float
    initial_angle: float  # rad


@dataclass(frozen=True)
class SampledTrace:
    """Time-ordered integer points plus their bounding box."""

    points: np.ndarray  # (N, 2) int64
    bbox: BoundingBox

    def __len__(self) -> int:
        return int(self.points.shape[0])

    def digest(self) -> str:
        """SHA-256 of the point array (dtype and shape sensitive)."""
        return hashing.sha256_array(self.points)


def _check_args(sample_count: int, samples_per_second: float, start: int) -> None:
    if isinstance(sample_count, bool) or not isinstance(sample_count, (int, np.integer)):
        raise ValueError(f"sample_count must be an int, got {type(sample_count).__name__}")
    if sample_count - start < 1:
        raise ValueError(
            f"sample_count={sample_count} yields no samples "
            f"(steps run from {start} to sample_count - 1)"
        )
    if not math.isfinite(samples_per_second) or samples_per_second <= 0:
        raise ValueError(f"samples_per_second must be finite and > 0, got {samples_per_second}")


def sample_vectors(
    epicycles: Sequence[Epicycle],
    times: np.ndarray,
    samples_per_second: float,
    dtype=np.float32,
) -> np.ndarray:
    """Evaluate the real-valued vector sum at the given step indices.

    Parameters
    ----------
    epicycles : Sequence[Epicycle]
        Chain of epicycles, summed in this order
    times : np.ndarray
        Step indices, shape (N,)
    samples_per_second : float
        Steps per simulated second (converts step index to seconds)
    dtype : numpy dtype
        Working precision, default float32

    Returns
    -------
    np.ndarray
        Vector sums, shape (N, 2), dtype ``dtype``
    """
    scalar = np.dtype(dtype).type
    t = np.asarray(times).astype(dtype)
    sps = scalar(samples_per_second)

    total = np.zeros((t.shape[0], 2), dtype=dtype)
    for epicycle in epicycles:
        angle = scalar(epicycle.initial_angle) + (scalar(epicycle.angular_speed) * t) / sps
        total += vector_from_angle_and_length(angle, scalar(epicycle.radius))
    return total


def sample(
    epicycles: Sequence[Epicycle],
    sample_count: int = DEFAULT_SAMPLE_COUNT,
    samples_per_second: float = DEFAULT_SAMPLES_PER_SECOND,
    *,
    include_initial_sample: bool = False,
    dtype=np.float32,
) -> SampledTrace:
    """Sample the epicycle chain tip over discrete time.

    Parameters
    ----------
    epicycles : Sequence[Epicycle]
        Chain of epicycles (may be empty: every point is the origin)
    sample_count : int
        Exclusive upper bound of the step range, default 10000
    samples_per_second : float
        Steps per simulated second, default 500.0
    include_initial_sample : bool
        Start the step range at 0 instead of 1, default False
    dtype : numpy dtype
        Working precision, default float32

    Returns
    -------
    SampledTrace
        ``sample_count - 1`` points (``sample_count`` with the initial
        sample) and their bounding box

    Raises
    ------
    ValueError
        If the step range is empty or ``samples_per_second`` is not positive
    SamplingError
        If a vector sum is not finite (overflow in the working dtype) or
        truncates to a value outside the int64 range
    """
    start = 0 if include_initial_sample else 1
    _check_args(sample_count, samples_per_second, start)

    times = np.arange(start, sample_count)
    # Overflow surfaces as non-finite sums below
    with np.errstate(over='ignore', invalid='ignore'):
        vectors = sample_vectors(epicycles, times, samples_per_second, dtype=dtype)

    try:
        points = truncate_to_int(vectors)
    except ValueError as e:
        raise SamplingError(f"Epicycle sum cannot become integer points: {e}") from e

    bbox = BoundingBox.from_points(points)
    logger.debug(
        "Sampled %d epicycles over %d steps (t=%d..%d), bbox min=%s max=%s",
        len(epicycles), points.shape[0], start, sample_count - 1, bbox.min, bbox.max,
    )
    return SampledTrace(points=points, bbox=bbox)


__all__ = [
    "DEFAULT_SAMPLES_PER_SECOND",
    "DEFAULT_SAMPLE_COUNT",
    "Epicycle",
    "SampledTrace",
    "sample_vectors",
    "sample",
]
