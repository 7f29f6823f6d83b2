"""Vector and bounding-box helpers shared by the sampler and rasterizer.

Provides:
    - Polar → Cartesian vectors (angle + length)
    - Truncation of real vectors to integer points (toward zero)
    - Integer axis-aligned bounding boxes (component-wise min/max)

Vectors are numpy arrays with a trailing axis of size 2 holding (x, y).
Angles are in radians. Integer points use int64.

Integer policy: real values are truncated toward zero, never rounded.
Keep it that way across the pipeline; mixing rounding and truncation shifts
results by up to one unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np

_INT64_BOUND = 2.0 ** 63


def vector_from_angle_and_length(angle, length) -> np.ndarray:
    """Build Cartesian vectors from polar angle and length.

    Parameters
    ----------
    angle : float or np.ndarray
        Angle(s) in radians, shape (...)
    length : float or np.ndarray
        Vector length(s), broadcastable against ``angle``. Negative lengths
        flip the vector by pi.

    Returns
    -------
    np.ndarray
        Vectors, shape (..., 2), dtype follows numpy promotion of the inputs

    Notes
    -----
    (length · cos θ, length · sin θ). Pass inputs already cast to the working
    dtype (e.g. float32) so no silent upcast happens.
    """
    angle = np.asarray(angle)
    length = np.asarray(length)
    x = length * np.cos(angle)
    y = length * np.sin(angle)
    return np.stack([x, y], axis=-1)


def truncate_to_int(vectors: np.ndarray) -> np.ndarray:
    """Convert real vectors to integer points by truncation toward zero.

    Parameters
    ----------
    vectors : np.ndarray
        Real-valued vectors, shape (..., 2)

    Returns
    -------
    np.ndarray
        Integer points, same shape, dtype int64

    Raises
    ------
    ValueError
        If any component is NaN, infinite, or outside the int64 range after
        truncation
    """
    vectors = np.asarray(vectors)
    if not np.all(np.isfinite(vectors)):
        raise ValueError("Cannot truncate non-finite vector components to integers")

    truncated = np.trunc(vectors)
    # 2**63 is exact in float32 and float64; int64 holds [-2**63, 2**63)
    if np.any((truncated < -_INT64_BOUND) | (truncated >= _INT64_BOUND)):
        worst = float(np.max(np.abs(truncated)))
        raise ValueError(
            f"Cannot truncate vector component {worst:.6g} to int64 "
            f"(magnitude must be below 2**63)"
        )
    return truncated.astype(np.int64)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned integer bounding box, corners inclusive."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    def __post_init__(self) -> None:
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise ValueError(
                f"Inverted bounding box: min=({self.min_x}, {self.min_y}) "
                f"max=({self.max_x}, {self.max_y})"
            )

    @classmethod
    def from_points(cls, points: np.ndarray) -> "BoundingBox":
        """Smallest box containing every row of an (N, 2) integer array."""
        points = np.asarray(points)
        if points.ndim != 2 or points.shape[1] != 2:
            raise ValueError(f"Expected points of shape (N, 2), got {points.shape}")
        if points.shape[0] == 0:
            raise ValueError("Cannot compute bounding box of zero points")

        lo = points.min(axis=0)
        hi = points.max(axis=0)
        return cls(int(lo[0]), int(lo[1]), int(hi[0]), int(hi[1]))

    @classmethod
    def from_point(cls, x: int, y: int) -> "BoundingBox":
        """Degenerate box around a single point."""
        return cls(int(x), int(y), int(x), int(y))

    def include(self, x: int, y: int) -> "BoundingBox":
        """Return a box widened to also contain ``(x, y)``."""
        return BoundingBox(
            min(self.min_x, int(x)),
            min(self.min_y, int(y)),
            max(self.max_x, int(x)),
            max(self.max_y, int(y)),
        )

    @property
    def min(self) -> Tuple[int, int]:
        return (self.min_x, self.min_y)

    @property
    def max(self) -> Tuple[int, int]:
        return (self.max_x, self.max_y)

    @property
    def width(self) -> int:
        return self.max_x - self.min_x

    @property
    def height(self) -> int:
        return self.max_y - self.min_y

    @property
    def is_degenerate(self) -> bool:
        return self.width == 0 and self.height == 0

    def contains(self, x: int, y: int) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def as_dict(self) -> dict:
        return {"min": list(self.min), "max": list(self.max)}


__all__ = [
    "vector_from_angle_and_length",
    "truncate_to_int",
    "BoundingBox",
]
