"""Rasterizer: map sampled integer points into a fixed-size square canvas.

Pipeline:
    1. Translate so the bbox min corner lands on the origin
    2. Uniform integer scale divisor: max(width, height) // canvas_size + 1
    3. Integer-divide translated coordinates by the scale
    4. Mark pixel (row=y, col=x) with the foreground color
    5. Persist the canvas as an image (extension selects the encoding)

Invariants:
    - scale ≥ 1 and every canvas coordinate lies in [0, canvas_size) by
      construction; a coordinate outside the canvas is an internal
      consistency failure and raises RasterizationError
    - No blending, no interpolation between samples: many points may collapse
      onto one pixel when the bbox is much larger than the canvas
    - Image frame: top-left origin, +Y down (no vertical flip)

Usage:
    from epitrace.tracer.rasterizer import rasterize, save_canvas

    canvas = rasterize(trace.points, trace.bbox, canvas_size=1000)
    save_canvas(canvas, "out.png")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import numpy as np

from epitrace.errors import OutputWriteError, RasterizationError
from epitrace.utils import fs
from epitrace.utils.geometry import BoundingBox

logger = logging.getLogger(__name__)

DEFAULT_CANVAS_SIZE = 1000
FOREGROUND_RGB = (255, 255, 255)
BACKGROUND_RGB = (0, 0, 0)

RGB = Tuple[int, int, int]


@dataclass
class Canvas:
    """Square RGB raster produced by :func:`rasterize`.

    Attributes
    ----------
    pixels : np.ndarray
        (size, size, 3) uint8, indexed [y, x]
    scale : int
        Divisor applied to translated coordinates
    drawn_pixels : int
        Number of distinct pixels set to the foreground color
    foreground, background : tuple[int, int, int]
        Colors used for drawn and untouched pixels
    """

    pixels: np.ndarray
    scale: int
    drawn_pixels: int
    foreground: RGB = FOREGROUND_RGB
    background: RGB = BACKGROUND_RGB

    @property
    def size(self) -> int:
        return int(self.pixels.shape[0])

    def mask(self) -> np.ndarray:
        """Boolean (size, size) map of drawn pixels."""
        return np.all(self.pixels == np.asarray(self.foreground, dtype=np.uint8), axis=-1)


def compute_translation(bbox: BoundingBox) -> Tuple[int, int]:
    """Translation moving the bbox min corner to the origin."""
    return (-bbox.min_x, -bbox.min_y)


def compute_scale(bbox: BoundingBox, canvas_size: int) -> int:
    """Uniform integer divisor that fits the bbox extent into the canvas.

    Parameters
    ----------
    bbox : BoundingBox
        Bounds of the sampled points
    canvas_size : int
        Canvas side in pixels, ≥ 1

    Returns
    -------
    int
        ``max(width, height) // canvas_size + 1`` (always ≥ 1)

    Notes
    -----
    With extent E and scale s = E // C + 1 we have s·C > E, so
    floor(E / s) < C: every translated coordinate fits.
    Monotone: a wider bbox never yields a smaller scale.
    """
    _check_canvas_size(canvas_size)
    extent = max(bbox.width, bbox.height)
    return extent // canvas_size + 1


def to_canvas_coords(points: np.ndarray, bbox: BoundingBox, canvas_size: int) -> np.ndarray:
    """Translate and scale integer points into canvas space.

    Parameters
    ----------
    points : np.ndarray
        Integer points, shape (N, 2)
    bbox : BoundingBox
        Bounds of ``points``
    canvas_size : int
        Canvas side in pixels

    Returns
    -------
    np.ndarray
        Canvas coordinates (x, y), shape (N, 2), int64
    """
    points = np.asarray(points, dtype=np.int64)
    if points.ndim != 2 or points.shape[1] != 2:
        raise ValueError(f"Expected points of shape (N, 2), got {points.shape}")

    scale = compute_scale(bbox, canvas_size)
    lo = np.asarray(bbox.min, dtype=np.int64)
    below = points < lo

    # Offsets from the min corner span up to 2**64 - 1, so they are taken in
    # uint64 (modular subtraction is exact for points at or above the corner)
    offsets = points.astype(np.uint64) - lo.astype(np.uint64)
    if scale > np.iinfo(np.uint64).max:
        scaled = np.zeros_like(offsets)
    else:
        # Non-negative offsets, so floor division truncates
        scaled = offsets // np.uint64(scale)

    # Components below the min corner have no unsigned offset: flag them as -1
    return np.where(below, -1, scaled.astype(np.int64))


def rasterize(
    points: np.ndarray,
    bbox: BoundingBox,
    canvas_size: int = DEFAULT_CANVAS_SIZE,
    *,
    foreground: RGB = FOREGROUND_RGB,
    background: RGB = BACKGROUND_RGB,
) -> Canvas:
    """Draw sampled points into a square canvas.

    Parameters
    ----------
    points : np.ndarray
        Integer points, shape (N, 2)
    bbox : BoundingBox
        Bounds of ``points``
    canvas_size : int
        Canvas side in pixels, default 1000
    foreground : tuple[int, int, int]
        Color for drawn pixels, default white
    background : tuple[int, int, int]
        Color for untouched pixels, default black

    Returns
    -------
    Canvas
        Populated canvas (not yet persisted)

    Raises
    ------
    ValueError
        If ``canvas_size`` < 1 or ``points`` has the wrong shape
    RasterizationError
        If a computed coordinate falls outside the canvas (points not
        contained in ``bbox``)
    """
    coords = to_canvas_coords(points, bbox, canvas_size)
    scale = compute_scale(bbox, canvas_size)

    outside = np.any((coords < 0) | (coords >= canvas_size), axis=1)
    if np.any(outside):
        idx = int(np.argmax(outside))
        raise RasterizationError(
            f"Point #{idx} {tuple(int(v) for v in np.asarray(points)[idx])} maps to canvas "
            f"coordinate {tuple(int(v) for v in coords[idx])}, outside "
            f"[0, {canvas_size}) (bbox min={bbox.min} max={bbox.max}, scale={scale})"
        )

    pixels = np.empty((canvas_size, canvas_size, 3), dtype=np.uint8)
    pixels[:, :] = np.asarray(background, dtype=np.uint8)

    xs = coords[:, 0]
    ys = coords[:, 1]
    pixels[ys, xs] = np.asarray(foreground, dtype=np.uint8)

    drawn = int(np.unique(ys * canvas_size + xs).size)
    logger.debug(
        "Rasterized %d points onto %dx%d canvas (scale=%d, drawn=%d px)",
        coords.shape[0], canvas_size, canvas_size, scale, drawn,
    )
    return Canvas(
        pixels=pixels,
        scale=scale,
        drawn_pixels=drawn,
        foreground=tuple(foreground),
        background=tuple(background),
    )


def save_canvas(canvas: Canvas, path: Union[str, Path]) -> Path:
    """Persist canvas as an image; the file extension selects the encoding.

    Raises
    ------
    OutputWriteError
        If encoding or writing fails (unknown extension, permissions, disk)
    """
    path = Path(path)
    try:
        fs.atomic_save_image(canvas.pixels, path)
    except RuntimeError as e:
        raise OutputWriteError(str(e)) from e

    logger.info("Saved %dx%d canvas to %s", canvas.size, canvas.size, path)
    return path


def _check_canvas_size(canvas_size: int) -> None:
    if isinstance(canvas_size, bool) or not isinstance(canvas_size, (int, np.integer)):
        raise ValueError(f"canvas_size must be an int, got {type(canvas_size).__name__}")
    if canvas_size < 1:
        raise ValueError(f"canvas_size must be >= 1, got {canvas_size}")


__all__ = [
    "DEFAULT_CANVAS_SIZE",
    "FOREGROUND_RGB",
    "BACKGROUND_RGB",
    "Canvas",
    "compute_translation",
    "compute_scale",
    "to_canvas_coords",
    "rasterize",
    "save_canvas",
]
