"""Epicycle tracing: sampling of the vector sum and rasterization.

Modules:
    - sampler: Epicycle, SampledTrace, sample()
    - rasterizer: Canvas, compute_scale(), rasterize(), save_canvas()
"""

from .rasterizer import Canvas, compute_scale, rasterize, save_canvas
from .sampler import Epicycle, SampledTrace, sample

__all__ = [
    'Epicycle',
    'SampledTrace',
    'sample',
    'Canvas',
    'compute_scale',
    'rasterize',
    'save_canvas',
]
