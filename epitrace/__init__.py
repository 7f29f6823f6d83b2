"""epitrace: rasterize the trace of a sum of rotating vectors (epicycles).

This package samples the tip of an epicycle sum over discrete time and
draws the resulting points into a fixed-size square canvas saved as an image.

Architecture layers (strict one-way dependency):
    epitrace/scripts/ → epitrace/data_pipeline/ → epitrace/tracer/ → epitrace/utils/

Key invariants:
    - Epicycles are iterated in input order (summation order is fixed)
    - Real vector sums become integer points by truncation toward zero
    - Uniform integer scale: every trace fits the canvas by construction
    - YAML-only configs
    - Canvas images are RGB uint8, image frame (top-left origin, +Y down)
"""

__version__ = "0.3.0"
