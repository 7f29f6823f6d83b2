"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Vector & bounding-box helpers (geometry)
    - Atomic I/O (fs)
    - Hashing for provenance (hashing)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (tracer, data_pipeline, scripts).
``epitrace.errors`` is shared by every layer.

Convenience imports:
    from epitrace.utils import fs, geometry, validators
    from epitrace.utils.logging_config import setup_logging, push_context
"""

from . import fs
from . import geometry
from . import hashing
from . import logging_config
from . import validators

from .logging_config import push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'geometry',
    'hashing',
    'logging_config',
    'validators',
    # Direct exports
    'setup_logging',
    'push_context',
]
